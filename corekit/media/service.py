"""Storage and retrieval of media items and folder hierarchies."""

from __future__ import annotations

import json
import logging
import sqlite3
from datetime import datetime, timezone
from typing import Any, Iterable, Optional

from corekit.media.models import CreateMediaRequest, Media, MediaFilters, UpdateMediaRequest
from corekit.pagination import PaginatedResponse, Pagination

log = logging.getLogger(__name__)

_DEFAULT_PAGE = 1
_DEFAULT_PAGE_SIZE = 10
_FOLDER_TYPE = "folder"
_LIVE = "deleted_at IS NULL"


class MediaNotFoundError(LookupError):
    """No live media item has the requested id."""

    def __init__(self, item_id: int) -> None:
        super().__init__("media not found")
        self.item_id = item_id


def _now() -> datetime:
    return datetime.now(timezone.utc)


def _to_text(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat() if value is not None else None


def _to_datetime(value: Optional[str]) -> Optional[datetime]:
    return datetime.fromisoformat(value) if value else None


def _dump(value: Optional[dict[str, Any]]) -> Optional[str]:
    return json.dumps(value) if value is not None else None


def _load(value: Optional[str]) -> Optional[dict[str, Any]]:
    return json.loads(value) if value else None


def _from_row(row: dict[str, Any]) -> Media:
    return Media(
        id=row["id"],
        name=row["name"],
        type=row["type"],
        description=row["description"],
        parent_id=row["parent_id"],
        folder=row["folder"],
        tags=row["tags"],
        metadata=row["metadata"],
        author_id=row["author_id"],
        file=_load(row["file"]),
        original_file=_load(row["original_file"]),
        original_format=row["original_format"],
        converted_format=row["converted_format"],
        created_at=_to_datetime(row["created_at"]),
        updated_at=_to_datetime(row["updated_at"]),
        deleted_at=_to_datetime(row["deleted_at"]),
    )


class MediaService:
    """Creates, updates, soft-deletes and lists media items in a SQLite database."""

    def __init__(self, conn: sqlite3.Connection) -> None:
        self._conn = conn
        self._folder_cache: dict[str, int] = {}

    # -- low-level helpers -------------------------------------------------

    def _rows(self, sql: str, params: Iterable[Any] = ()) -> list[dict[str, Any]]:
        cursor = self._conn.execute(sql, tuple(params))
        names = [column[0] for column in cursor.description]
        return [dict(zip(names, row)) for row in cursor.fetchall()]

    def _find_plain(self, item_id: int) -> Optional[Media]:
        rows = self._rows(f"SELECT * FROM media WHERE id = ? AND {_LIVE}", (item_id,))
        return _from_row(rows[0]) if rows else None

    def _with_relations(self, item: Media) -> Media:
        if item.parent_id is not None:
            item.parent = self._find_plain(item.parent_id)
        item.children = [
            _from_row(row)
            for row in self._rows(
                f"SELECT * FROM media WHERE parent_id = ? AND {_LIVE} ORDER BY id", (item.id,)
            )
        ]
        return item

    def _insert(self, item: Media) -> int:
        now = _to_text(_now())
        cursor = self._conn.execute(
            "INSERT INTO media (name, type, description, parent_id, folder, tags, metadata,"
            " author_id, file, original_file, original_format, converted_format,"
            " created_at, updated_at) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)",
            (
                item.name,
                item.type,
                item.description,
                item.parent_id,
                item.folder,
                item.tags,
                item.metadata,
                item.author_id,
                _dump(item.file),
                _dump(item.original_file),
                item.original_format,
                item.converted_format,
                now,
                now,
            ),
        )
        return cursor.lastrowid

    # -- reads ---------------------------------------------------------------

    def get_by_id(self, item_id: int) -> Media:
        """Return one item with its parent and children loaded."""
        item = self._find_plain(item_id)
        if item is None:
            raise MediaNotFoundError(item_id)
        return self._with_relations(item)

    def get_by_ids(self, ids: Iterable[int]) -> list[Media]:
        """Return the live items among the given ids, relations loaded."""
        wanted = list(ids)
        if not wanted:
            return []
        marks = ", ".join("?" for _ in wanted)
        rows = self._rows(
            f"SELECT * FROM media WHERE id IN ({marks}) AND {_LIVE} ORDER BY id", wanted
        )
        return [self._with_relations(_from_row(row)) for row in rows]

    def get_all(
        self, page: Optional[int] = None, limit: Optional[int] = None
    ) -> PaginatedResponse:
        """Return every live item, one page of them when page and limit are given."""
        return self._paginate(f"WHERE {_LIVE}", [], page, limit)

    def get_all_with_filters(
        self,
        page: Optional[int] = None,
        limit: Optional[int] = None,
        filters: Optional[MediaFilters] = None,
    ) -> PaginatedResponse:
        """Return live items matching the filters, paginated when page and limit are given."""
        clauses = [_LIVE]
        params: list[Any] = []
        paginated = page is not None and limit is not None
        has_filters = filters is not None and (
            filters.parent_id is not None
            or bool(filters.folder)
            or bool(filters.type)
            or filters.author_id is not None
        )

        if has_filters:
            assert filters is not None
            if filters.parent_id is not None:
                clauses.append("parent_id = ?")
                params.append(filters.parent_id)
            elif not filters.folder:
                clauses.append("parent_id IS NULL")

            if filters.folder and filters.parent_id is None:
                clauses.append("(folder = ? OR folder LIKE ?)")
                params.extend([filters.folder, filters.folder + "/%"])

            if filters.type:
                clauses.append("type LIKE ?")
                params.append(f"%{filters.type}%")

            if filters.author_id is not None:
                if filters.include_shared:
                    clauses.append("(author_id = ? OR author_id IS NULL)")
                else:
                    clauses.append("author_id = ?")
                params.append(filters.author_id)
            elif not filters.include_shared:
                clauses.append("author_id IS NULL")
        elif paginated:
            clauses.append("parent_id IS NULL")

        return self._paginate("WHERE " + " AND ".join(clauses), params, page, limit)

    def _paginate(
        self,
        where: str,
        params: list[Any],
        page: Optional[int],
        limit: Optional[int],
    ) -> PaginatedResponse:
        (total,) = self._conn.execute(f"SELECT COUNT(*) FROM media {where}", params).fetchone()
        sql = f"SELECT * FROM media {where} ORDER BY id"
        query_params = list(params)
        if page is not None and limit is not None:
            sql += " LIMIT ? OFFSET ?"
            query_params.extend([limit, max((page - 1) * limit, 0)])
        items = [_from_row(row) for row in self._rows(sql, query_params)]
        return PaginatedResponse(
            data=[item.to_list_response() for item in items],
            pagination=Pagination.build(
                total,
                page if page is not None else _DEFAULT_PAGE,
                limit if limit is not None else _DEFAULT_PAGE_SIZE,
            ),
        )

    # -- writes --------------------------------------------------------------

    def create(self, req: CreateMediaRequest) -> Media:
        """Store a new item; an empty metadata string is stored as NULL."""
        item = Media(
            name=req.name,
            type=req.type,
            description=req.description,
            parent_id=req.parent_id,
            folder=req.folder,
            tags=req.tags,
            metadata=req.metadata or None,
            author_id=req.author_id,
            file=req.file,
        )
        try:
            with self._conn:
                item_id = self._insert(item)
        except sqlite3.Error:
            log.exception("failed to create media")
            raise
        return self.get_by_id(item_id)

    def update(self, item_id: int, req: UpdateMediaRequest) -> Media:
        """Change name, type, description, author and file where the request sets them."""
        item = self.get_by_id(item_id)
        if req.name is not None:
            item.name = req.name
        if req.type is not None:
            item.type = req.type
        if req.description is not None:
            item.description = req.description
        if req.author_id is not None:
            item.author_id = req.author_id
        if req.file is not None:
            item.file = req.file
        item.updated_at = _now()
        with self._conn:
            self._conn.execute(
                "UPDATE media SET name = ?, type = ?, description = ?, author_id = ?,"
                " file = ?, updated_at = ? WHERE id = ?",
                (
                    item.name,
                    item.type,
                    item.description,
                    item.author_id,
                    _dump(item.file),
                    _to_text(item.updated_at),
                    item.id,
                ),
            )
        return self.get_by_id(item_id)

    def delete(self, item_id: int) -> None:
        """Soft-delete an item and drop its file reference."""
        item = self.get_by_id(item_id)
        with self._conn:
            self._conn.execute(
                "UPDATE media SET deleted_at = ?, file = NULL WHERE id = ?",
                (_to_text(_now()), item.id),
            )

    # -- tree helpers --------------------------------------------------------

    def update_folder_path(self, item: Media) -> Media:
        """Set the item's folder from its parent: empty for root items."""
        if item.parent_id is None:
            item.folder = ""
            return item
        parent = self._find_plain(item.parent_id)
        if parent is None:
            raise MediaNotFoundError(item.parent_id)
        item.folder = parent.get_path()
        return item

    def ensure_folder_hierarchy(self, path: str) -> int:
        """Make sure every folder along the path exists; return the id of the last one."""
        if path in self._folder_cache:
            return self._folder_cache[path]

        current = ""
        parent_id: Optional[int] = None
        for part in path.replace("\\", "/").split("/"):
            if not part:
                continue
            current = part if not current else f"{current}/{part}"

            if current in self._folder_cache:
                parent_id = self._folder_cache[current]
                continue

            row = self._conn.execute(
                f"SELECT id FROM media WHERE type = ? AND folder = ? AND {_LIVE}"
                " ORDER BY id LIMIT 1",
                (_FOLDER_TYPE, current),
            ).fetchone()
            if row is not None:
                self._folder_cache[current] = row[0]
                parent_id = row[0]
                continue

            metadata = json.dumps({"path": current + "/"})
            folder = Media(
                name=part,
                type=_FOLDER_TYPE,
                folder=current,
                parent_id=parent_id,
                metadata=metadata,
            )
            with self._conn:
                folder_id = self._insert(folder)
            self._folder_cache[current] = folder_id
            parent_id = folder_id

        if parent_id is None:
            raise ValueError(f"failed to get folder ID for path: {path}")
        self._folder_cache[path] = parent_id
        return parent_id