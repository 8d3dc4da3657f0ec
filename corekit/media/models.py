"""Media entity, request payloads, filters and tree helpers."""

from __future__ import annotations

import sqlite3
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Optional

TABLE = "media"
MODEL_NAME = "media"

ATTACHMENT_CONFIG: dict[str, dict[str, Any]] = {
    "file": {
        "path": "media/:id/:filename",
        "validators": ["image", "audio"],
        "min_size": 1,
        "max_size": 100 * 1024 * 1024,
    }
}

_IMAGE_EXTENSIONS = frozenset(
    {".jpg", ".jpeg", ".png", ".gif", ".webp", ".svg", ".bmp", ".tiff", ".tif"}
)
_AUDIO_EXTENSIONS = frozenset({".mp3", ".wav", ".ogg", ".m4a", ".flac"})
_VIDEO_EXTENSIONS = frozenset({".mp4", ".webm", ".mov", ".avi", ".mkv"})


def _iso(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat() if value is not None else None


def _extension(filename: str) -> str:
    """Return the suffix from the last dot of the final path element, dot included."""
    base = filename.rsplit("/", 1)[-1]
    dot = base.rfind(".")
    return base[dot:] if dot >= 0 else ""


def media_type_from_extension(filename: str) -> str:
    """Classify a file name as image, audio, video or other."""
    ext = _extension(filename).lower()
    if ext in _IMAGE_EXTENSIONS:
        return "image"
    if ext in _AUDIO_EXTENSIONS:
        return "audio"
    if ext in _VIDEO_EXTENSIONS:
        return "video"
    return "other"


@dataclass
class Media:
    """A media item or folder, arranged in a tree through parent_id."""

    id: int = 0
    name: str = ""
    type: str = ""
    description: str = ""
    parent_id: Optional[int] = None
    folder: str = ""
    tags: str = ""
    metadata: Optional[str] = None
    author_id: Optional[int] = None
    file: Optional[dict[str, Any]] = None
    original_file: Optional[dict[str, Any]] = None
    original_format: str = ""
    converted_format: str = ""
    parent: Optional["Media"] = None
    children: list["Media"] = field(default_factory=list)
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    deleted_at: Optional[datetime] = None

    def _attachments(self) -> dict[str, Any]:
        found: dict[str, Any] = {}
        if self.file is not None:
            found["file"] = self.file
        if self.original_file is not None:
            found["original_file"] = self.original_file
        return found

    def _relations(self) -> dict[str, Any]:
        found: dict[str, Any] = {}
        if self.parent is not None:
            found["parent"] = self.parent.to_json()
        if self.children:
            found["children"] = [child.to_json() for child in self.children]
        return found

    def to_json(self) -> dict[str, Any]:
        """Return the full serialised form of the item."""
        data: dict[str, Any] = {
            "id": self.id,
            "name": self.name,
            "type": self.type,
            "description": self.description,
            "parent_id": self.parent_id,
            "folder": self.folder,
            "tags": self.tags,
            "metadata": self.metadata,
            "author_id": self.author_id,
        }
        data.update(self._attachments())
        if self.original_format:
            data["original_format"] = self.original_format
        if self.converted_format:
            data["converted_format"] = self.converted_format
        data.update(self._relations())
        data["created_at"] = _iso(self.created_at)
        data["updated_at"] = _iso(self.updated_at)
        data["deleted_at"] = _iso(self.deleted_at)
        return data

    def to_list_response(self) -> dict[str, Any]:
        """Return the compact form used in listings."""
        data: dict[str, Any] = {
            "id": self.id,
            "created_at": _iso(self.created_at),
            "updated_at": _iso(self.updated_at),
            "name": self.name,
            "type": self.type,
            "description": self.description,
            "parent_id": self.parent_id,
            "folder": self.folder,
            "tags": self.tags,
            "author_id": self.author_id,
        }
        data.update(self._attachments())
        return data

    def to_response(self) -> dict[str, Any]:
        """Return the detailed form, with parent and children when loaded."""
        data: dict[str, Any] = {
            "id": self.id,
            "created_at": _iso(self.created_at),
            "updated_at": _iso(self.updated_at),
            "deleted_at": _iso(self.deleted_at),
            "name": self.name,
            "type": self.type,
            "description": self.description,
            "parent_id": self.parent_id,
            "folder": self.folder,
            "tags": self.tags,
            "metadata": self.metadata,
            "author_id": self.author_id,
        }
        data.update(self._attachments())
        data.update(self._relations())
        return data

    def to_model_response(self) -> dict[str, Any]:
        """Return the short form used when embedded in other entities."""
        data: dict[str, Any] = {
            "id": self.id,
            "created_at": _iso(self.created_at),
            "updated_at": _iso(self.updated_at),
            "deleted_at": _iso(self.deleted_at),
            "name": self.name,
            "type": self.type,
            "description": self.description,
        }
        if self.file is not None:
            data["file"] = self.file
        return data

    def get_path(self) -> str:
        """Return the slash-separated names from the root down to this item."""
        if self.parent is None:
            return self.name
        return f"{self.parent.get_path()}/{self.name}"

    def is_descendant_of(self, ancestor: "Media") -> bool:
        """Tell whether the ancestor lies on this item's loaded parent chain."""
        if self.parent_id is None:
            return False
        if self.parent_id == ancestor.id:
            return True
        if self.parent is not None:
            return self.parent.is_descendant_of(ancestor)
        return False

    def get_depth(self) -> int:
        """Return the depth in the loaded tree; a root has depth 0."""
        if self.parent is None:
            return 0
        return self.parent.get_depth() + 1


@dataclass
class MediaFilters:
    """Filtering options for media queries."""

    parent_id: Optional[int] = None
    folder: str = ""
    type: str = ""
    author_id: Optional[int] = None
    include_shared: bool = False


@dataclass
class CreateMediaRequest:
    """Payload for creating a media item."""

    name: str
    type: str
    description: str = ""
    parent_id: Optional[int] = None
    folder: str = ""
    tags: str = ""
    metadata: str = ""
    author_id: Optional[int] = None
    file: Optional[dict[str, Any]] = None


@dataclass
class UpdateMediaRequest:
    """Payload for updating a media item; None fields are left unchanged."""

    name: Optional[str] = None
    type: Optional[str] = None
    description: Optional[str] = None
    parent_id: Optional[int] = None
    folder: Optional[str] = None
    tags: Optional[str] = None
    metadata: Optional[str] = None
    author_id: Optional[int] = None
    file: Optional[dict[str, Any]] = None


_SCHEMA = """
CREATE TABLE IF NOT EXISTS media (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    name TEXT NOT NULL DEFAULT '',
    type TEXT NOT NULL DEFAULT '',
    description TEXT NOT NULL DEFAULT '',
    parent_id INTEGER,
    folder TEXT NOT NULL DEFAULT '',
    tags TEXT NOT NULL DEFAULT '',
    metadata TEXT,
    author_id INTEGER,
    file TEXT,
    original_file TEXT,
    original_format TEXT NOT NULL DEFAULT '',
    converted_format TEXT NOT NULL DEFAULT '',
    created_at TEXT,
    updated_at TEXT,
    deleted_at TEXT
);
CREATE INDEX IF NOT EXISTS idx_media_parent_id ON media (parent_id);
CREATE INDEX IF NOT EXISTS idx_media_folder ON media (folder);
CREATE INDEX IF NOT EXISTS idx_media_author_id ON media (author_id);
CREATE INDEX IF NOT EXISTS idx_media_deleted_at ON media (deleted_at);
"""


def create_schema(conn: sqlite3.Connection) -> None:
    """Create the media table if it does not exist yet."""
    conn.executescript(_SCHEMA)
    conn.commit()