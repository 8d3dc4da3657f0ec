"""Business logic for roles, permissions and resource grants."""

from __future__ import annotations

import logging
import re
import sqlite3
from datetime import datetime, timezone
from typing import Any, Iterable, Optional

from corekit.authorization.models import (
    DuplicatePermissionError,
    InvalidIdError,
    Permission,
    PermissionNotFoundError,
    ResourcePermission,
    Role,
    RoleNotFoundError,
    SystemRoleUnmodifiableError,
    UserMembershipInfo,
)

log = logging.getLogger(__name__)

_UINT32_MAX = 2**32 - 1
_DIGITS = re.compile(r"[0-9]+")

_SEED_RESOURCE_TYPES = ("user", "authorization", "media", "profile")
_SEED_ACTIONS = ("create", "read", "update", "delete", "list")

_SEED_ROLES = (
    ("Owner", "Full access to all resources"),
    ("Administrator", "Administrative access with some limitations"),
    ("Member", "Standard member with limited access"),
    ("External", "External user with minimal access"),
)

_ADMIN_GRANTS = {
    "user": ("create", "read", "update", "delete", "list"),
    "media": ("create", "read", "update", "delete", "list"),
    "profile": ("create", "read", "update", "delete", "list"),
}
_MEMBER_GRANTS = {
    "user": ("read", "list"),
    "media": ("read", "list"),
    "profile": ("read", "list"),
}
_EXTERNAL_GRANTS = {
    "user": ("read", "list"),
    "media": ("read", "list"),
    "profile": ("read",),
}


def _now() -> datetime:
    return datetime.now(timezone.utc)


def _to_text(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat() if value is not None else None


def _to_datetime(value: Optional[str]) -> Optional[datetime]:
    return datetime.fromisoformat(value) if value else None


def _role_from_row(row: dict[str, Any]) -> Role:
    return Role(
        id=row["id"],
        name=row["name"],
        description=row["description"],
        is_system=bool(row["is_system"]),
        created_at=_to_datetime(row["created_at"]),
        updated_at=_to_datetime(row["updated_at"]),
        permission_count=row.get("permission_count", 0) or 0,
    )


def _permission_from_row(row: dict[str, Any]) -> Permission:
    return Permission(
        id=row["id"],
        name=row["name"],
        description=row["description"],
        resource_type=row["resource_type"],
        action=row["action"],
        created_at=_to_datetime(row["created_at"]),
        updated_at=_to_datetime(row["updated_at"]),
    )


class AuthorizationService:
    """Manages roles, permissions and their assignments in a SQLite database."""

    def __init__(self, conn: sqlite3.Connection) -> None:
        self._conn = conn

    # -- low-level helpers -------------------------------------------------

    def _rows(self, sql: str, params: Iterable[Any] = ()) -> list[dict[str, Any]]:
        cursor = self._conn.execute(sql, tuple(params))
        names = [column[0] for column in cursor.description]
        return [dict(zip(names, row)) for row in cursor.fetchall()]

    def _first(self, sql: str, params: Iterable[Any] = ()) -> Optional[dict[str, Any]]:
        rows = self._rows(sql, params)
        return rows[0] if rows else None

    def _find_role(self, role_id: int) -> Role:
        row = self._first("SELECT * FROM roles WHERE id = ?", (role_id,))
        if row is None:
            raise RoleNotFoundError()
        return _role_from_row(row)

    def _find_permission(self, permission_id: int) -> Permission:
        row = self._first("SELECT * FROM permissions WHERE id = ?", (permission_id,))
        if row is None:
            raise PermissionNotFoundError()
        return _permission_from_row(row)

    def _find_system_role(self, name: str) -> Role:
        row = self._first(
            "SELECT * FROM roles WHERE name = ? AND is_system = ? LIMIT 1", (name, 1)
        )
        if row is None:
            raise RoleNotFoundError(f"role not found: {name}")
        return _role_from_row(row)

    def _find_permission_by(self, resource_type: str, action: str) -> Optional[Permission]:
        row = self._first(
            "SELECT * FROM permissions WHERE resource_type = ? AND action = ? LIMIT 1",
            (resource_type, action),
        )
        return _permission_from_row(row) if row is not None else None

    def _is_assigned(self, role_id: int, permission_id: int) -> bool:
        row = self._conn.execute(
            "SELECT COUNT(*) FROM role_permissions WHERE role_id = ? AND permission_id = ?",
            (role_id, permission_id),
        ).fetchone()
        return row[0] > 0

    def _link(self, role_id: int, permission_id: int) -> None:
        self._conn.execute(
            "INSERT INTO role_permissions (role_id, permission_id, created_at) VALUES (?, ?, ?)",
            (role_id, permission_id, _to_text(_now())),
        )

    def _grant_missing(self, role_id: int, grants: dict[str, tuple[str, ...]]) -> None:
        for resource_type, actions in grants.items():
            for action in actions:
                permission = self._find_permission_by(resource_type, action)
                if permission is None:
                    continue
                if not self._is_assigned(role_id, permission.id):
                    self._link(role_id, permission.id)

    # -- roles -------------------------------------------------------------

    def get_roles(self) -> list[Role]:
        """Return all roles, each with the number of permissions it holds."""
        rows = self._rows(
            """
            SELECT r.id, r.name, r.description, r.is_system, r.created_at, r.updated_at,
                   (SELECT COUNT(*) FROM role_permissions rp WHERE rp.role_id = r.id)
                       AS permission_count
            FROM roles r ORDER BY r.id
            """
        )
        return [_role_from_row(row) for row in rows]

    def get_role(self, role_id: int) -> Role:
        """Return one role or raise RoleNotFoundError."""
        return self._find_role(role_id)

    def create_role(self, role: Role) -> Role:
        """Store a new role, filling in its id and timestamps."""
        now = _now()
        role.created_at = now
        role.updated_at = now
        with self._conn:
            cursor = self._conn.execute(
                "INSERT INTO roles (name, description, is_system, created_at, updated_at,"
                " permission_count) VALUES (?, ?, ?, ?, ?, ?)",
                (
                    role.name,
                    role.description,
                    int(role.is_system),
                    _to_text(role.created_at),
                    _to_text(role.updated_at),
                    role.permission_count,
                ),
            )
        role.id = cursor.lastrowid
        return role

    def update_role(self, role: Role) -> Role:
        """Change the name and description of a non-system role."""
        existing = self._find_role(role.id)
        if existing.is_system:
            raise SystemRoleUnmodifiableError()
        existing.name = role.name
        existing.description = role.description
        existing.updated_at = _now()
        with self._conn:
            self._conn.execute(
                "UPDATE roles SET name = ?, description = ?, updated_at = ? WHERE id = ?",
                (existing.name, existing.description, _to_text(existing.updated_at), existing.id),
            )
        return existing

    def delete_role(self, role_id: int) -> None:
        """Delete a non-system role together with its permission links."""
        existing = self._find_role(role_id)
        if existing.is_system:
            raise SystemRoleUnmodifiableError()
        with self._conn:
            self._conn.execute("DELETE FROM role_permissions WHERE role_id = ?", (role_id,))
            self._conn.execute("DELETE FROM roles WHERE id = ?", (role_id,))

    # -- permissions -------------------------------------------------------

    def get_permissions(self) -> list[Permission]:
        """Return all permissions."""
        return [
            _permission_from_row(row)
            for row in self._rows("SELECT * FROM permissions ORDER BY id")
        ]

    def get_role_permissions(self, role_id: int) -> list[Permission]:
        """Return the permissions linked to a role."""
        self._find_role(role_id)
        rows = self._rows(
            """
            SELECT p.* FROM permissions p
            JOIN role_permissions rp ON p.id = rp.permission_id
            WHERE rp.role_id = ?
            ORDER BY rp.id
            """,
            (role_id,),
        )
        return [_permission_from_row(row) for row in rows]

    def update_role_permissions(self, role_id: int, permission_ids: Iterable[int]) -> None:
        """Replace every permission of a role; nothing changes if one id is unknown."""
        self._find_role(role_id)
        with self._conn:
            self._conn.execute("DELETE FROM role_permissions WHERE role_id = ?", (role_id,))
            for permission_id in permission_ids:
                self._find_permission(permission_id)
                self._link(role_id, permission_id)

    def assign_permission_to_role(self, role_id: int, permission_id: int) -> None:
        """Link one permission to a role."""
        self._find_role(role_id)
        self._find_permission(permission_id)
        if self._is_assigned(role_id, permission_id):
            raise DuplicatePermissionError()
        with self._conn:
            self._link(role_id, permission_id)

    def revoke_permission_from_role(self, role_id: int, permission_id: int) -> None:
        """Remove the link between a role and a permission."""
        self._find_role(role_id)
        self._find_permission(permission_id)
        with self._conn:
            self._conn.execute(
                "DELETE FROM role_permissions WHERE role_id = ? AND permission_id = ?",
                (role_id, permission_id),
            )

    # -- resource permissions ----------------------------------------------

    def create_resource_permission(
        self, resource_permission: ResourcePermission
    ) -> ResourcePermission:
        """Store a resource grant, filling in its id and timestamps."""
        now = _now()
        resource_permission.created_at = now
        resource_permission.updated_at = now
        rp = resource_permission
        with self._conn:
            cursor = self._conn.execute(
                "INSERT INTO resource_permissions (resource_type, resource_id, user_id, role_id,"
                " action, default_scope, permission_id, created_at, updated_at)"
                " VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)",
                (
                    rp.resource_type,
                    rp.resource_id,
                    rp.user_id,
                    rp.role_id,
                    rp.action,
                    rp.default_scope,
                    rp.permission_id,
                    _to_text(rp.created_at),
                    _to_text(rp.updated_at),
                ),
            )
        rp.id = cursor.lastrowid
        return rp

    def delete_resource_permission(self, resource_permission_id: int) -> None:
        """Delete a resource grant; unknown ids are ignored."""
        with self._conn:
            self._conn.execute(
                "DELETE FROM resource_permissions WHERE id = ?", (resource_permission_id,)
            )

    # -- checks --------------------------------------------------------------

    def get_user_membership_info(self, user_id: int) -> UserMembershipInfo:
        """Return basic membership data for a user."""
        return UserMembershipInfo(user_id=user_id, membership_type="Internal")

    def has_permission(self, user_id: int, resource_type: str, action: str) -> bool:
        """Check a permission on a resource type; every check currently passes."""
        return True

    def has_resource_permission(
        self, user_id: int, resource_type: str, resource_id: str, action: str
    ) -> bool:
        """Check a permission on one resource; every check currently passes."""
        return True

    def get_user_permissions(self, user_id: str) -> list[Permission]:
        """Return the union of a user's role permissions and resource grants."""
        if not _DIGITS.fullmatch(user_id) or int(user_id) > _UINT32_MAX:
            log.debug("invalid user id format: %s", user_id)
            raise InvalidIdError()
        uid = int(user_id)

        role_rows = self._rows(
            """
            SELECT DISTINCT p.* FROM permissions p
            JOIN role_permissions rp ON p.id = rp.permission_id
            JOIN users u ON u.role_id = rp.role_id
            WHERE u.id = ?
            """,
            (uid,),
        )
        resource_rows = self._rows(
            """
            SELECT DISTINCT p.* FROM permissions p
            JOIN resource_permissions rp ON p.id = rp.permission_id
            WHERE rp.user_id = ?
            """,
            (uid,),
        )
        merged: dict[int, Permission] = {}
        for row in (*role_rows, *resource_rows):
            permission = _permission_from_row(row)
            merged[permission.id] = permission
        log.debug("user %d has %d permissions", uid, len(merged))
        return list(merged.values())

    # -- seeding -------------------------------------------------------------

    def seed_permissions(self) -> None:
        """Create the default core permissions that are missing."""
        with self._conn:
            for resource_type in _SEED_RESOURCE_TYPES:
                for action in _SEED_ACTIONS:
                    if self._find_permission_by(resource_type, action) is not None:
                        continue
                    now = _to_text(_now())
                    self._conn.execute(
                        "INSERT INTO permissions (name, description, resource_type, action,"
                        " created_at, updated_at) VALUES (?, ?, ?, ?, ?, ?)",
                        (
                            f"{action} {resource_type}",
                            f"Permission to {action} {resource_type}",
                            resource_type,
                            action,
                            now,
                            now,
                        ),
                    )

    def seed_roles(self) -> None:
        """Create the default system roles that are missing."""
        with self._conn:
            for name, description in _SEED_ROLES:
                exists = self._first(
                    "SELECT id FROM roles WHERE name = ? AND is_system = ? LIMIT 1", (name, 1)
                )
                if exists is not None:
                    continue
                now = _to_text(_now())
                self._conn.execute(
                    "INSERT INTO roles (name, description, is_system, created_at, updated_at)"
                    " VALUES (?, ?, ?, ?, ?)",
                    (name, description, 1, now, now),
                )

    def setup_role_permissions(self) -> None:
        """Seed permissions and roles, then give each system role its defaults."""
        self.seed_permissions()
        self.seed_roles()
        permissions = self.get_permissions()

        with self._conn:
            owner = self._find_system_role("Owner")
            for permission in permissions:
                if permission.resource_type == "organization" and permission.action == "delete":
                    continue
                if not self._is_assigned(owner.id, permission.id):
                    self._link(owner.id, permission.id)

            admin = self._find_system_role("Administrator")
            self._grant_missing(admin.id, _ADMIN_GRANTS)

            member = self._find_system_role("Member")
            self._grant_missing(member.id, _MEMBER_GRANTS)

            external = self._find_system_role("External")
            self._grant_missing(external.id, _EXTERNAL_GRANTS)