"""Authorization module: schema migration and default role/permission seeding."""

from __future__ import annotations

import logging
import sqlite3
from datetime import datetime, timezone
from typing import Optional

from corekit.authorization.models import (
    Permission,
    ResourceAccess,
    ResourcePermission,
    Role,
    RolePermission,
    create_schema,
)
from corekit.authorization.service import AuthorizationService

log = logging.getLogger(__name__)

_DEFAULT_ROLES = (
    ("Super Admin", "Full system access with all permissions"),
    ("Administrator", "System administration and user management"),
    ("Manager", "Team management and oversight"),
    ("Employee", "Standard employee access"),
    ("Viewer", "Read-only access"),
)

_RESOURCE_TYPES = (
    "user",
    "authorization",
    "role",
    "permission",
    "media",
    "profile",
    "settings",
    "post",
    "notification",
    "activity",
)

_ACTIONS = (
    "create",
    "read",
    "update",
    "delete",
    "list",
    "list_all",
    "activate",
    "deactivate",
)

_SPECIAL_PERMISSIONS = (
    ("Manage Roles", "Create, update, and delete roles", "role", "manage"),
    ("Assign Permissions", "Assign permissions to roles", "permission", "assign"),
)

_ADMIN_GRANTS = (
    "user:create", "user:read", "user:update", "user:delete", "user:list",
    "user:manage_members",
    "authorization:create", "authorization:read", "authorization:update",
    "authorization:delete", "authorization:list",
    "media:create", "media:read", "media:update", "media:delete", "media:list",
    "profile:create", "profile:read", "profile:update", "profile:delete", "profile:list",
    "role:create", "role:read", "role:update", "role:delete", "role:list",
    "permission:create", "permission:read", "permission:update", "permission:delete",
    "permission:list",
    "resource_permission:create", "resource_permission:read",
    "resource_permission:update", "resource_permission:delete",
    "resource_permission:list",
)

_READ_ONLY_GRANTS = (
    "user:read", "user:list",
    "authorization:read", "authorization:list",
    "media:read", "media:list",
    "profile:read", "profile:list",
    "role:read", "role:list",
    "permission:read", "permission:list",
    "resource_permission:read", "resource_permission:list",
)


def _now_text() -> str:
    return datetime.now(timezone.utc).isoformat()


def _default_permissions() -> list[tuple[str, str, str, str]]:
    permissions = [
        (
            f"{resource_type} {action}",
            f"Allows {action} operations on {resource_type}",
            resource_type,
            action,
        )
        for resource_type in _RESOURCE_TYPES
        for action in _ACTIONS
    ]
    permissions.extend(_SPECIAL_PERMISSIONS)
    return permissions


class AuthorizationModule:
    """Owns the authorization tables and the service that works on them."""

    def __init__(self, conn: sqlite3.Connection) -> None:
        self.conn = conn
        self.service = AuthorizationService(conn)

    def migrate(self) -> None:
        """Create the tables and seed the default roles and permissions."""
        create_schema(self.conn)
        try:
            self._seed_default_data()
        except sqlite3.Error:
            log.exception("failed to seed authorization data")
            raise

    def get_models(self) -> list[type]:
        """Return the model classes this module manages."""
        return [Role, Permission, RolePermission, ResourcePermission, ResourceAccess]

    # -- seeding -------------------------------------------------------------

    def _system_role_id(self, name: str) -> Optional[int]:
        row = self.conn.execute(
            "SELECT id FROM roles WHERE name = ? AND is_system = ? LIMIT 1", (name, 1)
        ).fetchone()
        return row[0] if row is not None else None

    def _permission_id(self, resource_type: str, action: str) -> Optional[int]:
        row = self.conn.execute(
            "SELECT id FROM permissions WHERE resource_type = ? AND action = ? LIMIT 1",
            (resource_type, action),
        ).fetchone()
        return row[0] if row is not None else None

    def _link_if_missing(self, role_id: int, permission_id: int) -> None:
        exists = self.conn.execute(
            "SELECT 1 FROM role_permissions WHERE role_id = ? AND permission_id = ? LIMIT 1",
            (role_id, permission_id),
        ).fetchone()
        if exists is None:
            self.conn.execute(
                "INSERT INTO role_permissions (role_id, permission_id, created_at)"
                " VALUES (?, ?, ?)",
                (role_id, permission_id, _now_text()),
            )

    def _grant(self, role_name: str, grants: tuple[str, ...]) -> None:
        role_id = self._system_role_id(role_name)
        if role_id is None:
            return
        for grant in grants:
            parts = grant.split(":")
            if len(parts) != 2:
                continue
            permission_id = self._permission_id(parts[0], parts[1])
            if permission_id is None:
                continue
            self._link_if_missing(role_id, permission_id)

    def _seed_default_data(self) -> None:
        with self.conn:
            for name, description in _DEFAULT_ROLES:
                if self._system_role_id(name) is None:
                    now = _now_text()
                    self.conn.execute(
                        "INSERT INTO roles (name, description, is_system, created_at,"
                        " updated_at) VALUES (?, ?, ?, ?, ?)",
                        (name, description, 1, now, now),
                    )

            for name, description, resource_type, action in _default_permissions():
                if self._permission_id(resource_type, action) is None:
                    now = _now_text()
                    self.conn.execute(
                        "INSERT INTO permissions (name, description, resource_type, action,"
                        " created_at, updated_at) VALUES (?, ?, ?, ?, ?, ?)",
                        (name, description, resource_type, action, now, now),
                    )

            super_admin_id = self._system_role_id("Super Admin")
            if super_admin_id is not None:
                permission_ids = [
                    row[0] for row in self.conn.execute("SELECT id FROM permissions")
                ]
                for permission_id in permission_ids:
                    self._link_if_missing(super_admin_id, permission_id)

            self._grant("Administrator", _ADMIN_GRANTS)
            self._grant("Member", _READ_ONLY_GRANTS)
            self._grant("Viewer", _READ_ONLY_GRANTS)