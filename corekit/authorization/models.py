"""Roles, permissions and resource grants for the authorization module."""

from __future__ import annotations

import sqlite3
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Any, Optional


class AuthorizationError(Exception):
    """Base class for authorization failures."""

    message = "authorization error"

    def __init__(self, message: Optional[str] = None) -> None:
        super().__init__(message or self.message)


class RoleNotFoundError(AuthorizationError):
    message = "role not found"


class PermissionNotFoundError(AuthorizationError):
    message = "permission not found"


class InvalidIdError(AuthorizationError):
    message = "invalid id"


class SystemRoleUnmodifiableError(AuthorizationError):
    message = "system role unmodifiable"


class DuplicatePermissionError(AuthorizationError):
    message = "duplicate permission"


class Action(str, Enum):
    """Well-known permission actions."""

    CREATE = "create"
    READ = "read"
    UPDATE = "update"
    DELETE = "delete"
    LIST = "list"
    ASSIGN = "assign"
    MANAGE_ROLE = "manage_role"


class AccessScope(str, Enum):
    """Scope of a resource grant."""

    OWN = "own"
    TEAM = "team"
    ALL = "all"


def _iso(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat() if value is not None else None


@dataclass
class Role:
    """A named set of permissions."""

    TABLE = "roles"

    id: int = 0
    name: str = ""
    description: str = ""
    is_system: bool = False
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    permission_count: int = 0

    def to_response(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "description": self.description,
            "is_system": self.is_system,
            "created_at": _iso(self.created_at),
            "updated_at": _iso(self.updated_at),
            "permission_count": self.permission_count,
        }


@dataclass
class Permission:
    """An action that can be performed on a resource type."""

    TABLE = "permissions"

    id: int = 0
    name: str = ""
    description: str = ""
    resource_type: str = ""
    action: str = ""
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    def to_response(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "description": self.description,
            "resource_type": self.resource_type,
            "action": self.action,
            "created_at": _iso(self.created_at),
            "updated_at": _iso(self.updated_at),
        }


@dataclass
class RolePermission:
    """Link between a role and a permission."""

    TABLE = "role_permissions"

    id: int = 0
    role_id: int = 0
    permission_id: int = 0
    created_at: Optional[datetime] = None

    def to_response(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "role_id": self.role_id,
            "permission_id": self.permission_id,
            "created_at": _iso(self.created_at),
        }


@dataclass
class ResourcePermission:
    """Grant on a resource type or on one specific resource."""

    TABLE = "resource_permissions"

    id: int = 0
    resource_type: str = ""
    resource_id: str = ""
    user_id: int = 0
    role_id: str = ""
    action: str = ""
    default_scope: str = ""
    permission_id: int = 0
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    def to_response(self) -> dict[str, Any]:
        response: dict[str, Any] = {
            "id": self.id,
            "resource_type": self.resource_type,
        }
        optional = {
            "resource_id": self.resource_id,
            "user_id": self.user_id,
            "role_id": self.role_id,
            "action": self.action,
            "default_scope": self.default_scope,
            "permission_id": self.permission_id,
        }
        response.update({key: value for key, value in optional.items() if value})
        response["created_at"] = _iso(self.created_at)
        response["updated_at"] = _iso(self.updated_at)
        return response


@dataclass
class ResourceAccess:
    """Fine-grained access of a member to a specific resource."""

    TABLE = "resource_access"

    id: int = 0
    role_id: str = ""
    member_id: int = 0
    resource_type: str = ""
    resource_id: str = ""
    access_type: str = ""
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    def to_response(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "role_id": self.role_id,
            "member_id": self.member_id,
            "resource_type": self.resource_type,
            "resource_id": self.resource_id,
            "access_type": self.access_type,
            "created_at": _iso(self.created_at),
            "updated_at": _iso(self.updated_at),
        }


@dataclass
class UserMembershipInfo:
    """Membership details of a user."""

    user_id: int = 0
    member_id: int = 0
    role_id: int = 0
    is_owner: bool = False
    department: str = ""
    membership_type: str = ""


_SCHEMA = """
CREATE TABLE IF NOT EXISTS roles (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    name TEXT NOT NULL,
    description TEXT NOT NULL DEFAULT '',
    is_system INTEGER NOT NULL DEFAULT 0,
    created_at TEXT,
    updated_at TEXT,
    permission_count INTEGER NOT NULL DEFAULT 0
);
CREATE TABLE IF NOT EXISTS permissions (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    name TEXT NOT NULL,
    description TEXT NOT NULL DEFAULT '',
    resource_type TEXT NOT NULL,
    action TEXT NOT NULL,
    created_at TEXT,
    updated_at TEXT
);
CREATE TABLE IF NOT EXISTS role_permissions (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    role_id INTEGER NOT NULL,
    permission_id INTEGER NOT NULL,
    created_at TEXT
);
CREATE INDEX IF NOT EXISTS idx_role_permissions_role_id ON role_permissions (role_id);
CREATE INDEX IF NOT EXISTS idx_role_permissions_permission_id
    ON role_permissions (permission_id);
CREATE TABLE IF NOT EXISTS resource_permissions (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    resource_type TEXT NOT NULL,
    resource_id TEXT NOT NULL DEFAULT '',
    user_id INTEGER NOT NULL DEFAULT 0,
    role_id TEXT NOT NULL DEFAULT '',
    action TEXT NOT NULL DEFAULT '',
    default_scope TEXT NOT NULL DEFAULT '',
    permission_id INTEGER NOT NULL DEFAULT 0,
    created_at TEXT,
    updated_at TEXT
);
CREATE INDEX IF NOT EXISTS idx_resource_permissions_role_id
    ON resource_permissions (role_id);
CREATE INDEX IF NOT EXISTS idx_resource_permissions_permission_id
    ON resource_permissions (permission_id);
CREATE TABLE IF NOT EXISTS resource_access (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    role_id TEXT NOT NULL,
    member_id INTEGER NOT NULL,
    resource_type TEXT NOT NULL,
    resource_id TEXT NOT NULL,
    access_type TEXT NOT NULL,
    created_at TEXT,
    updated_at TEXT
);
CREATE INDEX IF NOT EXISTS idx_resource_access_role_id ON resource_access (role_id);
CREATE INDEX IF NOT EXISTS idx_resource_access_member_id ON resource_access (member_id);
"""


def create_schema(conn: sqlite3.Connection) -> None:
    """Create the authorization tables if they do not exist yet."""
    conn.executescript(_SCHEMA)
    conn.commit()