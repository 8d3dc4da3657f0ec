"""Notification entity and request payloads."""

from __future__ import annotations

import sqlite3
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Optional


def _iso(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat() if value is not None else None


@dataclass
class Notification:
    """A message addressed to a user."""

    TABLE = "notifications"
    MODEL_NAME = "notification"

    id: int = 0
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    deleted_at: Optional[datetime] = None
    user_id: int = 0
    title: str = ""
    body: str = ""
    type: str = ""
    read: bool = False
    read_at: Optional[datetime] = None
    action_url: str = ""

    def to_response(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "created_at": _iso(self.created_at),
            "updated_at": _iso(self.updated_at),
            "deleted_at": _iso(self.deleted_at),
            "user_id": self.user_id,
            "title": self.title,
            "body": self.body,
            "type": self.type,
            "read": self.read,
            "read_at": _iso(self.read_at),
            "action_url": self.action_url,
        }

    def to_model_response(self) -> dict[str, Any]:
        return {"id": self.id, "title": self.title}

    def to_select_option(self) -> dict[str, Any]:
        return {"id": self.id, "name": self.title}

    def to_list_response(self) -> dict[str, Any]:
        return self.to_response()


@dataclass
class CreateNotificationRequest:
    """Payload for creating a notification."""

    user_id: int = 0
    title: str = ""
    body: str = ""
    type: str = ""
    read: bool = False
    read_at: Optional[datetime] = None
    action_url: str = ""


@dataclass
class UpdateNotificationRequest:
    """Payload for updating a notification; empty fields are left unchanged."""

    user_id: int = 0
    title: str = ""
    body: str = ""
    type: str = ""
    read: Optional[bool] = None
    read_at: Optional[datetime] = None
    action_url: str = ""


_SCHEMA = """
CREATE TABLE IF NOT EXISTS notifications (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    created_at TEXT,
    updated_at TEXT,
    deleted_at TEXT,
    user_id INTEGER NOT NULL DEFAULT 0,
    title TEXT NOT NULL DEFAULT '',
    body TEXT NOT NULL DEFAULT '',
    type TEXT NOT NULL DEFAULT '',
    read INTEGER NOT NULL DEFAULT 0,
    read_at TEXT,
    action_url TEXT NOT NULL DEFAULT ''
);
CREATE INDEX IF NOT EXISTS idx_notifications_deleted_at ON notifications (deleted_at);
"""


def create_schema(conn: sqlite3.Connection) -> None:
    """Create the notifications table if it does not exist yet."""
    conn.executescript(_SCHEMA)
    conn.commit()