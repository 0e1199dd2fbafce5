"""
Notification repository (persistence).

In-app notifications live in the Supabase `notifications` table. This module
only inserts and lists rows; deciding when to notify, and making sure a failed
notification never breaks the caller, belongs to the notification service.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Any, List, Mapping, Optional
from uuid import uuid4

from domain.time import as_utc, utc_now

# Supabase table name for notifications.
# Keep this aligned with your database schema.
_NOTIFICATIONS_TABLE: str = "notifications"

TITLE_MAX_LENGTH = 120
BODY_MAX_LENGTH = 500


@dataclass(frozen=True, slots=True)
class NotificationRecord:
    notification_id: str
    user_id: str
    type: str
    title: str
    body: str
    created_at: datetime
    link_url: Optional[str] = None
    metadata: Optional[Mapping[str, Any]] = None
    read_at: Optional[datetime] = None


def _row_to_notification(row: Mapping[str, Any]) -> NotificationRecord:
    return NotificationRecord(
        notification_id=str(row["id"]),
        user_id=str(row["user_id"]),
        type=str(row["type"]),
        title=str(row["title"]),
        body=str(row["body"]),
        created_at=as_utc(row["created_at"]),
        link_url=row.get("link_url"),
        metadata=row.get("metadata"),
        read_at=as_utc(row["read_at"]) if row.get("read_at") else None,
    )


def insert_notification(
    client: Any,
    user_id: str,
    notification_type: str,
    title: str,
    body: str,
    link_url: Optional[str] = None,
    metadata: Optional[Mapping[str, Any]] = None,
) -> NotificationRecord:
    """
    Insert an in-app notification.

    Title and body are truncated to the column limits.

    Args:
        client: Supabase client (see repositories.client.get_supabase)

    Raises:
        RuntimeError: If Supabase reports an error.
    """

    now = utc_now()
    payload: dict[str, Any] = {
        "id": str(uuid4()),
        "user_id": user_id,
        "type": notification_type,
        "title": title[:TITLE_MAX_LENGTH],
        "body": body[:BODY_MAX_LENGTH],
        "link_url": link_url,
        "metadata": dict(metadata) if metadata is not None else None,
        "created_at": now.isoformat(),
    }

    response = client.table(_NOTIFICATIONS_TABLE).insert(payload).execute()
    error = getattr(response, "error", None)
    if error:
        raise RuntimeError(f"Failed to create notification: {error}")

    return _row_to_notification(payload)


def list_notifications(
    client: Any, user_id: str, unread_only: bool = False, limit: int = 20
) -> List[NotificationRecord]:
    """
    Most recent notifications for a user, newest first.

    Raises:
        RuntimeError: If Supabase reports an error.
    """

    query = (
        client.table(_NOTIFICATIONS_TABLE)
        .select("*")
        .eq("user_id", user_id)
        .is_("dismissed_at", "null")
    )
    if unread_only:
        query = query.is_("read_at", "null")

    response = query.order("created_at", desc=True).limit(limit).execute()
    error = getattr(response, "error", None)
    if error:
        raise RuntimeError(f"Failed to list notifications: {error}")

    rows = getattr(response, "data", None) or []
    return [_row_to_notification(row) for row in rows]


__all__ = [
    "NotificationRecord",
    "insert_notification",
    "list_notifications",
]
