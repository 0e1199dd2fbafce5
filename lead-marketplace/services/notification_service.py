"""
Notification service.

Outbound, fire-and-forget messages about ledger activity. The ledger calls
`notify_safely()` after its transaction has committed; whatever happens here
is logged and never turned into an operation failure.
"""

from __future__ import annotations

import logging
from typing import Any, Callable, Mapping, Optional, Protocol

from repositories.notification_repository import insert_notification

logger = logging.getLogger(__name__)


class Notifier(Protocol):
    def notify(
        self,
        user_id: str,
        kind: str,
        title: str,
        body: str,
        metadata: Optional[Mapping[str, Any]] = None,
    ) -> None:
        ...


class NullNotifier:
    """Used when no notification backend is configured."""

    def notify(
        self,
        user_id: str,
        kind: str,
        title: str,
        body: str,
        metadata: Optional[Mapping[str, Any]] = None,
    ) -> None:
        logger.debug("Notification dropped (no backend): %s for %s", kind, user_id)


class SupabaseNotifier:
    """
    Writes in-app notifications to the Supabase `notifications` table.

    The client is resolved lazily through `client_factory` so constructing the
    notifier never requires credentials.
    """

    def __init__(self, client_factory: Callable[[], Any]) -> None:
        self._client_factory = client_factory

    def notify(
        self,
        user_id: str,
        kind: str,
        title: str,
        body: str,
        metadata: Optional[Mapping[str, Any]] = None,
    ) -> None:
        insert_notification(
            self._client_factory(),
            user_id=user_id,
            notification_type=kind,
            title=title,
            body=body,
            metadata=metadata,
        )


def notify_safely(
    notifier: Notifier,
    user_id: str,
    kind: str,
    title: str,
    body: str,
    metadata: Optional[Mapping[str, Any]] = None,
) -> bool:
    """
    Send a notification, swallowing and logging any failure.

    Returns:
        True if the notifier returned normally, False if it raised.
    """

    try:
        notifier.notify(user_id, kind, title, body, metadata)
    except Exception:
        logger.warning(
            "Failed to send notification",
            exc_info=True,
            extra={"user_id": user_id, "kind": kind},
        )
        return False
    return True


__all__ = ["Notifier", "NullNotifier", "SupabaseNotifier", "notify_safely"]
