"""
Domain: Dynamic lead tags.

NEW and HOT labels depend on time, so they are derived on read rather than
stored:

- NEW: the lead was created within the last 3 days, or this vendor purchased
  it within the last 7 days. A stored NEW tag is dropped when neither holds.
- HOT: the lead's client responded within the last 10 days.

All timestamps must be passed explicitly; no implicit 'now' is used.
"""

from __future__ import annotations

from datetime import datetime, timedelta
from typing import Iterable, Optional, Tuple

from .time import require_utc_timestamp

NEW_TAG = "NEW"
HOT_TAG = "HOT"

NEW_LEAD_WINDOW = timedelta(days=3)
NEW_PURCHASE_WINDOW = timedelta(days=7)
HOT_RESPONSE_WINDOW = timedelta(days=10)


def compute_dynamic_tags(
    stored_tags: Iterable[str],
    *,
    created_at: datetime,
    now: datetime,
    last_client_response: Optional[datetime] = None,
    purchased_at: Optional[datetime] = None,
) -> Tuple[str, ...]:
    """
    Return the tags to display for a lead.

    Stored tags keep their order; NEW and HOT are appended when they apply.
    The input iterable is never modified.
    """

    require_utc_timestamp("created_at", created_at)
    require_utc_timestamp("now", now)

    is_newly_created = created_at >= now - NEW_LEAD_WINDOW
    is_newly_purchased = False
    if purchased_at is not None:
        require_utc_timestamp("purchased_at", purchased_at)
        is_newly_purchased = purchased_at >= now - NEW_PURCHASE_WINDOW

    tags = [tag for tag in stored_tags if tag != NEW_TAG]
    if is_newly_created or is_newly_purchased:
        tags.append(NEW_TAG)

    if last_client_response is not None and HOT_TAG not in tags:
        require_utc_timestamp("last_client_response", last_client_response)
        if last_client_response >= now - HOT_RESPONSE_WINDOW:
            tags.append(HOT_TAG)

    return tuple(tags)
