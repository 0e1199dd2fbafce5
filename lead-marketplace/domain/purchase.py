"""
Domain: Purchase events.

Rules captured here:
- A vendor may purchase a given lead at most once.
- Purchases are immutable once created; refunds are recorded as ledger
  entries, never by editing or deleting the purchase.

Eligibility decisions (status, category caps, funds) live in the ledger
service.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal

from .time import require_utc_timestamp


@dataclass(frozen=True, slots=True)
class Purchase:
    """Immutable record of one vendor buying one lead."""

    purchase_id: str
    user_id: str
    lead_id: str
    amount_paid: Decimal
    purchased_at: datetime

    def __post_init__(self) -> None:
        require_utc_timestamp("purchased_at", self.purchased_at)
        if self.amount_paid < 0:
            raise ValueError("amount_paid must be >= 0")
