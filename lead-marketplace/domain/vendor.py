"""
Domain: Vendor accounts.

Vendors are the buyers of the marketplace. Each carries a prepaid balance that
is spent on leads and topped up through deposits, refunds, adjustments and
feedback rewards.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from typing import Optional

from .time import require_utc_timestamp


@dataclass(frozen=True, slots=True)
class VendorAccount:
    """
    Vendor (buyer) account as seen by the purchase ledger.

    Invariants:
    - balance is never negative.
    - balance is a cached value; only the ledger paths write it, and every
      write is paired with a ledger entry.

    vendor_type is the category label (e.g. "Photographer") used to cap how
    many vendors of one category may buy the same lead. It may be None, in
    which case no category cap applies.
    """

    user_id: str
    email: str
    balance: Decimal
    vendor_type: Optional[str] = None
    business_name: Optional[str] = None
    is_admin: bool = False
    created_at: Optional[datetime] = None

    def __post_init__(self) -> None:
        if self.balance < 0:
            raise ValueError("balance must be >= 0")
        if self.created_at is not None:
            require_utc_timestamp("created_at", self.created_at)

    def can_afford(self, amount: Decimal) -> bool:
        """Display-only check; purchases decide affordability in storage."""
        return self.balance >= amount
