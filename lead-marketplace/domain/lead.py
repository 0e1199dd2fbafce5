"""
Domain: Lead entity.

A Lead is a prospective client record that vendor accounts pay to unlock.

Rules implemented here:
- A Lead is identified by an opaque string key (lead_id).
- Only AVAILABLE leads may be purchased. EXPIRED is terminal.
- A purchase does NOT move the lead to SOLD: the same lead may be sold to
  several vendor categories, each capped separately by the purchase ledger.
- Contact details are split into a masked view (shown before purchase) and the
  full view (unlocked by a purchase).
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Any, Mapping, Optional, Tuple

from .time import require_utc_timestamp


class LeadStatus(str, Enum):
    AVAILABLE = "AVAILABLE"
    SOLD = "SOLD"
    EXPIRED = "EXPIRED"


@dataclass(frozen=True, slots=True)
class Lead:
    """
    Pure domain entity for a Lead.

    Notes:
    - `price` is the listed price stored with the lead. What a vendor is
      actually charged is decided by the pricing policy, which by default is
      a flat configured price.
    - `tags` are the stored tags only; NEW/HOT labels are derived on read by
      `domain.tags.compute_dynamic_tags`.
    """

    lead_id: str
    status: LeadStatus
    price: Decimal
    active: bool
    created_at: datetime
    masked_info: Mapping[str, Any] = field(default_factory=dict)
    full_info: Mapping[str, Any] = field(default_factory=dict)
    tags: Tuple[str, ...] = ()
    last_client_response: Optional[datetime] = None

    def __post_init__(self) -> None:
        if not self.lead_id:
            raise ValueError("lead_id must be a non-empty string")
        require_utc_timestamp("created_at", self.created_at)
        if self.last_client_response is not None:
            require_utc_timestamp("last_client_response", self.last_client_response)

    def is_purchasable(self) -> bool:
        """True while the lead can still be bought by some vendor category."""
        return self.status == LeadStatus.AVAILABLE
