"""
Pricing service for lead purchases.

Decides how much a vendor is charged for a lead. The marketplace charges a
single flat price per lead by default; the "listed" mode charges the price
stored on the lead instead.
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from typing import Protocol

from domain.lead import Lead
from services.settings import LedgerSettings

CENT = Decimal("0.01")


class PricingPolicy(Protocol):
    def price_for(self, lead: Lead) -> Decimal:
        """Amount to charge for purchasing `lead`."""
        ...


@dataclass(frozen=True, slots=True)
class FlatPricing:
    """
    Every lead costs the same configured amount.

    Example:
        FlatPricing(Decimal("20.00")).price_for(lead)
        # Returns Decimal('20.00') regardless of lead.price
    """

    price: Decimal

    def __post_init__(self) -> None:
        if self.price <= 0:
            raise ValueError("flat price must be positive")

    def price_for(self, lead: Lead) -> Decimal:
        return self.price.quantize(CENT)


@dataclass(frozen=True, slots=True)
class ListedPricing:
    """
    Charge the lead's own listed price.

    Leads imported without a usable price (missing, zero or negative) fall
    back to the flat price.
    """

    fallback: Decimal

    def price_for(self, lead: Lead) -> Decimal:
        if lead.price is not None and lead.price > 0:
            return lead.price.quantize(CENT)
        return self.fallback.quantize(CENT)


def pricing_from_settings(settings: LedgerSettings) -> PricingPolicy:
    if settings.pricing_mode == "listed":
        return ListedPricing(fallback=settings.lead_price)
    return FlatPricing(price=settings.lead_price)


__all__ = [
    "PricingPolicy",
    "FlatPricing",
    "ListedPricing",
    "pricing_from_settings",
]
