"""
Tests for `domain/lead.py`, `domain/vendor.py` and `domain/purchase.py`.

Covers contract rules:
- Timestamps must be UTC.
- Only AVAILABLE leads are purchasable.
- Entities are immutable.
- Vendor balances and amounts paid are never negative.
"""

from __future__ import annotations

from dataclasses import FrozenInstanceError
from datetime import datetime, timedelta, timezone
from decimal import Decimal

import pytest

from domain.lead import Lead, LeadStatus
from domain.purchase import Purchase
from domain.vendor import VendorAccount

T0 = datetime(2025, 1, 1, tzinfo=timezone.utc)


def _lead(**overrides) -> Lead:
    fields = dict(
        lead_id="lead-1",
        status=LeadStatus.AVAILABLE,
        price=Decimal("20.00"),
        active=True,
        created_at=T0,
    )
    fields.update(overrides)
    return Lead(**fields)


def test_lead_created_at_must_be_utc() -> None:
    with pytest.raises(ValueError):
        _lead(created_at=datetime(2025, 1, 1))

    with pytest.raises(ValueError):
        _lead(created_at=datetime(2025, 1, 1, tzinfo=timezone(timedelta(hours=-5))))


def test_lead_id_required() -> None:
    with pytest.raises(ValueError):
        _lead(lead_id="")


@pytest.mark.parametrize(
    "status, purchasable",
    [(LeadStatus.AVAILABLE, True), (LeadStatus.SOLD, False), (LeadStatus.EXPIRED, False)],
)
def test_only_available_leads_are_purchasable(status: LeadStatus, purchasable: bool) -> None:
    assert _lead(status=status).is_purchasable() is purchasable


def test_lead_is_immutable() -> None:
    lead = _lead()
    with pytest.raises(FrozenInstanceError):
        lead.status = LeadStatus.SOLD  # type: ignore[misc]


def test_vendor_balance_never_negative() -> None:
    with pytest.raises(ValueError):
        VendorAccount(user_id="v1", email="v1@example.com", balance=Decimal("-0.01"))


def test_vendor_can_afford() -> None:
    vendor = VendorAccount(user_id="v1", email="v1@example.com", balance=Decimal("20.00"))
    assert vendor.can_afford(Decimal("20.00"))
    assert not vendor.can_afford(Decimal("20.01"))


def test_purchase_requires_utc_and_non_negative_amount() -> None:
    with pytest.raises(ValueError):
        Purchase("p1", "v1", "lead-1", Decimal("20.00"), datetime(2025, 1, 1))

    with pytest.raises(ValueError):
        Purchase("p1", "v1", "lead-1", Decimal("-1.00"), T0)
