"""
Tests for `LeadLedger.purchase_lead`.

Covers contract rules:
- A purchase debits the price, records the purchase and one PURCHASE entry,
  all in one transaction.
- Rejections (unknown lead, unavailable lead, category cap, duplicate,
  insufficient funds) write nothing.
- Under concurrency: one purchase per (vendor, lead), balances never go
  negative, and the category cap is never exceeded.
"""

from __future__ import annotations

from concurrent.futures import ThreadPoolExecutor
from decimal import Decimal

import pytest

from domain.errors import (
    AlreadyPurchasedError,
    InsufficientFundsError,
    LeadSoldError,
    LedgerError,
    NotFoundError,
    VendorTypeLimitReachedError,
)
from domain.lead import LeadStatus
from domain.transaction import TransactionType
from services.ledger_service import LeadLedger
from services.pricing_service import ListedPricing
from services.settings import LedgerSettings


def _attempt(ledger, vendor, lead_id):
    """Run a purchase and return the receipt or the ledger error."""
    try:
        return ledger.purchase_lead(vendor, lead_id)
    except LedgerError as exc:
        return exc


def _purchase_entries(store, user_id):
    return [e for e in store.list_entries(user_id) if e.type is TransactionType.PURCHASE]


def test_purchase_spends_exact_balance(ledger, store, make_lead, make_vendor, notifier) -> None:
    """20.00 balance, 20.00 price -> balance 0.00 and one -20.00 entry."""
    make_lead("lead-1")
    vendor = make_vendor("20.00")

    receipt = ledger.purchase_lead(vendor, "lead-1")

    assert receipt.new_balance == Decimal("0.00")
    assert receipt.purchase.amount_paid == Decimal("20.00")
    assert receipt.full_info == {"first_name": "Jane", "phone": "555-0100"}
    assert store.get_vendor(vendor.user_id).balance == Decimal("0.00")

    entries = _purchase_entries(store, vendor.user_id)
    assert len(entries) == 1
    assert entries[0].amount == Decimal("-20.00")
    assert entries[0].balance_after == Decimal("0.00")
    assert entries[0].metadata == {"lead_id": "lead-1", "purchase_id": receipt.purchase.purchase_id}
    assert receipt.entry == entries[0]

    assert "LEAD_PURCHASED" in notifier.kinds()


def test_purchase_leaves_lead_available(ledger, store, make_lead, make_vendor) -> None:
    make_lead("lead-1")
    ledger.purchase_lead(make_vendor("20.00"), "lead-1")

    assert store.get_lead("lead-1").status is LeadStatus.AVAILABLE


def test_insufficient_funds_writes_nothing(ledger, store, make_lead, make_vendor) -> None:
    """10.00 balance, 20.00 price -> INSUFFICIENT_FUNDS and no writes."""
    make_lead("lead-1")
    vendor = make_vendor("10.00")

    with pytest.raises(InsufficientFundsError) as exc_info:
        ledger.purchase_lead(vendor, "lead-1")

    assert exc_info.value.details == {"balance": "10.00", "required": "20.00"}
    assert store.get_vendor(vendor.user_id).balance == Decimal("10.00")
    assert store.list_purchases(vendor.user_id) == []
    assert _purchase_entries(store, vendor.user_id) == []


def test_unknown_lead_not_found(ledger, make_vendor) -> None:
    with pytest.raises(NotFoundError):
        ledger.purchase_lead(make_vendor("20.00"), "missing")


@pytest.mark.parametrize("status", [LeadStatus.SOLD, LeadStatus.EXPIRED])
def test_unavailable_lead_rejected(ledger, store, make_lead, make_vendor, status) -> None:
    make_lead("lead-1", status=status)
    vendor = make_vendor("20.00")

    with pytest.raises(LeadSoldError):
        ledger.purchase_lead(vendor, "lead-1")

    assert store.get_vendor(vendor.user_id).balance == Decimal("20.00")


def test_second_purchase_by_same_vendor_rejected(ledger, store, make_lead, make_vendor) -> None:
    make_lead("lead-1")
    vendor = make_vendor("40.00")

    ledger.purchase_lead(vendor, "lead-1")
    with pytest.raises(AlreadyPurchasedError):
        ledger.purchase_lead(vendor, "lead-1")

    assert store.get_vendor(vendor.user_id).balance == Decimal("20.00")
    assert len(_purchase_entries(store, vendor.user_id)) == 1


def test_vendor_type_cap(ledger, store, make_lead, make_vendor) -> None:
    """Five Photographers buy; the sixth is rejected while a Planner succeeds."""
    make_lead("lead-1")
    for _ in range(5):
        ledger.purchase_lead(make_vendor("20.00", vendor_type="Photographer"), "lead-1")

    sixth = make_vendor("20.00", vendor_type="Photographer")
    with pytest.raises(VendorTypeLimitReachedError) as exc_info:
        ledger.purchase_lead(sixth, "lead-1")
    assert "(5)" in exc_info.value.message
    assert store.get_vendor(sixth.user_id).balance == Decimal("20.00")

    planner = make_vendor("20.00", vendor_type="Planner")
    ledger.purchase_lead(planner, "lead-1")

    assert len(store.list_purchases_for_lead("lead-1")) == 6


def test_vendor_without_type_is_not_capped(store, notifier, make_lead, make_vendor) -> None:
    settings = LedgerSettings(vendor_type_purchase_limit=1)
    ledger = LeadLedger(store, ListedPricing(fallback=Decimal("20.00")), notifier, settings)
    make_lead("lead-1")

    for _ in range(3):
        ledger.purchase_lead(make_vendor("20.00"), "lead-1")

    assert len(store.list_purchases_for_lead("lead-1")) == 3


def test_listed_pricing_charges_lead_price(store, notifier, settings, make_lead, make_vendor) -> None:
    ledger = LeadLedger(store, ListedPricing(fallback=Decimal("20.00")), notifier, settings)
    make_lead("lead-1", price=Decimal("7.50"))
    vendor = make_vendor("20.00")

    receipt = ledger.purchase_lead(vendor, "lead-1")

    assert receipt.purchase.amount_paid == Decimal("7.50")
    assert receipt.new_balance == Decimal("12.50")


def test_fractional_deposits_cover_exact_price(store, notifier, settings, make_lead) -> None:
    """0.70 + 0.10 deposited, 0.80 price -> purchase succeeds with 0.00 left."""
    ledger = LeadLedger(store, ListedPricing(fallback=Decimal("20.00")), notifier, settings)
    make_lead("lead-1", price=Decimal("0.80"))
    vendor = store.add_vendor("cents@example.com")
    ledger.deposit(vendor.user_id, Decimal("0.70"), "pay-1")
    ledger.deposit(vendor.user_id, Decimal("0.10"), "pay-2")
    assert store.get_vendor(vendor.user_id).balance == Decimal("0.80")

    receipt = ledger.purchase_lead(store.get_vendor(vendor.user_id), "lead-1")

    assert receipt.new_balance == Decimal("0.00")
    assert store.get_vendor(vendor.user_id).balance == Decimal("0.00")
    audit = ledger.audit_vendor(vendor.user_id)
    assert audit.ok
    assert audit.replayed_balance == Decimal("0.00")


def test_notifier_failure_does_not_fail_purchase(store, settings, make_lead, make_vendor) -> None:
    class BrokenNotifier:
        def notify(self, *args, **kwargs):
            raise RuntimeError("notification backend down")

    ledger = LeadLedger(store, ListedPricing(fallback=Decimal("20.00")), BrokenNotifier(), settings)
    make_lead("lead-1")
    vendor = store.add_vendor("v@example.com")
    ledger.deposit(vendor.user_id, Decimal("20.00"), "pay-1")

    receipt = ledger.purchase_lead(store.get_vendor(vendor.user_id), "lead-1")

    assert receipt.new_balance == Decimal("0.00")
    assert len(store.list_purchases(vendor.user_id)) == 1


def test_ledger_consistent_after_mixed_activity(ledger, make_lead, make_vendor) -> None:
    for i in range(3):
        make_lead(f"lead-{i}")
    vendor = make_vendor("50.00")

    results = [_attempt(ledger, vendor, f"lead-{i}") for i in range(3)]

    assert isinstance(results[2], InsufficientFundsError)
    audit = ledger.audit_vendor(vendor.user_id)
    assert audit.ok
    assert audit.cached_balance == Decimal("10.00")


# -- concurrency -------------------------------------------------------------


def test_concurrent_same_pair_purchase_succeeds_once(ledger, store, make_lead, make_vendor) -> None:
    make_lead("lead-1")
    vendor = make_vendor("100.00")

    with ThreadPoolExecutor(max_workers=8) as pool:
        results = list(pool.map(lambda _: _attempt(ledger, vendor, "lead-1"), range(8)))

    successes = [r for r in results if not isinstance(r, LedgerError)]
    failures = [r for r in results if isinstance(r, LedgerError)]
    assert len(successes) == 1
    assert all(isinstance(f, AlreadyPurchasedError) for f in failures)
    assert store.get_vendor(vendor.user_id).balance == Decimal("80.00")
    assert len(_purchase_entries(store, vendor.user_id)) == 1


def test_concurrent_purchases_never_overdraw(ledger, store, make_lead, make_vendor) -> None:
    """Funds for 3 leads, 10 concurrent purchases of different leads."""
    for i in range(10):
        make_lead(f"lead-{i}")
    vendor = make_vendor("60.00")

    with ThreadPoolExecutor(max_workers=10) as pool:
        results = list(pool.map(lambda i: _attempt(ledger, vendor, f"lead-{i}"), range(10)))

    successes = [r for r in results if not isinstance(r, LedgerError)]
    failures = [r for r in results if isinstance(r, LedgerError)]
    assert len(successes) == 3
    assert all(isinstance(f, InsufficientFundsError) for f in failures)
    assert store.get_vendor(vendor.user_id).balance == Decimal("0.00")
    assert ledger.audit_vendor(vendor.user_id).ok


def test_concurrent_vendor_type_cap_holds(ledger, store, make_lead, make_vendor) -> None:
    make_lead("lead-1")
    vendors = [make_vendor("20.00", vendor_type="Photographer") for _ in range(8)]

    with ThreadPoolExecutor(max_workers=8) as pool:
        results = list(pool.map(lambda v: _attempt(ledger, v, "lead-1"), vendors))

    successes = [r for r in results if not isinstance(r, LedgerError)]
    failures = [r for r in results if isinstance(r, LedgerError)]
    assert len(successes) == 5
    assert len(failures) == 3
    assert all(isinstance(f, VendorTypeLimitReachedError) for f in failures)
    assert len(store.list_purchases_for_lead("lead-1")) == 5
