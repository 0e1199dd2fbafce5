"""
Tests for deposits, refunds, admin adjustments and audits on `LeadLedger`.

Covers contract rules:
- Every balance change writes exactly one ledger entry.
- Deposits and refunds are idempotent on their keys.
- Negative adjustments cannot overdraw a balance.
- Audits detect a cached balance that the ledger does not explain.
"""

from __future__ import annotations

from decimal import Decimal

import pytest
from sqlalchemy import update

from domain.errors import InsufficientFundsError, NotFoundError, ValidationError
from domain.transaction import TransactionType
from repositories.tables import VendorRow


def test_deposit_credits_balance(ledger, store, make_vendor, notifier) -> None:
    vendor = make_vendor()

    change = ledger.deposit(vendor.user_id, Decimal("100.00"), "pay-1")

    assert change.new_balance == Decimal("100.00")
    assert not change.already_processed
    assert change.entry.type is TransactionType.DEPOSIT
    assert change.entry.idempotency_key == "pay-1"
    assert store.get_vendor(vendor.user_id).balance == Decimal("100.00")
    assert "DEPOSIT" in notifier.kinds()


def test_repeated_deposit_is_not_credited_twice(ledger, store, make_vendor) -> None:
    vendor = make_vendor()

    first = ledger.deposit(vendor.user_id, Decimal("100.00"), "pay-1")
    second = ledger.deposit(vendor.user_id, Decimal("100.00"), "pay-1")

    assert second.already_processed
    assert second.entry.entry_id == first.entry.entry_id
    assert second.new_balance == Decimal("100.00")
    assert len(store.list_entries(vendor.user_id)) == 1


@pytest.mark.parametrize("amount, reference", [("0", "pay-1"), ("-5", "pay-1"), ("10", " ")])
def test_deposit_validation(ledger, make_vendor, amount, reference) -> None:
    vendor = make_vendor()

    with pytest.raises(ValidationError):
        ledger.deposit(vendor.user_id, Decimal(amount), reference)


def test_deposit_unknown_vendor(ledger) -> None:
    with pytest.raises(NotFoundError):
        ledger.deposit("missing", Decimal("10.00"), "pay-1")


def test_refund_returns_amount_paid_once(ledger, store, make_lead, make_vendor) -> None:
    make_lead("lead-1")
    vendor = make_vendor("20.00")
    receipt = ledger.purchase_lead(vendor, "lead-1")

    refund = ledger.refund_purchase(receipt.purchase.purchase_id, "Lead was a duplicate", admin_id="admin-1")
    again = ledger.refund_purchase(receipt.purchase.purchase_id, "Lead was a duplicate", admin_id="admin-1")

    assert refund.new_balance == Decimal("20.00")
    assert refund.entry.type is TransactionType.REFUND
    assert refund.entry.amount == Decimal("20.00")
    assert refund.entry.metadata["admin_id"] == "admin-1"
    assert again.already_processed
    assert store.get_vendor(vendor.user_id).balance == Decimal("20.00")
    # The purchase itself is kept.
    assert len(store.list_purchases(vendor.user_id)) == 1
    assert ledger.audit_vendor(vendor.user_id).ok


def test_refund_unknown_purchase(ledger) -> None:
    with pytest.raises(NotFoundError):
        ledger.refund_purchase("missing", "reason")


def test_refund_requires_reason(ledger) -> None:
    with pytest.raises(ValidationError):
        ledger.refund_purchase("missing", "  ")


def test_positive_adjustment(ledger, store, make_vendor) -> None:
    vendor = make_vendor("10.00")

    change = ledger.adjust_balance(vendor.user_id, Decimal("5.00"), "Goodwill credit", "admin-1")

    assert change.new_balance == Decimal("15.00")
    assert change.entry.type is TransactionType.ADJUSTMENT
    assert change.entry.metadata == {"reason": "Goodwill credit", "admin_id": "admin-1"}


def test_negative_adjustment(ledger, store, make_vendor) -> None:
    vendor = make_vendor("10.00")

    change = ledger.adjust_balance(vendor.user_id, Decimal("-4.50"), "Correction", "admin-1")

    assert change.new_balance == Decimal("5.50")
    assert change.entry.amount == Decimal("-4.50")
    assert ledger.audit_vendor(vendor.user_id).ok


def test_negative_adjustment_cannot_overdraw(ledger, store, make_vendor) -> None:
    vendor = make_vendor("10.00")

    with pytest.raises(InsufficientFundsError):
        ledger.adjust_balance(vendor.user_id, Decimal("-10.50"), "Correction", "admin-1")

    assert store.get_vendor(vendor.user_id).balance == Decimal("10.00")
    assert len(store.list_entries(vendor.user_id)) == 1


@pytest.mark.parametrize("amount, reason", [("0", "Correction"), ("5", ""), ("5", "   ")])
def test_adjustment_validation(ledger, make_vendor, amount, reason) -> None:
    vendor = make_vendor()

    with pytest.raises(ValidationError):
        ledger.adjust_balance(vendor.user_id, Decimal(amount), reason, "admin-1")


def test_audit_detects_untracked_balance_change(ledger, engine, store, make_vendor) -> None:
    vendor = make_vendor("10.00")

    with engine.begin() as conn:
        conn.execute(update(VendorRow).where(VendorRow.id == vendor.user_id).values(balance=Decimal("99.00")))

    audit = ledger.audit_vendor(vendor.user_id)

    assert not audit.ok
    assert audit.replayed_balance == Decimal("10.00")
    assert audit.cached_balance == Decimal("99.00")


def test_audit_unknown_vendor(ledger) -> None:
    with pytest.raises(NotFoundError):
        ledger.audit_vendor("missing")
