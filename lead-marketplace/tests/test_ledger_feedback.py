"""
Tests for `LeadLedger.submit_feedback`.

Covers contract rules:
- Feedback is validated before anything is written.
- Only purchasers may submit, and only once per lead.
- Each accepted submission credits exactly one FEEDBACK_REWARD entry,
  including under concurrent submissions.
"""

from __future__ import annotations

from concurrent.futures import ThreadPoolExecutor
from decimal import Decimal

import pytest

from domain.errors import AlreadySubmittedError, ForbiddenError, LedgerError, ValidationError
from domain.feedback import FeedbackInput
from domain.transaction import TransactionType

BOOKED = FeedbackInput(booked=True, lead_responsive="responsive", time_to_book="1 week", amount_charged="1500")


def _rewards(store, user_id):
    return [e for e in store.list_entries(user_id) if e.type is TransactionType.FEEDBACK_REWARD]


@pytest.fixture
def buyer(ledger, store, make_lead, make_vendor):
    make_lead("lead-1")
    vendor = make_vendor("20.00")
    ledger.purchase_lead(vendor, "lead-1")
    return store.get_vendor(vendor.user_id)


def test_feedback_credits_reward(ledger, store, buyer, notifier) -> None:
    receipt = ledger.submit_feedback(buyer, "lead-1", BOOKED)

    assert receipt.reward_amount == Decimal("2.00")
    assert receipt.new_balance == Decimal("2.00")
    assert receipt.feedback.booked is True
    assert receipt.feedback.amount_charged == Decimal("1500")
    assert store.get_vendor(buyer.user_id).balance == Decimal("2.00")

    rewards = _rewards(store, buyer.user_id)
    assert len(rewards) == 1
    assert rewards[0].balance_after == Decimal("2.00")
    assert rewards[0].metadata == {"lead_id": "lead-1", "feedback_id": receipt.feedback.feedback_id}
    assert "FEEDBACK_REWARD" in notifier.kinds()
    assert ledger.audit_vendor(buyer.user_id).ok


def test_booked_feedback_without_amount_rejected_before_write(ledger, store, buyer) -> None:
    bad = FeedbackInput(booked=True, lead_responsive="responsive", time_to_book="1 week")

    with pytest.raises(ValidationError) as exc_info:
        ledger.submit_feedback(buyer, "lead-1", bad)

    assert exc_info.value.details == {"field": "amountCharged"}
    assert _rewards(store, buyer.user_id) == []
    assert store.get_vendor(buyer.user_id).balance == Decimal("0.00")


def test_feedback_requires_purchase(ledger, store, make_lead, make_vendor) -> None:
    make_lead("lead-1")
    vendor = make_vendor("20.00")

    with pytest.raises(ForbiddenError):
        ledger.submit_feedback(vendor, "lead-1", BOOKED)

    assert store.get_vendor(vendor.user_id).balance == Decimal("20.00")


def test_second_feedback_rejected(ledger, store, buyer) -> None:
    ledger.submit_feedback(buyer, "lead-1", BOOKED)

    with pytest.raises(AlreadySubmittedError):
        ledger.submit_feedback(buyer, "lead-1", FeedbackInput(booked=False, lead_responsive="ghosted"))

    assert len(_rewards(store, buyer.user_id)) == 1
    assert store.get_vendor(buyer.user_id).balance == Decimal("2.00")


def test_concurrent_feedback_rewards_once(ledger, store, buyer) -> None:
    def submit(_):
        try:
            return ledger.submit_feedback(buyer, "lead-1", BOOKED)
        except LedgerError as exc:
            return exc

    with ThreadPoolExecutor(max_workers=6) as pool:
        results = list(pool.map(submit, range(6)))

    failures = [r for r in results if isinstance(r, LedgerError)]
    assert len(results) - len(failures) == 1
    assert all(isinstance(f, AlreadySubmittedError) for f in failures)
    assert len(_rewards(store, buyer.user_id)) == 1
    assert store.get_vendor(buyer.user_id).balance == Decimal("2.00")
