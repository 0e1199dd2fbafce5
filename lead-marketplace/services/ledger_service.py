"""
Ledger service: every operation that moves money on a vendor balance.

Handles:
- Lead purchases (row lock on the lead + conditional balance debit)
- Feedback rewards (one per purchased lead)
- Deposits, refunds and admin adjustments (idempotent where a caller may retry)
- Ledger audits

Each operation runs as a single transaction against the LedgerStore: either
the balance change, the ledger entry and any purchase/feedback row are all
committed, or none are. Operations never retry on their own; a
StorageConflictError is handed back to the caller, who may retry.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from decimal import Decimal
from typing import Any, Mapping, Optional

from domain.errors import (
    AlreadyPurchasedError,
    AlreadySubmittedError,
    ForbiddenError,
    InsufficientFundsError,
    LeadSoldError,
    NotFoundError,
    ValidationError,
    VendorTypeLimitReachedError,
)
from domain.feedback import FeedbackInput, LeadFeedback
from domain.purchase import Purchase
from domain.time import utc_now
from domain.transaction import LedgerAudit, LedgerEntry, TransactionType, audit_ledger
from domain.vendor import VendorAccount
from repositories.ledger_store import LedgerStore, LedgerUnit
from services.notification_service import Notifier, notify_safely
from services.pricing_service import PricingPolicy
from services.settings import LedgerSettings

logger = logging.getLogger(__name__)

CENT = Decimal("0.01")


@dataclass(frozen=True, slots=True)
class PurchaseReceipt:
    """
    Result of a successful purchase.

    full_info is the unmasked lead payload; it is only ever returned here,
    after the purchase has committed.
    """

    purchase: Purchase
    new_balance: Decimal
    full_info: Mapping[str, Any]
    entry: LedgerEntry


@dataclass(frozen=True, slots=True)
class FeedbackReceipt:
    feedback: LeadFeedback
    reward_amount: Decimal
    new_balance: Decimal
    entry: LedgerEntry


@dataclass(frozen=True, slots=True)
class BalanceChange:
    """
    Result of a deposit, refund or adjustment.

    already_processed is True when an idempotent operation had already been
    applied; `entry` is then the original entry and nothing new was written.
    """

    entry: LedgerEntry
    new_balance: Decimal
    already_processed: bool = False


def _positive_amount(value: Decimal, field: str) -> Decimal:
    amount = Decimal(value).quantize(CENT)
    if amount <= 0:
        raise ValidationError(f"{field} must be a positive amount", field=field)
    return amount


class LeadLedger:
    """
    The purchase ledger.

    Collaborators are passed in explicitly:
        store: transactional persistence (see repositories.ledger_store)
        pricing: decides the amount charged per lead
        notifier: best-effort outbound notifications
        settings: purchase cap and reward amount
    """

    def __init__(
        self,
        store: LedgerStore,
        pricing: PricingPolicy,
        notifier: Notifier,
        settings: LedgerSettings,
    ) -> None:
        self._store = store
        self._pricing = pricing
        self._notifier = notifier
        self._settings = settings

    @property
    def store(self) -> LedgerStore:
        return self._store

    # -- purchase ------------------------------------------------------------

    def purchase_lead(self, vendor: VendorAccount, lead_id: str) -> PurchaseReceipt:
        """
        Purchase a lead for a vendor.

        Process (one transaction, lead row locked throughout):
        1. Lock the lead row; fail NOT_FOUND if it does not exist
        2. Fail LEAD_SOLD unless the lead is AVAILABLE
        3. If the vendor has a category, fail VENDOR_TYPE_LIMIT_REACHED once
           that category already holds the configured number of purchases
        4. Fail ALREADY_PURCHASED if this vendor already owns the lead
        5. Debit the price only if the balance covers it (single conditional
           UPDATE); fail INSUFFICIENT_FUNDS if no row was updated
        6. Record the purchase and the PURCHASE ledger entry
        7. Commit

        The lead stays AVAILABLE so other vendor categories can still buy it.

        Args:
            vendor: Authenticated principal (trusted as given)
            lead_id: Lead to purchase

        Returns:
            PurchaseReceipt with the purchase, new balance and full lead info

        Raises:
            LedgerError subclasses listed above, or StorageConflictError.
        """

        limit = self._settings.vendor_type_purchase_limit

        with self._store.lock_lead(lead_id) as (unit, lead):
            if lead is None:
                raise NotFoundError("Lead not found", {"lead_id": lead_id})

            if not lead.is_purchasable():
                raise LeadSoldError(lead_id)

            if vendor.vendor_type is not None:
                sold_to_type = unit.count_vendor_type_purchases(lead_id, vendor.vendor_type)
                if sold_to_type >= limit:
                    raise VendorTypeLimitReachedError(lead_id, vendor.vendor_type, limit)

            if unit.find_purchase(vendor.user_id, lead_id) is not None:
                raise AlreadyPurchasedError(lead_id)

            price = self._pricing.price_for(lead)
            new_balance = unit.debit_if_sufficient(vendor.user_id, price)
            if new_balance is None:
                # Re-read for the message only; the decision was the UPDATE.
                balance = unit.current_balance(vendor.user_id)
                if balance is None:
                    raise NotFoundError("Vendor not found", {"user_id": vendor.user_id})
                raise InsufficientFundsError(balance=balance, required=price)

            purchase = unit.insert_purchase(vendor.user_id, lead_id, price, utc_now())
            entry = unit.append_entry(
                vendor.user_id,
                -price,
                TransactionType.PURCHASE,
                new_balance,
                metadata={"lead_id": lead_id, "purchase_id": purchase.purchase_id},
                description=f"Purchase of lead {lead_id[:8]}",
            )
            full_info = dict(lead.full_info)

        logger.info(
            "Lead purchased",
            extra={
                "user_id": vendor.user_id,
                "lead_id": lead_id,
                "amount": str(price),
                "new_balance": str(new_balance),
            },
        )
        notify_safely(
            self._notifier,
            vendor.user_id,
            "LEAD_PURCHASED",
            "Lead purchased",
            f"You unlocked lead {lead_id[:8]} for ${price:.2f}. New balance: ${new_balance:.2f}.",
            {"lead_id": lead_id, "purchase_id": purchase.purchase_id},
        )

        return PurchaseReceipt(
            purchase=purchase,
            new_balance=new_balance,
            full_info=full_info,
            entry=entry,
        )

    # -- feedback ------------------------------------------------------------

    def submit_feedback(
        self, vendor: VendorAccount, lead_id: str, feedback_input: FeedbackInput
    ) -> FeedbackReceipt:
        """
        Record feedback on a purchased lead and credit the fixed reward.

        The input is validated before storage is touched. The vendor row is
        locked for the transaction, the reward is a single increment
        (never read-then-write) and the (user, lead) uniqueness of feedback
        guarantees at most one reward per purchased lead.

        Raises:
            ValidationError, ForbiddenError, AlreadySubmittedError,
            NotFoundError, StorageConflictError
        """

        feedback_data = feedback_input.validate()
        reward = self._settings.feedback_reward

        with self._store.lock_vendor(vendor.user_id) as (unit, locked_vendor):
            if locked_vendor is None:
                raise NotFoundError("Vendor not found", {"user_id": vendor.user_id})

            if unit.find_purchase(vendor.user_id, lead_id) is None:
                raise ForbiddenError("You have not purchased this lead", {"lead_id": lead_id})

            if unit.find_feedback(vendor.user_id, lead_id) is not None:
                raise AlreadySubmittedError(lead_id)

            feedback = unit.insert_feedback(vendor.user_id, lead_id, feedback_data)
            new_balance = unit.credit(vendor.user_id, reward)
            if new_balance is None:
                raise NotFoundError("Vendor not found", {"user_id": vendor.user_id})

            entry = unit.append_entry(
                vendor.user_id,
                reward,
                TransactionType.FEEDBACK_REWARD,
                new_balance,
                metadata={"lead_id": lead_id, "feedback_id": feedback.feedback_id},
                description=f"Feedback reward for lead {lead_id[:8]}",
            )

        logger.info(
            "Lead feedback submitted",
            extra={
                "user_id": vendor.user_id,
                "lead_id": lead_id,
                "booked": feedback.booked,
                "reward_amount": str(reward),
            },
        )
        notify_safely(
            self._notifier,
            vendor.user_id,
            "FEEDBACK_REWARD",
            "Thanks for your feedback",
            f"${reward:.2f} was added to your balance for reviewing lead {lead_id[:8]}.",
            {"lead_id": lead_id, "feedback_id": feedback.feedback_id},
        )

        return FeedbackReceipt(
            feedback=feedback,
            reward_amount=reward,
            new_balance=new_balance,
            entry=entry,
        )

    # -- other balance paths -------------------------------------------------

    def deposit(
        self,
        user_id: str,
        amount: Decimal,
        payment_reference: str,
        metadata: Optional[Mapping[str, Any]] = None,
    ) -> BalanceChange:
        """
        Credit a verified payment to a vendor's balance.

        Idempotent on payment_reference: the payment webhook and a manual
        verification may both report the same payment, but it is credited
        once.
        """

        amount = _positive_amount(amount, "amount")
        if not payment_reference or not payment_reference.strip():
            raise ValidationError("payment_reference is required", field="payment_reference")
        key = payment_reference.strip()

        with self._store.lock_vendor(user_id) as (unit, vendor):
            if vendor is None:
                raise NotFoundError("Vendor not found", {"user_id": user_id})

            existing = unit.find_entry_by_idempotency_key(key)
            if existing is not None:
                return self._already_processed(existing, vendor.balance, user_id)

            new_balance = self._credit(unit, user_id, amount)
            entry = unit.append_entry(
                user_id,
                amount,
                TransactionType.DEPOSIT,
                new_balance,
                metadata={"payment_reference": key, **dict(metadata or {})},
                description="Balance deposit",
                idempotency_key=key,
            )

        logger.info(
            "Deposit credited",
            extra={"user_id": user_id, "amount": str(amount), "new_balance": str(new_balance)},
        )
        notify_safely(
            self._notifier,
            user_id,
            "DEPOSIT",
            "Funds added",
            f"${amount:.2f} was added to your balance.",
            {"payment_reference": key},
        )
        return BalanceChange(entry=entry, new_balance=new_balance)

    def refund_purchase(
        self, purchase_id: str, reason: str, admin_id: Optional[str] = None
    ) -> BalanceChange:
        """
        Return the amount paid for a purchase to the buyer's balance.

        The purchase itself stays untouched; the refund is a REFUND ledger
        entry keyed on the purchase so a purchase is refunded at most once.
        """

        if not reason or not reason.strip():
            raise ValidationError("reason is required", field="reason")

        purchase = self._store.get_purchase(purchase_id)
        if purchase is None:
            raise NotFoundError("Purchase not found", {"purchase_id": purchase_id})

        key = f"refund:{purchase_id}"
        with self._store.lock_vendor(purchase.user_id) as (unit, vendor):
            if vendor is None:
                raise NotFoundError("Vendor not found", {"user_id": purchase.user_id})

            existing = unit.find_entry_by_idempotency_key(key)
            if existing is not None:
                return self._already_processed(existing, vendor.balance, purchase.user_id)

            new_balance = self._credit(unit, purchase.user_id, purchase.amount_paid)
            entry = unit.append_entry(
                purchase.user_id,
                purchase.amount_paid,
                TransactionType.REFUND,
                new_balance,
                metadata={
                    "purchase_id": purchase_id,
                    "lead_id": purchase.lead_id,
                    "reason": reason.strip(),
                    "admin_id": admin_id,
                },
                description=f"Refund for lead {purchase.lead_id[:8]}",
                idempotency_key=key,
            )

        logger.info(
            "Purchase refunded",
            extra={
                "user_id": purchase.user_id,
                "purchase_id": purchase_id,
                "amount": str(purchase.amount_paid),
                "admin_id": admin_id,
            },
        )
        notify_safely(
            self._notifier,
            purchase.user_id,
            "REFUND",
            "Purchase refunded",
            f"${purchase.amount_paid:.2f} was refunded for lead {purchase.lead_id[:8]}.",
            {"purchase_id": purchase_id},
        )
        return BalanceChange(entry=entry, new_balance=new_balance)

    def adjust_balance(
        self, user_id: str, amount: Decimal, reason: str, admin_id: str
    ) -> BalanceChange:
        """
        Admin correction of a vendor balance.

        Positive amounts credit. Negative amounts use the same conditional
        debit as purchases and fail with INSUFFICIENT_FUNDS instead of
        driving the balance below zero.
        """

        amount = Decimal(amount).quantize(CENT)
        if amount == 0:
            raise ValidationError("amount must be non-zero", field="amount")
        if not reason or not reason.strip():
            raise ValidationError("reason is required", field="reason")

        with self._store.lock_vendor(user_id) as (unit, vendor):
            if vendor is None:
                raise NotFoundError("Vendor not found", {"user_id": user_id})

            if amount > 0:
                new_balance = self._credit(unit, user_id, amount)
            else:
                new_balance = unit.debit_if_sufficient(user_id, -amount)
                if new_balance is None:
                    balance = unit.current_balance(user_id) or Decimal("0.00")
                    raise InsufficientFundsError(balance=balance, required=-amount)

            entry = unit.append_entry(
                user_id,
                amount,
                TransactionType.ADJUSTMENT,
                new_balance,
                metadata={"reason": reason.strip(), "admin_id": admin_id},
                description=reason.strip(),
            )

        logger.info(
            "Balance adjusted by admin",
            extra={
                "user_id": user_id,
                "amount": str(amount),
                "new_balance": str(new_balance),
                "admin_id": admin_id,
            },
        )
        notify_safely(
            self._notifier,
            user_id,
            "ADJUSTMENT",
            "Balance adjusted",
            f"Your balance was adjusted by {'+' if amount > 0 else '-'}${abs(amount):.2f}: {reason.strip()}",
            {"admin_id": admin_id},
        )
        return BalanceChange(entry=entry, new_balance=new_balance)

    # -- audit ---------------------------------------------------------------

    def audit_vendor(self, user_id: str) -> LedgerAudit:
        """Replay a vendor's ledger and compare it with the cached balance."""

        vendor = self._store.get_vendor(user_id)
        if vendor is None:
            raise NotFoundError("Vendor not found", {"user_id": user_id})

        result = audit_ledger(user_id, self._store.list_entries(user_id), vendor.balance)
        if not result.ok:
            logger.error(
                "Ledger inconsistency detected",
                extra={
                    "user_id": user_id,
                    "replayed_balance": str(result.replayed_balance),
                    "cached_balance": str(result.cached_balance),
                    "first_inconsistent_entry": result.first_inconsistent_entry,
                },
            )
        return result

    # -- helpers -------------------------------------------------------------

    @staticmethod
    def _credit(unit: LedgerUnit, user_id: str, amount: Decimal) -> Decimal:
        new_balance = unit.credit(user_id, amount)
        if new_balance is None:
            raise NotFoundError("Vendor not found", {"user_id": user_id})
        return new_balance

    @staticmethod
    def _already_processed(entry: LedgerEntry, balance: Decimal, user_id: str) -> BalanceChange:
        if entry.user_id != user_id:
            raise ForbiddenError(
                "This operation was already recorded for a different vendor",
                {"idempotency_key": entry.idempotency_key},
            )
        logger.info(
            "Operation already processed",
            extra={"user_id": user_id, "idempotency_key": entry.idempotency_key, "entry_id": entry.entry_id},
        )
        return BalanceChange(entry=entry, new_balance=balance, already_processed=True)


__all__ = [
    "LeadLedger",
    "PurchaseReceipt",
    "FeedbackReceipt",
    "BalanceChange",
]
