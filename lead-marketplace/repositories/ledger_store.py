"""
Ledger store (persistence).

Transactional access to leads, vendors, purchases, feedback and the balance
ledger. Business rules (status checks, category caps, reward amounts) are NOT
decided here; this module only offers the primitives the ledger service is
built from:

- `LedgerStore.transaction()` runs a block inside one database transaction.
- `LedgerStore.lock_lead()` / `lock_vendor()` open a transaction and take an
  exclusive row lock that is held until the transaction ends.
- `LedgerUnit.debit_if_sufficient()` is a single conditional UPDATE
  (compare-and-swap on the balance), never a read-then-write.

Storage-level transient failures (lock timeouts, deadlocks, serialization
failures, a busy SQLite file) surface as StorageConflictError.
"""

from __future__ import annotations

import logging
from contextlib import contextmanager
from datetime import datetime
from decimal import Decimal
from typing import Any, Iterator, List, Mapping, Optional, Tuple
from uuid import uuid4

from sqlalchemy import func, select, update
from sqlalchemy.exc import IntegrityError, OperationalError
from sqlalchemy.orm import Session, sessionmaker

from domain.errors import AlreadyPurchasedError, AlreadySubmittedError, StorageConflictError
from domain.feedback import LeadFeedback, LeadResponsiveness, ValidFeedback
from domain.lead import Lead, LeadStatus
from domain.purchase import Purchase
from domain.time import as_utc, utc_now
from domain.transaction import LedgerEntry, TransactionType, check_amount_sign
from domain.vendor import VendorAccount
from repositories.tables import FeedbackRow, LeadRow, LedgerEntryRow, PurchaseRow, VendorRow

logger = logging.getLogger(__name__)


def _money(value: Any) -> Decimal:
    """Normalize a stored numeric to a 2-place Decimal."""

    return Decimal(str(value)).quantize(Decimal("0.01"))


def _row_to_lead(row: LeadRow) -> Lead:
    return Lead(
        lead_id=row.id,
        status=LeadStatus(row.status),
        price=_money(row.price),
        active=bool(row.active),
        created_at=as_utc(row.created_at),
        masked_info=dict(row.masked_info or {}),
        full_info=dict(row.full_info or {}),
        tags=tuple(row.tags or ()),
        last_client_response=as_utc(row.last_client_response) if row.last_client_response else None,
    )


def _row_to_vendor(row: VendorRow) -> VendorAccount:
    return VendorAccount(
        user_id=row.id,
        email=row.email,
        balance=_money(row.balance),
        vendor_type=row.vendor_type,
        business_name=row.business_name,
        is_admin=bool(row.is_admin),
        created_at=as_utc(row.created_at) if row.created_at else None,
    )


def _row_to_purchase(row: PurchaseRow) -> Purchase:
    return Purchase(
        purchase_id=row.id,
        user_id=row.user_id,
        lead_id=row.lead_id,
        amount_paid=_money(row.amount_paid),
        purchased_at=as_utc(row.purchased_at),
    )


def _row_to_entry(row: LedgerEntryRow) -> LedgerEntry:
    return LedgerEntry(
        entry_id=int(row.id),
        user_id=row.user_id,
        amount=_money(row.amount),
        type=TransactionType(row.type),
        balance_after=_money(row.balance_after),
        created_at=as_utc(row.created_at),
        description=row.description,
        metadata=dict(row.meta or {}),
        idempotency_key=row.idempotency_key,
    )


def _row_to_feedback(row: FeedbackRow) -> LeadFeedback:
    return LeadFeedback(
        feedback_id=row.id,
        user_id=row.user_id,
        lead_id=row.lead_id,
        booked=bool(row.booked),
        lead_responsive=LeadResponsiveness(row.lead_responsive),
        created_at=as_utc(row.created_at),
        time_to_book=row.time_to_book,
        amount_charged=_money(row.amount_charged) if row.amount_charged is not None else None,
    )


class LedgerUnit:
    """
    Operations bound to one open database transaction.

    Instances are handed out by LedgerStore and must not be used after the
    `with` block that produced them has exited.
    """

    def __init__(self, session: Session) -> None:
        self._session = session

    # -- locks ---------------------------------------------------------------

    def lock_lead_row(self, lead_id: str) -> Optional[Lead]:
        """SELECT ... FOR UPDATE on the lead; None if it does not exist."""

        row = self._session.execute(
            select(LeadRow).where(LeadRow.id == lead_id).with_for_update()
        ).scalar_one_or_none()
        return _row_to_lead(row) if row is not None else None

    def lock_vendor_row(self, user_id: str) -> Optional[VendorAccount]:
        """SELECT ... FOR UPDATE on the vendor; None if it does not exist."""

        row = self._session.execute(
            select(VendorRow).where(VendorRow.id == user_id).with_for_update()
        ).scalar_one_or_none()
        return _row_to_vendor(row) if row is not None else None

    # -- reads ---------------------------------------------------------------

    def find_purchase(self, user_id: str, lead_id: str) -> Optional[Purchase]:
        row = self._session.execute(
            select(PurchaseRow).where(PurchaseRow.user_id == user_id, PurchaseRow.lead_id == lead_id)
        ).scalar_one_or_none()
        return _row_to_purchase(row) if row is not None else None

    def count_vendor_type_purchases(self, lead_id: str, vendor_type: str) -> int:
        """Count purchases of a lead made by vendors of the given category."""

        count = self._session.execute(
            select(func.count(PurchaseRow.id))
            .join(VendorRow, VendorRow.id == PurchaseRow.user_id)
            .where(PurchaseRow.lead_id == lead_id, VendorRow.vendor_type == vendor_type)
        ).scalar_one()
        return int(count)

    def current_balance(self, user_id: str) -> Optional[Decimal]:
        value = self._session.execute(
            select(VendorRow.balance).where(VendorRow.id == user_id)
        ).scalar_one_or_none()
        return _money(value) if value is not None else None

    def find_feedback(self, user_id: str, lead_id: str) -> Optional[LeadFeedback]:
        row = self._session.execute(
            select(FeedbackRow).where(FeedbackRow.user_id == user_id, FeedbackRow.lead_id == lead_id)
        ).scalar_one_or_none()
        return _row_to_feedback(row) if row is not None else None

    def find_entry_by_idempotency_key(self, key: str) -> Optional[LedgerEntry]:
        row = self._session.execute(
            select(LedgerEntryRow).where(LedgerEntryRow.idempotency_key == key)
        ).scalar_one_or_none()
        return _row_to_entry(row) if row is not None else None

    # -- balance writes ------------------------------------------------------

    def debit_if_sufficient(self, user_id: str, amount: Decimal) -> Optional[Decimal]:
        """
        Subtract `amount` from the balance only if the balance covers it.

        The sufficiency check and the write are one UPDATE statement, so two
        concurrent debits can never both pass against the same funds.

        Returns:
            The new balance, or None if no row was updated (insufficient
            funds or unknown vendor).
        """

        if amount <= 0:
            raise ValueError("debit amount must be positive")

        result = self._session.execute(
            update(VendorRow)
            .where(VendorRow.id == user_id, VendorRow.balance >= amount)
            .values(balance=VendorRow.balance - amount)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount != 1:
            return None
        return self.current_balance(user_id)

    def credit(self, user_id: str, amount: Decimal) -> Optional[Decimal]:
        """
        Add `amount` to the balance in a single UPDATE.

        Returns:
            The new balance, or None if the vendor does not exist.
        """

        if amount <= 0:
            raise ValueError("credit amount must be positive")

        result = self._session.execute(
            update(VendorRow)
            .where(VendorRow.id == user_id)
            .values(balance=VendorRow.balance + amount)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount != 1:
            return None
        return self.current_balance(user_id)

    # -- appends -------------------------------------------------------------

    def insert_purchase(
        self, user_id: str, lead_id: str, amount_paid: Decimal, purchased_at: datetime
    ) -> Purchase:
        row = PurchaseRow(
            id=str(uuid4()),
            user_id=user_id,
            lead_id=lead_id,
            amount_paid=amount_paid,
            purchased_at=purchased_at,
        )
        self._session.add(row)
        try:
            self._session.flush()
        except IntegrityError as exc:
            raise AlreadyPurchasedError(lead_id) from exc

        return Purchase(
            purchase_id=row.id,
            user_id=user_id,
            lead_id=lead_id,
            amount_paid=amount_paid,
            purchased_at=purchased_at,
        )

    def insert_feedback(self, user_id: str, lead_id: str, feedback: ValidFeedback) -> LeadFeedback:
        now = utc_now()
        row = FeedbackRow(
            id=str(uuid4()),
            user_id=user_id,
            lead_id=lead_id,
            booked=feedback.booked,
            lead_responsive=feedback.lead_responsive.value,
            time_to_book=feedback.time_to_book,
            amount_charged=feedback.amount_charged,
            created_at=now,
        )
        self._session.add(row)
        try:
            self._session.flush()
        except IntegrityError as exc:
            raise AlreadySubmittedError(lead_id) from exc

        return LeadFeedback(
            feedback_id=row.id,
            user_id=user_id,
            lead_id=lead_id,
            booked=feedback.booked,
            lead_responsive=feedback.lead_responsive,
            created_at=now,
            time_to_book=feedback.time_to_book,
            amount_charged=feedback.amount_charged,
        )

    def append_entry(
        self,
        user_id: str,
        amount: Decimal,
        tx_type: TransactionType,
        balance_after: Decimal,
        metadata: Optional[Mapping[str, Any]] = None,
        description: Optional[str] = None,
        idempotency_key: Optional[str] = None,
    ) -> LedgerEntry:
        """
        Append one ledger entry. Must be called in the same transaction as the
        balance change it records.
        """

        check_amount_sign(tx_type, amount)
        row = LedgerEntryRow(
            user_id=user_id,
            amount=amount,
            type=tx_type.value,
            balance_after=balance_after,
            description=description,
            meta=dict(metadata or {}),
            idempotency_key=idempotency_key,
            created_at=utc_now(),
        )
        self._session.add(row)
        try:
            self._session.flush()
        except IntegrityError as exc:
            # Only the idempotency key can collide; the caller retries and
            # then finds the winning entry.
            raise StorageConflictError(
                "A concurrent request already recorded this operation",
                {"idempotency_key": idempotency_key},
            ) from exc

        return _row_to_entry(row)

    # -- collaborator writes -------------------------------------------------

    def insert_vendor(self, row: VendorRow) -> None:
        self._session.add(row)
        self._session.flush()

    def upsert_lead(self, lead: Lead) -> None:
        self._session.merge(
            LeadRow(
                id=lead.lead_id,
                status=lead.status.value,
                price=lead.price,
                active=lead.active,
                masked_info=dict(lead.masked_info),
                full_info=dict(lead.full_info),
                tags=list(lead.tags),
                last_client_response=lead.last_client_response,
                created_at=lead.created_at,
            )
        )
        self._session.flush()


class LedgerStore:
    """
    Entry point to ledger persistence.

    Takes an explicit session factory; the store holds no global state and can
    be pointed at any database.
    """

    def __init__(self, session_factory: sessionmaker[Session]) -> None:
        self._session_factory = session_factory

    @contextmanager
    def transaction(self) -> Iterator[LedgerUnit]:
        """
        Run the enclosed block in a single database transaction.

        Commits when the block exits normally and rolls back on any exception.
        """

        session = self._session_factory()
        try:
            with session.begin():
                yield LedgerUnit(session)
        except OperationalError as exc:
            logger.warning("Storage conflict, transaction rolled back: %s", exc.orig)
            raise StorageConflictError(
                "The operation could not complete because of concurrent activity; please retry",
                {"reason": type(exc.orig).__name__},
            ) from exc
        finally:
            session.close()

    @contextmanager
    def lock_lead(self, lead_id: str) -> Iterator[Tuple[LedgerUnit, Optional[Lead]]]:
        """
        Lock-then-transact on a lead row.

        Yields the unit and the locked lead (None if it does not exist). Other
        transactions locking the same lead wait until this one ends.
        """

        with self.transaction() as unit:
            yield unit, unit.lock_lead_row(lead_id)

    @contextmanager
    def lock_vendor(self, user_id: str) -> Iterator[Tuple[LedgerUnit, Optional[VendorAccount]]]:
        """Lock-then-transact on a vendor row."""

        with self.transaction() as unit:
            yield unit, unit.lock_vendor_row(user_id)

    # -- short read transactions ---------------------------------------------

    def get_lead(self, lead_id: str) -> Optional[Lead]:
        with self._session_factory() as session:
            row = session.get(LeadRow, lead_id)
            return _row_to_lead(row) if row is not None else None

    def get_vendor(self, user_id: str) -> Optional[VendorAccount]:
        with self._session_factory() as session:
            row = session.get(VendorRow, user_id)
            return _row_to_vendor(row) if row is not None else None

    def get_purchase(self, purchase_id: str) -> Optional[Purchase]:
        with self._session_factory() as session:
            row = session.get(PurchaseRow, purchase_id)
            return _row_to_purchase(row) if row is not None else None

    def list_entries(self, user_id: str) -> List[LedgerEntry]:
        """All ledger entries for a vendor, in replay order."""

        with self._session_factory() as session:
            rows = session.execute(
                select(LedgerEntryRow)
                .where(LedgerEntryRow.user_id == user_id)
                .order_by(LedgerEntryRow.id)
            ).scalars()
            return [_row_to_entry(row) for row in rows]

    def list_purchases(self, user_id: str) -> List[Purchase]:
        with self._session_factory() as session:
            rows = session.execute(
                select(PurchaseRow)
                .where(PurchaseRow.user_id == user_id)
                .order_by(PurchaseRow.purchased_at)
            ).scalars()
            return [_row_to_purchase(row) for row in rows]

    def list_purchases_for_lead(self, lead_id: str) -> List[Purchase]:
        with self._session_factory() as session:
            rows = session.execute(
                select(PurchaseRow).where(PurchaseRow.lead_id == lead_id)
            ).scalars()
            return [_row_to_purchase(row) for row in rows]

    def list_vendor_ids(self) -> List[str]:
        with self._session_factory() as session:
            return list(session.execute(select(VendorRow.id).order_by(VendorRow.id)).scalars())

    # -- collaborator writes -------------------------------------------------

    def add_vendor(
        self,
        email: str,
        vendor_type: Optional[str] = None,
        business_name: Optional[str] = None,
        is_admin: bool = False,
        user_id: Optional[str] = None,
    ) -> VendorAccount:
        """
        Create a vendor with a zero balance.

        Funds are added through the ledger (deposit/adjustment), never here,
        so the ledger always explains the full balance.
        """

        vendor = VendorAccount(
            user_id=user_id or str(uuid4()),
            email=email,
            balance=Decimal("0.00"),
            vendor_type=vendor_type,
            business_name=business_name,
            is_admin=is_admin,
            created_at=utc_now(),
        )
        with self.transaction() as unit:
            unit.insert_vendor(
                VendorRow(
                    id=vendor.user_id,
                    email=vendor.email,
                    business_name=vendor.business_name,
                    vendor_type=vendor.vendor_type,
                    is_admin=vendor.is_admin,
                    balance=vendor.balance,
                    created_at=vendor.created_at,
                )
            )
        return vendor

    def upsert_lead(self, lead: Lead) -> None:
        """
        Insert or update a lead (used by the import process).

        Purchases and ledger rows are never touched.
        """

        with self.transaction() as unit:
            unit.upsert_lead(lead)


__all__ = ["LedgerStore", "LedgerUnit"]
