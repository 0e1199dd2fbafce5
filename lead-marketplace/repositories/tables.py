"""
SQLAlchemy table definitions for the purchase ledger.

Only schema lives here. Row <-> domain conversion and all queries live in
`repositories.ledger_store`.

Constraints that back the ledger's invariants:
- vendors.balance can never go below zero (check constraint).
- purchases are unique per (user_id, lead_id).
- lead_feedback is unique per (user_id, lead_id).
- ledger_entries.idempotency_key is unique when present.
"""

from __future__ import annotations

from datetime import datetime
from decimal import ROUND_HALF_UP, Decimal
from typing import Any, Optional

from sqlalchemy import (
    JSON,
    BigInteger,
    Boolean,
    CheckConstraint,
    DateTime,
    ForeignKey,
    Integer,
    Numeric,
    String,
    Text,
    TypeDecorator,
    UniqueConstraint,
)
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column

from domain.time import utc_now

CENT = Decimal("0.01")


class Cents(TypeDecorator):
    """
    Money as an integer count of cents.

    SQLite has no exact decimal storage; NUMERIC columns there hold REAL
    values, so `balance >= amount` can fail on equal amounts. Storing cents
    keeps comparisons and in-database arithmetic exact.
    """

    impl = BigInteger
    cache_ok = True

    def process_bind_param(self, value: Any, dialect: Any) -> Optional[int]:
        if value is None:
            return None
        cents = (Decimal(str(value)) / CENT).quantize(Decimal("1"), rounding=ROUND_HALF_UP)
        return int(cents)

    def process_result_value(self, value: Any, dialect: Any) -> Optional[Decimal]:
        if value is None:
            return None
        return (Decimal(int(value)) * CENT).quantize(CENT)


MONEY = Numeric(12, 2).with_variant(Cents(), "sqlite")


class Base(DeclarativeBase):
    """Declarative base for the marketplace schema."""


class LeadRow(Base):
    __tablename__ = "leads"

    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    status: Mapped[str] = mapped_column(String(16), nullable=False, default="AVAILABLE", index=True)
    price: Mapped[Decimal] = mapped_column(MONEY, nullable=False, default=Decimal("0.00"))
    active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    masked_info: Mapped[dict[str, Any]] = mapped_column(JSON, nullable=False, default=dict)
    full_info: Mapped[dict[str, Any]] = mapped_column(JSON, nullable=False, default=dict)
    tags: Mapped[list[str]] = mapped_column(JSON, nullable=False, default=list)
    last_client_response: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=utc_now)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utc_now, onupdate=utc_now
    )


class VendorRow(Base):
    __tablename__ = "vendors"
    __table_args__ = (CheckConstraint("balance >= 0", name="ck_vendors_balance_non_negative"),)

    id: Mapped[str] = mapped_column(String(36), primary_key=True)
    email: Mapped[str] = mapped_column(String(255), nullable=False, unique=True)
    business_name: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    vendor_type: Mapped[Optional[str]] = mapped_column(String(64), nullable=True, index=True)
    is_admin: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    balance: Mapped[Decimal] = mapped_column(MONEY, nullable=False, default=Decimal("0.00"))
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=utc_now)


class PurchaseRow(Base):
    __tablename__ = "purchases"
    __table_args__ = (UniqueConstraint("user_id", "lead_id", name="uq_purchases_user_lead"),)

    id: Mapped[str] = mapped_column(String(36), primary_key=True)
    user_id: Mapped[str] = mapped_column(ForeignKey("vendors.id"), nullable=False, index=True)
    lead_id: Mapped[str] = mapped_column(ForeignKey("leads.id"), nullable=False, index=True)
    amount_paid: Mapped[Decimal] = mapped_column(MONEY, nullable=False)
    purchased_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)


class LedgerEntryRow(Base):
    __tablename__ = "ledger_entries"

    # Integer on SQLite so the column aliases ROWID and autoincrements.
    id: Mapped[int] = mapped_column(
        BigInteger().with_variant(Integer, "sqlite"), primary_key=True, autoincrement=True
    )
    user_id: Mapped[str] = mapped_column(ForeignKey("vendors.id"), nullable=False, index=True)
    amount: Mapped[Decimal] = mapped_column(MONEY, nullable=False)
    type: Mapped[str] = mapped_column(String(32), nullable=False, index=True)
    balance_after: Mapped[Decimal] = mapped_column(MONEY, nullable=False)
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    # `metadata` is reserved on declarative classes.
    meta: Mapped[dict[str, Any]] = mapped_column("metadata", JSON, nullable=False, default=dict)
    idempotency_key: Mapped[Optional[str]] = mapped_column(String(128), nullable=True, unique=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)


class FeedbackRow(Base):
    __tablename__ = "lead_feedback"
    __table_args__ = (UniqueConstraint("user_id", "lead_id", name="uq_lead_feedback_user_lead"),)

    id: Mapped[str] = mapped_column(String(36), primary_key=True)
    user_id: Mapped[str] = mapped_column(ForeignKey("vendors.id"), nullable=False, index=True)
    lead_id: Mapped[str] = mapped_column(ForeignKey("leads.id"), nullable=False, index=True)
    booked: Mapped[bool] = mapped_column(Boolean, nullable=False)
    lead_responsive: Mapped[str] = mapped_column(String(16), nullable=False)
    time_to_book: Mapped[Optional[str]] = mapped_column(String(64), nullable=True)
    amount_charged: Mapped[Optional[Decimal]] = mapped_column(MONEY, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)


__all__ = [
    "Base",
    "LeadRow",
    "VendorRow",
    "PurchaseRow",
    "LedgerEntryRow",
    "FeedbackRow",
]
