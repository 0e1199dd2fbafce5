"""
Domain: Lead feedback.

Vendors report the outcome of a purchased lead once and receive a fixed
credit for doing so. Validation happens here, before anything touches
storage.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal, InvalidOperation
from enum import Enum
from typing import Any, Optional

from .errors import ValidationError
from .time import require_utc_timestamp


TIME_TO_BOOK_MAX_LENGTH = 64
# Stored as NUMERIC(12, 2).
AMOUNT_CHARGED_MAX = Decimal("9999999999.99")


class LeadResponsiveness(str, Enum):
    RESPONSIVE = "responsive"
    GHOSTED = "ghosted"
    PARTIAL = "partial"


def _parse_amount(value: Any) -> Optional[Decimal]:
    if value is None or isinstance(value, bool):
        return None
    try:
        amount = Decimal(str(value).strip())
    except (InvalidOperation, ValueError):
        return None
    if not amount.is_finite():
        return None
    return amount


@dataclass(frozen=True, slots=True)
class FeedbackInput:
    """
    Raw feedback as submitted by a vendor.

    Fields are typed loosely on purpose: values arrive from request bodies and
    are checked by `validate()`.
    """

    booked: Any
    lead_responsive: Any
    time_to_book: Any = None
    amount_charged: Any = None

    def validate(self) -> "ValidFeedback":
        """
        Check the input and return a normalized copy.

        Raises:
            ValidationError: with the offending field name in `details`.
        """

        if not isinstance(self.booked, bool):
            raise ValidationError("Booked status is required", field="booked")

        try:
            responsiveness = LeadResponsiveness(self.lead_responsive)
        except ValueError:
            raise ValidationError(
                "Invalid lead responsiveness value", field="leadResponsive"
            ) from None

        if not self.booked:
            return ValidFeedback(
                booked=False,
                lead_responsive=responsiveness,
                time_to_book=None,
                amount_charged=None,
            )

        time_to_book = self.time_to_book.strip() if isinstance(self.time_to_book, str) else ""
        if not time_to_book:
            raise ValidationError(
                "Time to book is required when lead booked", field="timeToBook"
            )
        if len(time_to_book) > TIME_TO_BOOK_MAX_LENGTH:
            raise ValidationError(
                f"Time to book must be at most {TIME_TO_BOOK_MAX_LENGTH} characters",
                field="timeToBook",
            )

        amount = _parse_amount(self.amount_charged)
        if amount is None or amount <= 0:
            raise ValidationError(
                "Amount charged is required when lead booked", field="amountCharged"
            )
        if amount > AMOUNT_CHARGED_MAX or amount != amount.quantize(Decimal("0.01")):
            raise ValidationError(
                "Amount charged must be at most 9999999999.99 with two decimal places",
                field="amountCharged",
            )

        return ValidFeedback(
            booked=True,
            lead_responsive=responsiveness,
            time_to_book=time_to_book,
            amount_charged=amount,
        )


@dataclass(frozen=True, slots=True)
class ValidFeedback:
    booked: bool
    lead_responsive: LeadResponsiveness
    time_to_book: Optional[str]
    amount_charged: Optional[Decimal]


@dataclass(frozen=True, slots=True)
class LeadFeedback:
    """Stored feedback: at most one per (user_id, lead_id)."""

    feedback_id: str
    user_id: str
    lead_id: str
    booked: bool
    lead_responsive: LeadResponsiveness
    created_at: datetime
    time_to_book: Optional[str] = None
    amount_charged: Optional[Decimal] = None

    def __post_init__(self) -> None:
        require_utc_timestamp("created_at", self.created_at)
