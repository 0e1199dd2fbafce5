"""
Domain: Error taxonomy for the purchase ledger.

A closed set of error kinds. Each kind fixes the code reported to callers, the
HTTP status the API layer maps it to, and whether the caller may retry.
Callers branch on `kind` (or the exception class), never on message text.
"""

from __future__ import annotations

from decimal import Decimal
from enum import Enum
from typing import Any, Mapping, Optional


class ErrorKind(str, Enum):
    NOT_FOUND = "NOT_FOUND"
    LEAD_SOLD = "LEAD_SOLD"
    VENDOR_TYPE_LIMIT_REACHED = "VENDOR_TYPE_LIMIT_REACHED"
    ALREADY_PURCHASED = "ALREADY_PURCHASED"
    ALREADY_SUBMITTED = "ALREADY_SUBMITTED"
    INSUFFICIENT_FUNDS = "INSUFFICIENT_FUNDS"
    FORBIDDEN = "FORBIDDEN"
    VALIDATION_ERROR = "VALIDATION_ERROR"
    STORAGE_CONFLICT = "STORAGE_CONFLICT"

    @property
    def status_code(self) -> int:
        return _STATUS_CODES[self]

    @property
    def retryable(self) -> bool:
        return self is ErrorKind.STORAGE_CONFLICT


_STATUS_CODES = {
    ErrorKind.NOT_FOUND: 404,
    ErrorKind.LEAD_SOLD: 409,
    ErrorKind.VENDOR_TYPE_LIMIT_REACHED: 409,
    ErrorKind.ALREADY_PURCHASED: 409,
    ErrorKind.ALREADY_SUBMITTED: 409,
    ErrorKind.INSUFFICIENT_FUNDS: 402,
    ErrorKind.FORBIDDEN: 403,
    ErrorKind.VALIDATION_ERROR: 400,
    ErrorKind.STORAGE_CONFLICT: 503,
}


class LedgerError(Exception):
    """Base class for every failure the ledger reports to its callers."""

    kind: ErrorKind

    def __init__(self, message: str, details: Optional[Mapping[str, Any]] = None) -> None:
        super().__init__(message)
        self.message = message
        self.details: Mapping[str, Any] = dict(details or {})

    @property
    def code(self) -> str:
        return self.kind.value

    @property
    def status_code(self) -> int:
        return self.kind.status_code

    @property
    def retryable(self) -> bool:
        return self.kind.retryable


class NotFoundError(LedgerError):
    kind = ErrorKind.NOT_FOUND


class LeadSoldError(LedgerError):
    kind = ErrorKind.LEAD_SOLD

    def __init__(self, lead_id: str) -> None:
        super().__init__("Lead is no longer available", {"lead_id": lead_id})


class VendorTypeLimitReachedError(LedgerError):
    kind = ErrorKind.VENDOR_TYPE_LIMIT_REACHED

    def __init__(self, lead_id: str, vendor_type: str, limit: int) -> None:
        super().__init__(
            f"This lead has reached the maximum purchase limit ({limit}) "
            f"for {vendor_type} vendors",
            {"lead_id": lead_id, "vendor_type": vendor_type, "limit": limit},
        )
        self.limit = limit


class AlreadyPurchasedError(LedgerError):
    kind = ErrorKind.ALREADY_PURCHASED

    def __init__(self, lead_id: str) -> None:
        super().__init__("You have already purchased this lead", {"lead_id": lead_id})


class AlreadySubmittedError(LedgerError):
    kind = ErrorKind.ALREADY_SUBMITTED

    def __init__(self, lead_id: str) -> None:
        super().__init__(
            "You have already submitted feedback for this lead", {"lead_id": lead_id}
        )


class InsufficientFundsError(LedgerError):
    """
    The conditional debit affected no row.

    `balance` is re-read after the fact for display only and may be stale.
    """

    kind = ErrorKind.INSUFFICIENT_FUNDS

    def __init__(self, balance: Decimal, required: Decimal) -> None:
        super().__init__(
            f"Insufficient funds. Balance: ${balance:.2f}, Required: ${required:.2f}",
            {"balance": str(balance), "required": str(required)},
        )
        self.balance = balance
        self.required = required


class ForbiddenError(LedgerError):
    kind = ErrorKind.FORBIDDEN


class ValidationError(LedgerError):
    kind = ErrorKind.VALIDATION_ERROR

    def __init__(self, message: str, field: Optional[str] = None) -> None:
        super().__init__(message, {"field": field} if field else None)
        self.field = field


class StorageConflictError(LedgerError):
    """Lock timeout, deadlock or serialization failure. Safe to retry."""

    kind = ErrorKind.STORAGE_CONFLICT


__all__ = [
    "ErrorKind",
    "LedgerError",
    "NotFoundError",
    "LeadSoldError",
    "VendorTypeLimitReachedError",
    "AlreadyPurchasedError",
    "AlreadySubmittedError",
    "InsufficientFundsError",
    "ForbiddenError",
    "ValidationError",
    "StorageConflictError",
]
