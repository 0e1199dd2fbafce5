"""
Domain: Balance ledger.

Rules implemented here:
- Every change to a vendor's balance is recorded as an append-only LedgerEntry.
- Entries carry a signed amount (negative for spends, positive for credits) and
  a snapshot of the balance right after the change.
- Replaying a vendor's entries in entry order and summing `amount` must
  reconstruct the cached balance, and each `balance_after` must equal the
  running sum through that entry.

This module contains only pure domain entities and functions: no I/O, no database.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Any, Iterable, Mapping, Optional

from .time import require_utc_timestamp

ZERO = Decimal("0.00")


class TransactionType(str, Enum):
    DEPOSIT = "DEPOSIT"
    PURCHASE = "PURCHASE"
    REFUND = "REFUND"
    ADJUSTMENT = "ADJUSTMENT"
    FEEDBACK_REWARD = "FEEDBACK_REWARD"


_CREDIT_TYPES = frozenset(
    {TransactionType.DEPOSIT, TransactionType.REFUND, TransactionType.FEEDBACK_REWARD}
)


def check_amount_sign(tx_type: TransactionType, amount: Decimal) -> None:
    """
    Enforce the sign convention for a ledger entry.

    PURCHASE entries are debits (< 0); DEPOSIT, REFUND and FEEDBACK_REWARD are
    credits (> 0); ADJUSTMENT may go either way but is never zero.
    """

    if tx_type == TransactionType.PURCHASE and amount >= 0:
        raise ValueError("PURCHASE entries must have a negative amount")
    if tx_type in _CREDIT_TYPES and amount <= 0:
        raise ValueError(f"{tx_type.value} entries must have a positive amount")
    if tx_type == TransactionType.ADJUSTMENT and amount == 0:
        raise ValueError("ADJUSTMENT entries must have a non-zero amount")


@dataclass(frozen=True, slots=True)
class LedgerEntry:
    """
    Immutable ledger entry.

    entry_id is assigned by storage and is strictly increasing, so it defines
    the replay order for a vendor's ledger.
    """

    entry_id: int
    user_id: str
    amount: Decimal
    type: TransactionType
    balance_after: Decimal
    created_at: datetime
    description: Optional[str] = None
    metadata: Mapping[str, Any] = field(default_factory=dict)
    idempotency_key: Optional[str] = None

    def __post_init__(self) -> None:
        require_utc_timestamp("created_at", self.created_at)
        check_amount_sign(self.type, self.amount)
        if self.balance_after < 0:
            raise ValueError("balance_after must be >= 0")


class LedgerInconsistency(Exception):
    """Raised when a ledger entry's snapshot disagrees with the replayed sum."""

    def __init__(self, entry_id: int, expected: Decimal, recorded: Decimal) -> None:
        super().__init__(
            f"Ledger entry {entry_id} records balance_after={recorded} "
            f"but replay gives {expected}"
        )
        self.entry_id = entry_id
        self.expected = expected
        self.recorded = recorded


def replay_ledger(entries: Iterable[LedgerEntry]) -> Decimal:
    """
    Replay entries in entry order and return the resulting balance.

    Raises LedgerInconsistency at the first entry whose balance_after is not
    the running sum through that entry.
    """

    running = ZERO
    for entry in sorted(entries, key=lambda e: e.entry_id):
        running += entry.amount
        if running != entry.balance_after:
            raise LedgerInconsistency(entry.entry_id, running, entry.balance_after)
    return running


@dataclass(frozen=True, slots=True)
class LedgerAudit:
    """Outcome of comparing a vendor's replayed ledger with the cached balance."""

    user_id: str
    entry_count: int
    replayed_balance: Optional[Decimal]
    cached_balance: Decimal
    first_inconsistent_entry: Optional[int] = None

    @property
    def ok(self) -> bool:
        return (
            self.first_inconsistent_entry is None
            and self.replayed_balance == self.cached_balance
        )


def audit_ledger(user_id: str, entries: Iterable[LedgerEntry], cached_balance: Decimal) -> LedgerAudit:
    entries = list(entries)
    try:
        replayed: Optional[Decimal] = replay_ledger(entries)
        broken = None
    except LedgerInconsistency as exc:
        replayed = None
        broken = exc.entry_id

    return LedgerAudit(
        user_id=user_id,
        entry_count=len(entries),
        replayed_balance=replayed,
        cached_balance=cached_balance,
        first_inconsistent_entry=broken,
    )
