"""
Admin API Endpoints.

Balance operations reserved for marketplace staff: manual adjustments,
crediting verified payments, refunds and ledger audits. Every route requires
an admin principal.
"""

from fastapi import APIRouter, Depends

from api.dependencies import get_ledger, require_admin
from api.models import (
    AdjustBalanceRequest,
    AuditResponse,
    BalanceChangeResponse,
    DepositRequest,
    ErrorResponse,
    RefundRequest,
)
from domain.vendor import VendorAccount
from services.ledger_service import BalanceChange, LeadLedger

router = APIRouter()

_ERRORS = {
    400: {"model": ErrorResponse},
    402: {"model": ErrorResponse},
    404: {"model": ErrorResponse},
    503: {"model": ErrorResponse},
}


def _balance_change_response(change: BalanceChange) -> BalanceChangeResponse:
    return BalanceChangeResponse(
        transaction_id=change.entry.entry_id,
        user_id=change.entry.user_id,
        amount=change.entry.amount,
        type=change.entry.type.value,
        new_balance=change.new_balance,
        already_processed=change.already_processed,
    )


@router.post(
    "/admin/vendors/{user_id}/adjust-balance",
    response_model=BalanceChangeResponse,
    summary="Adjust Vendor Balance",
    responses=_ERRORS,
)
def adjust_balance(
    user_id: str,
    request: AdjustBalanceRequest,
    admin: VendorAccount = Depends(require_admin),
    ledger: LeadLedger = Depends(get_ledger),
):
    """
    Apply a manual correction to a vendor's balance.

    Positive amounts credit the vendor. Negative amounts debit and are
    rejected with 402 INSUFFICIENT_FUNDS rather than taking the balance below
    zero. The reason and the acting admin are stored on the ledger entry.
    """
    change = ledger.adjust_balance(user_id, request.amount, request.reason, admin.user_id)
    return _balance_change_response(change)


@router.post(
    "/admin/deposits",
    response_model=BalanceChangeResponse,
    summary="Credit Verified Payment",
    responses=_ERRORS,
)
def credit_deposit(
    request: DepositRequest,
    admin: VendorAccount = Depends(require_admin),
    ledger: LeadLedger = Depends(get_ledger),
):
    """
    Credit a payment that the payment provider has already confirmed.

    Idempotent on `payment_reference`: repeating the call returns the
    original entry with `already_processed: true` and credits nothing.
    """
    change = ledger.deposit(
        request.user_id,
        request.amount,
        request.payment_reference,
        metadata={"credited_by": admin.user_id},
    )
    return _balance_change_response(change)


@router.post(
    "/admin/purchases/{purchase_id}/refund",
    response_model=BalanceChangeResponse,
    summary="Refund Purchase",
    responses=_ERRORS,
)
def refund_purchase(
    purchase_id: str,
    request: RefundRequest,
    admin: VendorAccount = Depends(require_admin),
    ledger: LeadLedger = Depends(get_ledger),
):
    """Return the amount paid for a purchase. A purchase is refunded at most once."""
    change = ledger.refund_purchase(purchase_id, request.reason, admin_id=admin.user_id)
    return _balance_change_response(change)


@router.get(
    "/admin/vendors/{user_id}/audit",
    response_model=AuditResponse,
    summary="Audit Vendor Ledger",
    responses={404: {"model": ErrorResponse}},
)
def audit_vendor(
    user_id: str,
    admin: VendorAccount = Depends(require_admin),
    ledger: LeadLedger = Depends(get_ledger),
):
    """Replay the vendor's ledger and compare it with the cached balance."""
    audit = ledger.audit_vendor(user_id)
    return AuditResponse(
        user_id=audit.user_id,
        ok=audit.ok,
        entry_count=audit.entry_count,
        replayed_balance=audit.replayed_balance,
        cached_balance=audit.cached_balance,
        first_inconsistent_entry=audit.first_inconsistent_entry,
    )
