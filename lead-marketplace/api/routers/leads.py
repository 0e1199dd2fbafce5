"""
Leads API Endpoints.

Viewing a lead, purchasing it, and leaving feedback on a purchased lead.
Ledger errors raised here are rendered by the handler in api.main.
"""

from fastapi import APIRouter, Depends

from api.dependencies import get_current_vendor, get_ledger
from api.models import (
    ErrorResponse,
    FeedbackRequest,
    FeedbackResponse,
    LeadResponse,
    PurchaseResponse,
)
from domain.errors import NotFoundError
from domain.feedback import FeedbackInput
from domain.tags import compute_dynamic_tags
from domain.time import utc_now
from domain.vendor import VendorAccount
from services.ledger_service import LeadLedger

router = APIRouter()

_ERRORS = {
    400: {"model": ErrorResponse},
    402: {"model": ErrorResponse},
    403: {"model": ErrorResponse},
    404: {"model": ErrorResponse},
    409: {"model": ErrorResponse},
    503: {"model": ErrorResponse},
}


@router.get(
    "/leads/{lead_id}",
    response_model=LeadResponse,
    summary="Get Lead",
    responses={404: {"model": ErrorResponse}},
)
def get_lead(
    lead_id: str,
    vendor: VendorAccount = Depends(get_current_vendor),
    ledger: LeadLedger = Depends(get_ledger),
):
    """
    Get a lead as the calling vendor sees it.

    Tags include the time-dependent NEW / HOT labels, computed at request
    time. Contact details (`full_info`) are only included once the vendor
    has purchased the lead.
    """
    lead = ledger.store.get_lead(lead_id)
    if lead is None or not lead.active:
        raise NotFoundError("Lead not found", {"lead_id": lead_id})

    purchase = next(
        (p for p in ledger.store.list_purchases_for_lead(lead_id) if p.user_id == vendor.user_id),
        None,
    )
    tags = compute_dynamic_tags(
        lead.tags,
        created_at=lead.created_at,
        now=utc_now(),
        last_client_response=lead.last_client_response,
        purchased_at=purchase.purchased_at if purchase else None,
    )

    return LeadResponse(
        lead_id=lead.lead_id,
        status=lead.status.value,
        masked_info=dict(lead.masked_info),
        tags=list(tags),
        created_at=lead.created_at,
        purchased_at=purchase.purchased_at if purchase else None,
        full_info=dict(lead.full_info) if purchase else None,
    )


@router.post(
    "/leads/{lead_id}/purchase",
    response_model=PurchaseResponse,
    summary="Purchase Lead",
    description="Spend balance to unlock a lead's full contact details.",
    responses=_ERRORS,
)
def purchase_lead(
    lead_id: str,
    vendor: VendorAccount = Depends(get_current_vendor),
    ledger: LeadLedger = Depends(get_ledger),
):
    """
    Purchase a lead for the calling vendor.

    **Process (one transaction):**
    1. Locks the lead so concurrent purchases of it are serialized
    2. Rejects leads that are no longer AVAILABLE (409 LEAD_SOLD)
    3. Rejects once the vendor's category has reached its purchase cap
       (409 VENDOR_TYPE_LIMIT_REACHED)
    4. Rejects a second purchase by the same vendor (409 ALREADY_PURCHASED)
    5. Debits the balance only if it covers the price (402 INSUFFICIENT_FUNDS)
    6. Records the purchase and a PURCHASE ledger entry

    **Success response:**
    ```json
    {
      "purchase_id": "uuid",
      "lead_id": "lead-123",
      "amount_paid": "20.00",
      "new_balance": "80.00",
      "purchased_at": "2025-01-01T12:00:00Z",
      "transaction_id": 42,
      "full_info": {"first_name": "Jane", "phone": "555-0100"}
    }
    ```

    A 503 STORAGE_CONFLICT response carries `Retry-After` and may be retried.
    """
    receipt = ledger.purchase_lead(vendor, lead_id)
    return PurchaseResponse(
        purchase_id=receipt.purchase.purchase_id,
        lead_id=receipt.purchase.lead_id,
        amount_paid=receipt.purchase.amount_paid,
        new_balance=receipt.new_balance,
        purchased_at=receipt.purchase.purchased_at,
        transaction_id=receipt.entry.entry_id,
        full_info=dict(receipt.full_info),
    )


@router.post(
    "/leads/{lead_id}/feedback",
    response_model=FeedbackResponse,
    summary="Submit Lead Feedback",
    description="Report the outcome of a purchased lead and receive a balance credit.",
    responses=_ERRORS,
)
def submit_feedback(
    lead_id: str,
    request: FeedbackRequest,
    vendor: VendorAccount = Depends(get_current_vendor),
    ledger: LeadLedger = Depends(get_ledger),
):
    """
    Submit feedback for a purchased lead.

    Feedback is accepted once per lead (409 ALREADY_SUBMITTED afterwards) and
    only for leads the vendor purchased (403 FORBIDDEN). When `booked` is
    true, `timeToBook` and `amountCharged` are required (400
    VALIDATION_ERROR naming the field).

    **Example request:**
    ```json
    {
      "booked": true,
      "leadResponsive": "responsive",
      "timeToBook": "1-2 weeks",
      "amountCharged": "1500.00"
    }
    ```
    """
    receipt = ledger.submit_feedback(
        vendor,
        lead_id,
        FeedbackInput(
            booked=request.booked,
            lead_responsive=request.lead_responsive,
            time_to_book=request.time_to_book,
            amount_charged=request.amount_charged,
        ),
    )
    return FeedbackResponse(
        feedback_id=receipt.feedback.feedback_id,
        lead_id=receipt.feedback.lead_id,
        reward_amount=receipt.reward_amount,
        new_balance=receipt.new_balance,
        transaction_id=receipt.entry.entry_id,
    )
