"""
API Request and Response Models.

Pydantic models for validating API requests and serializing responses.
"""

from datetime import datetime
from decimal import Decimal
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field


# ============================================================================
# Error Models
# ============================================================================

class ErrorBody(BaseModel):
    code: str
    message: str
    details: Optional[Dict[str, Any]] = None


class ErrorResponse(BaseModel):
    """Envelope for every ledger error response."""
    error: ErrorBody

    class Config:
        json_schema_extra = {
            "example": {
                "error": {
                    "code": "INSUFFICIENT_FUNDS",
                    "message": "Insufficient funds. Balance: $10.00, Required: $20.00",
                    "details": {"balance": "10.00", "required": "20.00"}
                }
            }
        }


# ============================================================================
# Lead Models
# ============================================================================

class LeadResponse(BaseModel):
    """Lead as shown to a vendor. full_info is only present once purchased."""
    lead_id: str
    status: str
    masked_info: Dict[str, Any]
    tags: List[str]
    created_at: datetime
    purchased_at: Optional[datetime] = None
    full_info: Optional[Dict[str, Any]] = None

    class Config:
        json_schema_extra = {
            "example": {
                "lead_id": "8f0c2f6e-1b7e-4c7a-9d0e-2f1f6b7a9c11",
                "status": "AVAILABLE",
                "masked_info": {"first_name": "J***", "city": "Austin"},
                "tags": ["Wedding", "NEW"],
                "created_at": "2025-01-01T12:00:00Z",
                "purchased_at": None,
                "full_info": None
            }
        }


class PurchaseResponse(BaseModel):
    """Response for a successful lead purchase."""
    purchase_id: str
    lead_id: str
    amount_paid: Decimal
    new_balance: Decimal
    purchased_at: datetime
    transaction_id: int
    full_info: Dict[str, Any]

    class Config:
        json_schema_extra = {
            "example": {
                "purchase_id": "123e4567-e89b-12d3-a456-426614174003",
                "lead_id": "8f0c2f6e-1b7e-4c7a-9d0e-2f1f6b7a9c11",
                "amount_paid": "20.00",
                "new_balance": "80.00",
                "purchased_at": "2025-01-01T12:00:00Z",
                "transaction_id": 42,
                "full_info": {"first_name": "Jane", "phone": "555-0100"}
            }
        }


class FeedbackRequest(BaseModel):
    """
    Feedback on a purchased lead.

    Values are passed through unconverted. Field-level rules (booked must be a
    JSON boolean, time and amount required when booked) are checked by the
    ledger so the error is a 400 that names the offending field.
    """
    booked: Any = None
    lead_responsive: Any = Field(None, alias="leadResponsive")
    time_to_book: Any = Field(None, alias="timeToBook")
    amount_charged: Any = Field(None, alias="amountCharged")

    class Config:
        populate_by_name = True
        json_schema_extra = {
            "example": {
                "booked": True,
                "leadResponsive": "responsive",
                "timeToBook": "1-2 weeks",
                "amountCharged": "1500.00"
            }
        }


class FeedbackResponse(BaseModel):
    feedback_id: str
    lead_id: str
    reward_amount: Decimal
    new_balance: Decimal
    transaction_id: int


# ============================================================================
# Account Models
# ============================================================================

class VendorResponse(BaseModel):
    user_id: str
    email: str
    balance: Decimal
    vendor_type: Optional[str] = None
    business_name: Optional[str] = None
    is_admin: bool


class TransactionResponse(BaseModel):
    """Single ledger entry."""
    id: int
    amount: Decimal
    type: str
    balance_after: Decimal
    description: Optional[str] = None
    metadata: Dict[str, Any]
    created_at: datetime


class PurchaseSummary(BaseModel):
    purchase_id: str
    lead_id: str
    amount_paid: Decimal
    purchased_at: datetime


class NotificationResponse(BaseModel):
    id: str
    type: str
    title: str
    body: str
    link_url: Optional[str] = None
    created_at: datetime
    read: bool


# ============================================================================
# Admin Models
# ============================================================================

class AdjustBalanceRequest(BaseModel):
    """Admin correction; negative amounts debit."""
    amount: Decimal
    reason: str

    class Config:
        json_schema_extra = {
            "example": {"amount": "-5.00", "reason": "Duplicate deposit correction"}
        }


class DepositRequest(BaseModel):
    """Deposit of a payment that has already been verified upstream."""
    user_id: str
    amount: Decimal
    payment_reference: str = Field(..., description="Payment provider reference; deposits are idempotent on it")

    class Config:
        json_schema_extra = {
            "example": {
                "user_id": "123e4567-e89b-12d3-a456-426614174002",
                "amount": "100.00",
                "payment_reference": "pi_3Nv0xY2eZvKYlo2C1"
            }
        }


class RefundRequest(BaseModel):
    reason: str


class BalanceChangeResponse(BaseModel):
    transaction_id: int
    user_id: str
    amount: Decimal
    type: str
    new_balance: Decimal
    already_processed: bool


class AuditResponse(BaseModel):
    user_id: str
    ok: bool
    entry_count: int
    replayed_balance: Optional[Decimal] = None
    cached_balance: Decimal
    first_inconsistent_entry: Optional[int] = None
