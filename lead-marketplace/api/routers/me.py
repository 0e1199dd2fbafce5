"""
Account API Endpoints.

Read-only views of the calling vendor's account: balance, ledger history,
purchases and in-app notifications.
"""

from typing import Any, List, Optional

from fastapi import APIRouter, Depends, Query

from api.dependencies import get_current_vendor, get_notification_client, get_store
from api.models import NotificationResponse, PurchaseSummary, TransactionResponse, VendorResponse
from domain.vendor import VendorAccount
from repositories.ledger_store import LedgerStore
from repositories.notification_repository import list_notifications

router = APIRouter()


@router.get("/me", response_model=VendorResponse, summary="Current Account")
def get_account(vendor: VendorAccount = Depends(get_current_vendor)):
    """Account details and the cached balance."""
    return VendorResponse(
        user_id=vendor.user_id,
        email=vendor.email,
        balance=vendor.balance,
        vendor_type=vendor.vendor_type,
        business_name=vendor.business_name,
        is_admin=vendor.is_admin,
    )


@router.get(
    "/me/transactions",
    response_model=List[TransactionResponse],
    summary="Transaction History",
)
def list_transactions(
    limit: int = Query(50, ge=1, le=500, description="Maximum number of entries"),
    vendor: VendorAccount = Depends(get_current_vendor),
    store: LedgerStore = Depends(get_store),
):
    """
    Ledger entries for the calling vendor, newest first.

    Every balance change (purchase, deposit, refund, adjustment, feedback
    reward) appears here with the balance right after it.
    """
    entries = store.list_entries(vendor.user_id)
    entries.reverse()
    return [
        TransactionResponse(
            id=entry.entry_id,
            amount=entry.amount,
            type=entry.type.value,
            balance_after=entry.balance_after,
            description=entry.description,
            metadata=dict(entry.metadata),
            created_at=entry.created_at,
        )
        for entry in entries[:limit]
    ]


@router.get("/me/purchases", response_model=List[PurchaseSummary], summary="Purchased Leads")
def list_purchases(
    vendor: VendorAccount = Depends(get_current_vendor),
    store: LedgerStore = Depends(get_store),
):
    return [
        PurchaseSummary(
            purchase_id=purchase.purchase_id,
            lead_id=purchase.lead_id,
            amount_paid=purchase.amount_paid,
            purchased_at=purchase.purchased_at,
        )
        for purchase in store.list_purchases(vendor.user_id)
    ]


@router.get(
    "/me/notifications",
    response_model=List[NotificationResponse],
    summary="Notifications",
)
def get_notifications(
    unread_only: bool = False,
    limit: int = Query(20, ge=1, le=100),
    vendor: VendorAccount = Depends(get_current_vendor),
    client: Optional[Any] = Depends(get_notification_client),
):
    """
    Most recent in-app notifications, newest first.

    Returns an empty list when no notification backend is configured.
    """
    if client is None:
        return []

    records = list_notifications(client, vendor.user_id, unread_only=unread_only, limit=limit)
    return [
        NotificationResponse(
            id=record.notification_id,
            type=record.type,
            title=record.title,
            body=record.body,
            link_url=record.link_url,
            created_at=record.created_at,
            read=record.read_at is not None,
        )
        for record in records
    ]
