"""
API dependencies.

Composition root for the HTTP layer: the engine, store and ledger are built
once per process from the environment and handed to routes through FastAPI's
dependency injection. Tests replace `get_ledger` / `get_notification_client`
with `app.dependency_overrides`.
"""

from __future__ import annotations

import logging
from functools import lru_cache
from typing import Any, Optional

from fastapi import Depends, Header, HTTPException

from domain.vendor import VendorAccount
from repositories.client import get_supabase, supabase_configured
from repositories.database import create_engine_from_url, create_session_factory, database_url_from_env
from repositories.ledger_store import LedgerStore
from services.ledger_service import LeadLedger
from services.notification_service import Notifier, NullNotifier, SupabaseNotifier
from services.pricing_service import pricing_from_settings
from services.settings import LedgerSettings

logger = logging.getLogger(__name__)


def _build_notifier() -> Notifier:
    if supabase_configured():
        return SupabaseNotifier(get_supabase)
    logger.info("Supabase not configured; notifications are disabled")
    return NullNotifier()


@lru_cache(maxsize=1)
def get_ledger() -> LeadLedger:
    """Process-wide ledger wired from environment configuration."""

    settings = LedgerSettings.from_env()
    engine = create_engine_from_url(database_url_from_env())
    store = LedgerStore(create_session_factory(engine))
    return LeadLedger(
        store=store,
        pricing=pricing_from_settings(settings),
        notifier=_build_notifier(),
        settings=settings,
    )


def get_store(ledger: LeadLedger = Depends(get_ledger)) -> LedgerStore:
    return ledger.store


def get_notification_client() -> Optional[Any]:
    """Supabase client for reading notifications, or None when not configured."""

    if not supabase_configured():
        return None
    return get_supabase()


def get_current_vendor(
    x_user_id: Optional[str] = Header(default=None),
    store: LedgerStore = Depends(get_store),
) -> VendorAccount:
    """
    Resolve the calling vendor from the X-User-Id header.

    The header is set by the identity layer in front of this API; it is
    trusted as given.
    """

    if not x_user_id:
        raise HTTPException(status_code=401, detail="Missing X-User-Id header")

    vendor = store.get_vendor(x_user_id)
    if vendor is None:
        raise HTTPException(status_code=401, detail="Unknown user")
    return vendor


def require_admin(vendor: VendorAccount = Depends(get_current_vendor)) -> VendorAccount:
    if not vendor.is_admin:
        raise HTTPException(status_code=403, detail="Admin access required")
    return vendor
