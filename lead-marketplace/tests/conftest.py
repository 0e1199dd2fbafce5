"""
Pytest configuration and shared fixtures.

This file adds the parent directory to the Python path so that tests
can import from the domain, repositories, services and api modules.

Storage fixtures use a SQLite file under tmp_path (not :memory:) so that
threads in the concurrency tests each get their own connection to the same
database.
"""

import sys
import threading
from datetime import datetime, timezone
from decimal import Decimal
from pathlib import Path

import pytest

# Add the lead-marketplace directory to the Python path
# so tests can import domain, repositories, etc.
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

from domain.lead import Lead, LeadStatus  # noqa: E402
from repositories.database import create_all, create_engine_from_url, create_session_factory  # noqa: E402
from repositories.ledger_store import LedgerStore  # noqa: E402
from services.ledger_service import LeadLedger  # noqa: E402
from services.pricing_service import pricing_from_settings  # noqa: E402
from services.settings import LedgerSettings  # noqa: E402


class RecordingNotifier:
    """Notifier that keeps every notification in memory."""

    def __init__(self):
        self.sent = []
        self._lock = threading.Lock()

    def notify(self, user_id, kind, title, body, metadata=None):
        with self._lock:
            self.sent.append(
                {"user_id": user_id, "kind": kind, "title": title, "body": body, "metadata": metadata}
            )

    def kinds(self):
        return [n["kind"] for n in self.sent]


@pytest.fixture
def engine(tmp_path):
    engine = create_engine_from_url(f"sqlite:///{tmp_path / 'ledger.db'}")
    create_all(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def store(engine):
    return LedgerStore(create_session_factory(engine))


@pytest.fixture
def notifier():
    return RecordingNotifier()


@pytest.fixture
def settings():
    return LedgerSettings()


@pytest.fixture
def ledger(store, notifier, settings):
    return LeadLedger(store, pricing_from_settings(settings), notifier, settings)


@pytest.fixture
def make_lead(store):
    """Factory: insert a lead and return it."""

    def _make_lead(
        lead_id="lead-1",
        status=LeadStatus.AVAILABLE,
        price=Decimal("20.00"),
        created_at=None,
        **kwargs,
    ):
        lead = Lead(
            lead_id=lead_id,
            status=status,
            price=price,
            active=kwargs.pop("active", True),
            created_at=created_at or datetime(2025, 1, 1, tzinfo=timezone.utc),
            masked_info=kwargs.pop("masked_info", {"city": "Austin", "first_name": "J***"}),
            full_info=kwargs.pop("full_info", {"first_name": "Jane", "phone": "555-0100"}),
            **kwargs,
        )
        store.upsert_lead(lead)
        return lead

    return _make_lead


@pytest.fixture
def make_vendor(store, ledger):
    """
    Factory: create a vendor, fund it through a ledger deposit, and return the
    refreshed account.
    """

    counter = {"n": 0}

    def _make_vendor(balance="0.00", vendor_type=None, is_admin=False, email=None):
        counter["n"] += 1
        vendor = store.add_vendor(
            email or f"vendor{counter['n']}@example.com",
            vendor_type=vendor_type,
            is_admin=is_admin,
        )
        amount = Decimal(balance)
        if amount > 0:
            ledger.deposit(vendor.user_id, amount, f"seed:{vendor.user_id}")
        return store.get_vendor(vendor.user_id)

    return _make_vendor
