"""
Create demo vendor and admin accounts for testing and demos.

This script creates the accounts used by the frontend demo:
- Vendor ID: 123e4567-e89b-12d3-a456-426614174002 (Photographer, demo@example.com)
- Admin ID:  123e4567-e89b-12d3-a456-426614174009 (admin@example.com)

The demo vendor starts with a balance funded through a ledger deposit, so its
ledger audits clean like any real account.
"""

import argparse
import sys
from decimal import Decimal
from pathlib import Path

# Add parent directory to path so we can import from repositories
sys.path.insert(0, str(Path(__file__).parent.parent))

from repositories.database import create_all, create_engine_from_url, create_session_factory, database_url_from_env
from repositories.ledger_store import LedgerStore
from services.ledger_service import LeadLedger
from services.notification_service import NullNotifier
from services.pricing_service import pricing_from_settings
from services.settings import LedgerSettings

DEMO_VENDOR_ID = "123e4567-e89b-12d3-a456-426614174002"
DEMO_ADMIN_ID = "123e4567-e89b-12d3-a456-426614174009"


def create_demo_accounts(ledger: LeadLedger, starting_balance: Decimal) -> None:
    """Create or top up the demo accounts."""

    store = ledger.store

    if store.get_vendor(DEMO_ADMIN_ID) is None:
        store.add_vendor("admin@example.com", business_name="Marketplace Admin", is_admin=True, user_id=DEMO_ADMIN_ID)
        print(f"[SUCCESS] Demo admin created: {DEMO_ADMIN_ID}")
    else:
        print(f"Demo admin already exists: {DEMO_ADMIN_ID}")

    if store.get_vendor(DEMO_VENDOR_ID) is None:
        store.add_vendor(
            "demo@example.com",
            vendor_type="Photographer",
            business_name="Demo Photography",
            user_id=DEMO_VENDOR_ID,
        )
        print(f"[SUCCESS] Demo vendor created: {DEMO_VENDOR_ID}")
    else:
        print(f"Demo vendor already exists: {DEMO_VENDOR_ID}")

    # Keyed deposit: re-running the script never credits twice.
    change = ledger.deposit(DEMO_VENDOR_ID, starting_balance, f"demo-seed:{DEMO_VENDOR_ID}")
    if change.already_processed:
        print(f"  Starting balance already credited. Balance: ${change.new_balance:.2f}")
    else:
        print(f"  Credited ${starting_balance:.2f}. Balance: ${change.new_balance:.2f}")


def main() -> int:
    parser = argparse.ArgumentParser(description="Create demo vendor and admin accounts")
    parser.add_argument("--balance", type=Decimal, default=Decimal("100.00"), help="Starting balance (default: 100.00)")
    args = parser.parse_args()

    settings = LedgerSettings.from_env()
    engine = create_engine_from_url(database_url_from_env())
    create_all(engine)
    ledger = LeadLedger(
        store=LedgerStore(create_session_factory(engine)),
        pricing=pricing_from_settings(settings),
        notifier=NullNotifier(),
        settings=settings,
    )

    create_demo_accounts(ledger, args.balance)
    return 0


if __name__ == "__main__":
    sys.exit(main())
