#!/usr/bin/env python3
"""
Ledger audit script.

Replays every vendor's ledger (or a single vendor's) and compares the result
with the cached balance. Exits non-zero if any account is inconsistent.

Usage:
    python audit_ledger.py
    python audit_ledger.py --user-id 123e4567-e89b-12d3-a456-426614174002
"""

from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path

# Add parent directory to path to import modules
sys.path.insert(0, str(Path(__file__).parent.parent))

from domain.errors import NotFoundError
from domain.transaction import LedgerAudit
from repositories.database import create_engine_from_url, create_session_factory, database_url_from_env
from repositories.ledger_store import LedgerStore
from services.ledger_service import LeadLedger
from services.notification_service import NullNotifier
from services.pricing_service import pricing_from_settings
from services.settings import LedgerSettings


def audit_all(ledger: LeadLedger, user_ids: list[str]) -> list[LedgerAudit]:
    return [ledger.audit_vendor(user_id) for user_id in user_ids]


def print_report(audits: list[LedgerAudit]) -> None:
    """Print one line per vendor plus a summary."""
    print("=" * 60)
    print("LEDGER AUDIT")
    print("=" * 60)

    for audit in audits:
        if audit.ok:
            print(f"[OK]    {audit.user_id}  entries={audit.entry_count}  balance=${audit.cached_balance:.2f}")
        elif audit.first_inconsistent_entry is not None:
            print(
                f"[ERROR] {audit.user_id}  entry {audit.first_inconsistent_entry} "
                f"does not match the running balance"
            )
        else:
            print(
                f"[ERROR] {audit.user_id}  replayed=${audit.replayed_balance:.2f} "
                f"cached=${audit.cached_balance:.2f}"
            )

    broken = sum(1 for audit in audits if not audit.ok)
    print("=" * 60)
    print(f"Vendors audited:  {len(audits)}")
    print(f"Inconsistent:     {broken}")
    print("=" * 60)


def main() -> int:
    parser = argparse.ArgumentParser(description="Audit vendor ledgers against cached balances")
    parser.add_argument("--user-id", help="Audit a single vendor")
    args = parser.parse_args()

    logging.basicConfig(level=logging.WARNING, format="%(levelname)s %(name)s: %(message)s")

    settings = LedgerSettings.from_env()
    engine = create_engine_from_url(database_url_from_env())
    store = LedgerStore(create_session_factory(engine))
    ledger = LeadLedger(store, pricing_from_settings(settings), NullNotifier(), settings)

    user_ids = [args.user_id] if args.user_id else store.list_vendor_ids()
    try:
        audits = audit_all(ledger, user_ids)
    except NotFoundError as e:
        print(f"[ERROR] {e.message}: {args.user_id}", file=sys.stderr)
        return 1
    print_report(audits)

    return 0 if all(audit.ok for audit in audits) else 1


if __name__ == "__main__":
    sys.exit(main())
