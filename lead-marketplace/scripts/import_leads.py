#!/usr/bin/env python3
"""
CSV Lead Import Script

Imports leads from a CSV file into the marketplace database with:
- Masked / full contact split (masked details are shown before purchase)
- Optional per-lead listed price and stored tags
- Row-level validation with an error log
- Summary statistics

Re-importing a row with the same "Lead ID" updates the lead in place;
purchases and ledger entries are never touched.

Usage:
    python import_leads.py path/to/leads.csv
    python import_leads.py path/to/leads.csv --dry-run --error-log errors.json
"""

from __future__ import annotations

import argparse
import csv
import json
import sys
from dataclasses import dataclass, field
from decimal import Decimal, InvalidOperation
from pathlib import Path
from typing import Any, Optional
from uuid import uuid4

# Add parent directory to path to import modules
sys.path.insert(0, str(Path(__file__).parent.parent))

from domain.lead import Lead, LeadStatus
from domain.time import as_utc
from repositories.database import create_engine_from_url, create_session_factory, database_url_from_env
from repositories.ledger_store import LedgerStore

REQUIRED_COLUMNS = {"Created At"}

# Column -> key in the lead's info payloads.
CONTACT_COLUMNS = {
    "First Name": "first_name",
    "Last Name": "last_name",
    "Email": "email",
    "Phone": "phone",
    "City": "city",
    "State": "state",
    "Event Type": "event_type",
    "Event Date": "event_date",
    "Budget": "budget",
    "Notes": "notes",
}

# Keys vendors may see before buying.
MASKED_KEYS = ("city", "state", "event_type", "event_date", "budget")


@dataclass
class ImportResult:
    """Results from a CSV import."""
    total_rows: int = 0
    imported: int = 0
    skipped: int = 0
    errors: list[dict] = field(default_factory=list)


def _get_field(row: dict[str, str], key: str) -> Optional[str]:
    value = (row.get(key) or "").strip()
    return value or None


def split_contact_info(row: dict[str, str]) -> tuple[dict[str, Any], dict[str, Any]]:
    """
    Build the (masked_info, full_info) pair for a CSV row.

    full_info holds every contact column present in the row. masked_info
    holds only the non-identifying keys plus the first name's initial.
    """
    full_info = {
        key: value
        for column, key in CONTACT_COLUMNS.items()
        if (value := _get_field(row, column)) is not None
    }
    masked_info = {key: full_info[key] for key in MASKED_KEYS if key in full_info}
    if "first_name" in full_info:
        masked_info["first_name"] = full_info["first_name"][0] + "***"
    return masked_info, full_info


def create_lead_from_row(row: dict[str, str]) -> Lead:
    """
    Create a Lead domain object from a CSV row.

    Raises:
        ValueError: If a timestamp, price or status cannot be parsed.
    """
    created_at = as_utc(row["Created At"].strip())

    raw_price = _get_field(row, "Price")
    try:
        price = Decimal(raw_price).quantize(Decimal("0.01")) if raw_price else Decimal("0.00")
    except InvalidOperation:
        raise ValueError(f"Invalid price: {raw_price!r}") from None

    raw_status = _get_field(row, "Status")
    status = LeadStatus(raw_status.upper()) if raw_status else LeadStatus.AVAILABLE

    raw_tags = _get_field(row, "Tags")
    tags = tuple(tag.strip() for tag in raw_tags.split(";") if tag.strip()) if raw_tags else ()

    raw_response = _get_field(row, "Last Client Response")
    masked_info, full_info = split_contact_info(row)

    return Lead(
        lead_id=_get_field(row, "Lead ID") or str(uuid4()),
        status=status,
        price=price,
        active=(_get_field(row, "Active") or "true").lower() not in ("false", "0", "no"),
        created_at=created_at,
        masked_info=masked_info,
        full_info=full_info,
        tags=tags,
        last_client_response=as_utc(raw_response) if raw_response else None,
    )


def import_csv(csv_path: str, store: Optional[LedgerStore], dry_run: bool = False) -> ImportResult:
    """
    Import leads from a CSV file.

    Args:
        csv_path: Path to the CSV file
        store: Destination store (may be None for a dry run)
        dry_run: If True, parse and validate but don't write

    Raises:
        FileNotFoundError: If the CSV file doesn't exist
        ValueError: If the CSV is empty or missing required columns
    """
    csv_file = Path(csv_path)
    if not csv_file.exists():
        raise FileNotFoundError(f"CSV file not found: {csv_path}")

    result = ImportResult()

    with open(csv_file, "r", encoding="utf-8-sig", newline="") as f:
        reader = csv.DictReader(f)

        if not reader.fieldnames:
            raise ValueError("CSV file is empty or malformed")

        missing_columns = REQUIRED_COLUMNS - set(reader.fieldnames)
        if missing_columns:
            raise ValueError(f"CSV missing required columns: {', '.join(sorted(missing_columns))}")

        for row_num, row in enumerate(reader, start=2):  # Row 1 is header
            result.total_rows += 1

            if not _get_field(row, "Created At"):
                result.skipped += 1
                result.errors.append({"row_num": row_num, "error": "Missing required field: Created At"})
                continue

            try:
                lead = create_lead_from_row(row)
            except ValueError as e:
                result.skipped += 1
                result.errors.append({"row_num": row_num, "error": str(e)})
                continue

            if not dry_run and store is not None:
                store.upsert_lead(lead)
            result.imported += 1

    return result


def print_summary(result: ImportResult) -> None:
    """Print import summary statistics."""
    print()
    print("=" * 60)
    print("IMPORT SUMMARY")
    print("=" * 60)
    print(f"Total Rows:       {result.total_rows}")
    print(f"Imported:         {result.imported}")
    print(f"Skipped:          {result.skipped}")

    if result.errors:
        print()
        print("First 5 errors:")
        for error in result.errors[:5]:
            print(f"  - Row {error['row_num']}: {error['error']}")
        if len(result.errors) > 5:
            print(f"  ... and {len(result.errors) - 5} more")

    print("=" * 60)


def main() -> int:
    """Main entry point for the CLI."""
    parser = argparse.ArgumentParser(description="Import leads from CSV into the marketplace database")
    parser.add_argument("csv_path", help="Path to the CSV file to import")
    parser.add_argument("--dry-run", action="store_true", help="Parse and validate without writing")
    parser.add_argument(
        "--error-log",
        default="import_errors.json",
        help="Path to save error log (default: import_errors.json)",
    )
    args = parser.parse_args()

    try:
        store = None
        if not args.dry_run:
            engine = create_engine_from_url(database_url_from_env())
            store = LedgerStore(create_session_factory(engine))

        result = import_csv(args.csv_path, store, dry_run=args.dry_run)
        print_summary(result)

        if result.errors:
            with open(args.error_log, "w", encoding="utf-8") as f:
                json.dump(result.errors, f, indent=2, default=str)
            print(f"\nError log saved to: {args.error_log}")
            return 1
        return 0

    except KeyboardInterrupt:
        print("\n\nImport interrupted by user")
        return 130

    except (OSError, ValueError) as e:
        print(f"\nFATAL ERROR: {e}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    sys.exit(main())
