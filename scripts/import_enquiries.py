#!/usr/bin/env python3
"""
CSV Enquiry Import Script

Imports enquiries from a CSV file (same columns as the import template) into
the Supabase database:
- Every row is validated before anything is written
- Any invalid row aborts the whole import (nothing is inserted)
- Imported enquiries get channel "Bulk Upload", SLA deadlines and codes

Usage:
    python import_enquiries.py path/to/enquiries.csv --actor-id <uuid>
    python import_enquiries.py path/to/enquiries.csv --actor-id <uuid> --dry-run
    python import_enquiries.py --template > enquiry_template.csv
"""

from __future__ import annotations

import argparse
import csv
import json
import logging
import sys
from pathlib import Path
from typing import Any, Dict, List
from uuid import UUID

# Add parent directory to path to import modules
sys.path.insert(0, str(Path(__file__).parent.parent))

from domain.errors import ImportAbortedError, ValidationError
from domain.sla import DEFAULT_SLA_CONFIG
from domain.user import CurrentUser, Role
from domain.validation import enquiry_field_errors
from repositories.client import get_supabase_client
from services.context import build_context
from services.csv_export_service import TEMPLATE_COLUMNS, generate_import_template
from services.enquiry_service import EnquiryService, normalise_input


def read_rows(csv_path: str) -> List[Dict[str, Any]]:
    """
    Read a CSV file into a list of row dictionaries.

    Blank cells are dropped so optional fields fall back to their defaults.

    Raises:
        FileNotFoundError: If CSV file doesn't exist
        ValueError: If CSV has no header or misses the required columns
    """
    csv_file = Path(csv_path)
    if not csv_file.exists():
        raise FileNotFoundError(f"CSV file not found: {csv_path}")

    with open(csv_file, "r", encoding="utf-8-sig") as f:
        reader = csv.DictReader(f)

        if not reader.fieldnames:
            raise ValueError("CSV file is empty or malformed")

        required_columns = {"name", "mobile", "type_of_lead", "source_type"}
        missing_columns = required_columns - set(reader.fieldnames)
        if missing_columns:
            raise ValueError(
                f"CSV missing required columns: {', '.join(sorted(missing_columns))}"
            )

        unknown = set(reader.fieldnames) - set(TEMPLATE_COLUMNS)
        if unknown:
            print(f"Ignoring unknown columns: {', '.join(sorted(unknown))}")

        return [
            {key: value for key, value in row.items() if key and value not in (None, "")}
            for row in reader
        ]


def validate_rows(rows: List[Dict[str, Any]]) -> List[dict]:
    """Dry-run validation; same row numbering as the real import."""
    errors = []
    for row_num, row in enumerate(rows, start=2):  # Row 1 is header
        problems = enquiry_field_errors(normalise_input(row))
        if problems:
            errors.append({"row": row_num, "errors": problems})
    return errors


def print_summary(total: int, imported: int, errors: List[dict]) -> None:
    """Print import summary statistics."""
    print()
    print("=" * 60)
    print("IMPORT SUMMARY")
    print("=" * 60)
    print(f"Total Rows:       {total}")
    print(f"Imported:         {imported}")
    print(f"Rejected Rows:    {len(errors)}")
    print()

    if errors:
        print("First 5 errors:")
        for error in errors[:5]:
            print(f"  - Row {error['row']}: {', '.join(error['errors'])}")
        if len(errors) > 5:
            print(f"  ... and {len(errors) - 5} more")
    else:
        print("No errors!")

    print("=" * 60)


def save_error_log(errors: List[dict], output_path: str) -> None:
    """Save error details to JSON file."""
    if not errors:
        return

    with open(output_path, "w", encoding="utf-8") as f:
        json.dump(errors, f, indent=2, default=str)

    print(f"\nError log saved to: {output_path}")


def main() -> int:
    """Main entry point for the CLI."""
    parser = argparse.ArgumentParser(
        description="Import enquiries from CSV into Supabase database",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Write the blank template
  python import_enquiries.py --template > enquiry_template.csv

  # Validate only
  python import_enquiries.py enquiries.csv --actor-id <uuid> --dry-run

  # Import and save rejected rows to a custom path
  python import_enquiries.py enquiries.csv --actor-id <uuid> --error-log errors.json
        """
    )

    parser.add_argument(
        "csv_path",
        nargs="?",
        help="Path to the CSV file to import"
    )

    parser.add_argument(
        "--actor-id",
        type=UUID,
        help="User id recorded as creator of the imported enquiries"
    )

    parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Validate CSV without inserting to database"
    )

    parser.add_argument(
        "--template",
        action="store_true",
        help="Print the import template CSV and exit"
    )

    parser.add_argument(
        "--error-log",
        default="import_errors.json",
        help="Path for the JSON error log (default: import_errors.json)"
    )

    parser.add_argument(
        "--log-level",
        default="INFO",
        help="Logging level (default: INFO)"
    )

    args = parser.parse_args()
    logging.basicConfig(level=args.log_level.upper())

    if args.template:
        sys.stdout.write(generate_import_template())
        return 0

    if not args.csv_path:
        parser.error("csv_path is required unless --template is given")

    try:
        rows = read_rows(args.csv_path)
        print(f"Read {len(rows)} rows from {args.csv_path}")

        if args.dry_run:
            errors = validate_rows(rows)
            print_summary(len(rows), 0, errors)
            save_error_log(errors, args.error_log)
            return 1 if errors else 0

        if args.actor_id is None:
            parser.error("--actor-id is required to import")

        service = EnquiryService(build_context(get_supabase_client()))
        actor = CurrentUser(id=args.actor_id, role=Role.ADMIN.value)
        created = service.import_enquiries(rows, actor, DEFAULT_SLA_CONFIG)
        print_summary(len(rows), len(created), [])
        return 0

    except ImportAbortedError as e:
        print_summary(len(rows), 0, e.details)
        save_error_log(e.details, args.error_log)
        return 1

    except (ValidationError, FileNotFoundError, ValueError) as e:
        print(f"\nERROR: {e}", file=sys.stderr)
        return 1

    except KeyboardInterrupt:
        print("\n\nImport interrupted by user")
        return 130


if __name__ == "__main__":
    sys.exit(main())
