#!/usr/bin/env python3
"""
Enquiry Export Script

Exports enquiries from the Supabase database to CSV for offline review.
Free-text fields are sanitized against CSV formula injection.

Usage:
    python export_enquiries.py --output enquiries.csv
    python export_enquiries.py --status New --priority HIGH --output urgent.csv
    python export_enquiries.py --unassigned --output unassigned.csv
"""

from __future__ import annotations

import argparse
import csv
import sys
from io import StringIO
from pathlib import Path
from uuid import UUID

# Add parent directory to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from domain.enquiry import EnquiryStatus, Priority, SourceType
from domain.user import CurrentUser, Role
from repositories.client import get_supabase_client
from repositories.enquiry_repository import EnquiryFilters
from services.context import build_context
from services.enquiry_service import EnquiryService


def main() -> int:
    """Main entry point for the CLI."""
    parser = argparse.ArgumentParser(
        description="Export enquiries from Supabase database to CSV",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Export all enquiries
  python export_enquiries.py --output all_enquiries.csv

  # Export only converted enquiries
  python export_enquiries.py --status Converted --output converted.csv

  # Export unassigned website enquiries
  python export_enquiries.py --source Website --unassigned --output website_open.csv
        """
    )

    parser.add_argument(
        "--output",
        "-o",
        required=True,
        help="Path to output CSV file"
    )

    parser.add_argument(
        "--status",
        choices=[s.value for s in EnquiryStatus],
        help="Filter by status"
    )

    parser.add_argument(
        "--priority",
        choices=[p.value for p in Priority],
        help="Filter by priority"
    )

    parser.add_argument(
        "--source",
        choices=[s.value for s in SourceType],
        help="Filter by source type"
    )

    parser.add_argument(
        "--assigned-to",
        type=UUID,
        help="Filter by assignee user id"
    )

    parser.add_argument(
        "--unassigned",
        action="store_true",
        help="Only enquiries without an assignee"
    )

    args = parser.parse_args()

    filters = EnquiryFilters(
        statuses=[EnquiryStatus(args.status)] if args.status else None,
        priority=Priority(args.priority) if args.priority else None,
        source_type=SourceType(args.source) if args.source else None,
        assigned_to=args.assigned_to,
        unassigned_only=args.unassigned,
    )

    try:
        print("Fetching enquiries from database...")
        print(f"  Status filter:   {args.status or 'None (all)'}")
        print(f"  Priority filter: {args.priority or 'None (all)'}")
        print(f"  Source filter:   {args.source or 'None (all)'}")
        print()

        service = EnquiryService(build_context(get_supabase_client()))
        # Exports from the command line run with full visibility.
        actor = CurrentUser(id=UUID(int=0), role=Role.ADMIN.value)
        csv_content = service.export_enquiries(actor, filters)

        rows = len(list(csv.reader(StringIO(csv_content)))) - 1
        if rows <= 0:
            print("No enquiries found matching the specified filters")
            return 1

        with open(args.output, "w", newline="", encoding="utf-8") as f:
            f.write(csv_content)

        print("=" * 60)
        print("EXPORT SUMMARY")
        print("=" * 60)
        print(f"Total enquiries exported: {rows}")
        print(f"Output file: {args.output}")
        print("=" * 60)

        return 0

    except KeyboardInterrupt:
        print("\n\nExport interrupted by user")
        return 130

    except Exception as e:
        print(f"\nERROR: {e}", file=sys.stderr)
        import traceback
        traceback.print_exc()
        return 1


if __name__ == "__main__":
    sys.exit(main())
