"""
CSV export service for enquiries.

Generates CSV files of enquiry details for download or offline review, plus the
blank import template.

Security:
- CSV Injection Prevention: Sanitizes all free-text fields to prevent formula execution
- Security Logging: Logs when dangerous characters are stripped
"""

from __future__ import annotations

import csv
import logging
from io import StringIO
from typing import List, Mapping, Optional, Sequence
from uuid import UUID

from domain.enquiry import Enquiry

logger = logging.getLogger(__name__)


EXPORT_COLUMNS = [
    "Enquiry ID",
    "Name",
    "Mobile",
    "Email",
    "Type of Lead",
    "Source Type",
    "Channel Type",
    "Enquiry Profile",
    "Status",
    "Stage",
    "Priority",
    "Assigned To",
    "Created At",
    "Response Due",
    "Resolution Due",
    "Category",
    "Company Name",
    "Location",
    "State",
    "District",
    "Pincode",
    "Last Remark",
]

# Column order of the bulk-import template (see scripts/import_enquiries.py).
TEMPLATE_COLUMNS = [
    "name",
    "mobile",
    "email",
    "type_of_lead",
    "business_model",
    "company_name",
    "pv_capacity_kw",
    "category",
    "annual_revenue",
    "employee_count",
    "project_location",
    "pincode",
    "state",
    "district",
    "source_type",
    "enquiry_profile",
    "priority",
    "need_loan",
]

TEMPLATE_EXAMPLE = {
    "type_of_lead": "B2C",
    "business_model": "Capex",
    "category": "Residential",
    "source_type": "Website",
    "enquiry_profile": "Project",
    "priority": "MEDIUM",
    "need_loan": "false",
}


def sanitize_csv_field(value: str | None, field_name: str = "unknown") -> str:
    """
    Sanitize field to prevent CSV injection attacks with security logging.

    Strips leading characters that can trigger formula execution in Excel/Sheets:
    =, +, -, @, tab, carriage return

    If dangerous characters are found and stripped, a warning is logged for
    security monitoring.

    Example:
        sanitize_csv_field("=1+1", "name")
        # Returns "1+1" and logs warning about stripped "=" character

        sanitize_csv_field("Normal Name", "name")
        # Returns "Normal Name" (unchanged, no logging)
    """
    if value is None or value == "":
        return ""

    text = str(value).strip()
    original_text = text
    dangerous_chars = {'=', '+', '-', '@', '\t', '\r'}

    # Strip dangerous leading characters
    stripped_chars = []
    while text and text[0] in dangerous_chars:
        stripped_chars.append(text[0])
        text = text[1:]

    if stripped_chars:
        logger.warning(
            f"CSV injection character(s) stripped from field '{field_name}'",
            extra={
                "field_name": field_name,
                "stripped_characters": "".join(stripped_chars),
                "original_value": original_text[:100],  # First 100 chars
                "sanitized_value": text[:100],
                "modification_type": "csv_injection_prevention"
            }
        )

    return text


def _enum_text(member) -> str:
    return member.value if member is not None else ""


def _iso(value) -> str:
    return value.isoformat() if value is not None else ""


def enquiry_to_csv_row(enquiry: Enquiry, assignee_name: Optional[str] = None) -> List[str]:
    last_remark = enquiry.remarks[-1].text if enquiry.remarks else None
    return [
        enquiry.enquiry_code,
        sanitize_csv_field(enquiry.name, "name"),
        sanitize_csv_field(enquiry.mobile, "mobile"),
        sanitize_csv_field(enquiry.email, "email"),
        enquiry.type_of_lead.value,
        enquiry.source_type.value,
        enquiry.channel_type.value,
        enquiry.enquiry_profile.value,
        enquiry.status.value,
        enquiry.stage.value,
        enquiry.priority.value,
        sanitize_csv_field(assignee_name, "assigned_to"),
        _iso(enquiry.created_at),
        _iso(enquiry.response_due),
        _iso(enquiry.resolution_due),
        _enum_text(enquiry.category),
        sanitize_csv_field(enquiry.company_name, "company_name"),
        sanitize_csv_field(enquiry.project_location, "project_location"),
        sanitize_csv_field(enquiry.state, "state"),
        sanitize_csv_field(enquiry.district, "district"),
        sanitize_csv_field(enquiry.pincode, "pincode"),
        sanitize_csv_field(last_remark, "remarks"),
    ]


def generate_enquiries_csv(
    enquiries: Sequence[Enquiry],
    assignee_names: Optional[Mapping[UUID, str]] = None,
) -> str:
    """
    Generate CSV content (header + one row per enquiry).

    `assignee_names` maps user ids to display names; unknown ids fall back to
    the raw id.
    """
    names = assignee_names or {}
    output = StringIO()
    writer = csv.writer(output)
    writer.writerow(EXPORT_COLUMNS)
    for enquiry in enquiries:
        name = None
        if enquiry.assigned_to is not None:
            name = names.get(enquiry.assigned_to, str(enquiry.assigned_to))
        writer.writerow(enquiry_to_csv_row(enquiry, name))
    return output.getvalue()


def generate_import_template() -> str:
    output = StringIO()
    writer = csv.writer(output)
    writer.writerow(TEMPLATE_COLUMNS)
    writer.writerow([TEMPLATE_EXAMPLE.get(column, "") for column in TEMPLATE_COLUMNS])
    return output.getvalue()


__all__ = [
    "EXPORT_COLUMNS",
    "TEMPLATE_COLUMNS",
    "enquiry_to_csv_row",
    "generate_enquiries_csv",
    "generate_import_template",
    "sanitize_csv_field",
]
