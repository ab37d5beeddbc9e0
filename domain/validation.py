"""
Domain: Enquiry field validation.

`enquiry_field_errors` inspects a raw field mapping (request body, CSV row, or
the merge of a stored enquiry with an update) and returns *every* violation so
callers can reject the input in one response.
"""

from __future__ import annotations

import math
import re
from enum import Enum
from typing import Any, Iterable, List, Mapping, Type

from email_validator import EmailNotValidError, validate_email

from .enquiry import (
    BusinessModel,
    Category,
    ChannelType,
    EnquiryProfile,
    EnquiryStatus,
    Priority,
    SourceType,
    TypeOfLead,
)

_MOBILE_RE = re.compile(r"^\d{10}$")
_AADHAAR_RE = re.compile(r"^\d{12}$")
_PAN_RE = re.compile(r"^[A-Z]{5}[0-9]{4}[A-Z]$")

LOAN_DOCUMENTS = (
    ("aadhaar_file", "Aadhaar file"),
    ("electricity_bill_file", "Electricity Bill file"),
    ("bank_statement_file", "Bank Statement file"),
    ("pan_file", "PAN file"),
    ("project_proposal_file", "Project Proposal file"),
)


def _blank(value: Any) -> bool:
    return value is None or (isinstance(value, str) and value.strip() == "")


def _as_number(value: Any) -> float | None:
    """Finite float for `value`, or None when it is not a number."""

    if isinstance(value, bool):
        return None
    try:
        number = float(value) if isinstance(value, (int, float)) else float(str(value).strip())
    except ValueError:
        return None
    return number if math.isfinite(number) else None


# (field, label, whole numbers only)
NUMERIC_FIELDS = (
    ("pv_capacity_kw", "PV Capacity (kW)", False),
    ("annual_revenue", "Annual Revenue", False),
    ("employee_count", "Employee Count", True),
)


def _numeric_errors(body: Mapping[str, Any]) -> List[str]:
    """Checked whatever the lead type; every non-blank value must convert."""

    errors: List[str] = []
    for key, label, integral in NUMERIC_FIELDS:
        value = body.get(key)
        if _blank(value):
            continue
        number = _as_number(value)
        if number is None:
            errors.append(f"{label} must be a number")
        elif integral and not number.is_integer():
            errors.append(f"{label} must be a whole number")
    return errors


def _enum_error(value: Any, enum_cls: Type[Enum], label: str) -> str | None:
    if _blank(value):
        return None
    allowed = [member.value for member in enum_cls]
    raw = value.value if isinstance(value, Enum) else value
    if raw not in allowed:
        return f"{label} must be one of: {', '.join(allowed)}"
    return None


def _valid_email(value: str) -> bool:
    try:
        validate_email(value, check_deliverability=False)
    except EmailNotValidError:
        return False
    return True


def enquiry_field_errors(body: Mapping[str, Any]) -> List[str]:
    errors: List[str] = []

    if _blank(body.get("name")):
        errors.append("Name is required")

    mobile = body.get("mobile")
    if _blank(mobile) or not _MOBILE_RE.match(str(mobile)):
        errors.append("Mobile number must be 10 digits")

    email = body.get("email")
    if not _blank(email) and not _valid_email(str(email)):
        errors.append("Invalid email address")

    type_of_lead = body.get("type_of_lead")
    type_value = type_of_lead.value if isinstance(type_of_lead, Enum) else type_of_lead
    if type_value not in (TypeOfLead.B2B.value, TypeOfLead.B2C.value):
        errors.append("Type of Lead (B2B/B2C) is required and must be either B2B or B2C")

    if _blank(body.get("source_type")):
        errors.append("Source Type is required")

    for value, enum_cls, label in (
        (body.get("source_type"), SourceType, "Source Type"),
        (body.get("channel_type"), ChannelType, "Channel Type"),
        (body.get("enquiry_profile"), EnquiryProfile, "Enquiry Profile"),
        (body.get("status"), EnquiryStatus, "Status"),
        (body.get("priority"), Priority, "Priority"),
        (body.get("business_model"), BusinessModel, "Business Model"),
        (body.get("category"), Category, "Category"),
    ):
        message = _enum_error(value, enum_cls, label)
        if message:
            errors.append(message)

    if type_value == TypeOfLead.B2B.value:
        if _blank(body.get("business_model")):
            errors.append("Business Model is required for B2B leads")
        if _blank(body.get("company_name")):
            errors.append("Company Name is required for B2B leads")

    if type_value == TypeOfLead.B2C.value:
        if _blank(body.get("pv_capacity_kw")):
            errors.append("PV Capacity (kW) is required for B2C leads")
        if _blank(body.get("category")):
            errors.append("Category is required for B2C leads")
        aadhaar = body.get("aadhaar_number")
        if not _blank(aadhaar) and not _AADHAAR_RE.match(str(aadhaar)):
            errors.append("Aadhaar Number must be 12 digits")
        pan = body.get("pan_number")
        if not _blank(pan) and not _PAN_RE.match(str(pan)):
            errors.append("PAN Number must be in valid format (e.g., ABCDE1234F)")

    errors.extend(_numeric_errors(body))

    if body.get("need_loan") is True:
        for key, label in LOAN_DOCUMENTS:
            if _blank(body.get(key)):
                errors.append(f"{label} is required for loan enquiries")

    return errors


def require_one_of(value: Any, allowed: Iterable[Enum], label: str) -> List[str]:
    """Single enum check used by the narrow endpoints (status, priority)."""

    if _blank(value):
        return [f"Please provide a {label.lower()}"]
    names = [member.value for member in allowed]
    raw = value.value if isinstance(value, Enum) else value
    if raw not in names:
        return [f"{label} must be one of: {', '.join(names)}"]
    return []


__all__ = ["LOAN_DOCUMENTS", "NUMERIC_FIELDS", "enquiry_field_errors", "require_one_of"]
