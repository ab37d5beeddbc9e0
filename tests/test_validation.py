"""
Tests for `domain/validation.py`.

Covers contract rules:
- Every violation is reported, not just the first.
- B2B and B2C have their own required fields.
- Loan enquiries need all five documents.
- Numeric fields must convert whatever the lead type.
"""

from __future__ import annotations

from domain.enquiry import EnquiryStatus
from domain.validation import enquiry_field_errors, require_one_of
from tests.fakes import enquiry_body


def test_valid_b2c_body_has_no_errors() -> None:
    assert enquiry_field_errors(enquiry_body()) == []


def test_collects_every_error() -> None:
    errors = enquiry_field_errors({"mobile": "12345", "email": "not-an-email"})
    assert "Name is required" in errors
    assert "Mobile number must be 10 digits" in errors
    assert "Invalid email address" in errors
    assert "Type of Lead (B2B/B2C) is required and must be either B2B or B2C" in errors
    assert "Source Type is required" in errors


def test_b2b_requires_business_model_and_company() -> None:
    errors = enquiry_field_errors(enquiry_body(type_of_lead="B2B", pv_capacity_kw=None, category=None))
    assert "Business Model is required for B2B leads" in errors
    assert "Company Name is required for B2B leads" in errors
    assert not any("PV Capacity" in e for e in errors)


def test_b2c_requires_capacity_and_category() -> None:
    errors = enquiry_field_errors(enquiry_body(pv_capacity_kw=None, category=None))
    assert "PV Capacity (kW) is required for B2C leads" in errors
    assert "Category is required for B2C leads" in errors


def test_b2c_identity_number_formats() -> None:
    errors = enquiry_field_errors(enquiry_body(aadhaar_number="1234", pan_number="abcde1234f"))
    assert "Aadhaar Number must be 12 digits" in errors
    assert "PAN Number must be in valid format (e.g., ABCDE1234F)" in errors
    assert enquiry_field_errors(enquiry_body(aadhaar_number="123412341234", pan_number="ABCDE1234F")) == []


def test_loan_enquiry_needs_all_documents() -> None:
    errors = enquiry_field_errors(enquiry_body(need_loan=True, pan_file="pan.pdf"))
    assert len([e for e in errors if e.endswith("is required for loan enquiries")]) == 4
    assert "PAN file is required for loan enquiries" not in errors


def test_numeric_fields_checked_for_every_lead_type() -> None:
    b2c = enquiry_field_errors(enquiry_body(annual_revenue="ten lakh"))
    assert b2c == ["Annual Revenue must be a number"]

    b2b = enquiry_body(
        type_of_lead="B2B", business_model="Capex", company_name="Acme", category=None, pv_capacity_kw="n/a"
    )
    assert enquiry_field_errors(b2b) == ["PV Capacity (kW) must be a number"]


def test_employee_count_must_be_whole() -> None:
    assert enquiry_field_errors(enquiry_body(employee_count="12.7")) == ["Employee Count must be a whole number"]
    assert enquiry_field_errors(enquiry_body(employee_count="12")) == []
    assert enquiry_field_errors(enquiry_body(employee_count=12.0)) == []


def test_non_finite_numbers_are_rejected() -> None:
    errors = enquiry_field_errors(enquiry_body(pv_capacity_kw="nan", annual_revenue=True))
    assert "PV Capacity (kW) must be a number" in errors
    assert "Annual Revenue must be a number" in errors


def test_enum_values_are_checked() -> None:
    errors = enquiry_field_errors(enquiry_body(source_type="Billboard", priority="URGENT"))
    assert any(e.startswith("Source Type must be one of:") for e in errors)
    assert any(e.startswith("Priority must be one of:") for e in errors)


def test_require_one_of() -> None:
    assert require_one_of(None, EnquiryStatus, "Status") == ["Please provide a status"]
    assert require_one_of("Converted", EnquiryStatus, "Status") == []
    assert require_one_of("Won", EnquiryStatus, "Status")[0].startswith("Status must be one of:")
