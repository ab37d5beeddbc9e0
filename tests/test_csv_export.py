"""
Tests for `services/csv_export_service.py`.

Covers:
- Formula-triggering leading characters are stripped from free text.
- Assignees are exported by name, falling back to the raw id.
- The import template header matches what the importer reads.
"""

from __future__ import annotations

import csv
import logging
from io import StringIO

import pytest

from services.csv_export_service import (
    EXPORT_COLUMNS,
    TEMPLATE_COLUMNS,
    generate_enquiries_csv,
    generate_import_template,
    sanitize_csv_field,
)
from tests.fakes import BOB_ID, CAROL_ID, NOW, make_enquiry


@pytest.mark.parametrize(
    "raw,expected",
    [
        ("=1+1", "1+1"),
        ("+91 98765", "91 98765"),
        ("-@cmd", "cmd"),
        ("Normal Name", "Normal Name"),
        ("  padded  ", "padded"),
        (None, ""),
    ],
)
def test_sanitize_csv_field(raw, expected) -> None:
    assert sanitize_csv_field(raw) == expected


def test_stripping_is_logged(caplog) -> None:
    with caplog.at_level(logging.WARNING, logger="services.csv_export_service"):
        sanitize_csv_field("=HYPERLINK(x)", "name")
    assert "CSV injection character(s) stripped from field 'name'" in caplog.text


def parse(text: str):
    return list(csv.DictReader(StringIO(text)))


def test_export_rows() -> None:
    first = make_enquiry(assigned_to=BOB_ID, company_name="@Acme")
    second = make_enquiry(enquiry_code="ENQ-20240115-0002", assigned_to=CAROL_ID)
    unassigned = make_enquiry(enquiry_code="ENQ-20240115-0003")

    rows = parse(generate_enquiries_csv([first, second, unassigned], {BOB_ID: "Bob"}))

    assert [r["Enquiry ID"] for r in rows] == ["ENQ-20240115-0001", "ENQ-20240115-0002", "ENQ-20240115-0003"]
    assert rows[0]["Assigned To"] == "Bob"
    assert rows[0]["Company Name"] == "Acme"
    assert rows[1]["Assigned To"] == str(CAROL_ID)
    assert rows[2]["Assigned To"] == ""
    assert rows[0]["Created At"] == NOW.isoformat()
    assert rows[0]["Status"] == "New"


def test_last_remark_is_exported() -> None:
    enquiry = make_enquiry().with_remark("first", None, NOW).with_remark("latest", None, NOW)
    rows = parse(generate_enquiries_csv([enquiry]))
    assert rows[0]["Last Remark"] == "latest"


def test_empty_export_has_header_only() -> None:
    text = generate_enquiries_csv([])
    assert next(csv.reader(StringIO(text))) == EXPORT_COLUMNS
    assert parse(text) == []


def test_import_template() -> None:
    rows = list(csv.reader(StringIO(generate_import_template())))
    assert rows[0] == TEMPLATE_COLUMNS
    example = dict(zip(rows[0], rows[1]))
    assert example["type_of_lead"] == "B2C"
    assert example["name"] == ""
