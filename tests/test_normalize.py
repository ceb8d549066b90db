"""
Tests for sheet row normalization.
"""

from datetime import date

import pytest

from core.models import SheetRow
from core.normalize import (
    build_job,
    build_job_fields,
    collection_day_from,
    is_eligible,
    map_payment_frequency,
    normalize_date,
)
from sheets.client import apply_column_mapping
from api.config import DEFAULT_COLUMN_MAPPING

TODAY = date(2026, 10, 16)


class TestNormalizeDate:

    def test_dd_mm_yyyy_passes_through(self):
        assert normalize_date("15/11/2026") == "15/11/2026"

    def test_iso_date(self):
        assert normalize_date("2026-11-15") == "15/11/2026"

    def test_iso_timestamp(self):
        assert normalize_date("2026-11-15T00:00:00.000Z") == "15/11/2026"

    def test_verbose_javascript_date(self):
        value = "Mon Nov 02 2026 00:00:00 GMT+0200 (South Africa Standard Time)"
        assert normalize_date(value) == "02/11/2026"

    def test_day_first_long_month(self):
        assert normalize_date("15 November 2026") == "15/11/2026"

    def test_empty_becomes_today(self):
        assert normalize_date("", today=TODAY) == "16/10/2026"
        assert normalize_date(None, today=TODAY) == "16/10/2026"
        assert normalize_date("   ", today=TODAY) == "16/10/2026"

    def test_unparseable_is_returned_unchanged(self):
        assert normalize_date("next tuesday") == "next tuesday"


class TestCollectionDay:

    def test_day_of_debit_order_date(self):
        assert collection_day_from("15/11/2026") == "15"

    def test_pads_single_digit(self):
        assert collection_day_from("5/11/2026") == "05"

    def test_defaults_to_first(self):
        assert collection_day_from("") == "01"
        assert collection_day_from("garbage") == "01"


class TestPaymentFrequency:

    @pytest.mark.parametrize("value,expected", [
        ("Monthly", "Monthly"),
        ("per month", "Monthly"),
        ("", "Monthly"),
        (None, "Monthly"),
        ("Annually", "Annually"),
        ("once a year", "Annually"),
        ("Quarterly", "Quarterly"),
        ("Bi-Annually", "Bi-Annually"),
        ("semi-annual", "Bi-Annually"),
        ("Weekly", "Weekly"),
    ])
    def test_mapping(self, value, expected):
        assert map_payment_frequency(value) == expected


class TestEligibility:

    @pytest.mark.parametrize("status", ["new", "New", "NEW", "  new "])
    def test_new_in_any_case(self, status):
        assert is_eligible(status)

    @pytest.mark.parametrize("status", ["", None, "Processing...", "Uploaded", "FAILED at login: x", "renew"])
    def test_everything_else(self, status):
        assert not is_eligible(status)


class TestBuildJobFields:

    def _row(self, raw):
        return SheetRow(row=7, raw=raw, data=apply_column_mapping(raw, DEFAULT_COLUMN_MAPPING))

    def test_full_row(self, sample_row):
        fields = build_job_fields(self._row(sample_row), today=TODAY)

        assert fields.client_name == "Thandi"
        assert fields.client_surname == "Mokoena"
        assert fields.bank == "Standard Bank"
        assert fields.account_type == "Savings"
        assert fields.donation_amount == "50"
        assert fields.payment_frequency == "Monthly"
        assert fields.debit_order_date == "15/11/2026"
        assert fields.inception_date == "15/11/2026"
        assert fields.collection_day == "15"
        assert fields.sale_date == "01/11/2026"

    def test_defaults_for_missing_values(self):
        fields = build_job_fields(self._row({"A": "New", "B": "Sipho", "C": "Dlamini"}), today=TODAY)

        assert fields.account_holder == "Sipho Dlamini"
        assert fields.account_type == "Savings"
        assert fields.donation_amount == "50"
        assert fields.debit_order_date == "16/10/2026"
        assert fields.collection_day == "16"

    def test_default_amount_is_configurable(self):
        fields = build_job_fields(self._row({"B": "Sipho"}), default_amount="100", today=TODAY)
        assert fields.donation_amount == "100"

    def test_build_job_carries_row_number(self, sample_row):
        job = build_job(self._row(sample_row), today=TODAY)
        assert job.row == 7
        assert job.display_name == "Thandi Mokoena"


def test_column_mapping_skips_unmapped_and_missing():
    data = apply_column_mapping({"A": "New", "B": "Thandi", "Z": "ignored"}, DEFAULT_COLUMN_MAPPING)
    assert data == {"status": "New", "client_name": "Thandi"}
