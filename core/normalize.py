"""
Row normalization: sheet values -> JobFields.

Dates are expected as DD/MM/YYYY, but the sheet web app sometimes returns
ISO dates or a verbose JavaScript timestamp when a cell holds a Date object.
"""

import logging
import re
from datetime import date, datetime
from typing import Optional

from core.models import Job, JobFields, RowStatus, SheetRow

logger = logging.getLogger(__name__)

_DMY = re.compile(r"^\d{2}/\d{2}/\d{4}$")
_YMD = re.compile(r"^(\d{4})[-/](\d{2})[-/](\d{2})")
# "Mon Nov 02 2026 00:00:00 GMT+0200 (South Africa Standard Time)"
_VERBOSE = re.compile(r"^(?:[A-Za-z]{3},?\s+)?([A-Za-z]{3,9})\s+(\d{1,2}),?\s+(\d{4})")
_DAY_FIRST_FORMATS = ("%d %B %Y", "%d %b %Y", "%d-%b-%Y", "%d.%m.%Y")


def _format(value: date) -> str:
    return value.strftime("%d/%m/%Y")


def normalize_date(value: Optional[str], today: Optional[date] = None) -> str:
    """
    Convert a sheet date to DD/MM/YYYY.

    Empty values become today's date. Unparseable values are returned
    unchanged with a warning.
    """
    if not value or not str(value).strip():
        return _format(today or date.today())

    text = str(value).strip()

    if _DMY.match(text):
        return text

    match = _YMD.match(text)
    if match:
        year, month, day = match.groups()
        return f"{day}/{month}/{year}"

    match = _VERBOSE.match(text)
    if match:
        month_name, day, year = match.groups()
        for fmt in ("%b %d %Y", "%B %d %Y"):
            try:
                return _format(datetime.strptime(f"{month_name} {day} {year}", fmt))
            except ValueError:
                continue

    for fmt in _DAY_FIRST_FORMATS:
        try:
            return _format(datetime.strptime(text, fmt))
        except ValueError:
            continue

    logger.warning(f"Could not parse date '{value}', returning as-is")
    return text


def collection_day_from(debit_order_date: str) -> str:
    """Day part of a DD/MM/YYYY date, defaulting to 01."""
    day = (debit_order_date or "").split("/")[0].strip()
    if day.isdigit():
        return day.zfill(2)
    return "01"


def map_payment_frequency(value: Optional[str]) -> str:
    """Map free-text frequency to the MMX payment frequency label."""
    if not value or not value.strip():
        return "Monthly"
    lower = value.strip().lower()
    if "month" in lower:
        return "Monthly"
    if "bi-annual" in lower or "biannual" in lower or "semi" in lower:
        return "Bi-Annually"
    if "annual" in lower or "year" in lower:
        return "Annually"
    if "quarter" in lower:
        return "Quarterly"
    if "bi" in lower:
        return "Bi-Annually"
    return value.strip()


def is_eligible(status: Optional[str]) -> bool:
    """A row is eligible when its status reads 'new' in any case."""
    return (status or "").strip().lower() == RowStatus.NEW.value


def build_job_fields(row: SheetRow, default_amount: str = "50", today: Optional[date] = None) -> JobFields:
    """Normalize a fetched sheet row into form-ready job fields."""
    debit_order_date = normalize_date(row.get("debit_order_date"), today)
    client_name = row.get("client_name").strip()
    client_surname = row.get("client_surname").strip()
    account_holder = row.get("account_holder").strip() or f"{client_name} {client_surname}".strip()

    return JobFields(
        client_name=client_name,
        client_surname=client_surname,
        id_number=row.get("id_number").strip(),
        cellphone=row.get("cellphone").strip(),
        email=row.get("email").strip(),
        address=row.get("address").strip(),
        city=row.get("city").strip(),
        province=row.get("province").strip(),
        postal_code=row.get("postal_code").strip(),
        account_holder=account_holder,
        bank=row.get("bank").strip(),
        account_number=row.get("account_number").strip(),
        account_type=row.get("account_type").strip() or "Savings",
        donation_amount=row.get("contract_amount").strip() or default_amount,
        payment_frequency=map_payment_frequency(row.get("payment_frequency")),
        # Client and policy inception both follow the debit order start date
        inception_date=debit_order_date,
        debit_order_date=debit_order_date,
        collection_day=collection_day_from(debit_order_date),
        sale_date=normalize_date(row.get("date_sale_made"), today),
    )


def build_job(row: SheetRow, default_amount: str = "50", today: Optional[date] = None) -> Job:
    return Job(row=row.row, fields=build_job_fields(row, default_amount, today))
