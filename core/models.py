#!/usr/bin/env python3
"""
Shared Data Models for the MMX uploader

Sheet rows, normalized job fields, and the status markers written back
to the sheet are defined here so every layer agrees on them.
"""

from typing import Dict, Optional, Any
from dataclasses import dataclass, field, asdict
from enum import Enum


# ============== Enums ==============

class RowStatus(str, Enum):
    """Status column markers."""
    NEW = "new"
    PROCESSING = "Processing..."
    UPLOADED = "Uploaded"


class HighlightColor(str, Enum):
    """Cell highlight colors used for sheet feedback."""
    GREEN = "#4CAF50"
    RED = "#F44336"
    YELLOW = "#FFF176"


class SessionState(str, Enum):
    """Lifecycle of one worker key in the session pool."""
    ABSENT = "absent"
    LAUNCHING = "launching"
    RECOVERING = "recovering"
    READY = "ready"
    CLOSING = "closing"


# ============== Data Models ==============

@dataclass
class SheetRow:
    """One row fetched from the sheet web app."""
    row: int
    raw: Dict[str, str] = field(default_factory=dict)     # column letter -> value
    data: Dict[str, str] = field(default_factory=dict)    # field name -> value

    def get(self, name: str, default: str = "") -> str:
        value = self.data.get(name)
        if value is None:
            return default
        return str(value)

    @property
    def status(self) -> str:
        return self.get("status")


@dataclass(frozen=True)
class JobFields:
    """Normalized field values for one job, ready for form entry."""
    client_name: str = ""
    client_surname: str = ""
    id_number: str = ""
    cellphone: str = ""
    email: str = ""
    address: str = ""
    city: str = ""
    province: str = ""
    postal_code: str = ""
    account_holder: str = ""
    bank: str = ""
    account_number: str = ""
    account_type: str = "Savings"
    donation_amount: str = "50"
    payment_frequency: str = "Monthly"
    inception_date: str = ""
    debit_order_date: str = ""
    collection_day: str = "01"
    sale_date: str = ""

    @property
    def display_name(self) -> str:
        return f"{self.client_name} {self.client_surname}".strip()

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass(frozen=True)
class Job:
    """One eligible row dispatched for processing."""
    row: int
    fields: JobFields

    @property
    def display_name(self) -> str:
        return self.fields.display_name


@dataclass
class JobResult:
    """Outcome reported back to orchestration callers."""
    success: bool
    message: str
    row: Optional[int] = None
    stage: Optional[str] = None
    screenshot_path: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {"success": self.success, "message": self.message}
