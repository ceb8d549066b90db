"""
Unified Configuration Module for the MMX uploader

All configuration settings are centralized here.
Import from this module: from api.config import config
"""

import json
import os
from pathlib import Path
from typing import Dict, List, Optional
from dataclasses import dataclass, field

from dotenv import load_dotenv

PROJECT_ROOT = Path(__file__).resolve().parent.parent

load_dotenv(PROJECT_ROOT / ".env")


def _env_bool(name: str, default: str = "false") -> bool:
    return os.getenv(name, default).lower() == "true"


def _env_column_mapping() -> Dict[str, str]:
    raw = os.getenv("COLUMN_MAPPING")
    if not raw:
        return dict(DEFAULT_COLUMN_MAPPING)
    return json.loads(raw)


# Sheet column letter -> job field name
DEFAULT_COLUMN_MAPPING: Dict[str, str] = {
    "A": "status",
    "B": "client_name",
    "C": "client_surname",
    "D": "id_number",
    "E": "cellphone",
    "F": "email",
    "G": "address",
    "H": "city",
    "I": "province",
    "J": "postal_code",
    "K": "account_holder",
    "L": "bank",
    "M": "account_number",
    "N": "account_type",
    "O": "contract_amount",
    "P": "payment_frequency",
    "Q": "debit_order_date",
    "R": "date_sale_made",
}

DEFAULT_VALIDATION_KEYWORDS = "invalid,must be,required,cannot be,error,failed,critical"


@dataclass
class AppConfig:
    """Unified application configuration."""

    # === MMX Credentials ===
    MMX_USERNAME: str = os.getenv("MMX_USERNAME", "")
    MMX_PASSWORD: str = os.getenv("MMX_PASSWORD", "")
    MMX_BASE_URL: str = os.getenv("MMX_BASE_URL", "https://www.mmxsystems.co.za")

    # === Source Sheet ===
    SHEET_WEBAPP_URL: str = os.getenv("SHEET_WEBAPP_URL", "")
    COLUMN_MAPPING: Dict[str, str] = field(default_factory=_env_column_mapping)
    STATUS_COLUMN: str = os.getenv("STATUS_COLUMN", "A")

    # === Browser ===
    HEADLESS: bool = _env_bool("HEADLESS")
    USER_DATA_DIR: str = os.getenv("USER_DATA_DIR", str(PROJECT_ROOT / "user-data"))
    NAVIGATION_TIMEOUT_MS: int = int(os.getenv("NAVIGATION_TIMEOUT_MS", "30000"))
    ACTION_TIMEOUT_MS: int = int(os.getenv("ACTION_TIMEOUT_MS", "10000"))
    LAUNCH_RETRIES: int = int(os.getenv("LAUNCH_RETRIES", "3"))
    LAUNCH_RETRY_DELAY_SECONDS: float = float(os.getenv("LAUNCH_RETRY_DELAY_SECONDS", "2.0"))
    MAX_FRESH_PROFILES: int = int(os.getenv("MAX_FRESH_PROFILES", "10"))

    # === Polling ===
    POLL_INTERVAL_MS: int = int(os.getenv("POLL_INTERVAL_MS", "30000"))
    AUTO_START_POLLING: bool = _env_bool("AUTO_START_POLLING")
    CONCURRENCY: int = int(os.getenv("CONCURRENCY", "1"))
    INTER_JOB_PAUSE_SECONDS: float = float(os.getenv("INTER_JOB_PAUSE_SECONDS", "3.0"))
    INTER_BATCH_PAUSE_SECONDS: float = float(os.getenv("INTER_BATCH_PAUSE_SECONDS", "2.0"))

    # === Form Constants ===
    CLIENT_TYPE: str = os.getenv("CLIENT_TYPE", "Domestic")
    PRODUCT_LABEL: str = os.getenv("PRODUCT_LABEL", "GW6 - CIV DOMESTIC DONATION NPC")
    NPC_COMPANY_CODE: str = os.getenv("NPC_COMPANY_CODE", "CIV01")
    DEFAULT_DONATION_AMOUNT: str = os.getenv("DEFAULT_DONATION_AMOUNT", "50")

    # Dialog text that marks a filing as rejected
    VALIDATION_KEYWORDS: List[str] = field(default_factory=lambda: [
        keyword.strip().lower() for keyword in
        os.getenv("VALIDATION_KEYWORDS", DEFAULT_VALIDATION_KEYWORDS).split(",")
        if keyword.strip()
    ])

    # === Dashboard ===
    DASHBOARD_HOST: str = os.getenv("DASHBOARD_HOST", "127.0.0.1")
    DASHBOARD_PORT: int = int(os.getenv("DASHBOARD_PORT", "3456"))

    # === Paths ===
    SCREENSHOT_DIR: str = os.getenv("SCREENSHOT_DIR", str(PROJECT_ROOT / "screenshots"))
    LOG_DIR: str = os.getenv("LOG_DIR", str(PROJECT_ROOT / "logs"))

    def validate(self) -> List[str]:
        """Validate configuration and return list of missing required settings."""
        missing = []

        if not self.MMX_USERNAME:
            missing.append("MMX_USERNAME")
        if not self.MMX_PASSWORD:
            missing.append("MMX_PASSWORD")
        if not self.SHEET_WEBAPP_URL:
            missing.append("SHEET_WEBAPP_URL")

        return missing

    def column_for(self, field_name: str) -> Optional[str]:
        """Column letter a job field is read from, if mapped."""
        for letter, name in self.COLUMN_MAPPING.items():
            if name == field_name:
                return letter
        return None


# Global config instance
config = AppConfig()


def get_config() -> AppConfig:
    """Get the application configuration."""
    return config
