"""
Pytest fixtures and configuration for the MMX uploader test suite.
"""

from pathlib import Path

import pytest

# Add project root and this directory to path
import sys
sys.path.insert(0, str(Path(__file__).parent.parent))
sys.path.insert(0, str(Path(__file__).parent))

from api.config import AppConfig
from automation.settings import FormSettings
from automation.timing import Delays
from fakes import FakeBrowserState, FakePage, FakeSheet


# === Fixtures ===

@pytest.fixture
def zero_delays():
    return Delays().scaled(0)


@pytest.fixture
def settings(zero_delays):
    return FormSettings(
        base_url="https://mmx.test",
        username="agent",
        password="secret",
        delays=zero_delays,
    )


@pytest.fixture
def browser_state():
    return FakeBrowserState()


@pytest.fixture
def page(browser_state):
    return FakePage(browser_state)


@pytest.fixture
def fake_sheet():
    return FakeSheet()


@pytest.fixture
def app_config(tmp_path):
    return AppConfig(
        MMX_USERNAME="agent",
        MMX_PASSWORD="secret",
        MMX_BASE_URL="https://mmx.test",
        SHEET_WEBAPP_URL="https://sheet.test/exec",
        USER_DATA_DIR=str(tmp_path / "user-data"),
        SCREENSHOT_DIR=str(tmp_path / "screenshots"),
        LOG_DIR=str(tmp_path / "logs"),
        INTER_JOB_PAUSE_SECONDS=0,
        INTER_BATCH_PAUSE_SECONDS=0,
        LAUNCH_RETRY_DELAY_SECONDS=0,
    )


@pytest.fixture
def sample_row():
    """A sheet row as the web app returns it (column letter keyed)."""
    return {
        "A": "New",
        "B": "Thandi",
        "C": "Mokoena",
        "D": "9001015009087",
        "E": "0821234567",
        "F": "thandi@example.com",
        "G": "12 Main Road",
        "H": "Johannesburg",
        "I": "Gauteng",
        "J": "2001",
        "K": "Thandi Mokoena",
        "L": "Standard Bank",
        "M": "123456789",
        "N": "Savings",
        "O": "50",
        "P": "Monthly",
        "Q": "15/11/2026",
        "R": "01/11/2026",
    }
