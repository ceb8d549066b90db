"""
The MMX donation upload stage sequence.

    login -> client_search -> client_info -> file_client -> policy_info
    -> bank_details -> file_policy -> cover_tab -> file_cover -> update_status

Each stage is an async (session, fields) -> StageOutcome. Stages can be run
one at a time against a live session for step-wise debugging.
"""

import logging
from typing import Awaitable, Callable, Dict, List, Optional

from automation.bank_details import fill_bank_details
from automation.client_info import fill_client_info
from automation.client_search import fill_client_search
from automation.cover_tab import fill_cover_tab
from automation.file_tab import file_client_tab, file_cover_tab, file_policy_tab
from automation.login import login_to_mmx
from automation.policy_info import fill_policy_info
from automation.settings import FormSettings
from core.pipeline import Stage, StageOutcome

logger = logging.getLogger(__name__)

STAGE_NAMES = [
    "login",
    "client_search",
    "client_info",
    "file_client",
    "policy_info",
    "bank_details",
    "file_policy",
    "cover_tab",
    "file_cover",
    "update_status",
]

# Sheet fields confirmed (highlighted green) when a stage succeeds
STAGE_HIGHLIGHT_FIELDS: Dict[str, List[str]] = {
    "file_client": [
        "client_name", "client_surname", "id_number", "cellphone", "email",
        "address", "city", "province", "postal_code", "date_sale_made",
    ],
    "policy_info": ["payment_frequency"],
    "bank_details": ["account_holder", "bank", "account_number", "account_type", "debit_order_date"],
    "file_cover": ["contract_amount"],
    "update_status": ["status"],
}

StatusWriter = Callable[[], Awaitable[None]]


def _page_stage(func, settings: FormSettings):
    async def run(session, fields) -> StageOutcome:
        page = await session.page()
        return await func(page, settings)
    return run


def _field_stage(func, settings: FormSettings):
    async def run(session, fields) -> StageOutcome:
        page = await session.page()
        return await func(page, fields, settings)
    return run


def _status_stage(write_status: Optional[StatusWriter]):
    async def run(session, fields) -> StageOutcome:
        if write_status is None:
            return StageOutcome.ok("No status writer configured")
        await write_status()
        return StageOutcome.ok("Status updated to Uploaded")
    return run


def build_stages(
    settings: Optional[FormSettings] = None,
    write_status: Optional[StatusWriter] = None,
    column_for: Optional[Callable[[str], Optional[str]]] = None,
) -> List[Stage]:
    """
    Build the canonical stage list.

    Args:
        settings: Form settings (defaults to the global config)
        write_status: Coroutine factory that marks the row as uploaded
        column_for: Maps a field name to its sheet column letter
    """
    settings = settings or FormSettings.from_config()
    runners = {
        "login": _page_stage(login_to_mmx, settings),
        "client_search": _page_stage(fill_client_search, settings),
        "client_info": _field_stage(fill_client_info, settings),
        "file_client": _page_stage(file_client_tab, settings),
        "policy_info": _field_stage(fill_policy_info, settings),
        "bank_details": _field_stage(fill_bank_details, settings),
        "file_policy": _page_stage(file_policy_tab, settings),
        "cover_tab": _field_stage(fill_cover_tab, settings),
        "file_cover": _page_stage(file_cover_tab, settings),
        "update_status": _status_stage(write_status),
    }

    stages = []
    for name in STAGE_NAMES:
        columns = []
        if column_for is not None:
            for field_name in STAGE_HIGHLIGHT_FIELDS.get(name, []):
                letter = column_for(field_name)
                if letter:
                    columns.append(letter)
        stages.append(Stage(name=name, run=runners[name], highlight_columns=tuple(columns)))
    return stages


def get_stage(name: str, settings: Optional[FormSettings] = None,
              write_status: Optional[StatusWriter] = None) -> Stage:
    for stage in build_stages(settings, write_status):
        if stage.name == name:
            return stage
    raise KeyError(f"Unknown stage '{name}'. Known stages: {', '.join(STAGE_NAMES)}")
