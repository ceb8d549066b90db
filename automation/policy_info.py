"""
Policy info sub-tab (#tabli0) inside #ifrmPolicy.

Expiry date is always DD/MM/2099 from the inception date. The review month
select is disabled by MMX and must be enabled by script before the month
following the inception month is chosen.
"""

import logging
from typing import Optional, Tuple

from automation.dialogs import dismiss_search
from automation.frames import content_frame, fill_field, open_tab, select_by_label
from automation.settings import FormSettings
from automation.timing import pause
from core.models import JobFields
from core.pipeline import StageOutcome

logger = logging.getLogger(__name__)

POLICY_INFO_SUBTAB = "#tabli0"
NPC_CODE_INPUT = "#txt5"
PAYMENT_FREQUENCY_SELECT = "#txt15"
INCEPTION_INPUT = "#txt17"
EXPIRY_INPUT = "#txt18"
REVIEW_MONTH_SELECT = "#txt26"

EXPIRY_YEAR = "2099"
MONTH_NAMES = [
    "January", "February", "March", "April", "May", "June",
    "July", "August", "September", "October", "November", "December",
]

ENABLE_SELECT_JS = """
(el) => {
    el.disabled = false;
    el.removeAttribute('readonly');
    el.classList.remove('aspNetDisabled');
}
"""


def expiry_date_for(inception_date: str) -> Optional[str]:
    parts = (inception_date or "").split("/")
    if len(parts) != 3:
        return None
    return f"{parts[0]}/{parts[1]}/{EXPIRY_YEAR}"


def review_month_for(inception_date: str) -> Optional[Tuple[str, int]]:
    """(month name, month number) of the month after the inception month."""
    parts = (inception_date or "").split("/")
    if len(parts) != 3 or not parts[1].strip().isdigit():
        return None
    month = int(parts[1])
    if not 1 <= month <= 12:
        return None
    following = month % 12 + 1
    return MONTH_NAMES[following - 1], following


async def fill_policy_info(page, fields: JobFields, settings: FormSettings) -> StageOutcome:
    fields_set = []
    try:
        frame = content_frame(page)
        iframe = await open_tab(page, frame, "ifrmPolicy", settings)
        await iframe.locator(POLICY_INFO_SUBTAB).click()
        await pause(page, settings.delays.subtab_settle)

        if settings.npc_company_code:
            npc = iframe.locator(NPC_CODE_INPUT)
            logger.info(f"Setting NPC company code: {settings.npc_company_code}")
            await npc.click(click_count=3)
            await npc.fill(settings.npc_company_code)
            await npc.press("Tab")
            await pause(page, settings.delays.lookup_round_trip)
            # The lookup pops #modalSearch over every other field
            await dismiss_search(page, iframe, settings)
            fields_set.append("npc_company_code")

        if fields.payment_frequency:
            logger.info(f"Setting payment frequency: {fields.payment_frequency}")
            await select_by_label(
                iframe.locator(PAYMENT_FREQUENCY_SELECT),
                fields.payment_frequency,
                timeout_ms=settings.action_timeout_ms,
            )
            fields_set.append("payment_frequency")

        expiry_date = None
        review_month = None
        if fields.inception_date:
            await fill_field(page, iframe, INCEPTION_INPUT, fields.inception_date, settings, "inception date")
            fields_set.append("inception_date")

            expiry_date = expiry_date_for(fields.inception_date)
            if expiry_date:
                await fill_field(page, iframe, EXPIRY_INPUT, expiry_date, settings, "expiry date")
                fields_set.append("expiry_date")

            review_month = review_month_for(fields.inception_date)
            if review_month:
                month_name, month_number = review_month
                logger.info(f"Setting review month: {month_name}")
                month_select = iframe.locator(REVIEW_MONTH_SELECT)
                await month_select.evaluate(ENABLE_SELECT_JS)
                await pause(page, settings.delays.select_settle)
                await select_by_label(
                    month_select,
                    month_name,
                    fallback_value=str(month_number),
                    timeout_ms=settings.action_timeout_ms,
                )
                fields_set.append("review_month")

        logger.info(f"Policy info filled: {', '.join(fields_set)}")
        return StageOutcome.ok(
            f"Policy info filled. Fields set: {', '.join(fields_set)}",
            fields_set=fields_set,
            expiry_date=expiry_date,
            review_month=review_month[0] if review_month else None,
        )
    except Exception as e:
        logger.error(f"Policy info error: {e} (fields set: {fields_set})")
        return StageOutcome.fail(f"Policy info error: {e}", fields_set=fields_set)
