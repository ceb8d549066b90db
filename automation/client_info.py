"""
Client tab (donor info) inside #ifrmClient.
"""

import logging

from automation.frames import content_frame, fill_field, open_tab
from automation.settings import FormSettings
from core.models import JobFields
from core.pipeline import StageOutcome

logger = logging.getLogger(__name__)

POSTAL_SAME_SELECT = "#txt55"

# (selector, JobFields attribute, label)
CLIENT_FIELDS = [
    ("#txt2", "client_name", "donor name"),
    ("#txt102", "client_surname", "contact name"),
    ("#txt6", "id_number", "ID number"),
    ("#txt14", "cellphone", "cell phone"),
    ("#txt16", "email", "email"),
    ("#txt21", "address", "address line 1"),
    ("#txt22", "city", "address line 2 (city)"),
    ("#txt23", "province", "address line 3 (province)"),
    ("#txt24", "postal_code", "postal code"),
    ("#txt28", "inception_date", "client inception date"),
]


async def fill_client_info(page, fields: JobFields, settings: FormSettings) -> StageOutcome:
    fields_set = []
    try:
        frame = content_frame(page)
        iframe = await open_tab(page, frame, "ifrmClient", settings, settle_ms=settings.delays.dialog_dismiss)

        for selector, attribute, label in CLIENT_FIELDS:
            value = getattr(fields, attribute)
            if value:
                await fill_field(page, iframe, selector, value, settings, label)
                fields_set.append(attribute)

        postal_same = iframe.locator(POSTAL_SAME_SELECT)
        if await postal_same.get_attribute("disabled") is None:
            try:
                await postal_same.select_option(label="Yes", timeout=settings.action_timeout_ms)
            except Exception:
                try:
                    await postal_same.select_option(value="Y", timeout=settings.action_timeout_ms)
                except Exception as e:
                    logger.warning(f"Could not set postal address = residential: {e}")
                else:
                    fields_set.append("postal_same_as_residential")
            else:
                fields_set.append("postal_same_as_residential")

        logger.info(f"Client info filled: {', '.join(fields_set)}")
        return StageOutcome.ok(f"Client info filled. Fields set: {', '.join(fields_set)}", fields_set=fields_set)
    except Exception as e:
        logger.error(f"Client info error: {e} (fields set: {fields_set})")
        return StageOutcome.fail(f"Client info error: {e}", fields_set=fields_set)
