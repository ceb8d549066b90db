"""
Bank details sub-tab (#tabli1) inside #ifrmPolicy.

The branch code field only accepts numeric codes, so the sheet's bank name
is resolved through core.branch_codes first and an unresolved bank stops
the job instead of submitting free text.

The account type select (#txt28) runs a server validation from its
onchange/xonblur hooks that reverts a freshly set value within ~100ms.
MMX reads the select's state directly when the tab is filed, so the value
is set by script with the hooks removed and no events dispatched.
"""

import logging

from automation.dialogs import SEARCH_FIRST_RESULT, SEARCH_MODAL, dismiss_any_modal, dismiss_message, dismiss_search
from automation.frames import content_frame, fill_field, is_visible, open_tab, select_by_label
from automation.settings import FormSettings
from automation.timing import pause
from core.branch_codes import resolve_branch_code
from core.errors import BranchCodeError
from core.models import JobFields
from core.pipeline import StageOutcome

logger = logging.getLogger(__name__)

BANK_SUBTAB = "#tabli1"
ACCOUNT_HOLDER_INPUT = "#txt32"
ACCOUNT_NUMBER_INPUT = "#txt31"
BRANCH_CODE_INPUT = "#txt30"
BRANCH_DESCRIPTION = "#txtDesc30"
COLLECTION_DAY_SELECT = "#txt27"
ACCOUNT_TYPE_SELECT = "#txt28"

ACCOUNT_TYPE_VALUES = {
    "current": "1",
    "cheque": "1",
    "savings": "2",
    "transmission": "3",
    "cash": "9",
    "invalid": "0",
    "not specified": "N",
}

SET_SELECT_QUIETLY_JS = """
(el, value) => {
    el.onchange = null;
    el.onblur = null;
    el.removeAttribute('xonblur');
    for (let i = 0; i < el.options.length; i++) {
        if (el.options[i].value === value) {
            el.selectedIndex = i;
            el.options[i].selected = true;
            break;
        }
    }
}
"""

SET_SELECT_STRIPPED_JS = """
(el, value) => {
    el.onchange = null;
    el.removeAttribute('xonblur');
    el.removeAttribute('onchange');
    el.value = value;
}
"""

READ_SELECT_JS = "(el) => el.value"


def account_type_value(label: str) -> str:
    """MMX option value for an account type label; unknown labels pass through."""
    cleaned = (label or "").strip()
    return ACCOUNT_TYPE_VALUES.get(cleaned.lower(), cleaned)


async def _read_select(select) -> str:
    try:
        return await select.evaluate(READ_SELECT_JS) or ""
    except Exception as e:
        logger.debug(f"Could not read select value: {e}")
        return ""


async def _enter_branch_code(page, iframe, code: str, settings: FormSettings) -> str:
    """Type the numeric code, let the lookup run, and return the resolved description."""
    branch = iframe.locator(BRANCH_CODE_INPUT)
    await branch.click()
    await pause(page, settings.delays.field_settle)
    await branch.click(click_count=3)
    await branch.fill(code)
    await pause(page, settings.delays.subtab_settle)
    await branch.press("Tab")
    await pause(page, settings.delays.branch_lookup)

    message = await dismiss_message(page, iframe, settings)
    if message:
        logger.info(f"Dialog after branch code entry: '{message[:100]}'")

    if await is_visible(iframe.locator(SEARCH_MODAL)):
        first_result = iframe.locator(SEARCH_FIRST_RESULT).first
        if await is_visible(first_result):
            logger.info("Branch code search modal appeared, selecting first result")
            await first_result.click()
            await pause(page, settings.delays.branch_result_pick)
        else:
            logger.info("Branch code search returned no results, closing")
            await dismiss_search(page, iframe, settings)

    try:
        description = await iframe.locator(BRANCH_DESCRIPTION).input_value()
    except Exception as e:
        logger.debug(f"Could not read branch description: {e}")
        description = ""

    if await dismiss_any_modal(page, iframe, settings):
        logger.info("Dismissed remaining modal after branch code")
    return description


async def fill_bank_details(page, fields: JobFields, settings: FormSettings) -> StageOutcome:
    fields_set = []
    result = {}
    try:
        # Resolve before touching the form so an unknown bank fails fast
        branch_code = None
        if fields.bank:
            match = resolve_branch_code(fields.bank)
            if not match.matched:
                return StageOutcome.fail(
                    f"No branch code found for bank '{fields.bank}'",
                    fields_set=fields_set,
                    bank=fields.bank,
                )
            if not match.is_numeric:
                raise BranchCodeError(f"Resolver returned non-numeric branch code '{match.code}' for '{fields.bank}'")
            branch_code = match.code
            result["branch_code"] = branch_code
            result["branch_strategy"] = match.strategy
            logger.info(f"Bank '{fields.bank}' -> branch code {branch_code} ({match.strategy})")

        frame = content_frame(page)
        iframe = await open_tab(page, frame, "ifrmPolicy", settings)
        bank_tab = iframe.locator(BANK_SUBTAB)
        await bank_tab.click()
        await pause(page, settings.delays.subtab_settle)

        if fields.account_holder:
            await fill_field(page, iframe, ACCOUNT_HOLDER_INPUT, fields.account_holder, settings, "account holder")
            fields_set.append("account_holder")

        if fields.account_number:
            await fill_field(page, iframe, ACCOUNT_NUMBER_INPUT, fields.account_number, settings, "account number")
            fields_set.append("account_number")

        if branch_code:
            description = await _enter_branch_code(page, iframe, branch_code, settings)
            result["branch_description"] = description
            if description:
                logger.info(f"Branch code description: '{description}'")
            else:
                logger.warning(f"Branch code {branch_code} did not resolve to a description")
            fields_set.append("branch_code")

        # Branch lookup dialogs can knock the sub-tab out of focus
        await bank_tab.click()
        await pause(page, settings.delays.subtab_settle)

        if fields.collection_day:
            logger.info(f"Setting collection day: {fields.collection_day}")
            await select_by_label(
                iframe.locator(COLLECTION_DAY_SELECT),
                fields.collection_day,
                timeout_ms=settings.action_timeout_ms,
            )
            result["collection_day"] = fields.collection_day
            fields_set.append("collection_day")

        if fields.account_type:
            wanted = account_type_value(fields.account_type)
            logger.info(f"Setting account type: {fields.account_type} (value={wanted})")
            select = iframe.locator(ACCOUNT_TYPE_SELECT)
            await select.evaluate(SET_SELECT_QUIETLY_JS, wanted)
            await pause(page, settings.delays.select_settle)

            actual = await _read_select(select)
            if actual != wanted:
                logger.info(f"Account type reverted to '{actual}', retrying with validation hooks stripped")
                await select.evaluate(SET_SELECT_STRIPPED_JS, wanted)
                await pause(page, settings.delays.select_settle)
                actual = await _read_select(select)

            if actual != wanted:
                return StageOutcome.fail(
                    f"Account type not accepted: expected '{wanted}', form holds '{actual}'",
                    fields_set=fields_set,
                    **result,
                )
            result["account_type_value"] = actual
            fields_set.append("account_type")

        logger.info(f"Bank details filled: {', '.join(fields_set)}")
        return StageOutcome.ok(
            f"Bank details filled. Fields set: {', '.join(fields_set)}",
            fields_set=fields_set,
            **result,
        )
    except Exception as e:
        logger.error(f"Bank details error: {e} (fields set: {fields_set})")
        return StageOutcome.fail(f"Bank details error: {e}", fields_set=fields_set, **result)
