"""
Cover tab inside #ifrmCover: add a Donation item and enter its amount.

Client and Policy must already be filed, otherwise MMX shows a
"CRITICAL INPUT" dialog and refuses interaction. The Section field (#txt1)
is a readonly formula field that must mirror the Item amount (#txt11).
Filing is left to the file_cover stage.
"""

import logging

from automation.dialogs import MESSAGE_MODAL, dismiss_message, read_message
from automation.frames import content_frame, fill_field, is_visible, open_tab
from automation.settings import FormSettings
from automation.timing import pause
from core.models import JobFields
from core.pipeline import StageOutcome

logger = logging.getLogger(__name__)

DONATION_ROW = 'td:has-text("Donation")'
RISK_ITEMS_DIALOG = "#dialogRiskItems"
ADD_ITEM_BUTTON = "#addItem"
ITEM_AMOUNT_INPUT = "#txt11"
SECTION_AMOUNT_INPUT = "#txt1"
EFFECTIVE_DATE_INPUT = "#txt15"

SET_READONLY_FIELD_JS = """
(el, value) => {
    el.removeAttribute('readonly');
    el.value = value;
    el.dispatchEvent(new Event('change', { bubbles: true }));
    el.setAttribute('readonly', 'true');
}
"""

SET_LOCKED_FIELD_JS = """
(el, value) => {
    el.removeAttribute('readonly');
    el.removeAttribute('disabled');
    el.value = value;
    el.dispatchEvent(new Event('change', { bubbles: true }));
}
"""


async def fill_cover_tab(page, fields: JobFields, settings: FormSettings) -> StageOutcome:
    amount = fields.donation_amount
    try:
        frame = content_frame(page)
        iframe = await open_tab(page, frame, "ifrmCover", settings, settle_ms=settings.delays.cover_tab_settle)

        if await is_visible(iframe.locator(MESSAGE_MODAL)):
            text = await read_message(iframe)
            if "CRITICAL INPUT" in text.upper():
                return StageOutcome.fail(f"Cover tab blocked: '{text}'. File Client and Policy tabs first.")
            await dismiss_message(page, iframe, settings)

        logger.info("Clicking Donation row in cover table")
        donation = iframe.locator(DONATION_ROW).first
        await donation.wait_for(state="visible", timeout=settings.action_timeout_ms)
        await donation.click(force=True)
        await pause(page, settings.delays.cover_tab_settle)

        message = await dismiss_message(page, iframe, settings)
        if message:
            logger.info(f"Dialog after Donation click: '{message[:100]}'")

        if not await is_visible(iframe.locator(RISK_ITEMS_DIALOG)):
            return StageOutcome.fail(f"Dialog {RISK_ITEMS_DIALOG} did not appear after clicking Donation row.")

        add_item = iframe.locator(ADD_ITEM_BUTTON)
        if not await is_visible(add_item):
            return StageOutcome.fail(f"{ADD_ITEM_BUTTON} button not visible in the dialog.")
        await add_item.click()
        await pause(page, settings.delays.add_item)

        item = iframe.locator(ITEM_AMOUNT_INPUT)
        await item.wait_for(state="visible", timeout=settings.action_timeout_ms)
        await fill_field(page, iframe, ITEM_AMOUNT_INPUT, amount, settings, "item amount")

        logger.info(f"Setting Section ({SECTION_AMOUNT_INPUT}) to {amount}")
        await iframe.locator(SECTION_AMOUNT_INPUT).evaluate(SET_READONLY_FIELD_JS, amount)
        await pause(page, settings.delays.select_settle)

        if fields.debit_order_date:
            logger.info(f"Setting effective date ({EFFECTIVE_DATE_INPUT}) to {fields.debit_order_date}")
            await iframe.locator(EFFECTIVE_DATE_INPUT).evaluate(SET_LOCKED_FIELD_JS, fields.debit_order_date)
            await pause(page, settings.delays.select_settle)

        return StageOutcome.ok(
            f"Cover tab filled. Donation amount: {amount}",
            donation_amount=amount,
            effective_date=fields.debit_order_date,
        )
    except Exception as e:
        logger.error(f"Cover tab error: {e}")
        return StageOutcome.fail(f"Cover tab error: {e}")
