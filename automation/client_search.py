"""
Client search: open the "New" tab, pick client type and product, and
click New Client to open a blank client record.
"""

import logging

from automation.dialogs import MESSAGE_MODAL
from automation.frames import content_frame, is_visible
from automation.settings import FormSettings
from automation.timing import pause
from core.pipeline import StageOutcome

logger = logging.getLogger(__name__)

NEW_TAB_LINK = 'a[href="#tabsNew"]'
PRODUCT_SELECT = "#ddlProductCodes"
NEW_CLIENT_BUTTON = "#btnNewClient"
CLIENT_TYPE_RADIOS = {
    "domestic": "#rblDomesticCommercial_0",
    "commercial": "#rblDomesticCommercial_1",
}
OVERLAY_MODAL = '.modal.fade.in, .modal.show, [class*="modal"][style*="display: block"]'
OVERLAY_DISMISS = ".modal .btn, .modal .close, .modal .btn-primary, .modal .btn-default"

ACTIVATE_NEW_TAB_JS = """
() => {
    document.querySelectorAll('.tab-pane, [id^="tabs"]').forEach((p) => {
        p.style.display = 'none';
        p.classList.remove('active', 'in');
    });
    const panel = document.getElementById('tabsNew');
    if (panel) {
        panel.style.display = 'block';
        panel.classList.add('active', 'in');
    }
    try { window.$('a[href="#tabsNew"]').tab('show'); } catch (e) {}
}
"""

DISPATCH_NEW_TAB_CLICK_JS = """
() => {
    const link = document.querySelector('a[href="#tabsNew"]');
    if (link) link.dispatchEvent(new MouseEvent('click', { bubbles: true, cancelable: true }));
}
"""

REVEAL_NEW_CLIENT_JS = """
() => {
    const btn = document.getElementById('btnNewClient');
    if (btn) {
        btn.style.display = 'inline-block';
        btn.style.visibility = 'visible';
    }
}
"""


def radio_for(client_type: str) -> str:
    return CLIENT_TYPE_RADIOS.get((client_type or "").strip().lower(), CLIENT_TYPE_RADIOS["domestic"])


async def _dismiss_overlays(page, frame, settings: FormSettings):
    if await is_visible(frame.locator(OVERLAY_MODAL).first):
        logger.info("Modal detected in contentframe, dismissing")
        close_button = frame.locator(OVERLAY_DISMISS).first
        if await is_visible(close_button):
            await close_button.click(force=True)
        else:
            await page.keyboard.press("Escape")
        await pause(page, settings.delays.dialog_dismiss)


async def _show_new_tab(page, frame, radio: str, settings: FormSettings) -> bool:
    """Open the New tab, escalating until the client type radio shows."""
    link = frame.locator(NEW_TAB_LINK).first
    await link.wait_for(state="visible", timeout=settings.action_timeout_ms)
    await link.click()
    await pause(page, settings.delays.tab_settle)
    if await is_visible(frame.locator(radio)):
        return True

    for script in (ACTIVATE_NEW_TAB_JS, DISPATCH_NEW_TAB_CLICK_JS):
        logger.warning("New tab content not showing, activating it via script")
        await frame.evaluate(script)
        await pause(page, settings.delays.tab_settle)
        if await is_visible(frame.locator(radio)):
            return True
    return False


async def _select_product(dropdown, product: str, settings: FormSettings):
    try:
        await dropdown.select_option(label=product, timeout=settings.action_timeout_ms)
        return
    except Exception as e:
        logger.debug(f"No product labelled '{product}' ({e}), trying partial match")

    for option in await dropdown.locator("option").all():
        text = await option.text_content() or ""
        if product in text:
            value = await option.get_attribute("value")
            if value:
                await dropdown.select_option(value=value, timeout=settings.action_timeout_ms)
                return
    await dropdown.select_option(value=product, timeout=settings.action_timeout_ms)


async def fill_client_search(page, settings: FormSettings) -> StageOutcome:
    client_type = settings.client_type
    product = settings.product_label
    try:
        frame = content_frame(page)
        await frame.wait_for_load_state("networkidle", timeout=settings.navigation_timeout_ms)
        logger.info(f"Content frame URL: {frame.url}")

        await _dismiss_overlays(page, frame, settings)

        if await is_visible(frame.locator(MESSAGE_MODAL)):
            return StageOutcome.fail("Session expired (modal popup detected). Log in again.")

        radio = radio_for(client_type)
        if not await _show_new_tab(page, frame, radio, settings):
            return StageOutcome.fail("New tab content panel did not become visible. The radio buttons are hidden.")

        logger.info(f"Selecting client type: {client_type}")
        await frame.locator(radio).click()
        await pause(page, settings.delays.product_populate)

        logger.info(f"Selecting product: {product}")
        dropdown = frame.locator(PRODUCT_SELECT)
        await dropdown.wait_for(state="visible", timeout=settings.action_timeout_ms)
        await _select_product(dropdown, product, settings)
        await pause(page, settings.delays.dialog_dismiss)

        new_client = frame.locator(NEW_CLIENT_BUTTON)
        try:
            await new_client.wait_for(state="visible", timeout=5000)
        except Exception:
            logger.info("New Client button hidden, revealing it via script")
            await frame.evaluate(REVEAL_NEW_CLIENT_JS)
            await pause(page, settings.delays.search_modal_dismiss)
        await new_client.click()

        await frame.wait_for_load_state("networkidle", timeout=settings.navigation_timeout_ms)
        logger.info(f"New Client clicked, content frame now on: {frame.url}")
        return StageOutcome.ok(
            f"Client search completed. Type: {client_type}, Product: {product}",
            client_type=client_type,
            product=product,
        )
    except Exception as e:
        logger.error(f"Client search error: {e}")
        return StageOutcome.fail(f"Client search error: {e}")
