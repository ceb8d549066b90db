"""
Bootstrap modal handling inside MMX iframes.

MMX reports everything through two modals: #modalMessage (notices and
validation errors, free text only) and #modalSearch (lookup results).
A lingering modal blocks every control behind it, so both are dismissed
before filing and after each probe.
"""

import logging
from typing import Iterable, List, Optional, Tuple

from automation.frames import is_visible
from automation.settings import FormSettings
from automation.timing import pause

logger = logging.getLogger(__name__)

MESSAGE_MODAL = "#modalMessage.modal.fade.in, #modalMessage.in"
MESSAGE_TEXT = "#modalMessage .modal-body, #modalMessage #lblMessage"
MESSAGE_DISMISS = '#modalMessage .btn, #modalMessage button[data-dismiss="modal"]'

SEARCH_MODAL = "#modalSearch.modal.fade.in, #modalSearch.in"
SEARCH_DISMISS = '#modalSearch button[data-dismiss="modal"], #modalSearch .close, #modalSearch .btn-close'
SEARCH_FIRST_RESULT = "#linkTable a, #linkTable tr[onclick], #linkTable td a, #linkTable tr td"

ANY_OPEN_MODAL = ".modal.fade.in"
ANY_MODAL_DISMISS = '.modal.fade.in .btn, .modal.fade.in button[data-dismiss="modal"]'

STRIP_BACKDROPS_JS = """
(body) => {
    body.querySelectorAll('.modal-backdrop').forEach((el) => el.remove());
    body.querySelectorAll('.modal.fade.in').forEach((el) => {
        el.style.display = 'none';
        el.classList.remove('in');
    });
}
"""

HIDE_MODAL_JS = """
(el) => {
    el.style.display = 'none';
    el.classList.remove('in');
    const backdrop = document.querySelector('.modal-backdrop');
    if (backdrop) backdrop.remove();
}
"""


def is_validation_error(text: str, keywords: Iterable[str]) -> bool:
    """Whether dialog text matches the validation-failure vocabulary."""
    lowered = (text or "").lower()
    return any(keyword and keyword in lowered for keyword in keywords)


async def read_message(frame) -> str:
    try:
        text = await frame.locator(MESSAGE_TEXT).first.text_content()
    except Exception as e:
        logger.debug(f"Could not read #modalMessage text: {e}")
        return ""
    return (text or "").strip()


async def _force_click_first(frame, selector: str):
    try:
        await frame.locator(selector).first.click(force=True)
    except Exception as e:
        logger.debug(f"Dismiss click on '{selector}' failed: {e}")


async def dismiss_message(page, frame, settings: FormSettings) -> Optional[str]:
    """Dismiss #modalMessage if it is open and return its text."""
    if not await is_visible(frame.locator(MESSAGE_MODAL)):
        return None
    text = await read_message(frame)
    logger.info(f"Dismissing #modalMessage: '{text[:100]}'")
    await _force_click_first(frame, MESSAGE_DISMISS)
    await pause(page, settings.delays.dialog_dismiss)
    return text


async def dismiss_messages(page, frame, settings: FormSettings, attempts: int = 3) -> List[str]:
    """Dismiss up to `attempts` stacked #modalMessage dialogs."""
    messages = []
    for _ in range(attempts):
        text = await dismiss_message(page, frame, settings)
        if text is None:
            break
        messages.append(text)
    return messages


async def dismiss_search(page, frame, settings: FormSettings) -> bool:
    """Close #modalSearch, hiding it via script if its buttons do nothing."""
    modal = frame.locator(SEARCH_MODAL)
    if not await is_visible(modal):
        return False

    logger.info("Dismissing #modalSearch")
    close_button = frame.locator(SEARCH_DISMISS).first
    if await is_visible(close_button):
        await _force_click_first(frame, SEARCH_DISMISS)
    else:
        await frame.locator("body").press("Escape")
    await pause(page, settings.delays.search_modal_dismiss)

    if await is_visible(modal):
        logger.info("#modalSearch still open, hiding via script")
        await frame.locator("#modalSearch").evaluate(HIDE_MODAL_JS)
        await pause(page, settings.delays.search_modal_dismiss)
    return True


async def dismiss_any_modal(page, frame, settings: FormSettings) -> bool:
    if not await is_visible(frame.locator(ANY_OPEN_MODAL).first):
        return False
    await _force_click_first(frame, ANY_MODAL_DISMISS)
    await pause(page, settings.delays.search_modal_dismiss)
    return True


async def strip_backdrops(page, frame, settings: FormSettings):
    try:
        await frame.locator("body").evaluate(STRIP_BACKDROPS_JS)
    except Exception as e:
        logger.debug(f"Backdrop cleanup failed: {e}")
    await pause(page, settings.delays.search_modal_dismiss)


async def collect_dialogs(page, frame, settings: FormSettings, attempts: int = 3) -> Tuple[List[str], List[str]]:
    """
    Poll for post-action dialogs, dismissing each one.

    Returns:
        (all dialog texts, texts classified as validation errors)
    """
    messages = await dismiss_messages(page, frame, settings, attempts)
    errors = [m for m in messages if is_validation_error(m, settings.validation_keywords)]
    for message in messages:
        if message in errors:
            logger.warning(f"Validation error dialog: '{message}'")
        else:
            logger.info(f"Informational dialog: '{message[:100]}'")
    return messages, errors
