"""
Frame and field helpers for the MMX form.

After login the page is a frameset: everything lives inside the frame named
"contentframe", and each top-level tab hosts its own iframe
(#ifrmClient, #ifrmPolicy, #ifrmCover).
"""

import logging
from typing import Optional

from automation.settings import FormSettings
from automation.timing import pause
from core.errors import StageError

logger = logging.getLogger(__name__)

CONTENT_FRAME_NAME = "contentframe"

TAB_LINKS = {
    "ifrmClient": "#tabsClient",
    "ifrmPolicy": "#tabsPolicy",
    "ifrmCover": "#tabsCover",
}


def content_frame(page):
    """The frame that hosts every MMX screen after login."""
    frame = page.frame(name=CONTENT_FRAME_NAME)
    if frame is None:
        raise StageError("Content frame not found. Is the user logged in?")
    return frame


async def is_visible(locator) -> bool:
    """Visibility probe that treats a detached or missing element as hidden."""
    try:
        return await locator.is_visible()
    except Exception as e:
        logger.debug(f"Visibility check failed: {e}")
        return False


async def open_tab(page, frame, iframe_id: str, settings: FormSettings, settle_ms: Optional[int] = None,
                   skip_if_active: bool = False):
    """Click the top-level tab that hosts iframe_id and return that iframe."""
    href = TAB_LINKS[iframe_id]
    if skip_if_active and await is_visible(frame.locator(f'li.active > a[href="{href}"]')):
        logger.debug(f"Tab {href} already active")
    else:
        link = frame.locator(f'a[href="{href}"]')
        await link.wait_for(state="visible", timeout=settings.action_timeout_ms)
        await link.click()
        await pause(page, settings.delays.tab_settle if settle_ms is None else settle_ms)
    return frame.frame_locator(f"#{iframe_id}")


async def fill_field(page, scope, selector: str, value: str, settings: FormSettings, label: str = ""):
    """Select-all, type, and tab out of an input so its blur handler runs."""
    logger.info(f"Setting {label or selector}: {value}")
    field = scope.locator(selector)
    await field.click(click_count=3)
    await field.fill(value)
    await field.press("Tab")
    await pause(page, settings.delays.field_settle)


async def select_by_label(select, label: str, fallback_value: Optional[str] = None, timeout_ms: int = 10000):
    """Select an option by its label, falling back to its value."""
    try:
        await select.select_option(label=label, timeout=timeout_ms)
    except Exception as e:
        value = fallback_value if fallback_value is not None else label
        logger.debug(f"No option labelled '{label}' ({e}), selecting value '{value}'")
        await select.select_option(value=value, timeout=timeout_ms)
