"""
Filing a tab: the shared protocol behind every MMX "File" button.

1. Activate the tab unless it is already active
2. Dismiss lingering #modalMessage (up to 3) and #modalSearch dialogs
3. Strip modal backdrops, scroll #btnSave into view and click it
4. Wait a fixed server round trip (there is no usable idle signal)
5. Poll up to 3 post-File dialogs, classifying each against the
   validation vocabulary and dismissing it
6. Any validation messages fail the stage, joined with " | "
"""

import logging

from automation.dialogs import collect_dialogs, dismiss_messages, dismiss_search, strip_backdrops
from automation.frames import content_frame, open_tab
from automation.settings import FormSettings
from automation.timing import pause
from core.pipeline import StageOutcome

logger = logging.getLogger(__name__)

SAVE_BUTTON = "#btnSave"
POST_FILE_DIALOG_ATTEMPTS = 3


async def click_file_button(page, frame, settings: FormSettings):
    button = frame.locator(SAVE_BUTTON)
    await button.scroll_into_view_if_needed()
    await pause(page, settings.delays.before_click)
    await button.click()
    await pause(page, settings.delays.server_round_trip)


async def file_tab(page, iframe_id: str, settings: FormSettings, skip_if_active: bool = False) -> StageOutcome:
    """File the tab hosted by iframe_id and surface any validation dialogs."""
    try:
        frame = content_frame(page)
        logger.info(f"Filing tab {iframe_id}")
        iframe = await open_tab(page, frame, iframe_id, settings, skip_if_active=skip_if_active)

        lingering = await dismiss_messages(page, iframe, settings)
        if lingering:
            logger.info(f"Dismissed {len(lingering)} lingering dialogs before filing {iframe_id}")
        await dismiss_search(page, iframe, settings)
        await strip_backdrops(page, iframe, settings)

        logger.info(f"Clicking File button ({SAVE_BUTTON}) inside #{iframe_id}")
        await click_file_button(page, iframe, settings)

        dialogs, errors = await collect_dialogs(page, iframe, settings, POST_FILE_DIALOG_ATTEMPTS)
        if errors:
            return StageOutcome.fail(
                " | ".join(errors),
                iframe=iframe_id,
                validation_errors=errors,
                dialogs=dialogs,
            )

        logger.info(f"Tab {iframe_id} filed successfully")
        return StageOutcome.ok(f"Tab {iframe_id} filed successfully", iframe=iframe_id, dialogs=dialogs)
    except Exception as e:
        logger.error(f"file_tab({iframe_id}) error: {e}")
        return StageOutcome.fail(f"file_tab({iframe_id}) error: {e}", iframe=iframe_id)


async def file_client_tab(page, settings: FormSettings) -> StageOutcome:
    return await file_tab(page, "ifrmClient", settings)


async def file_policy_tab(page, settings: FormSettings) -> StageOutcome:
    return await file_tab(page, "ifrmPolicy", settings)


async def file_cover_tab(page, settings: FormSettings) -> StageOutcome:
    # The cover item form is already open after the cover stage
    return await file_tab(page, "ifrmCover", settings, skip_if_active=True)
