"""
MMX login.

The login page always loads first. A still-valid session redirects away
from login.aspx; otherwise the credentials are typed and the real login
button is clicked. The page also carries a honeypot submit button named
HAHA that must never be clicked.

After a successful login the URL stays on login.aspx and the page turns
into a frameset hosting "contentframe", so success is judged by the login
form disappearing rather than by the URL.
"""

import logging

from automation.frames import is_visible
from automation.settings import FormSettings
from automation.timing import pause
from core.pipeline import StageOutcome

logger = logging.getLogger(__name__)

USERNAME_INPUT = "#txtUsername"
PASSWORD_INPUT = "#txtPassword"
LOGIN_BUTTON = 'input[name="loginButton"]'
LOGIN_ERROR = ".error, .validation-summary-errors, [id*='lblError']"
CONTENT_FRAME_ELEMENT = 'frame[name="contentframe"], iframe[name="contentframe"]'


async def login_to_mmx(page, settings: FormSettings) -> StageOutcome:
    if not settings.username or not settings.password:
        return StageOutcome.fail("Missing MMX credentials. Set MMX_USERNAME and MMX_PASSWORD in .env")

    try:
        logger.info(f"Navigating to {settings.login_url}")
        await page.goto(
            settings.login_url,
            wait_until="networkidle",
            timeout=settings.navigation_timeout_ms,
        )
        await pause(page, settings.delays.login_settle)

        current_url = page.url
        if "login" not in current_url.lower():
            logger.info(f"Already logged in, redirected to: {current_url}")
            return StageOutcome.ok(f"Already logged in. Current page: {current_url}", already_logged_in=True)

        username = page.locator(USERNAME_INPUT)
        await username.wait_for(state="visible", timeout=settings.action_timeout_ms)
        await username.click(click_count=3)
        await username.fill(settings.username)
        await pause(page, settings.delays.field_settle)

        password = page.locator(PASSWORD_INPUT)
        await password.click(click_count=3)
        await password.fill(settings.password)
        await pause(page, settings.delays.field_settle)

        logger.info(f"Credentials entered for {settings.username}, clicking login button")
        await page.locator(LOGIN_BUTTON).click()

        await page.wait_for_load_state("networkidle", timeout=settings.navigation_timeout_ms)
        await pause(page, settings.delays.post_login)

        if await is_visible(page.locator(USERNAME_INPUT)):
            error_text = None
            try:
                error_text = await page.locator(LOGIN_ERROR).first.text_content(timeout=1000)
            except Exception as e:
                logger.debug(f"No login error text found: {e}")
            detail = f"Error: {error_text.strip()}" if error_text else "Login form still visible after submit."
            return StageOutcome.fail(f"Login failed. {detail}")

        has_content_frame = await is_visible(page.locator(CONTENT_FRAME_ELEMENT).first)
        logger.info(f"Login successful. URL: {page.url}, contentframe present: {has_content_frame}")
        return StageOutcome.ok(
            f"Login successful. Content frame loaded: {has_content_frame}",
            already_logged_in=False,
        )
    except Exception as e:
        logger.error(f"Login error: {e}")
        return StageOutcome.fail(f"Login error: {e}")
