"""
Failure screenshot capture and lookup.

Screenshots are named fail-row{N}-{epoch_ms}.png and stored flat in one
directory; the dashboard serves them back by file name only.
"""

import logging
import re
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

logger = logging.getLogger(__name__)

SCREENSHOT_NAME = re.compile(r"^[A-Za-z0-9_.-]+\.png$")


@dataclass
class ScreenshotConfig:
    """Configuration for screenshot capture."""
    base_dir: Path
    naming_template: str = "fail-row{row}-{timestamp}.png"
    full_page: bool = True


class ScreenshotManager:
    """
    Failure snapshot capture.

    Usage:
        manager = ScreenshotManager(ScreenshotConfig(base_dir=Path("./screenshots")))
        filename = await manager.capture_failure(page, row=12)
        path = manager.resolve(filename)
    """

    def __init__(self, config: ScreenshotConfig):
        self.config = config
        self.config.base_dir = Path(self.config.base_dir)
        self.config.base_dir.mkdir(parents=True, exist_ok=True)

    def _filename(self, row: int) -> str:
        return self.config.naming_template.format(row=row, timestamp=int(time.time() * 1000))

    async def capture_failure(self, page, row: int) -> Optional[str]:
        """
        Capture a full-page screenshot of the failing page.

        Never raises: a page that is already closed or crashed yields None.

        Returns:
            The screenshot file name, or None if capture failed
        """
        if page is None:
            return None

        filename = self._filename(row)
        path = self.config.base_dir / filename
        try:
            await page.screenshot(path=str(path), full_page=self.config.full_page)
        except Exception as e:
            logger.warning(f"[Row {row}] Could not capture screenshot: {e}")
            return None

        logger.info(f"[Row {row}] Failure screenshot saved: {filename}")
        return filename

    def resolve(self, filename: str) -> Optional[Path]:
        """Path of a stored screenshot, or None for unknown or unsafe names."""
        if not filename or not SCREENSHOT_NAME.match(filename) or ".." in filename:
            return None
        path = (self.config.base_dir / filename).resolve()
        if path.parent != self.config.base_dir.resolve() or not path.is_file():
            return None
        return path
