"""
Browser session management for the MMX uploader.

    from browser import SessionPool, PlaywrightLauncher

    pool = SessionPool(PlaywrightLauncher(headless=True), "./user-data")
    session = await pool.acquire("w1")
    page = await session.page()
"""

from browser.reclaimer import OrphanReclaimer, PsutilOrphanReclaimer, NoopReclaimer
from browser.session_pool import (
    BrowserSession,
    PlaywrightLauncher,
    SessionPool,
    DEFAULT_WORKER_KEY,
)

__all__ = [
    "OrphanReclaimer",
    "PsutilOrphanReclaimer",
    "NoopReclaimer",
    "BrowserSession",
    "PlaywrightLauncher",
    "SessionPool",
    "DEFAULT_WORKER_KEY",
]
