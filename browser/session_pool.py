#!/usr/bin/env python3
"""
Browser Session Pool - one persistent Chromium profile per worker key.

Worker "default" uses USER_DATA_DIR; worker "w<N>" uses USER_DATA_DIR-w<N>.
Sessions are launched lazily, reused across jobs, and relaunched
transparently after they close.

Launch protocol per key:
1. Kill browser processes still holding the profile dir, remove stale locks
2. Up to N launch attempts with a fixed delay, re-cleaning locks between them
3. Rename the profile aside (<dir>-corrupt-<ts>) and relaunch at the original path
4. Try <dir>-fresh1..<dir>-freshN until one launches
"""

import asyncio
import logging
import time
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, List, Optional

from playwright.async_api import async_playwright, BrowserContext, Page

from api.logging_config import log_browser_event
from browser.reclaimer import OrphanReclaimer, PsutilOrphanReclaimer, profile_prefix
from core.errors import SessionLaunchError
from core.models import SessionState

logger = logging.getLogger(__name__)

DEFAULT_WORKER_KEY = "default"
STALE_LOCK_FILES = ("lockfile", "SingletonLock", "SingletonSocket", "SingletonCookie")
CHROMIUM_ARGS = [
    "--disable-blink-features=AutomationControlled",
    "--no-sandbox",
    "--disable-gpu",
]
VIEWPORT = {"width": 1366, "height": 768}


@dataclass
class BrowserSession:
    """A live persistent browser context bound to one worker key."""
    worker_key: str
    context: Any  # Playwright BrowserContext
    profile_dir: str
    created_at: datetime = field(default_factory=datetime.now)
    jobs_processed: int = 0

    async def page(self) -> Page:
        """The session's single working page, created on first use."""
        pages = self.context.pages
        if pages:
            return pages[0]
        return await self.context.new_page()


class PlaywrightLauncher:
    """Launches persistent Chromium contexts through one Playwright driver."""

    def __init__(
        self,
        headless: bool = False,
        navigation_timeout_ms: int = 30000,
        action_timeout_ms: int = 10000,
    ):
        self.headless = headless
        self.navigation_timeout_ms = navigation_timeout_ms
        self.action_timeout_ms = action_timeout_ms
        self._playwright = None
        self._start_lock = asyncio.Lock()

    async def _driver(self):
        async with self._start_lock:
            if self._playwright is None:
                self._playwright = await async_playwright().start()
            return self._playwright

    async def launch(self, profile_dir: str) -> BrowserContext:
        playwright = await self._driver()
        context = await playwright.chromium.launch_persistent_context(
            profile_dir,
            headless=self.headless,
            viewport=VIEWPORT,
            args=CHROMIUM_ARGS,
        )
        context.set_default_navigation_timeout(self.navigation_timeout_ms)
        context.set_default_timeout(self.action_timeout_ms)
        return context

    async def close(self):
        if self._playwright is not None:
            await self._playwright.stop()
            self._playwright = None


class SessionPool:
    """
    Keyed registry of browser sessions with crash and lock recovery.

    Features:
    - Lazy launch and reuse per worker key
    - Stale lock cleanup and orphaned process reclamation
    - Corrupt profile rename and fresh-directory fallback
    - Same-key acquires serialized; different keys never block each other
    """

    def __init__(
        self,
        launcher,
        base_profile_dir: str,
        reclaimer: Optional[OrphanReclaimer] = None,
        launch_retries: int = 3,
        retry_delay: float = 2.0,
        max_fresh_profiles: int = 10,
    ):
        self.launcher = launcher
        self.base_profile_dir = str(Path(base_profile_dir).resolve())
        self.reclaimer = reclaimer or PsutilOrphanReclaimer()
        self.launch_retries = launch_retries
        self.retry_delay = retry_delay
        self.max_fresh_profiles = max_fresh_profiles

        self._sessions: Dict[str, BrowserSession] = {}
        self._states: Dict[str, SessionState] = {}
        self._locks: Dict[str, asyncio.Lock] = {}
        self.stats = {
            'sessions_launched': 0,
            'sessions_reused': 0,
            'launch_failures': 0,
            'profiles_recovered': 0,
            'sessions_closed': 0,
        }

    # ---------------------------------------------------------------- state

    def profile_dir_for(self, worker_key: str = DEFAULT_WORKER_KEY) -> str:
        if not worker_key or worker_key == DEFAULT_WORKER_KEY:
            return self.base_profile_dir
        return f"{self.base_profile_dir}-{worker_key}"

    def state(self, worker_key: str = DEFAULT_WORKER_KEY) -> SessionState:
        return self._states.get(worker_key, SessionState.ABSENT)

    def get(self, worker_key: str = DEFAULT_WORKER_KEY) -> Optional[BrowserSession]:
        return self._sessions.get(worker_key)

    @property
    def active_keys(self) -> List[str]:
        return list(self._sessions.keys())

    def _set_state(self, worker_key: str, state: SessionState):
        if state == SessionState.ABSENT:
            self._states.pop(worker_key, None)
        else:
            self._states[worker_key] = state

    def _lock_for(self, worker_key: str) -> asyncio.Lock:
        return self._locks.setdefault(worker_key, asyncio.Lock())

    # ------------------------------------------------------------- lifecycle

    async def acquire(self, worker_key: str = DEFAULT_WORKER_KEY) -> BrowserSession:
        """Return the live session for worker_key, launching it if needed."""
        worker_key = worker_key or DEFAULT_WORKER_KEY
        async with self._lock_for(worker_key):
            existing = self._sessions.get(worker_key)
            if existing is not None:
                existing.jobs_processed += 1
                self.stats['sessions_reused'] += 1
                return existing

            self._set_state(worker_key, SessionState.LAUNCHING)
            try:
                session = await self._launch(worker_key)
            except Exception:
                self._set_state(worker_key, SessionState.ABSENT)
                raise

            session.jobs_processed = 1
            self._sessions[worker_key] = session
            self._set_state(worker_key, SessionState.READY)
            return session

    async def release(self, worker_key: str = DEFAULT_WORKER_KEY):
        """Close the session for worker_key; the next acquire relaunches."""
        worker_key = worker_key or DEFAULT_WORKER_KEY
        session = self._sessions.pop(worker_key, None)
        if session is None:
            return

        self._set_state(worker_key, SessionState.CLOSING)
        try:
            await session.context.close()
        except Exception as e:
            logger.warning(f"[{worker_key}] Error closing browser context: {e}")
        finally:
            self._set_state(worker_key, SessionState.ABSENT)
            self.stats['sessions_closed'] += 1
            log_browser_event(worker_key, "released")

    async def release_all(self):
        """Force-close every live session."""
        for worker_key in list(self._sessions.keys()):
            await self.release(worker_key)

    def reclaim_orphans(self) -> List[int]:
        """Kill browser processes left over from earlier runs of any worker."""
        prefix = profile_prefix(self.base_profile_dir)
        logger.info(f"Orphan cleanup: scanning for browser processes matching '{prefix}*'")
        try:
            return self.reclaimer.reclaim_matching(prefix)
        except Exception as e:
            logger.warning(f"Orphan cleanup failed (non-fatal): {e}")
            return []

    # ---------------------------------------------------------------- launch

    def _clean_stale_locks(self, profile_dir: str):
        for lock_name in STALE_LOCK_FILES:
            lock_path = Path(profile_dir) / lock_name
            try:
                # SingletonLock is usually a dangling symlink, so exists() is not enough
                if lock_path.is_symlink() or lock_path.exists():
                    lock_path.unlink()
                    logger.info(f"Removed stale lock file: {lock_path}")
            except OSError as e:
                logger.warning(f"Could not remove lock file {lock_path}: {e}")

    async def _reclaim_dir(self, profile_dir: str):
        try:
            await asyncio.to_thread(self.reclaimer.reclaim_for_dir, profile_dir)
        except Exception as e:
            logger.warning(f"Pre-launch cleanup failed for {profile_dir}: {e}")

    def _register(self, worker_key: str, context: Any, profile_dir: str) -> BrowserSession:
        session = BrowserSession(worker_key=worker_key, context=context, profile_dir=profile_dir)

        def _on_close(*_):
            # Only drop the entry if it still points at this context
            current = self._sessions.get(worker_key)
            if current is not None and current.context is context:
                self._sessions.pop(worker_key, None)
                self._set_state(worker_key, SessionState.ABSENT)
            log_browser_event(worker_key, "context closed")

        context.on("close", _on_close)
        self.stats['sessions_launched'] += 1
        return session

    async def _launch(self, worker_key: str) -> BrowserSession:
        profile_dir = self.profile_dir_for(worker_key)
        Path(profile_dir).parent.mkdir(parents=True, exist_ok=True)

        await self._reclaim_dir(profile_dir)
        self._clean_stale_locks(profile_dir)

        last_error: Optional[Exception] = None
        for attempt in range(1, self.launch_retries + 1):
            try:
                log_browser_event(worker_key, "launching", f"attempt {attempt}/{self.launch_retries} at {profile_dir}")
                context = await self.launcher.launch(profile_dir)
                log_browser_event(worker_key, "launched")
                return self._register(worker_key, context, profile_dir)
            except Exception as e:
                last_error = e
                self.stats['launch_failures'] += 1
                logger.error(f"[{worker_key}] Browser launch attempt {attempt} failed: {e}")
                if attempt < self.launch_retries:
                    self._clean_stale_locks(profile_dir)
                    await asyncio.sleep(self.retry_delay)

        logger.warning(f"[{worker_key}] All {self.launch_retries} attempts failed, recovering profile")
        self._set_state(worker_key, SessionState.RECOVERING)
        session = await self._recover(worker_key, profile_dir)
        if session is None:
            raise SessionLaunchError(
                worker_key,
                f"Browser failed after {self.launch_retries} attempts and profile recovery: {last_error}",
            )
        self.stats['profiles_recovered'] += 1
        return session

    async def _recover(self, worker_key: str, profile_dir: str) -> Optional[BrowserSession]:
        # Rename the corrupt profile aside and relaunch at the original path
        try:
            path = Path(profile_dir)
            if path.exists():
                corrupt_dir = f"{profile_dir}-corrupt-{int(time.time() * 1000)}"
                logger.warning(f"[{worker_key}] Renaming corrupted profile to {corrupt_dir}")
                path.rename(corrupt_dir)
            context = await self.launcher.launch(profile_dir)
            logger.info(f"[{worker_key}] Browser launched after profile rename")
            return self._register(worker_key, context, profile_dir)
        except Exception as e:
            logger.warning(f"[{worker_key}] Rename/launch failed: {e}")

        for index in range(1, self.max_fresh_profiles + 1):
            fresh_dir = f"{profile_dir}-fresh{index}"
            if (Path(fresh_dir) / "lockfile").exists():
                logger.info(f"[{worker_key}] Skipping {fresh_dir}: lockfile exists")
                continue
            try:
                logger.info(f"[{worker_key}] Trying fresh profile directory: {fresh_dir}")
                self._clean_stale_locks(fresh_dir)
                context = await self.launcher.launch(fresh_dir)
                logger.info(f"[{worker_key}] Browser launched with fresh profile: {fresh_dir}")
                return self._register(worker_key, context, fresh_dir)
            except Exception as e:
                logger.warning(f"[{worker_key}] Fresh dir {fresh_dir} also failed: {e}")
                self._clean_stale_locks(fresh_dir)

        logger.error(f"[{worker_key}] All profile recovery attempts exhausted")
        return None

    def get_stats(self) -> Dict[str, Any]:
        return {
            **self.stats,
            'active_sessions': len(self._sessions),
            'states': {key: state.value for key, state in self._states.items()},
        }
