"""
Orphaned Chrome process reclamation.

A crashed run can leave Chromium processes holding a profile directory's
lock. Before launching, the session pool asks a reclaimer to kill any
browser process whose command line references that directory.
"""

import logging
import re
from abc import ABC, abstractmethod
from pathlib import Path
from typing import List

import psutil

logger = logging.getLogger(__name__)

BROWSER_PROCESS_MARKERS = ("chrome", "chromium")


class OrphanReclaimer(ABC):
    """Capability the session pool uses to free profile directories."""

    @abstractmethod
    def reclaim_matching(self, pattern: str, exact_arg: bool = False) -> List[int]:
        """Kill browser processes whose command line contains pattern.

        With exact_arg, one command line argument must equal pattern.
        """

    def reclaim_for_dir(self, profile_dir: str) -> List[int]:
        """Kill browser processes using one specific profile directory."""
        # user-data must not match the live user-data-w1 browser
        return self.reclaim_matching(f"--user-data-dir={profile_dir}", exact_arg=True)


class NoopReclaimer(OrphanReclaimer):
    """Reclaimer that never touches processes."""

    def reclaim_matching(self, pattern: str, exact_arg: bool = False) -> List[int]:
        return []


class PsutilOrphanReclaimer(OrphanReclaimer):
    """Cross-platform reclaimer backed by psutil."""

    def __init__(self, wait_timeout: float = 2.0):
        self.wait_timeout = wait_timeout

    def _is_browser(self, name: str, cmdline: str) -> bool:
        return any(marker in name or marker in cmdline for marker in BROWSER_PROCESS_MARKERS)

    def reclaim_matching(self, pattern: str, exact_arg: bool = False) -> List[int]:
        if not pattern:
            return []
        needle = pattern.lower()
        victims = []

        for proc in psutil.process_iter(['pid', 'name', 'cmdline']):
            try:
                name = (proc.info['name'] or '').lower()
                args = [arg.lower() for arg in (proc.info['cmdline'] or [])]
                cmdline = ' '.join(args)
                matched = needle in args if exact_arg else needle in cmdline
                if self._is_browser(name, cmdline) and matched:
                    proc.kill()
                    victims.append(proc)
            except (psutil.NoSuchProcess, psutil.AccessDenied, psutil.ZombieProcess):
                continue

        killed = [proc.pid for proc in victims]
        if victims:
            logger.warning(f"Killed {len(killed)} orphaned browser processes matching '{pattern}': {killed}")
            # Give the OS time to release profile lock files
            psutil.wait_procs(victims, timeout=self.wait_timeout)
        else:
            logger.debug(f"No orphaned browser processes matching '{pattern}'")
        return killed


def profile_prefix(base_dir: str) -> str:
    """Naming prefix shared by every profile dir derived from base_dir.

    user-data-6 -> user-data-, which also covers user-data-6-w1 and
    user-data-6-fresh2 left behind by earlier runs.
    """
    name = Path(base_dir).name
    return re.sub(r"-\d+$", "-", name)
