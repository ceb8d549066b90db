"""
Automation Orchestrator - ties the sheet, the session pool, the stage
pipeline and the scheduler together.

Usage:
    orchestrator = AutomationOrchestrator.from_config()
    await orchestrator.startup()          # reclaim orphaned browsers
    orchestrator.start_polling()          # or: await orchestrator.process_job(12)
    await orchestrator.shutdown()         # graceful stop
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, Optional

from api.config import AppConfig, get_config
from automation.settings import FormSettings
from automation.stages import get_stage
from browser.session_pool import DEFAULT_WORKER_KEY, PlaywrightLauncher, SessionPool
from core.job_runner import JobRunner
from core.models import JobFields, JobResult, RowStatus
from core.normalize import build_job_fields
from core.pipeline import PipelineExecutor, StageOutcome
from core.scheduler import JobScheduler
from core.screenshot_manager import ScreenshotConfig, ScreenshotManager
from monitoring.telemetry import EventBroadcaster, RunHistory
from sheets.client import SheetClient

logger = logging.getLogger(__name__)


@dataclass
class AutomationOrchestrator:
    """
    Owns every long-lived component of the uploader.

    The dashboard, the CLI and the tests all drive the system through this
    object; components can be swapped individually for fakes.
    """
    config: AppConfig
    broadcaster: EventBroadcaster
    history: RunHistory
    sheet: SheetClient
    pool: SessionPool
    screenshots: ScreenshotManager
    runner: JobRunner
    scheduler: JobScheduler
    launcher: Any = None
    started: bool = field(default=False)

    @classmethod
    def from_config(
        cls,
        config: Optional[AppConfig] = None,
        broadcaster: Optional[EventBroadcaster] = None,
        launcher: Any = None,
        sheet: Optional[SheetClient] = None,
        reclaimer=None,
    ) -> "AutomationOrchestrator":
        config = config or get_config()
        broadcaster = broadcaster or EventBroadcaster()
        history = RunHistory(broadcaster)

        sheet = sheet or SheetClient(config.SHEET_WEBAPP_URL, config.COLUMN_MAPPING)
        launcher = launcher or PlaywrightLauncher(
            headless=config.HEADLESS,
            navigation_timeout_ms=config.NAVIGATION_TIMEOUT_MS,
            action_timeout_ms=config.ACTION_TIMEOUT_MS,
        )
        pool = SessionPool(
            launcher,
            config.USER_DATA_DIR,
            reclaimer=reclaimer,
            launch_retries=config.LAUNCH_RETRIES,
            retry_delay=config.LAUNCH_RETRY_DELAY_SECONDS,
            max_fresh_profiles=config.MAX_FRESH_PROFILES,
        )
        screenshots = ScreenshotManager(ScreenshotConfig(base_dir=config.SCREENSHOT_DIR))
        runner = JobRunner(sheet, pool, history, screenshots, config=config)
        scheduler = JobScheduler(
            sheet,
            runner.process_job,
            broadcaster=broadcaster,
            poll_interval_ms=config.POLL_INTERVAL_MS,
            concurrency=config.CONCURRENCY,
            inter_job_pause=config.INTER_JOB_PAUSE_SECONDS,
            inter_batch_pause=config.INTER_BATCH_PAUSE_SECONDS,
        )
        return cls(
            config=config,
            broadcaster=broadcaster,
            history=history,
            sheet=sheet,
            pool=pool,
            screenshots=screenshots,
            runner=runner,
            scheduler=scheduler,
            launcher=launcher,
        )

    # ------------------------------------------------------------ lifecycle

    async def startup(self):
        """Reclaim browsers orphaned by a previous run."""
        if self.started:
            return
        killed = self.pool.reclaim_orphans()
        if killed:
            logger.info(f"Startup: reclaimed {len(killed)} orphaned browser process(es)")
        missing = self.config.validate()
        if missing:
            logger.warning(f"Startup: missing configuration: {', '.join(missing)}")
        self.started = True
        self.broadcaster.publish_status("idle")

    async def shutdown(self):
        """Stop polling, close every session and the browser driver."""
        logger.info("Shutting down...")
        if self.scheduler.is_polling:
            self.scheduler.stop_polling()
        await self.scheduler.wait_stopped()
        await self.runner.drain()
        await self.pool.release_all()
        if self.launcher is not None and hasattr(self.launcher, "close"):
            await self.launcher.close()
        self.started = False
        logger.info("Shutdown complete")

    # ----------------------------------------------------------------- jobs

    async def process_job(self, row: int, worker_key: str = DEFAULT_WORKER_KEY) -> JobResult:
        result = await self.runner.process_job(row, worker_key)
        await self.runner.drain()
        return result

    def start_polling(self, interval_ms: Optional[int] = None) -> Dict[str, Any]:
        return self.scheduler.start_polling(interval_ms)

    def stop_polling(self) -> Dict[str, Any]:
        return self.scheduler.stop_polling()

    async def fields_for_row(self, row: int) -> JobFields:
        sheet_row = await self.sheet.get_row(row)
        return build_job_fields(sheet_row, default_amount=self.config.DEFAULT_DONATION_AMOUNT)

    async def run_stage(
        self,
        name: str,
        fields: Optional[JobFields] = None,
        row: Optional[int] = None,
        worker_key: str = DEFAULT_WORKER_KEY,
    ) -> StageOutcome:
        """
        Run a single named stage against the worker's live session.

        The session is left open afterwards so the next stage can be run
        against the same page state.
        """
        if fields is None:
            if row is None:
                raise ValueError("run_stage needs either fields or a row number")
            fields = await self.fields_for_row(row)

        async def write_uploaded():
            if row is None:
                logger.info("No row given, skipping status write")
                return
            await self.sheet.update_cell(row, self.config.STATUS_COLUMN, RowStatus.UPLOADED.value)

        stage = get_stage(name, FormSettings.from_config(self.config), write_status=write_uploaded)
        session = await self.pool.acquire(worker_key)
        outcome = await PipelineExecutor().run_stage(stage, session, fields)
        level = logging.INFO if outcome.success else logging.ERROR
        logger.log(level, f"Stage {name}: {'OK' if outcome.success else 'FAILED'} - {outcome.message}")
        return outcome

    def status(self) -> Dict[str, Any]:
        current = self.history.current()
        return {
            "polling": self.scheduler.is_polling,
            "processing": self.scheduler.is_processing,
            "concurrency": self.scheduler.concurrency,
            "current_run": current.to_dict() if current else None,
            "sessions": self.pool.get_stats(),
            "scheduler": dict(self.scheduler.stats),
            "missing_config": self.config.validate(),
        }
