"""
Job Runner - pushes one sheet row through the full MMX pipeline.

Flow:
1. Configuration check (no session is touched if anything is missing)
2. Fetch the row; skip unless its status reads "new" and it has a name
3. Start a run record, mark the row "Processing..." (yellow)
4. Acquire the worker's browser session and run the stage pipeline,
   highlighting confirmed columns green as stages pass
5. Success: the update_status stage writes "Uploaded"; the session is closed
6. Failure: full-page screenshot, session closed, and
   "FAILED at <stage>: <message>" written to the status cell (red)
"""

import asyncio
import logging
from typing import Callable, Dict, Iterable, List, Optional, Set

from api.config import AppConfig, get_config
from automation.settings import FormSettings
from automation.stages import build_stages
from browser.session_pool import DEFAULT_WORKER_KEY, SessionPool
from core.errors import ConfigurationError
from core.models import HighlightColor, JobResult, RowStatus
from core.normalize import build_job, is_eligible
from core.pipeline import PipelineExecutor, Stage, StageOutcome
from core.screenshot_manager import ScreenshotManager
from monitoring.telemetry import RunHistory
from sheets.client import SheetClient

logger = logging.getLogger(__name__)

MAX_STATUS_MESSAGE_LENGTH = 300


def failure_marker(stage: str, message: str, limit: int = MAX_STATUS_MESSAGE_LENGTH) -> str:
    """The status cell text for a failed job, bounded to `limit` characters."""
    marker = f"FAILED at {stage}: {message}"
    if len(marker) > limit:
        marker = marker[:limit - 3] + "..."
    return marker


class JobRunner:
    """
    Runs single jobs end to end.

    Usage:
        runner = JobRunner(sheet, pool, history, screenshots)
        result = await runner.process_job(12, worker_key="w1")
    """

    def __init__(
        self,
        sheet: SheetClient,
        pool: SessionPool,
        history: RunHistory,
        screenshots: ScreenshotManager,
        config: Optional[AppConfig] = None,
        settings: Optional[FormSettings] = None,
        stage_factory: Optional[Callable[..., List[Stage]]] = None,
    ):
        self.sheet = sheet
        self.pool = pool
        self.history = history
        self.screenshots = screenshots
        self.config = config or get_config()
        self.settings = settings or FormSettings.from_config(self.config)
        self.stage_factory = stage_factory or build_stages
        self._background: Set[asyncio.Task] = set()
        self._job_locks: Dict[str, asyncio.Lock] = {}

    # ------------------------------------------------------------ highlights

    def _highlight(self, row: int, columns: Iterable[str], color: HighlightColor):
        """Fire-and-forget highlight; failures are logged, never raised."""
        columns = list(columns)
        if not columns:
            return

        async def _run():
            try:
                await self.sheet.highlight_cells(row, columns, color.value)
            except Exception as e:
                logger.warning(f"[Row {row}] Highlight {','.join(columns)} failed: {e}")

        task = asyncio.create_task(_run())
        self._background.add(task)
        task.add_done_callback(self._background.discard)

    async def drain(self):
        """Wait for pending highlight tasks."""
        if self._background:
            await asyncio.gather(*list(self._background), return_exceptions=True)

    # ------------------------------------------------------------------ jobs

    def _job_lock(self, worker_key: str) -> asyncio.Lock:
        lock = self._job_locks.get(worker_key)
        if lock is None:
            lock = self._job_locks[worker_key] = asyncio.Lock()
        return lock

    async def process_job(self, row: int, worker_key: str = DEFAULT_WORKER_KEY) -> JobResult:
        """
        Run one row on the worker's session.

        Jobs on one worker key run one at a time; manual runs and poll
        ticks queue on the same per-key lock.
        """
        lock = self._job_lock(worker_key)
        if lock.locked():
            logger.info(f"[Row {row}] Waiting for worker '{worker_key}' to finish its current job")
        async with lock:
            return await self._process(row, worker_key)

    async def _process(self, row: int, worker_key: str) -> JobResult:
        missing = self.config.validate()
        if missing:
            message = str(ConfigurationError(missing))
            logger.error(f"[Row {row}] {message}")
            return JobResult(success=False, message=message, row=row, stage="config")

        status_col = self.config.STATUS_COLUMN
        stage = "fetch_row"
        run = None
        session = None

        try:
            logger.info(f"[Row {row}] Fetching row data...")
            sheet_row = await self.sheet.get_row(row)

            if not is_eligible(sheet_row.status):
                logger.info(f"[Row {row}] Skipping - status is '{sheet_row.status}' (must be 'New')")
                return JobResult(False, f"Row status is '{sheet_row.status}', expected 'New'", row=row)

            job = build_job(sheet_row, default_amount=self.config.DEFAULT_DONATION_AMOUNT)
            if not job.fields.client_name and not job.fields.client_surname:
                logger.info(f"[Row {row}] Skipping - no client name or surname")
                return JobResult(False, "No client name or surname in row", row=row)

            run = self.history.start_run(row_number=row, client_name=job.display_name, worker_key=worker_key)

            stage = "mark_processing"
            await self.sheet.update_cell(row, status_col, RowStatus.PROCESSING.value)
            self._highlight(row, [status_col], HighlightColor.YELLOW)
            logger.info(
                f"[Row {row}] {job.display_name}: debit order {job.fields.debit_order_date}, "
                f"collection day {job.fields.collection_day}, bank '{job.fields.bank}'"
            )

            stage = "acquire_session"
            session = await self.pool.acquire(worker_key)

            async def write_uploaded():
                await self.sheet.update_cell(row, status_col, RowStatus.UPLOADED.value)

            stages = self.stage_factory(
                settings=self.settings,
                write_status=write_uploaded,
                column_for=self.config.column_for,
            )

            def on_stage_start(current: Stage):
                nonlocal stage
                stage = current.name
                self.history.update_stage(run.id, current.name)

            def on_stage_success(current: Stage, outcome: StageOutcome):
                self._highlight(row, current.highlight_columns, HighlightColor.GREEN)

            executor = PipelineExecutor(on_stage_start=on_stage_start, on_stage_success=on_stage_success)
            result = await executor.run(session, job.fields, stages)

            if not result.success:
                return await self._fail(row, worker_key, result.failed_stage, result.message, run, session)

            self.history.complete_run(run.id, success=True)
            logger.info(f"[Row {row}] Successfully processed, closing browser")
            await self.pool.release(worker_key)
            return JobResult(True, f"Row {row} processed successfully", row=row)

        except Exception as e:
            return await self._fail(row, worker_key, stage, str(e) or type(e).__name__, run, session)

    async def _fail(self, row: int, worker_key: str, stage: str, message: str, run, session) -> JobResult:
        marker = failure_marker(stage, message)
        logger.error(f"[Row {row}] {marker}")

        screenshot = None
        if session is not None:
            page = None
            try:
                page = await session.page()
            except Exception as e:
                logger.warning(f"[Row {row}] No page available for screenshot: {e}")
            screenshot = await self.screenshots.capture_failure(page, row)

        if run is not None:
            self.history.complete_run(run.id, success=False, error=marker, screenshot_path=screenshot)

        # Never carry a half-filled form into the next job
        await self.pool.release(worker_key)

        try:
            await self.sheet.update_cell(row, self.config.STATUS_COLUMN, marker)
            self._highlight(row, [self.config.STATUS_COLUMN], HighlightColor.RED)
        except Exception as e:
            logger.error(f"[Row {row}] Failed to write error to sheet: {e}")

        return JobResult(False, marker, row=row, stage=stage, screenshot_path=screenshot)
