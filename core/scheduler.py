"""
Job Scheduler - polls the sheet and dispatches eligible rows.

Concurrency 1 runs rows one at a time on the "default" worker. Concurrency
N (2..5) runs batches of up to N rows, each row on its own worker key
w1..wN, and waits for the whole batch to settle before the next one.
A stop request takes effect between jobs or batches, never mid-stage.
"""

import asyncio
import logging
from typing import Any, Awaitable, Callable, Dict, List, Optional, Set

from browser.session_pool import DEFAULT_WORKER_KEY
from core.models import JobResult, SheetRow
from core.normalize import is_eligible
from monitoring.telemetry import EventBroadcaster

logger = logging.getLogger(__name__)

MIN_CONCURRENCY = 1
MAX_CONCURRENCY = 5

ProcessJob = Callable[[int, str], Awaitable[JobResult]]


def clamp_concurrency(value: Any) -> int:
    try:
        number = int(value)
    except (TypeError, ValueError):
        number = MIN_CONCURRENCY
    return max(MIN_CONCURRENCY, min(MAX_CONCURRENCY, number))


def partition(rows: List[SheetRow], size: int) -> List[List[SheetRow]]:
    return [rows[i:i + size] for i in range(0, len(rows), size)]


class JobScheduler:
    """
    Polling loop with a re-entrancy guarded tick.

    Usage:
        scheduler = JobScheduler(sheet, runner.process_job, broadcaster, concurrency=3)
        scheduler.start_polling(30000)
        ...
        scheduler.stop_polling()
    """

    def __init__(
        self,
        sheet,
        process_job: ProcessJob,
        broadcaster: Optional[EventBroadcaster] = None,
        poll_interval_ms: int = 30000,
        concurrency: int = 1,
        inter_job_pause: float = 3.0,
        inter_batch_pause: float = 2.0,
    ):
        self.sheet = sheet
        self.process_job = process_job
        self.broadcaster = broadcaster
        self.poll_interval_ms = poll_interval_ms
        self.inter_job_pause = inter_job_pause
        self.inter_batch_pause = inter_batch_pause
        self._concurrency = clamp_concurrency(concurrency)

        self._polling = False
        self._processing = False
        self._stop_requested = False
        self._wake = asyncio.Event()
        self._task: Optional[asyncio.Task] = None
        self._retired: Set[asyncio.Task] = set()
        self.stats = {
            'ticks': 0,
            'skipped_ticks': 0,
            'jobs_dispatched': 0,
            'jobs_succeeded': 0,
            'jobs_failed': 0,
        }

    # ---------------------------------------------------------------- state

    @property
    def concurrency(self) -> int:
        return self._concurrency

    @concurrency.setter
    def concurrency(self, value: int):
        self._concurrency = clamp_concurrency(value)
        logger.info(f"Concurrency set to {self._concurrency}x")

    @property
    def is_polling(self) -> bool:
        return self._polling

    @property
    def is_processing(self) -> bool:
        return self._processing

    def _emit(self, state: str, detail: Optional[str] = None):
        if self.broadcaster is not None:
            self.broadcaster.publish_status(state, detail)

    # -------------------------------------------------------------- polling

    def start_polling(self, interval_ms: Optional[int] = None) -> Dict[str, Any]:
        if self._polling:
            return {"success": False, "message": "Polling is already running."}

        interval = interval_ms or self.poll_interval_ms
        if self._task is not None and not self._task.done():
            # A loop stopped mid-tick; it exits once it sees it was replaced
            self._retired.add(self._task)
            self._task.add_done_callback(self._retired.discard)
        self._polling = True
        self._stop_requested = False
        self._wake = asyncio.Event()
        self._task = asyncio.create_task(self._poll_loop(interval, self._wake))
        logger.info(f"Sheet polling started (interval: {interval}ms, concurrency: {self._concurrency}x)")
        self._emit("polling")
        return {"success": True, "message": f"Polling started. Checking every {interval / 1000:g}s for new rows."}

    def stop_polling(self) -> Dict[str, Any]:
        if not self._polling:
            return {"success": False, "message": "Polling is not running."}

        self._polling = False
        self._stop_requested = True
        self._wake.set()
        logger.info("Sheet polling stopped")
        self._emit("idle")
        return {"success": True, "message": "Polling stopped."}

    async def wait_stopped(self):
        """Wait for the polling loop, any replaced loop, and in-flight ticks to finish."""
        tasks = list(self._retired)
        if self._task is not None:
            tasks.append(self._task)
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)
        if self._task is not None and self._task.done():
            self._task = None

    def _is_current(self, task: Optional[asyncio.Task]) -> bool:
        return self._polling and self._task is task

    async def _poll_loop(self, interval_ms: int, wake: asyncio.Event):
        me = asyncio.current_task()
        while self._is_current(me):
            try:
                await asyncio.wait_for(wake.wait(), timeout=interval_ms / 1000)
            except asyncio.TimeoutError:
                pass
            if not self._is_current(me):
                break
            await self.tick()

    # ----------------------------------------------------------------- tick

    async def tick(self) -> List[JobResult]:
        """Scan the sheet once and process every eligible row."""
        if self._processing:
            logger.info("Poll: skipping - already processing")
            self.stats['skipped_ticks'] += 1
            return []

        self._processing = True
        self.stats['ticks'] += 1
        try:
            self._emit("polling", "Checking for new rows...")
            rows = await self.sheet.list_rows()
            eligible = [row for row in rows if is_eligible(row.status)]
            if not eligible:
                logger.info("Poll: no unprocessed rows found")
                return []

            logger.info(f"Poll: found {len(eligible)} unprocessed row(s): {', '.join(str(r.row) for r in eligible)}")
            if self._concurrency <= 1:
                return await self._run_sequential(eligible)
            return await self._run_batches(eligible)
        except Exception as e:
            logger.error(f"Poll error: {e}")
            return []
        finally:
            self._processing = False
            self._emit("polling" if self._polling else "idle")

    def _record(self, result: JobResult):
        if result.success:
            self.stats['jobs_succeeded'] += 1
        else:
            self.stats['jobs_failed'] += 1

    async def _run_sequential(self, rows: List[SheetRow]) -> List[JobResult]:
        results = []
        for index, row in enumerate(rows):
            if self._stop_requested:
                logger.info("Poll: stopped during processing")
                break
            name = row.get("client_name") or "Unknown"
            self._emit("processing", f"Row {row.row} ({name})")
            logger.info(f"Poll: processing row {row.row} ({name})...")
            self.stats['jobs_dispatched'] += 1

            result = await self.process_job(row.row, DEFAULT_WORKER_KEY)
            self._record(result)
            results.append(result)
            logger.info(f"Poll: row {row.row} result: {'SUCCESS' if result.success else 'FAILED'} - {result.message}")

            if index < len(rows) - 1:
                await asyncio.sleep(self.inter_job_pause)
        return results

    async def _run_one(self, row: SheetRow, worker_key: str) -> JobResult:
        logger.info(f"Poll [{worker_key}]: processing row {row.row}...")
        result = await self.process_job(row.row, worker_key)
        logger.info(
            f"Poll [{worker_key}]: row {row.row} result: "
            f"{'SUCCESS' if result.success else 'FAILED'} - {result.message}"
        )
        return result

    async def _run_batches(self, rows: List[SheetRow]) -> List[JobResult]:
        results = []
        batches = partition(rows, self._concurrency)
        logger.info(f"Poll: processing {len(rows)} rows in {len(batches)} batches ({self._concurrency}x mode)")

        for index, batch in enumerate(batches):
            if self._stop_requested:
                logger.info("Poll: stopped during processing")
                break

            names = ", ".join(f"Row {row.row}" for row in batch)
            self._emit("processing", f"{names} ({len(batch)} concurrent)")
            self.stats['jobs_dispatched'] += len(batch)

            settled = await asyncio.gather(
                *(self._run_one(row, f"w{slot + 1}") for slot, row in enumerate(batch)),
                return_exceptions=True,
            )
            for row, outcome in zip(batch, settled):
                if isinstance(outcome, BaseException):
                    logger.error(f"Poll: row {row.row} raised {type(outcome).__name__}: {outcome}")
                    outcome = JobResult(False, str(outcome), row=row.row)
                self._record(outcome)
                results.append(outcome)

            if index < len(batches) - 1:
                await asyncio.sleep(self.inter_batch_pause)
        return results
