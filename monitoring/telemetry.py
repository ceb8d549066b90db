"""
Run/Event Telemetry
Ring buffer of recent log entries, run history, and a fan-out broadcaster
consumed by the dashboard event stream.
"""

import asyncio
import itertools
import logging
from collections import deque
from dataclasses import dataclass, field, asdict
from datetime import datetime, timezone
from typing import Any, Deque, Dict, List, Optional, Set


LOG_BUFFER_SIZE = 200
MAX_RUN_HISTORY = 100
SUBSCRIBER_QUEUE_SIZE = 500


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def _running_loop() -> Optional[asyncio.AbstractEventLoop]:
    try:
        return asyncio.get_running_loop()
    except RuntimeError:
        return None


@dataclass
class LogEntry:
    """One buffered log line."""
    timestamp: str
    level: str
    message: str
    logger: str = ""
    data: Optional[Any] = None

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass
class TelemetryEvent:
    """Event delivered to subscribers: `log`, `status` or `run`."""
    type: str
    payload: Dict[str, Any]


class EventBroadcaster:
    """
    Fan-out of telemetry events to any number of subscribers.

    Producers call publish(); each subscriber owns a bounded asyncio.Queue.
    A subscriber that falls behind loses events rather than blocking producers.
    Producers on other threads (e.g. the psutil reclaimer running under
    asyncio.to_thread) are handed over to the subscribers' event loop.
    """

    def __init__(self, buffer_size: int = LOG_BUFFER_SIZE):
        self._recent_logs: Deque[LogEntry] = deque(maxlen=buffer_size)
        self._subscribers: Set[asyncio.Queue] = set()
        self._loop: Optional[asyncio.AbstractEventLoop] = None
        self.dropped_events = 0

    def publish(self, event_type: str, payload: Dict[str, Any]):
        event = TelemetryEvent(type=event_type, payload=payload)
        loop = self._loop
        if loop is not None and not loop.is_closed() and _running_loop() is not loop:
            loop.call_soon_threadsafe(self._deliver, event)
            return
        self._deliver(event)

    def _deliver(self, event: TelemetryEvent):
        for queue in list(self._subscribers):
            try:
                queue.put_nowait(event)
            except asyncio.QueueFull:
                self.dropped_events += 1

    def publish_log(self, entry: LogEntry):
        self._recent_logs.append(entry)
        self.publish("log", entry.to_dict())

    def publish_status(self, state: str, detail: Optional[str] = None):
        self.publish("status", {"state": state, "detail": detail, "timestamp": _now_iso()})

    def subscribe(self, max_size: int = SUBSCRIBER_QUEUE_SIZE) -> asyncio.Queue:
        queue: asyncio.Queue = asyncio.Queue(maxsize=max_size)
        self._loop = _running_loop() or self._loop
        self._subscribers.add(queue)
        return queue

    def unsubscribe(self, queue: asyncio.Queue):
        self._subscribers.discard(queue)

    def recent_logs(self) -> List[LogEntry]:
        return list(self._recent_logs)

    @property
    def subscriber_count(self) -> int:
        return len(self._subscribers)


class TelemetryLogHandler(logging.Handler):
    """Mirror log records into the broadcaster as `log` events."""

    LEVEL_NAMES = {
        logging.DEBUG: "debug",
        logging.INFO: "info",
        logging.WARNING: "warn",
        logging.ERROR: "error",
        logging.CRITICAL: "error",
    }

    def __init__(self, broadcaster: EventBroadcaster, level: int = logging.INFO):
        super().__init__(level)
        self.broadcaster = broadcaster

    def emit(self, record: logging.LogRecord):
        try:
            entry = LogEntry(
                timestamp=datetime.fromtimestamp(record.created, timezone.utc).isoformat(),
                level=self.LEVEL_NAMES.get(record.levelno, record.levelname.lower()),
                message=record.getMessage(),
                logger=record.name,
            )
            self.broadcaster.publish_log(entry)
        except Exception:
            self.handleError(record)


@dataclass
class RunRecord:
    """Observational record of one job's progress through the pipeline."""
    id: str
    workflow_id: str
    workflow_label: str
    row_number: int
    client_name: str
    worker_key: str = "default"
    status: str = "running"  # running | success | failed
    current_stage: str = "init"
    started_at: str = field(default_factory=_now_iso)
    completed_at: Optional[str] = None
    duration_ms: Optional[int] = None
    error: Optional[str] = None
    screenshot_path: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


class RunHistory:
    """Most recent runs, newest first. Never read back into control flow."""

    def __init__(self, broadcaster: EventBroadcaster, max_history: int = MAX_RUN_HISTORY):
        self.broadcaster = broadcaster
        self.max_history = max_history
        self._runs: Deque[RunRecord] = deque(maxlen=max_history)
        self._counter = itertools.count(1)

    def start_run(
        self,
        row_number: int,
        client_name: str,
        worker_key: str = "default",
        workflow_id: str = "mmx",
        workflow_label: str = "MMX Donation Upload",
    ) -> RunRecord:
        run = RunRecord(
            id=str(next(self._counter)),
            workflow_id=workflow_id,
            workflow_label=workflow_label,
            row_number=row_number,
            client_name=client_name,
            worker_key=worker_key,
        )
        self._runs.appendleft(run)
        self._emit(run)
        return run

    def update_stage(self, run_id: str, stage: str):
        run = self._find(run_id)
        if run:
            run.current_stage = stage
            self._emit(run)

    def complete_run(
        self,
        run_id: str,
        success: bool,
        error: Optional[str] = None,
        screenshot_path: Optional[str] = None,
    ):
        run = self._find(run_id)
        if not run:
            return
        completed = datetime.now(timezone.utc)
        run.status = "success" if success else "failed"
        run.completed_at = completed.isoformat()
        run.duration_ms = int(
            (completed - datetime.fromisoformat(run.started_at)).total_seconds() * 1000
        )
        run.error = error
        run.screenshot_path = screenshot_path
        self._emit(run)

    def history(self) -> List[RunRecord]:
        return list(self._runs)

    def current(self) -> Optional[RunRecord]:
        return next((r for r in self._runs if r.status == "running"), None)

    def _find(self, run_id: str) -> Optional[RunRecord]:
        return next((r for r in self._runs if r.id == run_id), None)

    def _emit(self, run: RunRecord):
        self.broadcaster.publish("run", run.to_dict())
