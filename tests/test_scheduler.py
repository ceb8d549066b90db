"""
Tests for the polling scheduler: sequential and batched dispatch,
re-entrancy and start/stop control.
"""

import asyncio

import pytest

from core.models import JobResult
from core.scheduler import JobScheduler, clamp_concurrency, partition
from fakes import FakeSheet
from monitoring.telemetry import EventBroadcaster


def new_rows(*numbers, status="New"):
    return {n: {"A": status, "B": f"Client{n}"} for n in numbers}


class RecordingProcessor:
    """process_job stand-in that tracks how many jobs run at once."""

    def __init__(self, delay=0.01, fail_rows=(), raise_rows=()):
        self.delay = delay
        self.fail_rows = set(fail_rows)
        self.raise_rows = set(raise_rows)
        self.calls = []
        self.active = 0
        self.max_active = 0
        self.before_return = None

    async def __call__(self, row, worker_key):
        self.calls.append((row, worker_key))
        self.active += 1
        self.max_active = max(self.max_active, self.active)
        try:
            await asyncio.sleep(self.delay)
            if row in self.raise_rows:
                raise RuntimeError(f"browser crashed on row {row}")
        finally:
            self.active -= 1
        if self.before_return:
            self.before_return(row)
        if row in self.fail_rows:
            return JobResult(False, f"FAILED at login: row {row}", row=row)
        return JobResult(True, f"Row {row} processed successfully", row=row)


def make_scheduler(sheet, processor, concurrency=1, broadcaster=None):
    return JobScheduler(
        sheet, processor, broadcaster=broadcaster, concurrency=concurrency,
        inter_job_pause=0, inter_batch_pause=0,
    )


def test_clamp_concurrency():
    assert clamp_concurrency(0) == 1
    assert clamp_concurrency(3) == 3
    assert clamp_concurrency(9) == 5
    assert clamp_concurrency("2") == 2
    assert clamp_concurrency(None) == 1


def test_partition():
    assert partition([1, 2, 3, 4, 5], 3) == [[1, 2, 3], [4, 5]]
    assert partition([], 3) == []


def test_concurrency_setter_clamps():
    scheduler = make_scheduler(FakeSheet(), RecordingProcessor(), concurrency=9)
    assert scheduler.concurrency == 5

    scheduler.concurrency = 0
    assert scheduler.concurrency == 1


class TestTick:

    @pytest.mark.asyncio
    async def test_sequential_mode_uses_default_worker(self):
        sheet = FakeSheet({**new_rows(2, 3, 4), 5: {"A": "Uploaded", "B": "Done"}})
        processor = RecordingProcessor()
        scheduler = make_scheduler(sheet, processor)

        results = await scheduler.tick()

        assert processor.calls == [(2, "default"), (3, "default"), (4, "default")]
        assert processor.max_active == 1
        assert [r.row for r in results] == [2, 3, 4]
        assert scheduler.stats["jobs_succeeded"] == 3

    @pytest.mark.asyncio
    async def test_batches_run_concurrently_on_worker_keys(self):
        sheet = FakeSheet(new_rows(2, 3, 4, 5, 6))
        processor = RecordingProcessor()
        broadcaster = EventBroadcaster()
        events = broadcaster.subscribe()
        scheduler = make_scheduler(sheet, processor, concurrency=3, broadcaster=broadcaster)

        results = await scheduler.tick()

        assert processor.max_active == 3
        assert processor.calls == [(2, "w1"), (3, "w2"), (4, "w3"), (5, "w1"), (6, "w2")]
        assert len(results) == 5

        details = []
        while not events.empty():
            event = events.get_nowait()
            if event.payload["state"] == "processing":
                details.append(event.payload["detail"])
        assert details == ["Row 2, Row 3, Row 4 (3 concurrent)", "Row 5, Row 6 (2 concurrent)"]

    @pytest.mark.asyncio
    async def test_failures_and_exceptions_do_not_stop_the_batch(self):
        sheet = FakeSheet(new_rows(2, 3, 4))
        processor = RecordingProcessor(fail_rows={2}, raise_rows={3})
        scheduler = make_scheduler(sheet, processor, concurrency=3)

        results = await scheduler.tick()

        assert [r.success for r in results] == [False, False, True]
        assert results[1].message == "browser crashed on row 3"
        assert results[1].row == 3
        assert scheduler.stats["jobs_failed"] == 2
        assert scheduler.stats["jobs_succeeded"] == 1

    @pytest.mark.asyncio
    async def test_overlapping_tick_is_skipped(self):
        sheet = FakeSheet(new_rows(2))
        processor = RecordingProcessor(delay=0.02)
        scheduler = make_scheduler(sheet, processor)

        first, second = await asyncio.gather(scheduler.tick(), scheduler.tick())

        assert len(first) == 1
        assert second == []
        assert scheduler.stats["skipped_ticks"] == 1
        assert len(processor.calls) == 1
        assert not scheduler.is_processing

    @pytest.mark.asyncio
    async def test_no_eligible_rows(self):
        processor = RecordingProcessor()
        scheduler = make_scheduler(FakeSheet(new_rows(2, status="Uploaded")), processor)

        assert await scheduler.tick() == []
        assert processor.calls == []

    @pytest.mark.asyncio
    async def test_sheet_error_is_logged_not_raised(self):
        sheet = FakeSheet(new_rows(2))

        async def broken_list_rows(start=2, end=None):
            raise ConnectionError("sheet down")
        sheet.list_rows = broken_list_rows
        scheduler = make_scheduler(sheet, RecordingProcessor())

        assert await scheduler.tick() == []
        assert not scheduler.is_processing


class TestPolling:

    @pytest.mark.asyncio
    async def test_start_and_stop_messages(self):
        scheduler = make_scheduler(FakeSheet(), RecordingProcessor())

        started = scheduler.start_polling(60000)
        assert started == {"success": True, "message": "Polling started. Checking every 60s for new rows."}
        assert scheduler.is_polling
        assert scheduler.start_polling()["message"] == "Polling is already running."

        assert scheduler.stop_polling() == {"success": True, "message": "Polling stopped."}
        await scheduler.wait_stopped()
        assert not scheduler.is_polling
        assert scheduler.stop_polling() == {"success": False, "message": "Polling is not running."}

    @pytest.mark.asyncio
    async def test_loop_ticks_on_interval(self):
        processor = RecordingProcessor(delay=0)
        scheduler = make_scheduler(FakeSheet(new_rows(2)), processor)

        scheduler.start_polling(10)
        await asyncio.sleep(0.1)
        scheduler.stop_polling()
        await scheduler.wait_stopped()

        assert scheduler.stats["ticks"] >= 1
        assert processor.calls[0] == (2, "default")

    @pytest.mark.asyncio
    async def test_stop_takes_effect_between_jobs(self):
        processor = RecordingProcessor(delay=0)
        scheduler = make_scheduler(FakeSheet(new_rows(2, 3, 4)), processor)
        scheduler.start_polling(60000)
        processor.before_return = lambda row: scheduler.stop_polling()

        results = await scheduler.tick()
        await scheduler.wait_stopped()

        assert [r.row for r in results] == [2]
        assert results[0].success

    @pytest.mark.asyncio
    async def test_status_events_follow_polling_state(self):
        broadcaster = EventBroadcaster()
        events = broadcaster.subscribe()
        scheduler = make_scheduler(FakeSheet(), RecordingProcessor(), broadcaster=broadcaster)

        scheduler.start_polling(60000)
        scheduler.stop_polling()
        await scheduler.wait_stopped()

        states = []
        while not events.empty():
            states.append(events.get_nowait().payload["state"])
        assert states == ["polling", "idle"]

    @pytest.mark.asyncio
    async def test_restart_during_a_tick_leaves_one_loop(self):
        sheet = FakeSheet(new_rows(2))
        list_calls = []
        original_list_rows = sheet.list_rows

        async def counting_list_rows(start=2, end=None):
            list_calls.append(start)
            return await original_list_rows(start, end)
        sheet.list_rows = counting_list_rows
        processor = RecordingProcessor(delay=0.1)
        scheduler = make_scheduler(sheet, processor)

        scheduler.start_polling(20)
        for _ in range(100):
            if processor.active:
                break
            await asyncio.sleep(0.005)
        assert processor.active == 1

        scheduler.stop_polling()
        scheduler.start_polling(10000)
        await asyncio.sleep(0.4)

        # Only the tick that was already running when polling restarted
        assert len(list_calls) == 1
        assert scheduler.is_polling

        scheduler.stop_polling()
        await scheduler.wait_stopped()
        assert len(list_calls) == 1
