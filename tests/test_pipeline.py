"""
Tests for the stage pipeline executor.
"""

import pytest

from core.pipeline import PipelineExecutor, Stage, StageOutcome


def make_stage(name, outcome=None, calls=None, exc=None):
    async def run(session, fields):
        if calls is not None:
            calls.append(name)
        if exc is not None:
            raise exc
        return outcome if outcome is not None else StageOutcome.ok(f"{name} done")
    return Stage(name=name, run=run, highlight_columns=(name.upper(),))


class TestPipelineExecutor:

    @pytest.mark.asyncio
    async def test_runs_all_stages_in_order(self):
        calls = []
        stages = [make_stage(n, calls=calls) for n in ("a", "b", "c")]

        result = await PipelineExecutor().run(None, None, stages)

        assert result.success
        assert calls == ["a", "b", "c"]
        assert result.completed_stages == ["a", "b", "c"]
        assert result.failed_stage is None

    @pytest.mark.asyncio
    async def test_halts_on_first_failure(self):
        calls = []
        stages = [
            make_stage("a", calls=calls),
            make_stage("b", StageOutcome.fail("branch code missing"), calls=calls),
            make_stage("c", calls=calls),
        ]

        result = await PipelineExecutor().run(None, None, stages)

        assert not result.success
        assert calls == ["a", "b"]
        assert result.failed_stage == "b"
        assert result.message == "branch code missing"
        assert "c" not in result.outcomes

    @pytest.mark.asyncio
    async def test_exception_becomes_failed_outcome(self):
        stages = [make_stage("a", exc=RuntimeError("frame detached"))]

        result = await PipelineExecutor().run(None, None, stages)

        assert not result.success
        assert result.failed_stage == "a"
        assert result.message == "frame detached"
        assert result.outcomes["a"].data["exception"] == "RuntimeError"

    @pytest.mark.asyncio
    async def test_non_outcome_return_is_a_failure(self):
        async def run(session, fields):
            return None

        outcome = await PipelineExecutor().run_stage(Stage("bad", run), None, None)
        assert not outcome.success

    @pytest.mark.asyncio
    async def test_hooks_fire_for_started_and_passed_stages(self):
        started, passed = [], []
        executor = PipelineExecutor(
            on_stage_start=lambda s: started.append(s.name),
            on_stage_success=lambda s, o: passed.append((s.name, s.highlight_columns)),
        )
        stages = [make_stage("a"), make_stage("b", StageOutcome.fail("nope"))]

        await executor.run(None, None, stages)

        assert started == ["a", "b"]
        assert passed == [("a", ("A",))]

    @pytest.mark.asyncio
    async def test_session_and_fields_are_passed_through(self):
        seen = []

        async def run(session, fields):
            seen.append((session, fields))
            return StageOutcome.ok()

        await PipelineExecutor().run("session", {"bank": "FNB"}, [Stage("a", run)])
        assert seen == [("session", {"bank": "FNB"})]
