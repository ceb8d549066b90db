"""
Pipeline Stage Executor

Runs a fixed, ordered list of stages against one browser session.
Stages run strictly in order and the first failure halts the pipeline.

Flow:
1. on_stage_start(stage) is called
2. The stage body runs; any exception becomes a failed StageOutcome
3. on success, on_stage_success(stage, outcome) is called and the next stage starts
4. on failure, the remaining stages are never invoked
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Dict, List, Optional, Sequence

logger = logging.getLogger(__name__)


@dataclass
class StageOutcome:
    """Atomic result of one pipeline stage."""
    success: bool
    message: str = ""
    data: Dict[str, Any] = field(default_factory=dict)

    @classmethod
    def ok(cls, message: str = "", **data) -> "StageOutcome":
        return cls(success=True, message=message, data=data)

    @classmethod
    def fail(cls, message: str, **data) -> "StageOutcome":
        return cls(success=False, message=message, data=data)


StageFunc = Callable[[Any, Any], Awaitable[StageOutcome]]


@dataclass(frozen=True)
class Stage:
    """A named pipeline step and the sheet columns it confirms on success."""
    name: str
    run: StageFunc
    highlight_columns: Sequence[str] = ()


@dataclass
class PipelineResult:
    """Outcome of a full pipeline run."""
    success: bool
    completed_stages: List[str] = field(default_factory=list)
    failed_stage: Optional[str] = None
    message: str = ""
    outcomes: Dict[str, StageOutcome] = field(default_factory=dict)


class PipelineExecutor:
    """
    Drives a session through an ordered stage sequence.

    Usage:
        executor = PipelineExecutor(on_stage_start=..., on_stage_success=...)
        result = await executor.run(session, job.fields, build_stages(...))
    """

    def __init__(
        self,
        on_stage_start: Optional[Callable[[Stage], None]] = None,
        on_stage_success: Optional[Callable[[Stage, StageOutcome], None]] = None,
    ):
        self.on_stage_start = on_stage_start
        self.on_stage_success = on_stage_success

    async def run_stage(self, stage: Stage, session: Any, fields: Any) -> StageOutcome:
        """Run a single stage, converting exceptions into a failed outcome."""
        try:
            outcome = await stage.run(session, fields)
        except Exception as e:
            logger.error(f"Stage {stage.name} raised {type(e).__name__}: {e}")
            return StageOutcome.fail(str(e) or type(e).__name__, exception=type(e).__name__)

        if not isinstance(outcome, StageOutcome):
            return StageOutcome.fail(f"Stage {stage.name} returned no outcome")
        return outcome

    async def run(self, session: Any, fields: Any, stages: Sequence[Stage]) -> PipelineResult:
        result = PipelineResult(success=False)

        for stage in stages:
            if self.on_stage_start:
                self.on_stage_start(stage)

            logger.info(f"Stage {stage.name} starting")
            outcome = await self.run_stage(stage, session, fields)
            result.outcomes[stage.name] = outcome

            if not outcome.success:
                logger.warning(f"Stage {stage.name} failed: {outcome.message}")
                result.failed_stage = stage.name
                result.message = outcome.message
                return result

            logger.info(f"Stage {stage.name} done: {outcome.message}")
            result.completed_stages.append(stage.name)
            if self.on_stage_success:
                self.on_stage_success(stage, outcome)

        result.success = True
        result.message = f"Completed {len(result.completed_stages)} stages"
        return result
