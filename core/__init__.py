"""
Core components for the MMX donation uploader.

Modules:
- branch_codes: bank name -> universal branch code resolution
- normalize: sheet row -> normalized job fields
- pipeline: ordered, fail-fast stage execution
- retry: bounded retry with backoff
- job_runner: one row through the full pipeline
- scheduler: polling and concurrency-bounded dispatch
- orchestrator: ties everything together
"""

from .errors import (
    AutomationError,
    ConfigurationError,
    SheetAPIError,
    SessionLaunchError,
    BranchCodeError,
    StageError,
)
from .models import Job, JobFields, JobResult, SheetRow, RowStatus, HighlightColor, SessionState
from .branch_codes import BranchCodeMatch, resolve_branch_code
from .pipeline import PipelineExecutor, PipelineResult, Stage, StageOutcome
from .retry import async_retry, with_retry

__all__ = [
    "AutomationError",
    "ConfigurationError",
    "SheetAPIError",
    "SessionLaunchError",
    "BranchCodeError",
    "StageError",
    "Job",
    "JobFields",
    "JobResult",
    "SheetRow",
    "RowStatus",
    "HighlightColor",
    "SessionState",
    "BranchCodeMatch",
    "resolve_branch_code",
    "PipelineExecutor",
    "PipelineResult",
    "Stage",
    "StageOutcome",
    "async_retry",
    "with_retry",
]
