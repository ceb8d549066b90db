"""
Error taxonomy for the MMX uploader.

Stage bodies never let these escape: the pipeline executor converts them into
a failed StageOutcome. They exist so call sites can tell error classes apart.
"""


class AutomationError(Exception):
    """Base class for all uploader errors."""


class ConfigurationError(AutomationError):
    """Required settings are missing. Never retried."""

    def __init__(self, missing):
        self.missing = list(missing)
        super().__init__(f"Missing configuration: {', '.join(self.missing)}")


class SheetAPIError(AutomationError):
    """The sheet web app returned a non-2xx response or success=false."""

    def __init__(self, message: str, status: int = None):
        self.status = status
        super().__init__(message)


class SessionLaunchError(AutomationError):
    """Every launch attempt and profile fallback for a worker key failed."""

    def __init__(self, worker_key: str, message: str):
        self.worker_key = worker_key
        super().__init__(f"[{worker_key}] {message}")


class BranchCodeError(AutomationError):
    """A bank name could not be turned into a numeric branch code."""


class StageError(AutomationError):
    """A stage detected a condition that must fail the job."""
