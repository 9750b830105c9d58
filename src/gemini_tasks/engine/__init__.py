from .attempt_loop import AttemptLoop
from .browser_controller import (
    BrowserSession,
    DriverError,
    ElementNotFoundError,
    PageDriver,
    ProfileLockedError,
)
from .models import (
    Attempt,
    FatalFailure,
    Outcome,
    RetryableFailure,
    RunReport,
    Schedule,
    Success,
    Task,
    TaskMode,
)
from .procedures import LongRunningResearch, QuickSubmit, build_procedures
from .response_watcher import ResponseWatcher, WatcherState

__all__ = [
    "Attempt",
    "AttemptLoop",
    "BrowserSession",
    "DriverError",
    "ElementNotFoundError",
    "FatalFailure",
    "LongRunningResearch",
    "Outcome",
    "PageDriver",
    "ProfileLockedError",
    "QuickSubmit",
    "ResponseWatcher",
    "RetryableFailure",
    "RunReport",
    "Schedule",
    "Success",
    "Task",
    "TaskMode",
    "WatcherState",
    "build_procedures",
]
