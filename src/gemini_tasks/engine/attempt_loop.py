"""
Attempt loop: runs a mode procedure up to max_retries times.

Running(n) -> Succeeded | FatalFailed | Exhausted. Attempts are strictly
sequential and only the terminal event reaches the notifier.
"""

from __future__ import annotations

import logging
import time
from collections.abc import Callable, Mapping
from typing import Protocol

from ..notifier import Notifier
from .models import (
    Attempt,
    FatalFailure,
    Outcome,
    RetryableFailure,
    RunReport,
    Success,
    Task,
    TaskMode,
)

logger = logging.getLogger(__name__)


class Procedure(Protocol):
    def run(self, task: Task, attempt_number: int) -> Outcome: ...


class AttemptLoop:
    def __init__(
        self,
        procedures: Mapping[TaskMode, Procedure],
        notifier: Notifier,
        max_retries: int = 5,
        retry_pause_s: float = 2.0,
        sleep: Callable[[float], None] = time.sleep,
    ):
        if max_retries < 1:
            raise ValueError("max_retries must be >= 1")
        self.procedures = procedures
        self.notifier = notifier
        self.max_retries = max_retries
        self.retry_pause_s = retry_pause_s
        self.sleep = sleep

    def run(self, task: Task) -> RunReport:
        mode = TaskMode.parse(task.mode)
        procedure = self.procedures.get(mode) if mode else None
        if procedure is None:
            reason = f"Unknown mode: {task.mode}"
            logger.error(f"❌ [Run] ERROR: {reason}")
            return RunReport(task.name, success=False, final=FatalFailure(reason))

        attempts: list[Attempt] = []
        for number in range(1, self.max_retries + 1):
            outcome = self._run_attempt(procedure, task, number)
            attempts.append(Attempt(number, outcome))

            if isinstance(outcome, Success):
                logger.info(f"✅ [Run] {task.name}: done after {number} attempt(s)")
                self._notify(
                    task, lambda: self.notifier.notify_success(task.name, outcome.detail, mode.label)
                )
                return RunReport(task.name, success=True, final=outcome, attempts=attempts)

            if isinstance(outcome, FatalFailure):
                logger.error(f"❌ [Run] FAILED: {outcome.reason}")
                return RunReport(task.name, success=False, final=outcome, attempts=attempts)

            logger.warning(f"🔄 [Run] RETRY {number}/{self.max_retries}: {outcome.reason}")
            if number < self.max_retries:
                self.sleep(self.retry_pause_s)

        reason = f"Failed after {self.max_retries} attempts"
        logger.error(f"❌ [Run] FAILED: Giving up after {self.max_retries} attempts")
        self._notify(task, lambda: self.notifier.notify_failure(task.name, reason))
        return RunReport(
            task.name, success=False, final=RetryableFailure(reason), attempts=attempts
        )

    def _run_attempt(self, procedure: Procedure, task: Task, number: int) -> Outcome:
        try:
            return procedure.run(task, number)
        except Exception as e:
            logger.error(
                f"❌ [Run] Unexpected error in attempt {number} ({type(e).__name__}): {e}",
                exc_info=True,
            )
            return RetryableFailure(f"unexpected error: {e}")

    def _notify(self, task: Task, send: Callable[[], bool]) -> None:
        if not task.notify:
            logger.info(f"[Notify] Notifications disabled for {task.name}, skipping")
            return
        try:
            send()
        except Exception as e:
            logger.warning(f"[Notify] Notification failed: {e}")
