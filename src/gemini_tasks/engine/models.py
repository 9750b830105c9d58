from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Union


class TaskMode(str, Enum):
    """
    Tryby pracy taska - wartości takie jak w tasks.yaml.
    PRO = szybkie wysłanie promptu, DEEP_RESEARCH = długi research z czekaniem na start.
    """

    PRO = "pro"
    DEEP_RESEARCH = "deep-research"

    @classmethod
    def parse(cls, value: str | None) -> TaskMode | None:
        try:
            return cls(value)
        except ValueError:
            return None

    @property
    def label(self) -> str:
        return "Pro" if self is TaskMode.PRO else "Deep Research"


@dataclass(frozen=True)
class Schedule:
    hour: int
    minute: int

    def __str__(self) -> str:
        return f"{self.hour:02d}:{self.minute:02d}"


@dataclass(frozen=True)
class Task:
    """
    Jeden wpis z tasks.yaml. Tylko do odczytu przez cały run.
    `mode` trzyma surową wartość z configu - rozwiązanie trybu robi pętla prób.
    """

    name: str
    mode: str
    prompt_file: Path
    notify: bool = True
    schedule: Schedule | None = None


# Reason tags used by the procedures/watcher (operators grep logs for these)
REASON_DERAILED = "derailed"
REASON_REDO_MISSING = "redo control missing"
REASON_NO_RESPONSE = "no response pattern observed"
REASON_ATTEMPT_BUDGET = "attempt budget exhausted"


@dataclass(frozen=True)
class Success:
    detail: str | None = None


@dataclass(frozen=True)
class RetryableFailure:
    reason: str


@dataclass(frozen=True)
class FatalFailure:
    reason: str


Outcome = Union[Success, RetryableFailure, FatalFailure]


@dataclass(frozen=True)
class Attempt:
    number: int
    outcome: Outcome


@dataclass
class RunReport:
    """Final result of one task run (all attempts)."""

    task_name: str
    success: bool
    final: Outcome
    attempts: list[Attempt] = field(default_factory=list)

    @property
    def attempt_count(self) -> int:
        return len(self.attempts)

    @property
    def exit_code(self) -> int:
        return 0 if self.success else 1
