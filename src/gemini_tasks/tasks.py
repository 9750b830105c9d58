"""
Task source: reads task definitions from tasks.yaml.

    tasks:
      - name: Morning Briefing
        mode: pro              # or deep-research
        promptFile: ~/prompts/briefing.txt
        notify: true
        schedule: {hour: 7, minute: 30}
"""

from __future__ import annotations

import logging
import re
from pathlib import Path
from typing import Any

import yaml

from .engine.models import Schedule, Task, TaskMode

logger = logging.getLogger(__name__)


class TaskSourceError(Exception):
    """Task configuration cannot be used. Never retried."""


class TasksFileNotFoundError(TaskSourceError):
    pass


class TaskNotFoundError(TaskSourceError):
    pass


class TaskValidationError(TaskSourceError):
    pass


def slugify(name: str) -> str:
    """'Morning Briefing!' -> 'morning-briefing'"""
    return re.sub(r"[^a-z0-9]+", "-", name.lower()).strip("-")


def expand_path(raw: str, base_dir: Path) -> Path:
    """Expand ~/ and resolve relative paths against the tasks file directory."""
    path = Path(raw).expanduser()
    if not path.is_absolute():
        path = base_dir / path
    return path


def load_config(tasks_file: Path) -> dict[str, Any]:
    """Load and minimally validate tasks.yaml."""
    if not tasks_file.exists():
        raise TasksFileNotFoundError(
            f"Configuration file not found: {tasks_file}\n"
            "Copy tasks.example.yaml to tasks.yaml and edit it."
        )

    try:
        data = yaml.safe_load(tasks_file.read_text(encoding="utf-8"))
    except yaml.YAMLError as e:
        raise TaskValidationError(f"Invalid YAML in {tasks_file}: {e}") from e

    if not isinstance(data, dict) or not isinstance(data.get("tasks"), list):
        raise TaskValidationError('Invalid config: "tasks" array is required')

    return data


def _parse_schedule(name: str, raw: Any) -> Schedule:
    if not isinstance(raw, dict):
        raise TaskValidationError(f'Invalid schedule for task "{name}": requires hour and minute')

    hour = raw.get("hour")
    minute = raw.get("minute")
    # bool is an int subclass - reject it explicitly
    if not all(isinstance(v, int) and not isinstance(v, bool) for v in (hour, minute)):
        raise TaskValidationError(f'Invalid schedule for task "{name}": requires hour and minute')
    if not (0 <= hour <= 23 and 0 <= minute <= 59):
        raise TaskValidationError(
            f'Invalid schedule for task "{name}": {hour}:{minute} is out of range'
        )
    return Schedule(hour=hour, minute=minute)


def parse_task(raw: dict[str, Any], base_dir: Path) -> Task:
    name = raw.get("name")
    if not isinstance(name, str) or not name.strip():
        raise TaskValidationError("Every task needs a non-empty 'name'")

    mode = raw.get("mode")
    if TaskMode.parse(mode) is None:
        allowed = " or ".join(f'"{m.value}"' for m in TaskMode)
        raise TaskValidationError(f'Invalid mode for task "{name}": must be {allowed}')

    prompt_file = raw.get("promptFile")
    if not isinstance(prompt_file, str) or not prompt_file.strip():
        raise TaskValidationError(f'Missing promptFile for task "{name}"')

    notify = raw.get("notify", True)
    if not isinstance(notify, bool):
        raise TaskValidationError(f'Invalid notify for task "{name}": expected true/false')

    schedule = _parse_schedule(name, raw.get("schedule"))

    return Task(
        name=name,
        mode=mode,
        prompt_file=expand_path(prompt_file, base_dir),
        notify=notify,
        schedule=schedule,
    )


def get_task(task_name: str, tasks_file: Path) -> Task:
    """Find a task by name and validate it."""
    data = load_config(tasks_file)
    entries = [t for t in data["tasks"] if isinstance(t, dict)]

    for raw in entries:
        if raw.get("name") == task_name:
            return parse_task(raw, tasks_file.parent)

    available = ", ".join(str(t.get("name")) for t in entries)
    raise TaskNotFoundError(f'Task not found: "{task_name}"\nAvailable tasks: {available}')


def get_all_tasks(tasks_file: Path) -> list[Task]:
    """All tasks, validated. Duplicate names are rejected."""
    data = load_config(tasks_file)
    tasks: list[Task] = []
    seen: set[str] = set()
    for idx, raw in enumerate(data["tasks"]):
        if not isinstance(raw, dict):
            raise TaskValidationError(f"tasks[{idx}] must be a mapping")
        task = parse_task(raw, tasks_file.parent)
        if task.name in seen:
            raise TaskValidationError(f'Duplicate task name: "{task.name}"')
        seen.add(task.name)
        tasks.append(task)
    return tasks
