"""
Scheduler artifacts for tasks: launchd plists (macOS) and crontab lines.

The runner itself is invoked once per firing with a single task name; this
module only renders the trigger definitions.
"""

from __future__ import annotations

import plistlib
import shlex
from pathlib import Path

from .engine.models import Task
from .tasks import slugify

LABEL_PREFIX = "com.user.gemini-task-"
DEFAULT_PATH_ENV = "/usr/local/bin:/usr/bin:/bin:/opt/homebrew/bin"


def launchd_label(task: Task) -> str:
    return f"{LABEL_PREFIX}{slugify(task.name)}"


def plist_filename(task: Task) -> str:
    return f"gemini-task-{slugify(task.name)}.plist"


def render_launchd_plist(
    task: Task,
    runner_cmd: list[str],
    working_dir: Path,
    logs_dir: Path,
) -> bytes:
    """Render a LaunchAgent plist that fires `runner_cmd --task <name>` daily."""
    if task.schedule is None:
        raise ValueError(f'Task "{task.name}" has no schedule')

    slug = slugify(task.name)
    plist = {
        "Label": launchd_label(task),
        "ProgramArguments": [*runner_cmd, "--task", task.name],
        "WorkingDirectory": str(working_dir),
        "StandardOutPath": str(logs_dir / f"{slug}-stdout.log"),
        "StandardErrorPath": str(logs_dir / f"{slug}-stderr.log"),
        "StartCalendarInterval": {
            "Hour": task.schedule.hour,
            "Minute": task.schedule.minute,
        },
        "RunAtLoad": False,
        "EnvironmentVariables": {"PATH": DEFAULT_PATH_ENV},
    }
    return plistlib.dumps(plist)


def render_cron_line(task: Task, runner_cmd: list[str], working_dir: Path) -> str:
    """Render one crontab line: 'M H * * * cd <dir> && <cmd> --task <name>', with % escaped."""
    if task.schedule is None:
        raise ValueError(f'Task "{task.name}" has no schedule')

    cmd = shlex.join([*runner_cmd, "--task", task.name])
    command = f"cd {shlex.quote(str(working_dir))} && {cmd}"
    # cron turns a bare % into a newline
    command = command.replace("%", r"\%")
    return f"{task.schedule.minute} {task.schedule.hour} * * * {command}"
