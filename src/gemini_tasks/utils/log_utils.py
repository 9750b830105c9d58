"""
Logging setup for task runs.

Every run appends to a per-task log file (logs/<task-slug>.log) and echoes to stdout.
"""

from __future__ import annotations

import logging
import sys
from pathlib import Path

LOG_FORMAT = "%(asctime)s [%(levelname)s] %(message)s"
LOG_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"
DEFAULT_LOG_NAME = "gemini"


def log_file_for(logs_dir: Path, task_slug: str | None = None) -> Path:
    """logs/<slug>.log for a task run, logs/gemini.log otherwise."""
    return logs_dir / f"{task_slug or DEFAULT_LOG_NAME}.log"


def setup_logging(log_file: Path | None = None, level: int = logging.INFO) -> logging.Logger:
    """
    Configure the root logger with a stdout handler and an optional append-only file.

    Calling it again replaces handlers installed by a previous call.
    """
    root = logging.getLogger()
    root.setLevel(level)

    for handler in list(root.handlers):
        if getattr(handler, "_gemini_tasks", False):
            root.removeHandler(handler)
            handler.close()

    formatter = logging.Formatter(LOG_FORMAT, LOG_DATE_FORMAT)

    ch = logging.StreamHandler(sys.stdout)
    ch.setFormatter(formatter)
    ch._gemini_tasks = True
    root.addHandler(ch)

    if log_file:
        log_file.parent.mkdir(parents=True, exist_ok=True)
        fh = logging.FileHandler(log_file, mode="a", encoding="utf-8")
        fh.setFormatter(formatter)
        fh._gemini_tasks = True
        root.addHandler(fh)

    return root


def is_error_line(line: str) -> bool:
    """Detect if a log line contains error/critical information."""
    return "ERROR" in line or "CRITICAL" in line or "Traceback" in line or "Exception" in line


def read_log_tail(log_file: Path, tail: int = 50, errors_only: bool = False) -> list[str]:
    """Last N lines of a task log (capped at 2000), optionally only error lines."""
    if not log_file.exists():
        return []
    tail = max(1, min(int(tail), 2000))
    with log_file.open(encoding="utf-8", errors="replace") as f:
        lines = f.readlines()
    if errors_only:
        lines = [line for line in lines if is_error_line(line)]
    return lines[-tail:]
