"""
Prompt loading for Gemini tasks.

Reads a plain-text prompt file and fills in the {{CURRENT_DATE}} token.
"""

import logging
from datetime import date
from pathlib import Path

logger = logging.getLogger(__name__)

DATE_TOKEN = "{{CURRENT_DATE}}"

# Fixed English names so the output does not depend on the process locale
_EN_MONTH_NAMES = (
    "January",
    "February",
    "March",
    "April",
    "May",
    "June",
    "July",
    "August",
    "September",
    "October",
    "November",
    "December",
)


class PromptError(Exception):
    """Prompt file cannot be used. Never retried."""


class PromptNotFoundError(PromptError):
    pass


class PromptEmptyError(PromptError):
    pass


class PromptUnreadableError(PromptError):
    """File exists but is not readable UTF-8 text."""


def format_current_date(day: date) -> str:
    """Format date as e.g. 'January 28, 2026'."""
    return f"{_EN_MONTH_NAMES[day.month - 1]} {day.day}, {day.year}"


def load_prompt(prompt_file: Path, today: date | None = None) -> str:
    """Load prompt text and substitute every {{CURRENT_DATE}} occurrence."""
    path = Path(prompt_file)
    if not path.is_file():
        raise PromptNotFoundError(f"Prompt file not found: {path}")

    try:
        content = path.read_text(encoding="utf-8").strip()
    except (UnicodeDecodeError, OSError) as e:
        raise PromptUnreadableError(f"Prompt file is unreadable: {path} ({e})") from e
    if not content:
        raise PromptEmptyError(f"Prompt file is empty: {path}")

    if DATE_TOKEN in content:
        logger.debug(f"[Prompt] Substituting {DATE_TOKEN} in {path.name}")
        content = content.replace(DATE_TOKEN, format_current_date(today or date.today()))

    return content
