"""
Gemini Task Runner - Configuration Module
Centralized configuration from environment variables.
"""

import os
from dataclasses import dataclass
from pathlib import Path

from dotenv import load_dotenv

# Paths
BASE_DIR = Path(__file__).parents[2]

# .env next to the project root (TELEGRAM_BOT_TOKEN, TELEGRAM_CHAT_ID, ...)
load_dotenv(BASE_DIR / ".env")


def _get_int(env_names: list[str], fallback: int, minimum: int = 1) -> int:
    for name in env_names:
        value = os.environ.get(name, "").strip()
        if value:
            try:
                return max(minimum, int(value))
            except Exception:
                continue
    return fallback


def _get_flag(name: str, default: str = "0") -> bool:
    return os.environ.get(name, default).strip().lower() in ("1", "true", "yes")


TASKS_FILE = Path(os.environ.get("GEMINI_TASKS_FILE", str(BASE_DIR / "tasks.yaml")))
PROFILE_DIR = Path(os.environ.get("GEMINI_PROFILE_DIR", str(BASE_DIR / "chrome-profile")))
LOGS_DIR = Path(os.environ.get("GEMINI_LOGS_DIR", str(BASE_DIR / "logs")))

GEMINI_APP_URL = os.environ.get("GEMINI_APP_URL", "https://gemini.google.com/app")
HEADLESS = _get_flag("GEMINI_HEADLESS", "1")

# Optional JSON file overriding selectors / text markers of the Gemini UI
UI_CONTRACT_FILE: str | None = os.environ.get("GEMINI_UI_CONTRACT_FILE") or None

# Telegram
TELEGRAM_BOT_TOKEN = os.environ.get("TELEGRAM_BOT_TOKEN", "").strip()
TELEGRAM_CHAT_ID = os.environ.get("TELEGRAM_CHAT_ID", "").strip()


@dataclass(frozen=True)
class RunnerConfig:
    """
    Timing and retry knobs of a single task run.
    All waits are in milliseconds unless the name says otherwise.
    """

    app_url: str = "https://gemini.google.com/app"
    max_retries: int = 5
    retry_pause_s: float = 2.0

    # page setup
    settle_ms: int = 3_000
    cookie_visible_ms: int = 2_000
    cookie_settle_ms: int = 2_000
    input_ready_ms: int = 15_000

    # model / tools menus
    model_selector_ms: int = 10_000
    model_option_ms: int = 5_000
    tools_ms: int = 15_000
    deep_research_ms: int = 5_000
    menu_settle_ms: int = 1_000

    # prompt submission
    input_area_ms: int = 5_000
    focus_pause_ms: int = 500
    fill_pause_ms: int = 1_000
    submit_pause_ms: int = 1_000

    # conversation URL (pro mode)
    conversation_url_deadline_ms: int = 30_000
    conversation_url_poll_ms: int = 500

    # deep research
    start_research_ms: int = 3 * 60 * 1000
    response_timeout_ms: int = 2 * 60 * 1000
    response_poll_ms: int = 2_000
    high_traffic_wait_ms: int = 5 * 60 * 1000
    redo_visible_ms: int = 10_000
    attempt_ceiling_ms: int = 45 * 60 * 1000

    @classmethod
    def from_env(cls) -> "RunnerConfig":
        return cls(
            app_url=GEMINI_APP_URL,
            max_retries=_get_int(["GEMINI_MAX_RETRIES"], 5),
            retry_pause_s=float(_get_int(["GEMINI_RETRY_PAUSE_S"], 2, minimum=0)),
            start_research_ms=_get_int(["GEMINI_START_RESEARCH_TIMEOUT_S"], 180) * 1000,
            response_timeout_ms=_get_int(["GEMINI_RESPONSE_TIMEOUT_S"], 120) * 1000,
            high_traffic_wait_ms=_get_int(["GEMINI_HIGH_TRAFFIC_WAIT_S"], 300, minimum=0)
            * 1000,
            attempt_ceiling_ms=_get_int(["GEMINI_ATTEMPT_CEILING_S"], 45 * 60) * 1000,
        )
