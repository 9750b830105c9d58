"""
Telegram notifications for finished task runs.

Delivery is best effort: a failed send is logged and never breaks the run.
"""

from __future__ import annotations

import html
import logging
from typing import Protocol

import requests

from . import config

logger = logging.getLogger(__name__)

TELEGRAM_API_URL = "https://api.telegram.org/bot{token}/sendMessage"


class Notifier(Protocol):
    def notify_success(self, task_name: str, detail: str | None, mode_label: str = "") -> bool: ...

    def notify_failure(self, task_name: str, reason: str) -> bool: ...


def format_success(task_name: str, detail: str | None, mode_label: str = "") -> str:
    header = f"✅ <b>{html.escape(task_name)}</b>"
    if mode_label:
        header += f" ({html.escape(mode_label)})"
    return f"{header}\n{html.escape(detail)}" if detail else header


def format_failure(task_name: str, reason: str) -> str:
    return f"❌ <b>{html.escape(task_name)}</b> failed\n{html.escape(reason)}"


class TelegramNotifier:
    """Sends messages through the Telegram Bot API."""

    def __init__(
        self,
        token: str | None = None,
        chat_id: str | None = None,
        timeout: int = 15,
        http: requests.Session | None = None,
    ):
        self.token = config.TELEGRAM_BOT_TOKEN if token is None else token
        self.chat_id = config.TELEGRAM_CHAT_ID if chat_id is None else chat_id
        self.timeout = timeout
        self.http = http or requests.Session()

    @property
    def configured(self) -> bool:
        return bool(self.token and self.chat_id)

    def send_message(self, message: str) -> bool:
        if not self.configured:
            logger.info("[Telegram] Bot token or chat ID not configured, skipping notification")
            return False

        payload = {
            "chat_id": self.chat_id,
            "text": message,
            "parse_mode": "HTML",
            "disable_web_page_preview": False,
        }
        try:
            resp = self.http.post(
                TELEGRAM_API_URL.format(token=self.token), json=payload, timeout=self.timeout
            )
        except requests.exceptions.Timeout:
            logger.warning("[Telegram] Request timeout, notification dropped")
            return False
        except requests.exceptions.RequestException as e:
            logger.warning(f"[Telegram] Error sending message: {e}")
            return False

        if resp.status_code == 200:
            logger.info("[Telegram] Message sent successfully")
            return True

        logger.warning(f"[Telegram] Failed to send message ({resp.status_code}): {resp.text[:300]}")
        return False

    def notify_success(self, task_name: str, detail: str | None, mode_label: str = "") -> bool:
        return self.send_message(format_success(task_name, detail, mode_label))

    def notify_failure(self, task_name: str, reason: str) -> bool:
        return self.send_message(format_failure(task_name, reason))


class NullNotifier:
    """Notifier that only logs; used when notifications are switched off."""

    def notify_success(self, task_name: str, detail: str | None, mode_label: str = "") -> bool:
        logger.debug(f"[Notify] (disabled) success: {task_name} {detail or ''}")
        return False

    def notify_failure(self, task_name: str, reason: str) -> bool:
        logger.debug(f"[Notify] (disabled) failure: {task_name} {reason}")
        return False
