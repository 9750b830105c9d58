"""
Response watcher for Deep Research.

After "Start research" is clicked, Gemini either acknowledges the research, shows
a high-traffic message, or does nothing recognizable. The watcher polls page
content until one of those happens.
"""

from __future__ import annotations

import logging
import time
from collections.abc import Callable
from enum import Enum

from .browser_controller import PageDriver
from .models import (
    REASON_ATTEMPT_BUDGET,
    REASON_NO_RESPONSE,
    REASON_REDO_MISSING,
    Outcome,
    RetryableFailure,
    Success,
)
from .ui_contract import GeminiUiContract

logger = logging.getLogger(__name__)


class WatcherState(str, Enum):
    POLLING = "polling"
    HIGH_TRAFFIC_BACKOFF = "high_traffic_backoff"
    SUCCEEDED = "succeeded"
    TIMED_OUT = "timed_out"
    RECOVERY_FAILED = "recovery_failed"


class ResponseWatcher:
    """
    Polls rendered content against research-started and high-traffic markers.

    A high-traffic match waits `high_traffic_wait_ms`, clicks Redo and starts a
    fresh polling window. The window restart is unbounded by itself, so
    `ceiling_ms` caps the whole watch (measured from watch() start).
    """

    def __init__(
        self,
        contract: GeminiUiContract,
        timeout_ms: int = 120_000,
        poll_ms: int = 2_000,
        high_traffic_wait_ms: int = 300_000,
        redo_visible_ms: int = 10_000,
        ceiling_ms: int = 45 * 60 * 1000,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.contract = contract
        self.timeout_ms = timeout_ms
        self.poll_ms = poll_ms
        self.high_traffic_wait_ms = high_traffic_wait_ms
        self.redo_visible_ms = redo_visible_ms
        self.ceiling_ms = ceiling_ms
        self.clock = clock
        self.history: list[WatcherState] = []
        self.redo_clicks = 0

    def _enter(self, state: WatcherState) -> WatcherState:
        self.history.append(state)
        return state

    def _elapsed_ms(self, since: float) -> float:
        return (self.clock() - since) * 1000

    def watch(self, driver: PageDriver) -> Outcome:
        logger.info("⏳ [Research] Waiting for response...")
        self.history = []
        self.redo_clicks = 0

        started = self.clock()
        window_started = started
        self._enter(WatcherState.POLLING)

        while True:
            if self._elapsed_ms(started) >= self.ceiling_ms:
                self._enter(WatcherState.TIMED_OUT)
                logger.error(
                    f"❌ [Research] Attempt ceiling reached after {self._elapsed_ms(started) / 1000:.0f}s "
                    f"({self.redo_clicks} redo clicks)"
                )
                return RetryableFailure(REASON_ATTEMPT_BUDGET)

            if self._elapsed_ms(window_started) >= self.timeout_ms:
                self._enter(WatcherState.TIMED_OUT)
                logger.error("❌ [Research] TIMEOUT: No recognizable response after waiting")
                return RetryableFailure(REASON_NO_RESPONSE)

            content = driver.content()

            marker = self.contract.research_started.find(content)
            if marker:
                self._enter(WatcherState.SUCCEEDED)
                logger.info(f"✅ [Research] SUCCESS: Research started ('{marker}')")
                return Success()

            marker = self.contract.high_traffic.find(content)
            if marker:
                self._enter(WatcherState.HIGH_TRAFFIC_BACKOFF)
                logger.warning(
                    f"🚦 [Research] High traffic detected ('{marker}'), waiting "
                    f"{self.high_traffic_wait_ms / 1000:.0f}s then clicking Redo"
                )
                driver.wait(self.high_traffic_wait_ms)

                if not driver.wait_visible(self.contract.redo_button, self.redo_visible_ms):
                    self._enter(WatcherState.RECOVERY_FAILED)
                    logger.error("❌ [Research] Could not find Redo button, will retry from scratch")
                    return RetryableFailure(REASON_REDO_MISSING)

                driver.click(self.contract.redo_button)
                self.redo_clicks += 1
                logger.info(f"[Research] Clicked Redo button ({self.redo_clicks})")
                window_started = self.clock()
                self._enter(WatcherState.POLLING)
                continue

            driver.wait(self.poll_ms)
