"""
Mode procedures: the fixed Gemini UI scripts for `pro` and `deep-research` tasks.

Each run() opens its own page, walks the script, and turns every driver failure
into an Outcome. Prompt problems are fatal, everything UI related is retryable.
"""

from __future__ import annotations

import logging
import time
from abc import ABC, abstractmethod
from collections.abc import Callable
from contextlib import AbstractContextManager
from pathlib import Path
from typing import Protocol

from ..config import RunnerConfig
from .browser_controller import DriverError, ElementNotFoundError, PageDriver
from .models import (
    REASON_DERAILED,
    FatalFailure,
    Outcome,
    RetryableFailure,
    Success,
    Task,
    TaskMode,
)
from .prompts import PromptError, load_prompt
from .response_watcher import ResponseWatcher
from .ui_contract import DEFAULT_UI_CONTRACT, GeminiUiContract

logger = logging.getLogger(__name__)


class PageOpener(Protocol):
    def open_page(self) -> AbstractContextManager[PageDriver]: ...


class ModeProcedure(ABC):
    """Shared setup/submit steps; subclasses implement _run_steps()."""

    mode: TaskMode

    def __init__(
        self,
        session: PageOpener,
        config: RunnerConfig | None = None,
        contract: GeminiUiContract = DEFAULT_UI_CONTRACT,
        prompt_loader: Callable[[Path], str] = load_prompt,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.session = session
        self.config = config or RunnerConfig()
        self.contract = contract
        self.prompt_loader = prompt_loader
        self.clock = clock

    def run(self, task: Task, attempt_number: int) -> Outcome:
        logger.info(
            f"[Attempt] {attempt_number}/{self.config.max_retries}: Running {self.mode.label} mode"
        )
        try:
            with self.session.open_page() as driver:
                return self._run_steps(driver, task)
        except PromptError as e:
            logger.error(f"❌ [Prompt] {e}")
            return FatalFailure(str(e))
        except (ElementNotFoundError, DriverError) as e:
            logger.error(f"❌ [{self.mode.label}] ERROR: {e}")
            return RetryableFailure(str(e))

    @abstractmethod
    def _run_steps(self, driver: PageDriver, task: Task) -> Outcome:
        raise NotImplementedError

    def setup_page(self, driver: PageDriver) -> None:
        """Navigate to Gemini, accept cookies, wait for the input surface."""
        cfg = self.config
        logger.info(f"[Browser] Navigating to {cfg.app_url}")
        driver.navigate(cfg.app_url)
        logger.info("[Browser] Page loaded, waiting for UI to settle...")
        driver.wait(cfg.settle_ms)

        # best effort, absence is the normal case once the profile has consented
        if driver.wait_visible(self.contract.cookie_accept, cfg.cookie_visible_ms):
            logger.info("[Popup] Cookie consent detected, accepting...")
            try:
                driver.click(self.contract.cookie_accept)
                driver.wait(cfg.cookie_settle_ms)
            except DriverError as e:
                logger.warning(f"[Popup] Cookie consent click failed: {e}")

        logger.info("[Browser] Waiting for Gemini UI to be ready...")
        if not driver.wait_visible(self.contract.input_surface, cfg.input_ready_ms):
            raise ElementNotFoundError("Gemini input area did not appear")
        logger.info("[Browser] Gemini UI ready")

    def submit_prompt(self, driver: PageDriver, task: Task) -> None:
        cfg = self.config
        prompt = self.prompt_loader(task.prompt_file)
        logger.info(f"[Prompt] Pasting prompt ({len(prompt)} chars)")

        if not driver.wait_visible(self.contract.input_surface, cfg.input_area_ms):
            raise ElementNotFoundError("Input area not visible")
        driver.click(self.contract.input_surface)
        driver.wait(cfg.focus_pause_ms)
        driver.fill(self.contract.input_surface, prompt)
        driver.wait(cfg.fill_pause_ms)

        logger.info("[Prompt] Submitting prompt")
        driver.wait(cfg.submit_pause_ms)
        driver.press_enter()


class QuickSubmit(ModeProcedure):
    """`pro` mode: pick the Pro model, send the prompt, report the chat URL."""

    mode = TaskMode.PRO

    def _run_steps(self, driver: PageDriver, task: Task) -> Outcome:
        self.setup_page(driver)

        try:
            self.select_pro_model(driver)
        except DriverError as e:
            logger.warning(
                f"⚠️ [Model] Could not select Pro model ({e}). Continuing with default model."
            )

        self.submit_prompt(driver, task)
        chat_url = self.wait_for_conversation_url(driver)
        logger.info(f"✅ [Chat] Chat URL: {chat_url}")
        return Success(detail=chat_url)

    def select_pro_model(self, driver: PageDriver) -> None:
        cfg = self.config
        logger.info("🧠 [Model] Looking for model selector...")
        current = driver.text(self.contract.model_label)
        if self.contract.pro_label_marker in current:
            logger.info("🧠 [Model] Pro model already selected")
            return

        if not driver.wait_visible(self.contract.model_menu_button, cfg.model_selector_ms):
            raise ElementNotFoundError("Model selector not found")
        driver.click(self.contract.model_menu_button)
        driver.wait(cfg.menu_settle_ms)

        if not driver.wait_visible(self.contract.pro_option, cfg.model_option_ms):
            raise ElementNotFoundError("Pro option not found in model menu")
        driver.click(self.contract.pro_option)
        driver.wait(cfg.menu_settle_ms)
        logger.info("🧠 [Model] Pro model selected")

    def wait_for_conversation_url(self, driver: PageDriver) -> str:
        """
        Poll the URL until Gemini assigns a conversation id (/app/<hex>).
        Not finding one is tolerated: the last observed URL is returned.
        """
        cfg = self.config
        logger.info("[Chat] Waiting for conversation URL...")
        started = self.clock()
        chat_url = driver.current_url()
        while (self.clock() - started) * 1000 < cfg.conversation_url_deadline_ms:
            chat_url = driver.current_url()
            if self.contract.is_conversation_url(chat_url):
                return chat_url
            driver.wait(cfg.conversation_url_poll_ms)

        chat_url = driver.current_url()
        if not self.contract.is_conversation_url(chat_url):
            logger.warning(
                f"⚠️ [Chat] No conversation id after {cfg.conversation_url_deadline_ms / 1000:.0f}s, "
                "using last URL"
            )
        return chat_url


class LongRunningResearch(ModeProcedure):
    """`deep-research` mode: Tools → Deep Research → prompt → Start research → watch."""

    mode = TaskMode.DEEP_RESEARCH

    def __init__(self, session: PageOpener, *args, watcher: ResponseWatcher | None = None, **kwargs):
        super().__init__(session, *args, **kwargs)
        cfg = self.config
        self.watcher = watcher or ResponseWatcher(
            self.contract,
            timeout_ms=cfg.response_timeout_ms,
            poll_ms=cfg.response_poll_ms,
            high_traffic_wait_ms=cfg.high_traffic_wait_ms,
            redo_visible_ms=cfg.redo_visible_ms,
            ceiling_ms=cfg.attempt_ceiling_ms,
            clock=self.clock,
        )

    def _run_steps(self, driver: PageDriver, task: Task) -> Outcome:
        cfg = self.config
        self.setup_page(driver)

        # Tools is a SPAN, not a button
        logger.info("[Research] Looking for Tools...")
        if not driver.wait_visible(self.contract.tools_button, cfg.tools_ms):
            raise ElementNotFoundError("Tools menu not found")
        driver.click(self.contract.tools_button)
        driver.wait(cfg.menu_settle_ms)

        logger.info("[Research] Looking for Deep Research option...")
        if not driver.wait_visible(self.contract.deep_research_option, cfg.deep_research_ms):
            raise ElementNotFoundError("Deep Research option not found")
        driver.click(self.contract.deep_research_option)
        driver.wait(cfg.menu_settle_ms)

        self.submit_prompt(driver, task)

        logger.info(
            f"[Research] Waiting for 'Start research' button (max {cfg.start_research_ms / 1000:.0f}s)"
        )
        if not driver.wait_visible(self.contract.start_research_button, cfg.start_research_ms):
            logger.error("❌ [Research] TIMEOUT: 'Start research' button not found, chat derailed")
            return RetryableFailure(REASON_DERAILED)

        logger.info("[Research] Found 'Start research' button, clicking")
        driver.click(self.contract.start_research_button)
        return self.watcher.watch(driver)


PROCEDURES: dict[TaskMode, type[ModeProcedure]] = {
    TaskMode.PRO: QuickSubmit,
    TaskMode.DEEP_RESEARCH: LongRunningResearch,
}


def build_procedures(
    session: PageOpener,
    config: RunnerConfig | None = None,
    contract: GeminiUiContract = DEFAULT_UI_CONTRACT,
) -> dict[TaskMode, ModeProcedure]:
    return {mode: cls(session, config, contract) for mode, cls in PROCEDURES.items()}
