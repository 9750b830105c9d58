"""
Browser controller module for Gemini tasks.

Handles the Playwright side: persistent-profile browser session, page lifetime,
and a small page driver used by the mode procedures.
"""

from __future__ import annotations

import fcntl
import json
import logging
import os
from collections.abc import Iterator
from contextlib import contextmanager
from pathlib import Path
from typing import Protocol, runtime_checkable

from playwright.sync_api import BrowserContext, Locator, Page, sync_playwright
from playwright.sync_api import Error as PlaywrightError
from playwright.sync_api import TimeoutError as PlaywrightTimeoutError

from .ui_contract import SelectorSet

logger = logging.getLogger(__name__)

BROWSER_ARGS = ["--disable-blink-features=AutomationControlled"]
VIEWPORT = {"width": 1280, "height": 800}


class DriverError(Exception):
    """Underlying browser automation fault."""


class ElementNotFoundError(DriverError):
    """Selector did not show up before its timeout."""


class ProfileLockedError(Exception):
    """Another process is using the same browser profile."""


@runtime_checkable
class PageDriver(Protocol):
    """
    Minimal page contract used by the procedures.

    content() is a point-in-time snapshot - callers must poll.
    """

    def navigate(self, url: str) -> None: ...

    def wait_visible(self, target: SelectorSet, timeout_ms: int) -> bool: ...

    def click(self, target: SelectorSet, timeout_ms: int = 5_000) -> None: ...

    def fill(self, target: SelectorSet, text: str, timeout_ms: int = 5_000) -> None: ...

    def text(self, target: SelectorSet, timeout_ms: int = 2_000) -> str: ...

    def press_enter(self) -> None: ...

    def current_url(self) -> str: ...

    def content(self) -> str: ...

    def wait(self, ms: int) -> None: ...

    def close(self) -> None: ...


class PlaywrightPageDriver:
    """PageDriver backed by a Playwright Page."""

    def __init__(self, page: Page):
        self.page = page
        self._closed = False

    def _locator(self, target: SelectorSet) -> Locator:
        loc = self.page.locator(target.combined)
        return loc.last if target.pick == "last" else loc.first

    def navigate(self, url: str) -> None:
        try:
            self.page.goto(url, wait_until="domcontentloaded")
        except PlaywrightError as e:
            raise DriverError(f"Navigation to {url} failed: {e}") from e

    def wait_visible(self, target: SelectorSet, timeout_ms: int) -> bool:
        try:
            self._locator(target).wait_for(state="visible", timeout=timeout_ms)
            return True
        except PlaywrightTimeoutError:
            return False
        except PlaywrightError as e:
            raise DriverError(f"Waiting for {target} failed: {e}") from e

    def click(self, target: SelectorSet, timeout_ms: int = 5_000) -> None:
        try:
            self._locator(target).click(timeout=timeout_ms)
        except PlaywrightTimeoutError as e:
            raise ElementNotFoundError(f"Not clickable: {target}") from e
        except PlaywrightError as e:
            raise DriverError(f"Click on {target} failed: {e}") from e

    def fill(self, target: SelectorSet, text: str, timeout_ms: int = 5_000) -> None:
        try:
            self._locator(target).fill(text, timeout=timeout_ms)
        except PlaywrightTimeoutError as e:
            raise ElementNotFoundError(f"Not fillable: {target}") from e
        except PlaywrightError as e:
            raise DriverError(f"Fill of {target} failed: {e}") from e

    def text(self, target: SelectorSet, timeout_ms: int = 2_000) -> str:
        try:
            return self._locator(target).text_content(timeout=timeout_ms) or ""
        except PlaywrightError:
            return ""

    def press_enter(self) -> None:
        try:
            self.page.keyboard.press("Enter")
        except PlaywrightError as e:
            raise DriverError(f"Enter key failed: {e}") from e

    def current_url(self) -> str:
        return self.page.url or ""

    def content(self) -> str:
        try:
            return self.page.content()
        except PlaywrightError as e:
            raise DriverError(f"Reading page content failed: {e}") from e

    def wait(self, ms: int) -> None:
        try:
            self.page.wait_for_timeout(ms)
        except PlaywrightError as e:
            raise DriverError(f"Page gone during wait: {e}") from e

    def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        try:
            self.page.close()
        except Exception as e:
            logger.debug(f"[Browser] Page close failed: {e}")


class ProfileLock:
    """
    Advisory lock next to the profile directory (<profile>.lock with owner PID).

    The lock itself is an flock held on the open file for the whole session,
    so the kernel drops it when the owner dies and a leftover file is reused.
    """

    def __init__(self, profile_dir: Path):
        self.path = profile_dir.parent / f"{profile_dir.name}.lock"
        self._fd: int | None = None

    def acquire(self) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        for _ in range(3):
            fd = os.open(self.path, os.O_CREAT | os.O_RDWR, 0o644)
            try:
                fcntl.flock(fd, fcntl.LOCK_EX | fcntl.LOCK_NB)
            except BlockingIOError:
                os.close(fd)
                raise ProfileLockedError(
                    f"Profile {self.path.with_suffix('')} is in use by pid {self._read_owner()}"
                ) from None
            if not self._is_current_file(fd):
                # previous holder released and removed the file between open and flock
                os.close(fd)
                continue
            owner = self._read_owner()
            if owner is not None and owner != os.getpid():
                logger.warning(f"[Browser] Reusing stale profile lock (pid={owner}): {self.path}")
            os.ftruncate(fd, 0)
            os.write(fd, str(os.getpid()).encode())
            self._fd = fd
            return
        raise ProfileLockedError(f"Could not acquire profile lock: {self.path}")

    def _is_current_file(self, fd: int) -> bool:
        try:
            on_disk = os.stat(self.path)
        except FileNotFoundError:
            return False
        held = os.fstat(fd)
        return (held.st_dev, held.st_ino) == (on_disk.st_dev, on_disk.st_ino)

    def _read_owner(self) -> int | None:
        try:
            return int(self.path.read_text(encoding="utf-8").strip())
        except (OSError, ValueError):
            return None

    def release(self) -> None:
        if self._fd is None:
            return
        fd, self._fd = self._fd, None
        try:
            # unlink while still locked, closing the fd drops the flock
            self.path.unlink(missing_ok=True)
        except OSError as e:
            logger.warning(f"[Browser] Failed to remove profile lock {self.path}: {e}")
        finally:
            os.close(fd)


class BrowserSession:
    """Persistent-profile Chromium session shared by all attempts of one run."""

    def __init__(self, profile_dir: Path, headless: bool = True):
        self.profile_dir = profile_dir
        self.headless = headless
        self.lock = ProfileLock(profile_dir)
        self.playwright = None
        self.context: BrowserContext | None = None

    def __enter__(self) -> BrowserSession:
        self.start()
        return self

    def __exit__(self, *exc) -> None:
        self.close()

    def start(self) -> BrowserContext:
        """Take the profile lock and launch Chromium with the persistent profile."""
        logger.info(f"[Browser] Using Chrome profile: {self.profile_dir}")
        self.lock.acquire()
        try:
            self.profile_dir.mkdir(parents=True, exist_ok=True)
            self._mark_profile_clean_exit()
            self.playwright = sync_playwright().start()
            self.context = self.playwright.chromium.launch_persistent_context(
                user_data_dir=str(self.profile_dir),
                headless=self.headless,
                viewport=VIEWPORT,
                args=BROWSER_ARGS,
            )
        except Exception:
            self.close()
            raise
        return self.context

    @contextmanager
    def open_page(self) -> Iterator[PlaywrightPageDriver]:
        """New tab for one attempt; closed on every exit path."""
        if self.context is None:
            raise DriverError("Browser session not started")
        try:
            page = self.context.new_page()
        except PlaywrightError as e:
            raise DriverError(f"Could not open a new page: {e}") from e
        driver = PlaywrightPageDriver(page)
        try:
            yield driver
        finally:
            driver.close()

    def _mark_profile_clean_exit(self) -> None:
        """Mark Chrome profile as cleanly closed to avoid 'Restore pages' bubble."""
        try:
            for pref in self.profile_dir.rglob("Preferences"):
                try:
                    data = json.loads(pref.read_text(encoding="utf-8", errors="ignore") or "{}")
                    if not isinstance(data, dict):
                        continue
                    profile = data.get("profile")
                    if not isinstance(profile, dict):
                        profile = {}
                    profile["exit_type"] = "Normal"
                    profile["exited_cleanly"] = True
                    data["profile"] = profile
                    pref.write_text(json.dumps(data, ensure_ascii=True), encoding="utf-8")
                except Exception:
                    continue
        except Exception:
            pass

    def close(self) -> None:
        """Close browser context and stop Playwright. Best effort."""
        try:
            if self.context:
                self.context.close()
        except Exception:
            pass
        self.context = None
        try:
            if self.playwright:
                self.playwright.stop()
        except Exception:
            pass
        self.playwright = None
        self.lock.release()
