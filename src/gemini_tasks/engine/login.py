"""
Login-only session: opens Gemini in a headed browser on the persistent profile
so the user can sign in by hand. The profile keeps the session for later runs.
"""

from __future__ import annotations

import logging

from playwright.sync_api import Error as PlaywrightError

from .browser_controller import BrowserSession
from .ui_contract import DEFAULT_UI_CONTRACT, GeminiUiContract

logger = logging.getLogger(__name__)

CONSENT_SELECTORS = [
    "button:has-text('Accept all')",
    "button:has-text('I agree')",
    "button:has-text('Zaakceptuj wszystko')",
    "button:has-text('Akceptuję')",
]


def run_login_session(
    session: BrowserSession,
    app_url: str,
    contract: GeminiUiContract = DEFAULT_UI_CONTRACT,
) -> None:
    """Open the app and block until the user closes the browser window."""
    context = session.context or session.start()
    page = context.pages[0] if context.pages else context.new_page()

    logger.info("[Login] Login-only mode: Opening browser for manual login")
    try:
        page.goto(app_url, timeout=60_000)
    except PlaywrightError as e:
        logger.warning(f"[Login] Navigation error (might be okay if manual interaction needed): {e}")

    # Google consent page ("Before you continue to Google")
    if "consent.google.com" in (page.url or ""):
        logger.info("[Login] Google consent page detected. Accepting cookies...")
        for selector in CONSENT_SELECTORS:
            try:
                btn = page.locator(selector).first
                if btn.count() > 0 and btn.is_visible(timeout=2000):
                    logger.info(f"[Login] Clicking consent button: {selector}")
                    btn.click()
                    page.wait_for_timeout(3000)
                    break
            except PlaywrightError as e:
                logger.warning(f"[Login] Consent handling error: {e}")

    if "accounts.google.com" not in (page.url or ""):
        try:
            if page.locator(contract.input_surface.combined).first.is_visible():
                logger.info("✅ [Login] Already logged in! Session is valid.")
        except PlaywrightError:
            pass

    logger.info("=== BROWSER READY ===")
    logger.info("Please log into your Google account, then close the browser.")

    try:
        context.wait_for_event("close", timeout=0)
    except PlaywrightError:
        # browser process went away without a clean close event
        pass
    logger.info("[Login] Browser closed. Profile saved.")
