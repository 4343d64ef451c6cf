"""Headful one-off login that saves a Playwright storage state for AUTH_STRATEGY=storage_state."""

import logging

from playwright.sync_api import sync_playwright

from scraper.session import LOGIN_URL, USER_AGENT, VIEWPORT
from webapp.config import load_settings
from webapp.utils.logging import configure_logging

logger = logging.getLogger(__name__)


def save_login_state(path: str, timeout_ms: int = 60000, prompt=input) -> str:
    with sync_playwright() as p:
        browser = p.chromium.launch(headless=False)
        try:
            context = browser.new_context(user_agent=USER_AGENT, viewport=VIEWPORT)
            page = context.new_page()
            logger.info("🔐 Opening the X login page...")
            page.goto(LOGIN_URL, timeout=timeout_ms)

            prompt("📝 Log in in the opened window (username, password, 2FA), then press Enter here: ")

            context.storage_state(path=path)
            logger.info("✅ Saved login session to: %s", path)
        finally:
            browser.close()
    return path


if __name__ == "__main__":
    configure_logging()
    settings = load_settings()
    save_login_state(settings.storage_state_path, timeout_ms=settings.navigation_timeout_ms)
