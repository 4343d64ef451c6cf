"""
Session Manager: one Playwright browser, one page, one authenticated session.

Authentication is selected by configuration:
- token: inject the auth_token cookie, reload, confirm the account landmark
- credentials: drive the login flow (username, Enter, password, Enter)
- storage_state: reuse a context saved by scraper/login.py
Any failure to confirm the login is reported immediately as AuthFailed.
"""

from __future__ import annotations

import logging
import os
from datetime import datetime, timezone
from typing import Any, Callable, Optional

from playwright.sync_api import Error as PlaywrightError
from playwright.sync_api import TimeoutError as PlaywrightTimeoutError
from playwright.sync_api import sync_playwright

from pipelines.errors import SessionError, SessionErrorKind
from webapp.config import Settings

logger = logging.getLogger(__name__)

BASE_URL = "https://x.com"
LOGIN_URL = f"{BASE_URL}/i/flow/login"
HOME_URL_PATTERN = "**/home"
COOKIE_DOMAIN = ".x.com"
AUTH_COOKIE_NAME = "auth_token"

AUTH_LANDMARK = '[data-testid="SideNav_AccountSwitcher_Button"]'
USERNAME_INPUT = 'input[autocomplete="username"]'
PASSWORD_INPUT = 'input[name="password"]'

USER_AGENT = (
    "Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/124.0.0.0 Safari/537.36"
)
VIEWPORT = {"width": 1280, "height": 800}
LAUNCH_ARGS = ["--no-sandbox", "--disable-setuid-sandbox"]
FALLBACK_EXECUTABLES = (
    "/usr/bin/chromium-browser",
    "/usr/bin/chromium",
    "/usr/bin/google-chrome-stable",
)


def find_browser_executable(configured: Optional[str]) -> Optional[str]:
    """
    None when nothing is configured (Playwright's bundled Chromium is used).
    A configured path that does not exist falls back to the usual system
    locations before giving up.
    """
    if not configured:
        return None
    if os.path.exists(configured):
        return configured
    for path in FALLBACK_EXECUTABLES:
        if os.path.exists(path):
            logger.warning("Configured browser %s missing, using %s", configured, path)
            return path
    raise SessionError(
        SessionErrorKind.EXECUTABLE_NOT_FOUND,
        "no valid Chromium executable found; set BROWSER_EXECUTABLE_PATH or install Chromium",
        detail={"configured": configured, "searched": list(FALLBACK_EXECUTABLES)},
    )


class Session:
    """Handle to a running browser and its single page."""

    def __init__(self, playwright, browser, context, page):
        self._playwright = playwright
        self._browser = browser
        self._context = context
        self._page = page
        self.is_authenticated = False
        self.created_at = datetime.now(timezone.utc)
        self.closed = False

    @property
    def page(self):
        return self._page

    def attach(self, context, page) -> None:
        self._context = context
        self._page = page

    def navigate(self, url: str, wait_until: str = "networkidle", timeout: int = 60000):
        return self._page.goto(url, wait_until=wait_until, timeout=timeout)

    def reload(self, wait_until: str = "networkidle", timeout: int = 60000):
        return self._page.reload(wait_until=wait_until, timeout=timeout)

    def wait_for(self, selector: str, timeout: int) -> bool:
        """True once `selector` is attached, False when `timeout` ms pass first."""
        try:
            self._page.wait_for_selector(selector, timeout=timeout, state="attached")
            return True
        except PlaywrightTimeoutError:
            return False

    def wait_for_url(self, pattern: str, timeout: int) -> bool:
        try:
            self._page.wait_for_url(pattern, timeout=timeout)
            return True
        except PlaywrightTimeoutError:
            return False

    def evaluate(self, expression: str, arg: Any = None) -> Any:
        if arg is None:
            return self._page.evaluate(expression)
        return self._page.evaluate(expression, arg)

    def fill(self, selector: str, value: str, timeout: int) -> None:
        self._page.fill(selector, value, timeout=timeout)

    def press(self, selector: str, key: str, timeout: int) -> None:
        self._page.press(selector, key, timeout=timeout)

    def add_cookies(self, cookies: list[dict]) -> None:
        self._context.add_cookies(cookies)

    def wait(self, ms: int) -> None:
        self._page.wait_for_timeout(ms)

    def content(self) -> str:
        return self._page.content()

    def close(self) -> None:
        if self.closed:
            return
        self.closed = True
        try:
            self._browser.close()
            logger.info("Browser closed")
        except PlaywrightError as e:
            logger.warning("Browser close failed (best-effort): %s", e)
        finally:
            try:
                self._playwright.stop()
            except PlaywrightError as e:
                logger.warning("Playwright stop failed (best-effort): %s", e)


def resolve_strategy(settings: Settings) -> str:
    strategy = settings.auth_strategy
    if strategy != "auto":
        if strategy not in AUTHENTICATORS:
            raise SessionError(SessionErrorKind.AUTH_FAILED, f"unknown auth strategy {strategy!r}")
        return strategy
    if settings.x_auth_token:
        return "token"
    if settings.x_username and settings.x_password:
        return "credentials"
    if os.path.exists(settings.storage_state_path):
        return "storage_state"
    raise SessionError(
        SessionErrorKind.AUTH_FAILED,
        "no credentials configured: set X_AUTH_TOKEN, X_USERNAME/X_PASSWORD or save a login state",
    )


def _confirm_landmark(session: Session, settings: Settings, how: str) -> None:
    logger.info("Checking login state (%s)...", how)
    if not session.wait_for(AUTH_LANDMARK, timeout=settings.auth_timeout_ms):
        logger.warning("Could not confirm login state. Credential may be invalid or expired.")
        raise SessionError(SessionErrorKind.AUTH_FAILED, f"{how} login could not be confirmed")
    logger.info("✅ Confirmed logged in via %s", how)


def authenticate_with_token(session: Session, settings: Settings) -> None:
    token = settings.x_auth_token
    if not token:
        raise SessionError(SessionErrorKind.AUTH_FAILED, "X_AUTH_TOKEN is not set")
    try:
        # the cookie domain is only accepted once the page is on x.com
        session.navigate(BASE_URL, timeout=settings.navigation_timeout_ms)
        logger.info("Setting auth_token cookie")
        session.add_cookies(
            [
                {
                    "name": AUTH_COOKIE_NAME,
                    "value": token,
                    "domain": COOKIE_DOMAIN,
                    "path": "/",
                    "httpOnly": False,
                    "secure": True,
                    "sameSite": "Lax",
                }
            ]
        )
        session.reload(timeout=settings.navigation_timeout_ms)
        logger.info("Cookie set, page reloaded")
    except PlaywrightError as e:
        raise SessionError(SessionErrorKind.AUTH_FAILED, f"token injection failed: {e}") from e
    _confirm_landmark(session, settings, "auth_token cookie")


def authenticate_with_credentials(session: Session, settings: Settings) -> None:
    if not (settings.x_username and settings.x_password):
        raise SessionError(SessionErrorKind.AUTH_FAILED, "X_USERNAME and X_PASSWORD must both be set")
    step_timeout = settings.login_step_timeout_ms
    try:
        session.navigate(LOGIN_URL, timeout=settings.navigation_timeout_ms)
        if not session.wait_for(USERNAME_INPUT, timeout=step_timeout):
            raise SessionError(SessionErrorKind.AUTH_FAILED, "username field did not appear")
        session.fill(USERNAME_INPUT, settings.x_username, timeout=step_timeout)
        session.press(USERNAME_INPUT, "Enter", timeout=step_timeout)

        if not session.wait_for(PASSWORD_INPUT, timeout=step_timeout):
            raise SessionError(SessionErrorKind.AUTH_FAILED, "password field did not appear")
        session.fill(PASSWORD_INPUT, settings.x_password, timeout=step_timeout)
        session.press(PASSWORD_INPUT, "Enter", timeout=step_timeout)

        if not session.wait_for_url(HOME_URL_PATTERN, timeout=step_timeout):
            raise SessionError(SessionErrorKind.AUTH_FAILED, "no post-login navigation")
    except PlaywrightError as e:
        raise SessionError(SessionErrorKind.AUTH_FAILED, f"login flow failed: {e}") from e
    logger.info("✅ Logged in via credential flow")


def authenticate_with_storage_state(session: Session, settings: Settings) -> None:
    try:
        session.navigate(f"{BASE_URL}/home", timeout=settings.navigation_timeout_ms)
    except PlaywrightError as e:
        raise SessionError(SessionErrorKind.AUTH_FAILED, f"saved session navigation failed: {e}") from e
    _confirm_landmark(session, settings, "saved storage state")


AUTHENTICATORS: dict[str, Callable[[Session, Settings], None]] = {
    "token": authenticate_with_token,
    "credentials": authenticate_with_credentials,
    "storage_state": authenticate_with_storage_state,
}


class SessionManager:
    def __init__(self, settings: Settings, playwright_factory: Callable[[], Any] = sync_playwright):
        self.settings = settings
        self._playwright_factory = playwright_factory
        self._session: Optional[Session] = None

    @property
    def session(self) -> Optional[Session]:
        return self._session

    def _launch(self, strategy: str) -> Session:
        executable = find_browser_executable(self.settings.browser_executable_path)
        if executable:
            logger.info("Using Chromium executable at: %s", executable)

        if strategy == "storage_state" and not os.path.exists(self.settings.storage_state_path):
            raise SessionError(
                SessionErrorKind.AUTH_FAILED,
                f"{self.settings.storage_state_path} not found; run `python -m scraper.login` first",
            )

        playwright = None
        try:
            playwright = self._playwright_factory().start()
            launch_kwargs = {"headless": self.settings.headless, "args": LAUNCH_ARGS}
            if executable:
                launch_kwargs["executable_path"] = executable
            browser = playwright.chromium.launch(**launch_kwargs)
        except PlaywrightError as e:
            if playwright is not None:
                playwright.stop()
            raise SessionError(SessionErrorKind.LAUNCH_FAILED, f"browser launch failed: {e}") from e

        # from here on the browser exists, so teardown() owns releasing it
        session = Session(playwright, browser, None, None)
        self._session = session
        try:
            context_kwargs = {"user_agent": USER_AGENT, "viewport": VIEWPORT}
            if strategy == "storage_state":
                context_kwargs["storage_state"] = self.settings.storage_state_path
            context = browser.new_context(**context_kwargs)
            page = context.new_page()
            page.set_default_timeout(self.settings.protocol_timeout_ms)
        except PlaywrightError as e:
            raise SessionError(SessionErrorKind.LAUNCH_FAILED, f"page setup failed: {e}") from e
        session.attach(context, page)
        return session

    def establish(self) -> Session:
        strategy = resolve_strategy(self.settings)
        logger.info("Launching browser (auth strategy: %s)", strategy)
        session = self._launch(strategy)
        AUTHENTICATORS[strategy](session, self.settings)
        session.is_authenticated = True
        return session

    def teardown(self, session: Optional[Session] = None) -> None:
        """Release the browser. Safe to call repeatedly and after failures."""
        target = session or self._session
        if target is None:
            return
        try:
            target.close()
        except Exception as e:  # teardown is best-effort on every exit path
            logger.warning("Session teardown failed: %s", e)
