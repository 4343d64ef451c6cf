"""Fakes shared across the test suite.

Fixtures live in conftest.py. This module holds the fake Playwright objects,
a fake collector session and a fake HTTP client.
"""

import json

from playwright.sync_api import TimeoutError as PlaywrightTimeoutError

from scraper.fetcher import COUNT_JS, EXTRACT_JS, SCROLL_JS
from webapp.config import Settings


def make_settings(**overrides) -> Settings:
    base = {
        "x_auth_token": "tok-123",
        "inference_api_key": "sk-test",
        "scroll_settle_ms": 0,
        "auth_timeout_ms": 50,
        "results_timeout_ms": 50,
    }
    base.update(overrides)
    return Settings(**base)


def raw_post(text: str, likes="12 Likes. Like", replies="3 Replies. Reply", reposts="1 repost. Repost"):
    return {"text": text, "likes": likes, "replies": replies, "reposts": reposts}


# --- Playwright fakes ---


class FakePage:
    def __init__(self, present=(), raw_items=(), counts=None, url_reached=True, html="<html></html>", goto_error=None):
        self.present = set(present)
        self.raw_items = list(raw_items)
        # successive answers to the count query; the last one repeats
        self.counts = list(counts) if counts is not None else [len(self.raw_items)]
        self.url_reached = url_reached
        self.html = html
        self.goto_error = goto_error
        self.visited = []
        self.reloads = 0
        self.filled = {}
        self.pressed = []
        self.scrolls = []
        self.waits = []
        self.count_calls = 0
        self.default_timeout = None

    def set_default_timeout(self, timeout):
        self.default_timeout = timeout

    def goto(self, url, wait_until=None, timeout=None):
        self.visited.append(url)
        if self.goto_error:
            raise self.goto_error
        return object()

    def reload(self, wait_until=None, timeout=None):
        self.reloads += 1

    def wait_for_selector(self, selector, timeout=None, state=None):
        if selector in self.present:
            return object()
        raise PlaywrightTimeoutError(f"Timeout {timeout}ms exceeded waiting for {selector}")

    def wait_for_url(self, pattern, timeout=None):
        if not self.url_reached:
            raise PlaywrightTimeoutError(f"Timeout {timeout}ms exceeded waiting for {pattern}")

    def fill(self, selector, value, timeout=None):
        self.filled[selector] = value
        # typing the username reveals the password step
        self.present.add('input[name="password"]')

    def press(self, selector, key, timeout=None):
        self.pressed.append((selector, key))

    def _current_count(self):
        idx = min(self.count_calls, len(self.counts) - 1)
        return self.counts[idx]

    def evaluate(self, expression, arg=None):
        if expression == COUNT_JS:
            count = self._current_count()
            self.count_calls += 1
            return count
        if expression == SCROLL_JS:
            self.scrolls.append(arg)
            return None
        if expression == EXTRACT_JS:
            shown = self.counts[min(max(self.count_calls - 1, 0), len(self.counts) - 1)]
            return self.raw_items[:shown]
        raise AssertionError(f"unexpected evaluate: {expression!r}")

    def wait_for_timeout(self, ms):
        self.waits.append(ms)

    def content(self):
        return self.html


class FakeContext:
    def __init__(self, page):
        self.page = page
        self.cookies = []

    def add_cookies(self, cookies):
        self.cookies.extend(cookies)

    def new_page(self):
        return self.page


class FakeBrowser:
    def __init__(self, page):
        self.context = FakeContext(page)
        self.context_kwargs = None
        self.close_calls = 0

    def new_context(self, **kwargs):
        self.context_kwargs = kwargs
        return self.context

    def close(self):
        self.close_calls += 1


class FakeChromium:
    def __init__(self, browser, launch_error=None):
        self.browser = browser
        self.launch_error = launch_error
        self.launch_kwargs = None

    def launch(self, **kwargs):
        self.launch_kwargs = kwargs
        if self.launch_error:
            raise self.launch_error
        return self.browser


class FakePlaywright:
    def __init__(self, page=None, launch_error=None):
        self.page = page or FakePage()
        self.browser = FakeBrowser(self.page)
        self.chromium = FakeChromium(self.browser, launch_error)
        self.stop_calls = 0

    def stop(self):
        self.stop_calls += 1

    def factory(self):
        """Stand-in for sync_playwright: returns an object with .start()."""
        playwright = self

        class _Starter:
            def start(self):
                return playwright

        return _Starter()


# --- collector-level fake session ---


class FakeSession:
    """Implements the capabilities the collector relies on."""

    def __init__(self, raw_items=(), counts=None, results_appear=True, navigate_error=None, html="<html></html>"):
        self.page = FakePage(
            present=['article[data-testid="tweet"]'] if results_appear else [],
            raw_items=raw_items,
            counts=counts,
            html=html,
        )
        self.navigate_error = navigate_error
        self.is_authenticated = True
        self.navigations = []
        self.close_calls = 0

    def navigate(self, url, wait_until="networkidle", timeout=60000):
        self.navigations.append(url)
        if self.navigate_error:
            raise self.navigate_error

    def wait_for(self, selector, timeout):
        try:
            self.page.wait_for_selector(selector, timeout=timeout)
            return True
        except PlaywrightTimeoutError:
            return False

    def evaluate(self, expression, arg=None):
        return self.page.evaluate(expression, arg)

    def wait(self, ms):
        self.page.wait_for_timeout(ms)

    def content(self):
        return self.page.content()

    def close(self):
        self.close_calls += 1


# --- HTTP fakes ---


class FakeResponse:
    def __init__(self, status_code=200, text=""):
        self.status_code = status_code
        self.text = text

    @property
    def ok(self):
        return self.status_code < 400


class FakeHttp:
    def __init__(self, *responses):
        self.responses = list(responses)
        self.calls = []

    def post(self, url, headers=None, json=None, timeout=None):
        self.calls.append({"url": url, "headers": headers, "json": json, "timeout": timeout})
        return self.responses[min(len(self.calls) - 1, len(self.responses) - 1)]


def completion(content) -> FakeResponse:
    """A 200 chat-completion envelope carrying `content`."""
    return FakeResponse(200, json.dumps({"choices": [{"message": {"role": "assistant", "content": content}}]}))


def record_json(**overrides) -> str:
    record = {
        "totalAnalyzed": 13,
        "overallSentiment": "Bullish",
        "promotionalCount": 4,
        "verifiedCount": 2,
        "keyTakeaways": ["Listing rumours", "Whale accumulation"],
        "engagement": {"avgLikes": 12.5, "avgRetweets": 3, "avgReplies": 1.2},
        "dominantThemes": ["$FOO", "airdrop"],
        "confidence": "Medium",
        "tradeSignal": "Hold",
        "coinType": "Memecoin",
        "utilityDescription": "",
    }
    record.update(overrides)
    return json.dumps(record)


def fenced(text: str) -> str:
    return f"```json\n{text}\n```"
