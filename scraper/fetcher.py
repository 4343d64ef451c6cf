import logging
from dataclasses import asdict, dataclass
from typing import Any, Dict, List, Optional
from urllib.parse import quote

from playwright.sync_api import Error as PlaywrightError
from playwright.sync_api import TimeoutError as PlaywrightTimeoutError

from pipelines.errors import CollectionError, CollectionErrorKind, SessionError, SessionErrorKind
from scraper.parser import parse_counter, summarize_snapshot
from scraper.scroll_utils import ScrollOutcome, ScrollPolicy, scroll_until_sufficient

logger = logging.getLogger(__name__)

SEARCH_URL = "https://x.com/search"
RESULT_SELECTOR = 'article[data-testid="tweet"]'
NUDGE_PX = 500

COUNT_JS = "(selector) => document.querySelectorAll(selector).length"
SCROLL_JS = "(px) => window.scrollBy(0, px)"

# one record per rendered result, in DOM order; counters come from the
# action buttons' aria-labels ("12 Likes. Like") and are null when missing
EXTRACT_JS = """
(selector) => Array.from(document.querySelectorAll(selector)).map((el) => {
  const label = (testid) => {
    const node = el.querySelector(`[data-testid="${testid}"]`);
    if (!node) return null;
    return node.getAttribute("aria-label") || node.textContent || "";
  };
  return {
    text: el.textContent || "",
    likes: label("like") ?? label("unlike"),
    replies: label("reply"),
    reposts: label("retweet") ?? label("unretweet"),
  };
})
"""


@dataclass(frozen=True)
class ContentItem:
    text: str
    likes: Optional[int] = None
    replies: Optional[int] = None
    reposts: Optional[int] = None

    @classmethod
    def from_raw(cls, raw: Dict[str, Any]) -> "ContentItem":
        return cls(
            text=raw.get("text") or "",
            likes=parse_counter(raw.get("likes")),
            replies=parse_counter(raw.get("replies")),
            reposts=parse_counter(raw.get("reposts")),
        )

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass(frozen=True)
class CollectOptions:
    min_items: int = 15
    max_loops: int = 30
    settle_ms: int = 1200
    navigation_timeout_ms: int = 60000
    results_timeout_ms: int = 60000
    search_mode: str = "live"  # "live" (latest) | "top"

    @classmethod
    def from_settings(cls, settings) -> "CollectOptions":
        return cls(
            min_items=settings.min_items,
            max_loops=settings.max_scroll_loops,
            settle_ms=settings.scroll_settle_ms,
            navigation_timeout_ms=settings.navigation_timeout_ms,
            results_timeout_ms=settings.results_timeout_ms,
        )

    def scroll_policy(self) -> ScrollPolicy:
        return ScrollPolicy(min_items=self.min_items, max_loops=self.max_loops, settle_ms=self.settle_ms)


def build_search_url(query: str, search_mode: str = "live") -> str:
    url = f"{SEARCH_URL}?q={quote(query, safe='')}&src=recent_search_click"
    if search_mode == "live":
        url += "&f=live"
    return url


def capture_diagnostic_snapshot(session) -> Dict[str, Any]:
    """
    Summarize the current document for the logs.
    Must NOT throw; an unreadable page yields an empty summary.
    """
    try:
        html = session.content()
    except PlaywrightError as e:
        logger.warning("Snapshot capture failed (best-effort): %s", e)
        html = ""
    return summarize_snapshot(html, RESULT_SELECTOR)


def count_rendered(session) -> int:
    return int(session.evaluate(COUNT_JS, RESULT_SELECTOR) or 0)


def extract_items(session) -> List[ContentItem]:
    raw_items = session.evaluate(EXTRACT_JS, RESULT_SELECTOR) or []
    return [ContentItem.from_raw(raw) for raw in raw_items]


def collect_posts(session, query: str, opts: CollectOptions = CollectOptions()) -> List[ContentItem]:
    """
    Load the results view for `query` and return every rendered post.

    Partial results are accepted: only a page that never renders a single
    result fails the stage.
    """
    if not getattr(session, "is_authenticated", False):
        raise SessionError(SessionErrorKind.AUTH_FAILED, "collector requires an authenticated session")

    url = build_search_url(query, opts.search_mode)
    logger.info("Searching posts with query: %s", query)
    try:
        session.navigate(url, wait_until="networkidle", timeout=opts.navigation_timeout_ms)
    except PlaywrightTimeoutError as e:
        raise CollectionError(
            CollectionErrorKind.NAVIGATION_TIMEOUT,
            f"search page did not settle within {opts.navigation_timeout_ms} ms",
            detail={"url": url},
        ) from e
    except PlaywrightError as e:
        raise CollectionError(
            CollectionErrorKind.NAVIGATION_FAILED,
            f"search page could not be loaded: {e}",
            detail={"url": url},
        ) from e

    # small nudge to trigger the first lazy load
    session.evaluate(SCROLL_JS, NUDGE_PX)

    if not session.wait_for(RESULT_SELECTOR, timeout=opts.results_timeout_ms):
        snapshot = capture_diagnostic_snapshot(session)
        logger.error(
            "❌ Failed to find result elements. title=%r html_head=%r",
            snapshot.get("title"),
            snapshot.get("html_head"),
        )
        raise CollectionError(
            CollectionErrorKind.NO_RESULTS_FOUND,
            f"no results rendered for {query!r} within {opts.results_timeout_ms} ms",
            detail=snapshot,
        )

    outcome: ScrollOutcome = scroll_until_sufficient(
        count_fn=lambda: count_rendered(session),
        advance_fn=lambda px: session.evaluate(SCROLL_JS, px),
        settle_fn=session.wait,
        policy=opts.scroll_policy(),
        on_loop=lambda idx, n: logger.debug("scroll %d: %d results rendered", idx, n),
    )

    items = extract_items(session)
    logger.info("Found %d posts (stop=%s after %d scrolls)", len(items), outcome.reason.value, outcome.iterations)
    return items
