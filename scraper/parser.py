from bs4 import BeautifulSoup
import re
import logging
from typing import Any, Dict, Optional

logger = logging.getLogger(__name__)

WHITESPACE_PATTERN = re.compile(r"\s+")
NUMBER_PATTERN = re.compile(r"([\d\.]+)\s*([KMB]?)(?![A-Z])")
SNIPPET_CHARS = 500


def normalize_text(text: Optional[str]) -> str:
    """Collapse runs of whitespace and trim."""
    if not text:
        return ""
    return WHITESPACE_PATTERN.sub(" ", text).strip()


def parse_number(text: str) -> int:
    """
    Parse an engagement counter as rendered by the platform:
    - accepts '1', '12', '1,234', '1.2K', '3.4M', '1B'
    - aria-labels like '1234 Likes. Like' take the first number
    - strings without digits give 0
    """
    if not text:
        return 0

    clean = text.replace(",", "").upper()
    m = NUMBER_PATTERN.search(clean)
    if not m:
        return 0

    try:
        num = float(m.group(1))
    except ValueError:
        return 0
    suffix = m.group(2)

    if suffix == "K":
        num *= 1000
    elif suffix == "M":
        num *= 1_000_000
    elif suffix == "B":
        num *= 1_000_000_000

    return int(num)


def parse_counter(label: Optional[str]) -> Optional[int]:
    # None means the counter element was not rendered at all
    if label is None:
        return None
    return parse_number(label)


def summarize_snapshot(html: str, selector: str = "article") -> Dict[str, Any]:
    """
    Reduce a captured document to something worth logging:
    title, number of elements matching `selector`, a head sample of the raw
    HTML and a sample of the visible text.
    """
    html = html or ""
    soup = BeautifulSoup(html, "html.parser")
    title = soup.title.get_text(strip=True) if soup.title else ""
    try:
        matched = len(soup.select(selector))
    except Exception as e:  # bs4 raises on selectors it cannot parse
        logger.debug("snapshot selector %r not supported: %s", selector, e)
        matched = 0
    text_sample = normalize_text(soup.get_text(" "))[:SNIPPET_CHARS]
    return {
        "title": title,
        "html_length": len(html),
        "html_head": html[:SNIPPET_CHARS],
        "matched_elements": matched,
        "text_sample": text_sample,
    }
