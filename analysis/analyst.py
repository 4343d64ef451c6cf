"""
Sentiment Analyst: turns a batch of post texts into a validated SentimentRecord.

The model's answer is the least controllable input of the system, so it is
decoded in two strict phases (strip the markdown fence, then parse and
validate). Anything that does not survive both phases is rejected with a typed
InferenceError; nothing is repaired or defaulted.
"""

import json
import logging
import re
from typing import Any, Dict, Optional, Sequence

import requests
from pydantic import ValidationError

from analysis.schema import SentimentRecord
from pipelines.errors import InferenceError, InferenceErrorKind
from webapp.config import Settings

logger = logging.getLogger(__name__)

COMPLETIONS_PATH = "/v1/chat/completions"
BODY_SAMPLE_CHARS = 500

LEADING_FENCE = re.compile(r"^```(?:json)?[ \t]*\n?", re.IGNORECASE)
TRAILING_FENCE = re.compile(r"\n?[ \t]*```$")

PROMPT_TEMPLATE = """You are a seasoned analyst with expertise in social media sentiment analysis for crypto tokens. You are especially familiar with both memecoins and utility coins. Memecoins are typically driven by hype and can be extremely volatile, while utility coins have a specific use case or functionality.

Below is a list of posts discussing a token. Please analyze these posts carefully, taking into account the token's recency, hype cycles, and any potential red flags. Your response must be a single JSON object with the following fields:

- "totalAnalyzed": The total number of posts analyzed (integer).
- "overallSentiment": The overall sentiment, exactly one of "Bullish", "Bearish", or "Neutral".
- "promotionalCount": The number of posts that appear to be promotional or "shill" posts (integer).
- "verifiedCount": The number of posts from verified accounts (integer).
- "keyTakeaways": An array of strings with key insights or common themes you observed.
- "engagement": An object with the average number of likes, retweets, and replies per post, using the keys "avgLikes", "avgRetweets", and "avgReplies" (non-negative numbers).
- "dominantThemes": An array of strings with recurring topics or hashtags.
- "confidence": Exactly one of "High", "Medium", or "Low", reflecting how confident you are in your analysis.
- "tradeSignal": Exactly one of "Buy", "Sell", or "Hold".
- "coinType": Exactly one of "Memecoin" or "Utility Coin".
- "utilityDescription": If the token is a Utility Coin, a brief description of its utility based on the posts; otherwise an empty string.

Edge cases:
- If there are no posts, or none of them discuss the token, set "totalAnalyzed" to the number of posts, "overallSentiment" to "Neutral", "confidence" to "Low" and "keyTakeaways" to an empty array.
- Counts must never be negative and must not exceed the number of posts.
- If engagement numbers are not visible in the posts, use 0.

IMPORTANT: Do not include any usage details, system messages, or other metadata in your response. Respond only with the JSON object in the specified format.

Posts:
"""


def build_prompt(texts: Sequence[str]) -> str:
    """Fixed instructions followed by the verbatim posts, one per line."""
    return PROMPT_TEMPLATE + "\n".join(texts) + "\n"


def strip_markdown_fence(text: str) -> str:
    """
    Remove leading ``` / ```json fences and trailing ``` fences until none
    are left. Text without fences is only trimmed.
    """
    stripped = (text or "").strip()
    while True:
        unfenced = LEADING_FENCE.sub("", stripped, count=1)
        unfenced = TRAILING_FENCE.sub("", unfenced, count=1).strip()
        if unfenced == stripped:
            return stripped
        stripped = unfenced


def parse_sentiment(content: str) -> SentimentRecord:
    """Phase two of the decode: fenced model text -> SentimentRecord or MalformedJSON."""
    stripped = strip_markdown_fence(content)
    try:
        decoded = json.loads(stripped)
    except json.JSONDecodeError as e:
        logger.error("Failed to parse JSON from message content: %s | content=%r", e, stripped[:BODY_SAMPLE_CHARS])
        raise InferenceError(
            InferenceErrorKind.MALFORMED_JSON,
            f"model content is not valid JSON ({e.msg} at char {e.pos})",
            detail=stripped,
        ) from e

    if not isinstance(decoded, dict):
        raise InferenceError(
            InferenceErrorKind.MALFORMED_JSON,
            f"model content must be a JSON object, got {type(decoded).__name__}",
            detail=stripped,
        )

    try:
        return SentimentRecord.model_validate_json(stripped)
    except ValidationError as e:
        logger.error("Sentiment record failed validation: %s", e.errors())
        raise InferenceError(
            InferenceErrorKind.MALFORMED_JSON,
            f"model JSON does not match the sentiment schema ({e.error_count()} errors)",
            detail=stripped,
        ) from e


def extract_message_content(envelope: Any) -> str:
    try:
        content = envelope["choices"][0]["message"]["content"]
    except (KeyError, IndexError, TypeError):
        content = None
    if not isinstance(content, str) or not content.strip():
        raise InferenceError(
            InferenceErrorKind.EMPTY_RESPONSE,
            "empty message content from inference API",
            detail=envelope,
        )
    return content


def build_request_body(prompt: str, settings: Settings) -> Dict[str, Any]:
    return {
        "model": settings.inference_model,
        "messages": [{"role": "user", "content": prompt}],
        "temperature": settings.inference_temperature,
        "max_tokens": settings.inference_max_tokens,
    }


def analyze_sentiment(
    texts: Sequence[str],
    settings: Settings,
    http: Optional[Any] = None,
) -> SentimentRecord:
    """
    One request, no retries. `http` is anything with a requests-style
    ``post`` (a requests.Session in production, a fake in tests).
    """
    if not settings.inference_api_key:
        raise InferenceError(InferenceErrorKind.TRANSPORT_ERROR, "inference API key is not configured")

    http = http or requests
    url = settings.inference_base_url.rstrip("/") + COMPLETIONS_PATH
    headers = {
        "Content-Type": "application/json",
        "Authorization": f"Bearer {settings.inference_api_key}",
    }
    body = build_request_body(build_prompt(texts), settings)

    logger.info("Requesting sentiment for %d posts (model=%s)", len(texts), settings.inference_model)
    try:
        resp = http.post(url, headers=headers, json=body, timeout=settings.inference_timeout_ms / 1000)
    except requests.RequestException as e:
        logger.error("Inference request failed: %s", e)
        raise InferenceError(InferenceErrorKind.TRANSPORT_ERROR, f"request failed: {e}") from e

    if not resp.ok:
        body_sample = (resp.text or "")[:BODY_SAMPLE_CHARS]
        logger.error("Error in inference API response: %s %s", resp.status_code, body_sample)
        raise InferenceError(
            InferenceErrorKind.TRANSPORT_ERROR,
            f"inference API returned HTTP {resp.status_code}",
            detail={"status": resp.status_code, "body": body_sample},
        )

    raw_text = resp.text or ""
    logger.debug("Full raw response: %s", raw_text)
    try:
        envelope = json.loads(raw_text)
    except json.JSONDecodeError as e:
        logger.error("Failed to parse full API response: %s", raw_text[:BODY_SAMPLE_CHARS])
        raise InferenceError(
            InferenceErrorKind.TRANSPORT_ERROR,
            "inference API response is not a JSON envelope",
            detail={"status": resp.status_code, "body": raw_text[:BODY_SAMPLE_CHARS]},
        ) from e

    record = parse_sentiment(extract_message_content(envelope))
    if record.total_analyzed != len(texts):
        logger.warning(
            "Model reported totalAnalyzed=%d for %d submitted posts",
            record.total_analyzed,
            len(texts),
        )
    return record
