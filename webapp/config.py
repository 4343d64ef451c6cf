"""App configuration loader (env only).

Every option has a default; a missing inference key only surfaces when the
inference call is attempted.
"""

from __future__ import annotations

import os
from typing import Optional

from dotenv import load_dotenv
from pydantic import BaseModel, Field

AUTH_STRATEGIES = ("auto", "token", "credentials", "storage_state")


class Settings(BaseModel):
    # Platform session
    x_auth_token: Optional[str] = None
    x_username: Optional[str] = None
    x_password: Optional[str] = None
    auth_strategy: str = "auto"
    storage_state_path: str = "auth_x.json"

    # Inference endpoint
    inference_api_key: Optional[str] = None
    inference_base_url: str = "https://api.deepseek.com"
    inference_model: str = "deepseek-chat"
    inference_temperature: float = Field(default=0.7, gt=0)
    inference_max_tokens: int = Field(default=1000, gt=0)
    inference_timeout_ms: int = Field(default=60_000, gt=0)

    # Browser timeouts (ms)
    navigation_timeout_ms: int = Field(default=60_000, gt=0)
    protocol_timeout_ms: int = Field(default=30_000, gt=0)
    auth_timeout_ms: int = Field(default=10_000, gt=0)
    login_step_timeout_ms: int = Field(default=30_000, gt=0)
    results_timeout_ms: int = Field(default=60_000, gt=0)

    # Incremental-load loop
    min_items: int = Field(default=15, ge=1)
    max_scroll_loops: int = Field(default=30, ge=1)
    scroll_settle_ms: int = Field(default=1200, ge=0)
    min_text_length: int = Field(default=10, ge=0)

    headless: bool = True
    browser_executable_path: Optional[str] = None

    port: int = 3000
    log_level: str = "info"
    crawl_deadline_s: Optional[float] = Field(default=None, gt=0)


# env var -> Settings field; first non-empty value wins
ENV_MAP = {
    "x_auth_token": ("X_AUTH_TOKEN",),
    "x_username": ("X_USERNAME", "TWITTER_USERNAME"),
    "x_password": ("X_PASSWORD", "TWITTER_PASSWORD"),
    "auth_strategy": ("AUTH_STRATEGY",),
    "storage_state_path": ("STORAGE_STATE_PATH",),
    "inference_api_key": ("INFERENCE_API_KEY", "DEEPSEEK_API_KEY", "OPENAI_API_KEY"),
    "inference_base_url": ("INFERENCE_BASE_URL",),
    "inference_model": ("INFERENCE_MODEL",),
    "inference_temperature": ("INFERENCE_TEMPERATURE",),
    "inference_max_tokens": ("INFERENCE_MAX_TOKENS",),
    "inference_timeout_ms": ("INFERENCE_TIMEOUT_MS",),
    "navigation_timeout_ms": ("NAVIGATION_TIMEOUT_MS",),
    "protocol_timeout_ms": ("PROTOCOL_TIMEOUT_MS",),
    "auth_timeout_ms": ("AUTH_TIMEOUT_MS",),
    "login_step_timeout_ms": ("LOGIN_STEP_TIMEOUT_MS",),
    "results_timeout_ms": ("RESULTS_TIMEOUT_MS",),
    "min_items": ("MIN_ITEMS",),
    "max_scroll_loops": ("MAX_SCROLL_LOOPS",),
    "scroll_settle_ms": ("SCROLL_SETTLE_MS",),
    "min_text_length": ("MIN_TEXT_LENGTH",),
    "browser_executable_path": ("BROWSER_EXECUTABLE_PATH", "PUPPETEER_EXECUTABLE_PATH"),
    "port": ("PORT",),
    "log_level": ("LOG_LEVEL",),
    "crawl_deadline_s": ("CRAWL_DEADLINE_S",),
}


def _first_env(names) -> Optional[str]:
    for name in names:
        val = (os.environ.get(name) or "").strip()
        if val:
            return val
    return None


def load_settings(env_file: str | None = None) -> Settings:
    # Load .env if present
    if env_file:
        load_dotenv(env_file)
    else:
        load_dotenv()

    raw = {}
    for field, names in ENV_MAP.items():
        val = _first_env(names)
        if val is not None:
            raw[field] = val

    raw["headless"] = os.environ.get("TLENS_HEADLESS", "1") != "0"

    settings = Settings(**raw)
    if settings.auth_strategy not in AUTH_STRATEGIES:
        raise ValueError(
            f"AUTH_STRATEGY must be one of {', '.join(AUTH_STRATEGIES)}; got {settings.auth_strategy!r}"
        )
    return settings


__all__ = ["Settings", "load_settings", "AUTH_STRATEGIES"]
