"""
app/config.py

Application-level configuration helpers.
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from functools import lru_cache

from db.config import load_env_files

_ALLOWED_FETCHERS = {"playwright", "requests"}
_ALLOWED_JOB_SOURCES = {"postgres", "queue"}
_ALLOWED_LLM_ADAPTERS = {"openai", "mock"}


@lru_cache(maxsize=1)
def _load_env_once() -> None:
    """
    Ensure project `.env` files are loaded once before reading app settings.
    """

    load_env_files()


def _get_bool_env(name: str, default: bool) -> bool:
    """
    Read a boolean from environment variables with safe fallback.
    """

    _load_env_once()
    raw_value = os.getenv(name)
    if raw_value is None:
        return default
    return raw_value.strip().lower() in {"1", "true", "yes", "on"}


def _get_int_env(name: str, default: int) -> int:
    """
    Read an integer from environment variables with safe fallback.
    """

    _load_env_once()
    raw_value = os.getenv(name)
    if raw_value is None:
        return default
    try:
        return int(raw_value)
    except ValueError:
        return default


def _get_float_env(name: str, default: float) -> float:
    """
    Read a float from environment variables with safe fallback.
    """

    _load_env_once()
    raw_value = os.getenv(name)
    if raw_value is None:
        return default
    try:
        return float(raw_value)
    except ValueError:
        return default


def _get_str_env(name: str, default: str) -> str:
    """
    Read a string from environment variables with fallback.
    """

    _load_env_once()
    value = os.getenv(name)
    if value is None:
        return default
    stripped = value.strip()
    return stripped if stripped else default


def _get_optional_str_env(name: str) -> str | None:
    """
    Read an optional string value from environment variables.
    """

    _load_env_once()
    value = os.getenv(name)
    if value is None:
        return None
    stripped = value.strip()
    return stripped if stripped else None


def _get_choice_env(name: str, default: str, allowed: set[str]) -> str:
    value = _get_str_env(name, default).lower()
    return value if value in allowed else default


@dataclass(frozen=True)
class PricingWorkerSettings:
    """
    Runtime settings for the pricing refresh worker.
    """

    fetcher: str = "playwright"
    navigation_timeout_seconds: float = 120.0
    settle_seconds: float = 5.0
    fetch_max_retries: int = 2
    fetch_backoff_seconds: float = 1.0
    min_html_bytes: int = 2000
    user_agent: str = (
        "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
        "(KHTML, like Gecko) Chrome/124.0.0.0 Safari/537.36"
    )
    snapshot_dir: str | None = None
    max_text_chars: int = 30000
    error_message_max_length: int = 500
    archival_write_fatal: bool = True
    worker_concurrency: int = 4
    max_pending_jobs: int = 100
    job_source: str = "postgres"
    notify_channel: str = "scrape_session_created"
    listen_poll_seconds: float = 1.0
    reconnect_delay_seconds: float = 5.0
    drain_pending_on_start: bool = False


@dataclass(frozen=True)
class LLMSettings:
    """
    Language model client settings for plan interpretation.
    """

    adapter: str = "openai"
    model: str = "gpt-4o-mini"
    api_key: str | None = None
    base_url: str | None = None
    max_tokens: int = 4096
    timeout_seconds: float = 120.0


@lru_cache(maxsize=1)
def get_pricing_worker_settings() -> PricingWorkerSettings:
    """
    Return cached pricing worker settings from environment variables.
    """

    defaults = PricingWorkerSettings()
    return PricingWorkerSettings(
        fetcher=_get_choice_env("PRICING_FETCHER", defaults.fetcher, _ALLOWED_FETCHERS),
        navigation_timeout_seconds=max(
            1.0,
            _get_float_env("PRICING_NAVIGATION_TIMEOUT_SECONDS", defaults.navigation_timeout_seconds),
        ),
        settle_seconds=max(0.0, _get_float_env("PRICING_SETTLE_SECONDS", defaults.settle_seconds)),
        fetch_max_retries=max(0, _get_int_env("PRICING_FETCH_MAX_RETRIES", defaults.fetch_max_retries)),
        fetch_backoff_seconds=max(
            0.0,
            _get_float_env("PRICING_FETCH_BACKOFF_SECONDS", defaults.fetch_backoff_seconds),
        ),
        min_html_bytes=max(0, _get_int_env("PRICING_MIN_HTML_BYTES", defaults.min_html_bytes)),
        user_agent=_get_str_env("PRICING_USER_AGENT", defaults.user_agent),
        snapshot_dir=_get_optional_str_env("PRICING_SNAPSHOT_DIR"),
        max_text_chars=max(1000, _get_int_env("PRICING_MAX_TEXT_CHARS", defaults.max_text_chars)),
        error_message_max_length=max(
            50,
            _get_int_env("PRICING_ERROR_MESSAGE_MAX_LENGTH", defaults.error_message_max_length),
        ),
        archival_write_fatal=_get_bool_env("PRICING_ARCHIVAL_WRITE_FATAL", defaults.archival_write_fatal),
        worker_concurrency=max(1, _get_int_env("PRICING_WORKER_CONCURRENCY", defaults.worker_concurrency)),
        max_pending_jobs=max(1, _get_int_env("PRICING_MAX_PENDING_JOBS", defaults.max_pending_jobs)),
        job_source=_get_choice_env("PRICING_JOB_SOURCE", defaults.job_source, _ALLOWED_JOB_SOURCES),
        notify_channel=_get_str_env("PRICING_NOTIFY_CHANNEL", defaults.notify_channel),
        listen_poll_seconds=max(
            0.1,
            _get_float_env("PRICING_LISTEN_POLL_SECONDS", defaults.listen_poll_seconds),
        ),
        reconnect_delay_seconds=max(
            0.1,
            _get_float_env("PRICING_RECONNECT_DELAY_SECONDS", defaults.reconnect_delay_seconds),
        ),
        drain_pending_on_start=_get_bool_env(
            "PRICING_DRAIN_PENDING_ON_START",
            defaults.drain_pending_on_start,
        ),
    )


@lru_cache(maxsize=1)
def get_llm_settings() -> LLMSettings:
    """
    Return cached language model settings from environment variables.

    LLM_API_KEY takes precedence over OPENAI_API_KEY.
    """

    defaults = LLMSettings()
    return LLMSettings(
        adapter=_get_choice_env("LLM_ADAPTER", defaults.adapter, _ALLOWED_LLM_ADAPTERS),
        model=_get_str_env("LLM_MODEL", defaults.model),
        api_key=_get_optional_str_env("LLM_API_KEY") or _get_optional_str_env("OPENAI_API_KEY"),
        base_url=_get_optional_str_env("LLM_BASE_URL"),
        max_tokens=max(256, _get_int_env("LLM_MAX_TOKENS", defaults.max_tokens)),
        timeout_seconds=max(1.0, _get_float_env("LLM_TIMEOUT_SECONDS", defaults.timeout_seconds)),
    )


def validate_worker_env() -> None:
    """
    Validate required environment variables before the worker starts.

    Raises RuntimeError listing every missing or invalid variable so the
    operator can fix all problems in one restart cycle. This is the only
    failure allowed to terminate the worker process.
    """

    _load_env_once()

    errors: list[str] = []

    database_url = os.getenv("DATABASE_URL", "").strip()
    cloud_database_url = os.getenv("CLOUD_DATABASE_URL", "").strip()
    local_database_url = os.getenv("LOCAL_DATABASE_URL", "").strip()
    if not database_url and not cloud_database_url and not local_database_url:
        errors.append(
            "No database URL configured. Set DATABASE_URL, CLOUD_DATABASE_URL "
            "or LOCAL_DATABASE_URL."
        )

    adapter = os.getenv("LLM_ADAPTER", "openai").strip().lower()
    if adapter not in _ALLOWED_LLM_ADAPTERS:
        errors.append(
            f"LLM_ADAPTER='{adapter}' is not valid. "
            f"Allowed values: {sorted(_ALLOWED_LLM_ADAPTERS)}."
        )
    elif adapter != "mock":
        llm_api_key = os.getenv("LLM_API_KEY", "").strip()
        openai_api_key = os.getenv("OPENAI_API_KEY", "").strip()
        if not llm_api_key and not openai_api_key:
            errors.append(
                "LLM API key is not set. Provide LLM_API_KEY or OPENAI_API_KEY. "
                "Empty strings are not permitted."
            )

    if errors:
        raise RuntimeError(
            "Startup validation failed. Missing or invalid environment variables:\n"
            + "\n".join(f"  - {e}" for e in errors)
        )
