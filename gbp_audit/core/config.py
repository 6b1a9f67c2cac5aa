"""Application configuration helpers."""

import logging
import os
from dataclasses import dataclass
from functools import lru_cache

from dotenv import load_dotenv

logger = logging.getLogger(__name__)

_RANK_PROVIDERS = {"places", "serpapi"}


class ConfigError(RuntimeError):
    """Raised when mandatory configuration is missing."""


@dataclass(frozen=True)
class Settings:
    backend_url: str = "http://localhost:5000"
    google_api_key: str = ""
    serpapi_api_key: str = ""
    database_url: str = ""
    rank_provider: str = "places"
    refresh_interval_seconds: int = 300
    staleness_seconds: int = 120
    auto_refresh: bool = True
    failed_dir: str = "data/failed"
    request_timeout: int = 10
    worker_port: int = 9000


def _env_bool(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    return raw.strip().lower() in {"1", "true", "yes"}


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    try:
        return int(raw.strip())
    except ValueError as exc:
        raise ConfigError(f"{name} must be an integer, got {raw!r}.") from exc


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Load settings from environment variables with sensible defaults."""
    load_dotenv()

    backend_url = (os.getenv("BACKEND_URL") or "http://localhost:5000").rstrip("/")
    google_api_key = os.getenv("GOOGLE_API_KEY", "")
    serpapi_api_key = os.getenv("SERPAPI_API_KEY", "")
    database_url = os.getenv("DATABASE_URL", "")
    rank_provider = os.getenv("RANK_PROVIDER", "places").strip().lower() or "places"
    refresh_interval_seconds = _env_int("AUDIT_REFRESH_INTERVAL_SECONDS", 300)
    staleness_seconds = _env_int("AUDIT_STALENESS_SECONDS", 120)
    auto_refresh = _env_bool("AUDIT_AUTO_REFRESH", True)
    failed_dir = os.getenv("AUDIT_FAILED_DIR", "data/failed")
    request_timeout = _env_int("REQUEST_TIMEOUT_SECONDS", 10)
    worker_port = _env_int("WORKER_PORT", 9000)

    if rank_provider not in _RANK_PROVIDERS:
        raise ConfigError(
            f"RANK_PROVIDER '{rank_provider}' is not valid. Allowed values: {sorted(_RANK_PROVIDERS)}."
        )
    if refresh_interval_seconds <= 0:
        raise ConfigError("AUDIT_REFRESH_INTERVAL_SECONDS must be positive.")

    if not database_url:
        logger.warning("DATABASE_URL is not set; audit results cannot be stored server-side.")
    if rank_provider == "places" and not google_api_key:
        logger.warning("GOOGLE_API_KEY is not configured; Google Places rank lookups will fail.")
    if rank_provider == "serpapi" and not serpapi_api_key:
        logger.warning("SERPAPI_API_KEY is not configured; SerpAPI rank lookups will fail.")

    return Settings(
        backend_url=backend_url,
        google_api_key=google_api_key,
        serpapi_api_key=serpapi_api_key,
        database_url=database_url,
        rank_provider=rank_provider,
        refresh_interval_seconds=refresh_interval_seconds,
        staleness_seconds=staleness_seconds,
        auto_refresh=auto_refresh,
        failed_dir=failed_dir,
        request_timeout=request_timeout,
        worker_port=worker_port,
    )
