"""PACE connector and pipeline settings.

Reads configuration from environment variables:
- PACE_API_URL: Base URL of the PACE web services (e.g. "https://pace.example.com/rpc/rest/services")
- PACE_USERNAME / PACE_PASSWORD: Shared service account credentials
- PACE_DISPLAY_TIMEZONE: Zone used to interpret calendar-date filters
- PACE_FETCH_BATCH_SIZE: Concurrent detail reads per batch
- PACE_FIND_LIMIT: Maximum identifiers requested from FindObjects
- PACE_CACHE_TTL_SECONDS / PACE_CACHE_MAX_ENTRIES: Result cache sizing
- PACE_HTTP_TIMEOUT_SECONDS: Optional total timeout per upstream request
- PACE_USE_SHIPPED_PREFILTER: Enable the "@date != ''" candidate pre-filter
- LOG_LEVEL / LOG_JSON: Logging configuration
"""

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Mapping, Optional

# Load .env file if it exists
from dotenv import load_dotenv

ENV_PATH = Path(__file__).resolve().parents[2] / ".env"

DEFAULT_TIMEZONE = "America/Los_Angeles"
DEFAULT_BATCH_SIZE = 50
MAX_BATCH_SIZE = 100
DEFAULT_FIND_LIMIT = 5000
DEFAULT_CACHE_TTL_SECONDS = 300
DEFAULT_CACHE_MAX_ENTRIES = 256

_TRUE_VALUES = {"1", "true", "yes", "on"}
_FALSE_VALUES = {"0", "false", "no", "off"}


@dataclass(frozen=True)
class PaceSettings:
    """Runtime settings for the shipment pipeline.

    Credentials are optional here; a missing value is reported by the
    credentials provider when the first upstream call needs it.
    """
    api_url: Optional[str] = None
    username: Optional[str] = None
    password: Optional[str] = None
    display_timezone: str = DEFAULT_TIMEZONE
    fetch_batch_size: int = DEFAULT_BATCH_SIZE
    find_limit: int = DEFAULT_FIND_LIMIT
    cache_ttl_seconds: float = DEFAULT_CACHE_TTL_SECONDS
    cache_max_entries: int = DEFAULT_CACHE_MAX_ENTRIES
    http_timeout_seconds: Optional[float] = None
    use_shipped_prefilter: bool = True
    log_level: str = "INFO"
    log_json: bool = False

    def __post_init__(self):
        # Batches are bounded to 1..MAX_BATCH_SIZE concurrent reads
        clamped = max(1, min(self.fetch_batch_size, MAX_BATCH_SIZE))
        object.__setattr__(self, "fetch_batch_size", clamped)

    @property
    def missing_credentials(self) -> list:
        """Names of the credential variables that are not set."""
        missing = []
        if not self.api_url:
            missing.append("PACE_API_URL")
        if not self.username:
            missing.append("PACE_USERNAME")
        if not self.password:
            missing.append("PACE_PASSWORD")
        return missing


def _int_var(env: Mapping[str, str], name: str, default: int) -> int:
    value = env.get(name)
    if value is None or value.strip() == "":
        return default
    try:
        return int(value)
    except ValueError:
        raise ValueError(f"{name} must be an integer, got {value!r}")


def _float_var(env: Mapping[str, str], name: str, default: Optional[float]) -> Optional[float]:
    value = env.get(name)
    if value is None or value.strip() == "":
        return default
    try:
        return float(value)
    except ValueError:
        raise ValueError(f"{name} must be a number, got {value!r}")


def _bool_var(env: Mapping[str, str], name: str, default: bool) -> bool:
    value = env.get(name)
    if value is None or value.strip() == "":
        return default
    normalized = value.strip().lower()
    if normalized in _TRUE_VALUES:
        return True
    if normalized in _FALSE_VALUES:
        return False
    raise ValueError(f"{name} must be a boolean, got {value!r}")


def load_settings(env: Optional[Mapping[str, str]] = None) -> PaceSettings:
    """Build settings from the environment.

    Args:
        env: Mapping to read from. Defaults to os.environ after loading the
            repository .env file (existing environment variables win).

    Returns:
        PaceSettings

    Raises:
        ValueError: If a numeric or boolean variable cannot be parsed
    """
    if env is None:
        if ENV_PATH.exists():
            load_dotenv(ENV_PATH)
        env = os.environ

    return PaceSettings(
        api_url=(env.get("PACE_API_URL") or "").rstrip("/") or None,
        username=env.get("PACE_USERNAME") or None,
        password=env.get("PACE_PASSWORD") or None,
        display_timezone=env.get("PACE_DISPLAY_TIMEZONE") or DEFAULT_TIMEZONE,
        fetch_batch_size=_int_var(env, "PACE_FETCH_BATCH_SIZE", DEFAULT_BATCH_SIZE),
        find_limit=_int_var(env, "PACE_FIND_LIMIT", DEFAULT_FIND_LIMIT),
        cache_ttl_seconds=_float_var(env, "PACE_CACHE_TTL_SECONDS", DEFAULT_CACHE_TTL_SECONDS),
        cache_max_entries=_int_var(env, "PACE_CACHE_MAX_ENTRIES", DEFAULT_CACHE_MAX_ENTRIES),
        http_timeout_seconds=_float_var(env, "PACE_HTTP_TIMEOUT_SECONDS", None),
        use_shipped_prefilter=_bool_var(env, "PACE_USE_SHIPPED_PREFILTER", True),
        log_level=(env.get("LOG_LEVEL") or "INFO").upper(),
        log_json=_bool_var(env, "LOG_JSON", False),
    )


_settings: Optional[PaceSettings] = None


def get_settings() -> PaceSettings:
    """Get the process-wide settings, loading them on first use."""
    global _settings
    if _settings is None:
        _settings = load_settings()
    return _settings


def reset_settings() -> None:
    """Forget the memoized settings so the next call reloads them."""
    global _settings
    _settings = None
