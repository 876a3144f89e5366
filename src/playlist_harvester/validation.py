"""Validation and runtime guardrails."""

from __future__ import annotations

from urllib.parse import urlparse

from .errors import ConfigError

EXPORT_FORMATS = ("json", "csv")
MAX_PAGE_SIZE = 50


def is_supported_url(url: str) -> bool:
    """Allow only absolute HTTP(S) URLs with a hostname."""
    parsed = urlparse(url)
    return parsed.scheme in {"http", "https"} and bool(parsed.netloc)


def normalize_query(query: str | None) -> str:
    """Return the trimmed search query or an empty string."""
    return (query or "").strip()


def validate_runtime_constraints(
    *,
    page_size: int,
    request_timeout: float,
    export_format: str,
    max_rate_limit_retries: int | None,
    auth_retry_attempts: int,
    page_retry_attempts: int,
    page_retry_base_delay: float,
    api_base_url: str,
    token_url: str,
) -> None:
    """Validate CLI/runtime configuration and raise ConfigError on invalid values."""
    if not 1 <= page_size <= MAX_PAGE_SIZE:
        raise ConfigError(f"--page-size must be between 1 and {MAX_PAGE_SIZE}.")
    if request_timeout <= 0:
        raise ConfigError("--timeout must be > 0.")
    if export_format not in EXPORT_FORMATS:
        raise ConfigError(f"--format must be one of: {', '.join(EXPORT_FORMATS)}.")
    if max_rate_limit_retries is not None and max_rate_limit_retries < 0:
        raise ConfigError("--max-rate-limit-retries must be >= 0.")
    if auth_retry_attempts < 0:
        raise ConfigError("--auth-retries must be >= 0.")
    if page_retry_attempts < 0:
        raise ConfigError("--page-retries must be >= 0.")
    if page_retry_base_delay < 0:
        raise ConfigError("--page-retry-delay must be >= 0.")
    if not is_supported_url(api_base_url):
        raise ConfigError("API base URL must be an absolute http(s) URL.")
    if not is_supported_url(token_url):
        raise ConfigError("Token URL must be an absolute http(s) URL.")
