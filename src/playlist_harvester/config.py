"""Runtime configuration model."""

from __future__ import annotations

from dataclasses import dataclass

from .models import Credential
from .validation import validate_runtime_constraints

DEFAULT_USER_AGENT = "PlaylistHarvester/1.0"
DEFAULT_TOKEN_URL = "https://accounts.spotify.com/api/token"
DEFAULT_API_BASE_URL = "https://api.spotify.com/v1"
DEFAULT_REQUEST_TIMEOUT = 30.0
DEFAULT_PAGE_SIZE = 50
DEFAULT_AUTH_RETRY_ATTEMPTS = 1
DEFAULT_PAGE_RETRY_ATTEMPTS = 3
DEFAULT_PAGE_RETRY_BASE_DELAY = 2.0
DEFAULT_EXPORT_FORMAT = "json"


@dataclass(frozen=True)
class HarvestConfig:
    """Validated configuration shared by the controllers."""

    client_id: str = ""
    client_secret: str = ""
    output_dir: str = "."
    export_format: str = DEFAULT_EXPORT_FORMAT
    request_timeout: float = DEFAULT_REQUEST_TIMEOUT
    page_size: int = DEFAULT_PAGE_SIZE
    max_rate_limit_retries: int | None = None
    auth_retry_attempts: int = DEFAULT_AUTH_RETRY_ATTEMPTS
    page_retry_attempts: int = DEFAULT_PAGE_RETRY_ATTEMPTS
    page_retry_base_delay: float = DEFAULT_PAGE_RETRY_BASE_DELAY
    user_agent: str = DEFAULT_USER_AGENT
    token_url: str = DEFAULT_TOKEN_URL
    api_base_url: str = DEFAULT_API_BASE_URL
    show_progress: bool = True

    def __post_init__(self) -> None:
        validate_runtime_constraints(
            page_size=self.page_size,
            request_timeout=self.request_timeout,
            export_format=self.export_format,
            max_rate_limit_retries=self.max_rate_limit_retries,
            auth_retry_attempts=self.auth_retry_attempts,
            page_retry_attempts=self.page_retry_attempts,
            page_retry_base_delay=self.page_retry_base_delay,
            api_base_url=self.api_base_url,
            token_url=self.token_url,
        )

    @property
    def credential(self) -> Credential:
        return Credential(client_id=self.client_id, client_secret=self.client_secret)
