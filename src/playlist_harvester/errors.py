"""Custom exceptions for the harvester domain."""

from __future__ import annotations


class HarvesterError(Exception):
    """Base exception for this project."""

    default_message = "Unexpected error."

    def __init__(self, message: str | None = None) -> None:
        self.message = message or self.default_message
        super().__init__(self.message)


class ConfigError(HarvesterError):
    """Raised when runtime configuration is invalid."""


class AuthError(HarvesterError):
    """Raised when a token exchange fails."""

    default_message = "Authentication failed."


class MissingCredentials(AuthError):
    default_message = "Please enter both Client ID and Client Secret."


class InvalidCredentials(AuthError):
    default_message = "Invalid Client ID or Client Secret. Please check your credentials."


class AuthExpired(AuthError):
    default_message = "Authentication expired. Please re-authenticate."


class ApiError(HarvesterError):
    """Raised for a non-success HTTP status from the upstream API."""

    def __init__(self, message: str | None = None, *, status: int | None = None) -> None:
        self.status = status
        super().__init__(message)


class AccessDenied(ApiError):
    default_message = "Access denied. Your app may not have permission to search playlists."


class NotFound(ApiError):
    default_message = "Resource not found. It may have been deleted or moved."


class InvalidQuery(ApiError):
    default_message = "Invalid search query. Please check your search terms."


class RateLimited(ApiError):
    default_message = "Rate limit exceeded. Please wait a moment before trying again."


class RateLimitedNoRetryInfo(RateLimited):
    default_message = "Rate limited. Please wait a moment before trying again."


class ServerUnavailable(ApiError):
    default_message = "Spotify servers are experiencing issues. Please try again in a few minutes."


class UnexpectedResponse(ApiError):
    """Raised for statuses the API client has no specific handling for."""


class TransportError(HarvesterError):
    """Raised when a request never produced an HTTP response."""


class NetworkFailure(TransportError):
    default_message = (
        "Network connection failed. Please check your internet connection and try again."
    )


class DnsFailure(TransportError):
    default_message = "Unable to reach Spotify servers. Please check your internet connection."


class RequestTimeout(TransportError):
    default_message = "Request timed out. Please check your internet connection and try again."


class ExportError(HarvesterError):
    """Raised when an export file cannot be written."""

    default_message = "Export failed."


class UserCancelled(Exception):
    """Raised when the user stops the running operation.

    Not a HarvesterError: callers turn it into a clean stop.
    """
