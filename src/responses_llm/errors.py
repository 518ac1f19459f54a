"""Error hierarchy for the Responses API transport."""
from __future__ import annotations

from typing import Any


class SDKError(Exception):
    """Base error for all responses_llm errors."""

    retryable: bool = False

    def __init__(self, message: str, *, cause: Exception | None = None) -> None:
        super().__init__(message)
        self.cause = cause


class ProviderError(SDKError):
    """Error returned by the remote service with an HTTP status."""

    def __init__(
        self,
        message: str,
        *,
        status_code: int | None = None,
        error_code: str | None = None,
        retryable: bool = False,
        retry_after: float | None = None,
        raw: dict[str, Any] | None = None,
        cause: Exception | None = None,
    ) -> None:
        super().__init__(message, cause=cause)
        self.status_code = status_code
        self.error_code = error_code
        self.retryable = retryable
        self.retry_after = retry_after
        self.raw = raw


# ---------------------------------------------------------------------------
# Status-mapped provider errors
# ---------------------------------------------------------------------------


class AuthenticationError(ProviderError):
    """Authentication failed (e.g. invalid API key)."""

    def __init__(self, message: str, **kwargs: Any) -> None:
        kwargs.setdefault("retryable", False)
        super().__init__(message, **kwargs)


class AccessDeniedError(ProviderError):
    """Access denied (e.g. insufficient permissions)."""

    def __init__(self, message: str, **kwargs: Any) -> None:
        kwargs.setdefault("retryable", False)
        super().__init__(message, **kwargs)


class NotFoundError(ProviderError):
    """Resource not found (e.g. unknown model or expired response id)."""

    def __init__(self, message: str, **kwargs: Any) -> None:
        kwargs.setdefault("retryable", False)
        super().__init__(message, **kwargs)


class InvalidRequestError(ProviderError):
    """The request was malformed or invalid."""

    def __init__(self, message: str, **kwargs: Any) -> None:
        kwargs.setdefault("retryable", False)
        super().__init__(message, **kwargs)


class ContextLengthError(ProviderError):
    """Input exceeded the model's context window."""

    def __init__(self, message: str, **kwargs: Any) -> None:
        kwargs.setdefault("retryable", False)
        super().__init__(message, **kwargs)


class RateLimitError(ProviderError):
    """Rate limit exceeded."""

    def __init__(self, message: str, **kwargs: Any) -> None:
        kwargs.setdefault("retryable", True)
        super().__init__(message, **kwargs)


class ServerError(ProviderError):
    """Server-side error from the remote service."""

    def __init__(self, message: str, **kwargs: Any) -> None:
        kwargs.setdefault("retryable", True)
        super().__init__(message, **kwargs)


# ---------------------------------------------------------------------------
# Transport errors
# ---------------------------------------------------------------------------


class RequestTimeoutError(SDKError):
    """A request timed out."""

    retryable = True


class NetworkError(SDKError):
    """A network-level error occurred."""

    retryable = True


class StreamError(SDKError):
    """The remote service reported an error inside the event stream."""


class ConfigurationError(SDKError):
    """Invalid client configuration."""


# ---------------------------------------------------------------------------
# Helper
# ---------------------------------------------------------------------------


def error_from_status_code(
    status_code: int,
    message: str,
    *,
    error_code: str | None = None,
    raw: dict[str, Any] | None = None,
    retry_after: float | None = None,
) -> ProviderError:
    """Map HTTP status code to the appropriate error type."""
    common = dict(
        status_code=status_code,
        error_code=error_code,
        raw=raw,
        retry_after=retry_after,
    )

    if status_code in (400, 422):
        return InvalidRequestError(message, **common)
    if status_code == 401:
        return AuthenticationError(message, **common)
    if status_code == 403:
        return AccessDeniedError(message, **common)
    if status_code == 404:
        return NotFoundError(message, **common)
    if status_code == 408:
        return ProviderError(message, retryable=True, **common)
    if status_code == 413:
        return ContextLengthError(message, **common)
    if status_code == 429:
        return RateLimitError(message, **common)
    if 500 <= status_code <= 599:
        return ServerError(message, **common)

    return ProviderError(message, retryable=True, **common)
