"""Responses LLM: async streaming transport for the Responses API."""

from responses_llm._retry import calculate_delay, with_retry
from responses_llm.client import ResponsesClient, StreamingClient
from responses_llm.errors import (
    AccessDeniedError,
    AuthenticationError,
    ConfigurationError,
    ContextLengthError,
    InvalidRequestError,
    NetworkError,
    NotFoundError,
    ProviderError,
    RateLimitError,
    RequestTimeoutError,
    SDKError,
    ServerError,
    StreamError,
    error_from_status_code,
)
from responses_llm.types import (
    ClientTimeout,
    ResponseRequest,
    RetryPolicy,
    StreamEvent,
    StreamEventType,
)

__all__ = [
    # Client
    "ResponsesClient",
    "StreamingClient",
    # Types
    "ClientTimeout",
    "ResponseRequest",
    "RetryPolicy",
    "StreamEvent",
    "StreamEventType",
    # Retry
    "calculate_delay",
    "with_retry",
    # Errors
    "SDKError",
    "ProviderError",
    "AuthenticationError",
    "AccessDeniedError",
    "NotFoundError",
    "InvalidRequestError",
    "ContextLengthError",
    "RateLimitError",
    "ServerError",
    "RequestTimeoutError",
    "NetworkError",
    "StreamError",
    "ConfigurationError",
    "error_from_status_code",
]
