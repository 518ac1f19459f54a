"""Tests for responses_llm.errors."""
from __future__ import annotations

import pytest

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


# ---------------------------------------------------------------------------
# Hierarchy
# ---------------------------------------------------------------------------


class TestSDKError:
    def test_message(self) -> None:
        assert str(SDKError("boom")) == "boom"

    def test_cause(self) -> None:
        orig = ValueError("original")
        assert SDKError("wrapped", cause=orig).cause is orig

    def test_not_retryable_by_default(self) -> None:
        assert SDKError("boom").retryable is False


class TestProviderError:
    def test_defaults(self) -> None:
        err = ProviderError("fail")
        assert err.status_code is None
        assert err.error_code is None
        assert err.retry_after is None
        assert err.raw is None
        assert err.retryable is False

    @pytest.mark.parametrize("cls", [
        AuthenticationError, AccessDeniedError, NotFoundError,
        InvalidRequestError, ContextLengthError,
    ])
    def test_client_errors_not_retryable(self, cls: type[ProviderError]) -> None:
        assert cls("x").retryable is False

    @pytest.mark.parametrize("cls", [RateLimitError, ServerError])
    def test_transient_errors_retryable(self, cls: type[ProviderError]) -> None:
        assert cls("x").retryable is True

    def test_retryable_overridable(self) -> None:
        assert ServerError("x", retryable=False).retryable is False


class TestTransportErrors:
    def test_timeout_and_network_retryable(self) -> None:
        assert RequestTimeoutError("t").retryable is True
        assert NetworkError("n").retryable is True

    def test_stream_and_config_not_retryable(self) -> None:
        assert StreamError("s").retryable is False
        assert ConfigurationError("c").retryable is False


# ---------------------------------------------------------------------------
# error_from_status_code
# ---------------------------------------------------------------------------


@pytest.mark.parametrize("status, expected", [
    (400, InvalidRequestError),
    (422, InvalidRequestError),
    (401, AuthenticationError),
    (403, AccessDeniedError),
    (404, NotFoundError),
    (413, ContextLengthError),
    (429, RateLimitError),
    (500, ServerError),
    (503, ServerError),
])
def test_status_mapping(status: int, expected: type[ProviderError]) -> None:
    err = error_from_status_code(status, "msg")
    assert type(err) is expected
    assert err.status_code == status


def test_408_is_retryable_provider_error() -> None:
    err = error_from_status_code(408, "slow")
    assert type(err) is ProviderError
    assert err.retryable is True


def test_unknown_status_is_retryable() -> None:
    assert error_from_status_code(418, "teapot").retryable is True


def test_fields_carried() -> None:
    err = error_from_status_code(
        429, "slow down", error_code="rate_limit", raw={"error": {}}, retry_after=2.0,
    )
    assert err.error_code == "rate_limit"
    assert err.raw == {"error": {}}
    assert err.retry_after == 2.0
