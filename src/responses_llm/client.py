"""Streaming client for the Responses API."""
from __future__ import annotations

import logging
import os
from collections.abc import AsyncIterator
from typing import Any, Protocol

import httpx

from responses_llm._sse import parse_sse_json
from responses_llm.errors import (
    ConfigurationError,
    NetworkError,
    RequestTimeoutError,
    StreamError,
    error_from_status_code,
)
from responses_llm.types import ClientTimeout, ResponseRequest, StreamEvent, StreamEventType

logger = logging.getLogger(__name__)

DEFAULT_BASE_URL = "https://api.openai.com"


class StreamingClient(Protocol):
    """Anything that turns a request into an async stream of events."""

    def stream(self, request: ResponseRequest) -> AsyncIterator[StreamEvent]: ...


class ResponsesClient:
    """Async client for the streaming ``/v1/responses`` endpoint."""

    def __init__(
        self,
        api_key: str,
        base_url: str = DEFAULT_BASE_URL,
        timeout: ClientTimeout | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        t = timeout or ClientTimeout()
        self._base_url = base_url.rstrip("/")
        self._client = httpx.AsyncClient(
            base_url=self._base_url,
            headers={
                "authorization": f"Bearer {api_key}",
                "content-type": "application/json",
            },
            timeout=httpx.Timeout(connect=t.connect, read=t.read, write=t.write, pool=t.connect),
            transport=transport,
        )

    @classmethod
    def from_env(cls, *, timeout: ClientTimeout | None = None) -> ResponsesClient:
        """Create a client from OPENAI_API_KEY and OPENAI_BASE_URL."""
        api_key = os.environ.get("OPENAI_API_KEY")
        if not api_key:
            raise ConfigurationError("OPENAI_API_KEY is not set")
        base_url = os.environ.get("OPENAI_BASE_URL", DEFAULT_BASE_URL)
        return cls(api_key=api_key, base_url=base_url, timeout=timeout)

    async def stream(self, request: ResponseRequest) -> AsyncIterator[StreamEvent]:
        """Send *request* and yield translated stream events.

        Raises a responses_llm error on non-2xx status or transport failure.
        """
        body = request.to_body()
        logger.info(
            "Responses request: model=%s items=%d previous_response_id=%s",
            request.model, len(request.input), request.previous_response_id,
        )
        try:
            async with self._client.stream("POST", "/v1/responses", json=body) as resp:
                if resp.status_code >= 300:
                    await resp.aread()
                    raise _translate_error(resp)
                async for event in _translate_stream(resp.aiter_lines()):
                    yield event
        except httpx.TimeoutException as exc:
            raise RequestTimeoutError(f"Stream timed out: {exc}", cause=exc) from exc
        except httpx.HTTPError as exc:
            raise NetworkError(f"Network error during stream: {exc}", cause=exc) from exc

    async def aclose(self) -> None:
        """Close the underlying httpx client."""
        await self._client.aclose()


def _translate_error(response: httpx.Response) -> Exception:
    """Translate an HTTP error response to a typed error."""
    body: dict[str, Any] | None
    try:
        body = response.json()
        error_info = body.get("error") or {}
        message = error_info.get("message", response.text)
        error_code = error_info.get("type") or error_info.get("code")
    except (ValueError, AttributeError):
        body = None
        message = response.text
        error_code = None

    retry_after = None
    if "retry-after" in response.headers:
        try:
            retry_after = float(response.headers["retry-after"])
        except (ValueError, TypeError):
            pass

    return error_from_status_code(
        response.status_code,
        message,
        error_code=error_code,
        raw=body,
        retry_after=retry_after,
    )


async def _translate_stream(lines: AsyncIterator[str]) -> AsyncIterator[StreamEvent]:
    """Map Responses SSE events onto StreamEvents. Unknown events are skipped."""
    async for event_type, data in parse_sse_json(lines):
        if event_type == "response.created":
            response = data.get("response", {})
            yield StreamEvent(
                type=StreamEventType.CREATED, response_id=response.get("id"), raw=data,
            )

        elif event_type == "response.output_text.delta":
            yield StreamEvent(type=StreamEventType.TEXT_DELTA, delta=data.get("delta", ""), raw=data)

        elif event_type == "response.reasoning_summary_text.delta":
            yield StreamEvent(
                type=StreamEventType.REASONING_DELTA, delta=data.get("delta", ""), raw=data,
            )

        elif event_type == "response.output_item.added":
            yield StreamEvent(type=StreamEventType.ITEM_ADDED, item=data.get("item", {}), raw=data)

        elif event_type == "response.output_item.done":
            yield StreamEvent(type=StreamEventType.ITEM_DONE, item=data.get("item", {}), raw=data)

        elif event_type == "response.completed":
            response = data.get("response", {})
            yield StreamEvent(
                type=StreamEventType.COMPLETED,
                response_id=response.get("id"),
                usage=response.get("usage"),
                raw=data,
            )

        elif event_type in ("response.failed", "error"):
            error_data = data.get("response", {}).get("error") or data.get("error") or data
            message = error_data.get("message", str(error_data)) if isinstance(error_data, dict) else str(error_data)
            yield StreamEvent(type=StreamEventType.ERROR, error=StreamError(message), raw=data)

        else:
            logger.debug("Ignoring stream event %s", event_type)
