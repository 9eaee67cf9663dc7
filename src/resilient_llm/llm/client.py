"""Async client for an OpenAI-compatible chat-completion endpoint.

Uses ``httpx.AsyncClient`` and exposes ``async def complete()``,
``async def complete_batch()`` and the async generator ``stream()``.
"""

from __future__ import annotations

import json
import logging
import math
import time
from typing import Any, AsyncGenerator, Sequence

import httpx

from resilient_llm.config import ClientConfig
from resilient_llm.diagnostics import DebugChannel
from resilient_llm.errors import (
    LLMClientError,
    NetworkError,
    ProtocolError,
    RemoteAPIError,
)
from resilient_llm.events.bus import EventBus
from resilient_llm.types import (
    CompletionRequest,
    CompletionResult,
    EventType,
    Usage,
)

from .retry import DEFAULT_RETRY_POLICY, RetryPolicy, send_with_retry
from .stream import SSELineDecoder
from .structured import generate_json

_logger = logging.getLogger(__name__)

DEFAULT_TEMPERATURE = 0.7
MIN_OUTPUT_TOKENS = 16
_SNAPSHOT_CHARS = 500


# ---------------------------------------------------------------------------
# Request body
# ---------------------------------------------------------------------------

def clamp_max_tokens(value: Any) -> int | None:
    """Floor to an int of at least 16, or ``None`` when absent/non-finite."""
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return None
    if not math.isfinite(value):
        return None
    return max(MIN_OUTPUT_TOKENS, math.floor(value))


def build_request_body(
    request: CompletionRequest,
    model: str,
    stream: bool = False,
) -> dict[str, Any]:
    """Build the JSON payload.  Optional fields appear only when supplied."""
    payload: dict[str, Any] = {
        "model": model,
        "messages": [m.to_dict() for m in request.messages],
        "temperature": (
            request.temperature
            if request.temperature is not None
            else DEFAULT_TEMPERATURE
        ),
    }
    max_tokens = clamp_max_tokens(request.max_output_tokens)
    if max_tokens is not None:
        payload["max_tokens"] = max_tokens
    if stream:
        payload["stream"] = True
    if request.reasoning_enabled is not None:
        payload["reasoning"] = {"enabled": request.reasoning_enabled}
    if request.response_shape is not None:
        payload["response_format"] = request.response_shape.to_dict()
    return payload


# ---------------------------------------------------------------------------
# Response interpretation
# ---------------------------------------------------------------------------

def remote_error(status_code: int, body: str) -> RemoteAPIError:
    """Build a RemoteAPIError, preferring the body's ``error`` message."""
    message = f"API error: {status_code} - {body}"
    try:
        data = json.loads(body)
    except json.JSONDecodeError:
        data = None
    if isinstance(data, dict):
        err = data.get("error")
        if isinstance(err, dict):
            err = err.get("message")
        if isinstance(err, str) and err:
            message = err
    return RemoteAPIError(message, status_code=status_code, body=body)


def message_text(content: Any) -> str:
    """Flatten assistant ``content`` to a string.

    ``None`` becomes ``""``.  Some providers return a list of content parts;
    the ``text`` of each text part is joined in order and other parts are
    dropped.  Any other shape is a ProtocolError.
    """
    if content is None:
        return ""
    if isinstance(content, str):
        return content
    if isinstance(content, list):
        return "".join(
            part["text"]
            for part in content
            if isinstance(part, dict)
            and part.get("type") == "text"
            and isinstance(part.get("text"), str)
        )
    snippet = json.dumps(content, ensure_ascii=False, default=str)[:_SNAPSHOT_CHARS]
    raise ProtocolError(
        f"Unexpected message content of type {type(content).__name__}: {snippet}",
        raw_snippet=snippet,
    )


def parse_completion(
    resp: httpx.Response,
    model: str,
    latency_ms: float = 0,
) -> CompletionResult:
    """Normalize a 2xx chat-completion body into a CompletionResult."""
    try:
        data = resp.json()
    except ValueError as e:
        snippet = resp.text[:_SNAPSHOT_CHARS]
        raise ProtocolError(
            f"Response body is not valid JSON: {snippet}", raw_snippet=snippet,
        ) from e

    choice: dict[str, Any] = {}
    if isinstance(data, dict):
        choices = data.get("choices")
        if isinstance(choices, list) and choices and isinstance(choices[0], dict):
            choice = choices[0]
    message = choice.get("message")
    if not isinstance(message, dict):
        snippet = json.dumps(data, ensure_ascii=False)[:_SNAPSHOT_CHARS]
        raise ProtocolError(
            f"No response from model. Raw response: {snippet}",
            raw_snippet=snippet,
        )

    raw_usage = data.get("usage")
    return CompletionResult(
        content=message_text(message.get("content")),
        finish_reason=choice.get("finish_reason") or "",
        reasoning_details=message.get("reasoning_details"),
        usage=Usage.from_dict(raw_usage) if isinstance(raw_usage, dict) else None,
        model=data.get("model") or model,
        raw=data,
        latency_ms=latency_ms,
    )


# ---------------------------------------------------------------------------
# Client
# ---------------------------------------------------------------------------

class AsyncLLMClient:
    """Resilient client for an OpenAI-compatible chat-completion endpoint.

    Holds no per-call state: concurrent ``complete()`` / ``stream()`` calls
    share only the read-only config and the connection pool.
    """

    def __init__(
        self,
        config: ClientConfig,
        *,
        event_bus: EventBus | None = None,
        diagnostics: DebugChannel | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
        retry_policy: RetryPolicy = DEFAULT_RETRY_POLICY,
        timeout: float | None = None,
    ) -> None:
        self.config = config
        self.event_bus = event_bus
        self.diagnostics = diagnostics or DebugChannel(
            enabled=config.debug, path=config.debug_log_path,
        )
        self.retry_policy = retry_policy

        total = timeout if timeout is not None else config.timeout
        self._client = httpx.AsyncClient(
            timeout=httpx.Timeout(total, connect=30, read=300),
            transport=transport,
        )
        self._stream_client = httpx.AsyncClient(
            timeout=httpx.Timeout(total, connect=30, read=60),
            transport=transport,
        )

    # ------------------------------------------------------------------
    # One-shot completion
    # ------------------------------------------------------------------

    async def complete(self, request: CompletionRequest) -> CompletionResult:
        """Send a non-streaming completion request (retried per policy)."""
        self.config.require_credentials()
        model = self._resolve_model(request)
        payload = build_request_body(request, model)
        url = self.config.llm_base_url

        self.diagnostics.log_request(
            model=model,
            url=url,
            temperature=payload["temperature"],
            max_tokens=payload.get("max_tokens"),
            messages=request.messages,
        )
        await self._emit(
            EventType.COMPLETION_REQUEST,
            {"model": model, "messages": len(request.messages), "stream": False},
        )

        start = time.monotonic()
        try:
            resp = await send_with_retry(
                lambda: self._client.post(url, json=payload, headers=self._headers()),
                self.retry_policy,
                on_retry=self._on_retry,
            )
            if not resp.is_success:
                raise remote_error(resp.status_code, resp.text)
            latency = (time.monotonic() - start) * 1000
            result = parse_completion(resp, model, latency)
        except LLMClientError as e:
            await self._emit_error(model, e)
            raise

        self.diagnostics.log_response(
            latency_ms=result.latency_ms,
            finish_reason=result.finish_reason,
            usage=result.usage,
            content=result.content,
        )
        if result.truncated:
            _logger.warning(
                "Output truncated (finish_reason=length) for model %s. "
                "Consider increasing max_output_tokens.",
                result.model,
            )
            await self._emit(
                EventType.COMPLETION_TRUNCATED,
                {
                    "model": result.model,
                    "max_tokens": payload.get("max_tokens"),
                    "usage": vars(result.usage) if result.usage else {},
                },
            )
        await self._emit(
            EventType.COMPLETION_RESPONSE,
            {
                "model": result.model,
                "finish_reason": result.finish_reason,
                "latency_ms": result.latency_ms,
            },
        )
        return result

    async def complete_batch(
        self,
        requests: Sequence[CompletionRequest],
    ) -> list[CompletionResult]:
        """Run *requests* one after another; results keep input order.

        Each round trip, retries included, finishes before the next starts.
        The first failure propagates and the remaining requests are not sent.
        """
        results: list[CompletionResult] = []
        for request in requests:
            results.append(await self.complete(request))
        return results

    async def complete_json(self, request: CompletionRequest) -> Any:
        """One-shot completion parsed as JSON (see ``generate_json``)."""
        return await generate_json(self, request)

    # ------------------------------------------------------------------
    # Streaming
    # ------------------------------------------------------------------

    async def stream(self, request: CompletionRequest) -> AsyncGenerator[str, None]:
        """Streaming completion.  Yields text deltas in arrival order.

        Only establishing the connection is retried; once the body is being
        read, a broken stream raises ``NetworkError``.  The response is
        closed when the generator finishes, fails, or is closed early.
        Typed failures are published as ``completion.error`` before they
        propagate; closing early is not a failure.
        """
        self.config.require_credentials()
        model = self._resolve_model(request)
        payload = build_request_body(request, model, stream=True)
        url = self.config.llm_base_url

        self.diagnostics.log_request(
            model=model,
            url=url,
            temperature=payload["temperature"],
            max_tokens=payload.get("max_tokens"),
            messages=request.messages,
            stream=True,
        )

        def _send() -> Any:
            http_request = self._stream_client.build_request(
                "POST", url, json=payload, headers=self._headers(),
            )
            return self._stream_client.send(http_request, stream=True)

        start = time.monotonic()
        try:
            resp = await send_with_retry(
                _send, self.retry_policy, on_retry=self._on_retry,
            )
        except LLMClientError as e:
            await self._emit_error(model, e)
            raise
        try:
            if not resp.is_success:
                try:
                    raw = await resp.aread()
                except httpx.TransportError as e:
                    raise NetworkError(
                        f"Connection lost while reading the {resp.status_code} "
                        f"error body: {e}",
                        context={"status_code": resp.status_code},
                    ) from e
                raise remote_error(
                    resp.status_code, raw.decode("utf-8", errors="replace"),
                )

            await self._emit(EventType.STREAM_STARTED, {"model": model})
            decoder = SSELineDecoder()
            deltas = 0
            try:
                async for chunk in resp.aiter_text():
                    for delta in decoder.feed(chunk):
                        deltas += 1
                        yield delta
            except httpx.TransportError as e:
                raise NetworkError(
                    f"Stream interrupted after {deltas} delta(s): {e}",
                    context={"deltas": deltas},
                ) from e
            for delta in decoder.finish():
                deltas += 1
                yield delta

            latency = (time.monotonic() - start) * 1000
            _logger.debug("Stream finished: %d deltas in %.0fms", deltas, latency)
            await self._emit(
                EventType.STREAM_FINISHED,
                {"model": model, "deltas": deltas, "latency_ms": latency},
            )
        except LLMClientError as e:
            await self._emit_error(model, e)
            raise
        finally:
            await resp.aclose()

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _resolve_model(self, request: CompletionRequest) -> str:
        return self.config.llm_model or request.model

    def _headers(self) -> dict[str, str]:
        return {
            "Authorization": f"Bearer {self.config.llm_api_key}",
            "Content-Type": "application/json",
        }

    async def _on_retry(self, attempt: int, delay: float, reason: str) -> None:
        await self._emit(
            EventType.COMPLETION_RETRY,
            {"attempt": attempt, "delay_ms": delay * 1000, "reason": reason},
        )

    async def _emit(self, event_type: EventType, data: dict[str, Any]) -> None:
        if self.event_bus is not None:
            await self.event_bus.publish(event_type, data)

    async def _emit_error(self, model: str, error: LLMClientError) -> None:
        await self._emit(
            EventType.COMPLETION_ERROR,
            {"model": model, "error": str(error), **error.context},
        )

    async def close(self) -> None:
        """Close underlying HTTP clients."""
        await self._client.aclose()
        await self._stream_client.aclose()

    async def __aenter__(self) -> AsyncLLMClient:
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.close()
