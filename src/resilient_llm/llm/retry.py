"""Bounded retry with exponential backoff and jitter for one HTTP request.

Delay before retry *k* (1-based attempt that just failed)::

    base_delay_ms * 2 ** (k - 1) + uniform(0, jitter_ms)

With the defaults (400 ms base, 200 ms jitter, 2 attempts) a call makes at
most one retry, after 400-600 ms.
"""

from __future__ import annotations

import asyncio
import logging
import random
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable

import httpx

from resilient_llm.errors import NetworkError

_logger = logging.getLogger(__name__)

RETRYABLE_STATUS_CODES = frozenset({429, 500, 502, 503, 504})

SendFn = Callable[[], Awaitable[httpx.Response]]
RetryHook = Callable[[int, float, str], Awaitable[Any]]


@dataclass(frozen=True)
class RetryPolicy:
    max_attempts: int = 2
    retryable_status_codes: frozenset[int] = field(
        default_factory=lambda: RETRYABLE_STATUS_CODES,
    )
    base_delay_ms: int = 400
    jitter_ms: int = 200

    def __post_init__(self) -> None:
        if self.max_attempts < 1:
            raise ValueError("max_attempts must be >= 1")


DEFAULT_RETRY_POLICY = RetryPolicy()


def backoff_delay(
    attempt: int,
    policy: RetryPolicy = DEFAULT_RETRY_POLICY,
    rng: random.Random | Any = random,
) -> float:
    """Return the sleep (in seconds) after failed attempt *attempt*."""
    jitter = rng.random() * policy.jitter_ms
    return (policy.base_delay_ms * 2 ** (attempt - 1) + jitter) / 1000


async def send_with_retry(
    send: SendFn,
    policy: RetryPolicy = DEFAULT_RETRY_POLICY,
    *,
    sleep: Callable[[float], Awaitable[Any]] | None = None,
    rng: random.Random | Any = random,
    on_retry: RetryHook | None = None,
) -> httpx.Response:
    """Await ``send()`` up to ``policy.max_attempts`` times.

    Transport failures (connect errors, timeouts) are retried while attempts
    remain and raised as ``NetworkError`` afterwards.  A response with a
    retryable status is closed and retried while attempts remain; any other
    response, including a non-2xx one, is returned for the caller to
    interpret.
    """
    for attempt in range(1, policy.max_attempts + 1):
        is_last = attempt == policy.max_attempts
        try:
            resp = await send()
        except httpx.TransportError as e:
            if is_last:
                raise NetworkError(
                    f"Request failed after {attempt} attempt(s): {e}",
                    context={"attempts": attempt},
                ) from e
            reason = f"{type(e).__name__}: {e}"
        else:
            if is_last or resp.status_code not in policy.retryable_status_codes:
                return resp
            reason = f"HTTP {resp.status_code}"
            await resp.aclose()

        delay = backoff_delay(attempt, policy, rng)
        _logger.warning(
            "LLM request failed (%s, attempt %d/%d), retrying in %.0fms",
            reason, attempt, policy.max_attempts, delay * 1000,
        )
        if on_retry is not None:
            await on_retry(attempt, delay, reason)
        await (sleep or asyncio.sleep)(delay)

    # Unreachable: the final attempt always returns or raises
    raise AssertionError("retry loop exited without a result")
