"""
Shared retry/backoff policy for outbound HTTP calls.

Every provider goes through ``call_with_retry`` so they all fail and back off the
same way: linear backoff (1s, 2s, ...) between attempts, and the last error or
non-success response surfaces to the caller once the budget is spent.
"""
from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Awaitable, Callable

import httpx

logger = logging.getLogger(__name__)

Sleep = Callable[[float], Awaitable[None]]


def linear_backoff(step_s: float = 1.0) -> Callable[[int], float]:
    def backoff(attempt: int) -> float:
        return step_s * attempt

    return backoff


def _not_2xx(status: int) -> bool:
    return not (200 <= status < 300)


def _server_error(status: int) -> bool:
    return status >= 500


@dataclass(frozen=True)
class RetryPolicy:
    max_attempts: int = 3
    backoff: Callable[[int], float] = field(default_factory=linear_backoff)
    retry_on_status: Callable[[int], bool] = _not_2xx
    retry_on: tuple[type[BaseException], ...] = (httpx.TransportError,)


DEFAULT_POLICY = RetryPolicy()

# Header probing: a 4xx still carries the headers we inspect.
PROBE_POLICY = RetryPolicy(retry_on_status=_server_error)


async def call_with_retry(
    operation: Callable[[], Awaitable[httpx.Response]],
    policy: RetryPolicy = DEFAULT_POLICY,
    *,
    sleep: Sleep = asyncio.sleep,
) -> httpx.Response:
    """Run ``operation`` until it returns an acceptable response or attempts run out.

    Raises the last retryable exception, or ``httpx.HTTPStatusError`` built from
    the last response when every attempt came back with a retryable status.
    Exceptions outside ``policy.retry_on`` propagate immediately.
    """
    attempts = max(1, policy.max_attempts)
    last_response: httpx.Response | None = None

    for attempt in range(1, attempts + 1):
        try:
            response = await operation()
        except policy.retry_on as e:
            if attempt == attempts:
                raise
            logger.debug("attempt %d/%d failed: %r", attempt, attempts, e)
        else:
            if not policy.retry_on_status(response.status_code):
                return response
            last_response = response
            logger.debug("attempt %d/%d returned HTTP %d", attempt, attempts, response.status_code)
            if attempt == attempts:
                break

        await sleep(policy.backoff(attempt))

    if last_response is None:
        raise RuntimeError("retry loop ended without a response")
    raise httpx.HTTPStatusError(
        f"HTTP {last_response.status_code} after {attempts} attempts",
        request=last_response.request,
        response=last_response,
    )
