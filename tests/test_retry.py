"""
Tests for the shared retry/backoff wrapper.
"""

from __future__ import annotations

import asyncio

import httpx
import pytest

from trustscan_agent.retry import PROBE_POLICY, RetryPolicy, call_with_retry, linear_backoff


class Recorder:
    def __init__(self):
        self.delays: list[float] = []

    async def __call__(self, seconds: float) -> None:
        self.delays.append(seconds)


def _client(statuses: list[int | Exception]) -> httpx.AsyncClient:
    queue = list(statuses)

    def handler(request: httpx.Request) -> httpx.Response:
        item = queue.pop(0)
        if isinstance(item, Exception):
            raise item
        return httpx.Response(item)

    return httpx.AsyncClient(transport=httpx.MockTransport(handler))


def _run(statuses, policy=RetryPolicy()):
    sleep = Recorder()

    async def go():
        async with _client(statuses) as client:
            return await call_with_retry(lambda: client.get("https://api.example.com/x"), policy, sleep=sleep)

    return asyncio.run(go()), sleep


def test_linear_backoff():
    backoff = linear_backoff(1.0)
    assert [backoff(n) for n in (1, 2, 3)] == [1.0, 2.0, 3.0]


def test_first_success_has_no_delay():
    res, sleep = _run([200])
    assert res.status_code == 200
    assert sleep.delays == []


def test_retries_non_success_with_linear_backoff():
    """Two 503s then a 200: waits 1s then 2s."""
    res, sleep = _run([503, 503, 200])
    assert res.status_code == 200
    assert sleep.delays == [1.0, 2.0]


def test_exhausted_status_raises_http_status_error():
    with pytest.raises(httpx.HTTPStatusError) as info:
        _run([500, 502, 429])
    assert info.value.response.status_code == 429


def test_transport_error_is_retried_then_propagates():
    err = httpx.ConnectError("boom")
    with pytest.raises(httpx.ConnectError):
        _run([err, err, err])


def test_transport_error_recovers():
    res, sleep = _run([httpx.ReadTimeout("slow"), 200])
    assert res.status_code == 200
    assert sleep.delays == [1.0]


def test_non_retryable_exception_propagates_immediately():
    sleep = Recorder()
    calls = []

    async def op():
        calls.append(1)
        raise KeyError("nope")

    with pytest.raises(KeyError):
        asyncio.run(call_with_retry(op, sleep=sleep))
    assert len(calls) == 1
    assert sleep.delays == []


def test_probe_policy_accepts_client_errors():
    """A 403 from the probed site still has headers; no retry."""
    res, sleep = _run([403], PROBE_POLICY)
    assert res.status_code == 403
    assert sleep.delays == []


def test_custom_attempt_budget():
    with pytest.raises(httpx.HTTPStatusError):
        _run([500], RetryPolicy(max_attempts=1))
