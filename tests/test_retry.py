"""Retry, error classification and fetcher behaviour."""

import asyncio

import httpx
import pytest

from trendpack.errors import (
    AuthError,
    FetchTimeoutError,
    HTTPStatusError,
    NetworkError,
    ParseError,
    RateLimitError,
    can_retry_error,
    classify_error,
)
from trendpack.retry import retry_with_backoff


class Recorder:
    def __init__(self):
        self.delays = []

    async def __call__(self, delay):
        self.delays.append(delay)


async def test_retryable_error_is_attempted_max_retries_plus_one_times():
    sleep = Recorder()
    calls = 0

    async def fn():
        nonlocal calls
        calls += 1
        raise NetworkError("network down")

    with pytest.raises(NetworkError):
        await retry_with_backoff(fn, max_retries=2, initial_delay=0.5, sleep=sleep)

    assert calls == 3
    assert sleep.delays == [0.5, 1.0]


async def test_non_retryable_error_is_raised_immediately():
    sleep = Recorder()
    calls = 0

    async def fn():
        nonlocal calls
        calls += 1
        raise AuthError("401 unauthorized")

    with pytest.raises(AuthError):
        await retry_with_backoff(fn, max_retries=3, initial_delay=1.0, sleep=sleep)

    assert calls == 1
    assert sleep.delays == []


async def test_success_after_transient_failure():
    sleep = Recorder()
    outcomes = [RateLimitError("429"), "ok"]

    async def fn():
        outcome = outcomes.pop(0)
        if isinstance(outcome, Exception):
            raise outcome
        return outcome

    assert await retry_with_backoff(fn, max_retries=3, initial_delay=2.0, sleep=sleep) == "ok"
    assert sleep.delays == [2.0]


@pytest.mark.parametrize(
    "error, expected_type, retryable",
    [
        (NetworkError("connection reset"), "network", True),
        (FetchTimeoutError("Request timeout"), "network", True),
        (ParseError("bad markup"), "parse", False),
        (AuthError("forbidden"), "auth", False),
        (RateLimitError("slow down"), "rate_limit", True),
        (HTTPStatusError(503), "unknown", True),
        (HTTPStatusError(404), "unknown", False),
        (httpx.ConnectError("boom"), "network", True),
        (Exception("Failed to parse HTML"), "parse", False),
        (Exception("Request failed: 401"), "auth", False),
        (Exception("429 Too Many Requests"), "rate_limit", True),
        (Exception("socket timeout"), "network", True),
        (Exception("status 404"), "unknown", False),
        (Exception("something odd"), "unknown", True),
    ],
)
def test_classify_error(error, expected_type, retryable):
    info = classify_error(error)
    assert info.type == expected_type
    assert info.retryable is retryable


def test_can_retry_error_heuristics():
    assert can_retry_error(Exception("502 bad gateway")) is True
    assert can_retry_error(Exception("400 bad request")) is False
    assert can_retry_error(Exception("weird")) is True


async def test_fetcher_sends_browser_headers(make_fetcher):
    seen = {}

    def handler(request):
        seen.update(request.headers)
        return httpx.Response(200, text="<html></html>")

    fetcher = make_fetcher(handler, user_agent="TestAgent/1.0")
    assert await fetcher.fetch_html("https://example.com/") == "<html></html>"
    assert seen["user-agent"] == "TestAgent/1.0"
    assert seen["accept-language"].startswith("ko-KR")


async def test_fetcher_retries_server_errors(make_fetcher):
    sleep = Recorder()
    statuses = [503, 200]

    def handler(request):
        return httpx.Response(statuses.pop(0), text="done")

    fetcher = make_fetcher(handler, max_retries=2, retry_delay=1.0, sleep=sleep)
    assert await fetcher.fetch_html("https://example.com/") == "done"
    assert sleep.delays == [1.0]


async def test_fetcher_does_not_retry_not_found(make_fetcher):
    calls = 0

    def handler(request):
        nonlocal calls
        calls += 1
        return httpx.Response(404)

    fetcher = make_fetcher(handler, max_retries=3)
    with pytest.raises(HTTPStatusError) as exc_info:
        await fetcher.fetch_html("https://example.com/missing")

    assert exc_info.value.status_code == 404
    assert calls == 1


async def test_fetcher_maps_auth_status(make_fetcher):
    fetcher = make_fetcher(lambda request: httpx.Response(403), max_retries=3)
    with pytest.raises(AuthError):
        await fetcher.fetch_html("https://example.com/private")


async def test_fetcher_converts_transport_timeout(make_fetcher):
    def handler(request):
        raise httpx.ReadTimeout("read timed out", request=request)

    fetcher = make_fetcher(handler)
    with pytest.raises(FetchTimeoutError):
        await fetcher.fetch_html("https://example.com/slow")


async def test_fetcher_client_uses_configured_timeout(make_fetcher):
    seen = {}

    def handler(request):
        seen.update(request.extensions["timeout"])
        return httpx.Response(200, text="ok")

    fetcher = make_fetcher(handler, timeout=30.0)
    await fetcher.fetch_html("https://example.com/")

    assert seen == {"connect": 30.0, "read": 30.0, "write": 30.0, "pool": 30.0}


async def test_fetcher_enforces_hard_timeout(make_fetcher):
    async def handler(request):
        await asyncio.sleep(1)
        return httpx.Response(200)

    fetcher = make_fetcher(handler, timeout=0.05)
    with pytest.raises(FetchTimeoutError):
        await fetcher.fetch_html("https://example.com/hang")


async def test_fetcher_converts_connection_errors(make_fetcher):
    def handler(request):
        raise httpx.ConnectError("connection refused", request=request)

    fetcher = make_fetcher(handler)
    with pytest.raises(NetworkError):
        await fetcher.fetch_html("https://example.com/")
