"""Tests for HTTP client module."""

import httpx
import pytest
from aiolimiter import AsyncLimiter
from tenacity import wait_none

from skillcat.clients.http import (
    RateLimitMonitor,
    RequestContext,
    RetryableStatusError,
    build_request_context,
    create_http_client,
    fetch_with_retry,
)
from skillcat.settings import Settings


def _ctx() -> RequestContext:
    return RequestContext(
        limiter=AsyncLimiter(100, 1),
        monitor=RateLimitMonitor(window=10, threshold_percent=50.0),
    )


def test_rate_limit_monitor_no_data() -> None:
    monitor = RateLimitMonitor(window=10, threshold_percent=50.0)
    assert monitor.throttled_percent == 0.0
    assert monitor.is_throttled is False


def test_rate_limit_monitor_tracking() -> None:
    monitor = RateLimitMonitor(window=5, threshold_percent=40.0)
    for _ in range(3):
        monitor.push_status(200)
    monitor.push_status(403)
    monitor.push_status(429)
    assert monitor.throttled_percent == 40.0
    assert monitor.is_throttled is True


def test_rate_limit_monitor_below_window() -> None:
    monitor = RateLimitMonitor(window=100, threshold_percent=50.0)
    monitor.push_status(429)
    assert monitor.is_throttled is False


def test_build_request_context_uses_settings() -> None:
    ctx = build_request_context(Settings(_env_file=None, rate_limit_per_second=7.0, rate_limit_window=30))
    assert ctx.limiter.max_rate == 7.0
    assert ctx.monitor.window == 30


def test_get_limiter_no_event_loop() -> None:
    """Outside an async context the base limiter is returned."""
    ctx = _ctx()
    assert ctx.get_limiter() is ctx.limiter


@pytest.mark.asyncio
async def test_create_http_client_sets_user_agent() -> None:
    client = await create_http_client(Settings(_env_file=None))
    assert isinstance(client, httpx.AsyncClient)
    assert client.headers["User-Agent"].startswith("skillcat/")
    await client.aclose()


@pytest.mark.asyncio
async def test_fetch_with_retry_success() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, json={"ok": True})

    ctx = _ctx()
    async with await create_http_client(Settings(_env_file=None), transport=httpx.MockTransport(handler)) as client:
        response = await fetch_with_retry(client, ctx, "https://example.com/test")
        assert response.status_code == 200
    assert list(ctx.monitor._codes) == [200]


def test_retryable_status_error() -> None:
    exc = RetryableStatusError(429)
    assert exc.status_code == 429
    assert "429" in str(exc)


@pytest.mark.asyncio
async def test_fetch_with_retry_retryable_status() -> None:
    """fetch_with_retry raises RetryableStatusError after exhausting retries on 429."""
    calls = 0

    def handler(request: httpx.Request) -> httpx.Response:
        nonlocal calls
        calls += 1
        return httpx.Response(429)

    original_wait = fetch_with_retry.retry.wait
    fetch_with_retry.retry.wait = wait_none()
    try:
        async with await create_http_client(Settings(_env_file=None), transport=httpx.MockTransport(handler)) as client:
            with pytest.raises(RetryableStatusError) as exc_info:
                await fetch_with_retry(client, _ctx(), "https://example.com/test")
            assert exc_info.value.status_code == 429
    finally:
        fetch_with_retry.retry.wait = original_wait
    assert calls == 4


@pytest.mark.asyncio
async def test_fetch_with_retry_github_quota_403_is_retried() -> None:
    responses = [httpx.Response(403, headers={"x-ratelimit-remaining": "0"}), httpx.Response(200, json={})]

    def handler(request: httpx.Request) -> httpx.Response:
        return responses.pop(0)

    original_wait = fetch_with_retry.retry.wait
    fetch_with_retry.retry.wait = wait_none()
    try:
        async with await create_http_client(Settings(_env_file=None), transport=httpx.MockTransport(handler)) as client:
            response = await fetch_with_retry(client, _ctx(), "https://example.com/test")
    finally:
        fetch_with_retry.retry.wait = original_wait
    assert response.status_code == 200


@pytest.mark.asyncio
async def test_fetch_with_retry_plain_403_is_returned() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(403)

    async with await create_http_client(Settings(_env_file=None), transport=httpx.MockTransport(handler)) as client:
        response = await fetch_with_retry(client, _ctx(), "https://example.com/test")
    assert response.status_code == 403
