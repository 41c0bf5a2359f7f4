"""HTTP client and resilience helpers."""

from __future__ import annotations

import asyncio
from collections import deque
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

import httpx
from aiolimiter import AsyncLimiter
from loguru import logger
from tenacity import (
    RetryCallState,
    retry,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
    wait_random,
)

from skillcat import __version__

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable

    from skillcat.settings import Settings


class RetryableStatusError(Exception):
    """Raised when a response has a retryable HTTP status code, so tenacity can retry."""

    def __init__(self, status_code: int) -> None:
        self.status_code = status_code
        super().__init__(f"Retryable HTTP {status_code}")


class RateLimitMonitor:
    """Tracks a rolling window of response codes and reports provider throttling."""

    def __init__(self, window: int, threshold_percent: float) -> None:
        self.window = window
        self.threshold_percent = threshold_percent
        self._codes: deque[int] = deque(maxlen=window)

    def push_status(self, code: int) -> None:
        self._codes.append(code)

    @property
    def throttled_percent(self) -> float:
        if not self._codes:
            return 0.0
        throttled = sum(1 for code in self._codes if code in {403, 429})
        return throttled * 100.0 / len(self._codes)

    @property
    def is_throttled(self) -> bool:
        return len(self._codes) >= min(self.window, 10) and self.throttled_percent >= self.threshold_percent


@dataclass
class RequestContext:
    """Rate limiter and monitor shared by every outbound call of a run."""

    limiter: AsyncLimiter
    monitor: RateLimitMonitor
    _limiter_loop_map: dict[int, AsyncLimiter] = field(default_factory=dict, repr=False, compare=False)

    def get_limiter(self) -> AsyncLimiter:
        """Return an AsyncLimiter bound to the current event loop.

        Each event loop gets its own limiter instance to avoid RuntimeWarning
        when a limiter created in one loop is used in another (e.g. Prefect tasks).
        """
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            return self.limiter

        loop_id = id(loop)
        if loop_id not in self._limiter_loop_map:
            self._limiter_loop_map[loop_id] = AsyncLimiter(self.limiter.max_rate, self.limiter.time_period)
        return self._limiter_loop_map[loop_id]


def build_request_context(settings: Settings) -> RequestContext:
    return RequestContext(
        limiter=AsyncLimiter(settings.rate_limit_per_second, 1),
        monitor=RateLimitMonitor(settings.rate_limit_window, settings.rate_limit_threshold_percent),
    )


def _log_before_sleep(retry_state: RetryCallState) -> None:
    """Loguru-compatible before_sleep callback for tenacity."""
    if retry_state.next_action:
        sleep = retry_state.next_action.sleep
        logger.warning(
            "Retrying {} (attempt {}), sleeping {:.1f}s",
            retry_state.fn.__name__ if retry_state.fn else "unknown",
            retry_state.attempt_number,
            sleep,
        )


async def create_http_client(
    settings: Settings, transport: httpx.AsyncBaseTransport | None = None
) -> httpx.AsyncClient:
    """Create shared async client with predictable defaults."""

    return httpx.AsyncClient(
        transport=transport,
        http2=transport is None,
        timeout=httpx.Timeout(
            connect=5.0,
            read=settings.request_timeout,
            write=10.0,
            pool=10.0,
        ),
        limits=httpx.Limits(
            max_connections=max(20, settings.concurrency),
            max_keepalive_connections=max(10, settings.concurrency // 2),
            keepalive_expiry=30.0,
        ),
        headers={
            "User-Agent": f"skillcat/{__version__}",
            "Accept": "application/json",
        },
        follow_redirects=True,
    )


def _is_retryable_status(response: httpx.Response) -> bool:
    if response.status_code in {408, 429, 500, 502, 503, 504}:
        return True
    # GitHub signals secondary rate limits with 403 and an exhausted quota header
    return response.status_code == 403 and response.headers.get("x-ratelimit-remaining") == "0"


@retry(
    retry=retry_if_exception_type((httpx.TransportError, httpx.TimeoutException, RetryableStatusError)),
    wait=wait_exponential(multiplier=1, min=1, max=30) + wait_random(0, 2),
    stop=stop_after_attempt(4),
    before_sleep=_log_before_sleep,
    reraise=True,
)
async def fetch_with_retry(
    client: httpx.AsyncClient,
    ctx: RequestContext,
    url: str,
    *,
    request_fn: Callable[[], Awaitable[httpx.Response]] | None = None,
) -> httpx.Response:
    """Rate-limited resilient request."""

    async with ctx.get_limiter():
        response = await (request_fn() if request_fn is not None else client.get(url))
        ctx.monitor.push_status(response.status_code)
        if _is_retryable_status(response):
            status = response.status_code
            await response.aclose()
            raise RetryableStatusError(status)
        return response

