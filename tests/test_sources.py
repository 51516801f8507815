"""Tests for the retry policy and the aiohttp fetcher."""

from __future__ import annotations

from typing import List

from aiohttp import test_utils, web
import pytest

from tour_scraper.config import ThrottlingConfig, UserAgentConfig, create_scraper_config
from tour_scraper.errors import FetchError
from tour_scraper.sources.browser import playwright_proxy
from tour_scraper.sources.common import backoff_delay, pick_user_agent, with_retries
from tour_scraper.sources.http import HttpFetcher
from tour_scraper.models import ProxyConfig


@pytest.fixture
def anyio_backend() -> str:
    """Restrict anyio tests to the asyncio backend for deterministic behaviour."""

    return "asyncio"


class _SleepRecorder:
    """Stand-in for ``asyncio.sleep`` that records the requested delays."""

    def __init__(self) -> None:
        self.delays: List[float] = []

    async def __call__(self, delay: float) -> None:
        self.delays.append(delay)


def test_backoff_grows_exponentially_with_floors() -> None:
    assert 1.0 <= backoff_delay(0, 1000) <= 2.0
    assert 4.0 <= backoff_delay(2, 1000) <= 5.0
    assert backoff_delay(0, 10, status=429) == 5.0
    assert backoff_delay(0, 10, status=503) == 3.0
    assert backoff_delay(0, 10, status=500) < 3.0


def test_pick_user_agent() -> None:
    assert pick_user_agent(UserAgentConfig(rotate=False, agents=("a", "b"))) == "a"
    assert pick_user_agent(UserAgentConfig(rotate=True, agents=("a", "b"))) in {"a", "b"}
    assert pick_user_agent(UserAgentConfig(agents=())) is None


def test_playwright_proxy_settings() -> None:
    proxy = ProxyConfig(host="p.example", port=3128, username="u", password="s")
    assert playwright_proxy(proxy) == {"server": "http://p.example:3128", "username": "u", "password": "s"}


@pytest.mark.anyio
async def test_retryable_errors_are_retried() -> None:
    attempts: List[int] = []

    async def flaky(attempt: int) -> str:
        attempts.append(attempt)
        if attempt < 2:
            raise FetchError("https://x.example", "HTTP 503", 503)
        return "<html></html>"

    sleeps = _SleepRecorder()
    result = await with_retries(
        "https://x.example", flaky, ThrottlingConfig(retry_attempts=3, retry_delay=10), sleep=sleeps
    )

    assert result == "<html></html>"
    assert attempts == [0, 1, 2]
    assert len(sleeps.delays) == 2
    assert all(delay >= 3.0 for delay in sleeps.delays)


@pytest.mark.anyio
async def test_client_errors_are_not_retried() -> None:
    attempts: List[int] = []

    async def missing(attempt: int) -> str:
        attempts.append(attempt)
        raise FetchError("https://x.example", "HTTP 404", 404)

    sleeps = _SleepRecorder()
    with pytest.raises(FetchError):
        await with_retries("https://x.example", missing, ThrottlingConfig(retry_attempts=3), sleep=sleeps)

    assert attempts == [0]
    assert sleeps.delays == []


@pytest.mark.anyio
async def test_retry_budget_is_bounded() -> None:
    async def down(attempt: int) -> str:
        raise FetchError("https://x.example", "Network error: refused")

    sleeps = _SleepRecorder()
    with pytest.raises(FetchError):
        await with_retries(
            "https://x.example", down, ThrottlingConfig(retry_attempts=2, retry_delay=1), sleep=sleeps
        )

    assert len(sleeps.delays) == 1


@pytest.mark.anyio
async def test_http_fetcher_returns_body_and_maps_statuses() -> None:
    seen_agents: List[str] = []

    async def listing(request: web.Request) -> web.Response:
        seen_agents.append(request.headers.get("User-Agent", ""))
        return web.Response(text="<h1>Tours</h1>", content_type="text/html")

    async def gone(request: web.Request) -> web.Response:
        return web.Response(status=410)

    app = web.Application()
    app.router.add_get("/tours", listing)
    app.router.add_get("/gone", gone)

    config = create_scraper_config(
        {"name": "test", "userAgent": {"rotate": False, "list": ["tour-scraper-test"]}}
    )
    fetcher = HttpFetcher(config)

    async with test_utils.TestServer(app) as server:
        html = await fetcher.fetch(str(server.make_url("/tours")))
        with pytest.raises(FetchError) as excinfo:
            await fetcher.fetch(str(server.make_url("/gone")))

    assert html == "<h1>Tours</h1>"
    assert seen_agents == ["tour-scraper-test"]
    assert excinfo.value.status == 410
