"""Plain HTTP fetcher for pages that render without JavaScript."""
from __future__ import annotations

import asyncio
import logging
from typing import Dict, Optional

import aiohttp

from ..config import ScraperConfig, default_tour_operator_config, format_proxy_url
from ..errors import FetchError
from ..models import ProxyConfig
from .common import DEFAULT_HEADERS, pick_user_agent, with_retries

LOGGER = logging.getLogger(__name__)


class HttpFetcher:
    """Fetch raw HTML with aiohttp, honouring the scraper's retry and timeout policy."""

    def __init__(self, config: Optional[ScraperConfig] = None) -> None:
        self.config = config or default_tour_operator_config()

    def _headers(self) -> Dict[str, str]:
        headers = dict(DEFAULT_HEADERS)
        agent = pick_user_agent(self.config.user_agent)
        if agent:
            headers["User-Agent"] = agent
        return headers

    async def fetch(self, url: str, proxy: Optional[ProxyConfig] = None) -> str:
        timeout = aiohttp.ClientTimeout(total=self.config.throttling.timeout / 1000)
        proxy_url = format_proxy_url(proxy) if proxy else None

        async def attempt_fetch(attempt: int) -> str:
            LOGGER.info("Fetching %s (attempt %d)", url, attempt + 1)
            try:
                async with aiohttp.ClientSession(timeout=timeout, headers=self._headers()) as session:
                    async with session.get(url, proxy=proxy_url) as response:
                        if response.status >= 400:
                            raise FetchError(url, f"HTTP {response.status}", response.status)
                        return await response.text()
            except FetchError:
                raise
            except (aiohttp.ClientError, asyncio.TimeoutError) as exc:
                raise FetchError(url, f"Network error: {exc}") from exc

        return await with_retries(url, attempt_fetch, self.config.throttling)
