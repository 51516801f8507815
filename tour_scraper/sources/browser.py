"""Headless Chromium fetcher for JavaScript-rendered tour listings."""
from __future__ import annotations

import asyncio
import logging
from typing import Any, Dict, Optional

from playwright.async_api import Error as PlaywrightError
from playwright.async_api import Page, Route, async_playwright

from ..config import ScraperConfig, default_tour_operator_config
from ..errors import FetchError
from ..models import ProxyConfig
from .common import pick_user_agent, with_retries

LOGGER = logging.getLogger(__name__)

SCROLL_STEP = 100
MAX_SCROLLS = 20
SETTLE_AFTER_SCROLL = 1.0

_SCROLL_SCRIPT = """
async ([distance, maxScrolls]) => {
    for (let i = 0; i < maxScrolls; i++) {
        if (window.scrollY + window.innerHeight >= document.body.scrollHeight - 50) break;
        window.scrollBy(0, distance);
        await new Promise(resolve => setTimeout(resolve, 100));
    }
    window.scrollTo(0, 0);
}
"""


def playwright_proxy(proxy: ProxyConfig) -> Dict[str, str]:
    """Translate a :class:`ProxyConfig` into Playwright's ``proxy`` launch option."""

    settings = {"server": f"{proxy.protocol or 'http'}://{proxy.host}:{proxy.port}"}
    if proxy.username:
        settings["username"] = proxy.username
    if proxy.password:
        settings["password"] = proxy.password
    return settings


async def scroll_page(page: Page) -> None:
    """Scroll through the page to trigger lazy-loaded listings."""

    try:
        await page.evaluate(_SCROLL_SCRIPT, [SCROLL_STEP, MAX_SCROLLS])
        await asyncio.sleep(SETTLE_AFTER_SCROLL)
    except PlaywrightError as exc:
        LOGGER.debug("Error during page scroll: %s", exc)


class PlaywrightFetcher:
    """Render pages in headless Chromium and return the final HTML."""

    def __init__(self, config: Optional[ScraperConfig] = None) -> None:
        self.config = config or default_tour_operator_config()

    async def _block_resources(self, route: Route) -> None:
        if route.request.resource_type in self.config.browser.block_resources:
            await route.abort()
        else:
            await route.continue_()

    async def _render(self, url: str, proxy: Optional[ProxyConfig]) -> str:
        browser_config = self.config.browser
        launch_options: Dict[str, Any] = {"headless": browser_config.headless}
        if proxy is not None:
            launch_options["proxy"] = playwright_proxy(proxy)

        width, height = browser_config.viewport
        context_options: Dict[str, Any] = {
            "viewport": {"width": width, "height": height},
            "java_script_enabled": browser_config.enable_javascript,
        }
        agent = pick_user_agent(self.config.user_agent)
        if agent:
            context_options["user_agent"] = agent

        async with async_playwright() as p:  # pragma: no cover - drives a real browser
            browser = await p.chromium.launch(**launch_options)
            try:
                context = await browser.new_context(**context_options)
                page = await context.new_page()
                if browser_config.block_resources:
                    await page.route("**/*", self._block_resources)

                LOGGER.info("Navigating to %s", url)
                try:
                    response = await page.goto(
                        url, wait_until="networkidle", timeout=self.config.throttling.timeout
                    )
                except PlaywrightError as exc:
                    raise FetchError(url, f"Navigation failed: {exc}") from exc

                if response is None:
                    raise FetchError(url, "No response received")
                LOGGER.info("Page response received for %s: %d", url, response.status)
                if response.status >= 400:
                    raise FetchError(url, f"HTTP {response.status}", response.status)

                if browser_config.wait_time > 0:
                    await page.wait_for_timeout(browser_config.wait_time)
                await scroll_page(page)
                return await page.content()
            finally:
                await browser.close()

    async def fetch(self, url: str, proxy: Optional[ProxyConfig] = None) -> str:
        async def attempt_fetch(attempt: int) -> str:
            if attempt:
                LOGGER.info("Retrying %s (attempt %d)", url, attempt + 1)
            return await self._render(url, proxy)

        return await with_retries(url, attempt_fetch, self.config.throttling)
