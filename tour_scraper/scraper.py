"""Generic tour operator scraper.

:class:`TourOperatorScraper` turns an arbitrary operator listing page into
:class:`~tour_scraper.models.Activity` records. Fetching is delegated to an
injected fetcher (see :mod:`tour_scraper.sources`); everything after the
HTML arrives is local parsing.
"""
from __future__ import annotations

import asyncio
from datetime import datetime, timezone
import logging
import time
from typing import Iterable, List, Optional, Protocol, Sequence, Tuple

from bs4 import BeautifulSoup

from .config import ScraperConfig, default_tour_operator_config
from .fields import resolve_url, unique
from .models import Activity, ProxyConfig, ScrapeResult
from .processor import build_activities, prepare_tours
from .proxy import ProxyRotator
from .strategies import STRATEGIES, Strategy, run_strategies

LOGGER = logging.getLogger(__name__)


class Fetcher(Protocol):
    async def fetch(self, url: str, proxy: Optional[ProxyConfig] = None) -> str:
        ...


def resolve_activity_urls(activities: Iterable[Activity], page_url: str) -> None:
    """Make image and link URLs absolute and backfill missing links with ``page_url``."""

    for activity in activities:
        activity.images = unique(resolve_url(image, page_url) for image in activity.images if image)
        activity.url = resolve_url(activity.url, page_url) if activity.url else page_url


class TourOperatorScraper:
    """Scrape tour listings from operator websites of unknown structure."""

    def __init__(
        self,
        fetcher: Fetcher,
        config: Optional[ScraperConfig] = None,
        proxy_rotator: Optional[ProxyRotator] = None,
        strategies: Sequence[Tuple[str, Strategy]] = STRATEGIES,
    ) -> None:
        self.fetcher = fetcher
        self.config = config or default_tour_operator_config()
        self.proxy_rotator = proxy_rotator
        self.strategies = tuple(strategies)

    async def _fetch(self, url: str) -> str:
        proxy = self.proxy_rotator.get_next() if self.proxy_rotator else None
        started = time.perf_counter()
        try:
            html = await self.fetcher.fetch(url, proxy=proxy)
        except Exception as exc:
            LOGGER.error("Failed to fetch %s: %s", url, exc)
            if proxy is not None and self.proxy_rotator is not None:
                self.proxy_rotator.report_error(proxy, exc)
            raise
        if proxy is not None and self.proxy_rotator is not None:
            self.proxy_rotator.report_success(proxy, (time.perf_counter() - started) * 1000)
        return html

    def extract(self, html: str, url: str) -> ScrapeResult:
        """Run the extraction pipeline over already fetched ``html``."""

        started = time.perf_counter()
        try:
            soup = BeautifulSoup(html, "html.parser")
        except Exception as exc:
            LOGGER.error("Failed to parse %s: %s", url, exc)
            raise

        outcome = run_strategies(soup, self.strategies)
        LOGGER.info("Found %d tour candidates on %s via %s", len(outcome.tours), url, outcome.strategy)

        tours = prepare_tours(outcome.tours, self.config.destination_keywords)
        activities = build_activities(tours)
        resolve_activity_urls(activities, url)

        elapsed = (time.perf_counter() - started) * 1000
        metadata = {
            "url": url,
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "items_found": len(activities),
            "processing_time": elapsed,
            "pages_crawled": 1,
            "strategy": outcome.strategy,
            "strategies_attempted": list(outcome.attempted),
        }

        if outcome.errors and len(outcome.errors) == len(outcome.attempted):
            LOGGER.error("Every extraction strategy failed for %s", url)
            return ScrapeResult(success=False, errors=list(outcome.errors), metadata=metadata)

        if not activities:
            LOGGER.warning(
                "No tours extracted from %s (strategies tried: %s)", url, ", ".join(outcome.attempted)
            )
        else:
            LOGGER.info("Extracted %d tours from %s in %.0f ms", len(activities), url, elapsed)
        return ScrapeResult(success=True, data=activities, errors=list(outcome.errors), metadata=metadata)

    async def scrape_url(self, url: str) -> ScrapeResult:
        """Fetch ``url`` and return the tours found on it.

        Fetch and parse failures are logged and re-raised.
        """

        LOGGER.info("Scraping tour operator page %s", url)
        html = await self._fetch(url)
        return self.extract(html, url)

    async def scrape_urls(self, urls: Iterable[str]) -> List[ScrapeResult]:
        """Scrape ``urls`` one after another; a failing page yields a failed result."""

        results: List[ScrapeResult] = []
        delay = self.config.throttling.delay_between_requests / 1000
        for index, url in enumerate(urls):
            if index and delay > 0:
                await asyncio.sleep(delay)
            try:
                results.append(await self.scrape_url(url))
            except Exception as exc:
                results.append(
                    ScrapeResult(success=False, errors=[str(exc)], metadata={"url": url, "pages_crawled": 0})
                )
        return results


__all__ = ["Fetcher", "TourOperatorScraper", "resolve_activity_urls"]
