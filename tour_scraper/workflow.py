"""High level orchestration for scanning a tour operator website."""
from __future__ import annotations

import asyncio
import logging
from typing import List, Optional, Sequence
from urllib.parse import urlparse

from .config import ScraperConfig, default_tour_operator_config
from .errors import ConfigError
from .models import Activity, ScanResult
from .processor import deduplicate_activities, summarise_activities
from .proxy import ProxyRotator
from .reporter import build_report
from .scraper import Fetcher, TourOperatorScraper

LOGGER = logging.getLogger(__name__)

LISTING_PATTERNS: Sequence[str] = (
    "/tours",
    "/trips",
    "/packages",
    "/destinations",
    "/adventures",
    "/our-tours",
    "/tour-packages",
    "/travel-packages",
    "/itineraries",
    "/experiences",
    "/journeys",
    "/expeditions",
    "/vacations",
    "/holiday-packages",
    "/tour-listing",
    "/all-tours",
    "/tour-catalog",
)
LANGUAGE_PREFIXES: Sequence[str] = ("en", "es", "fr")
LOCALISED_PATTERN_COUNT = 5
DEFAULT_SCAN_DEPTH = 10


def candidate_listing_urls(website_url: str) -> List[str]:
    """Return the start URL followed by the usual tour listing paths of its site."""

    parsed = urlparse(website_url)
    if not parsed.scheme or not parsed.netloc:
        raise ConfigError(f"Website URL must be absolute, got {website_url!r}")
    origin = f"{parsed.scheme}://{parsed.netloc}"

    urls: List[str] = [website_url]
    candidates = [f"{origin}{pattern}" for pattern in LISTING_PATTERNS]
    candidates.extend(
        f"{origin}/{language}{pattern}"
        for language in LANGUAGE_PREFIXES
        for pattern in LISTING_PATTERNS[:LOCALISED_PATTERN_COUNT]
    )
    for url in candidates:
        if url not in urls:
            urls.append(url)
    return urls


async def scan_website(
    scraper: TourOperatorScraper, website_url: str, scan_depth: int = DEFAULT_SCAN_DEPTH
) -> ScanResult:
    """Scrape up to ``scan_depth`` listing pages and merge what they return."""

    urls = candidate_listing_urls(website_url)[: max(0, scan_depth)]
    scan = ScanResult(website_url=website_url)
    collected: List[Activity] = []
    delay = scraper.config.throttling.delay_between_requests / 1000

    for index, url in enumerate(urls):
        if index and delay > 0:
            await asyncio.sleep(delay)
        LOGGER.info("Scanning page %d/%d: %s", index + 1, len(urls), url)
        try:
            result = await scraper.scrape_url(url)
        except Exception as exc:
            LOGGER.warning("Skipping %s: %s", url, exc)
            scan.failed_pages[url] = str(exc)
            continue
        scan.pages_scanned.append(url)
        if not result.success:
            scan.failed_pages[url] = "; ".join(result.errors) or "extraction failed"
            continue
        collected.extend(result.data)

    scan.activities = deduplicate_activities(collected)
    scan.summary = summarise_activities(scan.activities)
    if not scan.activities:
        scan.warnings.append("No tours were found on any scanned page.")
    if urls and len(scan.failed_pages) == len(urls):
        scan.warnings.append("Every scanned page failed.")
    scan.report = build_report(scan)
    LOGGER.info(
        "Scan of %s finished: %d tours from %d pages (%d failed)",
        website_url,
        len(scan.activities),
        len(scan.pages_scanned),
        len(scan.failed_pages),
    )
    return scan


def run_scan(
    website_url: str,
    fetcher: Optional[Fetcher] = None,
    config: Optional[ScraperConfig] = None,
    proxy_rotator: Optional[ProxyRotator] = None,
    scan_depth: int = DEFAULT_SCAN_DEPTH,
) -> ScanResult:
    """Synchronous entry point around :func:`scan_website`.

    Uses a :class:`~tour_scraper.sources.PlaywrightFetcher` unless another
    fetcher is supplied.
    """

    config = config or default_tour_operator_config()
    if fetcher is None:
        from .sources import PlaywrightFetcher

        fetcher = PlaywrightFetcher(config)
    scraper = TourOperatorScraper(fetcher, config=config, proxy_rotator=proxy_rotator)

    async def runner() -> ScanResult:
        return await scan_website(scraper, website_url, scan_depth=scan_depth)

    return asyncio.run(runner())


__all__ = ["LISTING_PATTERNS", "candidate_listing_urls", "run_scan", "scan_website"]
