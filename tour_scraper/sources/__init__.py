"""Page fetchers injected into :class:`~tour_scraper.scraper.TourOperatorScraper`."""
from .browser import PlaywrightFetcher
from .http import HttpFetcher

__all__ = ["HttpFetcher", "PlaywrightFetcher"]
