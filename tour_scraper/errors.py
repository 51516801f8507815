"""Exception types raised by the tour scraper."""
from __future__ import annotations

from typing import Optional


class ScraperError(Exception):
    """Base class for all scraper errors."""


class ConfigError(ScraperError, ValueError):
    """Raised when a scraper or proxy configuration payload is invalid."""


class FetchError(ScraperError):
    """Raised by the fetch layer when a page cannot be retrieved."""

    def __init__(self, url: str, message: str, status: Optional[int] = None) -> None:
        super().__init__(f"{message} ({url})")
        self.url = url
        self.status = status

    @property
    def retryable(self) -> bool:
        """Network failures, rate limiting and server errors are worth retrying."""

        if self.status is None:
            return True
        return self.status == 429 or self.status >= 500
