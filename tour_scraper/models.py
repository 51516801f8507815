"""Shared data structures used across extraction, proxying and reporting."""
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

DEFAULT_LOCATION = "Various Locations"
DEFAULT_CURRENCY = "USD"
DEFAULT_DURATION = "Varies"
MAX_IMAGES = 5


@dataclass
class TourData:
    """A tour candidate pulled out of the DOM, before validation.

    ``price`` holds the raw price text as found on the page; the title may
    still carry embedded duration or price noise.
    """

    title: str
    description: str = ""
    location: str = ""
    duration: str = ""
    price: str = ""
    currency: Optional[str] = None
    images: List[str] = field(default_factory=list)
    highlights: List[str] = field(default_factory=list)
    includes: List[str] = field(default_factory=list)
    excludes: List[str] = field(default_factory=list)
    url: Optional[str] = None


@dataclass
class Activity:
    """A bookable tour as returned by :class:`~tour_scraper.scraper.TourOperatorScraper`."""

    id: str
    url: str
    title: str
    description: str = ""
    location: str = DEFAULT_LOCATION
    price: Optional[float] = None
    currency: str = DEFAULT_CURRENCY
    duration: str = DEFAULT_DURATION
    images: List[str] = field(default_factory=list)
    highlights: List[str] = field(default_factory=list)
    includes: List[str] = field(default_factory=list)
    excludes: List[str] = field(default_factory=list)
    category: str = "activity"
    extracted_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    def to_dict(self) -> Dict[str, Any]:
        """Return a JSON-serialisable version of the activity."""

        return {
            "id": self.id,
            "url": self.url,
            "title": self.title,
            "description": self.description,
            "location": self.location,
            "price": self.price,
            "currency": self.currency,
            "duration": self.duration,
            "images": list(self.images),
            "highlights": list(self.highlights),
            "includes": list(self.includes),
            "excludes": list(self.excludes),
            "category": self.category,
            "extracted_at": self.extracted_at.isoformat(),
        }


@dataclass
class ScrapeResult:
    """Outcome of scraping a single page."""

    success: bool
    data: List[Activity] = field(default_factory=list)
    errors: List[str] = field(default_factory=list)
    metadata: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {
            "success": self.success,
            "data": [activity.to_dict() for activity in self.data],
            "metadata": dict(self.metadata),
        }
        if self.errors:
            payload["errors"] = list(self.errors)
        return payload


@dataclass
class ProxyConfig:
    """An outbound proxy and its running health statistics."""

    host: str
    port: int
    username: Optional[str] = None
    password: Optional[str] = None
    protocol: str = "http"
    active: bool = True
    last_used: Optional[datetime] = None
    error_count: int = 0
    response_time: Optional[float] = None

    @property
    def key(self) -> tuple[str, int]:
        return (self.host, self.port)


@dataclass
class ScanResult:
    """Aggregated outcome of scanning the listing pages of one website."""

    website_url: str
    activities: List[Activity] = field(default_factory=list)
    pages_scanned: List[str] = field(default_factory=list)
    failed_pages: Dict[str, str] = field(default_factory=dict)
    summary: Dict[str, Any] = field(default_factory=dict)
    report: str = ""
    warnings: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "website_url": self.website_url,
            "summary": dict(self.summary),
            "activities": [activity.to_dict() for activity in self.activities],
            "pages_scanned": list(self.pages_scanned),
            "failed_pages": dict(self.failed_pages),
            "report": self.report,
            "warnings": list(self.warnings),
        }
