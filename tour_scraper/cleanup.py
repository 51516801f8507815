"""Title cleanup and field backfill for scraped tour candidates.

Many operators print duration, price and destinations inside the listing
title, e.g. ``"Sacred Valley Tour 5 days from $299 Cusco, Sacred Valley"``.
The structured pattern peels all four parts off in one go; when it does not
match, duration and price are stripped one at a time.
"""
from __future__ import annotations

import re
from typing import Iterable, List, Sequence

from .fields import DURATION_PATTERN, PRICE_PATTERN, clean_text, extract_currency
from .models import DEFAULT_LOCATION, TourData

STRUCTURED_TITLE_PATTERN = re.compile(
    r"^(?P<title>.+?)\s+"
    r"(?P<duration>\d+\s*(?:days?|nights?|hours?|weeks?))\b\s*(?:/\s*\d+\s*nights?\s*)?"
    r"(?:from\s+)?"
    r"(?P<price>(?:USD\s*|US)?[$€£]\s*\d[\d,]*(?:\.\d{2})?)"
    r"\s*(?P<rest>.*)$",
    re.IGNORECASE,
)
TRAILING_FROM_PATTERN = re.compile(r"\s*\bfrom\s*$", re.IGNORECASE)
EDGE_PUNCTUATION = " -–|,:;/"


def _keyword_pattern(keywords: Sequence[str]) -> re.Pattern[str] | None:
    ordered = sorted({keyword.strip() for keyword in keywords if keyword.strip()}, key=len, reverse=True)
    if not ordered:
        return None
    return re.compile(r"\b(" + "|".join(re.escape(keyword) for keyword in ordered) + r")\b", re.IGNORECASE)


def extract_destinations(text: str, keywords: Sequence[str]) -> List[str]:
    """Return the known destinations mentioned in ``text``, each once."""

    pattern = _keyword_pattern(keywords)
    if pattern is None or not text:
        return []
    canonical = {keyword.strip().lower(): keyword.strip() for keyword in keywords}
    found: List[str] = []
    seen: set[str] = set()
    for match in pattern.finditer(text):
        lowered = match.group(1).lower()
        if lowered in seen:
            continue
        seen.add(lowered)
        found.append(canonical.get(lowered, match.group(1)))
    # partial keyword hits can leave a bare "Canyon" behind
    return [item for item in found if item.lower() != "canyon"]


def _needs_location(tour: TourData) -> bool:
    return not tour.location or tour.location == DEFAULT_LOCATION


def _tidy(title: str) -> str:
    return clean_text(title).strip(EDGE_PUNCTUATION)


def clean_tour_title(tour: TourData, keywords: Sequence[str]) -> TourData:
    """Strip embedded duration/price/destination text from ``tour.title`` in place."""

    original = tour.title
    match = STRUCTURED_TITLE_PATTERN.match(clean_text(original))
    if match:
        if not tour.duration:
            tour.duration = match.group("duration")
        if not tour.price:
            tour.price = match.group("price")
            tour.currency = extract_currency(tour.price)
        destinations = extract_destinations(match.group("rest"), keywords)
        if destinations:
            tour.location = ", ".join(destinations)
        tour.title = _tidy(match.group("title")) or original
        return tour

    title = clean_text(original)
    duration_match = DURATION_PATTERN.search(title)
    if duration_match:
        if not tour.duration:
            tour.duration = duration_match.group(0)
        title = title.replace(duration_match.group(0), " ", 1)

    price_match = PRICE_PATTERN.search(title)
    if price_match:
        if not tour.price:
            tour.price = clean_text(price_match.group(0))
            tour.currency = extract_currency(tour.price)
        title = title.replace(price_match.group(0), " ", 1)

    title = TRAILING_FROM_PATTERN.sub("", clean_text(title))
    if _needs_location(tour):
        destinations = extract_destinations(title, keywords)
        if destinations:
            tour.location = ", ".join(destinations)

    tour.title = _tidy(title) or original
    return tour


def clean_tours(tours: Iterable[TourData], keywords: Sequence[str]) -> List[TourData]:
    return [clean_tour_title(tour, keywords) for tour in tours]
