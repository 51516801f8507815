"""Validation, deduplication and summarisation of scraped tours."""
from __future__ import annotations

import logging
import math
from datetime import datetime
from typing import Any, Dict, Iterable, List, Optional, Sequence

import pandas as pd

from .cleanup import clean_tours
from .fields import parse_price, unique
from .models import (
    DEFAULT_DURATION,
    DEFAULT_LOCATION,
    MAX_IMAGES,
    Activity,
    TourData,
)

LOGGER = logging.getLogger(__name__)

MIN_EVIDENCE = 2
MIN_DESCRIPTION_LENGTH = 50


def has_price(tour: TourData) -> bool:
    return bool(tour.price and tour.price.strip().strip(",").strip())


def evidence_count(tour: TourData) -> int:
    """Count the signals suggesting ``tour`` is a real product and not page chrome."""

    return sum(
        (
            has_price(tour),
            bool(tour.duration and tour.duration.strip()),
            len(tour.description or "") > MIN_DESCRIPTION_LENGTH,
            len(tour.images) >= 1,
        )
    )


def is_valid_tour(tour: TourData) -> bool:
    return bool(tour.title and tour.title.strip()) and evidence_count(tour) >= MIN_EVIDENCE


def validate_tours(tours: Iterable[TourData]) -> List[TourData]:
    candidates = list(tours)
    valid = [tour for tour in candidates if is_valid_tour(tour)]
    if len(valid) != len(candidates):
        LOGGER.info(
            "Dropped %d of %d candidates with insufficient tour evidence",
            len(candidates) - len(valid),
            len(candidates),
        )
    return valid


def dedupe_key(title: str) -> str:
    return "".join(title.lower().split())


def deduplicate_tours(tours: Iterable[TourData]) -> List[TourData]:
    """Collapse tours sharing a normalised title; a priced candidate wins."""

    seen: Dict[str, TourData] = {}
    for tour in tours:
        key = dedupe_key(tour.title)
        current = seen.get(key)
        if current is None or not has_price(current):
            seen[key] = tour
    return list(seen.values())


def prepare_tours(tours: Iterable[TourData], destination_keywords: Sequence[str]) -> List[TourData]:
    """Cleanup/backfill, then validation, then deduplication."""

    cleaned = clean_tours(tours, destination_keywords)
    return deduplicate_tours(validate_tours(cleaned))


def build_activities(tours: Iterable[TourData], timestamp: Optional[datetime] = None) -> List[Activity]:
    """Turn validated tours into :class:`Activity` records.

    Image and link URLs are copied as found; the scraper resolves them
    against the page afterwards.
    """

    created = timestamp or datetime.now()
    stamp = int(created.timestamp() * 1000)
    activities: List[Activity] = []
    for index, tour in enumerate(tours):
        amount, parsed_currency = parse_price(tour.price)
        activities.append(
            Activity(
                id=f"tour-{stamp}-{index}",
                url=tour.url or "",
                title=tour.title,
                description=tour.description or "",
                location=tour.location or DEFAULT_LOCATION,
                price=amount,
                currency=tour.currency or parsed_currency,
                duration=tour.duration or DEFAULT_DURATION,
                images=unique(tour.images)[:MAX_IMAGES],
                highlights=list(tour.highlights),
                includes=list(tour.includes),
                excludes=list(tour.excludes),
            )
        )
    return activities


def activities_to_dataframe(activities: Iterable[Activity]) -> pd.DataFrame:
    """Convert activities into a :class:`~pandas.DataFrame` for analysis."""

    records: List[Dict[str, Any]] = []
    for activity in activities:
        records.append(
            {
                "id": activity.id,
                "title": activity.title,
                "location": activity.location,
                "price": activity.price if activity.price is not None else math.nan,
                "currency": activity.currency,
                "duration": activity.duration,
                "url": activity.url,
            }
        )
    return pd.DataFrame.from_records(
        records, columns=["id", "title", "location", "price", "currency", "duration", "url"]
    )


def deduplicate_activities(activities: Sequence[Activity]) -> List[Activity]:
    """Remove activities repeated across pages, matching on title and price."""

    if not activities:
        return []
    df = activities_to_dataframe(activities)
    df["price_key"] = df["price"].fillna(-1.0)
    kept = df.drop_duplicates(subset=["title", "price_key"]).index
    return [activities[index] for index in kept]


def summarise_activities(activities: Iterable[Activity]) -> Dict[str, Any]:
    """Return count, destinations and price statistics across activities."""

    df = activities_to_dataframe(activities)
    if df.empty:
        return {
            "count": 0,
            "destinations": [],
            "price_range": None,
            "average_price": None,
            "currencies": [],
        }

    priced = df.dropna(subset=["price"])
    priced = priced[priced["price"] > 0]
    price_range = None
    average_price = None
    if not priced.empty:
        price_range = {"min": float(priced["price"].min()), "max": float(priced["price"].max())}
        average_price = float(priced["price"].mean())

    return {
        "count": int(len(df)),
        "destinations": sorted(df["location"].dropna().unique().tolist()),
        "price_range": price_range,
        "average_price": average_price,
        "currencies": sorted(df["currency"].dropna().unique().tolist()),
    }
