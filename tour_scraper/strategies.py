"""Heuristic strategies that locate tour records in arbitrary HTML.

Every strategy is a plain function ``BeautifulSoup -> List[TourData]``.
:data:`STRATEGIES` lists them in priority order; :func:`run_strategies`
walks that list and stops at the first strategy that returns candidates.
"""
from __future__ import annotations

from dataclasses import dataclass, field
import json
import logging
import re
from typing import Any, Callable, Dict, Iterator, List, Optional, Sequence, Tuple

from bs4 import BeautifulSoup, Tag

from .fields import (
    clean_text,
    element_text,
    extract_currency,
    extract_images,
    extract_location,
    extract_location_from_text,
    extract_tour_from_element,
    find_duration,
    find_price_text,
    is_valid_title,
    title_from_url,
)
from .models import TourData

LOGGER = logging.getLogger(__name__)

Strategy = Callable[[BeautifulSoup], List[TourData]]

CONTAINER_SELECTORS: Tuple[str, ...] = (
    # explicit tour/package/product markup
    ".tour-item", ".tour-card", ".product-card", ".package-item",
    "[class*='tour']", "[class*='package']", "[class*='product']",
    "[class*='trip']", "[class*='itinerary']", "[class*='destination']",
    # generic cards and lists
    "article", ".card", ".item", ".listing-item",
    ".box", ".panel", ".module", ".widget",
    # grid and column cells
    ".grid-item", ".flex-item", "[class*='col-']",
    # tour-like anchors
    "a[href*='/tour']", "a[href*='/package']", "a[href*='/trip']",
    "a[href*='/itinerary']", "a[href*='/destination']",
    "li",
)
TOUR_LINK_SELECTOR = ", ".join(
    f"a[href*='/{segment}']"
    for segment in ("tour", "package", "trip", "itinerary", "destination", "travel")
)
GRID_SELECTORS: Tuple[str, ...] = (
    ".grid", ".row", ".products", ".tours", ".packages",
    "[class*='grid']", "[class*='list']", "[class*='items']",
    "ul.tours", "div.tours", "section.tours",
)
STRUCTURED_DATA_TYPES = frozenset({"Product", "TouristTrip", "Event"})
HEADING_TAGS = ("h1", "h2", "h3", "h4")
HEADING_LENGTH_RANGE = (10, 120)
CHROME_TAGS = frozenset({"nav", "header", "footer"})
CHROME_KEYWORDS: Tuple[str, ...] = (
    "menu", "navigation", "newsletter", "subscribe", "follow us", "contact",
    "about us", "cookie", "privacy", "login", "log in", "sign in", "sign up",
    "cart", "search", "related", "reviews", "testimonials", "faq", "blog",
    "copyright", "footer", "share this",
)
TOUR_CONTAINER_PATTERN = re.compile(r"tour|package|trip|card|product|item|listing", re.IGNORECASE)
MIN_GRID_ITEM_TEXT = 20


def _in_site_chrome(element: Tag) -> bool:
    return any(parent.name in CHROME_TAGS for parent in element.parents)


def extract_generic_containers(soup: BeautifulSoup) -> List[TourData]:
    """Try container selector families until one yields titled candidates."""

    tours: List[TourData] = []
    for selector in CONTAINER_SELECTORS:
        elements = [element for element in soup.select(selector) if not _in_site_chrome(element)]
        if not elements:
            continue
        for element in elements:
            tour = extract_tour_from_element(element)
            if tour.title:
                tours.append(tour)
        if tours:
            LOGGER.info("Found %d tours using selector %s", len(tours), selector)
            break
        LOGGER.debug("Selector %s matched %d elements without titles", selector, len(elements))
    return tours


def extract_from_links(soup: BeautifulSoup) -> List[TourData]:
    """Treat every tour-like anchor as a tour and mine its parent for details."""

    tours: List[TourData] = []
    processed: set[str] = set()

    for link in soup.select(TOUR_LINK_SELECTOR):
        href = str(link.get("href") or "")
        if not href or href in processed or _in_site_chrome(link):
            continue
        processed.add(href)

        container = link.parent if isinstance(link.parent, Tag) else link
        title = element_text(link)
        if not is_valid_title(title):
            heading = container.find(["h1", "h2", "h3", "h4"])
            title = element_text(heading) if heading else ""
        if not is_valid_title(title):
            title = title_from_url(href)
        title = clean_text(title)
        if len(title) < 3:
            continue

        container_text = element_text(container)
        price = find_price_text(container_text)
        tours.append(
            TourData(
                title=title,
                price=price,
                currency=extract_currency(price) if price else None,
                duration=find_duration(container_text),
                images=extract_images(container, ("img",)),
                location=extract_location_from_text(container_text),
                url=href,
            )
        )

    LOGGER.debug("Link-based extraction found %d candidates", len(tours))
    return tours


def extract_from_grid(soup: BeautifulSoup) -> List[TourData]:
    """Treat each substantial direct child of a grid or list wrapper as a tour."""

    tours: List[TourData] = []
    for selector in GRID_SELECTORS:
        grid = soup.select_one(selector)
        if grid is None:
            continue
        items = [
            child
            for child in grid.find_all(recursive=False)
            if len(element_text(child)) > MIN_GRID_ITEM_TEXT
        ]
        for item in items:
            tour = extract_tour_from_element(item)
            if tour.title:
                tours.append(tour)
        if tours:
            LOGGER.info("Found %d tours in grid %s", len(tours), selector)
            break
    return tours


def _iter_json_ld_nodes(data: Any) -> Iterator[Dict[str, Any]]:
    if isinstance(data, list):
        for item in data:
            yield from _iter_json_ld_nodes(item)
    elif isinstance(data, dict):
        yield data
        graph = data.get("@graph")
        if isinstance(graph, list):
            yield from _iter_json_ld_nodes(graph)


def _node_types(node: Dict[str, Any]) -> set[str]:
    value = node.get("@type")
    if isinstance(value, str):
        return {value}
    if isinstance(value, list):
        return {str(item) for item in value}
    return set()


def _first(value: Any) -> Any:
    if isinstance(value, list):
        return value[0] if value else None
    return value


def _json_ld_images(value: Any) -> List[str]:
    images: List[str] = []
    for item in value if isinstance(value, list) else [value]:
        if isinstance(item, dict):
            item = item.get("url") or item.get("contentUrl")
        if isinstance(item, str) and item.strip():
            images.append(item.strip())
    return images


def _json_ld_location(value: Any) -> str:
    value = _first(value)
    if isinstance(value, dict):
        return clean_text(str(value.get("name") or ""))
    if isinstance(value, str):
        return clean_text(value)
    return ""


_ISO_DURATION = re.compile(r"^P(?:(\d+)W)?(?:(\d+)D)?(?:T(?:(\d+)H)?)?$", re.IGNORECASE)


def _json_ld_duration(value: Any) -> str:
    if not isinstance(value, str):
        return ""
    match = _ISO_DURATION.match(value.strip())
    if not match:
        return clean_text(value)
    for amount, unit in zip(match.groups(), ("week", "day", "hour")):
        if amount:
            return f"{int(amount)} {unit}{'s' if int(amount) != 1 else ''}"
    return ""


def extract_structured_data(soup: BeautifulSoup) -> List[TourData]:
    """Map schema.org ``Product``/``TouristTrip``/``Event`` JSON-LD blocks to tours."""

    tours: List[TourData] = []
    for script in soup.find_all("script", attrs={"type": "application/ld+json"}):
        try:
            data = json.loads(script.string or script.get_text() or "{}")
        except ValueError:
            LOGGER.debug("Skipping malformed JSON-LD block")
            continue

        for node in _iter_json_ld_nodes(data):
            if not _node_types(node) & STRUCTURED_DATA_TYPES:
                continue
            offers = _first(node.get("offers")) or {}
            if not isinstance(offers, dict):
                offers = {}
            price = offers.get("price", offers.get("lowPrice", ""))
            tours.append(
                TourData(
                    title=clean_text(str(node.get("name") or "")),
                    description=clean_text(str(node.get("description") or "")),
                    location=_json_ld_location(node.get("location")),
                    duration=_json_ld_duration(node.get("duration")),
                    price="" if price is None else str(price),
                    currency=str(offers.get("priceCurrency") or "USD"),
                    images=_json_ld_images(node.get("image")),
                    url=node.get("url") if isinstance(node.get("url"), str) else None,
                )
            )
    return [tour for tour in tours if tour.title]


def _tour_container(heading: Tag) -> Tag:
    for depth, parent in enumerate(heading.parents):
        if depth >= 4 or parent.name in ("body", "html", "[document]"):
            break
        classes = " ".join(parent.get("class") or [])
        if parent.name in ("article", "li", "section") or TOUR_CONTAINER_PATTERN.search(classes):
            return parent
    return heading.parent if isinstance(heading.parent, Tag) else heading


def extract_from_headings(soup: BeautifulSoup) -> List[TourData]:
    """Last resort: treat plausible headings as tour titles."""

    tours: List[TourData] = []
    low, high = HEADING_LENGTH_RANGE
    for heading in soup.find_all(HEADING_TAGS):
        title = element_text(heading)
        if not low <= len(title) <= high or not is_valid_title(title):
            continue
        lowered = title.lower()
        if any(keyword in lowered for keyword in CHROME_KEYWORDS) or _in_site_chrome(heading):
            continue

        container = _tour_container(heading)
        description = ""
        for paragraph in container.find_all("p"):
            text = element_text(paragraph)
            if len(text) > 20:
                description = text
                break
        container_text = element_text(container)
        price = find_price_text(container_text)
        tours.append(
            TourData(
                title=title,
                description=description,
                price=price,
                currency=extract_currency(price) if price else None,
                duration=find_duration(container_text),
                images=extract_images(container),
                location=extract_location(container, f"{title} {description}"),
            )
        )
    return tours


STRATEGIES: Tuple[Tuple[str, Strategy], ...] = (
    ("generic-container", extract_generic_containers),
    ("link-based", extract_from_links),
    ("grid", extract_from_grid),
    ("structured-data", extract_structured_data),
    ("heading-fallback", extract_from_headings),
)


@dataclass
class StrategyOutcome:
    """Which strategy produced the candidates, and what went wrong on the way."""

    strategy: Optional[str]
    tours: List[TourData] = field(default_factory=list)
    attempted: List[str] = field(default_factory=list)
    errors: List[str] = field(default_factory=list)


def run_strategies(
    soup: BeautifulSoup, strategies: Sequence[Tuple[str, Strategy]] = STRATEGIES
) -> StrategyOutcome:
    """Run ``strategies`` in order, short-circuiting on the first non-empty result."""

    outcome = StrategyOutcome(strategy=None)
    for name, strategy in strategies:
        outcome.attempted.append(name)
        try:
            tours = strategy(soup)
        except Exception as exc:
            LOGGER.warning("Extraction strategy %s failed: %s", name, exc)
            outcome.errors.append(f"{name}: {exc}")
            continue
        LOGGER.info("Strategy %s produced %d candidates", name, len(tours))
        if tours:
            outcome.strategy = name
            outcome.tours = tours
            break
    return outcome
