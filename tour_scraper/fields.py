"""Field extraction helpers shared by every DOM extraction strategy.

Each field is pulled out of a loosely structured element by trying a
prioritised list of CSS selectors and then falling back to regular
expressions over the element's full text.  New site layouts are supported by
appending selectors or patterns to the tables below.
"""
from __future__ import annotations

import re
from typing import Iterable, List, Optional, Sequence, Tuple
from urllib.parse import urljoin, urlparse

from bs4 import Tag

from .models import DEFAULT_CURRENCY, DEFAULT_LOCATION, MAX_IMAGES, TourData

TITLE_SELECTORS: Tuple[str, ...] = (
    "h1", "h2", "h3", "h4", "h5",
    ".title", ".tour-title", ".product-title", ".package-title",
    "[class*='title']", "[class*='heading']", "[class*='name']",
    "a > span", "a > div", "a[href*='/']",
)
DESCRIPTION_SELECTORS: Tuple[str, ...] = (
    ".description", ".desc", ".summary", ".excerpt",
    "[class*='desc']", "[class*='summary']", "[class*='excerpt']",
    "p", "span",
)
PRICE_SELECTORS: Tuple[str, ...] = (
    ".price", ".cost", ".rate", ".fare",
    "[class*='price']", "[class*='cost']", "[class*='rate']",
    "[class*='from']", "span:-soup-contains('$')", "div:-soup-contains('$')",
    "[data-price]", "[data-cost]",
)
DURATION_SELECTORS: Tuple[str, ...] = (
    ".duration", ".days", ".nights", ".length",
    "[class*='duration']", "[class*='days']", "[class*='nights']",
    "[class*='length']", "[class*='time']",
    "span:-soup-contains('day')", "div:-soup-contains('day')",
    "span:-soup-contains('night')", "div:-soup-contains('night')",
)
LOCATION_SELECTORS: Tuple[str, ...] = (
    ".location", ".destination", ".place", ".region",
    "[class*='location']", "[class*='destination']", "[class*='place']",
    "[class*='region']", "[class*='country']", "[class*='city']",
)
IMAGE_SELECTORS: Tuple[str, ...] = (
    "img", "picture img", ".image img", "[class*='image'] img",
    "[class*='photo'] img", "[class*='thumbnail'] img",
)
IMAGE_SOURCE_ATTRIBUTES: Tuple[str, ...] = ("src", "data-src", "data-lazy-src", "data-original")

INVALID_IMAGE_MARKERS: Tuple[str, ...] = (
    "placeholder", "icon", "logo", "banner", "sprite",
    "pixel", "tracking", "1x1", "blank", "loading",
    "avatar", "profile", "user", ".svg",
)

CURRENCY_SYMBOLS: Tuple[Tuple[str, str], ...] = (
    ("NZ$", "NZD"),
    ("A$", "AUD"),
    ("C$", "CAD"),
    ("S/", "PEN"),
    ("$", "USD"),
    ("€", "EUR"),
    ("£", "GBP"),
    ("¥", "JPY"),
    ("₹", "INR"),
)
CURRENCY_CODES = frozenset(
    {"USD", "EUR", "GBP", "JPY", "INR", "AUD", "CAD", "NZD", "PEN", "CHF", "MXN", "BRL", "ZAR", "SGD"}
)

_SYMBOL_TOKEN = r"(?:NZ\$|A\$|C\$|S/\.?|[$€£¥₹])"
# ISO codes stay case-sensitive so words like "pen" are not read as currencies.
_CODE_TOKEN = r"(?-i:\b(?:" + "|".join(sorted(CURRENCY_CODES)) + r")\b)"
_AMOUNT = r"\d[\d,.]*\d|\d"

# A trailing symbol only counts when attached, as in "850€".
PRICE_PATTERN = re.compile(
    rf"(?:from\s*)?(?:(?:{_SYMBOL_TOKEN}|{_CODE_TOKEN})\s*(?:{_AMOUNT})"
    rf"|(?:{_AMOUNT})(?:\s*{_CODE_TOKEN}|[€£]))",
    re.IGNORECASE,
)
DOLLAR_PRICE_PATTERN = re.compile(r"(?:from\s*)?(?:USD\s*)?\$\s*[\d,]+(?:\.\d{2})?", re.IGNORECASE)
AMOUNT_PATTERN = re.compile(r"\d[\d,.]*")
BARE_AMOUNT_PATTERN = re.compile(r"^(?:from\s*)?\d[\d,.]*$", re.IGNORECASE)
DURATION_PATTERN = re.compile(r"(\d+)\s*(days?|nights?|hours?|weeks?)\b", re.IGNORECASE)
FULL_DURATION_PATTERN = re.compile(
    r"(\d+)\s*(days?|nights?|hours?|weeks?)\b(?:\s*/\s*\d+\s*nights?\b)?", re.IGNORECASE
)
BACKGROUND_IMAGE_PATTERN = re.compile(r"url\(\s*['\"]?([^'\")]+)['\"]?\s*\)", re.IGNORECASE)
LOCATION_PATTERNS: Tuple[re.Pattern[str], ...] = (
    re.compile(r"(?:\bin|\bto|\bfrom)\s+([A-Z][a-z]+(?:\s+[A-Z][a-z]+)*)"),
    re.compile(r"([A-Z][a-z]+(?:\s+[A-Z][a-z]+)*)\s+(?:tour|trip|package|adventure)", re.IGNORECASE),
)

# Site chrome that must never be mistaken for a tour name.
TITLE_SKIP_PATTERNS: Tuple[re.Pattern[str], ...] = (
    re.compile(r"^\d+$"),
    re.compile(
        r"^(?:home|about(?: us)?|contact(?: us)?|blog|faqs?|menu|search|log ?in|sign ?(?:in|up)|register|"
        r"cart|checkout|privacy(?: policy)?|terms(?: (?:and|&) conditions)?|cookies?(?: policy)?|"
        r"newsletter|subscribe|follow us|read more|learn more|view (?:all|more|details)|book now|"
        r"copyright|all rights reserved)\b",
        re.IGNORECASE,
    ),
    re.compile(r"^(?:we|our|you|your|this|these|it|they|i)\b", re.IGNORECASE),
)

WHITESPACE_PATTERN = re.compile(r"\s+")


def clean_text(value: Optional[str]) -> str:
    """Collapse runs of whitespace and strip the result."""

    if not value:
        return ""
    return WHITESPACE_PATTERN.sub(" ", value).strip()


def element_text(element: Tag) -> str:
    return clean_text(element.get_text(" "))


def is_valid_title(title: str) -> bool:
    """Reject navigation, footer boilerplate and shouting headlines."""

    if not title or len(title) <= 3:
        return False
    letters = [char for char in title if char.isalpha()]
    if len(letters) >= 2 and title.upper() == title:
        return False
    return not any(pattern.search(title) for pattern in TITLE_SKIP_PATTERNS)


def _select_first(element: Tag, selector: str) -> Optional[Tag]:
    try:
        return element.select_one(selector)
    except Exception:  # soupsieve rejects selectors it cannot compile
        return None


def _first_text(element: Tag, selectors: Sequence[str], min_length: int = 1) -> str:
    for selector in selectors:
        found = _select_first(element, selector)
        if found is None:
            continue
        text = element_text(found)
        if len(text) >= min_length:
            return text
    return ""


def extract_title(element: Tag) -> str:
    for selector in TITLE_SELECTORS:
        found = _select_first(element, selector)
        if found is None:
            continue
        title = element_text(found)
        if is_valid_title(title):
            return title

    if element.name == "a":
        own_text = element_text(element)
        if is_valid_title(own_text):
            return own_text

    href = element.get("href") if element.name == "a" else None
    if not href:
        anchor = element.find("a", href=True)
        href = anchor.get("href") if anchor else None
    if href:
        return title_from_url(str(href))
    return ""


def extract_description(element: Tag) -> str:
    return _first_text(element, DESCRIPTION_SELECTORS, min_length=21)


def find_price_text(text: str) -> str:
    """Return the first currency-tagged amount in ``text``; falls back to ``$`` amounts."""

    match = PRICE_PATTERN.search(text)
    if match is None:
        match = DOLLAR_PRICE_PATTERN.search(text)
    return clean_text(match.group(0)) if match else ""


def extract_price(element: Tag) -> Tuple[str, Optional[str]]:
    """Return ``(price_text, currency)`` for an element."""

    for selector in PRICE_SELECTORS:
        found = _select_first(element, selector)
        if found is None:
            continue
        price_text = element_text(found)
        if not price_text:
            price_text = str(found.get("data-price") or found.get("data-cost") or "")
        if not price_text or not re.search(r"\d", price_text):
            continue
        narrowed = find_price_text(price_text)
        if narrowed:
            return narrowed, extract_currency(narrowed)
        if BARE_AMOUNT_PATTERN.match(price_text):
            return price_text, extract_currency(price_text)

    match = DOLLAR_PRICE_PATTERN.search(element_text(element))
    if match:
        return clean_text(match.group(0)), "USD"
    return "", None


def find_duration(text: str) -> str:
    match = FULL_DURATION_PATTERN.search(text)
    return match.group(0) if match else ""


def extract_duration(element: Tag) -> str:
    for selector in DURATION_SELECTORS:
        found = _select_first(element, selector)
        if found is None:
            continue
        match = DURATION_PATTERN.search(element_text(found))
        if match:
            return match.group(0)
    return find_duration(element_text(element))


def extract_location_from_text(text: str) -> str:
    for pattern in LOCATION_PATTERNS:
        match = pattern.search(text)
        if match and match.group(1):
            return match.group(1)
    return DEFAULT_LOCATION


def extract_location(element: Tag, fallback_text: str = "") -> str:
    location = _first_text(element, LOCATION_SELECTORS, min_length=3)
    if location:
        return location
    return extract_location_from_text(fallback_text)


def is_valid_tour_image(src: str) -> bool:
    lowered = src.lower()
    if lowered.startswith("data:"):
        return False
    return not any(marker in lowered for marker in INVALID_IMAGE_MARKERS)


def _image_source(img: Tag) -> Optional[str]:
    for attribute in IMAGE_SOURCE_ATTRIBUTES:
        value = img.get(attribute)
        if value and str(value).strip():
            return str(value).strip()
    return None


def extract_images(element: Tag, selectors: Sequence[str] = IMAGE_SELECTORS) -> List[str]:
    """Collect up to :data:`MAX_IMAGES` image URLs from ``<img>`` tags and inline backgrounds."""

    images: List[str] = []

    def _add(src: Optional[str]) -> None:
        if not src or not is_valid_tour_image(src):
            return
        resolved = resolve_url(src)
        if resolved not in images:
            images.append(resolved)

    for selector in selectors:
        try:
            found = element.select(selector)
        except Exception:
            continue
        for img in found:
            _add(_image_source(img))

    styled = [element] if "background-image" in str(element.get("style") or "") else []
    styled.extend(element.select("[style*='background-image']"))
    for node in styled:
        match = BACKGROUND_IMAGE_PATTERN.search(str(node.get("style") or ""))
        if match:
            _add(match.group(1).strip())

    return images[:MAX_IMAGES]


def extract_tour_from_element(element: Tag) -> TourData:
    """Pull every field out of one candidate element."""

    title = extract_title(element)
    description = extract_description(element)
    price, currency = extract_price(element)
    duration = extract_duration(element)
    location = extract_location(element, f"{title} {description}")
    href = element.get("href") if element.name == "a" else None
    return TourData(
        title=title,
        description=description,
        location=location,
        duration=duration,
        price=price,
        currency=currency,
        images=extract_images(element),
        url=str(href) if href else None,
    )


def title_from_url(url: str) -> str:
    """Turn the last path segment of a URL into a human readable title."""

    path = urlparse(url).path if "://" in url else url.split("?", 1)[0].split("#", 1)[0]
    match = re.search(r"/?([^/]+?)(?:\.html?)?/?$", path, re.IGNORECASE)
    if not match:
        return ""
    words = re.sub(r"[-_]+", " ", match.group(1)).strip()
    return " ".join(word[:1].upper() + word[1:] for word in words.split())


def extract_currency(price_text: str) -> str:
    for symbol, code in CURRENCY_SYMBOLS:
        if symbol in price_text:
            return code
    for token in re.findall(r"\b[A-Za-z]{3}\b", price_text):
        if token.upper() in CURRENCY_CODES:
            return token.upper()
    return DEFAULT_CURRENCY


def _normalise_amount(raw: str) -> Optional[float]:
    amount = raw.strip(".,")
    if not amount:
        return None
    if "," in amount and "." in amount:
        if amount.rfind(",") > amount.rfind("."):
            amount = amount.replace(".", "").replace(",", ".")
        else:
            amount = amount.replace(",", "")
    elif "," in amount:
        if re.fullmatch(r"\d{1,3}(?:,\d{3})+", amount):
            amount = amount.replace(",", "")
        else:
            amount = amount.replace(",", ".")
    elif re.fullmatch(r"\d{1,3}(?:\.\d{3})+", amount):
        amount = amount.replace(".", "")
    try:
        return float(amount)
    except ValueError:
        return None


def parse_price(price: str | float | int | None) -> Tuple[Optional[float], str]:
    """Parse heterogeneous price text into ``(amount, currency)``.

    >>> parse_price("From $1,299.50")
    (1299.5, 'USD')
    >>> parse_price("€850")
    (850.0, 'EUR')
    """

    if price is None or price == "":
        return None, DEFAULT_CURRENCY
    if isinstance(price, (int, float)):
        return float(price), DEFAULT_CURRENCY
    text = str(price)
    match = AMOUNT_PATTERN.search(text)
    amount = _normalise_amount(match.group(0)) if match else None
    return amount, extract_currency(text)


def resolve_url(src: str, page_url: Optional[str] = None) -> str:
    """Resolve a link or image reference against the origin of ``page_url``.

    Absolute URLs are returned untouched, protocol-relative URLs get
    ``https:`` and anything else is joined onto the page origin.  Without a
    page URL relative paths are returned as they are.
    """

    src = src.strip()
    if src.startswith(("http://", "https://")):
        return src
    if src.startswith("//"):
        return f"https:{src}"
    if not page_url:
        return src
    parsed = urlparse(page_url)
    if not parsed.scheme or not parsed.netloc:
        return src
    return urljoin(f"{parsed.scheme}://{parsed.netloc}/", src)


def unique(values: Iterable[str]) -> List[str]:
    seen: List[str] = []
    for value in values:
        if value and value not in seen:
            seen.append(value)
    return seen
