# shopwhiz/filters/query_intent.py

"""Heuristic query classification: brand, category and price hints.

The resulting :class:`QueryIntent` only steers ranking weights and
fallback query text; it never decides correctness of a result.
"""

import logging
import re
from dataclasses import dataclass, field
from urllib.parse import unquote, urlparse

logger = logging.getLogger("shopwhiz.filters")

KNOWN_BRANDS: list[str] = [
    "Apple", "Samsung", "Google", "OnePlus", "Xiaomi", "Realme",
    "Oppo", "Vivo", "Motorola", "Nothing", "Sony", "LG", "Dell",
    "HP", "Lenovo", "Asus", "Acer", "MSI", "Microsoft", "Nike",
    "Adidas", "Puma", "Reebok", "Under Armour", "Canon", "Nikon",
    "Fujifilm", "Panasonic", "Bose", "JBL", "Sennheiser",
    "Audio-Technica", "boAt", "Noise", "Fire-Boltt", "Garmin",
    "Fitbit", "Amazfit", "Philips", "Prestige", "Titan", "Fossil",
]

# Checked in order against word starts; audio keys precede "phone"
CATEGORY_KEYWORDS: list[tuple[str, str]] = [
    ("headphone", "headphones"),
    ("earphone", "headphones"),
    ("earbuds", "headphones"),
    ("airpods", "headphones"),
    ("samsung galaxy", "smartphone"),
    ("iphone", "smartphone"),
    ("smartphone", "smartphone"),
    ("phone", "smartphone"),
    ("mobile", "smartphone"),
    ("macbook", "laptop"),
    ("laptop", "laptop"),
    ("notebook", "laptop"),
    ("smartwatch", "smartwatch"),
    ("watch", "smartwatch"),
    ("tablet", "tablet"),
    ("ipad", "tablet"),
    ("camera", "camera"),
    ("speaker", "speaker"),
    ("monitor", "monitor"),
    ("television", "tv"),
    ("tv", "tv"),
    ("sneaker", "shoes"),
    ("shoe", "shoes"),
    ("shirt", "clothing"),
    ("jeans", "clothing"),
    ("jacket", "clothing"),
    ("dress", "clothing"),
    ("kurta", "clothing"),
    ("bag", "bag"),
    ("backpack", "bag"),
]

_STOPWORDS: frozenset[str] = frozenset({
    "a", "an", "the", "for", "with", "and", "or", "in", "of", "to",
    "on", "best", "good", "buy", "cheap", "top", "new", "latest",
    "price", "prices", "rs", "inr", "me", "show", "find", "i",
    "want", "need", "some", "under", "below", "above", "over",
    "between", "within", "upto", "up", "less", "more", "than",
    "budget", "around", "max", "min", "at", "least",
})

_AMOUNT = r"(?:₹|rs\.?|inr)?\s*(\d[\d,]*(?:\.\d+)?)\s*(k|lakh|lac)?"

_BETWEEN_RE = re.compile(
    rf"(?:between|from)\s+{_AMOUNT}\s*(?:and|to|-)\s*{_AMOUNT}",
    re.IGNORECASE,
)
_RANGE_RE = re.compile(
    rf"{_AMOUNT}\s*(?:-|to)\s*{_AMOUNT}", re.IGNORECASE
)
_MAX_RE = re.compile(
    rf"(?:under|below|less than|upto|up to|within|max|budget(?: of)?)\s+{_AMOUNT}",
    re.IGNORECASE,
)
_MIN_RE = re.compile(
    rf"(?:above|over|more than|at least|min|starting)\s+{_AMOUNT}",
    re.IGNORECASE,
)

_MIN_BARE_RANGE = 100

_URL_RE = re.compile(r"^https?://", re.IGNORECASE)
_ID_TOKEN_RE = re.compile(r"^(?=.*\d)[a-z0-9]{8,}$")
_URL_NOISE: frozenset[str] = frozenset({
    "dp", "p", "product", "products", "item", "buy", "ref", "sku",
    "html", "www", "in", "en",
})


@dataclass
class QueryIntent:
    """Ephemeral, derived view of a shopping query."""

    query_text: str
    terms: list[str] = field(default_factory=lambda: list[str]())
    brand: str | None = None
    category: str | None = None
    min_price: float | None = None
    max_price: float | None = None
    is_specific: bool = False

    @property
    def ranking_terms(self) -> list[str]:
        """Query terms plus brand/category hints, deduplicated."""
        extra = [
            h.lower() for h in (self.brand, self.category) if h
        ]
        seen: set[str] = set()
        ordered: list[str] = []
        for term in [*self.terms, *extra]:
            if term and term not in seen:
                seen.add(term)
                ordered.append(term)
        return ordered


def is_url(query: str) -> bool:
    """True when the query is a direct product URL."""
    return bool(_URL_RE.match(query.strip()))


def normalise_text(text: str) -> str:
    """Lowercase, drop punctuation, collapse whitespace."""
    lowered = text.lower()
    alnum = re.sub(r"[^a-z0-9\s]", " ", lowered)
    return " ".join(alnum.split())


def category_from_text(text: str) -> str | None:
    """Map free text to a coarse category bucket."""
    padded = f" {normalise_text(text)}"
    for keyword, category in CATEGORY_KEYWORDS:
        if f" {keyword}" in padded:
            return category
    return None


def brand_from_text(text: str) -> str | None:
    """Return the first known brand mentioned in the text."""
    padded = f" {normalise_text(text)} "
    for brand in KNOWN_BRANDS:
        if f" {normalise_text(brand)} " in padded:
            return brand
    return None


def query_text_from_url(url: str) -> str:
    """Build fallback search text from a product URL's path slug."""
    parsed = urlparse(url.strip())
    segments = [
        unquote(s) for s in parsed.path.split("/") if s
    ]
    best = ""
    for segment in segments:
        words = [
            w
            for w in re.split(r"[-_+.\s]+", segment.lower())
            if w
            and w not in _URL_NOISE
            and not _ID_TOKEN_RE.match(w)
        ]
        candidate = " ".join(words)
        if len(words) > len(best.split()):
            best = candidate
    if best:
        return best
    host = parsed.hostname or ""
    return host.removeprefix("www.").split(".")[0]


def _to_amount(number: str | None, suffix: str | None) -> float | None:
    if not number:
        return None
    value = float(number.replace(",", ""))
    unit = (suffix or "").lower()
    if unit == "k":
        value *= 1_000
    elif unit in ("lakh", "lac"):
        value *= 100_000
    return value


class QueryIntentClassifier:
    """Derive a :class:`QueryIntent` from raw query text."""

    @staticmethod
    def _price_hints(
        text: str,
    ) -> tuple[float | None, float | None, str]:
        """Extract price bounds and return the text without them."""
        low: float | None = None
        high: float | None = None
        remaining = text

        for pattern in (_BETWEEN_RE, _RANGE_RE):
            match = pattern.search(remaining)
            if not match:
                continue
            a = _to_amount(match.group(1), match.group(2))
            b = _to_amount(match.group(3), match.group(4))
            if a is None or b is None:
                break
            # "size 9 to 10", "8-16gb": sizes and capacities, not prices
            if pattern is _RANGE_RE and max(a, b) < _MIN_BARE_RANGE:
                break
            low, high = min(a, b), max(a, b)
            remaining = remaining.replace(match.group(0), " ")
            break

        match = _MAX_RE.search(remaining)
        if match:
            high = _to_amount(match.group(1), match.group(2))
            remaining = remaining.replace(match.group(0), " ")

        match = _MIN_RE.search(remaining)
        if match:
            low = _to_amount(match.group(1), match.group(2))
            remaining = remaining.replace(match.group(0), " ")

        return low, high, remaining

    @staticmethod
    def classify(
        query: str,
        min_price: float | None = None,
        max_price: float | None = None,
    ) -> QueryIntent:
        """Classify *query*; explicit bounds override parsed hints."""
        text = query.strip()
        if is_url(text):
            text = query_text_from_url(text)

        hint_low, hint_high, remaining = (
            QueryIntentClassifier._price_hints(text)
        )
        terms = [
            t
            for t in normalise_text(remaining).split()
            if t not in _STOPWORDS
        ]
        brand = brand_from_text(remaining)
        category = category_from_text(remaining)

        has_model_token = any(
            any(ch.isdigit() for ch in t) for t in terms
        )
        non_hint_terms = [
            t
            for t in terms
            if not brand or t != normalise_text(brand)
        ]
        is_specific = bool(brand) and (
            has_model_token or len(non_hint_terms) >= 2
        )

        intent = QueryIntent(
            query_text=" ".join(terms) or text,
            terms=terms,
            brand=brand,
            category=category,
            min_price=(
                min_price if min_price is not None else hint_low
            ),
            max_price=(
                max_price if max_price is not None else hint_high
            ),
            is_specific=is_specific,
        )
        logger.debug(
            "Intent for '%s': brand=%s category=%s "
            "price=[%s, %s] specific=%s",
            query,
            intent.brand,
            intent.category,
            intent.min_price,
            intent.max_price,
            intent.is_specific,
        )
        return intent
