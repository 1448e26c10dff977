# shopwhiz/models/product.py

"""Product data models for inter-module data flow."""

import hashlib
from dataclasses import dataclass, field
from typing import Any


class Source:
    """Provenance tags, in adapter priority order."""

    GOOGLE_SHOPPING = "google_shopping"
    WEB_SEARCH = "web_search"
    DIRECT_URL = "direct-url"
    SYNTHETIC = "synthetic"

    REAL: tuple[str, ...] = (
        GOOGLE_SHOPPING,
        WEB_SEARCH,
        DIRECT_URL,
    )


class DataSource:
    """Aggregate provenance classification of a response."""

    REAL_TIME = "real_time"
    MIXED = "mixed"
    AI_GENERATED = "ai_generated"


@dataclass
class SampleReview:
    """A single short customer review attached to a product."""

    rating: float
    text: str
    reviewer: str = "Verified buyer"
    date: str = ""

    def to_dict(self) -> dict[str, Any]:
        return {
            "rating": self.rating,
            "text": self.text,
            "reviewer": self.reviewer,
            "date": self.date,
        }


@dataclass
class DraftRecord:
    """Partial, source-specific listing produced by one adapter."""

    title: str
    price: float
    source: str
    url: str = ""
    original_price: float | None = None
    currency: str = "INR"
    image: str = ""
    rating: float = 0.0
    review_count: int = 0
    brand: str = ""
    availability: str = "In Stock"
    seller: str = ""
    shipping: str = ""
    description: str = ""
    specifications: dict[str, str] = field(
        default_factory=lambda: dict[str, str]()
    )
    sample_reviews: list[SampleReview] = field(
        default_factory=lambda: list[SampleReview]()
    )

    @property
    def is_complete(self) -> bool:
        """True when the essential fields (title, price) are usable."""
        return bool(self.title.strip()) and self.price > 0


@dataclass
class CanonicalProduct:
    """Fully shaped, provenance-tagged product returned to callers."""

    id: str
    name: str
    price: float
    image: str
    rating: float
    review_count: int
    brand: str
    category: str
    source: str
    original_price: float | None = None
    features: list[str] = field(
        default_factory=lambda: list[str]()
    )
    pros: list[str] = field(default_factory=lambda: list[str]())
    cons: list[str] = field(default_factory=lambda: list[str]())
    sentiment: str = "neutral"
    sentiment_score: int = 50
    description: str = ""
    in_stock: bool = True
    availability: str = "In Stock"
    specifications: dict[str, str] = field(
        default_factory=lambda: dict[str, str]()
    )
    video_id: str | None = None
    review_summary: str = ""
    sample_reviews: list[SampleReview] = field(
        default_factory=lambda: list[SampleReview]()
    )
    product_url: str | None = None
    seller: str | None = None
    shipping: str | None = None

    @property
    def is_synthetic(self) -> bool:
        return self.source == Source.SYNTHETIC

    def to_dict(self) -> dict[str, Any]:
        """Serialise with the camelCase keys used on the wire."""
        return {
            "id": self.id,
            "name": self.name,
            "price": self.price,
            "originalPrice": self.original_price,
            "image": self.image,
            "rating": self.rating,
            "reviewCount": self.review_count,
            "brand": self.brand,
            "category": self.category,
            "features": list(self.features),
            "pros": list(self.pros),
            "cons": list(self.cons),
            "sentiment": self.sentiment,
            "sentimentScore": self.sentiment_score,
            "description": self.description,
            "inStock": self.in_stock,
            "availability": self.availability,
            "specifications": dict(self.specifications),
            "youtubeVideoId": self.video_id,
            "reviewSummary": self.review_summary,
            "sampleReviews": [
                r.to_dict() for r in self.sample_reviews
            ],
            "source": self.source,
            "productUrl": self.product_url,
            "seller": self.seller,
            "shipping": self.shipping,
        }

    def persistence_view(self) -> dict[str, Any]:
        """Fields consumed by the cart/wishlist/orders store."""
        return {
            "id": self.id,
            "name": self.name,
            "brand": self.brand,
            "image": self.image,
            "price": self.price,
            "originalPrice": self.original_price,
            "category": self.category,
            "rating": self.rating,
            "inStock": self.in_stock,
            "source": self.source,
        }

    def analytics_view(self) -> dict[str, Any]:
        """Fields consumed by event tracking per displayed record."""
        return {
            "id": self.id,
            "name": self.name,
            "brand": self.brand,
            "category": self.category,
            "price": self.price,
            "source": self.source,
        }


def classify_data_source(
    products: list[CanonicalProduct],
    empty_default: str = DataSource.REAL_TIME,
) -> str:
    """Classify a result list as real_time, mixed or ai_generated.

    An empty list has no provenance of its own, so the caller
    passes the classification of the path it attempted.
    """
    if not products:
        return empty_default
    synthetic = sum(1 for p in products if p.is_synthetic)
    if synthetic == len(products):
        return DataSource.AI_GENERATED
    if synthetic == 0:
        return DataSource.REAL_TIME
    return DataSource.MIXED


def make_product_id(source: str, *parts: object) -> str:
    """Namespaced stable id: ``"<source>:<sha256 prefix>"``."""
    digest = hashlib.sha256(
        "|".join(str(p) for p in parts).encode("utf-8")
    ).hexdigest()
    return f"{source}:{digest[:12]}"
