# shopwhiz/models/payloads.py

"""Strict schemas for JSON produced by the generative providers.

Generated output is never merged as-is: it is decoded, validated
against these models, and only then converted into domain objects.
Anything that fails validation is treated as missing.
"""

import math
import re
from typing import Any, Literal

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    field_validator,
    model_validator,
)

_VIDEO_ID_RE = re.compile(r"^[A-Za-z0-9_-]{11}$")

Sentiment = Literal["positive", "neutral", "negative"]


def _clamp(value: float, low: float, high: float) -> float:
    return max(low, min(high, value))


def _number(value: Any) -> float:
    # Non-numeric shapes must surface as ValueError so pydantic reports them
    if isinstance(value, bool) or not isinstance(value, (int, float, str)):
        raise ValueError(f"expected a number, got {type(value).__name__}")
    number = float(value)
    if not math.isfinite(number):
        raise ValueError("expected a finite number")
    return number


def _string_list(value: Any) -> list[str]:
    if value is None:
        return []
    if isinstance(value, str):
        return [value] if value.strip() else []
    if not isinstance(value, list):
        raise ValueError("expected a list of strings")
    return [str(v).strip() for v in value if str(v).strip()]


class _Payload(BaseModel):
    model_config = ConfigDict(
        populate_by_name=True, extra="ignore"
    )


class ReviewPayload(_Payload):
    """One generated sample review."""

    rating: float = 5.0
    text: str = Field(min_length=1)
    reviewer: str = "Verified buyer"
    date: str = ""

    @field_validator("rating")
    @classmethod
    def _rating_range(cls, v: float) -> float:
        return _clamp(v, 1.0, 5.0)


class _NarrativeFields(_Payload):
    """Narrative fields shared by enrichment and synthetic listings."""

    features: list[str] = Field(default_factory=list)
    pros: list[str] = Field(default_factory=list)
    cons: list[str] = Field(default_factory=list)
    sentiment: Sentiment | None = None
    sentiment_score: int | None = Field(
        default=None, alias="sentimentScore"
    )
    specifications: dict[str, str] = Field(default_factory=dict)
    review_summary: str | None = Field(
        default=None, alias="reviewSummary"
    )
    sample_reviews: list[ReviewPayload] = Field(
        default_factory=list, alias="sampleReviews"
    )
    video_id: str | None = Field(
        default=None, alias="youtubeVideoId"
    )

    @field_validator("features", "pros", "cons", mode="before")
    @classmethod
    def _lists(cls, v: Any) -> list[str]:
        return _string_list(v)

    @field_validator("sentiment", mode="before")
    @classmethod
    def _sentiment_lower(cls, v: Any) -> Any:
        if not isinstance(v, str):
            return None
        lowered = v.strip().lower()
        if lowered not in ("positive", "neutral", "negative"):
            return None
        return lowered

    @field_validator("sentiment_score", mode="before")
    @classmethod
    def _score_range(cls, v: Any) -> int | None:
        if v is None:
            return None
        score = _number(v)
        # Some models answer on a 0-1 scale
        if 0 < score <= 1:
            score *= 100
        return int(round(_clamp(score, 0, 100)))

    @field_validator("specifications", mode="before")
    @classmethod
    def _spec_strings(cls, v: Any) -> dict[str, str]:
        if v is None:
            return {}
        if not isinstance(v, dict):
            raise ValueError("specifications must be an object")
        return {
            str(k): str(val)
            for k, val in v.items()
            if val is not None and str(val).strip()
        }

    @field_validator("video_id", mode="before")
    @classmethod
    def _video_shape(cls, v: Any) -> str | None:
        if not isinstance(v, str) or not _VIDEO_ID_RE.match(v):
            return None
        return v


class EnrichmentItem(_NarrativeFields):
    """Narrative augmentation for the draft at ``index``."""

    index: int = Field(ge=0)
    category: str | None = None


class EnrichmentEnvelope(_Payload):
    """Batch envelope; items are validated one by one later."""

    products: list[dict[str, Any]]

    @model_validator(mode="before")
    @classmethod
    def _accept_bare_list(cls, data: Any) -> Any:
        if isinstance(data, list):
            return {"products": data}
        return data


class SyntheticListing(_NarrativeFields):
    """One fully generated listing."""

    name: str = Field(min_length=1)
    price: float = Field(gt=0)
    brand: str = "Unknown"
    original_price: float | None = Field(
        default=None, alias="originalPrice"
    )
    category: str = "product"
    description: str = ""
    rating: float = 4.0
    review_count: int = Field(default=100, alias="reviewCount")
    in_stock: bool = Field(default=True, alias="inStock")
    availability: str = "In Stock"

    @field_validator("name", "brand", "category", mode="before")
    @classmethod
    def _strip(cls, v: Any) -> Any:
        return v.strip() if isinstance(v, str) else v

    @field_validator("rating", mode="before")
    @classmethod
    def _rating_range(cls, v: Any) -> float:
        if v is None:
            return 4.0
        return _clamp(_number(v), 0.0, 5.0)

    @field_validator("review_count", mode="before")
    @classmethod
    def _non_negative(cls, v: Any) -> int:
        if v is None:
            return 100
        return max(0, int(_number(v)))

    @field_validator("original_price", mode="before")
    @classmethod
    def _positive_or_none(cls, v: Any) -> float | None:
        if v in (None, ""):
            return None
        value = _number(v)
        return value if value > 0 else None


class SyntheticCatalog(_Payload):
    """Envelope for synthetic listings (bare list or keyed object)."""

    listings: list[dict[str, Any]]

    @model_validator(mode="before")
    @classmethod
    def _normalise(cls, data: Any) -> Any:
        if isinstance(data, list):
            return {"listings": data}
        if isinstance(data, dict) and "listings" not in data:
            for key in ("products", "items", "results"):
                if isinstance(data.get(key), list):
                    return {"listings": data[key]}
        return data
