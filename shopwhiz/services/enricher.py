# shopwhiz/services/enricher.py

"""Turn ranked drafts into canonical products with narrative content.

Ground-truth fields (name, price, rating, review count, availability
and product URL) always come from the draft.  Generated content only
fills narrative fields, and a draft is never dropped because
generation failed: heuristic defaults take over instead.
"""

import asyncio
import dataclasses
import hashlib
import json
import logging

from pydantic import ValidationError

from shopwhiz.config.settings import Settings
from shopwhiz.errors import ProviderError
from shopwhiz.filters.query_intent import category_from_text
from shopwhiz.models.payloads import EnrichmentEnvelope, EnrichmentItem
from shopwhiz.models.product import (
    CanonicalProduct,
    DraftRecord,
    SampleReview,
    Source,
    make_product_id,
)
from shopwhiz.providers.broker import ProviderBroker
from shopwhiz.sources.direct_url_source import DirectUrlSource

logger = logging.getLogger("shopwhiz.enricher")

_PEXELS = (
    "https://images.pexels.com/photos/{id}/pexels-photo-{id}.jpeg"
    "?auto=compress&cs=tinysrgb&w=800"
)

CATEGORY_IMAGES: dict[str, list[str]] = {
    category: [_PEXELS.format(id=photo) for photo in photos]
    for category, photos in {
        "smartphone": ["699122", "1092644", "47261", "1440727"],
        "laptop": ["205421", "18105", "574071", "1229861"],
        "headphones": ["3394650", "1649771", "3394651", "1649772"],
        "smartwatch": ["437037", "393047", "1697214"],
        "monitor": ["356056", "1714208", "2047905", "1029757"],
        "clothing": ["996329", "1040945", "1927259", "1040946"],
        "shoes": ["2529148", "1598505", "2529149", "1598506"],
        "product": ["356056", "1334597", "90946"],
    }.items()
}

_OUT_OF_STOCK = frozenset({"out of stock", "sold out", "discontinued"})

_GENERIC_PROS = ["Good quality", "Value for money"]
_GENERIC_CONS = ["Limited availability"]


def fallback_image(category: str, name: str) -> str:
    """Pick a category image deterministically from the product name."""
    images = CATEGORY_IMAGES.get(category) or CATEGORY_IMAGES["product"]
    digest = hashlib.sha256(name.encode("utf-8")).digest()
    return images[int.from_bytes(digest[:4], "big") % len(images)]


def heuristic_sentiment(rating: float) -> tuple[str, int]:
    """Sentiment label and 0-100 score derived from a 0-5 rating."""
    if rating >= 4.0:
        label = "positive"
    elif rating >= 3.0:
        label = "neutral"
    else:
        label = "negative"
    score = round(max(0.0, min(5.0, rating)) / 5 * 100)
    return label, score


def _review_summary(sentiment: str) -> str:
    return {
        "positive": "Buyers are largely positive about this product.",
        "neutral": "Buyer feedback on this product is mixed.",
        "negative": "Buyers report noticeable issues with this product.",
    }[sentiment]


class Enricher:
    """Hydrate, enrich and shape drafts into :class:`CanonicalProduct`."""

    def __init__(
        self,
        broker: ProviderBroker,
        detail_source: DirectUrlSource | None = None,
        detail_concurrency: int = Settings.DETAIL_CONCURRENCY,
        detail_timeout: float = Settings.DETAIL_TIMEOUT,
    ) -> None:
        self.broker = broker
        self.detail_source = detail_source
        self.detail_concurrency = max(1, detail_concurrency)
        self.detail_timeout = detail_timeout

    # ── Detail hydration ─────────────────────────────────

    @staticmethod
    def _needs_detail(draft: DraftRecord) -> bool:
        return (
            draft.source == Source.WEB_SEARCH
            and bool(draft.url)
            and not (
                draft.specifications and draft.image and draft.description
            )
        )

    @staticmethod
    def _merge_detail(
        draft: DraftRecord, detail: DraftRecord,
    ) -> DraftRecord:
        """Fill narrative gaps only; listing facts stay untouched."""
        brand = draft.brand
        if (not brand or brand == "Unknown") and detail.brand:
            brand = detail.brand
        return dataclasses.replace(
            draft,
            image=draft.image or detail.image,
            description=draft.description or detail.description,
            specifications={
                **detail.specifications, **draft.specifications
            },
            sample_reviews=(
                draft.sample_reviews or detail.sample_reviews
            ),
            brand=brand,
        )

    async def _hydrate_one(
        self, draft: DraftRecord, gate: asyncio.Semaphore,
    ) -> DraftRecord:
        detail_source = self.detail_source
        if detail_source is None:
            return draft
        async with gate:
            try:
                detail = await asyncio.wait_for(
                    asyncio.to_thread(
                        detail_source.fetch_detail, draft.url
                    ),
                    timeout=self.detail_timeout,
                )
            except Exception as exc:
                logger.warning(
                    "Detail lookup failed for %s: %s",
                    draft.url,
                    exc or type(exc).__name__,
                )
                return draft
        if detail is None:
            return draft
        return self._merge_detail(draft, detail)

    async def hydrate(self, drafts: list[DraftRecord]) -> list[DraftRecord]:
        """Bounded parallel detail lookups for thin web-search drafts."""
        if self.detail_source is None:
            return drafts
        targets = [i for i, d in enumerate(drafts) if self._needs_detail(d)]
        if not targets:
            return drafts

        gate = asyncio.Semaphore(self.detail_concurrency)
        hydrated = await asyncio.gather(
            *(self._hydrate_one(drafts[i], gate) for i in targets)
        )
        result = list(drafts)
        for i, draft in zip(targets, hydrated):
            result[i] = draft
        logger.info("Hydrated %d web-search drafts", len(targets))
        return result

    # ── Generated narrative ──────────────────────────────

    @staticmethod
    def build_prompt(drafts: list[DraftRecord], query: str) -> str:
        listing = "\n".join(
            f"{i}. {d.title}\n"
            f"   - Price: ₹{d.price:,.0f}\n"
            f"   - Rating: {d.rating}/5 ({d.review_count} reviews)\n"
            f"   - Brand: {d.brand or 'Unknown'}\n"
            f"   - Source: {d.seller or d.source}"
            for i, d in enumerate(drafts)
        )
        example = json.dumps(
            {
                "products": [{
                    "index": 0,
                    "category": "smartphone",
                    "features": ["feature1", "feature2", "feature3"],
                    "pros": ["pro1", "pro2", "pro3"],
                    "cons": ["con1", "con2"],
                    "sentiment": "positive",
                    "sentimentScore": 75,
                    "reviewSummary": "Brief summary of user reviews",
                    "specifications": {"key1": "value1"},
                    "sampleReviews": [{
                        "rating": 5,
                        "text": "Works perfectly.",
                        "reviewer": "Rajesh K.",
                        "date": "2024-01-15",
                    }],
                    "youtubeVideoId": "dQw4w9WgXcQ",
                }]
            },
            indent=2,
        )
        return (
            "Enhance these real product listings for the shopping "
            f'query "{query}".\n\nListings (index. title):\n{listing}\n\n'
            "For each listing return one entry keyed by its index, in "
            f"this JSON format:\n{example}\n\n"
            "Do not restate prices, ratings or names. Sentiment should "
            "follow the rating. Include 2-3 sample reviews per product. "
            "Return only valid JSON."
        )

    async def _request_items(
        self, drafts: list[DraftRecord], query: str,
    ) -> dict[int, EnrichmentItem]:
        """One batched request; items are validated one at a time."""
        try:
            envelope: EnrichmentEnvelope = await self.broker.generate_json(
                self.build_prompt(drafts, query), EnrichmentEnvelope
            )
        except ProviderError as exc:
            logger.warning(
                "Enrichment unavailable, using heuristics: %s", exc
            )
            return {}

        items: dict[int, EnrichmentItem] = {}
        rejected = 0
        for raw in envelope.products:
            try:
                item = EnrichmentItem.model_validate(raw)
            except ValidationError:
                rejected += 1
                continue
            if item.index < len(drafts) and item.index not in items:
                items[item.index] = item
        if rejected:
            logger.info("Rejected %d invalid enrichment items", rejected)
        return items

    # ── Shaping ──────────────────────────────────────────

    @staticmethod
    def to_canonical(
        draft: DraftRecord,
        item: EnrichmentItem | None,
        query: str = "",
    ) -> CanonicalProduct:
        """Merge one draft with its (possibly missing) enrichment."""
        rating = max(0.0, min(5.0, draft.rating))
        category = (
            (item.category.strip().lower() if item and item.category else "")
            or category_from_text(draft.title)
            or category_from_text(query)
            or "product"
        )
        sentiment, score = heuristic_sentiment(rating)
        if item is not None:
            sentiment = item.sentiment or sentiment
            if item.sentiment_score is not None:
                score = item.sentiment_score

        generated_reviews = (
            [
                SampleReview(
                    rating=r.rating,
                    text=r.text,
                    reviewer=r.reviewer,
                    date=r.date,
                )
                for r in item.sample_reviews
            ]
            if item is not None
            else []
        )
        specifications = {
            **(item.specifications if item is not None else {}),
            **draft.specifications,
        }

        return CanonicalProduct(
            id=make_product_id(
                draft.source, draft.url or draft.title, draft.price
            ),
            name=draft.title,
            price=draft.price,
            original_price=draft.original_price,
            image=draft.image or fallback_image(category, draft.title),
            rating=rating,
            review_count=max(0, draft.review_count),
            brand=draft.brand or "Unknown",
            category=category,
            features=list(item.features) if item is not None else [],
            pros=(item.pros if item and item.pros else list(_GENERIC_PROS)),
            cons=(item.cons if item and item.cons else list(_GENERIC_CONS)),
            sentiment=sentiment,
            sentiment_score=score,
            description=draft.description or draft.title,
            in_stock=draft.availability.strip().lower() not in _OUT_OF_STOCK,
            availability=draft.availability,
            specifications=specifications,
            video_id=item.video_id if item is not None else None,
            review_summary=(
                (item.review_summary if item is not None else None)
                or _review_summary(sentiment)
            ),
            sample_reviews=list(draft.sample_reviews) or generated_reviews,
            source=draft.source,
            product_url=draft.url or None,
            seller=draft.seller or None,
            shipping=draft.shipping or None,
        )

    async def enrich(
        self, drafts: list[DraftRecord], query: str,
    ) -> list[CanonicalProduct]:
        """Enrich *drafts* in order; output length equals input length."""
        if not drafts:
            return []
        drafts = await self.hydrate(drafts)
        items = await self._request_items(drafts, query)
        missing = len(drafts) - len(items)
        if items and missing:
            logger.info(
                "%d drafts had no usable enrichment, using heuristics",
                missing,
            )
        return [
            self.to_canonical(draft, items.get(i), query)
            for i, draft in enumerate(drafts)
        ]
