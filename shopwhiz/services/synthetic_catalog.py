# shopwhiz/services/synthetic_catalog.py

"""Fully generated catalogue listings for the synthetic search path."""

import json
import logging

from pydantic import ValidationError

from shopwhiz.errors import ProviderError
from shopwhiz.filters.query_intent import category_from_text
from shopwhiz.models.payloads import SyntheticCatalog, SyntheticListing
from shopwhiz.models.product import (
    CanonicalProduct,
    SampleReview,
    Source,
    make_product_id,
)
from shopwhiz.providers.broker import ProviderBroker
from shopwhiz.services.enricher import (
    fallback_image,
    heuristic_sentiment,
)

logger = logging.getLogger("shopwhiz.synthetic")

_LISTING_EXAMPLE = {
    "name": "Exact product name with model/variant",
    "brand": "Brand name",
    "price": 25999,
    "originalPrice": 29999,
    "category": "smartphone",
    "description": "Detailed product description",
    "features": ["feature1", "feature2", "feature3"],
    "pros": ["pro1", "pro2", "pro3"],
    "cons": ["con1", "con2"],
    "rating": 4.3,
    "reviewCount": 1247,
    "sentiment": "positive",
    "sentimentScore": 78,
    "specifications": {"key1": "value1"},
    "reviewSummary": "Summary of user reviews",
    "sampleReviews": [{
        "rating": 5,
        "text": "Excellent product!",
        "reviewer": "Amit S.",
        "date": "2024-01-15",
    }],
    "youtubeVideoId": "dQw4w9WgXcQ",
    "inStock": True,
    "availability": "In Stock",
}


class SyntheticCatalogGenerator:
    """Ask the provider broker for plausible listings matching a query."""

    def __init__(self, broker: ProviderBroker) -> None:
        self.broker = broker

    @staticmethod
    def build_prompt(
        query: str,
        max_results: int,
        min_price: float | None = None,
        max_price: float | None = None,
    ) -> str:
        budget = ""
        if min_price is not None or max_price is not None:
            low = f"₹{min_price:,.0f}" if min_price is not None else "any"
            high = f"₹{max_price:,.0f}" if max_price is not None else "any"
            budget = f"Keep every price between {low} and {high}.\n"
        return (
            f"Generate {max_results} realistic product listings for the "
            f'search query "{query}".\n'
            "Use products that exist in the Indian market with realistic "
            "pricing in INR.\n"
            f"{budget}"
            "Return a JSON array in this exact format:\n"
            f"{json.dumps([_LISTING_EXAMPLE], indent=2)}\n"
            "Return only valid JSON."
        )

    @staticmethod
    def to_canonical(
        listing: SyntheticListing, query: str, index: int,
    ) -> CanonicalProduct:
        category = (
            listing.category.lower()
            if listing.category and listing.category != "product"
            else category_from_text(listing.name)
            or category_from_text(query)
            or "product"
        )
        sentiment, score = heuristic_sentiment(listing.rating)
        original = listing.original_price
        return CanonicalProduct(
            id=make_product_id(Source.SYNTHETIC, query, index, listing.name),
            name=listing.name,
            price=listing.price,
            original_price=(
                original if original and original > listing.price else None
            ),
            image=fallback_image(category, listing.name),
            rating=listing.rating,
            review_count=listing.review_count,
            brand=listing.brand or "Unknown",
            category=category,
            features=listing.features,
            pros=listing.pros,
            cons=listing.cons,
            sentiment=listing.sentiment or sentiment,
            sentiment_score=(
                listing.sentiment_score
                if listing.sentiment_score is not None
                else score
            ),
            description=listing.description or listing.name,
            in_stock=listing.in_stock,
            availability=listing.availability,
            specifications=listing.specifications,
            video_id=listing.video_id,
            review_summary=listing.review_summary or "",
            sample_reviews=[
                SampleReview(
                    rating=r.rating,
                    text=r.text,
                    reviewer=r.reviewer,
                    date=r.date,
                )
                for r in listing.sample_reviews
            ],
            source=Source.SYNTHETIC,
        )

    async def generate(
        self,
        query: str,
        max_results: int,
        min_price: float | None = None,
        max_price: float | None = None,
    ) -> list[CanonicalProduct]:
        """Return up to *max_results* synthetic products, or ``[]``."""
        if max_results <= 0:
            return []
        try:
            catalog: SyntheticCatalog = await self.broker.generate_json(
                self.build_prompt(query, max_results, min_price, max_price),
                SyntheticCatalog,
            )
        except ProviderError as exc:
            logger.warning(
                "Synthetic catalogue unavailable for '%s': %s", query, exc
            )
            return []

        products: list[CanonicalProduct] = []
        skipped = 0
        for raw in catalog.listings:
            try:
                listing = SyntheticListing.model_validate(raw)
            except ValidationError:
                skipped += 1
                continue
            if (min_price is not None and listing.price < min_price) or (
                max_price is not None and listing.price > max_price
            ):
                skipped += 1
                continue
            products.append(self.to_canonical(listing, query, len(products)))
            if len(products) >= max_results:
                break

        if skipped:
            logger.info("Skipped %d invalid synthetic listings", skipped)
        logger.info(
            "Generated %d synthetic products for '%s'", len(products), query
        )
        return products
