# shopwhiz/filters/deduplicator.py

"""Draft deduplication across multiple sources."""

import logging
import math

from shopwhiz.config.settings import Settings
from shopwhiz.filters.query_intent import normalise_text
from shopwhiz.models.product import DraftRecord, Source

logger = logging.getLogger("shopwhiz.filters")


class ProductDeduplicator:
    """Collapse drafts sharing a normalised title and price bucket."""

    @staticmethod
    def price_bucket(price: float) -> int:
        """Map a price to a logarithmic bucket roughly 1% wide."""
        if price <= 0:
            return 0
        return round(
            math.log(price) / math.log(Settings.PRICE_BUCKET_RATIO)
        )

    @staticmethod
    def dedup_key(draft: DraftRecord) -> tuple[str, int]:
        """Normalised title plus price bucket."""
        return (
            normalise_text(draft.title),
            ProductDeduplicator.price_bucket(draft.price),
        )

    @staticmethod
    def _same_price(a: float, b: float) -> bool:
        """Within one bucket ratio of each other."""
        high = max(a, b)
        if high <= 0:
            return a == b
        return abs(a - b) / high <= Settings.PRICE_BUCKET_RATIO - 1

    @staticmethod
    def _find_match(
        draft: DraftRecord,
        seen: dict[tuple[str, int], int],
        kept: list[DraftRecord],
    ) -> int | None:
        """Index of the kept draft *draft* duplicates, if any.

        Neighbouring buckets are checked too, so two prices either side
        of a bucket edge still collapse when they are within 1%.
        """
        title, bucket = ProductDeduplicator.dedup_key(draft)
        for candidate in (bucket, bucket - 1, bucket + 1):
            idx = seen.get((title, candidate))
            if idx is None:
                continue
            incumbent = kept[idx]
            if ProductDeduplicator.price_bucket(
                incumbent.price
            ) == bucket or ProductDeduplicator._same_price(
                incumbent.price, draft.price
            ):
                return idx
        return None

    @staticmethod
    def _prefer(
        candidate: DraftRecord,
        incumbent: DraftRecord,
        priority: dict[str, int],
    ) -> bool:
        """True when *candidate* should replace *incumbent*.

        Higher rating wins, then higher review count, then the
        source that comes earlier in adapter priority order.
        """
        if candidate.rating != incumbent.rating:
            return candidate.rating > incumbent.rating
        if candidate.review_count != incumbent.review_count:
            return candidate.review_count > incumbent.review_count
        fallback = len(priority)
        return priority.get(candidate.source, fallback) < priority.get(
            incumbent.source, fallback
        )

    @staticmethod
    def deduplicate(
        drafts: list[DraftRecord],
        source_priority: list[str] | None = None,
    ) -> tuple[list[DraftRecord], int]:
        """Remove duplicate drafts, keeping the best-rated per key.

        The survivor occupies the slot of the first occurrence so
        relative order is preserved for the ranker.

        Returns the deduplicated list and the count of removed dupes.
        """
        if not drafts:
            return [], 0

        order = source_priority or list(Source.REAL)
        priority = {src: idx for idx, src in enumerate(order)}

        seen: dict[tuple[str, int], int] = {}
        kept: list[DraftRecord] = []
        removed = 0

        for draft in drafts:
            key = ProductDeduplicator.dedup_key(draft)
            existing_idx = ProductDeduplicator._find_match(draft, seen, kept)
            if existing_idx is not None:
                if ProductDeduplicator._prefer(
                    draft, kept[existing_idx], priority
                ):
                    kept[existing_idx] = draft
                    seen[key] = existing_idx
                removed += 1
                continue

            seen[key] = len(kept)
            kept.append(draft)

        if removed:
            logger.info(
                "Deduplication removed %d duplicate drafts",
                removed,
            )

        return kept, removed
