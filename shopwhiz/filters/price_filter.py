# shopwhiz/filters/price_filter.py

"""Post-fetch draft filtering by caller price bounds."""

import logging

from shopwhiz.models.product import DraftRecord

logger = logging.getLogger("shopwhiz.filters")


class PriceFilter:
    """Filter drafts that fall outside the requested price range."""

    @staticmethod
    def filter_by_bounds(
        drafts: list[DraftRecord],
        min_price: float | None,
        max_price: float | None,
    ) -> tuple[list[DraftRecord], int]:
        """Remove drafts priced below *min_price* or above *max_price*.

        Either bound may be ``None`` (unbounded). Returns the kept
        drafts and the count of excluded drafts.
        """
        if min_price is None and max_price is None:
            return drafts, 0

        kept: list[DraftRecord] = []
        excluded = 0
        for draft in drafts:
            if min_price is not None and draft.price < min_price:
                excluded += 1
            elif max_price is not None and draft.price > max_price:
                excluded += 1
            else:
                kept.append(draft)

        if excluded:
            logger.info(
                "Filtered out %d drafts outside price range "
                "[%s, %s]",
                excluded,
                min_price,
                max_price,
            )

        return kept, excluded
