# shopwhiz/filters/product_validator.py

"""Draft validation: drop drafts missing essential fields before ranking."""

import logging

from shopwhiz.models.product import DraftRecord

logger = logging.getLogger("shopwhiz.filters")


class ProductValidator:
    """Validate drafts and drop those with missing essential fields."""

    @staticmethod
    def validate(
        drafts: list[DraftRecord],
    ) -> tuple[list[DraftRecord], int]:
        """Drop drafts with empty/whitespace titles or non-positive prices.

        Returns the valid drafts and the count of dropped items.
        """
        valid: list[DraftRecord] = []
        dropped = 0

        for draft in drafts:
            if not draft.title.strip():
                logger.debug(
                    "Dropped draft with empty title "
                    "(source=%s, url=%s)",
                    draft.source,
                    draft.url,
                )
                dropped += 1
                continue
            if draft.price <= 0:
                logger.debug(
                    "Dropped draft with zero/negative "
                    "price (title=%s, source=%s)",
                    draft.title,
                    draft.source,
                )
                dropped += 1
                continue
            valid.append(draft)

        if dropped:
            logger.info(
                "Validation dropped %d invalid drafts",
                dropped,
            )

        return valid, dropped
