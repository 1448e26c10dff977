# shopwhiz/filters/relevance_ranker.py

"""Relevance scoring and ordering of deduplicated drafts."""

import logging
import math

from shopwhiz.filters.query_intent import QueryIntent, normalise_text
from shopwhiz.models.product import DraftRecord

logger = logging.getLogger("shopwhiz.filters")

_REVIEW_SCORE_CAP = 10.0


class RelevanceRanker:
    """Order drafts by term overlap, rating and review volume."""

    @staticmethod
    def score(draft: DraftRecord, terms: list[str]) -> float:
        """Compute the relevance score of one draft.

        score = sum(len(term) for matched terms)
                + rating * 10
                + min(ln(1 + review_count), 10)
        """
        title = normalise_text(draft.title)
        overlap = sum(len(t) for t in terms if t and t in title)
        review_volume = min(
            math.log1p(max(draft.review_count, 0)),
            _REVIEW_SCORE_CAP,
        )
        return overlap + draft.rating * 10 + review_volume

    @staticmethod
    def rank(
        drafts: list[DraftRecord],
        intent: QueryIntent,
        max_results: int,
    ) -> list[DraftRecord]:
        """Sort descending by score and truncate to *max_results*.

        ``sorted`` is stable, so equal scores keep their input order.
        """
        if max_results <= 0 or not drafts:
            return []
        terms = [normalise_text(t) for t in intent.ranking_terms]
        ranked = sorted(
            drafts,
            key=lambda d: RelevanceRanker.score(d, terms),
            reverse=True,
        )
        logger.debug(
            "Ranked %d drafts for terms %s, keeping %d",
            len(drafts),
            terms,
            min(max_results, len(ranked)),
        )
        return ranked[:max_results]
