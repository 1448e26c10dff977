# shopwhiz/sources/serp_api_source.py

"""Structured Google Shopping results via the SerpApi JSON endpoint."""

import json
from typing import Any

from shopwhiz.filters.query_intent import QueryIntent
from shopwhiz.models.product import DraftRecord, Source
from shopwhiz.sources.base_source import BaseSource


class SerpApiSource(BaseSource):
    """Paid structured shopping API (channel A).

    SerpApi returns Google Shopping results as JSON, so no HTML
    heuristics are needed; only field-level fallbacks between the
    raw and the pre-extracted price/rating keys.
    """

    source_tag = Source.GOOGLE_SHOPPING

    def __init__(self, api_key: str) -> None:
        super().__init__("google_shopping")
        self._api_key = api_key

    def _get_homepage(self) -> str:
        """Return the SerpApi homepage URL."""
        return "https://serpapi.com/"

    def _build_params(
        self, query: str, constraints: QueryIntent,
    ) -> dict[str, str]:
        """Build request parameters, passing price bounds upstream."""
        params: dict[str, str] = {
            "engine": "google_shopping",
            "q": query,
            "api_key": self._api_key,
            "gl": self.settings.SERP_COUNTRY,
            "hl": "en",
            "num": str(self.settings.MAX_RESULTS_PER_SOURCE),
        }
        tbs: list[str] = []
        if constraints.min_price is not None:
            tbs.append(f"ppr_min:{int(constraints.min_price)}")
        if constraints.max_price is not None:
            tbs.append(f"ppr_max:{int(constraints.max_price)}")
        if tbs:
            params["tbs"] = "mr:1,price:1," + ",".join(tbs)
        return params

    def _parse_result(
        self, result: dict[str, Any],
    ) -> DraftRecord | None:
        """Convert one ``shopping_results`` entry into a draft."""
        title = str(result.get("title") or "").strip()
        price = self.extract_price(
            result.get("extracted_price") or result.get("price")
        )
        if not title or price <= 0:
            return None

        original = self.extract_price(
            result.get("extracted_old_price")
            or result.get("old_price")
        )
        url = str(
            result.get("product_link")
            or result.get("link")
            or ""
        )
        delivery = result.get("delivery")
        return DraftRecord(
            title=title,
            price=price,
            source=self.source_tag,
            url=url,
            original_price=original if original > price else None,
            image=str(result.get("thumbnail") or ""),
            rating=self.parse_rating(result.get("rating")),
            review_count=self.parse_review_count(
                result.get("reviews")
            ),
            brand=self.extract_brand(title),
            availability="In Stock",
            seller=str(result.get("source") or "Google Shopping"),
            shipping=str(delivery) if delivery else "",
            description=str(
                result.get("snippet") or result.get("description") or ""
            ),
        )

    def fetch(
        self, query: str, constraints: QueryIntent,
    ) -> list[DraftRecord]:
        """Search Google Shopping through SerpApi."""
        if not self._api_key:
            self.logger.warning(
                "[google_shopping] API key not configured"
            )
            return []
        try:
            resp = self._fetch_get(
                self.settings.SERP_API_URL,
                {"Accept": "application/json"},
                params=self._build_params(query, constraints),
            )
            if resp is None:
                self.logger.warning(
                    "[google_shopping] No response for '%s'", query
                )
                return []

            data: dict[str, Any] = json.loads(resp.text)
            if data.get("error"):
                self.logger.warning(
                    "[google_shopping] API error: %s",
                    data["error"],
                )
                return []

            results: list[dict[str, Any]] = (
                data.get("shopping_results") or []
            )
            drafts: list[DraftRecord] = []
            for result in results:
                draft = self._parse_result(result)
                if draft is not None:
                    drafts.append(draft)
                if len(drafts) >= self.settings.MAX_RESULTS_PER_SOURCE:
                    break

            self.logger.info(
                "[google_shopping] %d drafts from %d results",
                len(drafts),
                len(results),
            )
            return drafts
        except Exception as exc:
            self.logger.warning(
                "[google_shopping] Search failed: %s",
                exc,
                exc_info=True,
            )
            return []
