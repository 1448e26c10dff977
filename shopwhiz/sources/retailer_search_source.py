# shopwhiz/sources/retailer_search_source.py

"""Lightweight search against one retailer's public search page."""

import json
from typing import Any
from urllib.parse import quote_plus

from bs4 import BeautifulSoup, Tag

from shopwhiz.filters.query_intent import QueryIntent
from shopwhiz.models.product import DraftRecord, Source
from shopwhiz.sources.base_source import BaseSource


class RetailerSearchSource(BaseSource):
    """Web-search adapter (channel B) for a single retailer.

    One instance per entry of ``Settings.LIGHTWEIGHT_RETAILERS`` so
    each retailer fails independently.  Embedded JSON-LD listings
    are preferred; CSS product cards are the fallback.
    """

    source_tag = Source.WEB_SEARCH

    def __init__(self, retailer: dict[str, str]) -> None:
        super().__init__(retailer["id"])
        self.retailer = retailer
        self.label: str = retailer.get("label", retailer["id"])
        self.selectors: dict[str, list[str]] = self._load_selectors()

    def _load_selectors(self) -> dict[str, list[str]]:
        """Load candidate CSS selectors for this retailer."""
        with open(
            self.settings.SELECTORS_PATH, encoding="utf-8"
        ) as f:
            all_selectors: dict[str, Any] = json.load(f)
        raw: dict[str, Any] = all_selectors.get(self.source_name, {})
        return {
            key: value if isinstance(value, list) else [value]
            for key, value in raw.items()
        }

    def _get_homepage(self) -> str:
        return self.retailer["homepage"]

    def _search_url(self, query: str) -> str:
        return self.retailer["search_url"].format(
            query=quote_plus(query)
        )

    # ── JSON-LD listings ─────────────────────────────────

    def _draft_from_json_ld(
        self, node: dict[str, Any],
    ) -> DraftRecord | None:
        """Convert a schema.org ``Product`` node into a draft."""
        title = str(node.get("name") or "").strip()
        offers: Any = node.get("offers") or {}
        if isinstance(offers, list):
            offers = offers[0] if offers else {}
        price = 0.0
        if isinstance(offers, dict):
            price = self.extract_price(
                offers.get("price") or offers.get("lowPrice")
            )
        if not title or price <= 0:
            return None

        image: Any = node.get("image") or ""
        if isinstance(image, list):
            image = image[0] if image else ""
        if isinstance(image, dict):
            image = image.get("url", "")

        rating_node: Any = node.get("aggregateRating") or {}
        brand: Any = node.get("brand") or ""
        if isinstance(brand, dict):
            brand = brand.get("name", "")

        homepage = self._get_homepage()
        return DraftRecord(
            title=title,
            price=price,
            source=self.source_tag,
            url=self.absolute_url(str(node.get("url") or ""), homepage),
            image=self.absolute_url(str(image), homepage),
            rating=self.parse_rating(
                rating_node.get("ratingValue")
                if isinstance(rating_node, dict)
                else None
            ),
            review_count=self.parse_review_count(
                (rating_node.get("reviewCount")
                 or rating_node.get("ratingCount"))
                if isinstance(rating_node, dict)
                else None
            ),
            brand=str(brand) or self.extract_brand(title),
            seller=self.label,
            description=str(node.get("description") or ""),
        )

    def _parse_json_ld(self, soup: BeautifulSoup) -> list[DraftRecord]:
        """Read ``ItemList`` entries and standalone ``Product`` nodes."""
        drafts: list[DraftRecord] = []
        for block in self.json_ld_blocks(soup):
            nodes: list[dict[str, Any]] = []
            if self.has_type(block, "ItemList"):
                for element in block.get("itemListElement") or []:
                    if not isinstance(element, dict):
                        continue
                    item = element.get("item")
                    nodes.append(item if isinstance(item, dict) else element)
            elif self.has_type(block, "Product"):
                nodes.append(block)

            for node in nodes:
                draft = self._draft_from_json_ld(node)
                if draft is not None:
                    drafts.append(draft)
        return drafts

    # ── CSS product cards ────────────────────────────────

    def _text(self, card: Tag, field_name: str) -> str:
        element = self.select_first(
            card, self.selectors.get(field_name, [])
        )
        if element is None:
            return ""
        title_attr = element.get("title")
        if isinstance(title_attr, str) and title_attr.strip():
            return title_attr.strip()
        return element.get_text(" ", strip=True)

    def _parse_card(self, card: Tag) -> DraftRecord | None:
        """Parse a single product card into a draft."""
        title = self._text(card, "title")
        brand = self._text(card, "brand")
        if brand and not title.lower().startswith(brand.lower()):
            title = f"{brand} {title}".strip()
        price = self.extract_price(self._text(card, "price"))
        if not title or price <= 0:
            return None

        original = self.extract_price(
            self._text(card, "original_price")
        )
        homepage = self._get_homepage()
        url_el = self.select_first(card, self.selectors.get("url", []))
        if url_el is None and card.name == "a":
            url_el = card
        href = str(url_el.get("href") or "") if url_el else ""
        img_el = self.select_first(
            card, self.selectors.get("image", [])
        )
        image = ""
        if img_el is not None:
            image = str(
                img_el.get("src") or img_el.get("data-src") or ""
            )

        return DraftRecord(
            title=title,
            price=price,
            source=self.source_tag,
            url=self.absolute_url(href, homepage),
            original_price=original if original > price else None,
            image=self.absolute_url(image, homepage),
            rating=self.parse_rating(self._text(card, "rating")),
            review_count=self.parse_review_count(
                self._text(card, "review_count")
            ),
            brand=brand or self.extract_brand(title),
            seller=self.label,
        )

    def _parse_cards(self, soup: BeautifulSoup) -> list[DraftRecord]:
        cards: list[Tag] = []
        for selector in self.selectors.get("product_card", []):
            cards = soup.select(selector)
            if cards:
                break
        drafts: list[DraftRecord] = []
        for card in cards:
            draft = self._parse_card(card)
            if draft is not None:
                drafts.append(draft)
        return drafts

    def fetch(
        self, query: str, constraints: QueryIntent,
    ) -> list[DraftRecord]:
        """Search this retailer for products matching the query."""
        try:
            url = self._search_url(query)
            self.logger.info(
                "[%s] Fetching search page for '%s'",
                self.source_name,
                query,
            )
            soup = self._get_page(url)
            if not soup:
                self.logger.warning(
                    "[%s] Search page unavailable", self.source_name
                )
                return []

            drafts = self._parse_json_ld(soup)
            if not drafts:
                drafts = self._parse_cards(soup)

            cap = self.settings.MAX_RESULTS_PER_SOURCE
            self.logger.info(
                "[%s] %d drafts parsed", self.source_name, len(drafts)
            )
            return drafts[:cap]
        except Exception as e:
            self.logger.warning(
                "[%s] Search failed: %s",
                self.source_name,
                e,
                exc_info=True,
            )
            return []
