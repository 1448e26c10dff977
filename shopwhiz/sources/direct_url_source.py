# shopwhiz/sources/direct_url_source.py

"""Single product page lookup for direct URLs and detail hydration."""

import re
from typing import Any
from urllib.parse import urlparse

from bs4 import BeautifulSoup

from shopwhiz.filters.query_intent import QueryIntent
from shopwhiz.models.product import DraftRecord, SampleReview, Source
from shopwhiz.sources.base_source import BaseSource

_MAX_SAMPLE_REVIEWS = 3

_AVAILABILITY_LABELS: dict[str, str] = {
    "instock": "In Stock",
    "onlineonly": "In Stock",
    "limitedavailability": "Limited Stock",
    "preorder": "Pre-order",
    "backorder": "Backorder",
    "outofstock": "Out of Stock",
    "soldout": "Out of Stock",
    "discontinued": "Discontinued",
}


def _as_list(value: Any) -> list[Any]:
    if value is None or value == "":
        return []
    return value if isinstance(value, list) else [value]


def _availability_label(raw: Any) -> str:
    """Map a schema.org availability URL to a display label."""
    if not raw:
        return "In Stock"
    token = str(raw).rstrip("/").split("/")[-1]
    return _AVAILABILITY_LABELS.get(
        re.sub(r"[^a-z]", "", token.lower()), token
    )


class DirectUrlSource(BaseSource):
    """Fetch one product page and read its structured data.

    JSON-LD ``Product`` markup is authoritative; OpenGraph tags and
    the document ``<title>`` fill the gaps.
    """

    source_tag = Source.DIRECT_URL

    def __init__(self) -> None:
        super().__init__("direct_url")

    def _get_homepage(self) -> str:
        # No fixed site; each lookup sends its own origin as Referer
        return ""

    @staticmethod
    def _origin(url: str) -> str:
        parsed = urlparse(url)
        return f"{parsed.scheme}://{parsed.netloc}/"

    @staticmethod
    def _meta(soup: BeautifulSoup, *names: str) -> str:
        """First non-empty ``<meta>`` content among property/name keys."""
        for name in names:
            tag = soup.find("meta", attrs={"property": name}) or soup.find(
                "meta", attrs={"name": name}
            )
            if tag is not None:
                content = tag.get("content")
                if isinstance(content, str) and content.strip():
                    return content.strip()
        return ""

    def _pick_product(
        self, blocks: list[dict[str, Any]],
    ) -> dict[str, Any] | None:
        for block in blocks:
            if self.has_type(block, "Product"):
                return block
            item = block.get("item")
            if isinstance(item, dict) and self.has_type(item, "Product"):
                return item
        return None

    def _sample_reviews(
        self, product: dict[str, Any],
    ) -> list[SampleReview]:
        reviews: list[SampleReview] = []
        for raw in _as_list(product.get("review")):
            if not isinstance(raw, dict):
                continue
            text = raw.get("reviewBody") or raw.get("description")
            if not isinstance(text, str) or not text.strip():
                continue
            author: Any = raw.get("author") or ""
            if isinstance(author, dict):
                author = author.get("name", "")
            rating_node: Any = raw.get("reviewRating") or {}
            rating = self.parse_rating(
                rating_node.get("ratingValue")
                if isinstance(rating_node, dict)
                else rating_node
            )
            reviews.append(
                SampleReview(
                    rating=rating,
                    text=text.strip(),
                    reviewer=str(author) or "Verified buyer",
                    date=str(raw.get("datePublished") or ""),
                )
            )
            if len(reviews) >= _MAX_SAMPLE_REVIEWS:
                break
        return reviews

    @staticmethod
    def _specifications(product: dict[str, Any]) -> dict[str, str]:
        specs: dict[str, str] = {}
        for prop in _as_list(product.get("additionalProperty")):
            if not isinstance(prop, dict):
                continue
            name = prop.get("name")
            value = prop.get("value")
            if isinstance(name, str) and name.strip() and value not in (
                None, ""
            ):
                specs[name.strip()] = str(value)
        for key in ("color", "material", "sku", "gtin13"):
            value = product.get(key)
            if isinstance(value, (str, int)) and str(value).strip():
                specs.setdefault(key.capitalize(), str(value))
        return specs

    def _parse_page(
        self, soup: BeautifulSoup, url: str,
    ) -> DraftRecord:
        """Build a draft from a product page; price may be 0."""
        product = self._pick_product(self.json_ld_blocks(soup)) or {}

        title = str(product.get("name") or "").strip()
        if not title:
            title = self._meta(soup, "og:title", "twitter:title")
        if not title and soup.title is not None:
            title = " ".join(soup.title.get_text().split())

        images = [
            i.get("url", "") if isinstance(i, dict) else str(i)
            for i in _as_list(product.get("image"))
        ]
        images.append(self._meta(soup, "og:image", "twitter:image"))
        image = next((i for i in images if i), "")

        offers = [o for o in _as_list(product.get("offers")) if isinstance(o, dict)]
        offer: dict[str, Any] = offers[0] if offers else {}
        price = self.extract_price(
            offer.get("price")
            or offer.get("lowPrice")
            or self._meta(
                soup, "product:price:amount", "og:price:amount"
            )
        )
        currency = str(
            offer.get("priceCurrency")
            or self._meta(
                soup, "product:price:currency", "og:price:currency"
            )
            or "INR"
        )
        seller: Any = offer.get("seller") or ""
        if isinstance(seller, dict):
            seller = seller.get("name", "")

        rating_node: Any = product.get("aggregateRating") or {}
        if not isinstance(rating_node, dict):
            rating_node = {}
        brand: Any = product.get("brand") or ""
        if isinstance(brand, dict):
            brand = brand.get("name", "")

        description = str(
            product.get("description")
            or self._meta(soup, "og:description", "description")
        ).strip()

        return DraftRecord(
            title=title,
            price=price,
            source=self.source_tag,
            url=url,
            currency=currency,
            image=image,
            rating=self.parse_rating(rating_node.get("ratingValue")),
            review_count=self.parse_review_count(
                rating_node.get("reviewCount")
                or rating_node.get("ratingCount")
            ),
            brand=str(brand).strip() or self.extract_brand(title),
            availability=_availability_label(offer.get("availability")),
            seller=str(seller) or (urlparse(url).hostname or ""),
            description=description,
            specifications=self._specifications(product),
            sample_reviews=self._sample_reviews(product),
        )

    def fetch_detail(self, url: str) -> DraftRecord | None:
        """Fetch a product page; ``None`` when it cannot be read."""
        try:
            soup = self._get_page(url, referer=self._origin(url))
            if soup is None:
                self.logger.warning(
                    "[direct_url] Page unavailable: %s", url
                )
                return None
            return self._parse_page(soup, url)
        except Exception as e:
            self.logger.warning(
                "[direct_url] Detail fetch failed for %s: %s",
                url,
                e,
                exc_info=True,
            )
            return None

    def fetch(
        self, query: str, constraints: QueryIntent,
    ) -> list[DraftRecord]:
        """Look up *query* as a product URL; 0 or 1 drafts."""
        draft = self.fetch_detail(query.strip())
        if draft is None or not draft.is_complete:
            self.logger.info(
                "[direct_url] No usable product at %s", query
            )
            return []
        return [draft]
