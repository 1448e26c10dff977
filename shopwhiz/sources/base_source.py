# shopwhiz/sources/base_source.py

"""Abstract base class for all product data sources."""

import json
import logging
import re
import time
from abc import ABC, abstractmethod
from typing import Any

import cloudscraper  # type: ignore[import-untyped]
from bs4 import BeautifulSoup, Tag
from curl_cffi import requests as curl_requests

from shopwhiz.config.settings import Settings
from shopwhiz.filters.query_intent import QueryIntent, brand_from_text
from shopwhiz.models.product import DraftRecord

_PRICE_NUMBER_RE = re.compile(r"\d+(?:\.\d+)?")
_CURRENCY_NOISE_RE = re.compile(
    r"(₹|\$|€|£|rs\.?|inr|aed|usd|mrp)", re.IGNORECASE
)
_RATING_RE = re.compile(r"(\d+(?:\.\d+)?)")
_REVIEW_COUNT_RE = re.compile(r"(\d[\d,]*)\s*([kK])?")


class BaseSource(ABC):
    """Abstract base class for all product data sources.

    ``fetch`` is the adapter boundary: implementations must never
    raise past it.  Any network or parse failure is logged as a
    non-fatal warning and yields an empty list.
    """

    source_tag: str = ""

    def __init__(self, source_name: str) -> None:
        self.source_name = source_name
        self.logger = logging.getLogger(
            f"shopwhiz.sources.{source_name}"
        )
        self.settings = Settings()
        self.session = curl_requests.Session(
            impersonate=self.settings.IMPERSONATE_BROWSER
        )
        self._current_delay: float = self.settings.REQUEST_DELAY
        self._request_timeout: int = self.settings.REQUEST_TIMEOUT

    # ── Transport ────────────────────────────────────────

    # Cloudflare challenge page markers (checked before keyword scan)
    _CF_CHALLENGE_MARKERS: list[str] = [
        "challenges.cloudflare.com",
        "cdn-cgi/challenge-platform",
        "just a moment",
        "cf-turnstile",
        "cf_chl_opt",
    ]

    def _validate_response(
        self, resp: curl_requests.Response,
    ) -> bool:
        """Check for Cloudflare challenge pages and CAPTCHA indicators."""
        text = resp.text
        if text.lstrip().startswith(("{", "[")):
            return True
        lower = text.lower()

        for marker in self._CF_CHALLENGE_MARKERS:
            if marker in lower:
                self.logger.warning(
                    "[%s] Cloudflare challenge detected "
                    "(marker: '%s')",
                    self.source_name,
                    marker,
                )
                return False

        # Skip the keyword scan for content-rich pages to avoid
        # false positives from footer text
        has_body_content = (
            "<body" in lower and len(text) > 5000
        )
        if not has_body_content:
            for keyword in self.settings.CAPTCHA_KEYWORDS:
                if keyword in lower:
                    self.logger.warning(
                        "[%s] CAPTCHA keyword '%s' detected",
                        self.source_name,
                        keyword,
                    )
                    return False
        return True

    def _escalate_delay(self) -> None:
        """Double the current delay up to the configured max."""
        max_delay = (
            self.settings.REQUEST_DELAY
            * self.settings.MAX_DELAY_MULTIPLIER
        )
        self._current_delay = min(
            self._current_delay * 2, max_delay
        )
        self.logger.warning(
            "[%s] Rate-limited, delay escalated to %.1fs",
            self.source_name,
            self._current_delay,
        )

    def _fetch_get(
        self,
        url: str,
        headers: dict[str, str],
        params: dict[str, str] | None = None,
    ) -> curl_requests.Response | None:
        """GET with retries and adaptive delay."""
        for attempt in range(self.settings.MAX_RETRIES):
            try:
                resp = self.session.get(
                    url,
                    headers=headers,
                    params=params,
                    timeout=self._request_timeout,
                )
                if resp.status_code == 200:
                    if not self._validate_response(resp):
                        self._escalate_delay()
                        time.sleep(self._current_delay)
                        continue
                    self._current_delay = self.settings.REQUEST_DELAY
                    return resp
                self.logger.warning(
                    "[%s] HTTP %d on attempt %d",
                    self.source_name,
                    resp.status_code,
                    attempt + 1,
                )
                if resp.status_code in (429, 403):
                    self._escalate_delay()
                    time.sleep(self._current_delay)
            except Exception as exc:
                self.logger.warning(
                    "[%s] Request error on attempt %d: %s",
                    self.source_name,
                    attempt + 1,
                    exc,
                    exc_info=True,
                )
                time.sleep(
                    self._current_delay * (attempt + 1)
                )
        return None

    def _get_page(
        self, url: str, referer: str | None = None,
    ) -> BeautifulSoup | None:
        """Fetch an HTML page, falling back to cloudscraper on failure.

        *referer* defaults to the source homepage.
        """
        headers: dict[str, str] = {
            **self.settings.DEFAULT_HEADERS,
            "Referer": referer or self._get_homepage(),
        }

        # Primary: curl_cffi (browser-impersonating TLS)
        resp = self._fetch_get(url, headers)
        if resp:
            return BeautifulSoup(resp.text, "lxml")

        # Fallback: cloudscraper (JS challenge solver)
        self.logger.info(
            "[%s] curl_cffi exhausted, falling back to cloudscraper",
            self.source_name,
        )
        try:
            _cs: Any = cloudscraper
            scraper: Any = _cs.create_scraper()
            fallback_resp: Any = scraper.get(
                url,
                headers=headers,
                timeout=self._request_timeout,
            )
            if fallback_resp.status_code == 200:
                return BeautifulSoup(
                    str(fallback_resp.text), "lxml"
                )
        except Exception as e:
            self.logger.error(
                "[%s] cloudscraper fallback also failed: %s",
                self.source_name,
                e,
                exc_info=True,
            )

        return None

    # ── Tolerant field extraction ────────────────────────

    @staticmethod
    def extract_price(text: str | float | int | None) -> float:
        """Extract a numeric price from text like '₹1,29,999.00'.

        Currency symbols and thousands separators are stripped
        before parsing; returns 0.0 when no number is present.
        """
        if text is None or isinstance(text, bool):
            return 0.0
        if isinstance(text, (int, float)):
            return float(text) if text > 0 else 0.0
        cleaned = _CURRENCY_NOISE_RE.sub(" ", text)
        cleaned = cleaned.replace(",", "").replace("\xa0", " ")
        match = _PRICE_NUMBER_RE.search(cleaned)
        return float(match.group(0)) if match else 0.0

    @staticmethod
    def parse_rating(value: Any) -> float:
        """Parse a rating, clamped to [1, 5], defaulting when absent."""
        rating: float | None = None
        if isinstance(value, (int, float)) and not isinstance(
            value, bool
        ):
            rating = float(value)
        elif isinstance(value, str):
            match = _RATING_RE.search(value)
            if match:
                rating = float(match.group(1))
        if rating is None or rating <= 0:
            return Settings.DEFAULT_RATING
        return max(1.0, min(5.0, rating))

    @staticmethod
    def parse_review_count(value: Any) -> int:
        """Parse a review count like '1,234 ratings' or '(2.1k)'."""
        if isinstance(value, bool):
            return 0
        if isinstance(value, (int, float)):
            return max(0, int(value))
        if isinstance(value, str):
            decimal_k = re.search(
                r"(\d+\.\d+)\s*[kK]", value
            )
            if decimal_k:
                return int(float(decimal_k.group(1)) * 1000)
            match = _REVIEW_COUNT_RE.search(value)
            if match:
                count = int(match.group(1).replace(",", ""))
                if match.group(2):
                    count *= 1000
                return count
        return 0

    @staticmethod
    def extract_brand(title: str) -> str:
        """Known brand in the title, else its first word, else Unknown."""
        brand = brand_from_text(title)
        if brand:
            return brand
        words = title.split()
        first = words[0] if words else ""
        return first if len(first) > 1 else "Unknown"

    @staticmethod
    def select_first(
        node: Tag | BeautifulSoup, candidates: list[str],
    ) -> Tag | None:
        """Return the first element matched by any candidate selector."""
        for selector in candidates:
            if not selector:
                continue
            found = node.select_one(selector)
            if found is not None:
                return found
        return None

    @staticmethod
    def absolute_url(href: str, base: str) -> str:
        """Resolve protocol-relative and site-relative links."""
        if not href:
            return ""
        if href.startswith("//"):
            return f"https:{href}"
        if href.startswith("/"):
            return base.rstrip("/") + href
        return href

    @staticmethod
    def json_ld_blocks(soup: BeautifulSoup) -> list[dict[str, Any]]:
        """Decode every ``application/ld+json`` block, flattening
        arrays and ``@graph`` containers.  Malformed blocks are
        skipped."""
        blocks: list[dict[str, Any]] = []
        for script in soup.find_all(
            "script", attrs={"type": "application/ld+json"}
        ):
            raw = script.string or script.get_text() or ""
            raw = re.sub(r"<!--.*?-->", "", raw, flags=re.DOTALL)
            try:
                parsed: Any = json.loads(raw.strip())
            except (json.JSONDecodeError, TypeError):
                continue
            stack = parsed if isinstance(parsed, list) else [parsed]
            for node in stack:
                if not isinstance(node, dict):
                    continue
                graph = node.get("@graph")
                if isinstance(graph, list):
                    blocks.extend(
                        g for g in graph if isinstance(g, dict)
                    )
                blocks.append(node)
        return blocks

    @staticmethod
    def has_type(node: dict[str, Any], type_name: str) -> bool:
        """True when a JSON-LD node's ``@type`` includes *type_name*."""
        raw = node.get("@type")
        types = raw if isinstance(raw, list) else [raw]
        return any(
            str(t).lower() == type_name.lower() for t in types if t
        )

    # ── Adapter contract ─────────────────────────────────

    @abstractmethod
    def _get_homepage(self) -> str:
        """Return the homepage URL for the Referer header."""
        ...

    @abstractmethod
    def fetch(
        self, query: str, constraints: QueryIntent,
    ) -> list[DraftRecord]:
        """Fetch drafts for *query*; never raises."""
        ...
