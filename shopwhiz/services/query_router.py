# shopwhiz/services/query_router.py

"""Top-level query routing: direct URL, live sources or synthetic."""

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Any

from shopwhiz.config.settings import PipelineConfig, Settings
from shopwhiz.errors import SourceUnavailable
from shopwhiz.filters.deduplicator import ProductDeduplicator
from shopwhiz.filters.price_filter import PriceFilter
from shopwhiz.filters.product_validator import ProductValidator
from shopwhiz.filters.query_intent import (
    QueryIntent,
    QueryIntentClassifier,
    is_url,
)
from shopwhiz.filters.relevance_ranker import RelevanceRanker
from shopwhiz.models.product import (
    CanonicalProduct,
    DataSource,
    DraftRecord,
    classify_data_source,
)
from shopwhiz.providers.broker import ProviderBroker
from shopwhiz.services.enricher import Enricher
from shopwhiz.services.synthetic_catalog import SyntheticCatalogGenerator
from shopwhiz.sources.base_source import BaseSource
from shopwhiz.sources.direct_url_source import DirectUrlSource
from shopwhiz.sources.retailer_search_source import RetailerSearchSource
from shopwhiz.sources.serp_api_source import SerpApiSource

logger = logging.getLogger("shopwhiz.router")


class SearchPath:
    DIRECT_URL = "direct_url"
    SOURCES = "sources"
    SYNTHETIC = "synthetic"


@dataclass
class SearchOptions:
    """Caller options for one query."""

    use_real_data: bool = True
    max_results: int = Settings.DEFAULT_MAX_RESULTS
    min_price: float | None = None
    max_price: float | None = None


@dataclass
class SearchResponse:
    """Records plus provenance classification and run diagnostics."""

    query: str
    records: list[CanonicalProduct] = field(
        default_factory=lambda: list[CanonicalProduct]()
    )
    data_source: str = DataSource.REAL_TIME
    path: str = SearchPath.SOURCES
    invalid_count: int = 0
    excluded_count: int = 0
    deduplicated_count: int = 0
    total_before_filter: int = 0
    errors: list[str] = field(
        default_factory=lambda: list[str]()
    )

    def to_dict(self) -> dict[str, Any]:
        return {
            "records": [r.to_dict() for r in self.records],
            "dataSource": self.data_source,
        }


def build_sources(config: PipelineConfig) -> list[BaseSource]:
    """Structured API when a key is configured, else retailer search."""
    if config.has_structured_api:
        return [SerpApiSource(config.serp_api_key)]
    return [
        RetailerSearchSource(retailer)
        for retailer in Settings.LIGHTWEIGHT_RETAILERS
    ]


class QueryRouter:
    """Classifies a query and runs exactly one pipeline path for it.

    Paths: ``Start -> DirectUrl -> Enrich``, ``Start -> Sources ->
    Rank -> Enrich``, or ``Start -> Synthetic``.  No path is
    re-entered and a failing stage contributes nothing rather than
    aborting the query.
    """

    def __init__(
        self,
        config: PipelineConfig,
        broker: ProviderBroker | None = None,
        sources: list[BaseSource] | None = None,
        direct_source: DirectUrlSource | None = None,
    ) -> None:
        self.config = config
        self.broker = broker or ProviderBroker.from_config(config)
        self.sources = (
            sources if sources is not None else build_sources(config)
        )
        self.direct_source = direct_source or DirectUrlSource()
        self.enricher = Enricher(
            self.broker,
            detail_source=(
                self.direct_source if config.hydrate_details else None
            ),
            detail_concurrency=config.detail_concurrency,
            detail_timeout=config.detail_timeout,
        )
        self.synthetic = SyntheticCatalogGenerator(self.broker)

    # ── Private helpers ──────────────────────────────────

    async def _fetch_one(
        self, source: BaseSource, query: str, intent: QueryIntent,
    ) -> list[DraftRecord]:
        drafts: list[DraftRecord] = await asyncio.wait_for(
            asyncio.to_thread(source.fetch, query, intent),
            timeout=self.config.source_timeout,
        )
        return drafts

    async def _run_sources(
        self,
        sources: list[BaseSource],
        query: str,
        intent: QueryIntent,
    ) -> tuple[list[DraftRecord], list[str]]:
        """Run adapters concurrently; wait for all of them to settle.

        Returns the combined drafts and a list of error messages.
        """
        batches = await asyncio.gather(
            *(self._fetch_one(s, query, intent) for s in sources),
            return_exceptions=True,
        )

        drafts: list[DraftRecord] = []
        errors: list[str] = []
        for source, batch in zip(sources, batches):
            if isinstance(batch, BaseException):
                failure = SourceUnavailable(
                    source.source_name,
                    str(batch) or type(batch).__name__,
                )
                errors.append(str(failure))
                logger.warning(
                    "Source failure for query '%s': %s",
                    query,
                    failure,
                    exc_info=batch,
                )
            else:
                drafts.extend(batch)
        return drafts, errors

    async def _resolve_direct(
        self, url: str, intent: QueryIntent, response: SearchResponse,
    ) -> bool:
        """Try the direct-detail path; True when it produced a record."""
        drafts, errors = await self._run_sources(
            [self.direct_source], url, intent
        )
        response.errors.extend(errors)
        drafts, invalid = ProductValidator.validate(drafts)
        if not drafts:
            logger.info(
                "Direct lookup failed for %s, falling back to '%s'",
                url,
                intent.query_text,
            )
            return False

        response.invalid_count = invalid
        response.total_before_filter = 1
        response.records = await self.enricher.enrich(
            drafts[:1], intent.query_text
        )
        response.path = SearchPath.DIRECT_URL
        response.data_source = classify_data_source(response.records)
        return True

    async def _resolve_sources(
        self,
        query: str,
        intent: QueryIntent,
        options: SearchOptions,
        response: SearchResponse,
    ) -> None:
        """Live adapters, then validate, bound, dedupe, rank and enrich.

        Only the caller's explicit bounds filter drafts.  Hints parsed
        from the query text ("under 30000") reach the adapters through
        *intent* but never drop a result here.
        """
        response.path = SearchPath.SOURCES
        drafts, errors = await self._run_sources(
            self.sources, query, intent
        )
        response.errors.extend(errors)

        drafts, response.invalid_count = ProductValidator.validate(drafts)
        response.total_before_filter = len(drafts)
        drafts, response.excluded_count = PriceFilter.filter_by_bounds(
            drafts, options.min_price, options.max_price
        )
        drafts, response.deduplicated_count = (
            ProductDeduplicator.deduplicate(drafts)
        )
        ranked = RelevanceRanker.rank(drafts, intent, options.max_results)

        if not ranked:
            # Empty real result stays empty; no synthetic substitution
            logger.info("No real drafts for '%s'", query)
            response.data_source = DataSource.REAL_TIME
            return

        response.records = await self.enricher.enrich(ranked, query)
        response.data_source = classify_data_source(response.records)

    async def _resolve_synthetic(
        self,
        query: str,
        options: SearchOptions,
        response: SearchResponse,
    ) -> None:
        response.path = SearchPath.SYNTHETIC
        # Budget words stay in the query text handed to the prompt
        response.records = await self.synthetic.generate(
            query,
            options.max_results,
            options.min_price,
            options.max_price,
        )
        response.total_before_filter = len(response.records)
        response.data_source = classify_data_source(
            response.records, empty_default=DataSource.AI_GENERATED
        )

    # ── Entry point ──────────────────────────────────────

    async def resolve(
        self, query: str, options: SearchOptions | None = None,
    ) -> SearchResponse:
        """Resolve *query* into canonical records and a provenance tag.

        Never raises for "no matches": an empty record list with an
        accurate ``data_source`` is a complete answer.
        """
        options = options or SearchOptions()
        text = query.strip()
        response = SearchResponse(query=query)
        if not text or options.max_results <= 0:
            response.data_source = (
                DataSource.REAL_TIME
                if options.use_real_data
                else DataSource.AI_GENERATED
            )
            return response

        intent = QueryIntentClassifier.classify(
            text, options.min_price, options.max_price
        )
        search_text = text

        if is_url(text):
            if await self._resolve_direct(text, intent, response):
                return response
            search_text = intent.query_text

        if not options.use_real_data:
            await self._resolve_synthetic(search_text, options, response)
        else:
            await self._resolve_sources(
                search_text, intent, options, response
            )

        logger.info(
            "Resolved '%s' via %s: %d records (%s), %d errors",
            query,
            response.path,
            len(response.records),
            response.data_source,
            len(response.errors),
        )
        return response


_default_router: QueryRouter | None = None


def get_default_router(config: PipelineConfig | None = None) -> QueryRouter:
    """The process-wide router; built on first use from *config* or
    the environment."""
    global _default_router
    if _default_router is None:
        _default_router = QueryRouter(config or PipelineConfig.from_env())
    return _default_router


async def search(
    query: str,
    options: SearchOptions | None = None,
    config: PipelineConfig | None = None,
) -> SearchResponse:
    """In-process entry point.

    Without an explicit *config* a single router built from the
    environment is reused, so provider cooldowns are shared by all
    queries in the process.
    """
    if config is not None:
        return await QueryRouter(config).resolve(query, options)
    return await get_default_router().resolve(query, options)
