# shopwhiz/services/health_checker.py

"""Source connectivity and provider availability health checks."""

import asyncio
import logging
import time
from dataclasses import dataclass

from shopwhiz.config.settings import PipelineConfig
from shopwhiz.providers.broker import ProviderBroker
from shopwhiz.services.query_router import (
    build_sources,
    get_default_router,
)
from shopwhiz.sources.base_source import BaseSource

logger = logging.getLogger("shopwhiz.health")

_HEALTH_TIMEOUT = 10  # seconds per source
_SLOW_MS = 5000


@dataclass
class HealthResult:
    """Result of a single source health check."""

    source_id: str
    status: str  # "ok", "slow", "down"
    latency_ms: float
    message: str


def probe_source(source: BaseSource) -> HealthResult:
    """GET the source homepage once and classify the outcome."""
    start = time.monotonic()
    try:
        homepage = source._get_homepage()
        resp = source.session.get(
            homepage,
            headers={
                **source.settings.DEFAULT_HEADERS,
                "Referer": homepage,
            },
            timeout=_HEALTH_TIMEOUT,
        )
        elapsed_ms = (time.monotonic() - start) * 1000

        if resp.status_code != 200:
            return HealthResult(
                source.source_name, "down", elapsed_ms,
                f"HTTP {resp.status_code}",
            )
        if elapsed_ms > _SLOW_MS:
            return HealthResult(
                source.source_name, "slow", elapsed_ms, "High latency",
            )
        return HealthResult(source.source_name, "ok", elapsed_ms, "")

    except Exception as exc:
        elapsed_ms = (time.monotonic() - start) * 1000
        return HealthResult(
            source.source_name, "down", elapsed_ms, str(exc)[:80],
        )


class HealthChecker:
    """Runs concurrent probes against the configured sources."""

    def __init__(
        self,
        config: PipelineConfig,
        sources: list[BaseSource] | None = None,
        broker: ProviderBroker | None = None,
    ) -> None:
        self.sources = (
            sources if sources is not None else build_sources(config)
        )
        # Share the search broker so cooldowns from earlier queries show
        self.broker = broker or get_default_router(config).broker

    async def check_all(self) -> list[HealthResult]:
        """Probe every configured source concurrently."""
        results: list[HealthResult] = list(
            await asyncio.gather(
                *(asyncio.to_thread(probe_source, s) for s in self.sources)
            )
        )
        for r in results:
            logger.info(
                "Health check %s: %s (%.0fms) %s",
                r.source_id,
                r.status,
                r.latency_ms,
                r.message,
            )
        return results

    def provider_status(self) -> list[dict[str, object]]:
        """Availability rows for the providers queries actually use."""
        return self.broker.status()
