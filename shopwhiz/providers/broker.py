# shopwhiz/providers/broker.py

"""Quota-aware failover between interchangeable generative providers.

Each provider carries a :class:`ProviderState`.  A quota signal puts
the provider on cooldown for a fixed window; the cooldown is cleared
lazily the next time selection runs after the window has elapsed, so
no timer task is needed.

Two overlapping requests may both mark the same provider exceeded.
The later write wins and simply moves ``cooldown_until`` a little
further out.  That race is accepted and left unlocked.
"""

import asyncio
import json
import logging
import re
import time
from collections.abc import Callable
from typing import Any, TypeVar

from pydantic import BaseModel, ValidationError

from shopwhiz.config.settings import PipelineConfig, Settings
from shopwhiz.errors import (
    AllProvidersExhausted,
    MalformedUpstreamPayload,
    ProviderQuotaExceeded,
)
from shopwhiz.providers.base_provider import GenerativeProvider
from shopwhiz.providers.deepseek_provider import DeepSeekProvider
from shopwhiz.providers.gemini_provider import GeminiProvider

logger = logging.getLogger("shopwhiz.broker")

ModelT = TypeVar("ModelT", bound=BaseModel)

_FENCE_RE = re.compile(r"```(?:json|JSON)?\s*(.*?)```", re.DOTALL)


def extract_json(text: str) -> Any:
    """Decode the JSON value embedded in a generated reply.

    Markdown code fences are stripped and the outermost object or
    array is taken, so leading or trailing chatter is ignored.

    Raises:
        MalformedUpstreamPayload: no decodable JSON value is present.
    """
    fenced = _FENCE_RE.search(text)
    body = fenced.group(1) if fenced else text

    starts = [i for i in (body.find("{"), body.find("[")) if i != -1]
    if not starts:
        raise MalformedUpstreamPayload("no JSON value in reply")
    start = min(starts)
    closer = "}" if body[start] == "{" else "]"
    end = body.rfind(closer)
    if end <= start:
        raise MalformedUpstreamPayload("unterminated JSON value in reply")

    try:
        return json.loads(body[start:end + 1])
    except json.JSONDecodeError as exc:
        raise MalformedUpstreamPayload(
            f"reply is not valid JSON: {exc.msg}"
        ) from exc


class ProviderState:
    """Availability of one provider: active, or on cooldown until a time."""

    def __init__(self, name: str) -> None:
        self.name = name
        self.cooldown_until: float | None = None

    def is_on_cooldown(self, now: float) -> bool:
        return self.cooldown_until is not None and now < self.cooldown_until

    def mark_exceeded(self, now: float, window: float) -> None:
        """Start (or restart) the cooldown window; last write wins."""
        self.cooldown_until = now + window

    def try_reset(self, now: float) -> bool:
        """Clear an elapsed cooldown. Returns True when a reset happened."""
        if self.cooldown_until is not None and now >= self.cooldown_until:
            self.cooldown_until = None
            return True
        return False


class ProviderBroker:
    """Routes generation requests to the first active provider.

    Providers are tried in the order given (primary first).  Any
    failure on the selected provider triggers exactly one retry on
    another active provider; a quota failure additionally puts the
    failing provider on cooldown.
    """

    def __init__(
        self,
        providers: list[GenerativeProvider],
        cooldown_seconds: float = Settings.PROVIDER_COOLDOWN_SECONDS,
        timeout: float = Settings.PROVIDER_TIMEOUT,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._providers = list(providers)
        self._states: dict[str, ProviderState] = {
            p.name: ProviderState(p.name) for p in self._providers
        }
        self.cooldown_seconds = cooldown_seconds
        self.timeout = timeout
        self._clock = clock

    @classmethod
    def from_config(cls, config: PipelineConfig) -> "ProviderBroker":
        """Register only the providers that have credentials."""
        available: dict[str, GenerativeProvider] = {}
        if config.gemini_api_key:
            available["gemini"] = GeminiProvider(config.gemini_api_key)
        if config.deepseek_api_key:
            available["deepseek"] = DeepSeekProvider(
                config.deepseek_api_key
            )

        ordered: list[GenerativeProvider] = []
        primary = available.pop(config.primary_provider, None)
        if primary is not None:
            ordered.append(primary)
        ordered.extend(available.values())

        if not ordered:
            logger.warning("No generative provider is configured")
        return cls(
            ordered,
            cooldown_seconds=config.provider_cooldown,
            timeout=config.provider_timeout,
        )

    def state(self, name: str) -> ProviderState:
        return self._states[name]

    def _active_providers(self) -> list[GenerativeProvider]:
        now = self._clock()
        active: list[GenerativeProvider] = []
        for provider in self._providers:
            state = self._states[provider.name]
            if state.try_reset(now):
                logger.info("Provider %s cooldown elapsed", provider.name)
            if not state.is_on_cooldown(now):
                active.append(provider)
        return active

    @property
    def has_active_provider(self) -> bool:
        return bool(self._active_providers())

    async def _call(self, provider: GenerativeProvider, prompt: str) -> str:
        return await asyncio.wait_for(
            asyncio.to_thread(provider.generate, prompt),
            timeout=self.timeout,
        )

    def _record_failure(
        self, provider: GenerativeProvider, exc: Exception,
    ) -> None:
        if isinstance(exc, ProviderQuotaExceeded):
            self._states[provider.name].mark_exceeded(
                self._clock(), self.cooldown_seconds
            )
            logger.warning(
                "Provider %s quota exceeded, cooling down for %.0fs",
                provider.name,
                self.cooldown_seconds,
            )
        else:
            logger.warning(
                "Provider %s failed: %s",
                provider.name,
                exc or type(exc).__name__,
                exc_info=exc,
            )

    async def generate(self, prompt: str) -> str:
        """Generate text, failing over once to another active provider.

        Raises:
            AllProvidersExhausted: no provider is active, or both the
                selected provider and the fallback failed.
        """
        active = self._active_providers()
        if not active:
            raise AllProvidersExhausted("no active generative provider")

        first = active[0]
        try:
            return await self._call(first, prompt)
        except Exception as exc:
            self._record_failure(first, exc)
            first_error = exc

        fallback = next(
            (p for p in self._active_providers() if p is not first),
            None,
        )
        if fallback is None:
            raise AllProvidersExhausted(
                f"{first.name} failed and no fallback is active",
                first.name,
            ) from first_error

        logger.info("Failing over from %s to %s", first.name, fallback.name)
        try:
            return await self._call(fallback, prompt)
        except Exception as exc:
            self._record_failure(fallback, exc)
            raise AllProvidersExhausted(
                f"{first.name} and {fallback.name} both failed",
                fallback.name,
            ) from exc

    async def generate_json(
        self,
        prompt: str,
        schema: type[ModelT] | None = None,
    ) -> Any:
        """Generate, decode and optionally validate a JSON reply.

        Returns the decoded value, or a *schema* instance when a
        pydantic model is given.

        Raises:
            AllProvidersExhausted: see :meth:`generate`.
            MalformedUpstreamPayload: the reply did not decode or
                validate.
        """
        text = await self.generate(prompt)
        payload = extract_json(text)
        if schema is None:
            return payload
        try:
            return schema.model_validate(payload)
        except ValidationError as exc:
            raise MalformedUpstreamPayload(
                f"reply failed {schema.__name__} validation"
            ) from exc

    def status(self) -> list[dict[str, Any]]:
        """Per-provider availability, primary first."""
        now = self._clock()
        rows: list[dict[str, Any]] = []
        for idx, provider in enumerate(self._providers):
            state = self._states[provider.name]
            state.try_reset(now)
            rows.append({
                "name": provider.name,
                "primary": idx == 0,
                "active": not state.is_on_cooldown(now),
                "cooldown_until": state.cooldown_until,
            })
        return rows
