# tests/test_provider_broker.py

"""Tests for quota-aware provider failover and JSON extraction."""

import asyncio
import threading
import unittest
from typing import Any
from unittest.mock import MagicMock, patch

from pydantic import BaseModel

from shopwhiz.config.settings import PipelineConfig
from shopwhiz.errors import (
    AllProvidersExhausted,
    MalformedUpstreamPayload,
    ProviderError,
    ProviderQuotaExceeded,
)
from shopwhiz.models.payloads import EnrichmentEnvelope
from shopwhiz.providers.base_provider import GenerativeProvider
from shopwhiz.providers.broker import (
    ProviderBroker,
    ProviderState,
    extract_json,
)

WINDOW = 3600.0


class FakeProvider(GenerativeProvider):
    """Scripted provider: replies are returned or raised in order.

    The last reply repeats once the script runs out.
    """

    def __init__(
        self, name: str, *replies: str | Exception, block: float = 0.0,
    ) -> None:
        self.name = name
        self.replies = list(replies)
        self.block = block
        self.calls = 0

    def generate(self, prompt: str) -> str:
        self.calls += 1
        if self.block:
            threading.Event().wait(self.block)
        reply = self.replies.pop(0) if len(self.replies) > 1 else self.replies[0]
        if isinstance(reply, Exception):
            raise reply
        return reply


def _quota(name: str) -> ProviderQuotaExceeded:
    return ProviderQuotaExceeded(f"{name} quota exceeded", name)


class _Clock:
    def __init__(self, now: float = 1_000.0) -> None:
        self.now = now

    def __call__(self) -> float:
        return self.now


class TestProviderState(unittest.TestCase):

    def test_cooldown_window(self) -> None:
        state = ProviderState("gemini")
        self.assertFalse(state.is_on_cooldown(0))
        state.mark_exceeded(100, 10)
        self.assertTrue(state.is_on_cooldown(105))
        self.assertFalse(state.try_reset(105))
        self.assertTrue(state.try_reset(110))
        self.assertIsNone(state.cooldown_until)

    def test_last_write_wins(self) -> None:
        state = ProviderState("gemini")
        state.mark_exceeded(100, 10)
        state.mark_exceeded(104, 10)
        self.assertEqual(state.cooldown_until, 114)


class TestProviderBroker(unittest.IsolatedAsyncioTestCase):
    """Selection, failover, cooldown and lazy reset."""

    def _broker(
        self, *providers: GenerativeProvider, timeout: float = 5.0,
    ) -> tuple[ProviderBroker, _Clock]:
        clock = _Clock()
        broker = ProviderBroker(
            list(providers),
            cooldown_seconds=WINDOW,
            timeout=timeout,
            clock=clock,
        )
        return broker, clock

    async def test_primary_used_when_active(self) -> None:
        primary = FakeProvider("gemini", "from gemini")
        secondary = FakeProvider("deepseek", "from deepseek")
        broker, _ = self._broker(primary, secondary)

        self.assertEqual(await broker.generate("p"), "from gemini")
        self.assertEqual(secondary.calls, 0)

    async def test_quota_fails_over_and_starts_cooldown(self) -> None:
        primary = FakeProvider("gemini", _quota("gemini"))
        secondary = FakeProvider("deepseek", "from deepseek")
        broker, clock = self._broker(primary, secondary)

        self.assertEqual(await broker.generate("p"), "from deepseek")
        self.assertEqual(
            broker.state("gemini").cooldown_until, clock.now + WINDOW
        )
        self.assertIsNone(broker.state("deepseek").cooldown_until)

        # Cooling provider is skipped on the next request
        self.assertEqual(await broker.generate("p"), "from deepseek")
        self.assertEqual(primary.calls, 1)

    async def test_non_quota_failure_fails_over_without_cooldown(
        self,
    ) -> None:
        primary = FakeProvider("gemini", ProviderError("HTTP 500", "gemini"))
        secondary = FakeProvider("deepseek", "from deepseek")
        broker, _ = self._broker(primary, secondary)

        self.assertEqual(await broker.generate("p"), "from deepseek")
        self.assertIsNone(broker.state("gemini").cooldown_until)

    async def test_both_failing_raises_exhausted(self) -> None:
        last = ProviderError("HTTP 503", "deepseek")
        primary = FakeProvider("gemini", _quota("gemini"))
        secondary = FakeProvider("deepseek", last)
        broker, _ = self._broker(primary, secondary)

        with self.assertRaises(AllProvidersExhausted) as ctx:
            await broker.generate("p")
        self.assertIs(ctx.exception.__cause__, last)

    async def test_exactly_one_failover(self) -> None:
        first = FakeProvider("a", ProviderError("boom", "a"))
        second = FakeProvider("b", ProviderError("boom", "b"))
        third = FakeProvider("c", "never reached")
        broker, _ = self._broker(first, second, third)

        with self.assertRaises(AllProvidersExhausted):
            await broker.generate("p")
        self.assertEqual(third.calls, 0)

    async def test_single_provider_failure(self) -> None:
        cause = _quota("gemini")
        broker, _ = self._broker(FakeProvider("gemini", cause))
        with self.assertRaises(AllProvidersExhausted) as ctx:
            await broker.generate("p")
        self.assertIs(ctx.exception.__cause__, cause)

    async def test_no_providers(self) -> None:
        broker, _ = self._broker()
        self.assertFalse(broker.has_active_provider)
        with self.assertRaises(AllProvidersExhausted):
            await broker.generate("p")

    async def test_lazy_reset_after_window(self) -> None:
        primary = FakeProvider("gemini", _quota("gemini"), "back again")
        broker, clock = self._broker(primary)

        with self.assertRaises(AllProvidersExhausted):
            await broker.generate("p")
        clock.now += WINDOW - 1
        with self.assertRaises(AllProvidersExhausted):
            await broker.generate("p")
        self.assertEqual(primary.calls, 1)

        clock.now += 1
        self.assertEqual(await broker.generate("p"), "back again")
        self.assertIsNone(broker.state("gemini").cooldown_until)

    async def test_timeout_counts_as_failure(self) -> None:
        slow = FakeProvider("gemini", "too late", block=0.5)
        fast = FakeProvider("deepseek", "in time")
        broker, _ = self._broker(slow, fast, timeout=0.05)

        self.assertEqual(await broker.generate("p"), "in time")
        self.assertIsNone(broker.state("gemini").cooldown_until)

    async def test_concurrent_quota_marks(self) -> None:
        primary = FakeProvider("gemini", _quota("gemini"))
        secondary = FakeProvider("deepseek", "ok")
        broker, clock = self._broker(primary, secondary)

        results = await asyncio.gather(
            broker.generate("p1"), broker.generate("p2")
        )

        self.assertEqual(results, ["ok", "ok"])
        self.assertTrue(broker.state("gemini").is_on_cooldown(clock.now))

    async def test_status_rows(self) -> None:
        broker, clock = self._broker(
            FakeProvider("gemini", "x"), FakeProvider("deepseek", "y")
        )
        broker.state("deepseek").mark_exceeded(clock.now, WINDOW)

        rows = broker.status()
        self.assertEqual([r["name"] for r in rows], ["gemini", "deepseek"])
        self.assertTrue(rows[0]["primary"])
        self.assertTrue(rows[0]["active"])
        self.assertFalse(rows[1]["active"])
        self.assertEqual(rows[1]["cooldown_until"], clock.now + WINDOW)


class TestGenerateJson(unittest.IsolatedAsyncioTestCase):

    async def _generate_json(
        self, reply: str, schema: type[BaseModel] | None = None,
    ) -> Any:
        broker = ProviderBroker([FakeProvider("gemini", reply)])
        return await broker.generate_json("p", schema)

    async def test_fenced_reply(self) -> None:
        payload = await self._generate_json(
            'Here you go:\n```json\n{"products": []}\n```\nEnjoy!'
        )
        self.assertEqual(payload, {"products": []})

    async def test_chatter_around_array(self) -> None:
        payload = await self._generate_json(
            "Sure! [1, 2, {\"a\": 3}] Let me know if you need more."
        )
        self.assertEqual(payload, [1, 2, {"a": 3}])

    async def test_schema_validation(self) -> None:
        envelope = await self._generate_json(
            '[{"index": 0, "pros": ["Light"]}]', EnrichmentEnvelope
        )
        self.assertIsInstance(envelope, EnrichmentEnvelope)
        self.assertEqual(envelope.products[0]["index"], 0)

    async def test_schema_mismatch_is_malformed(self) -> None:
        with self.assertRaises(MalformedUpstreamPayload):
            await self._generate_json('{"unexpected": 1}', EnrichmentEnvelope)

    async def test_undecodable_reply_is_malformed(self) -> None:
        with self.assertRaises(MalformedUpstreamPayload):
            await self._generate_json("{'single': 'quotes'}")


class TestExtractJson(unittest.TestCase):

    def test_no_json_value(self) -> None:
        with self.assertRaises(MalformedUpstreamPayload):
            extract_json("I cannot help with that.")

    def test_unterminated(self) -> None:
        with self.assertRaises(MalformedUpstreamPayload):
            extract_json('{"products": [')

    def test_object_before_array(self) -> None:
        self.assertEqual(
            extract_json('{"items": [1]}'), {"items": [1]}
        )


@patch("shopwhiz.providers.base_provider.curl_requests.Session")
class TestFromConfig(unittest.TestCase):

    def test_primary_first(self, _session: MagicMock) -> None:
        broker = ProviderBroker.from_config(
            PipelineConfig(
                gemini_api_key="g",
                deepseek_api_key="d",
                primary_provider="deepseek",
            )
        )
        self.assertEqual(
            [r["name"] for r in broker.status()], ["deepseek", "gemini"]
        )

    def test_only_keyed_providers(self, _session: MagicMock) -> None:
        broker = ProviderBroker.from_config(
            PipelineConfig(gemini_api_key="g")
        )
        self.assertEqual([r["name"] for r in broker.status()], ["gemini"])

    def test_no_keys(self, _session: MagicMock) -> None:
        broker = ProviderBroker.from_config(PipelineConfig())
        self.assertFalse(broker.has_active_provider)
        self.assertEqual(broker.status(), [])


if __name__ == "__main__":
    unittest.main()
