# tests/test_settings.py

"""Tests for Settings constants and the PipelineConfig object."""

import json
import os
import unittest
from unittest.mock import patch

from shopwhiz.config.settings import PipelineConfig, Settings


class TestSettings(unittest.TestCase):
    """Verify Settings constants and the retailer registry."""

    def test_request_timeout_is_positive_int(self) -> None:
        """REQUEST_TIMEOUT must be a positive integer."""
        self.assertIsInstance(Settings.REQUEST_TIMEOUT, int)
        self.assertGreater(Settings.REQUEST_TIMEOUT, 0)

    def test_max_retries_is_positive(self) -> None:
        """MAX_RETRIES must be >= 1."""
        self.assertGreaterEqual(Settings.MAX_RETRIES, 1)

    def test_pipeline_timeouts_are_bounded(self) -> None:
        """Every network-bound stage carries a positive timeout."""
        for name in (
            "SOURCE_TIMEOUT", "DETAIL_TIMEOUT", "PROVIDER_TIMEOUT",
        ):
            with self.subTest(name=name):
                self.assertGreater(getattr(Settings, name), 0)

    def test_provider_cooldown_is_one_hour(self) -> None:
        self.assertEqual(Settings.PROVIDER_COOLDOWN_SECONDS, 3600)

    def test_retailer_ids_are_unique(self) -> None:
        """No duplicate retailer ids."""
        ids = [r["id"] for r in Settings.LIGHTWEIGHT_RETAILERS]
        self.assertEqual(len(ids), len(set(ids)))

    def test_each_retailer_has_required_keys(self) -> None:
        for retailer in Settings.LIGHTWEIGHT_RETAILERS:
            with self.subTest(retailer=retailer.get("id", "?")):
                for key in ("id", "label", "homepage", "search_url"):
                    self.assertIn(key, retailer)
                self.assertIn("{query}", retailer["search_url"])

    def test_every_retailer_has_selectors(self) -> None:
        """selectors.json covers each retailer's essential fields."""
        with open(Settings.SELECTORS_PATH, encoding="utf-8") as f:
            selectors = json.load(f)
        for retailer in Settings.LIGHTWEIGHT_RETAILERS:
            with self.subTest(retailer=retailer["id"]):
                entry = selectors[retailer["id"]]
                for field_name in ("product_card", "title", "price"):
                    self.assertTrue(entry[field_name])


class TestPipelineConfig(unittest.TestCase):
    """PipelineConfig.from_env reads credentials once."""

    @patch.dict(
        os.environ,
        {
            "SERP_API_KEY": "serp-123",
            "GEMINI_API_KEY": " gem-456 ",
            "DEEPSEEK_API_KEY": "ds-789",
            "SHOPWHIZ_PRIMARY_PROVIDER": "DeepSeek",
            "SHOPWHIZ_HYDRATE_DETAILS": "false",
        },
        clear=True,
    )
    def test_reads_environment(self) -> None:
        config = PipelineConfig.from_env()
        self.assertEqual(config.serp_api_key, "serp-123")
        self.assertEqual(config.gemini_api_key, "gem-456")
        self.assertEqual(config.deepseek_api_key, "ds-789")
        self.assertEqual(config.primary_provider, "deepseek")
        self.assertFalse(config.hydrate_details)
        self.assertTrue(config.has_structured_api)

    @patch.dict(
        os.environ,
        {
            "GEMINI_API_KEY": "your_gemini_api_key_here",
            "SERP_API_KEY": "   ",
        },
        clear=True,
    )
    def test_placeholder_and_blank_keys_count_as_unset(self) -> None:
        config = PipelineConfig.from_env()
        self.assertEqual(config.gemini_api_key, "")
        self.assertEqual(config.serp_api_key, "")
        self.assertFalse(config.has_structured_api)

    @patch.dict(os.environ, {}, clear=True)
    def test_defaults(self) -> None:
        config = PipelineConfig.from_env()
        self.assertEqual(config.primary_provider, "gemini")
        self.assertTrue(config.hydrate_details)
        self.assertEqual(
            config.provider_cooldown, Settings.PROVIDER_COOLDOWN_SECONDS
        )


if __name__ == "__main__":
    unittest.main()
