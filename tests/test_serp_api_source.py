# tests/test_serp_api_source.py

"""Tests for the SerpApi Google Shopping source using mocked responses."""

import json
import unittest
from pathlib import Path
from typing import Any
from unittest.mock import MagicMock, patch

from shopwhiz.filters.query_intent import QueryIntent
from shopwhiz.models.product import Source
from shopwhiz.sources.serp_api_source import SerpApiSource

FIXTURES_DIR = Path(__file__).parent / "fixtures"


def _make_mock_response(data: Any, status: int = 200) -> MagicMock:
    mock_resp = MagicMock()
    mock_resp.status_code = status
    mock_resp.json.return_value = data
    mock_resp.text = json.dumps(data)
    return mock_resp


def _fixture() -> dict[str, Any]:
    with open(FIXTURES_DIR / "serp_shopping.json", encoding="utf-8") as f:
        data: dict[str, Any] = json.load(f)
    return data


class TestSerpApiSource(unittest.TestCase):
    """Field parsing, price bounds and failure handling."""

    def setUp(self) -> None:
        patcher = patch("shopwhiz.sources.base_source.curl_requests.Session")
        self.mock_session_cls = patcher.start()
        self.addCleanup(patcher.stop)
        self.mock_session = MagicMock()
        self.mock_session_cls.return_value = self.mock_session
        self.source = SerpApiSource("test-key")
        self.intent = QueryIntent(query_text="apple watch")

    def test_fetch_parses_fixture(self) -> None:
        self.mock_session.get.return_value = _make_mock_response(_fixture())
        drafts = self.source.fetch("apple watch", self.intent)

        # Blank title and unparseable price are dropped
        self.assertEqual(len(drafts), 2)
        self.assertTrue(
            all(d.source == Source.GOOGLE_SHOPPING for d in drafts)
        )

    def test_first_result_fields(self) -> None:
        self.mock_session.get.return_value = _make_mock_response(_fixture())
        se = self.source.fetch("apple watch", self.intent)[0]

        self.assertEqual(se.title, "Apple Watch SE (2nd Gen) GPS 40mm")
        self.assertEqual(se.price, 24900.0)
        self.assertEqual(se.original_price, 29900.0)
        self.assertEqual(se.rating, 4.6)
        self.assertEqual(se.review_count, 1832)
        self.assertEqual(se.brand, "Apple")
        self.assertEqual(se.seller, "Croma")
        self.assertEqual(se.shipping, "Free delivery")
        self.assertEqual(
            se.url, "https://www.google.com/shopping/product/111"
        )
        self.assertTrue(se.image.endswith("a.jpg"))

    def test_fallback_keys(self) -> None:
        self.mock_session.get.return_value = _make_mock_response(_fixture())
        s9 = self.source.fetch("apple watch", self.intent)[1]

        self.assertEqual(s9.price, 41900.0)
        self.assertIsNone(s9.original_price)
        self.assertEqual(s9.rating, 4.8)
        self.assertEqual(s9.review_count, 2100)
        self.assertEqual(
            s9.url, "https://www.example-store.in/apple-watch-series-9"
        )
        self.assertEqual(s9.shipping, "")

    def test_request_params(self) -> None:
        self.mock_session.get.return_value = _make_mock_response(
            {"shopping_results": []}
        )
        intent = QueryIntent(
            query_text="apple watch", min_price=20000, max_price=45000
        )
        self.source.fetch("apple watch", intent)

        params = self.mock_session.get.call_args.kwargs["params"]
        self.assertEqual(params["engine"], "google_shopping")
        self.assertEqual(params["q"], "apple watch")
        self.assertEqual(params["api_key"], "test-key")
        self.assertEqual(params["gl"], "in")
        self.assertEqual(
            params["tbs"], "mr:1,price:1,ppr_min:20000,ppr_max:45000"
        )

    def test_no_price_bounds_omits_tbs(self) -> None:
        params = self.source._build_params("apple watch", self.intent)
        self.assertNotIn("tbs", params)

    def test_results_capped_per_source(self) -> None:
        results = [
            {"title": f"Apple Watch variant {i}", "extracted_price": 100 + i}
            for i in range(30)
        ]
        self.mock_session.get.return_value = _make_mock_response(
            {"shopping_results": results}
        )
        drafts = self.source.fetch("apple watch", self.intent)
        self.assertEqual(
            len(drafts), self.source.settings.MAX_RESULTS_PER_SOURCE
        )

    def test_api_error_payload_returns_empty(self) -> None:
        self.mock_session.get.return_value = _make_mock_response(
            {"error": "Invalid API key."}
        )
        self.assertEqual(self.source.fetch("apple watch", self.intent), [])

    def test_http_failure_returns_empty(self) -> None:
        self.mock_session.get.return_value = _make_mock_response({}, 500)
        self.assertEqual(self.source.fetch("apple watch", self.intent), [])

    def test_malformed_body_returns_empty(self) -> None:
        resp = MagicMock()
        resp.status_code = 200
        resp.text = "{not json"
        self.mock_session.get.return_value = resp
        self.assertEqual(self.source.fetch("apple watch", self.intent), [])

    def test_missing_key_skips_request(self) -> None:
        source = SerpApiSource("")
        self.assertEqual(source.fetch("apple watch", self.intent), [])
        self.mock_session.get.assert_not_called()


if __name__ == "__main__":
    unittest.main()
