# tests/test_payloads.py

"""Tests for the generated-payload validation schemas."""

import unittest

from pydantic import ValidationError

from shopwhiz.models.payloads import (
    EnrichmentEnvelope,
    EnrichmentItem,
    ReviewPayload,
    SyntheticCatalog,
    SyntheticListing,
)


class TestEnrichmentItem(unittest.TestCase):

    def test_camel_case_aliases(self) -> None:
        item = EnrichmentItem.model_validate({
            "index": 2,
            "category": "laptop",
            "sentimentScore": 82,
            "reviewSummary": "Solid",
            "youtubeVideoId": "dQw4w9WgXcQ",
            "sampleReviews": [{"rating": 4, "text": "Nice"}],
        })
        self.assertEqual(item.index, 2)
        self.assertEqual(item.sentiment_score, 82)
        self.assertEqual(item.review_summary, "Solid")
        self.assertEqual(item.video_id, "dQw4w9WgXcQ")
        self.assertEqual(item.sample_reviews[0].text, "Nice")

    def test_negative_index_rejected(self) -> None:
        with self.assertRaises(ValidationError):
            EnrichmentItem.model_validate({"index": -1})

    def test_missing_index_rejected(self) -> None:
        with self.assertRaises(ValidationError):
            EnrichmentItem.model_validate({"pros": ["Fast"]})

    def test_unknown_sentiment_becomes_none(self) -> None:
        item = EnrichmentItem.model_validate(
            {"index": 0, "sentiment": "positive/neutral/negative"}
        )
        self.assertIsNone(item.sentiment)

    def test_sentiment_is_lowercased(self) -> None:
        item = EnrichmentItem.model_validate(
            {"index": 0, "sentiment": " Positive "}
        )
        self.assertEqual(item.sentiment, "positive")

    def test_fractional_score_is_scaled(self) -> None:
        item = EnrichmentItem.model_validate(
            {"index": 0, "sentimentScore": 0.8}
        )
        self.assertEqual(item.sentiment_score, 80)

    def test_score_is_clamped(self) -> None:
        item = EnrichmentItem.model_validate(
            {"index": 0, "sentimentScore": 140}
        )
        self.assertEqual(item.sentiment_score, 100)

    def test_non_numeric_score_rejected(self) -> None:
        for value in ([80], {"value": 80}, "high", True):
            with self.subTest(value=value):
                with self.assertRaises(ValidationError):
                    EnrichmentItem.model_validate(
                        {"index": 0, "sentimentScore": value}
                    )

    def test_null_score_is_none(self) -> None:
        item = EnrichmentItem.model_validate(
            {"index": 0, "sentimentScore": None}
        )
        self.assertIsNone(item.sentiment_score)

    def test_malformed_video_id_dropped(self) -> None:
        item = EnrichmentItem.model_validate(
            {"index": 0, "youtubeVideoId": "not a video"}
        )
        self.assertIsNone(item.video_id)

    def test_string_lists_are_cleaned(self) -> None:
        item = EnrichmentItem.model_validate(
            {"index": 0, "pros": ["Fast", " ", 5], "cons": "Heavy"}
        )
        self.assertEqual(item.pros, ["Fast", "5"])
        self.assertEqual(item.cons, ["Heavy"])

    def test_specification_values_become_strings(self) -> None:
        item = EnrichmentItem.model_validate(
            {"index": 0, "specifications": {"RAM": 16, "Port": None}}
        )
        self.assertEqual(item.specifications, {"RAM": "16"})

    def test_ground_truth_keys_are_ignored(self) -> None:
        item = EnrichmentItem.model_validate(
            {"index": 0, "price": 1, "name": "Other"}
        )
        self.assertFalse(hasattr(item, "price"))


class TestReviewPayload(unittest.TestCase):

    def test_rating_clamped(self) -> None:
        self.assertEqual(
            ReviewPayload.model_validate({"rating": 9, "text": "x"}).rating,
            5.0,
        )

    def test_empty_text_rejected(self) -> None:
        with self.assertRaises(ValidationError):
            ReviewPayload.model_validate({"rating": 4, "text": ""})


class TestEnvelopes(unittest.TestCase):

    def test_enrichment_envelope_accepts_bare_list(self) -> None:
        envelope = EnrichmentEnvelope.model_validate([{"index": 0}])
        self.assertEqual(envelope.products, [{"index": 0}])

    def test_enrichment_envelope_requires_products(self) -> None:
        with self.assertRaises(ValidationError):
            EnrichmentEnvelope.model_validate({"items": "nope"})

    def test_synthetic_catalog_accepts_known_keys(self) -> None:
        for key in ("products", "items", "results"):
            with self.subTest(key=key):
                catalog = SyntheticCatalog.model_validate(
                    {key: [{"name": "A", "price": 1}]}
                )
                self.assertEqual(len(catalog.listings), 1)

    def test_synthetic_catalog_accepts_bare_list(self) -> None:
        catalog = SyntheticCatalog.model_validate([{}, {}])
        self.assertEqual(len(catalog.listings), 2)


class TestSyntheticListing(unittest.TestCase):

    def test_valid_listing(self) -> None:
        listing = SyntheticListing.model_validate({
            "name": " Boat Airdopes 141 ",
            "price": 1299,
            "originalPrice": 0,
            "reviewCount": "431",
            "rating": 6,
            "inStock": False,
        })
        self.assertEqual(listing.name, "Boat Airdopes 141")
        self.assertIsNone(listing.original_price)
        self.assertEqual(listing.review_count, 431)
        self.assertEqual(listing.rating, 5.0)
        self.assertFalse(listing.in_stock)
        self.assertEqual(listing.brand, "Unknown")

    def test_non_positive_price_rejected(self) -> None:
        with self.assertRaises(ValidationError):
            SyntheticListing.model_validate({"name": "A", "price": 0})

    def test_empty_name_rejected(self) -> None:
        with self.assertRaises(ValidationError):
            SyntheticListing.model_validate({"name": "  ", "price": 10})

    def test_null_rating_and_review_count_use_defaults(self) -> None:
        listing = SyntheticListing.model_validate({
            "name": "Boat Airdopes 141",
            "price": 1299,
            "rating": None,
            "reviewCount": None,
        })
        self.assertEqual(listing.rating, 4.0)
        self.assertEqual(listing.review_count, 100)

    def test_non_numeric_fields_rejected(self) -> None:
        for field, value in (
            ("rating", [4.5]),
            ("reviewCount", {"count": 10}),
            ("reviewCount", "Infinity"),
            ("originalPrice", ["1999"]),
        ):
            with self.subTest(field=field, value=value):
                with self.assertRaises(ValidationError):
                    SyntheticListing.model_validate(
                        {"name": "A", "price": 10, field: value}
                    )


if __name__ == "__main__":
    unittest.main()
