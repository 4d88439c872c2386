"""Tests for field categorization, labeling and confidence scoring."""

import pytest

from dealmate.services.scanner.field_metadata import (
    UNKNOWN_LABEL,
    FieldMetadataService,
    categorize,
    label,
)


class ExplodingKey:
    def __str__(self):
        raise RuntimeError("boom")

    def __repr__(self):
        raise RuntimeError("boom")


class TestCategorize:
    """Key patterns first, then the value-shape fallback ladder."""

    @pytest.mark.parametrize(
        "key,value,expected",
        [
            ("revenue_cagr", "15%", "financial"),
            ("market_position", "leader", "competitive"),
            ("random_key", {"a": 1}, "complex"),
            ("items", [1, 2, 3], "list"),
            ("business_model", "subscription", "business"),
            ("investment_thesis", "Platform play", "recommendation"),
            ("notes", "see appendix", "general"),
        ],
    )
    def test_examples(self, key, value, expected):
        assert categorize(key, value) == expected

    def test_financial_family_wins_over_business(self):
        # "revenue" is matched by the financial family before "revenue.*stream"
        assert categorize("revenue_streams", ["licensing"]) == "financial"

    def test_case_insensitive(self):
        assert categorize("EBITDA", 10) == "financial"
        assert categorize("Competitor_Landscape", "crowded") == "competitive"

    def test_risks_are_not_competitive(self):
        assert categorize("key_risks", ["supplier concentration"]) == "list"

    @pytest.mark.parametrize(
        "value,expected",
        [(42, "financial"), ("12%", "financial"), ([], "list"), ({}, "complex"), (None, "general"), (True, "general")],
    )
    def test_value_fallback(self, value, expected):
        assert categorize("zzz", value) == expected

    def test_never_throws_on_bad_key(self):
        assert categorize(ExplodingKey(), [1]) == "list"


class TestLabel:
    def test_known_overrides(self):
        assert label("cagr", "financial") == "Growth Rate"
        assert label("deal_size_estimate", "financial") == "Deal Size"
        assert label("investment_thesis", "recommendation") == "Investment Rationale"

    def test_humanize_fallback(self):
        assert label("revenue_cagr", "financial") == "Revenue Cagr"
        assert label("keyRisks", "list") == "Key Risks"
        assert label("customer_acquisitionCost", "business") == "Customer Acquisition Cost"

    def test_never_throws(self):
        assert label(ExplodingKey(), "general") == UNKNOWN_LABEL


class TestConfidence:
    def test_bounds(self):
        samples = [
            ("ebitda_margin", "22%"),
            ("notes", None),
            ("market_position", 5),
            ("recommendation", {"action": "Pursue"}),
            ("x", []),
        ]
        for key, value in samples:
            confidence = FieldMetadataService.calculate_confidence(key, value)
            assert 0.0 <= confidence <= 1.0

    def test_known_pattern_scores_higher(self):
        known = FieldMetadataService.calculate_confidence("ebitda_margin", "22%")
        unknown = FieldMetadataService.calculate_confidence("notes", "22%")
        assert known > unknown
        assert known == 1.0
        assert unknown == pytest.approx(0.7)

    def test_base_confidence(self):
        assert FieldMetadataService.calculate_confidence("notes", "text") == pytest.approx(0.5)


class TestDescribeField:
    def test_flags_and_type(self):
        field = FieldMetadataService.describe_field("key_risks", ["a", "b"], "analysis.key_risks")

        assert field.path == "analysis.key_risks"
        assert field.name == "key_risks"
        assert field.type == "array"
        assert field.is_array is True
        assert field.is_object is False
        assert field.children is None

    def test_boolean_is_not_a_number(self):
        field = FieldMetadataService.describe_field("is_recurring", True, "is_recurring")
        assert field.type == "boolean"
        assert field.category == "general"
