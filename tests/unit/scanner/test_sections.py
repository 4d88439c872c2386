"""Tests for section grouping and display splitting."""

from dealmate.schemas.scanner import DataSection, FieldType, ScannedField
from dealmate.services.scanner.result_scanner import ResultScanner
from dealmate.services.scanner.sections import (
    UNKNOWN_SECTION_PRIORITY,
    group_into_sections,
    split_for_display,
)


def make_field(name: str, category: str, confidence: float = 0.5, value=None, **kwargs) -> ScannedField:
    return ScannedField(
        path=name,
        name=name,
        value=value if value is not None else "v",
        type=kwargs.pop("type", FieldType.STRING),
        category=category,
        suggested_label=name,
        confidence=confidence,
        **kwargs,
    )


class TestGroupIntoSections:
    def test_sections_follow_priority_not_discovery_order(self):
        fields = [
            make_field("notes", "general"),
            make_field("revenue", "financial"),
            make_field("services", "business"),
        ]

        sections = group_into_sections(fields)

        assert [s.category for s in sections] == ["financial", "business", "general"]
        assert [s.title for s in sections] == ["Financial Metrics", "Business Model", "Additional Information"]

    def test_fields_sorted_by_confidence_with_stable_ties(self):
        fields = [
            make_field("a", "financial", 0.5),
            make_field("b", "financial", 0.8),
            make_field("c", "financial", 0.5),
            make_field("d", "financial", 0.8),
        ]

        [section] = group_into_sections(fields)

        assert [f.name for f in section.fields] == ["b", "d", "a", "c"]

    def test_unknown_category_sorts_last_with_title(self):
        fields = [make_field("x", "esg_metrics"), make_field("y", "general")]

        sections = group_into_sections(fields)

        assert [s.title for s in sections] == ["Additional Information", "Esg_metrics"]
        assert sections[-1].priority == UNKNOWN_SECTION_PRIORITY

    def test_empty_input(self):
        assert group_into_sections([]) == []

    def test_never_throws(self):
        assert group_into_sections([object()]) == []

    def test_max_fields_truncates(self):
        fields = [make_field(f"f{i}", "general") for i in range(10)]

        [section] = group_into_sections(fields, max_fields=3)

        assert len(section.fields) == 3

    def test_end_to_end_analysis(self, sample_analysis):
        fields = ResultScanner().scan(sample_analysis)

        sections = group_into_sections(fields)
        by_title = {s.title: s for s in sections}

        assert [s.title for s in sections] == [
            "Financial Metrics",
            "Investment Recommendation",
            "Key Information",
        ]

        financial = by_title["Financial Metrics"].fields
        assert {f.name for f in financial} == {"revenue_cagr", "ebitda_margin"}
        assert all(f.confidence > 0.7 for f in financial)
        assert financial[0].path == "financial_metrics.revenue_cagr"

        [risks] = by_title["Key Information"].fields
        assert risks.is_array

        [recommendation] = by_title["Investment Recommendation"].fields
        assert recommendation.is_object

    def test_nested_containers_are_not_expanded(self):
        fields = ResultScanner().scan({"details": {"segments": {"a": 1}}})

        [section] = group_into_sections(fields)

        assert section.title == "Detailed Analysis"
        assert section.fields[0].name == "details"


class TestSplitForDisplay:
    def test_split(self):
        section = DataSection(
            category="general",
            title="Additional Information",
            priority=7,
            fields=[
                make_field("short", "general", value="ok"),
                make_field("long", "general", value="x" * 101),
                make_field("items", "general", value=[1], type=FieldType.ARRAY, is_array=True),
                make_field("count", "general", value=3, type=FieldType.NUMBER),
            ],
        )

        layout = split_for_display(section)

        assert [f.name for f in layout.metrics] == ["short", "count"]
        assert [f.name for f in layout.complex] == ["long", "items"]
