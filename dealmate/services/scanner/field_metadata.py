"""Heuristic categorization, labeling and confidence scoring for analysis fields.

Rules are kept as ordered data so they can be tested apart from the walker.
Category families are evaluated first-match-wins in the order they appear in
``CATEGORY_RULES``.
"""

import re
from typing import Any, Dict, List, Pattern, Tuple

from dealmate.schemas.scanner import FieldCategory, ScannedField
from dealmate.services.scanner.values import (
    ValueKind,
    field_type_of,
    is_numeric_like,
    kind_of,
)
from dealmate.utils.logging import get_logger

LOGGER = get_logger(__name__)

UNKNOWN_LABEL = "Unknown Field"


def _compile(patterns: List[str]) -> List[Pattern[str]]:
    return [re.compile(pattern, re.IGNORECASE) for pattern in patterns]


class FieldMetadataService:
    """Assigns display metadata to keys found in AI analysis results."""

    CATEGORY_RULES: List[Tuple[FieldCategory, List[Pattern[str]]]] = [
        (FieldCategory.FINANCIAL, _compile([
            r"cagr|growth.*rate|compound.*annual",
            r"ebitda|earnings|profit.*margin",
            r"revenue|sales|income",
            r"margin|percentage|%",
            r"multiple|valuation",
            r"deal.*size|transaction.*value",
        ])),
        (FieldCategory.BUSINESS, _compile([
            r"business.*model|services",
            r"revenue.*stream|income.*source",
            r"client|customer",
            r"feature|capability|offering",
        ])),
        (FieldCategory.COMPETITIVE, _compile([
            r"market.*position|presence|share",
            r"strength|advantage|differentiator",
            r"weakness|challenge",
            r"competition|competitor",
        ])),
        (FieldCategory.RECOMMENDATION, _compile([
            r"recommendation|decision|action",
            r"thesis|rationale|reason",
            r"return|target|goal",
        ])),
    ]

    # Keys matching these earn the well-known-pattern confidence boost
    KNOWN_PATTERNS: List[Pattern[str]] = _compile([
        r"cagr|ebitda|revenue|margin",
        r"recommendation|decision|action",
        r"market|competitive|position",
    ])

    FIELD_LABELS: Dict[str, str] = {
        # Financial
        "CAGR": "Revenue Growth Rate",
        "cagr": "Growth Rate",
        "EBITDA_margin": "EBITDA Margin",
        "ebitda_margin": "Profit Margin",
        "revenue_multiple": "Revenue Multiple",
        "deal_size_estimate": "Deal Size",
        "2023_revenue": "2023 Revenue",
        "2024_budgeted_revenue": "2024 Projected Revenue",
        # Business
        "services": "Service Offerings",
        "revenue_streams": "Revenue Sources",
        "client_focus": "Target Market",
        "key_features": "Key Capabilities",
        # Competitive
        "market_presence": "Market Position",
        "differentiation": "Competitive Advantages",
        "awards": "Recognition & Awards",
        "technology_use": "Technology Advantage",
        # Recommendation
        "investment_thesis": "Investment Rationale",
        "target_return": "Return Target",
        "action": "Recommended Action",
        "decision": "Investment Decision",
    }

    BASE_CONFIDENCE = 0.5
    PATTERN_BOOST = 0.3
    STRUCTURED_VALUE_BOOST = 0.2

    @classmethod
    def categorize(cls, key: Any, value: Any) -> str:
        """Assign a category from the key name, falling back to the value's shape."""
        try:
            name = str(key).lower()
            for category, patterns in cls.CATEGORY_RULES:
                if any(pattern.search(name) for pattern in patterns):
                    return category.value
            return cls.categorize_by_value(value)
        except Exception as e:
            LOGGER.debug(f"Key-based categorization failed: {e}")
            return cls.categorize_by_value(value)

    @staticmethod
    def categorize_by_value(value: Any) -> str:
        try:
            if is_numeric_like(value):
                return FieldCategory.FINANCIAL.value
            kind = kind_of(value)
            if kind is ValueKind.ARRAY:
                return FieldCategory.LIST.value
            if kind is ValueKind.OBJECT:
                return FieldCategory.COMPLEX.value
        except Exception as e:
            LOGGER.debug(f"Value-based categorization failed: {e}")
        return FieldCategory.GENERAL.value

    @classmethod
    def generate_label(cls, key: Any, category: str) -> str:
        """Known display label for a key, else a humanized form of the key."""
        try:
            name = str(key)
            if name in cls.FIELD_LABELS:
                return cls.FIELD_LABELS[name]
            return cls.humanize(name)
        except Exception as e:
            LOGGER.debug(f"Label generation failed: {e}")
            return UNKNOWN_LABEL

    @staticmethod
    def humanize(name: str) -> str:
        """``revenue_cagr`` -> ``Revenue Cagr``, ``keyRisks`` -> ``Key Risks``."""
        spaced = re.sub(r"(?<=[a-z0-9])(?=[A-Z])", " ", name.replace("_", " "))
        words = spaced.split()
        return " ".join(word[:1].upper() + word[1:] for word in words)

    @classmethod
    def calculate_confidence(cls, key: Any, value: Any) -> float:
        confidence = cls.BASE_CONFIDENCE
        name = str(key)

        if any(pattern.search(name) for pattern in cls.KNOWN_PATTERNS):
            confidence += cls.PATTERN_BOOST

        if is_numeric_like(value):
            confidence += cls.STRUCTURED_VALUE_BOOST

        return min(round(confidence, 6), 1.0)

    @classmethod
    def describe_field(cls, key: Any, value: Any, path: str) -> ScannedField:
        """Build a childless field node for one key/value pair."""
        kind = kind_of(value)
        category = cls.categorize(key, value)
        return ScannedField(
            path=path,
            name=str(key),
            value=value,
            type=field_type_of(kind),
            category=category,
            suggested_label=cls.generate_label(key, category),
            confidence=cls.calculate_confidence(key, value),
            is_array=kind is ValueKind.ARRAY,
            is_object=kind is ValueKind.OBJECT,
        )


def categorize(key: Any, value: Any) -> str:
    return FieldMetadataService.categorize(key, value)


def label(key: Any, category: str) -> str:
    return FieldMetadataService.generate_label(key, category)
