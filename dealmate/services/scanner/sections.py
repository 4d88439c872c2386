"""Grouping of scanned fields into prioritized display sections."""

from collections.abc import Mapping
from typing import Dict, Iterable, Iterator, List, Optional, Tuple

from dealmate.schemas.scanner import DataSection, FieldCategory, ScannedField, SectionLayout
from dealmate.services.scanner.field_metadata import FieldMetadataService
from dealmate.services.scanner.values import is_simple_object
from dealmate.utils.logging import get_logger

LOGGER = get_logger(__name__)

SECTION_CONFIGS: Dict[str, Tuple[str, int]] = {
    FieldCategory.FINANCIAL.value: ("Financial Metrics", 1),
    FieldCategory.BUSINESS.value: ("Business Model", 2),
    FieldCategory.COMPETITIVE.value: ("Competitive Position", 3),
    FieldCategory.RECOMMENDATION.value: ("Investment Recommendation", 4),
    FieldCategory.LIST.value: ("Key Information", 5),
    FieldCategory.COMPLEX.value: ("Detailed Analysis", 6),
    FieldCategory.GENERAL.value: ("Additional Information", 7),
}

UNKNOWN_SECTION_PRIORITY = 999

# Strings longer than this get the text renderer instead of the metrics grid
LONG_TEXT_THRESHOLD = 100


def section_title(category: str) -> str:
    if category in SECTION_CONFIGS:
        return SECTION_CONFIGS[category][0]
    return category[:1].upper() + category[1:]


def section_priority(category: str) -> int:
    if category in SECTION_CONFIGS:
        return SECTION_CONFIGS[category][1]
    return UNKNOWN_SECTION_PRIORITY


def _is_flat_container(field: ScannedField) -> bool:
    """An unrecognized object whose members are all scalars, e.g. ``financial_metrics``."""
    return (
        field.category == FieldCategory.COMPLEX.value
        and field.is_object
        and not field.children
        and isinstance(field.value, Mapping)
        and len(field.value) > 0
        and is_simple_object(field.value)
    )


def _expand_flat_containers(fields: Iterable[ScannedField]) -> Iterator[ScannedField]:
    """Surface members of flat record containers in their own categories."""
    for field in fields:
        if not _is_flat_container(field):
            yield field
            continue

        for key, value in field.value.items():
            try:
                yield FieldMetadataService.describe_field(key, value, f"{field.path}.{key}")
            except Exception as e:
                LOGGER.warning(f"Error expanding field {field.path}.{key}: {e}")


def group_into_sections(
    fields: List[ScannedField],
    max_fields: Optional[int] = None,
) -> List[DataSection]:
    """Bucket fields by category and order them for display.

    Fields inside a section are ordered by descending confidence with ties in
    discovery order; sections follow the fixed category priority, unknown
    categories last.
    """
    try:
        buckets: Dict[str, List[ScannedField]] = {}
        for index, field in enumerate(_expand_flat_containers(fields)):
            if max_fields is not None and index >= max_fields:
                break
            buckets.setdefault(field.category, []).append(field)

        sections = [
            DataSection(
                category=category,
                title=section_title(category),
                fields=sorted(bucket, key=lambda f: -f.confidence),
                priority=section_priority(category),
            )
            for category, bucket in buckets.items()
        ]
        return sorted(sections, key=lambda section: section.priority)
    except Exception as e:
        LOGGER.error(f"Error grouping sections: {e}", exc_info=True)
        return []


def is_metric_field(field: ScannedField) -> bool:
    if field.is_array or field.is_object:
        return False
    return not (isinstance(field.value, str) and len(field.value) > LONG_TEXT_THRESHOLD)


def split_for_display(section: DataSection) -> SectionLayout:
    """Separate metrics-grid fields from fields needing dedicated renderers."""
    layout = SectionLayout()
    for field in section.fields:
        if is_metric_field(field):
            layout.metrics.append(field)
        else:
            layout.complex.append(field)
    return layout
