"""Dynamic result scanning and categorization."""

from dealmate.services.scanner.field_metadata import FieldMetadataService, categorize, label
from dealmate.services.scanner.result_scanner import ResultScanner, get_result_scanner, scan
from dealmate.services.scanner.sections import group_into_sections, split_for_display

__all__ = [
    "FieldMetadataService",
    "ResultScanner",
    "categorize",
    "get_result_scanner",
    "group_into_sections",
    "label",
    "scan",
    "split_for_display",
]
