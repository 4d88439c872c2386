"""Closed set of value kinds seen when walking untyped analysis JSON."""

from collections.abc import Mapping
from decimal import Decimal
from enum import Enum
from typing import Any

from dealmate.schemas.scanner import FieldType


class ValueKind(str, Enum):
    NULL = "null"
    BOOLEAN = "boolean"
    NUMBER = "number"
    STRING = "string"
    ARRAY = "array"
    OBJECT = "object"


_FIELD_TYPES = {
    ValueKind.NULL: FieldType.STRING,
    ValueKind.BOOLEAN: FieldType.BOOLEAN,
    ValueKind.NUMBER: FieldType.NUMBER,
    ValueKind.STRING: FieldType.STRING,
    ValueKind.ARRAY: FieldType.ARRAY,
    ValueKind.OBJECT: FieldType.OBJECT,
}


def kind_of(value: Any) -> ValueKind:
    """Tag a decoded JSON value with its kind.

    ``bool`` is checked before numbers since it subclasses ``int``. Values
    outside the JSON model (dates, enums, ...) are treated as strings.
    """
    if value is None:
        return ValueKind.NULL
    if isinstance(value, bool):
        return ValueKind.BOOLEAN
    if isinstance(value, (int, float, Decimal)):
        return ValueKind.NUMBER
    if isinstance(value, str):
        return ValueKind.STRING
    if isinstance(value, Mapping):
        return ValueKind.OBJECT
    if isinstance(value, (list, tuple)):
        return ValueKind.ARRAY
    return ValueKind.STRING


def field_type_of(kind: ValueKind) -> FieldType:
    return _FIELD_TYPES[kind]


def is_percent_like(value: Any) -> bool:
    return isinstance(value, str) and "%" in value


def is_numeric_like(value: Any) -> bool:
    """Numbers and percent-formatted strings."""
    return kind_of(value) is ValueKind.NUMBER or is_percent_like(value)


def is_simple_object(value: Any) -> bool:
    """True when every direct value of a mapping is a primitive or null."""
    if not isinstance(value, Mapping):
        return True
    return all(
        kind_of(item) not in (ValueKind.ARRAY, ValueKind.OBJECT)
        for item in value.values()
    )
