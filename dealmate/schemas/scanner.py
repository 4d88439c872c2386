"""Display models produced by the dynamic result scanner."""

from __future__ import annotations

from enum import Enum
from typing import Any, List, Optional

from pydantic import BaseModel, Field


class FieldType(str, Enum):
    STRING = "string"
    NUMBER = "number"
    BOOLEAN = "boolean"
    ARRAY = "array"
    OBJECT = "object"


class FieldCategory(str, Enum):
    FINANCIAL = "financial"
    BUSINESS = "business"
    COMPETITIVE = "competitive"
    RECOMMENDATION = "recommendation"
    LIST = "list"
    COMPLEX = "complex"
    GENERAL = "general"


class ScannedField(BaseModel):
    """One key/value pair discovered while walking an analysis result."""

    path: str = Field(..., description="Dot-delimited address from the result root")
    name: str = Field(..., description="Raw key name at this node")
    value: Any = Field(None, description="Original value")
    type: FieldType
    category: str = Field(..., description="Category assigned by the categorizer")
    suggested_label: str
    confidence: float = Field(..., ge=0.0, le=1.0)
    is_array: bool = False
    is_object: bool = False
    children: Optional[List[ScannedField]] = None


class DataSection(BaseModel):
    """Prioritized display bucket of fields sharing a category."""

    category: str
    title: str
    fields: List[ScannedField] = Field(default_factory=list)
    priority: int


class SectionLayout(BaseModel):
    """Split of a section's fields into the metrics grid and dedicated renderers."""

    metrics: List[ScannedField] = Field(default_factory=list)
    complex: List[ScannedField] = Field(default_factory=list)


ScannedField.model_rebuild()
