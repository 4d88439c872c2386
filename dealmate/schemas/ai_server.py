"""Response envelope for AI server calls."""

from typing import Any, Optional

from pydantic import BaseModel


class AIResponse(BaseModel):
    success: bool
    data: Optional[Any] = None
    error: Optional[str] = None
    processing_time: Optional[float] = None
