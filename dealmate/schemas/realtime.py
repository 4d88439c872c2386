"""Row-change and status stream event schemas."""

from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, Optional

from pydantic import BaseModel, Field


class RowEventType(str, Enum):
    INSERT = "INSERT"
    UPDATE = "UPDATE"
    DELETE = "DELETE"


class RowChangeEvent(BaseModel):
    """Change notification for one row of a watched table."""

    table: str
    event_type: RowEventType
    new: Dict[str, Any] = Field(default_factory=dict)
    old: Dict[str, Any] = Field(default_factory=dict)

    @property
    def deal_id(self) -> Optional[str]:
        row = self.new or self.old
        value = row.get("deal_id")
        return str(value) if value is not None else None


class StreamEventType(str, Enum):
    STATUS = "processing:status"
    COMPLETED = "processing:completed"
    FAILED = "processing:failed"
    CANCELLED = "processing:cancelled"
    HEARTBEAT = "heartbeat"


class StatusStreamEvent(BaseModel):
    event_type: StreamEventType
    deal_id: str
    timestamp: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    data: Dict[str, Any]
