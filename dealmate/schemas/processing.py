"""Schemas for processing status, error classification and model usage."""

from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field


class JobStatus(str, Enum):
    PENDING = "pending"
    PROCESSING = "processing"
    COMPLETED = "completed"
    ERROR = "error"
    FAILED = "failed"
    CANCELLED = "cancelled"


ACTIVE_JOB_STATUSES = (JobStatus.PENDING.value, JobStatus.PROCESSING.value)


class ProcessingStep(str, Enum):
    VALIDATION = "validation"
    ANALYSIS = "analysis"
    STORAGE = "storage"
    COMPLETE = "complete"
    ERROR = "error"


class ErrorType(str, Enum):
    NETWORK = "network"
    PARSING = "parsing"
    AUTHENTICATION = "authentication"
    VALIDATION = "validation"
    TIMEOUT = "timeout"
    UNKNOWN = "unknown"


class CIMError(BaseModel):
    """Classified processing failure."""

    type: ErrorType
    message: str
    agent: Optional[str] = None
    retryable: bool
    recovery_action: Optional[str] = None


class ErrorRecoveryState(BaseModel):
    """Retry bookkeeping for one processing session."""

    errors: List[CIMError] = Field(default_factory=list)
    retry_count: int = 0
    max_retries: int = 3
    is_recovering: bool = False


class ProcessingStatus(BaseModel):
    """Locally mirrored view of one deal's processing job."""

    is_processing: bool = False
    progress: int = 0
    current_step: str = ProcessingStep.VALIDATION.value
    agent_results: Dict[str, Any] = Field(default_factory=dict)
    error: Optional[str] = None
    job_id: Optional[str] = None


class ModelUsage(BaseModel):
    """Model usage reported by one agent."""

    agent: str
    model_id: str
    use_case: str
    input_tokens: int = 0
    output_tokens: int = 0
    processing_time_ms: int = 0
    success: bool = True
    error_message: Optional[str] = None


class ModelTrackingState(BaseModel):
    total_cost: float = 0.0
    agent_usage: Dict[str, List[ModelUsage]] = Field(default_factory=dict)
    is_tracking: bool = False
