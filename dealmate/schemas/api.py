"""Request and response payloads for the HTTP API."""

from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field

from dealmate.schemas.processing import ProcessingStatus
from dealmate.schemas.scanner import DataSection, ScannedField


class ScanRequest(BaseModel):
    data: Dict[str, Any] = Field(..., description="Analysis result to scan")
    base_path: str = Field("", description="Path prefix for discovered fields")


class ScanResponse(BaseModel):
    fields: List[ScannedField]
    sections: List[DataSection]


class ProcessingStatusResponse(BaseModel):
    deal_id: str
    status: ProcessingStatus


class StopProcessingResponse(BaseModel):
    deal_id: str
    cancelled_jobs: List[str] = Field(default_factory=list)
    status: ProcessingStatus


class HealthCheckResponse(BaseModel):
    status: str = Field(..., description="Health check status")
    version: str = Field(..., description="Running application version")
    service: str = Field(..., description="Service name")
    database: str = Field(..., description="Database health")
    ai_server: str = Field(..., description="AI server reachability")
    ai_server_url: Optional[str] = None


class DocumentSubmissionResponse(BaseModel):
    deal_id: str
    job_id: str = Field(..., description="Processing job tracking the upload")
    file_name: str
    classification: str = Field(..., description="cim, financial, audio, legal, document or other")
    job_type: str
    status: str


class MemoRequest(BaseModel):
    sections: Optional[List[str]] = Field(None, description="Memo sections, defaults to the standard set")
