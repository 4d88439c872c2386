"""SQLAlchemy models for the deal processing tables."""

import uuid
from datetime import datetime, timezone
from decimal import Decimal

from sqlalchemy import (
    JSON,
    TIMESTAMP,
    Boolean,
    Integer,
    Numeric,
    String,
    Text,
    Uuid,
)
from sqlalchemy.orm import Mapped, mapped_column

from dealmate.core.database import Base


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class ProcessingJob(Base):
    """Long-running analysis job for a deal, mirrored by the status views."""

    __tablename__ = "processing_jobs"

    id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4
    )
    deal_id: Mapped[uuid.UUID] = mapped_column(Uuid(as_uuid=True), nullable=False, index=True)
    document_id: Mapped[uuid.UUID | None] = mapped_column(Uuid(as_uuid=True), nullable=True)
    user_id: Mapped[uuid.UUID | None] = mapped_column(Uuid(as_uuid=True), nullable=True)
    job_type: Mapped[str] = mapped_column(
        String, nullable=False
    )  # cim_analysis | document_processing | excel_analysis | audio_transcription | memo_generation
    status: Mapped[str] = mapped_column(
        String, nullable=False, default="pending"
    )  # pending | processing | completed | error | failed | cancelled
    progress: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    current_step: Mapped[str | None] = mapped_column(
        String, nullable=True, default="validation"
    )  # validation | analysis | storage | complete | error
    agent_results: Mapped[dict | None] = mapped_column(JSON, nullable=True)
    error_message: Mapped[str | None] = mapped_column(Text, nullable=True)
    started_at: Mapped[datetime | None] = mapped_column(TIMESTAMP(timezone=True), nullable=True, default=utcnow)
    completed_at: Mapped[datetime | None] = mapped_column(TIMESTAMP(timezone=True), nullable=True)
    created_at: Mapped[datetime] = mapped_column(TIMESTAMP(timezone=True), default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(
        TIMESTAMP(timezone=True), default=utcnow, onupdate=utcnow
    )

    def to_dict(self) -> dict:
        """Row payload in the shape published to realtime subscribers."""
        return {
            "id": str(self.id),
            "deal_id": str(self.deal_id),
            "document_id": str(self.document_id) if self.document_id else None,
            "job_type": self.job_type,
            "status": self.status,
            "progress": self.progress,
            "current_step": self.current_step,
            "agent_results": self.agent_results or {},
            "error_message": self.error_message,
            "started_at": self.started_at.isoformat() if self.started_at else None,
            "completed_at": self.completed_at.isoformat() if self.completed_at else None,
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }


class CIMAnalysis(Base):
    """Structured analysis result written for a deal by the AI server pipeline."""

    __tablename__ = "cim_analysis"

    id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4
    )
    deal_id: Mapped[uuid.UUID] = mapped_column(Uuid(as_uuid=True), nullable=False, index=True)
    document_id: Mapped[uuid.UUID | None] = mapped_column(Uuid(as_uuid=True), nullable=True)
    investment_grade: Mapped[str] = mapped_column(String, nullable=False, default="unrated")
    executive_summary: Mapped[str | None] = mapped_column(Text, nullable=True)
    business_model: Mapped[dict | None] = mapped_column(JSON, nullable=True)
    financial_metrics: Mapped[dict | None] = mapped_column(JSON, nullable=True)
    competitive_position: Mapped[dict | None] = mapped_column(JSON, nullable=True)
    key_risks: Mapped[list | None] = mapped_column(JSON, nullable=True)
    investment_highlights: Mapped[list | None] = mapped_column(JSON, nullable=True)
    management_questions: Mapped[list | None] = mapped_column(JSON, nullable=True)
    recommendation: Mapped[dict | None] = mapped_column(JSON, nullable=True)
    raw_ai_response: Mapped[dict | None] = mapped_column(JSON, nullable=True)
    created_at: Mapped[datetime] = mapped_column(TIMESTAMP(timezone=True), default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(
        TIMESTAMP(timezone=True), default=utcnow, onupdate=utcnow
    )

    def to_dict(self) -> dict:
        return {
            "id": str(self.id),
            "deal_id": str(self.deal_id),
            "document_id": str(self.document_id) if self.document_id else None,
            "investment_grade": self.investment_grade,
            "executive_summary": self.executive_summary,
            "business_model": self.business_model,
            "financial_metrics": self.financial_metrics,
            "competitive_position": self.competitive_position,
            "key_risks": self.key_risks,
            "investment_highlights": self.investment_highlights,
            "management_questions": self.management_questions,
            "recommendation": self.recommendation,
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }


class AIModel(Base):
    """Model catalogue entry with per-token pricing."""

    __tablename__ = "ai_models"

    id: Mapped[str] = mapped_column(String, primary_key=True)
    name: Mapped[str] = mapped_column(String, nullable=False)
    provider: Mapped[str | None] = mapped_column(String, nullable=True)
    use_case: Mapped[str | None] = mapped_column(String, nullable=True)
    # USD per 1000 tokens
    cost_per_input_token: Mapped[Decimal] = mapped_column(Numeric(12, 6), nullable=False, default=0)
    cost_per_output_token: Mapped[Decimal] = mapped_column(Numeric(12, 6), nullable=False, default=0)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    created_at: Mapped[datetime] = mapped_column(TIMESTAMP(timezone=True), default=utcnow)


class ModelUsageLog(Base):
    """Per-call model usage and cost record."""

    __tablename__ = "model_usage_logs"

    id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4
    )
    deal_id: Mapped[uuid.UUID | None] = mapped_column(Uuid(as_uuid=True), nullable=True, index=True)
    document_id: Mapped[uuid.UUID | None] = mapped_column(Uuid(as_uuid=True), nullable=True)
    agent_name: Mapped[str | None] = mapped_column(String, nullable=True)
    model_id: Mapped[str] = mapped_column(String, nullable=False)
    use_case: Mapped[str] = mapped_column(String, nullable=False)
    input_tokens: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    output_tokens: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    total_tokens: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    cost_usd: Mapped[Decimal] = mapped_column(Numeric(12, 6), nullable=False, default=0)
    processing_time_ms: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    success: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    error_message: Mapped[str | None] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime] = mapped_column(TIMESTAMP(timezone=True), default=utcnow)
