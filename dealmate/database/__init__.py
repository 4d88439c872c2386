"""Database module for SQLAlchemy models."""

from dealmate.database.models import AIModel, CIMAnalysis, ModelUsageLog, ProcessingJob

__all__ = [
    "AIModel",
    "CIMAnalysis",
    "ModelUsageLog",
    "ProcessingJob",
]
