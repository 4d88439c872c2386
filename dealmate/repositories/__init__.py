from dealmate.repositories.cim_analysis_repository import CIMAnalysisRepository
from dealmate.repositories.model_usage_repository import ModelUsageRepository
from dealmate.repositories.processing_job_repository import ProcessingJobRepository

__all__ = ["CIMAnalysisRepository", "ModelUsageRepository", "ProcessingJobRepository"]
