from dealmate.services.processing.error_recovery import ErrorRecovery, classify_error
from dealmate.services.processing.job_service import AnalysisService, ProcessingJobService
from dealmate.services.processing.model_tracking import ModelUsageTracker
from dealmate.services.processing.reconciler import StatusReconciler
from dealmate.services.processing.status_tracker import ProcessingStatusTracker

__all__ = [
    "AnalysisService",
    "ErrorRecovery",
    "ModelUsageTracker",
    "ProcessingJobService",
    "ProcessingStatusTracker",
    "StatusReconciler",
    "classify_error",
]
