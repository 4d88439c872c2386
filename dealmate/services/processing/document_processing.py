"""Runs an uploaded deal document through the AI server.

A submission classifies the file, creates its processing job and detaches the
AI call. Progress, analysis results and model usage are written through the
job and analysis services so every status view sees the same events.
"""

from collections.abc import Mapping
from typing import Any, Dict, Optional
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from dealmate.core.config import settings
from dealmate.core.database import async_session_maker
from dealmate.core.exceptions import ValidationError
from dealmate.schemas.processing import JobStatus, ModelUsage, ProcessingStatus, ProcessingStep
from dealmate.services.ai_server_client import AIServerClient, get_processing_method
from dealmate.services.document_classifier import classify_document
from dealmate.services.processing.job_service import AnalysisService, ProcessingJobService
from dealmate.services.processing.model_tracking import ModelUsageTracker
from dealmate.services.processing.status_tracker import ProcessingStatusTracker
from dealmate.services.realtime import RealtimeHub, get_realtime_hub
from dealmate.utils.logging import get_logger
from dealmate.utils.tasks import spawn_logged

LOGGER = get_logger(__name__)

ANALYSIS_FIELDS = (
    "investment_grade",
    "executive_summary",
    "business_model",
    "financial_metrics",
    "competitive_position",
    "key_risks",
    "investment_highlights",
    "management_questions",
    "recommendation",
)

ANALYSIS_STARTED_PROGRESS = 10
STORAGE_PROGRESS = 80


def job_type_for(classification: str) -> str:
    """CIMs feed the deal analysis job; everything else gets its own job type."""
    if classification == "cim":
        return settings.processing.job_type
    return f"{classification}_processing"


def analysis_fields(data: Mapping) -> Dict[str, Any]:
    """Pick the stored analysis columns out of an AI server result."""
    payload = data.get("analysis") if isinstance(data.get("analysis"), Mapping) else data
    fields = {key: payload[key] for key in ANALYSIS_FIELDS if payload.get(key) is not None}
    fields["raw_ai_response"] = dict(data)
    return fields


class DocumentProcessingService:
    """Submits deal documents to the AI server and records the outcome.

    Args:
        ai_client: Client for the AI server
        session_factory: Factory for the units of work the service opens
        hub: Realtime hub that receives the job and analysis events
    """

    def __init__(
        self,
        ai_client: AIServerClient,
        session_factory: async_sessionmaker[AsyncSession] = async_session_maker,
        hub: Optional[RealtimeHub] = None,
    ):
        self.ai_client = ai_client
        self.session_factory = session_factory
        self.hub = hub or get_realtime_hub()

    async def submit(
        self,
        deal_id: str,
        file_name: str,
        content: bytes,
        content_type: Optional[str] = None,
    ) -> Dict[str, Any]:
        """Create the processing job and start the AI call in the background.

        Raises:
            ValidationError: Empty upload or a file type the AI server cannot handle
        """
        if not content:
            raise ValidationError(f"Uploaded file {file_name} is empty")
        if get_processing_method(file_name) == "unknown":
            raise ValidationError(f"Unsupported file type: {file_name}")

        classification = classify_document(file_name, content_type or "")
        job_type = job_type_for(classification)

        async with self.session_factory() as session:
            job = await ProcessingJobService(session, self.hub).create_job(deal_id, job_type=job_type)

        spawn_logged(
            self.process(job.id, deal_id, file_name, content, job_type),
            name=f"process:{job.id}",
        )
        LOGGER.info(
            f"Submitted {file_name} for processing",
            extra={"deal_id": str(deal_id), "job_id": str(job.id), "classification": classification},
        )
        return {
            "deal_id": str(deal_id),
            "job_id": str(job.id),
            "file_name": file_name,
            "classification": classification,
            "job_type": job_type,
            "status": job.status,
        }

    async def _record_usage(
        self,
        usage: ModelUsage,
        deal_id: Optional[str] = None,
        document_id: Optional[str] = None,
    ):
        # Usage is recorded from detached tasks, so each record gets its own session
        async with self.session_factory() as session:
            return await AnalysisService(session, self.hub).record_usage(usage, deal_id, document_id)

    async def process(
        self,
        job_id: UUID,
        deal_id: str,
        file_name: str,
        content: bytes,
        job_type: str,
    ) -> ProcessingStatus:
        """Run one file through the AI server, mirroring progress onto its job."""
        tracker = ProcessingStatusTracker(
            deal_id,
            job_type=job_type,
            usage_tracker=ModelUsageTracker(deal_id=str(deal_id), recorder=self._record_usage),
        )
        tracker.start_processing(str(job_id), file_name)

        async with self.session_factory() as session:
            jobs = ProcessingJobService(session, self.hub)
            try:
                tracker.update_progress(ANALYSIS_STARTED_PROGRESS, ProcessingStep.ANALYSIS.value)
                await jobs.update_job(
                    job_id,
                    status=JobStatus.PROCESSING.value,
                    progress=ANALYSIS_STARTED_PROGRESS,
                    current_step=ProcessingStep.ANALYSIS.value,
                )

                response = await self.ai_client.process_file(file_name, content, str(deal_id))
                if not response.success:
                    error = tracker.set_error(response.error or "Processing failed")
                    await jobs.update_job(
                        job_id,
                        status=JobStatus.ERROR.value,
                        current_step=ProcessingStep.ERROR.value,
                        error_message=error.message,
                    )
                    return tracker.status

                data = response.data if isinstance(response.data, Mapping) else {"result": response.data}
                agent_results = dict(data.get("agent_results") or {})
                tracker.update_progress(STORAGE_PROGRESS, ProcessingStep.STORAGE.value, agent_results)
                await jobs.update_job(
                    job_id,
                    progress=STORAGE_PROGRESS,
                    current_step=ProcessingStep.STORAGE.value,
                    agent_results=agent_results,
                )

                if job_type == settings.processing.job_type:
                    await AnalysisService(session, self.hub).store_analysis(deal_id, **analysis_fields(data))

                await jobs.update_job(
                    job_id,
                    status=JobStatus.COMPLETED.value,
                    progress=100,
                    current_step=ProcessingStep.COMPLETE.value,
                )
                tracker.mark_complete(agent_results=agent_results, job_id=str(job_id))
            except Exception as e:
                LOGGER.error(f"Processing {file_name} failed: {e}", exc_info=True, extra={"job_id": str(job_id)})
                error = tracker.set_error(e)
                await jobs.update_job(
                    job_id,
                    status=JobStatus.ERROR.value,
                    current_step=ProcessingStep.ERROR.value,
                    error_message=error.message,
                )
                raise

        LOGGER.info(f"Processed {file_name}", extra={"job_id": str(job_id), "job_type": job_type})
        return tracker.status
