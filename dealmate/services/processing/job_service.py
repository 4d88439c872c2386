"""Write paths for jobs and analyses that publish row changes after commit."""

from decimal import Decimal
from typing import Any, Iterable, List, Optional

from sqlalchemy.ext.asyncio import AsyncSession

from dealmate.core.exceptions import JobNotFoundError
from dealmate.database.models import CIMAnalysis, ProcessingJob
from dealmate.repositories.cim_analysis_repository import CIMAnalysisRepository
from dealmate.repositories.model_usage_repository import ModelUsageRepository
from dealmate.repositories.processing_job_repository import (
    DEFAULT_FORCE_COMPLETE_REASON,
    IdLike,
    ProcessingJobRepository,
)
from dealmate.schemas.processing import ModelUsage
from dealmate.schemas.realtime import RowChangeEvent, RowEventType
from dealmate.services.realtime import RealtimeHub, get_realtime_hub
from dealmate.utils.logging import get_logger

LOGGER = get_logger(__name__)

PROCESSING_JOBS_TABLE = ProcessingJob.__tablename__
CIM_ANALYSIS_TABLE = CIMAnalysis.__tablename__


class ProcessingJobService:
    """Processing job lifecycle backed by ``ProcessingJobRepository``.

    Each write publishes an UPDATE (or INSERT) event for the affected rows so
    status views stay in sync without polling.
    """

    def __init__(self, session: AsyncSession, hub: Optional[RealtimeHub] = None):
        self.session = session
        self.jobs = ProcessingJobRepository(session)
        self.analyses = CIMAnalysisRepository(session)
        self.hub = hub or get_realtime_hub()

    def _publish(self, jobs: Iterable[ProcessingJob], event_type: RowEventType) -> None:
        for job in jobs:
            self.hub.publish(
                RowChangeEvent(table=PROCESSING_JOBS_TABLE, event_type=event_type, new=job.to_dict())
            )

    async def create_job(self, deal_id: IdLike, job_type: Optional[str] = None, **kwargs: Any) -> ProcessingJob:
        job = await self.jobs.create_job(deal_id, job_type=job_type, **kwargs)
        LOGGER.info(f"Created processing job {job.id}", extra={"deal_id": str(deal_id), "job_type": job.job_type})
        self._publish([job], RowEventType.INSERT)
        return job

    async def update_job(self, job_id: IdLike, **changes: Any) -> ProcessingJob:
        job = await self.jobs.update_job(job_id, **changes)
        if job is None:
            raise JobNotFoundError(f"Processing job {job_id} not found")
        self._publish([job], RowEventType.UPDATE)
        return job

    async def get_active_job(self, deal_id: IdLike, job_type: Optional[str] = None) -> Optional[ProcessingJob]:
        return await self.jobs.get_active_job(deal_id, job_type)

    async def complete_stuck_jobs(self, deal_id: IdLike, job_type: Optional[str] = None) -> List[ProcessingJob]:
        """Complete active jobs, but only when the deal already has an analysis."""
        analysis = await self.analyses.get_latest_for_deal(deal_id)
        if analysis is None:
            LOGGER.info(f"No completed analysis found for deal {deal_id}")
            return []

        jobs = await self.jobs.complete_stuck_jobs(deal_id, job_type)
        self._publish(jobs, RowEventType.UPDATE)
        return jobs

    async def force_complete(self, job_id: IdLike, reason: str = DEFAULT_FORCE_COMPLETE_REASON) -> ProcessingJob:
        job = await self.jobs.force_complete(job_id, reason)
        if job is None:
            raise JobNotFoundError(f"Processing job {job_id} not found")
        self._publish([job], RowEventType.UPDATE)
        return job

    async def cancel_active_jobs(self, deal_id: IdLike, job_type: Optional[str] = None) -> List[ProcessingJob]:
        jobs = await self.jobs.cancel_active_jobs(deal_id, job_type)
        LOGGER.info(f"Cancelled {len(jobs)} active processing jobs", extra={"deal_id": str(deal_id)})
        self._publish(jobs, RowEventType.UPDATE)
        return jobs


class AnalysisService:
    """Stores analysis results and model usage, publishing analysis inserts."""

    def __init__(self, session: AsyncSession, hub: Optional[RealtimeHub] = None):
        self.session = session
        self.analyses = CIMAnalysisRepository(session)
        self.usage = ModelUsageRepository(session)
        self.hub = hub or get_realtime_hub()

    async def store_analysis(
        self,
        deal_id: IdLike,
        document_id: Optional[IdLike] = None,
        **fields: Any,
    ) -> CIMAnalysis:
        analysis = await self.analyses.create_analysis(deal_id, document_id, **fields)
        self.hub.publish(
            RowChangeEvent(table=CIM_ANALYSIS_TABLE, event_type=RowEventType.INSERT, new=analysis.to_dict())
        )
        return analysis

    async def record_usage(
        self,
        usage: ModelUsage,
        deal_id: Optional[str] = None,
        document_id: Optional[str] = None,
    ) -> Decimal:
        """Usage recorder compatible with ``ModelUsageTracker``.

        Returns:
            Catalogue cost of the logged usage
        """
        log = await self.usage.log_usage(usage, deal_id=deal_id, document_id=document_id)
        return log.cost_usd
