import uuid
from datetime import datetime
from typing import Any, Dict, List, Optional, Union

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from dealmate.core.config import settings
from dealmate.database.models import ProcessingJob, utcnow
from dealmate.repositories.base_repository import BaseRepository
from dealmate.schemas.processing import ACTIVE_JOB_STATUSES, JobStatus, ProcessingStep

IdLike = Union[uuid.UUID, str]

DEFAULT_FORCE_COMPLETE_REASON = "Manual completion due to successful analysis"


def as_uuid(value: IdLike) -> uuid.UUID:
    return value if isinstance(value, uuid.UUID) else uuid.UUID(str(value))


def _completion_values() -> Dict[str, Any]:
    return {
        "status": JobStatus.COMPLETED.value,
        "progress": 100,
        "current_step": ProcessingStep.COMPLETE.value,
        "completed_at": utcnow(),
        "error_message": None,
    }


class ProcessingJobRepository(BaseRepository[ProcessingJob]):
    """Repository for processing job rows."""

    def __init__(self, session: AsyncSession):
        super().__init__(session, ProcessingJob)

    async def create_job(
        self,
        deal_id: IdLike,
        job_type: Optional[str] = None,
        document_id: Optional[IdLike] = None,
        user_id: Optional[IdLike] = None,
        current_step: Optional[str] = None,
    ) -> ProcessingJob:
        """Create a pending job at progress 0.

        Args:
            deal_id: Deal the job belongs to
            job_type: Job type, defaults to the configured analysis job type
            document_id: Optional source document
            user_id: Optional owner
            current_step: Initial step, defaults to validation

        Returns:
            Created ProcessingJob instance
        """
        return await self.create(
            deal_id=as_uuid(deal_id),
            document_id=as_uuid(document_id) if document_id else None,
            user_id=as_uuid(user_id) if user_id else None,
            job_type=job_type or settings.processing.job_type,
            status=JobStatus.PENDING.value,
            progress=0,
            current_step=current_step or ProcessingStep.VALIDATION.value,
        )

    async def update_job(
        self,
        job_id: IdLike,
        status: Optional[str] = None,
        progress: Optional[int] = None,
        current_step: Optional[str] = None,
        agent_results: Optional[Dict[str, Any]] = None,
        error_message: Optional[str] = None,
    ) -> Optional[ProcessingJob]:
        """Apply the provided fields; ``completed_at`` is stamped on completion."""
        changes: Dict[str, Any] = {}
        if status is not None:
            changes["status"] = status
        if progress is not None:
            changes["progress"] = progress
        if current_step is not None:
            changes["current_step"] = current_step
        if agent_results is not None:
            changes["agent_results"] = agent_results
        if error_message is not None:
            changes["error_message"] = error_message
        if status == JobStatus.COMPLETED.value:
            changes["completed_at"] = utcnow()

        return await self.update(as_uuid(job_id), **changes)

    async def get_active_job(
        self,
        deal_id: IdLike,
        job_type: Optional[str] = None,
    ) -> Optional[ProcessingJob]:
        """Most recently created pending or processing job for the deal."""
        try:
            query = (
                select(ProcessingJob)
                .where(
                    ProcessingJob.deal_id == as_uuid(deal_id),
                    ProcessingJob.job_type == (job_type or settings.processing.job_type),
                    ProcessingJob.status.in_(ACTIVE_JOB_STATUSES),
                )
                .order_by(ProcessingJob.created_at.desc())
                .limit(1)
            )
            result = await self.session.execute(query)
            return result.scalars().first()
        except SQLAlchemyError as e:
            self.logger.error(f"Error getting active job for deal {deal_id}: {str(e)}", exc_info=True)
            raise

    async def get_latest_completed_job(
        self,
        deal_id: IdLike,
        job_type: Optional[str] = None,
        completed_since: Optional[datetime] = None,
    ) -> Optional[ProcessingJob]:
        try:
            query = select(ProcessingJob).where(
                ProcessingJob.deal_id == as_uuid(deal_id),
                ProcessingJob.job_type == (job_type or settings.processing.job_type),
                ProcessingJob.status == JobStatus.COMPLETED.value,
            )
            if completed_since is not None:
                query = query.where(ProcessingJob.completed_at >= completed_since)

            query = query.order_by(ProcessingJob.completed_at.desc()).limit(1)
            result = await self.session.execute(query)
            return result.scalars().first()
        except SQLAlchemyError as e:
            self.logger.error(
                f"Error getting latest completed job for deal {deal_id}: {str(e)}",
                exc_info=True
            )
            raise

    async def _active_jobs(self, deal_id: IdLike, job_type: Optional[str]) -> List[ProcessingJob]:
        query = select(ProcessingJob).where(
            ProcessingJob.deal_id == as_uuid(deal_id),
            ProcessingJob.status.in_(ACTIVE_JOB_STATUSES),
        )
        if job_type is not None:
            query = query.where(ProcessingJob.job_type == job_type)
        result = await self.session.execute(query)
        return list(result.scalars().all())

    async def _apply_to_active(
        self,
        deal_id: IdLike,
        job_type: Optional[str],
        values: Dict[str, Any],
    ) -> List[ProcessingJob]:
        try:
            jobs = await self._active_jobs(deal_id, job_type)
            for job in jobs:
                for key, value in values.items():
                    setattr(job, key, value)
                job.updated_at = utcnow()

            if jobs:
                await self.session.flush()
                await self.session.commit()
            return jobs
        except SQLAlchemyError as e:
            await self.session.rollback()
            self.logger.error(f"Error updating active jobs for deal {deal_id}: {str(e)}", exc_info=True)
            raise

    async def complete_stuck_jobs(
        self,
        deal_id: IdLike,
        job_type: Optional[str] = None,
    ) -> List[ProcessingJob]:
        """Mark every pending/processing job of the type as completed.

        Returns:
            The jobs that were updated (empty when none were stuck)
        """
        jobs = await self._apply_to_active(
            deal_id, job_type or settings.processing.job_type, _completion_values()
        )
        if jobs:
            self.logger.info(
                f"Completed {len(jobs)} stuck processing jobs",
                extra={"deal_id": str(deal_id), "job_ids": [str(job.id) for job in jobs]},
            )
        return jobs

    async def force_complete(
        self,
        job_id: IdLike,
        reason: str = DEFAULT_FORCE_COMPLETE_REASON,
    ) -> Optional[ProcessingJob]:
        self.logger.info(f"Force completing processing job {job_id}: {reason}")
        return await self.update(as_uuid(job_id), **_completion_values())

    async def cancel_active_jobs(
        self,
        deal_id: IdLike,
        job_type: Optional[str] = None,
    ) -> List[ProcessingJob]:
        """Cancel active jobs for the deal; all job types when ``job_type`` is None."""
        return await self._apply_to_active(
            deal_id,
            job_type,
            {
                "status": JobStatus.CANCELLED.value,
                "current_step": JobStatus.CANCELLED.value,
                "completed_at": utcnow(),
            },
        )
