"""Keeps a ``ProcessingStatusTracker`` in step with the job store.

Three producers feed the tracker: the active-job snapshot, the recent
completion back-check, and realtime row events for the deal.
"""

from datetime import datetime, timedelta, timezone
from typing import Callable, List, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from dealmate.core.config import settings
from dealmate.core.database import async_session_maker
from dealmate.core.exceptions import DatabaseError
from dealmate.repositories.cim_analysis_repository import CIMAnalysisRepository
from dealmate.repositories.processing_job_repository import ProcessingJobRepository
from dealmate.schemas.processing import ProcessingStatus
from dealmate.schemas.realtime import RowChangeEvent, RowEventType
from dealmate.services.processing.job_service import (
    CIM_ANALYSIS_TABLE,
    PROCESSING_JOBS_TABLE,
    ProcessingJobService,
)
from dealmate.services.processing.status_tracker import ProcessingStatusTracker
from dealmate.services.realtime import RealtimeHub, Subscription, get_realtime_hub
from dealmate.utils.logging import get_logger

LOGGER = get_logger(__name__)

Clock = Callable[[], datetime]


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


def as_aware(value: datetime) -> datetime:
    """Treat naive timestamps from the store as UTC."""
    return value if value.tzinfo is not None else value.replace(tzinfo=timezone.utc)


class StatusReconciler:
    """Reconciles one deal's tracker against the store and realtime events."""

    def __init__(
        self,
        tracker: ProcessingStatusTracker,
        session_factory: async_sessionmaker[AsyncSession] = async_session_maker,
        hub: Optional[RealtimeHub] = None,
        completion_window: Optional[timedelta] = None,
        clock: Clock = _utc_now,
    ):
        self.tracker = tracker
        self.session_factory = session_factory
        self.hub = hub or get_realtime_hub()
        self.completion_window = completion_window or timedelta(
            minutes=settings.processing.recent_completion_window_minutes
        )
        self.clock = clock

    @property
    def deal_id(self) -> str:
        return self.tracker.deal_id

    @property
    def job_type(self) -> str:
        return self.tracker.job_type

    async def check_for_active_jobs(self) -> bool:
        """Adopt the latest pending/processing job, if any."""
        try:
            async with self.session_factory() as session:
                job = await ProcessingJobRepository(session).get_active_job(self.deal_id, self.job_type)
        except Exception as e:
            LOGGER.error(f"Error checking for active jobs: {e}", exc_info=True)
            return False

        if job is None:
            return False
        return self.tracker.apply_job_row(job.to_dict())

    async def check_for_completion(self) -> bool:
        """Mark complete when an analysis or completed job landed inside the window."""
        cutoff = self.clock() - self.completion_window
        try:
            async with self.session_factory() as session:
                analysis = await CIMAnalysisRepository(session).get_latest_for_deal(self.deal_id)
                if analysis is not None and as_aware(analysis.created_at) > cutoff:
                    self.tracker.mark_complete()
                    await ProcessingJobService(session, self.hub).complete_stuck_jobs(
                        self.deal_id, self.job_type
                    )
                    return True

                job = await ProcessingJobRepository(session).get_latest_completed_job(
                    self.deal_id, self.job_type
                )
                if job is not None and job.completed_at and as_aware(job.completed_at) > cutoff:
                    self.tracker.mark_complete(agent_results=job.agent_results or {}, job_id=str(job.id))
                    return True
        except Exception as e:
            LOGGER.error(f"Error checking for completion: {e}", exc_info=True)
        return False

    async def sync(self) -> ProcessingStatus:
        await self.check_for_active_jobs()
        await self.check_for_completion()
        return self.tracker.status

    def subscribe(self) -> Subscription:
        """Job row changes and analysis inserts for this deal."""
        return self.hub.subscribe([PROCESSING_JOBS_TABLE, CIM_ANALYSIS_TABLE], deal_id=self.deal_id)

    async def handle_event(self, event: RowChangeEvent) -> None:
        if event.table == PROCESSING_JOBS_TABLE:
            if event.event_type in (RowEventType.INSERT, RowEventType.UPDATE):
                self.tracker.apply_job_row(event.new)
        elif event.table == CIM_ANALYSIS_TABLE and event.event_type == RowEventType.INSERT:
            LOGGER.info(f"Analysis stored for deal {self.deal_id}")
            self.tracker.mark_complete()
            try:
                async with self.session_factory() as session:
                    await ProcessingJobService(session, self.hub).complete_stuck_jobs(
                        self.deal_id, self.job_type
                    )
            except Exception as e:
                LOGGER.error(f"Error completing stuck jobs: {e}", exc_info=True)

    async def run(self, subscription: Optional[Subscription] = None) -> None:
        """Sync from the store, then apply realtime events until cancelled.

        The subscription is opened before the initial sync so no event between
        the two is missed.
        """
        subscription = subscription or self.subscribe()
        try:
            await self.sync()
            async for event in subscription:
                await self.handle_event(event)
        finally:
            subscription.close()

    async def stop_processing(self) -> List[str]:
        """Cancel the deal's active jobs in the store and mark the view cancelled.

        Requests already dispatched to the AI server are not aborted.

        Returns:
            IDs of the jobs that were cancelled
        """
        try:
            async with self.session_factory() as session:
                cancelled = await ProcessingJobService(session, self.hub).cancel_active_jobs(self.deal_id)
        except SQLAlchemyError as e:
            raise DatabaseError(f"Failed to cancel processing for deal {self.deal_id}", original_error=e) from e

        job_ids = [str(job.id) for job in cancelled]
        LOGGER.info(f"Stopped processing for deal {self.deal_id}", extra={"cancelled_jobs": job_ids})
        self.tracker.mark_cancelled()
        return job_ids
