"""Locally mirrored processing status for one deal view.

The tracker is a small reducer: every producer (manual calls, the initial job
snapshot, the completion back-check, realtime row events) funnels through the
methods below, and ``mark_complete`` is absorbing until an explicit
``start_processing``, ``retry_processing`` or ``reset``.
"""

from collections.abc import Mapping
from typing import Any, Awaitable, Callable, Dict, List, Optional, Set, Tuple

from dealmate.core.config import settings
from dealmate.schemas.processing import (
    ACTIVE_JOB_STATUSES,
    CIMError,
    JobStatus,
    ModelUsage,
    ProcessingStatus,
    ProcessingStep,
)
from dealmate.services.processing.error_recovery import ErrorInput, ErrorRecovery
from dealmate.services.processing.model_tracking import ModelUsageTracker
from dealmate.utils.logging import get_logger
from dealmate.utils.tasks import spawn_logged

LOGGER = get_logger(__name__)

StatusListener = Callable[[ProcessingStatus], None]


def usage_from_agent_result(agent: str, result: Any, default_use_case: str) -> Optional[ModelUsage]:
    """Extract model usage from a completed agent entry, if it carries any.

    Usage may sit on the entry itself or under a ``usage`` key.
    """
    if not isinstance(result, Mapping) or result.get("status") != JobStatus.COMPLETED.value:
        return None

    usage = result.get("usage") if isinstance(result.get("usage"), Mapping) else result
    model_id = usage.get("model_id")
    if not model_id:
        return None

    try:
        return ModelUsage(
            agent=agent,
            model_id=str(model_id),
            use_case=str(usage.get("use_case") or result.get("use_case") or default_use_case),
            input_tokens=int(usage.get("input_tokens") or 0),
            output_tokens=int(usage.get("output_tokens") or 0),
            processing_time_ms=int(usage.get("processing_time_ms") or usage.get("processing_time") or 0),
            success=True,
        )
    except (TypeError, ValueError) as e:
        LOGGER.warning(f"Ignoring malformed usage data for agent {agent}: {e}")
        return None


class ProcessingStatusTracker:
    """Reconciled ``ProcessingStatus`` plus retry and usage sub-state for one deal."""

    def __init__(
        self,
        deal_id: str,
        job_type: Optional[str] = None,
        document_id: Optional[str] = None,
        error_recovery: Optional[ErrorRecovery] = None,
        usage_tracker: Optional[ModelUsageTracker] = None,
    ):
        self.deal_id = str(deal_id)
        self.job_type = job_type or settings.processing.job_type
        self.document_id = document_id
        self.recovery = error_recovery or ErrorRecovery()
        self.usage = usage_tracker or ModelUsageTracker(deal_id=self.deal_id, document_id=document_id)
        self.status = ProcessingStatus()
        self._listeners: List[StatusListener] = []
        self._recorded_usage: Set[Tuple[str, str]] = set()

    # ------------------------------------------------------------------
    # Observation
    # ------------------------------------------------------------------

    def add_listener(self, listener: StatusListener) -> Callable[[], None]:
        """Register a snapshot listener; returns a function that removes it."""
        self._listeners.append(listener)

        def remove() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return remove

    def _set(self, **changes: Any) -> ProcessingStatus:
        self.status = self.status.model_copy(update=changes)
        for listener in list(self._listeners):
            try:
                listener(self.status)
            except Exception as e:
                LOGGER.warning(f"Status listener failed: {e}")
        return self.status

    @property
    def is_complete(self) -> bool:
        return self.status.current_step == ProcessingStep.COMPLETE.value

    # ------------------------------------------------------------------
    # Operations
    # ------------------------------------------------------------------

    def start_processing(self, job_id: str, file_name: str) -> ProcessingStatus:
        self.usage.reset()
        self.recovery.reset()
        self._recorded_usage.clear()
        LOGGER.info(f"Starting processing of {file_name}", extra={"job_id": job_id, "deal_id": self.deal_id})
        return self._set(
            is_processing=True,
            progress=0,
            current_step=ProcessingStep.VALIDATION.value,
            agent_results={},
            error=None,
            job_id=str(job_id),
        )

    def update_progress(
        self,
        progress: int,
        step: str,
        agent_results: Optional[Dict[str, Any]] = None,
    ) -> ProcessingStatus:
        merged = dict(self.status.agent_results)
        if agent_results:
            merged.update(agent_results)
            self._record_agent_usage(agent_results)

        return self._set(progress=progress, current_step=step, agent_results=merged)

    def _record_agent_usage(self, agent_results: Dict[str, Any]) -> None:
        """Detach usage recording for completed agents; never blocks the update."""
        for agent, result in agent_results.items():
            usage = usage_from_agent_result(agent, result, self.job_type)
            if usage is None or (agent, usage.model_id) in self._recorded_usage:
                continue
            try:
                spawn_logged(self.usage.track_model_usage(usage), name=f"usage:{agent}")
                self._recorded_usage.add((agent, usage.model_id))
            except RuntimeError as e:
                LOGGER.warning(f"Could not schedule usage recording for {agent}: {e}")

    def set_error(self, error: ErrorInput, agent: Optional[str] = None) -> CIMError:
        cim_error = self.recovery.handle_error(error, agent)
        self._set(
            is_processing=False,
            error=cim_error.message,
            current_step=ProcessingStep.ERROR.value,
        )
        return cim_error

    async def retry_processing(self, retry_fn: Callable[[], Awaitable[object]]) -> bool:
        last = self.recovery.last_error
        if last is not None:
            cim_error = self.recovery.classify(last.message, last.agent)
        elif self.status.error:
            cim_error = self.recovery.classify(self.status.error)
        else:
            LOGGER.info("No error to recover from")
            return False

        recovered = await self.recovery.attempt_recovery(retry_fn, cim_error)
        if recovered:
            self._set(
                error=None,
                current_step=ProcessingStep.VALIDATION.value,
                progress=0,
                is_processing=True,
            )
        return recovered

    def reset(self) -> ProcessingStatus:
        self.recovery.reset()
        self.usage.reset()
        self._recorded_usage.clear()
        return self._set(**ProcessingStatus().model_dump())

    # ------------------------------------------------------------------
    # Reconciliation entry points
    # ------------------------------------------------------------------

    def apply_job_row(self, row: Mapping) -> bool:
        """Adopt a processing job row. Returns False when the row is ignored.

        Once complete, non-completed rows of the completed job (or of any job
        when the local job is unknown) are stale and ignored.
        """
        if row.get("job_type") != self.job_type:
            return False

        row_status = row.get("status")
        row_id = str(row["id"]) if row.get("id") is not None else None

        if self.is_complete and row_status != JobStatus.COMPLETED.value:
            if self.status.job_id is None or row_id == self.status.job_id:
                LOGGER.debug(f"Ignoring stale job row {row_id} after completion")
                return False

        self._set(
            is_processing=row_status in ACTIVE_JOB_STATUSES,
            progress=int(row.get("progress") or 0),
            current_step=row.get("current_step") or self.status.current_step,
            agent_results=dict(row.get("agent_results") or {}),
            error=row.get("error_message") or None,
            job_id=row_id,
        )
        return True

    def mark_complete(
        self,
        agent_results: Optional[Dict[str, Any]] = None,
        job_id: Optional[str] = None,
    ) -> ProcessingStatus:
        changes: Dict[str, Any] = {
            "is_processing": False,
            "progress": 100,
            "current_step": ProcessingStep.COMPLETE.value,
            "error": None,
        }
        if agent_results is not None:
            changes["agent_results"] = dict(agent_results)
        if job_id is not None:
            changes["job_id"] = str(job_id)
        return self._set(**changes)

    def mark_cancelled(self) -> ProcessingStatus:
        return self._set(is_processing=False, current_step=JobStatus.CANCELLED.value)
