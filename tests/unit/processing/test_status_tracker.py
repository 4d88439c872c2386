"""Tests for the processing status reducer."""

from unittest.mock import AsyncMock

import pytest

from dealmate.services.processing.error_recovery import ErrorRecovery
from dealmate.services.processing.model_tracking import ModelUsageTracker
from dealmate.services.processing.status_tracker import (
    ProcessingStatusTracker,
    usage_from_agent_result,
)
from dealmate.utils.tasks import drain_background_tasks

COMPLETE_STATE = {
    "is_processing": False,
    "progress": 100,
    "current_step": "complete",
    "error": None,
}


def job_row(**overrides) -> dict:
    row = {
        "id": "job-1",
        "deal_id": "deal-1",
        "job_type": "cim_analysis",
        "status": "processing",
        "progress": 40,
        "current_step": "analysis",
        "agent_results": {"financial_agent": {"status": "running"}},
        "error_message": None,
    }
    row.update(overrides)
    return row


@pytest.fixture
def recorder() -> AsyncMock:
    return AsyncMock(return_value=None)


@pytest.fixture
def tracker(recorder) -> ProcessingStatusTracker:
    return ProcessingStatusTracker(
        "deal-1",
        job_type="cim_analysis",
        error_recovery=ErrorRecovery(max_retries=3, backoff_seconds=0, sleep=AsyncMock()),
        usage_tracker=ModelUsageTracker(deal_id="deal-1", recorder=recorder),
    )


def subset(status, expected: dict) -> dict:
    return {key: getattr(status, key) for key in expected}


class TestLocalOperations:
    def test_start_processing(self, tracker):
        tracker.set_error("boom")

        status = tracker.start_processing("job-9", "cim.pdf")

        assert status.model_dump() == {
            "is_processing": True,
            "progress": 0,
            "current_step": "validation",
            "agent_results": {},
            "error": None,
            "job_id": "job-9",
        }
        assert tracker.recovery.state.errors == []

    def test_update_progress_merges_results(self, tracker):
        tracker.start_processing("job-1", "cim.pdf")
        tracker.update_progress(30, "analysis", {"a": {"status": "running"}})

        status = tracker.update_progress(60, "analysis", {"b": {"status": "running"}})

        assert status.progress == 60
        assert set(status.agent_results) == {"a", "b"}

    def test_set_error_classifies(self, tracker):
        tracker.start_processing("job-1", "cim.pdf")

        error = tracker.set_error(RuntimeError("Failed to fetch"), agent="memo_agent")

        assert error.type == "network"
        assert tracker.status.is_processing is False
        assert tracker.status.current_step == "error"
        assert tracker.status.error == "Failed to fetch"

    def test_listeners_receive_snapshots(self, tracker):
        seen = []
        remove = tracker.add_listener(seen.append)

        tracker.start_processing("job-1", "cim.pdf")
        remove()
        tracker.update_progress(10, "analysis")

        assert len(seen) == 1
        assert seen[0].job_id == "job-1"


class TestUsageRecording:
    @pytest.mark.asyncio
    async def test_completed_agents_record_once(self, tracker, recorder):
        tracker.start_processing("job-1", "cim.pdf")
        result = {
            "status": "completed",
            "model_id": "gpt-4o",
            "input_tokens": 1000,
            "output_tokens": 200,
            "processing_time": 3200,
        }

        tracker.update_progress(50, "analysis", {"financial_agent": result})
        tracker.update_progress(60, "analysis", {"financial_agent": result})
        await drain_background_tasks()

        recorder.assert_awaited_once()
        usage = recorder.await_args.args[0]
        assert usage.model_id == "gpt-4o"
        assert usage.processing_time_ms == 3200
        assert len(tracker.usage.state.agent_usage["financial_agent"]) == 1

    @pytest.mark.asyncio
    async def test_recorder_failure_does_not_fail_update(self, tracker, recorder):
        recorder.side_effect = RuntimeError("db down")
        tracker.start_processing("job-1", "cim.pdf")

        status = tracker.update_progress(
            50,
            "analysis",
            {"agent": {"status": "completed", "usage": {"model_id": "m", "input_tokens": 1, "output_tokens": 1}}},
        )
        await drain_background_tasks()

        assert status.progress == 50
        assert tracker.usage.state.agent_usage == {}

    def test_usage_extraction_ignores_incomplete_agents(self):
        assert usage_from_agent_result("a", {"status": "running", "model_id": "m"}, "cim_analysis") is None
        assert usage_from_agent_result("a", {"status": "completed"}, "cim_analysis") is None
        assert usage_from_agent_result("a", "done", "cim_analysis") is None

    def test_no_running_loop_is_tolerated(self, tracker):
        status = tracker.update_progress(
            50, "analysis", {"agent": {"status": "completed", "model_id": "m"}}
        )
        assert status.progress == 50


class TestRetry:
    @pytest.mark.asyncio
    async def test_retry_after_error(self, tracker):
        tracker.start_processing("job-1", "cim.pdf")
        tracker.set_error("JSON parse error")
        retry_fn = AsyncMock()

        assert await tracker.retry_processing(retry_fn) is True

        retry_fn.assert_awaited_once()
        assert subset(tracker.status, {"error": None, "current_step": "validation", "progress": 0, "is_processing": True}) == {
            "error": None,
            "current_step": "validation",
            "progress": 0,
            "is_processing": True,
        }

    @pytest.mark.asyncio
    async def test_no_error_means_no_retry(self, tracker):
        retry_fn = AsyncMock()
        assert await tracker.retry_processing(retry_fn) is False
        retry_fn.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_non_retryable_error_keeps_banner(self, tracker):
        tracker.set_error("401 Unauthorized")
        retry_fn = AsyncMock()

        assert await tracker.retry_processing(retry_fn) is False
        assert tracker.status.error == "401 Unauthorized"
        retry_fn.assert_not_awaited()


class TestReconciliation:
    def test_apply_job_row(self, tracker):
        assert tracker.apply_job_row(job_row()) is True

        assert tracker.status.is_processing is True
        assert tracker.status.progress == 40
        assert tracker.status.current_step == "analysis"
        assert tracker.status.job_id == "job-1"

    def test_row_without_step_keeps_a_processing_step(self, tracker):
        tracker.apply_job_row(job_row(current_step=None))
        assert tracker.status.current_step == "validation"

        tracker.apply_job_row(job_row())
        tracker.apply_job_row(job_row(current_step=""))
        assert tracker.status.current_step == "analysis"

    def test_other_job_types_are_ignored(self, tracker):
        assert tracker.apply_job_row(job_row(job_type="memo_generation")) is False
        assert tracker.status.job_id is None

    def test_mark_complete_is_idempotent(self, tracker):
        tracker.apply_job_row(job_row())

        first = tracker.mark_complete()
        second = tracker.mark_complete()

        assert subset(first, COMPLETE_STATE) == COMPLETE_STATE
        assert second == first

    def test_complete_absorbs_stale_rows_of_same_job(self, tracker):
        tracker.apply_job_row(job_row())
        tracker.mark_complete()

        assert tracker.apply_job_row(job_row(progress=70)) is False
        assert subset(tracker.status, COMPLETE_STATE) == COMPLETE_STATE

    def test_complete_accepts_completed_row(self, tracker):
        tracker.apply_job_row(job_row())
        tracker.mark_complete()

        assert tracker.apply_job_row(job_row(status="completed", progress=100, current_step="complete")) is True
        assert subset(tracker.status, COMPLETE_STATE) == COMPLETE_STATE

    def test_new_job_after_completion_is_adopted(self, tracker):
        tracker.apply_job_row(job_row())
        tracker.mark_complete()

        assert tracker.apply_job_row(job_row(id="job-2", status="pending", progress=0)) is True
        assert tracker.status.is_processing is True
        assert tracker.status.job_id == "job-2"

    def test_reset(self, tracker):
        tracker.start_processing("job-1", "cim.pdf")
        tracker.set_error("boom")

        status = tracker.reset()

        assert status.job_id is None
        assert status.error is None
        assert tracker.recovery.state.errors == []
