"""Tests for per-session model usage tracking."""

from decimal import Decimal
from unittest.mock import AsyncMock

import pytest

from dealmate.schemas.processing import ModelUsage
from dealmate.services.processing.model_tracking import ESTIMATED_COST_PER_TOKEN, ModelUsageTracker


def usage(agent: str = "financial_agent", tokens: int = 1000) -> ModelUsage:
    return ModelUsage(agent=agent, model_id="gpt-4o", use_case="cim_analysis", input_tokens=tokens, output_tokens=0)


class TestModelUsageTracker:
    @pytest.mark.asyncio
    async def test_tracks_and_forwards(self):
        recorder = AsyncMock(return_value=Decimal("0.025"))
        tracker = ModelUsageTracker(deal_id="deal-1", document_id="doc-1", recorder=recorder)

        await tracker.track_model_usage(usage())

        recorder.assert_awaited_once_with(usage(), "deal-1", "doc-1")
        assert tracker.get_agent_cost("financial_agent") == pytest.approx(0.025)
        assert tracker.state.is_tracking is False

    @pytest.mark.asyncio
    async def test_unpriced_usage_is_estimated(self):
        tracker = ModelUsageTracker(recorder=AsyncMock(return_value=None))

        await tracker.track_model_usage(usage())

        assert tracker.get_agent_cost("financial_agent") == pytest.approx(1000 * ESTIMATED_COST_PER_TOKEN)

    @pytest.mark.asyncio
    async def test_totals_across_agents(self):
        tracker = ModelUsageTracker()

        await tracker.track_model_usage(usage("a", 100))
        await tracker.track_model_usage(usage("b", 300))
        await tracker.track_model_usage(usage("b", 100))

        assert tracker.get_agent_cost("b") == pytest.approx(400 * ESTIMATED_COST_PER_TOKEN)
        assert tracker.get_total_cost() == pytest.approx(500 * ESTIMATED_COST_PER_TOKEN)
        assert tracker.state.total_cost == pytest.approx(tracker.get_total_cost())

    @pytest.mark.asyncio
    async def test_recorder_errors_are_swallowed(self):
        tracker = ModelUsageTracker(recorder=AsyncMock(side_effect=RuntimeError("insert failed")))

        await tracker.track_model_usage(usage())

        assert tracker.state.agent_usage == {}
        assert tracker.get_total_cost() == 0
        assert tracker.state.is_tracking is False

    @pytest.mark.asyncio
    async def test_reset(self):
        tracker = ModelUsageTracker()
        await tracker.track_model_usage(usage())

        tracker.reset()

        assert tracker.get_total_cost() == 0
        assert tracker.get_agent_cost("financial_agent") == 0
