"""Per-session model usage and cost tracking for analysis agents."""

from decimal import Decimal
from typing import Awaitable, Callable, Dict, Optional, Union

from dealmate.schemas.processing import ModelTrackingState, ModelUsage
from dealmate.utils.logging import get_logger

LOGGER = get_logger(__name__)

# Returns the catalogue cost of the recorded usage, or None when it has no price
UsageRecorder = Callable[
    [ModelUsage, Optional[str], Optional[str]],
    Awaitable[Optional[Union[float, Decimal]]],
]

# Fallback per-token price when no recorder prices the usage
ESTIMATED_COST_PER_TOKEN = 0.00001


def estimate_cost(usage: ModelUsage) -> float:
    return (usage.input_tokens + usage.output_tokens) * ESTIMATED_COST_PER_TOKEN


class ModelUsageTracker:
    """Accumulates agent usage locally and forwards it to a persistent recorder.

    Live costs use the price the recorder reports, so totals match the
    persisted usage log; usage without a reported price is estimated.
    """

    def __init__(
        self,
        deal_id: Optional[str] = None,
        document_id: Optional[str] = None,
        recorder: Optional[UsageRecorder] = None,
    ):
        self.deal_id = deal_id
        self.document_id = document_id
        self.recorder = recorder
        self.state = ModelTrackingState()
        self._agent_costs: Dict[str, float] = {}

    async def track_model_usage(self, usage: ModelUsage) -> None:
        """Record one agent's usage.

        Recorder failures are logged and swallowed; local state is only
        updated after a successful record.
        """
        try:
            self.state.is_tracking = True

            cost = None
            if self.recorder is not None:
                cost = await self.recorder(usage, self.deal_id, self.document_id)
            cost = float(cost) if cost is not None else estimate_cost(usage)

            self.state.agent_usage.setdefault(usage.agent, []).append(usage)
            self._agent_costs[usage.agent] = self._agent_costs.get(usage.agent, 0.0) + cost
            self.state.total_cost = self.get_total_cost()
            LOGGER.info(
                f"Tracked model usage for agent {usage.agent}",
                extra={
                    "model_id": usage.model_id,
                    "input_tokens": usage.input_tokens,
                    "output_tokens": usage.output_tokens,
                    "cost_usd": cost,
                },
            )
        except Exception as e:
            LOGGER.error(f"Error tracking model usage: {e}", exc_info=True)
        finally:
            self.state.is_tracking = False

    def get_agent_cost(self, agent: str) -> float:
        return self._agent_costs.get(agent, 0.0)

    def get_total_cost(self) -> float:
        return sum(self._agent_costs.values())

    def reset(self) -> None:
        self.state = ModelTrackingState()
        self._agent_costs = {}
