from decimal import Decimal
from typing import Optional

from sqlalchemy.ext.asyncio import AsyncSession

from dealmate.database.models import AIModel, ModelUsageLog
from dealmate.repositories.base_repository import BaseRepository
from dealmate.repositories.processing_job_repository import IdLike, as_uuid
from dealmate.schemas.processing import ModelUsage

# Catalogue prices are per 1000 tokens
TOKENS_PER_PRICE_UNIT = 1000


def calculate_cost(model: Optional[AIModel], input_tokens: int, output_tokens: int) -> Decimal:
    if model is None:
        return Decimal(0)
    input_cost = Decimal(input_tokens) * Decimal(model.cost_per_input_token) / TOKENS_PER_PRICE_UNIT
    output_cost = Decimal(output_tokens) * Decimal(model.cost_per_output_token) / TOKENS_PER_PRICE_UNIT
    return input_cost + output_cost


class ModelUsageRepository(BaseRepository[ModelUsageLog]):
    """Repository for model usage logs priced from the ``ai_models`` catalogue."""

    def __init__(self, session: AsyncSession):
        super().__init__(session, ModelUsageLog)

    async def log_usage(
        self,
        usage: ModelUsage,
        deal_id: Optional[IdLike] = None,
        document_id: Optional[IdLike] = None,
    ) -> ModelUsageLog:
        """Persist one usage record; unknown models are logged at zero cost."""
        model = await self.session.get(AIModel, usage.model_id)
        if model is None:
            self.logger.warning(f"Model {usage.model_id} not found in catalogue, logging zero cost")

        return await self.create(
            deal_id=as_uuid(deal_id) if deal_id else None,
            document_id=as_uuid(document_id) if document_id else None,
            agent_name=usage.agent,
            model_id=usage.model_id,
            use_case=usage.use_case,
            input_tokens=usage.input_tokens,
            output_tokens=usage.output_tokens,
            total_tokens=usage.input_tokens + usage.output_tokens,
            cost_usd=calculate_cost(model, usage.input_tokens, usage.output_tokens),
            processing_time_ms=usage.processing_time_ms,
            success=usage.success,
            error_message=usage.error_message,
        )
