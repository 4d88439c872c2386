from typing import Any, Optional

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from dealmate.database.models import CIMAnalysis
from dealmate.repositories.base_repository import BaseRepository
from dealmate.repositories.processing_job_repository import IdLike, as_uuid


class CIMAnalysisRepository(BaseRepository[CIMAnalysis]):
    """Repository for stored CIM analysis results."""

    def __init__(self, session: AsyncSession):
        super().__init__(session, CIMAnalysis)

    async def get_latest_for_deal(self, deal_id: IdLike) -> Optional[CIMAnalysis]:
        try:
            query = (
                select(CIMAnalysis)
                .where(CIMAnalysis.deal_id == as_uuid(deal_id))
                .order_by(CIMAnalysis.created_at.desc())
                .limit(1)
            )
            result = await self.session.execute(query)
            return result.scalars().first()
        except SQLAlchemyError as e:
            self.logger.error(f"Error getting analysis for deal {deal_id}: {str(e)}", exc_info=True)
            raise

    async def create_analysis(
        self,
        deal_id: IdLike,
        document_id: Optional[IdLike] = None,
        **fields: Any,
    ) -> CIMAnalysis:
        """Store an analysis result.

        Args:
            deal_id: Deal the analysis belongs to
            document_id: Optional analysed document
            **fields: Analysis columns (investment_grade, financial_metrics, ...)

        Returns:
            Created CIMAnalysis instance
        """
        return await self.create(
            deal_id=as_uuid(deal_id),
            document_id=as_uuid(document_id) if document_id else None,
            **fields,
        )
