"""Deal processing status endpoints."""

from typing import Annotated
from uuid import UUID

from fastapi import APIRouter, Depends
from fastapi.responses import StreamingResponse
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from dealmate.dependencies import get_hub, get_session_factory, get_sse_manager
from dealmate.schemas.api import ProcessingStatusResponse, StopProcessingResponse
from dealmate.services.processing.reconciler import StatusReconciler
from dealmate.services.processing.status_tracker import ProcessingStatusTracker
from dealmate.services.realtime import RealtimeHub
from dealmate.services.sse_manager import SSEManager
from dealmate.utils.logging import get_logger

LOGGER = get_logger(__name__)

router = APIRouter()


def get_reconciler(
    deal_id: UUID,
    hub: Annotated[RealtimeHub, Depends(get_hub)],
    session_factory: Annotated[async_sessionmaker[AsyncSession], Depends(get_session_factory)],
) -> StatusReconciler:
    return StatusReconciler(ProcessingStatusTracker(str(deal_id)), session_factory=session_factory, hub=hub)


@router.get(
    "/{deal_id}/processing",
    response_model=ProcessingStatusResponse,
    summary="Get processing status",
    description="Reconciled processing status snapshot for a deal",
    operation_id="get_deal_processing_status",
)
async def get_processing_status(
    deal_id: UUID,
    reconciler: Annotated[StatusReconciler, Depends(get_reconciler)],
) -> ProcessingStatusResponse:
    status = await reconciler.sync()
    return ProcessingStatusResponse(deal_id=str(deal_id), status=status)


@router.post(
    "/{deal_id}/processing/stop",
    response_model=StopProcessingResponse,
    summary="Stop processing",
    description="Cancel all active processing jobs for a deal",
    operation_id="stop_deal_processing",
)
async def stop_processing(
    deal_id: UUID,
    reconciler: Annotated[StatusReconciler, Depends(get_reconciler)],
) -> StopProcessingResponse:
    cancelled = await reconciler.stop_processing()
    return StopProcessingResponse(
        deal_id=str(deal_id),
        cancelled_jobs=cancelled,
        status=reconciler.tracker.status,
    )


@router.get(
    "/{deal_id}/processing/stream",
    summary="Stream processing status",
    operation_id="stream_deal_processing_status",
)
async def stream_processing_status(
    deal_id: UUID,
    sse_manager: Annotated[SSEManager, Depends(get_sse_manager)],
) -> StreamingResponse:
    """Stream status snapshots for a deal as Server-Sent Events."""
    return StreamingResponse(
        sse_manager.stream_deal_status(str(deal_id)),
        media_type="text/event-stream",
        headers={
            "Cache-Control": "no-cache",
            "Connection": "keep-alive",
            "X-Accel-Buffering": "no",  # Disable proxy buffering (Nginx)
        },
    )
