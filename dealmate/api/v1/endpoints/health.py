"""Health check API endpoints."""

from typing import Annotated

from fastapi import APIRouter, Depends

from dealmate.core.config import settings
from dealmate.core.database import db_client
from dealmate.dependencies import get_ai_client
from dealmate.schemas.api import HealthCheckResponse
from dealmate.services.ai_server_client import AIServerClient
from dealmate.utils.logging import get_logger

LOGGER = get_logger(__name__)

router = APIRouter()


@router.get(
    "",
    response_model=HealthCheckResponse,
    summary="Health check endpoint",
    description="Check if the service, its database and the AI server are reachable",
    operation_id="get_service_health_status",
)
async def health_check(
    ai_client: Annotated[AIServerClient, Depends(get_ai_client)],
) -> HealthCheckResponse:
    """Health check endpoint."""
    db_health = await db_client.health_check()
    ai_healthy = await ai_client.check_health()

    if not ai_healthy:
        LOGGER.warning("AI server is not reachable", extra={"ai_server_url": ai_client.base_url})

    return HealthCheckResponse(
        status="healthy" if db_health["status"] == "healthy" and ai_healthy else "degraded",
        version=settings.app_version,
        service=settings.app_name,
        database=db_health["status"],
        ai_server="healthy" if ai_healthy else "unreachable",
        ai_server_url=ai_client.base_url,
    )
