"""Centralized dependency injection for the FastAPI application."""

from typing import Annotated

from fastapi import Depends
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from dealmate.core.database import async_session_maker
from dealmate.services.ai_server_client import AIServerClient
from dealmate.services.processing.document_processing import DocumentProcessingService
from dealmate.services.realtime import RealtimeHub, get_realtime_hub
from dealmate.services.scanner.result_scanner import ResultScanner, get_result_scanner
from dealmate.services.sse_manager import SSEManager


def get_session_factory() -> async_sessionmaker[AsyncSession]:
    """Session factory for components that open their own units of work."""
    return async_session_maker


def get_hub() -> RealtimeHub:
    return get_realtime_hub()


def get_scanner() -> ResultScanner:
    return get_result_scanner()


def get_ai_client() -> AIServerClient:
    return AIServerClient()


def get_sse_manager(
    hub: Annotated[RealtimeHub, Depends(get_hub)],
    session_factory: Annotated[async_sessionmaker[AsyncSession], Depends(get_session_factory)],
) -> SSEManager:
    return SSEManager(hub=hub, session_factory=session_factory)


def get_document_service(
    ai_client: Annotated[AIServerClient, Depends(get_ai_client)],
    hub: Annotated[RealtimeHub, Depends(get_hub)],
    session_factory: Annotated[async_sessionmaker[AsyncSession], Depends(get_session_factory)],
) -> DocumentProcessingService:
    return DocumentProcessingService(ai_client, session_factory=session_factory, hub=hub)
