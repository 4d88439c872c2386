"""Pytest configuration and shared fixtures."""

import os

# Point the module-level engine at SQLite before any dealmate import reads settings
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")

import pytest
import pytest_asyncio
from fastapi.testclient import TestClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from dealmate.core.database import Base
from dealmate.database import models  # noqa: F401
from dealmate.main import app
from dealmate.services.realtime import RealtimeHub


@pytest.fixture
def test_client() -> TestClient:
    """Create FastAPI test client.

    Returns:
        TestClient: FastAPI test client instance
    """
    return TestClient(app)


@pytest.fixture(autouse=True)
def clear_dependency_overrides():
    """Ensure FastAPI dependency overrides are reset between tests."""
    app.dependency_overrides = {}
    yield
    app.dependency_overrides = {}


@pytest.fixture
def hub() -> RealtimeHub:
    """Isolated realtime hub so tests never see each other's events."""
    return RealtimeHub(queue_size=10)


@pytest_asyncio.fixture
async def session_factory():
    """In-memory SQLite database with all tables created.

    Yields:
        async_sessionmaker: Factory bound to the test engine
    """
    engine = create_async_engine(
        "sqlite+aiosqlite:///:memory:",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)

    await engine.dispose()


@pytest_asyncio.fixture
async def db_session(session_factory) -> AsyncSession:
    async with session_factory() as session:
        yield session


@pytest.fixture
def deal_id() -> str:
    return "8b0c6a4e-3f1d-4c1e-9a57-2d7f0e5b9c11"


@pytest.fixture
def sample_analysis() -> dict:
    """Analysis result in the shape returned by the AI server."""
    return {
        "financial_metrics": {"revenue_cagr": "15%", "ebitda_margin": "22%"},
        "key_risks": ["supplier concentration"],
        "recommendation": {"action": "Pursue"},
    }
