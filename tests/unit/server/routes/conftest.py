"""Shared fixtures for route tests."""
from collections.abc import AsyncGenerator
from datetime import UTC, datetime
from unittest.mock import AsyncMock

import pytest
from fastapi import FastAPI
from httpx import ASGITransport, AsyncClient

from hive.build.service import BuildService
from hive.server.database import Database, ProjectRepository
from hive.server.dependencies import get_build_service, get_database, get_project_repository
from hive.server.routes import builds_router, health_router, projects_router
from hive.server.routes.builds import configure_exception_handlers


@pytest.fixture
def mock_service() -> AsyncMock:
    """Create a mock build service."""
    return AsyncMock(spec=BuildService)


@pytest.fixture
def mock_projects() -> AsyncMock:
    """Create a mock project repository."""
    return AsyncMock(spec=ProjectRepository)


@pytest.fixture
def mock_database() -> AsyncMock:
    """Create a mock database."""
    return AsyncMock(spec=Database)


@pytest.fixture
def app(
    mock_service: AsyncMock,
    mock_projects: AsyncMock,
    mock_database: AsyncMock,
) -> FastAPI:
    """Create a test FastAPI app with mocked dependencies."""
    test_app = FastAPI()
    configure_exception_handlers(test_app)
    test_app.include_router(health_router, prefix="/api")
    test_app.include_router(projects_router, prefix="/api")
    test_app.include_router(builds_router, prefix="/api")
    test_app.state.start_time = datetime.now(UTC)

    test_app.dependency_overrides[get_build_service] = lambda: mock_service
    test_app.dependency_overrides[get_project_repository] = lambda: mock_projects
    test_app.dependency_overrides[get_database] = lambda: mock_database

    return test_app


@pytest.fixture
async def client(app: FastAPI) -> AsyncGenerator[AsyncClient, None]:
    """Create an async test client."""
    transport = ASGITransport(app=app, raise_app_exceptions=False)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac
