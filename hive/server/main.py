"""FastAPI application setup and configuration."""
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from datetime import UTC, datetime

from fastapi import FastAPI

from hive import __version__
from hive.build.service import BuildService
from hive.config import load_config
from hive.logging import configure_logging, log_server_startup
from hive.server.database import BuildPlanRepository, ProjectRepository
from hive.server.database.connection import Database
from hive.server.dependencies import (
    clear_build_service,
    clear_database,
    set_build_service,
    set_database,
)
from hive.server.routes import builds_router, health_router, projects_router
from hive.server.routes.builds import configure_exception_handlers


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Manage application lifespan events.

    Sets start_time on startup for uptime calculation.
    Initializes configuration, database and the build service.
    """
    config = load_config()
    configure_logging(config.log_level)

    # Connect to database and ensure schema exists
    database = Database(config.database_path)
    await database.connect()
    await database.ensure_schema()

    set_database(database)

    service = BuildService(
        projects=ProjectRepository(database),
        plans=BuildPlanRepository(database),
        checkpoint_every_phase=config.checkpoint_every_phase,
    )
    set_build_service(service)

    log_server_startup(
        host=config.host,
        port=config.port,
        database_path=str(config.database_path),
        version=__version__,
    )

    app.state.start_time = datetime.now(UTC)

    yield

    clear_build_service()
    await database.close()
    clear_database()


def create_app() -> FastAPI:
    """Create and configure the FastAPI application.

    Returns:
        Configured FastAPI application instance.
    """
    application = FastAPI(
        title="Hive API",
        description="Build plan orchestrator REST API",
        version=__version__,
        docs_url="/api/docs",
        redoc_url="/api/redoc",
        openapi_url="/api/openapi.json",
        lifespan=lifespan,
    )

    # Configure exception handlers
    configure_exception_handlers(application)

    # Mount routes
    application.include_router(health_router, prefix="/api")
    application.include_router(projects_router, prefix="/api")
    application.include_router(builds_router, prefix="/api")

    return application


# Create app instance
app = create_app()
