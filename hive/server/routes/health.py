# This Source Code Form is subject to the terms of the Mozilla Public
# License, v. 2.0. If a copy of the MPL was not distributed with this
# file, You can obtain one at https://mozilla.org/MPL/2.0/.
"""Health check endpoint."""
from datetime import UTC, datetime
from typing import Literal

from fastapi import APIRouter, Depends, Request
from pydantic import BaseModel, Field

from hive import __version__
from hive.server.database.connection import Database
from hive.server.dependencies import get_database


router = APIRouter(prefix="/health", tags=["health"])


class DatabaseStatus(BaseModel):
    """Database health status."""

    status: Literal["healthy", "unhealthy"]
    mode: str = Field(description="Database mode (e.g., 'wal')")
    path: str = Field(description="Path to the SQLite database file")


class HealthResponse(BaseModel):
    """Response model for health check."""

    status: Literal["healthy", "degraded"]
    version: str
    uptime_seconds: float
    database: DatabaseStatus


@router.get("", response_model=HealthResponse)
async def health(request: Request, db: Database = Depends(get_database)) -> HealthResponse:
    """Liveness check with a database probe.

    Returns:
        Server status, version, uptime and database status.
    """
    start_time: datetime = request.app.state.start_time
    uptime = (datetime.now(UTC) - start_time).total_seconds()

    db_status = DatabaseStatus(
        status="healthy" if await db.is_healthy() else "unhealthy",
        mode="wal",
        path=str(db.path),
    )
    overall_status: Literal["healthy", "degraded"] = (
        "healthy" if db_status.status == "healthy" else "degraded"
    )

    return HealthResponse(
        status=overall_status,
        version=__version__,
        uptime_seconds=uptime,
        database=db_status,
    )
