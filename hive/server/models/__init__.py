"""Request and response schemas for the Hive server."""

from hive.server.models.requests import (
    CheckpointRequest,
    CreateProjectRequest,
    ExecuteStepRequest,
    PlanBuildRequest,
    RollbackRequest,
    VersionedRequest,
)
from hive.server.models.responses import ErrorResponse, ProjectListResponse


__all__ = [
    "CheckpointRequest",
    "CreateProjectRequest",
    "ErrorResponse",
    "ExecuteStepRequest",
    "PlanBuildRequest",
    "ProjectListResponse",
    "RollbackRequest",
    "VersionedRequest",
]
