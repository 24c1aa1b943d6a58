"""Response schemas for REST API endpoints."""

from typing import Annotated, Any

from pydantic import BaseModel, Field

from hive.core.types import Project


class ProjectListResponse(BaseModel):
    """Response containing all registered projects.

    Attributes:
        projects: Registered projects
        total: Number of projects
    """

    projects: Annotated[list[Project], Field(description="Registered projects")]
    total: Annotated[int, Field(description="Number of projects")]


class ErrorResponse(BaseModel):
    """Error response for failed requests.

    Attributes:
        error: Human-readable error message
        code: Machine-readable error code
        details: Optional additional error details
    """

    error: Annotated[str, Field(description="Human-readable error message")]
    code: Annotated[str, Field(description="Machine-readable error code")]
    details: Annotated[
        dict[str, Any] | None,
        Field(default=None, description="Optional additional error details"),
    ] = None
