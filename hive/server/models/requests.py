"""Request schemas for REST API endpoints."""

import os
from pathlib import Path
from typing import Annotated

from pydantic import BaseModel, Field, field_validator

from hive.build.checkpoint import CheckpointAction
from hive.build.models import FileChange, StepOutcome
from hive.core.types import Architecture


def _validate_root_path(cls: type, v: str | None) -> str | None:
    """Validate project_root_path is absolute and safe.

    Args:
        cls: The model class (unused, required by field_validator).
        v: Path to validate.

    Returns:
        Canonicalized absolute path, or None.

    Raises:
        ValueError: If path is not absolute, contains null bytes or is not
            an existing directory.
    """
    if v is None:
        return v

    if "\0" in v:
        msg = "project_root_path contains null byte"
        raise ValueError(msg)

    if not os.path.isabs(v):
        msg = "project_root_path must be absolute"
        raise ValueError(msg)

    resolved = Path(v).resolve()
    if not resolved.is_dir():
        msg = "project_root_path must be an existing directory"
        raise ValueError(msg)

    return str(resolved)


class CreateProjectRequest(BaseModel):
    """Request to register a project.

    Attributes:
        slug: URL-safe unique handle
        name: Human-readable name
        description: Short description
        architecture: Initial architecture declaration
    """

    slug: Annotated[
        str,
        Field(
            min_length=1,
            max_length=100,
            pattern=r"^[a-z0-9][a-z0-9_-]*$",
            description="Lowercase alphanumeric handle with dashes/underscores",
        ),
    ]
    name: Annotated[str, Field(min_length=1, description="Human-readable project name")]
    description: Annotated[str, Field(description="Short project description")] = ""
    architecture: Annotated[
        Architecture,
        Field(default_factory=Architecture, description="Initial architecture"),
    ]


class PlanBuildRequest(BaseModel):
    """Request to plan a build from the project's architecture."""

    description: Annotated[str, Field(description="What is being built")] = ""


class ExecuteStepRequest(BaseModel):
    """Report the outcome of a build task.

    Attributes:
        outcome: completed or failed
        file_changes: Files created, modified or deleted by the task
        error: Failure message (kept only for failed outcomes)
        expected_version: Reject the report if the plan changed since this version
    """

    outcome: Annotated[StepOutcome, Field(description="Task outcome")]
    file_changes: Annotated[
        list[FileChange],
        Field(default_factory=list, description="Files touched by the task"),
    ]
    error: Annotated[str | None, Field(description="Failure message")] = None
    expected_version: Annotated[
        int | None,
        Field(ge=1, description="Plan version the report is based on"),
    ] = None


class VersionedRequest(BaseModel):
    """Request body carrying only an optional expected plan version."""

    expected_version: Annotated[
        int | None,
        Field(ge=1, description="Plan version the request is based on"),
    ] = None


class CheckpointRequest(BaseModel):
    """Review, approve or reject the current checkpoint."""

    action: Annotated[
        CheckpointAction,
        Field(description="review, approve or reject"),
    ] = CheckpointAction.REVIEW
    reason: Annotated[str | None, Field(description="Why the checkpoint was rejected")] = None
    expected_version: Annotated[
        int | None,
        Field(ge=1, description="Plan version the decision is based on"),
    ] = None


class RollbackRequest(BaseModel):
    """Roll back a completed or failed task.

    Attributes:
        task_id: Task to roll back (defaults to the last completed or failed task)
        project_root_path: Absolute path to the code root; omit to skip file reversal
        expected_version: Reject the rollback if the plan changed since this version
    """

    task_id: Annotated[str | None, Field(description="Task to roll back")] = None
    project_root_path: Annotated[
        str | None,
        Field(description="Absolute path to the project's code root"),
    ] = None
    expected_version: Annotated[
        int | None,
        Field(ge=1, description="Plan version the rollback is based on"),
    ] = None

    validate_root = field_validator("project_root_path", mode="after")(_validate_root_path)
