# This Source Code Form is subject to the terms of the Mozilla Public
# License, v. 2.0. If a copy of the MPL was not distributed with this
# file, You can obtain one at https://mozilla.org/MPL/2.0/.
"""Build plan routes and exception handlers."""

from __future__ import annotations

from fastapi import APIRouter, Depends, FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from loguru import logger
from pydantic_core import ValidationError

from hive.build.checkpoint import CheckpointDecision, CheckpointReview
from hive.build.exceptions import (
    ActivePlanExistsError,
    DependencyNotMetError,
    InvalidStateError,
    PlanNotFoundError,
    PlanVersionConflictError,
    ProjectExistsError,
    ProjectNotFoundError,
    TaskNotFoundError,
)
from hive.build.gateway import ClaimResult, StepReport
from hive.build.resume import ResumeReport
from hive.build.rollback import RollbackReport
from hive.build.service import BuildService, PlanCreated
from hive.build.summary import PlanSummary, TaskRef
from hive.server.dependencies import get_build_service
from hive.server.models.requests import (
    CheckpointRequest,
    ExecuteStepRequest,
    PlanBuildRequest,
    RollbackRequest,
    VersionedRequest,
)
from hive.server.models.responses import ErrorResponse


router = APIRouter(prefix="/projects/{slug}/build", tags=["builds"])


@router.post("", status_code=status.HTTP_201_CREATED, response_model=PlanCreated)
async def plan_build(
    slug: str,
    request: PlanBuildRequest,
    service: BuildService = Depends(get_build_service),
) -> PlanCreated:
    """Create a build plan from the project's architecture.

    Raises:
        ProjectNotFoundError: If the project doesn't exist.
        EmptyArchitectureError: If the architecture has no components.
        ActivePlanExistsError: If an unfinished plan already exists.
    """
    return await service.plan_build(slug, request.description)


@router.get("", response_model=PlanSummary)
async def build_status(
    slug: str,
    service: BuildService = Depends(get_build_service),
) -> PlanSummary:
    """Get a summary of the project's latest build plan."""
    return await service.build_status(slug)


@router.post("/next", response_model=ClaimResult)
async def next_step(
    slug: str,
    service: BuildService = Depends(get_build_service),
) -> ClaimResult:
    """Claim the next actionable task."""
    return await service.next_step(slug)


@router.post("/steps/{task_id}", response_model=StepReport)
async def execute_step(
    slug: str,
    task_id: str,
    request: ExecuteStepRequest,
    service: BuildService = Depends(get_build_service),
) -> StepReport:
    """Report the outcome of a task.

    Raises:
        TaskNotFoundError: If the task is not in the plan.
        InvalidStateError: If the task is not pending or claimed, or a
            dependency is not completed.
        PlanVersionConflictError: If the plan changed since expected_version.
    """
    return await service.execute_step(
        slug,
        task_id,
        request.outcome,
        file_changes=request.file_changes,
        error=request.error,
        expected_version=request.expected_version,
    )


@router.post("/steps/{task_id}/retry", response_model=TaskRef)
async def retry_step(
    slug: str,
    task_id: str,
    request: VersionedRequest | None = None,
    service: BuildService = Depends(get_build_service),
) -> TaskRef:
    """Return a rolled-back task to pending."""
    return await service.retry_step(
        slug,
        task_id,
        expected_version=request.expected_version if request else None,
    )


@router.post("/checkpoint", response_model=CheckpointReview | CheckpointDecision)
async def checkpoint(
    slug: str,
    request: CheckpointRequest,
    service: BuildService = Depends(get_build_service),
) -> CheckpointReview | CheckpointDecision:
    """Review, approve or reject the current checkpoint."""
    return await service.review_checkpoint(
        slug,
        request.action,
        reason=request.reason,
        expected_version=request.expected_version,
    )


@router.post("/resume", response_model=ResumeReport)
async def resume_build(
    slug: str,
    service: BuildService = Depends(get_build_service),
) -> ResumeReport:
    """Attach a new session to the project's unfinished build."""
    return await service.resume_build(slug)


@router.post("/rollback", response_model=RollbackReport)
async def rollback_step(
    slug: str,
    request: RollbackRequest | None = None,
    service: BuildService = Depends(get_build_service),
) -> RollbackReport:
    """Roll back a completed or failed task.

    Files are only reverted when project_root_path is given.
    """
    request = request or RollbackRequest()
    return await service.rollback_step(
        slug,
        task_id=request.task_id,
        project_root_path=request.project_root_path,
        expected_version=request.expected_version,
    )


def _error(status_code: int, code: str, exc: Exception, details: dict[str, object]) -> JSONResponse:
    error = ErrorResponse(code=code, error=str(exc), details=details)
    return JSONResponse(status_code=status_code, content=error.model_dump())


def configure_exception_handlers(app: FastAPI) -> None:
    """Configure exception handlers for the FastAPI application.

    Registers handlers for all domain exceptions to return appropriate
    HTTP status codes and error responses.

    Args:
        app: FastAPI application instance.
    """

    @app.exception_handler(ProjectNotFoundError)
    async def project_not_found_handler(
        request: Request, exc: ProjectNotFoundError
    ) -> JSONResponse:
        """Handle ProjectNotFoundError with 404 Not Found."""
        logger.warning("Project not found", project=exc.project)
        return _error(404, "NOT_FOUND", exc, {"project": exc.project})

    @app.exception_handler(PlanNotFoundError)
    async def plan_not_found_handler(
        request: Request, exc: PlanNotFoundError
    ) -> JSONResponse:
        """Handle PlanNotFoundError with 404 Not Found."""
        logger.warning("Build plan not found", project=exc.project)
        return _error(404, "NOT_FOUND", exc, {"project": exc.project})

    @app.exception_handler(TaskNotFoundError)
    async def task_not_found_handler(
        request: Request, exc: TaskNotFoundError
    ) -> JSONResponse:
        """Handle TaskNotFoundError with 404 Not Found."""
        logger.warning("Task not found", task_id=exc.task_id)
        return _error(404, "NOT_FOUND", exc, {"task_id": exc.task_id})

    @app.exception_handler(InvalidStateError)
    async def invalid_state_handler(
        request: Request, exc: InvalidStateError
    ) -> JSONResponse:
        """Handle InvalidStateError and its subclasses with 422 Unprocessable Entity.

        Args:
            request: The incoming request.
            exc: The exception instance.

        Returns:
            JSONResponse with 422 status code.
        """
        logger.warning(
            "Invalid state for build operation",
            task_id=exc.task_id,
            current_status=exc.current_status,
        )
        details: dict[str, object] = {
            "task_id": exc.task_id,
            "current_status": exc.current_status,
        }
        if isinstance(exc, DependencyNotMetError):
            details["unmet"] = exc.unmet
        return _error(422, "INVALID_STATE", exc, details)

    @app.exception_handler(ActivePlanExistsError)
    async def active_plan_handler(
        request: Request, exc: ActivePlanExistsError
    ) -> JSONResponse:
        """Handle ActivePlanExistsError with 409 Conflict."""
        logger.warning("Active build plan exists", project=exc.project, plan_id=exc.plan_id)
        return _error(409, "CONFLICT", exc, {"project": exc.project, "plan_id": exc.plan_id})

    @app.exception_handler(PlanVersionConflictError)
    async def version_conflict_handler(
        request: Request, exc: PlanVersionConflictError
    ) -> JSONResponse:
        """Handle PlanVersionConflictError with 409 Conflict."""
        logger.warning(
            "Build plan version conflict",
            plan_id=exc.plan_id,
            expected_version=exc.expected_version,
            actual_version=exc.actual_version,
        )
        return _error(
            409,
            "CONFLICT",
            exc,
            {
                "plan_id": exc.plan_id,
                "expected_version": exc.expected_version,
                "actual_version": exc.actual_version,
            },
        )

    @app.exception_handler(ProjectExistsError)
    async def project_exists_handler(
        request: Request, exc: ProjectExistsError
    ) -> JSONResponse:
        """Handle ProjectExistsError with 409 Conflict."""
        logger.warning("Project already exists", project=exc.project)
        return _error(409, "CONFLICT", exc, {"project": exc.project})

    @app.exception_handler(RequestValidationError)
    async def request_validation_handler(
        request: Request, exc: RequestValidationError
    ) -> JSONResponse:
        """Handle request body and parameter validation with 400 Bad Request."""
        logger.warning("Request validation error", error=str(exc))
        errors: list[dict[str, object]] = [
            {"type": error["type"], "loc": list(error["loc"]), "msg": error["msg"]}
            for error in exc.errors()
        ]
        error_response = ErrorResponse(
            code="VALIDATION_ERROR",
            error="Validation failed",
            details={"errors": errors},
        )
        return JSONResponse(status_code=400, content=error_response.model_dump())

    @app.exception_handler(ValidationError)
    async def validation_error_handler(
        request: Request, exc: ValidationError
    ) -> JSONResponse:
        """Handle Pydantic ValidationError with 400 Bad Request.

        Args:
            request: The incoming request.
            exc: The exception instance.

        Returns:
            JSONResponse with 400 status code.
        """
        logger.warning("Validation error", error=str(exc))
        # Convert error objects to JSON-serializable format
        errors: list[dict[str, object]] = []
        for error in exc.errors():
            serializable_error: dict[str, object] = {
                "type": error["type"],
                "loc": list(error["loc"]),
                "msg": error["msg"],
            }
            if "ctx" in error:
                serializable_error["ctx"] = {
                    k: str(v) for k, v in error["ctx"].items()
                }
            errors.append(serializable_error)

        error_response = ErrorResponse(
            code="VALIDATION_ERROR",
            error="Validation failed",
            details={"errors": errors},
        )
        return JSONResponse(
            status_code=400,
            content=error_response.model_dump(),
        )

    @app.exception_handler(Exception)
    async def generic_exception_handler(
        request: Request, exc: Exception
    ) -> JSONResponse:
        """Handle generic exceptions with 500 Internal Server Error.

        Args:
            request: The incoming request.
            exc: The exception instance.

        Returns:
            JSONResponse with 500 status code.
        """
        logger.exception("Unhandled exception", error=str(exc))
        error = ErrorResponse(
            code="INTERNAL_ERROR",
            error=str(exc),
        )
        return JSONResponse(
            status_code=500,
            content=error.model_dump(),
        )
