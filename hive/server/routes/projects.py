# This Source Code Form is subject to the terms of the Mozilla Public
# License, v. 2.0. If a copy of the MPL was not distributed with this
# file, You can obtain one at https://mozilla.org/MPL/2.0/.
"""Project registration and architecture routes."""

from fastapi import APIRouter, Depends, status
from loguru import logger

from hive.build.exceptions import ProjectNotFoundError
from hive.core.types import Architecture, Project
from hive.server.database import ProjectRepository
from hive.server.dependencies import get_project_repository
from hive.server.models.requests import CreateProjectRequest
from hive.server.models.responses import ProjectListResponse


router = APIRouter(prefix="/projects", tags=["projects"])


@router.post("", status_code=status.HTTP_201_CREATED, response_model=Project)
async def create_project(
    request: CreateProjectRequest,
    repository: ProjectRepository = Depends(get_project_repository),
) -> Project:
    """Register a new project.

    Raises:
        ProjectExistsError: If the slug is already taken.
    """
    project = await repository.create(
        Project(
            slug=request.slug,
            name=request.name,
            description=request.description,
            architecture=request.architecture,
        )
    )
    logger.info(
        "Created project",
        project=project.slug,
        components=len(project.architecture.components),
    )
    return project


@router.get("", response_model=ProjectListResponse)
async def list_projects(
    repository: ProjectRepository = Depends(get_project_repository),
) -> ProjectListResponse:
    """List all registered projects."""
    projects = await repository.list_all()
    return ProjectListResponse(projects=projects, total=len(projects))


@router.get("/{slug}", response_model=Project)
async def get_project(
    slug: str,
    repository: ProjectRepository = Depends(get_project_repository),
) -> Project:
    """Get a project with its architecture.

    Raises:
        ProjectNotFoundError: If the project doesn't exist.
    """
    project = await repository.get_by_slug(slug)
    if project is None:
        raise ProjectNotFoundError(slug)
    return project


@router.put("/{slug}/architecture", response_model=Project)
async def update_architecture(
    slug: str,
    architecture: Architecture,
    repository: ProjectRepository = Depends(get_project_repository),
) -> Project:
    """Replace a project's architecture.

    Plans created earlier keep the phases they were planned with.

    Raises:
        ProjectNotFoundError: If the project doesn't exist.
    """
    project = await repository.update_architecture(slug, architecture)
    logger.info(
        "Updated architecture",
        project=slug,
        components=len(architecture.components),
    )
    return project
