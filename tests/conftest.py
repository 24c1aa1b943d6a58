# This Source Code Form is subject to the terms of the Mozilla Public
# License, v. 2.0. If a copy of the MPL was not distributed with this
# file, You can obtain one at https://mozilla.org/MPL/2.0/.
"""Shared fixtures and helpers for all tests.

This module provides factory fixtures for creating architectures, build
plans and databases used throughout the test suite.
"""
from collections.abc import AsyncGenerator, Callable
from pathlib import Path

import pytest

from hive.build.models import BuildPlan, FileChange, TaskStatus
from hive.build.planner import plan_phases
from hive.core.types import Architecture, Component, Project
from hive.server.database import BuildPlanRepository, Database, ProjectRepository


@pytest.fixture
def component_factory() -> Callable[..., Component]:
    """Factory fixture for creating Component instances with sensible defaults."""
    def _create(
        name: str = "api",
        dependencies: list[str] | None = None,
        type: str = "service",
        description: str = "",
        files: list[str] | None = None,
    ) -> Component:
        return Component(
            name=name,
            type=type,
            description=description,
            files=files or [f"src/{name}/**"],
            dependencies=dependencies or [],
        )
    return _create


@pytest.fixture
def architecture_factory(
    component_factory: Callable[..., Component],
) -> Callable[..., Architecture]:
    """Factory fixture building an Architecture from (name, deps) pairs."""
    def _create(*specs: tuple[str, list[str]], description: str = "") -> Architecture:
        return Architecture(
            description=description,
            components=[component_factory(name=name, dependencies=deps) for name, deps in specs],
        )
    return _create


@pytest.fixture
def layered_architecture(architecture_factory: Callable[..., Architecture]) -> Architecture:
    """db <- api <- ui chain: three phases of one task each."""
    return architecture_factory(("db", []), ("api", ["db"]), ("ui", ["api"]))


@pytest.fixture
def plan_factory() -> Callable[..., BuildPlan]:
    """Factory fixture for creating BuildPlan instances from an architecture."""
    def _create(
        architecture: Architecture,
        project_id: str = "project-1",
        description: str = "Test build",
        checkpoint: bool = True,
    ) -> BuildPlan:
        phase_plan = plan_phases(architecture.components, checkpoint=checkpoint)
        return BuildPlan(
            project_id=project_id,
            description=description,
            phases=phase_plan.phases,
        )
    return _create


@pytest.fixture
def complete_task() -> Callable[..., None]:
    """Mark a task completed directly, bypassing the gateway's checks."""
    def _complete(
        plan: BuildPlan,
        task_id: str,
        status: TaskStatus = TaskStatus.COMPLETED,
        file_changes: list[FileChange] | None = None,
    ) -> None:
        _, task = plan.find_task(task_id)
        task.status = status
        task.file_changes = file_changes or []
        if status == TaskStatus.FAILED:
            task.error = "boom"
    return _complete


@pytest.fixture
async def db_with_schema(tmp_path: Path) -> AsyncGenerator[Database, None]:
    """Create a database with schema initialized.

    Yields:
        Database: Connected database instance with schema initialized.
    """
    async with Database(tmp_path / "test.db") as db:
        await db.ensure_schema()
        yield db


@pytest.fixture
def project_repository(db_with_schema: Database) -> ProjectRepository:
    return ProjectRepository(db_with_schema)


@pytest.fixture
def build_repository(db_with_schema: Database) -> BuildPlanRepository:
    return BuildPlanRepository(db_with_schema)


@pytest.fixture
async def stored_project(
    project_repository: ProjectRepository,
    layered_architecture: Architecture,
) -> Project:
    """A registered project with the db <- api <- ui architecture."""
    return await project_repository.create(
        Project(slug="shop", name="Shop", architecture=layered_architecture)
    )
