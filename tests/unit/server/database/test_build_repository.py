# This Source Code Form is subject to the terms of the Mozilla Public
# License, v. 2.0. If a copy of the MPL was not distributed with this
# file, You can obtain one at https://mozilla.org/MPL/2.0/.
"""Tests for BuildPlanRepository persistence and compare-and-swap updates."""
from collections.abc import Callable
from datetime import UTC, datetime, timedelta

import aiosqlite
import pytest

from hive.build.exceptions import (
    ActivePlanExistsError,
    PlanNotFoundError,
    PlanVersionConflictError,
)
from hive.build.models import (
    BuildPlan,
    FileAction,
    FileChange,
    PlanStatus,
    TaskStatus,
)
from hive.core.types import Project
from hive.server.database import BuildPlanRepository, Database


@pytest.fixture
def new_plan(
    plan_factory: Callable[..., BuildPlan],
    stored_project: Project,
) -> BuildPlan:
    """Unsaved plan for the stored project."""
    return plan_factory(stored_project.architecture, project_id=stored_project.id)


class TestCreate:
    """Tests for plan creation."""

    async def test_round_trip(
        self, build_repository: BuildPlanRepository, new_plan: BuildPlan
    ) -> None:
        _, task = new_plan.find_task("p1t1")
        task.status = TaskStatus.COMPLETED
        task.file_changes = [
            FileChange(path="src/db.py", action=FileAction.MODIFIED, previous_content="old")
        ]

        await build_repository.create(new_plan)
        loaded = await build_repository.get(new_plan.id)

        assert loaded is not None
        assert loaded.model_dump() == new_plan.model_dump()

    async def test_second_active_plan_rejected(
        self,
        build_repository: BuildPlanRepository,
        plan_factory: Callable[..., BuildPlan],
        stored_project: Project,
        new_plan: BuildPlan,
    ) -> None:
        await build_repository.create(new_plan)

        with pytest.raises(ActivePlanExistsError) as exc_info:
            await build_repository.create(
                plan_factory(stored_project.architecture, project_id=stored_project.id)
            )

        assert exc_info.value.plan_id == new_plan.id

    async def test_failed_insert_rolls_back(
        self,
        db_with_schema: Database,
        build_repository: BuildPlanRepository,
        plan_factory: Callable[..., BuildPlan],
        stored_project: Project,
        new_plan: BuildPlan,
    ) -> None:
        """A rejected insert leaves no row and no open transaction behind."""
        orphan = plan_factory(stored_project.architecture, project_id="missing-project")

        with pytest.raises(aiosqlite.IntegrityError):
            await build_repository.create(orphan)

        assert await db_with_schema.fetch_scalar("SELECT COUNT(*) FROM build_plans") == 0

        await build_repository.create(new_plan)
        assert await build_repository.get(new_plan.id) is not None

    async def test_new_plan_allowed_after_completion(
        self,
        build_repository: BuildPlanRepository,
        plan_factory: Callable[..., BuildPlan],
        stored_project: Project,
        new_plan: BuildPlan,
    ) -> None:
        new_plan.status = PlanStatus.COMPLETED
        new_plan.created = datetime.now(UTC) - timedelta(hours=1)
        await build_repository.create(new_plan)

        second = plan_factory(stored_project.architecture, project_id=stored_project.id)
        await build_repository.create(second)

        assert (await build_repository.get_active(stored_project.id)).id == second.id
        assert (await build_repository.get_by_project(stored_project.id)).id == second.id
        listed = await build_repository.list_by_project(stored_project.id)
        assert [p.id for p in listed] == [second.id, new_plan.id]


class TestQueries:
    """Tests for lookups."""

    async def test_get_missing(self, build_repository: BuildPlanRepository) -> None:
        assert await build_repository.get("nope") is None

    async def test_project_without_plan(
        self, build_repository: BuildPlanRepository, stored_project: Project
    ) -> None:
        assert await build_repository.get_by_project(stored_project.id) is None
        assert await build_repository.get_active(stored_project.id) is None
        assert await build_repository.list_by_project(stored_project.id) == []

    async def test_completed_plan_is_not_active(
        self,
        build_repository: BuildPlanRepository,
        stored_project: Project,
        new_plan: BuildPlan,
    ) -> None:
        new_plan.status = PlanStatus.COMPLETED
        await build_repository.create(new_plan)

        assert await build_repository.get_active(stored_project.id) is None
        assert (await build_repository.get_by_project(stored_project.id)).id == new_plan.id


class TestUpdate:
    """Tests for compare-and-swap updates."""

    async def test_update_bumps_version(
        self, build_repository: BuildPlanRepository, new_plan: BuildPlan
    ) -> None:
        await build_repository.create(new_plan)
        working = new_plan.model_copy(deep=True)
        working.status = PlanStatus.IN_PROGRESS

        stored = await build_repository.update(working)

        assert stored.version == 2
        assert working.version == 1
        loaded = await build_repository.get(new_plan.id)
        assert loaded.version == 2
        assert loaded.status == PlanStatus.IN_PROGRESS
        assert loaded.updated >= new_plan.updated

    async def test_stale_version_conflicts(
        self, build_repository: BuildPlanRepository, new_plan: BuildPlan
    ) -> None:
        """Two writers reading the same version: the second write loses."""
        await build_repository.create(new_plan)
        first = new_plan.model_copy(deep=True)
        second = new_plan.model_copy(deep=True)

        first.status = PlanStatus.IN_PROGRESS
        await build_repository.update(first)

        second.status = PlanStatus.PAUSED
        with pytest.raises(PlanVersionConflictError) as exc_info:
            await build_repository.update(second)

        assert exc_info.value.expected_version == 1
        assert exc_info.value.actual_version == 2
        loaded = await build_repository.get(new_plan.id)
        assert loaded.status == PlanStatus.IN_PROGRESS

    async def test_update_missing_plan(
        self, build_repository: BuildPlanRepository, new_plan: BuildPlan
    ) -> None:
        with pytest.raises(PlanNotFoundError):
            await build_repository.update(new_plan)

    async def test_completing_plan_frees_active_slot(
        self,
        build_repository: BuildPlanRepository,
        plan_factory: Callable[..., BuildPlan],
        stored_project: Project,
        new_plan: BuildPlan,
    ) -> None:
        await build_repository.create(new_plan)
        new_plan.status = PlanStatus.COMPLETED
        await build_repository.update(new_plan)

        await build_repository.create(
            plan_factory(stored_project.architecture, project_id=stored_project.id)
        )

        assert len(await build_repository.list_by_project(stored_project.id)) == 2
