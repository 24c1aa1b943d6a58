# This Source Code Form is subject to the terms of the Mozilla Public
# License, v. 2.0. If a copy of the MPL was not distributed with this
# file, You can obtain one at https://mozilla.org/MPL/2.0/.
"""Unit tests for the rollback engine."""
from collections.abc import Callable
from pathlib import Path

import pytest

from hive.build.exceptions import (
    InvalidStateError,
    NothingToRollBackError,
    TaskNotFoundError,
)
from hive.build.models import BuildPlan, FileAction, FileChange, PlanStatus, TaskStatus
from hive.build.rollback import RevertResult, rollback_task, select_target
from hive.core.types import Architecture
from hive.tools.project_files import ProjectFiles


@pytest.fixture
def plan(
    plan_factory: Callable[..., BuildPlan],
    layered_architecture: Architecture,
) -> BuildPlan:
    return plan_factory(layered_architecture)


@pytest.fixture
def files(tmp_path: Path) -> ProjectFiles:
    return ProjectFiles(tmp_path)


class TestRollbackTask:
    """Tests for rollback_task."""

    def test_created_file_deleted(
        self,
        plan: BuildPlan,
        complete_task: Callable[..., None],
        files: ProjectFiles,
        tmp_path: Path,
    ) -> None:
        """A created file is removed and the task is marked rolled back."""
        (tmp_path / "x.ts").write_text("export {}")
        complete_task(
            plan, "p1t1", file_changes=[FileChange(path="x.ts", action=FileAction.CREATED)]
        )

        report = rollback_task(plan, "p1t1", files)

        assert not (tmp_path / "x.ts").exists()
        _, task = plan.find_task("p1t1")
        assert task.status == TaskStatus.ROLLED_BACK
        assert task.file_changes == []
        assert task.completed is None
        assert report.task.status == TaskStatus.ROLLED_BACK
        assert [f.result for f in report.files] == [RevertResult.REVERTED]
        assert report.files[0].message == "Deleted: x.ts"

    def test_modified_file_restored(
        self,
        plan: BuildPlan,
        complete_task: Callable[..., None],
        files: ProjectFiles,
        tmp_path: Path,
    ) -> None:
        (tmp_path / "src").mkdir()
        (tmp_path / "src" / "db.py").write_text("new")
        complete_task(
            plan,
            "p1t1",
            file_changes=[
                FileChange(path="src/db.py", action=FileAction.MODIFIED, previous_content="old")
            ],
        )

        report = rollback_task(plan, "p1t1", files)

        assert (tmp_path / "src" / "db.py").read_text() == "old"
        assert report.reverted[0].message == "Restored: src/db.py"

    def test_deleted_file_recreated(
        self,
        plan: BuildPlan,
        complete_task: Callable[..., None],
        files: ProjectFiles,
        tmp_path: Path,
    ) -> None:
        complete_task(
            plan,
            "p1t1",
            file_changes=[
                FileChange(path="gone/a.py", action=FileAction.DELETED, previous_content="a = 1")
            ],
        )

        report = rollback_task(plan, "p1t1", files)

        assert (tmp_path / "gone" / "a.py").read_text() == "a = 1"
        assert report.files[0].message == "Recreated: gone/a.py"

    def test_missing_previous_content_needs_manual_revert(
        self,
        plan: BuildPlan,
        complete_task: Callable[..., None],
        files: ProjectFiles,
        tmp_path: Path,
    ) -> None:
        (tmp_path / "db.py").write_text("new")
        complete_task(
            plan, "p1t1", file_changes=[FileChange(path="db.py", action=FileAction.MODIFIED)]
        )

        report = rollback_task(plan, "p1t1", files)

        assert (tmp_path / "db.py").read_text() == "new"
        assert report.files[0].result == RevertResult.MANUAL
        assert report.needs_attention == report.files
        assert plan.find_task("p1t1")[1].status == TaskStatus.ROLLED_BACK

    def test_filesystem_error_reported_and_rollback_continues(
        self,
        plan: BuildPlan,
        complete_task: Callable[..., None],
        files: ProjectFiles,
        tmp_path: Path,
    ) -> None:
        """A failing change does not stop the remaining changes."""
        (tmp_path / "b.py").write_text("b")
        complete_task(
            plan,
            "p1t1",
            file_changes=[
                FileChange(path="missing.py", action=FileAction.CREATED),
                FileChange(path="b.py", action=FileAction.CREATED),
            ],
        )

        report = rollback_task(plan, "p1t1", files)

        assert [f.result for f in report.files] == [RevertResult.ERROR, RevertResult.REVERTED]
        assert not (tmp_path / "b.py").exists()
        assert plan.find_task("p1t1")[1].status == TaskStatus.ROLLED_BACK

    def test_traversal_reported_as_error(
        self,
        plan: BuildPlan,
        complete_task: Callable[..., None],
        files: ProjectFiles,
    ) -> None:
        complete_task(
            plan,
            "p1t1",
            file_changes=[FileChange(path="../outside.py", action=FileAction.CREATED)],
        )

        report = rollback_task(plan, "p1t1", files)

        assert report.files[0].result == RevertResult.ERROR

    def test_without_project_root_files_are_skipped(
        self,
        plan: BuildPlan,
        complete_task: Callable[..., None],
        tmp_path: Path,
    ) -> None:
        (tmp_path / "x.ts").write_text("export {}")
        complete_task(
            plan, "p1t1", file_changes=[FileChange(path="x.ts", action=FileAction.CREATED)]
        )

        report = rollback_task(plan, "p1t1")

        assert (tmp_path / "x.ts").exists()
        assert report.files[0].result == RevertResult.SKIPPED
        assert plan.find_task("p1t1")[1].status == TaskStatus.ROLLED_BACK

    def test_failed_task_error_cleared(
        self,
        plan: BuildPlan,
        complete_task: Callable[..., None],
    ) -> None:
        complete_task(plan, "p1t1", status=TaskStatus.FAILED)

        rollback_task(plan, "p1t1")

        assert plan.find_task("p1t1")[1].error is None

    def test_in_progress_dependent_reset(
        self,
        plan: BuildPlan,
        complete_task: Callable[..., None],
    ) -> None:
        complete_task(plan, "p1t1")
        _, dependent = plan.find_task("p2t1")
        dependent.status = TaskStatus.IN_PROGRESS

        report = rollback_task(plan, "p1t1")

        assert report.reset_dependents == ["p2t1"]
        assert dependent.status == TaskStatus.PENDING
        assert dependent.started is None

    def test_completed_dependent_untouched(
        self,
        plan: BuildPlan,
        complete_task: Callable[..., None],
    ) -> None:
        complete_task(plan, "p1t1")
        complete_task(plan, "p2t1")

        report = rollback_task(plan, "p1t1")

        assert report.reset_dependents == []
        assert plan.find_task("p2t1")[1].status == TaskStatus.COMPLETED

    def test_completed_plan_demoted(
        self,
        plan: BuildPlan,
        complete_task: Callable[..., None],
    ) -> None:
        for task_id in ("p1t1", "p2t1", "p3t1"):
            complete_task(plan, task_id)
        plan.status = PlanStatus.COMPLETED

        report = rollback_task(plan, "p3t1")

        assert plan.status == PlanStatus.IN_PROGRESS
        assert report.plan_status == PlanStatus.IN_PROGRESS

    def test_pending_target_rejected(self, plan: BuildPlan) -> None:
        with pytest.raises(InvalidStateError, match="only completed or failed"):
            rollback_task(plan, "p1t1")

    def test_rejected_rollback_leaves_plan_unchanged(self, plan: BuildPlan) -> None:
        before = plan.model_dump()
        with pytest.raises(InvalidStateError):
            rollback_task(plan, "p2t1")
        assert plan.model_dump() == before


class TestSelectTarget:
    """Tests for select_target."""

    def test_defaults_to_last_in_plan_order(
        self,
        plan: BuildPlan,
        complete_task: Callable[..., None],
    ) -> None:
        complete_task(plan, "p1t1")
        complete_task(plan, "p2t1", status=TaskStatus.FAILED)

        assert select_target(plan).id == "p2t1"

    def test_nothing_to_roll_back(self, plan: BuildPlan) -> None:
        with pytest.raises(NothingToRollBackError):
            select_target(plan)

    def test_unknown_task(self, plan: BuildPlan) -> None:
        with pytest.raises(TaskNotFoundError):
            select_target(plan, "p7t7")
