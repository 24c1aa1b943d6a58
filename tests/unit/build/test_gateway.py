"""Unit tests for the execution gateway."""
from collections.abc import Callable
from datetime import UTC, datetime

import pytest

from hive.build.exceptions import (
    DependencyNotMetError,
    InvalidStateError,
    TaskNotFoundError,
)
from hive.build.gateway import claim_next_task, report_step, retry_task
from hive.build.models import (
    BuildPlan,
    FileAction,
    FileChange,
    PlanStatus,
    StepOutcome,
    TaskStatus,
)
from hive.build.resume import resume_plan
from hive.core.types import Architecture


@pytest.fixture
def plan(
    plan_factory: Callable[..., BuildPlan],
    layered_architecture: Architecture,
) -> BuildPlan:
    """Fresh db <- api <- ui plan."""
    return plan_factory(layered_architecture)


class TestReportStep:
    """Tests for report_step."""

    def test_dependency_not_met(self, plan: BuildPlan) -> None:
        """Reporting a task before its dependency fails and leaves it pending."""
        working = plan.model_copy(deep=True)

        with pytest.raises(DependencyNotMetError) as exc_info:
            report_step(working, "p2t1", StepOutcome.COMPLETED)

        assert exc_info.value.unmet == ["p1t1"]
        assert exc_info.value.task_id == "p2t1"
        assert working.find_task("p2t1")[1].status == TaskStatus.PENDING
        assert working.model_dump() == plan.model_dump()

    def test_completing_first_task_starts_plan(
        self,
        plan_factory: Callable[..., BuildPlan],
        architecture_factory: Callable[..., Architecture],
    ) -> None:
        plan = plan_factory(architecture_factory(("a", []), ("b", [])))

        report = report_step(plan, "p1t1", StepOutcome.COMPLETED)

        assert report.plan_status == PlanStatus.IN_PROGRESS
        assert report.checkpoint_reached is False
        assert report.phase_completed is None
        assert report.next_task is not None
        assert report.next_task.id == "p1t2"
        assert report.message == "Task p1t1 marked as completed."

    def test_completing_phase_pauses_at_checkpoint(self, plan: BuildPlan) -> None:
        report = report_step(plan, "p1t1", StepOutcome.COMPLETED)

        assert report.checkpoint_reached is True
        assert report.phase_completed == "Phase 1"
        assert report.plan_status == PlanStatus.PAUSED
        assert plan.status == PlanStatus.PAUSED
        assert "checkpoint reached" in report.message

    def test_resumed_build_keeps_going_until_next_phase_closes(
        self,
        plan_factory: Callable[..., BuildPlan],
        architecture_factory: Callable[..., Architecture],
    ) -> None:
        """After a resume, only a newly completed gated phase pauses the build."""
        plan = plan_factory(architecture_factory(("db", []), ("api", ["db"]), ("web", ["db"])))
        report_step(plan, "p1t1", StepOutcome.COMPLETED)
        resume_plan(plan)

        report = report_step(plan, "p2t1", StepOutcome.COMPLETED)

        assert report.checkpoint_reached is False
        assert report.phase_completed is None
        assert report.message == "Task p2t1 marked as completed."
        assert plan.status == PlanStatus.IN_PROGRESS
        assert claim_next_task(plan).task.id == "p2t2"

        closing = report_step(plan, "p2t2", StepOutcome.COMPLETED)

        assert closing.checkpoint_reached is True
        assert closing.phase_completed == "Phase 2"
        assert "Phase 2 is complete" in closing.message
        assert plan.status == PlanStatus.PAUSED

    def test_completing_phase_without_gate_continues(
        self,
        plan_factory: Callable[..., BuildPlan],
        layered_architecture: Architecture,
    ) -> None:
        plan = plan_factory(layered_architecture, checkpoint=False)

        report = report_step(plan, "p1t1", StepOutcome.COMPLETED)

        assert report.checkpoint_reached is False
        assert report.phase_completed == "Phase 1"
        assert plan.status == PlanStatus.IN_PROGRESS

    def test_completing_every_task_completes_plan(
        self,
        plan: BuildPlan,
        complete_task: Callable[..., None],
    ) -> None:
        complete_task(plan, "p1t1")
        complete_task(plan, "p2t1")
        plan.status = PlanStatus.IN_PROGRESS
        plan.current_phase = 2

        report = report_step(plan, "p3t1", StepOutcome.COMPLETED)

        assert report.plan_completed is True
        assert report.plan_status == PlanStatus.COMPLETED
        assert report.next_task is None
        assert report.message.endswith("Build plan complete.")

    def test_records_file_changes_and_timestamps(self, plan: BuildPlan) -> None:
        now = datetime(2026, 1, 1, tzinfo=UTC)
        changes = [FileChange(path="src/db.py", action=FileAction.CREATED)]

        report_step(plan, "p1t1", StepOutcome.COMPLETED, file_changes=changes, now=now)

        _, task = plan.find_task("p1t1")
        assert task.file_changes == changes
        assert task.started == now
        assert task.completed == now

    def test_failed_outcome_keeps_error(self, plan: BuildPlan) -> None:
        report = report_step(plan, "p1t1", StepOutcome.FAILED, error="compile error")

        _, task = plan.find_task("p1t1")
        assert task.status == TaskStatus.FAILED
        assert task.error == "compile error"
        assert report.task.error == "compile error"
        assert report.checkpoint_reached is False

    def test_completed_outcome_drops_error(self, plan: BuildPlan) -> None:
        report_step(plan, "p1t1", StepOutcome.COMPLETED, error="ignored")
        assert plan.find_task("p1t1")[1].error is None

    def test_claimed_task_can_be_reported(self, plan: BuildPlan) -> None:
        claim_next_task(plan)

        report = report_step(plan, "p1t1", StepOutcome.COMPLETED)

        assert report.task.status == TaskStatus.COMPLETED

    @pytest.mark.parametrize(
        "status",
        [TaskStatus.COMPLETED, TaskStatus.FAILED, TaskStatus.ROLLED_BACK],
    )
    def test_reporting_finished_task_rejected(
        self,
        plan: BuildPlan,
        complete_task: Callable[..., None],
        status: TaskStatus,
    ) -> None:
        complete_task(plan, "p1t1", status=status)

        with pytest.raises(InvalidStateError) as exc_info:
            report_step(plan, "p1t1", StepOutcome.COMPLETED)

        assert exc_info.value.current_status == status

    def test_unknown_task(self, plan: BuildPlan) -> None:
        with pytest.raises(TaskNotFoundError):
            report_step(plan, "nope", StepOutcome.COMPLETED)


class TestClaimNextTask:
    """Tests for claim_next_task."""

    def test_claims_first_actionable(self, plan: BuildPlan) -> None:
        result = claim_next_task(plan)

        assert result.task is not None
        assert result.task.id == "p1t1"
        assert result.task.status == TaskStatus.IN_PROGRESS
        assert result.phase_index == 0
        assert result.changed is True
        assert plan.status == PlanStatus.IN_PROGRESS
        assert plan.find_task("p1t1")[1].started is not None

    def test_sets_current_phase(
        self,
        plan: BuildPlan,
        complete_task: Callable[..., None],
    ) -> None:
        complete_task(plan, "p1t1")

        result = claim_next_task(plan)

        assert result.phase_index == 1
        assert plan.current_phase == 1

    def test_paused_plan_rejected(self, plan: BuildPlan) -> None:
        plan.status = PlanStatus.PAUSED
        with pytest.raises(InvalidStateError, match="paused"):
            claim_next_task(plan)

    def test_completed_plan_rejected(self, plan: BuildPlan) -> None:
        plan.status = PlanStatus.COMPLETED
        with pytest.raises(InvalidStateError, match="already completed"):
            claim_next_task(plan)

    def test_blocked_by_failed_task(
        self,
        plan: BuildPlan,
        complete_task: Callable[..., None],
    ) -> None:
        complete_task(plan, "p1t1", status=TaskStatus.FAILED)
        plan.status = PlanStatus.IN_PROGRESS

        result = claim_next_task(plan)

        assert result.task is None
        assert result.changed is False
        assert [t.id for t in result.blocked_by] == ["p1t1"]
        assert "failed dependencies" in result.message

    def test_nothing_actionable_while_in_progress(self, plan: BuildPlan) -> None:
        claim_next_task(plan)

        result = claim_next_task(plan)

        assert result.task is None
        assert result.blocked_by == []

    def test_all_done_completes_plan(
        self,
        plan: BuildPlan,
        complete_task: Callable[..., None],
    ) -> None:
        for task_id in ("p1t1", "p2t1", "p3t1"):
            complete_task(plan, task_id)
        plan.status = PlanStatus.IN_PROGRESS

        result = claim_next_task(plan)

        assert result.plan_completed is True
        assert result.changed is True
        assert plan.status == PlanStatus.COMPLETED


class TestRetryTask:
    """Tests for retry_task."""

    def test_rolled_back_task_returns_to_pending(
        self,
        plan: BuildPlan,
        complete_task: Callable[..., None],
    ) -> None:
        complete_task(plan, "p1t1", status=TaskStatus.ROLLED_BACK)

        ref = retry_task(plan, "p1t1")

        assert ref.status == TaskStatus.PENDING
        assert plan.find_task("p1t1")[1].started is None

    def test_other_status_rejected(self, plan: BuildPlan) -> None:
        with pytest.raises(InvalidStateError, match="only rolled back tasks"):
            retry_task(plan, "p1t1")
