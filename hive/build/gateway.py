# This Source Code Form is subject to the terms of the Mozilla Public
# License, v. 2.0. If a copy of the MPL was not distributed with this
# file, You can obtain one at https://mozilla.org/MPL/2.0/.
"""Execution gateway: applies agent work reports to a build plan.

The agent performing the work never edits the plan directly. It claims
the next actionable task, does the work, then reports the outcome along
with the files it touched. Every function here validates its
preconditions before touching the plan and mutates the plan it is given
in place, so callers hand in a working copy and persist it only on
success.
"""

from datetime import UTC, datetime

from loguru import logger
from pydantic import BaseModel, Field

from hive.build.exceptions import DependencyNotMetError, InvalidStateError
from hive.build.models import (
    BuildPlan,
    FileChange,
    PhaseStatus,
    PlanStatus,
    StepOutcome,
    TaskStatus,
)
from hive.build.summary import TaskRef, failed_tasks


class StepReport(BaseModel):
    """Result of recording a task outcome.

    Attributes:
        task: The task after the update.
        outcome: Reported outcome.
        plan_status: Plan status after the update.
        phase_completed: Name of the task's phase if it is now completed.
        checkpoint_reached: True when the current phase completed behind a
            checkpoint and the plan paused for review.
        plan_completed: True when every task in the plan is completed.
        next_task: Next actionable task, if any.
        message: Human-readable summary.
    """

    task: TaskRef
    outcome: StepOutcome
    plan_status: PlanStatus
    phase_completed: str | None = None
    checkpoint_reached: bool = False
    plan_completed: bool = False
    next_task: TaskRef | None = None
    message: str


class ClaimResult(BaseModel):
    """Result of asking for the next task to execute.

    Attributes:
        task: The claimed task, now in progress. None when nothing is actionable.
        phase_index: 0-based phase of the claimed task.
        plan_status: Plan status after the claim.
        plan_completed: True when the plan has no work left.
        blocked_by: Failed tasks preventing progress when nothing is actionable.
        message: Human-readable summary.
    """

    task: TaskRef | None = None
    phase_index: int | None = None
    plan_status: PlanStatus
    plan_completed: bool = False
    blocked_by: list[TaskRef] = Field(default_factory=list)
    message: str

    @property
    def changed(self) -> bool:
        """Whether the claim modified the plan."""
        return self.task is not None or self.plan_completed


def report_step(
    plan: BuildPlan,
    task_id: str,
    outcome: StepOutcome,
    file_changes: list[FileChange] | None = None,
    error: str | None = None,
    now: datetime | None = None,
) -> StepReport:
    """Record the outcome of a task.

    Args:
        plan: Working copy of the plan; mutated in place.
        task_id: Task being reported.
        outcome: completed or failed.
        file_changes: Files the task created, modified or deleted.
        error: Error message, kept only for failed outcomes.
        now: Timestamp to record (defaults to the current time).

    Returns:
        StepReport describing the task and plan after the update.

    Raises:
        TaskNotFoundError: If the task is not in the plan.
        InvalidStateError: If the task is not pending or claimed.
        DependencyNotMetError: If a dependency is not completed.
    """
    now = now or datetime.now(UTC)
    phase_index, task = plan.find_task(task_id)

    if task.status not in (TaskStatus.PENDING, TaskStatus.IN_PROGRESS):
        raise InvalidStateError(
            f"Task {task_id} is {task.status}; only pending or claimed tasks can be reported",
            task_id=task_id,
            current_status=task.status,
        )

    unmet = plan.unmet_dependencies(task)
    if unmet:
        raise DependencyNotMetError(task_id, unmet)

    task.transition(TaskStatus(outcome.value))
    task.file_changes = list(file_changes or [])
    task.started = task.started or now
    task.completed = now
    task.error = error if outcome == StepOutcome.FAILED else None

    phase = plan.phases[phase_index]
    phase_completed = phase.name if phase.status == PhaseStatus.COMPLETED else None
    checkpoint_reached = False

    if plan.all_completed:
        plan.transition(PlanStatus.COMPLETED)
        message = f"Task {task_id} marked as {outcome}. Build plan complete."
    elif phase_completed and phase.checkpoint:
        # Only the phase this task closed can gate the build
        plan.transition(PlanStatus.PAUSED)
        checkpoint_reached = True
        message = f"Task {task_id} marked as {outcome}. {phase.name} is complete, checkpoint reached."
    else:
        if plan.status == PlanStatus.PLANNING:
            plan.transition(PlanStatus.IN_PROGRESS)
        message = f"Task {task_id} marked as {outcome}."

    next_found = plan.next_actionable()

    logger.info(
        "Task outcome recorded",
        task_id=task_id,
        outcome=str(outcome),
        files=len(task.file_changes),
        plan_status=str(plan.status),
    )

    return StepReport(
        task=TaskRef.from_task(task),
        outcome=outcome,
        plan_status=plan.status,
        phase_completed=phase_completed,
        checkpoint_reached=checkpoint_reached,
        plan_completed=plan.status == PlanStatus.COMPLETED,
        next_task=TaskRef.from_task(next_found[1]) if next_found else None,
        message=message,
    )


def claim_next_task(plan: BuildPlan, now: datetime | None = None) -> ClaimResult:
    """Claim the next actionable task for the working session.

    The next actionable task is the first pending task, in phase order then
    task order, whose dependencies are all completed.

    Args:
        plan: Working copy of the plan; mutated in place.
        now: Timestamp to record (defaults to the current time).

    Returns:
        ClaimResult with the claimed task, or the reason nothing was claimed.

    Raises:
        InvalidStateError: If the plan is paused or already completed.
    """
    if plan.status == PlanStatus.COMPLETED:
        raise InvalidStateError(
            "Build plan is already completed", current_status=plan.status
        )
    if plan.status == PlanStatus.PAUSED:
        raise InvalidStateError(
            "Build plan is paused. Approve the checkpoint or resume the build first.",
            current_status=plan.status,
        )

    found = plan.next_actionable()
    if found is None:
        if plan.all_completed:
            plan.transition(PlanStatus.COMPLETED)
            return ClaimResult(
                plan_status=plan.status,
                plan_completed=True,
                message="Build plan complete! All tasks finished.",
            )
        blocked = failed_tasks(plan)
        return ClaimResult(
            plan_status=plan.status,
            blocked_by=blocked,
            message=(
                "No executable tasks found. Some tasks are blocked by failed dependencies."
                if blocked
                else "No executable tasks found. Tasks in progress or rolled back must finish first."
            ),
        )

    phase_index, task = found
    task.transition(TaskStatus.IN_PROGRESS)
    task.started = now or datetime.now(UTC)
    plan.current_phase = phase_index
    plan.transition(PlanStatus.IN_PROGRESS)

    logger.info("Task claimed", task_id=task.id, phase=phase_index + 1)

    return ClaimResult(
        task=TaskRef.from_task(task),
        phase_index=phase_index,
        plan_status=plan.status,
        message=f"Execute task {task.id} next: {task.name}",
    )


def retry_task(plan: BuildPlan, task_id: str) -> TaskRef:
    """Return a rolled-back task to pending so it can be executed again.

    Args:
        plan: Working copy of the plan; mutated in place.
        task_id: Task to retry.

    Returns:
        The task after the reset.

    Raises:
        TaskNotFoundError: If the task is not in the plan.
        InvalidStateError: If the task is not rolled back.
    """
    _, task = plan.find_task(task_id)
    if task.status != TaskStatus.ROLLED_BACK:
        raise InvalidStateError(
            f"Task {task_id} is {task.status}; only rolled back tasks can be retried",
            task_id=task_id,
            current_status=task.status,
        )
    task.transition(TaskStatus.PENDING)
    task.started = None
    logger.info("Task reset for retry", task_id=task_id)
    return TaskRef.from_task(task)
