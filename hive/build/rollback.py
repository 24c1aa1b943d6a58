# This Source Code Form is subject to the terms of the Mozilla Public
# License, v. 2.0. If a copy of the MPL was not distributed with this
# file, You can obtain one at https://mozilla.org/MPL/2.0/.
"""Rollback engine: reverses a task's file changes and status.

File reversal is best effort. Each recorded change is attempted on its own
and reported individually; a change that cannot be reversed, or a
filesystem error, never stops the remaining changes or the status reset.
"""

from enum import StrEnum

from loguru import logger
from pydantic import BaseModel, Field

from hive.build.exceptions import InvalidStateError, NothingToRollBackError
from hive.build.models import (
    BuildPlan,
    BuildTask,
    FileAction,
    FileChange,
    PlanStatus,
    TaskStatus,
)
from hive.build.summary import TaskRef
from hive.core.exceptions import HiveError
from hive.tools.project_files import ProjectFiles


ROLLBACK_ELIGIBLE = (TaskStatus.COMPLETED, TaskStatus.FAILED)


class RevertResult(StrEnum):
    """Outcome of reversing one file change."""

    REVERTED = "reverted"  # Change undone on disk
    MANUAL = "manual"  # No previous content; needs a human
    ERROR = "error"  # Filesystem error while reverting
    SKIPPED = "skipped"  # No project root given


class FileRevertOutcome(BaseModel):
    """Per-file result of a rollback."""

    path: str
    action: FileAction
    result: RevertResult
    message: str


class RollbackReport(BaseModel):
    """Result of rolling back a task.

    Attributes:
        task: The task after the rollback.
        files: One outcome per recorded file change.
        reset_dependents: In-progress dependents reset to pending.
        plan_status: Plan status after the rollback.
        message: Human-readable summary.
    """

    task: TaskRef
    files: list[FileRevertOutcome] = Field(default_factory=list)
    reset_dependents: list[str] = Field(default_factory=list)
    plan_status: PlanStatus
    message: str

    @property
    def reverted(self) -> list[FileRevertOutcome]:
        return [f for f in self.files if f.result == RevertResult.REVERTED]

    @property
    def needs_attention(self) -> list[FileRevertOutcome]:
        return [f for f in self.files if f.result in (RevertResult.MANUAL, RevertResult.ERROR)]


def select_target(plan: BuildPlan, task_id: str | None = None) -> BuildTask:
    """Pick the task to roll back.

    Without an explicit id, the last completed or failed task in plan order
    is chosen. Plan order is insertion order, not completion time.

    Raises:
        TaskNotFoundError: If task_id is not in the plan.
        NothingToRollBackError: If no task is completed or failed.
        InvalidStateError: If the chosen task is not completed or failed.
    """
    if task_id is not None:
        _, target = plan.find_task(task_id)
    else:
        candidates = [t for t in plan.tasks if t.status in ROLLBACK_ELIGIBLE]
        if not candidates:
            raise NothingToRollBackError()
        target = candidates[-1]

    if target.status not in ROLLBACK_ELIGIBLE:
        raise InvalidStateError(
            f"Task {target.id} is {target.status}; only completed or failed tasks can be rolled back",
            task_id=target.id,
            current_status=target.status,
        )
    return target


def revert_change(change: FileChange, files: ProjectFiles | None) -> FileRevertOutcome:
    """Reverse a single file change.

    Args:
        change: Recorded change.
        files: Filesystem access for the project root, or None to skip.

    Returns:
        FileRevertOutcome for the change. Never raises for filesystem errors.
    """
    if files is None:
        return FileRevertOutcome(
            path=change.path,
            action=change.action,
            result=RevertResult.SKIPPED,
            message=f"Not reverted: {change.path} (no project root given)",
        )

    if not change.reversible:
        logger.warning("Manual revert needed", path=change.path, action=str(change.action))
        return FileRevertOutcome(
            path=change.path,
            action=change.action,
            result=RevertResult.MANUAL,
            message=f"Cannot restore {change.path}: no previous content recorded. Manual revert needed.",
        )

    try:
        if change.action == FileAction.CREATED:
            files.delete(change.path)
            message = f"Deleted: {change.path}"
        elif change.action == FileAction.MODIFIED:
            files.write(change.path, change.previous_content or "")
            message = f"Restored: {change.path}"
        else:
            files.write(change.path, change.previous_content or "")
            message = f"Recreated: {change.path}"
    except (OSError, HiveError) as e:
        logger.warning("Failed to revert file", path=change.path, error=str(e))
        return FileRevertOutcome(
            path=change.path,
            action=change.action,
            result=RevertResult.ERROR,
            message=f"Failed to revert {change.path}: {e}",
        )

    return FileRevertOutcome(
        path=change.path,
        action=change.action,
        result=RevertResult.REVERTED,
        message=message,
    )


def rollback_task(
    plan: BuildPlan,
    task_id: str | None = None,
    files: ProjectFiles | None = None,
) -> RollbackReport:
    """Roll back a completed or failed task.

    Reverses the task's file changes (when files is given), marks it
    rolled_back, resets in-progress dependents to pending and demotes a
    completed plan to in_progress. Completed dependents are left alone.

    Args:
        plan: Working copy of the plan; mutated in place.
        task_id: Task to roll back. Defaults to the last completed or
            failed task in plan order.
        files: Filesystem access for the project root. Without it the
            status change still happens but no file is touched.

    Returns:
        RollbackReport with per-file outcomes.

    Raises:
        TaskNotFoundError: If task_id is not in the plan.
        NothingToRollBackError: If no task can be rolled back.
        InvalidStateError: If the target is not completed or failed.
    """
    target = select_target(plan, task_id)

    outcomes = [revert_change(change, files) for change in target.file_changes]

    target.transition(TaskStatus.ROLLED_BACK)
    target.file_changes = []
    target.completed = None
    target.error = None

    reset: list[str] = []
    for task in plan.tasks:
        if task.id != target.id and target.id in task.depends_on and task.status == TaskStatus.IN_PROGRESS:
            task.transition(TaskStatus.PENDING)
            task.started = None
            reset.append(task.id)

    if plan.status == PlanStatus.COMPLETED:
        plan.transition(PlanStatus.IN_PROGRESS)

    logger.info(
        "Task rolled back",
        task_id=target.id,
        files=len(outcomes),
        reset_dependents=reset,
    )

    return RollbackReport(
        task=TaskRef.from_task(target),
        files=outcomes,
        reset_dependents=reset,
        plan_status=plan.status,
        message=f"Task {target.id} ({target.name}) rolled back.",
    )
