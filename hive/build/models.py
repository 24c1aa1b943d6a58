# This Source Code Form is subject to the terms of the Mozilla Public
# License, v. 2.0. If a copy of the MPL was not distributed with this
# file, You can obtain one at https://mozilla.org/MPL/2.0/.
"""Build plan state models and state machine validation."""

from __future__ import annotations

from collections.abc import Iterator
from datetime import UTC, datetime
from enum import StrEnum
from uuid import uuid4

from pydantic import BaseModel, Field, computed_field

from hive.build.exceptions import InvalidTransitionError, TaskNotFoundError


class TaskStatus(StrEnum):
    """Lifecycle status of a single build task."""

    PENDING = "pending"  # Not yet started
    IN_PROGRESS = "in_progress"  # Claimed by the working session
    COMPLETED = "completed"  # Reported done
    FAILED = "failed"  # Reported failed
    ROLLED_BACK = "rolled_back"  # Effects reversed, awaiting retry


class PhaseStatus(StrEnum):
    """Derived status of a phase, computed from its tasks."""

    PENDING = "pending"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    FAILED = "failed"


class PlanStatus(StrEnum):
    """Status of a whole build plan."""

    PLANNING = "planning"  # Created, no work reported yet
    IN_PROGRESS = "in_progress"  # Work underway
    PAUSED = "paused"  # Waiting at a checkpoint or rejected
    COMPLETED = "completed"  # Every task completed


class FileAction(StrEnum):
    """What a task did to a file."""

    CREATED = "created"
    MODIFIED = "modified"
    DELETED = "deleted"


class StepOutcome(StrEnum):
    """Outcome an agent reports for a task."""

    COMPLETED = "completed"
    FAILED = "failed"


# State machine validation - prevents invalid transitions
TASK_TRANSITIONS: dict[TaskStatus, set[TaskStatus]] = {
    TaskStatus.PENDING: {TaskStatus.IN_PROGRESS, TaskStatus.COMPLETED, TaskStatus.FAILED},
    TaskStatus.IN_PROGRESS: {TaskStatus.COMPLETED, TaskStatus.FAILED, TaskStatus.PENDING},
    TaskStatus.COMPLETED: {TaskStatus.ROLLED_BACK},
    TaskStatus.FAILED: {TaskStatus.ROLLED_BACK},
    TaskStatus.ROLLED_BACK: {TaskStatus.PENDING},  # Explicit retry only
}

PLAN_TRANSITIONS: dict[PlanStatus, set[PlanStatus]] = {
    PlanStatus.PLANNING: {PlanStatus.IN_PROGRESS, PlanStatus.PAUSED, PlanStatus.COMPLETED},
    PlanStatus.IN_PROGRESS: {PlanStatus.PAUSED, PlanStatus.COMPLETED},
    PlanStatus.PAUSED: {PlanStatus.IN_PROGRESS, PlanStatus.COMPLETED},
    PlanStatus.COMPLETED: {PlanStatus.IN_PROGRESS},  # Demoted by rollback
}


def validate_task_transition(
    current: TaskStatus, target: TaskStatus, task_id: str | None = None
) -> None:
    """Validate that a task status transition is allowed.

    Args:
        current: The current task status.
        target: The desired new status.
        task_id: Task identifier for the error message.

    Raises:
        InvalidTransitionError: If the transition is not allowed.
    """
    if target not in TASK_TRANSITIONS[current]:
        raise InvalidTransitionError(current, target, task_id=task_id)


def validate_plan_transition(current: PlanStatus, target: PlanStatus) -> None:
    """Validate that a plan status transition is allowed.

    Staying in the same status is always allowed.

    Args:
        current: The current plan status.
        target: The desired new status.

    Raises:
        InvalidTransitionError: If the transition is not allowed.
    """
    if current != target and target not in PLAN_TRANSITIONS[current]:
        raise InvalidTransitionError(current, target)


def derive_phase_status(statuses: list[TaskStatus]) -> PhaseStatus:
    """Project a list of task statuses onto a phase status.

    Args:
        statuses: Statuses of every task in the phase.

    Returns:
        completed when all tasks are completed, in_progress when any task is
        in progress or completed, failed when any task failed, else pending.
    """
    if all(s == TaskStatus.COMPLETED for s in statuses):
        return PhaseStatus.COMPLETED
    if any(s in (TaskStatus.IN_PROGRESS, TaskStatus.COMPLETED) for s in statuses):
        return PhaseStatus.IN_PROGRESS
    if any(s == TaskStatus.FAILED for s in statuses):
        return PhaseStatus.FAILED
    return PhaseStatus.PENDING


class FileChange(BaseModel):
    """A single file creation, modification or deletion made by a task.

    Attributes:
        path: Path relative to the project's code root.
        action: What happened to the file.
        previous_content: Content before the change. Required to reverse a
            modification or deletion.
    """

    path: str = Field(..., min_length=1)
    action: FileAction
    previous_content: str | None = None

    @property
    def reversible(self) -> bool:
        """Whether rollback can undo this change without manual work."""
        return self.action == FileAction.CREATED or self.previous_content is not None


class BuildTask(BaseModel):
    """An atomic unit of work in a build plan.

    The id and depends_on fields are fixed at planning time; only the
    lifecycle fields change afterwards.
    """

    id: str
    name: str
    description: str = ""
    component: str | None = None
    depends_on: list[str] = Field(default_factory=list)
    expected_files: list[str] = Field(default_factory=list)
    status: TaskStatus = TaskStatus.PENDING
    file_changes: list[FileChange] = Field(default_factory=list)
    started: datetime | None = None
    completed: datetime | None = None
    error: str | None = None

    def transition(self, target: TaskStatus) -> None:
        """Move the task to a new status after validating the transition.

        Args:
            target: Desired status.

        Raises:
            InvalidTransitionError: If the state machine forbids the move.
        """
        validate_task_transition(self.status, target, task_id=self.id)
        self.status = target


class BuildPhase(BaseModel):
    """A group of tasks whose dependencies all lie in earlier phases."""

    id: str
    name: str
    description: str = ""
    tasks: list[BuildTask] = Field(default_factory=list)
    checkpoint: bool = True

    @computed_field  # type: ignore[prop-decorator]
    @property
    def status(self) -> PhaseStatus:
        """Phase status, always recomputed from the task statuses."""
        return derive_phase_status([t.status for t in self.tasks])


class BuildPlan(BaseModel):
    """The full build plan for a project.

    Attributes:
        id: Unique plan identifier (UUID).
        project_id: Owning project identifier.
        description: What is being built.
        status: Current plan status.
        current_phase: 0-based index into phases.
        phases: Ordered phases.
        session_id: Token of the working session currently attached.
        version: Optimistic concurrency counter, bumped on every write.
        created: When the plan was created.
        updated: When the plan was last written.
    """

    id: str = Field(default_factory=lambda: str(uuid4()))
    project_id: str
    description: str = ""
    status: PlanStatus = PlanStatus.PLANNING
    current_phase: int = Field(default=0, ge=0)
    phases: list[BuildPhase] = Field(default_factory=list)
    session_id: str = Field(default_factory=lambda: str(uuid4()))
    version: int = Field(default=1, ge=1)
    created: datetime = Field(default_factory=lambda: datetime.now(UTC))
    updated: datetime = Field(default_factory=lambda: datetime.now(UTC))

    def transition(self, target: PlanStatus) -> None:
        """Move the plan to a new status after validating the transition.

        Args:
            target: Desired status.

        Raises:
            InvalidTransitionError: If the state machine forbids the move.
        """
        validate_plan_transition(self.status, target)
        self.status = target

    def iter_tasks(self) -> Iterator[tuple[int, BuildTask]]:
        """Yield (phase index, task) pairs in phase order then task order."""
        for index, phase in enumerate(self.phases):
            for task in phase.tasks:
                yield index, task

    @property
    def tasks(self) -> list[BuildTask]:
        """All tasks in plan order."""
        return [task for _, task in self.iter_tasks()]

    def find_task(self, task_id: str) -> tuple[int, BuildTask]:
        """Locate a task by id.

        Args:
            task_id: Task identifier.

        Returns:
            Tuple of (phase index, task).

        Raises:
            TaskNotFoundError: If no task has this id.
        """
        for index, task in self.iter_tasks():
            if task.id == task_id:
                return index, task
        raise TaskNotFoundError(task_id)

    def completed_ids(self) -> set[str]:
        """IDs of every completed task."""
        return {t.id for t in self.tasks if t.status == TaskStatus.COMPLETED}

    def unmet_dependencies(self, task: BuildTask) -> list[str]:
        """Dependencies of a task that are not completed, in declared order."""
        done = self.completed_ids()
        return [dep for dep in task.depends_on if dep not in done]

    def next_actionable(self) -> tuple[int, BuildTask] | None:
        """First pending task, in phase then task order, whose dependencies are done."""
        done = self.completed_ids()
        for index, task in self.iter_tasks():
            if task.status == TaskStatus.PENDING and all(d in done for d in task.depends_on):
                return index, task
        return None

    @property
    def all_completed(self) -> bool:
        """Whether every task in the plan is completed."""
        return all(t.status == TaskStatus.COMPLETED for t in self.tasks)

    @property
    def at_checkpoint(self) -> bool:
        """Whether the current phase is completed and gated by a checkpoint."""
        if not 0 <= self.current_phase < len(self.phases):
            return False
        phase = self.phases[self.current_phase]
        return phase.checkpoint and phase.status == PhaseStatus.COMPLETED

    @property
    def is_active(self) -> bool:
        """Whether the plan still counts as the project's active plan."""
        return self.status != PlanStatus.COMPLETED
