# This Source Code Form is subject to the terms of the Mozilla Public
# License, v. 2.0. If a copy of the MPL was not distributed with this
# file, You can obtain one at https://mozilla.org/MPL/2.0/.
"""Read-only projections of a build plan for reporting layers."""

from datetime import datetime

from pydantic import BaseModel, Field, computed_field

from hive.build.models import (
    BuildPlan,
    BuildTask,
    FileAction,
    PhaseStatus,
    PlanStatus,
    TaskStatus,
)


class TaskRef(BaseModel):
    """Compact reference to a task.

    Attributes:
        id: Task identifier.
        name: Task name.
        component: Architecture component the task builds.
        status: Current task status.
        depends_on: Dependency task identifiers.
        expected_files: File globs the task is expected to touch.
        error: Error message for failed tasks.
    """

    id: str
    name: str
    component: str | None = None
    status: TaskStatus
    depends_on: list[str] = Field(default_factory=list)
    expected_files: list[str] = Field(default_factory=list)
    error: str | None = None

    @classmethod
    def from_task(cls, task: BuildTask) -> "TaskRef":
        return cls(
            id=task.id,
            name=task.name,
            component=task.component,
            status=task.status,
            depends_on=list(task.depends_on),
            expected_files=list(task.expected_files),
            error=task.error,
        )


class ProgressCounts(BaseModel):
    """Task counts by status across a plan."""

    total: int = 0
    completed: int = 0
    in_progress: int = 0
    pending: int = 0
    failed: int = 0
    rolled_back: int = 0

    @computed_field  # type: ignore[prop-decorator]
    @property
    def percent(self) -> int:
        """Completed share of all tasks, rounded to a whole percent."""
        return round(self.completed / self.total * 100) if self.total else 0

    def describe(self) -> str:
        return f"{self.completed}/{self.total} tasks ({self.percent}%)"


class PhaseSummary(BaseModel):
    """Per-phase breakdown."""

    id: str
    name: str
    description: str
    status: PhaseStatus
    checkpoint: bool
    tasks_completed: int
    tasks_total: int


class LedgerEntry(BaseModel):
    """A file change tagged with the task that made it."""

    task_id: str
    path: str
    action: FileAction
    has_previous_content: bool


class PlanSummary(BaseModel):
    """Read-only summary of a plan for status views."""

    plan_id: str
    project_id: str
    description: str
    status: PlanStatus
    current_phase: int
    current_phase_name: str | None
    session_id: str
    version: int
    progress: ProgressCounts
    phases: list[PhaseSummary]
    at_checkpoint: bool
    created: datetime
    updated: datetime


def progress_counts(plan: BuildPlan) -> ProgressCounts:
    """Count the plan's tasks by status."""
    counts = ProgressCounts()
    for task in plan.tasks:
        counts.total += 1
        field = task.status.value
        setattr(counts, field, getattr(counts, field) + 1)
    return counts


def failed_tasks(plan: BuildPlan) -> list[TaskRef]:
    return [TaskRef.from_task(t) for t in plan.tasks if t.status == TaskStatus.FAILED]


def tasks_with_status(plan: BuildPlan, status: TaskStatus) -> list[TaskRef]:
    return [TaskRef.from_task(t) for t in plan.tasks if t.status == status]


def file_ledger(plan: BuildPlan) -> list[LedgerEntry]:
    """Every recorded file change across the plan, in task order."""
    return [
        LedgerEntry(
            task_id=task.id,
            path=change.path,
            action=change.action,
            has_previous_content=change.previous_content is not None,
        )
        for task in plan.tasks
        for change in task.file_changes
    ]


def phase_summaries(plan: BuildPlan) -> list[PhaseSummary]:
    return [
        PhaseSummary(
            id=phase.id,
            name=phase.name,
            description=phase.description,
            status=phase.status,
            checkpoint=phase.checkpoint,
            tasks_completed=sum(1 for t in phase.tasks if t.status == TaskStatus.COMPLETED),
            tasks_total=len(phase.tasks),
        )
        for phase in plan.phases
    ]


def current_phase_name(plan: BuildPlan) -> str | None:
    if 0 <= plan.current_phase < len(plan.phases):
        return plan.phases[plan.current_phase].name
    return None


def summarize_plan(plan: BuildPlan) -> PlanSummary:
    """Build the read-only summary projection of a plan.

    Args:
        plan: Plan to summarize.

    Returns:
        PlanSummary with status breakdowns. The plan is not modified.
    """
    return PlanSummary(
        plan_id=plan.id,
        project_id=plan.project_id,
        description=plan.description,
        status=plan.status,
        current_phase=plan.current_phase,
        current_phase_name=current_phase_name(plan),
        session_id=plan.session_id,
        version=plan.version,
        progress=progress_counts(plan),
        phases=phase_summaries(plan),
        at_checkpoint=plan.at_checkpoint,
        created=plan.created,
        updated=plan.updated,
    )
