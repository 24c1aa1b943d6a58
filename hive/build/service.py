# This Source Code Form is subject to the terms of the Mozilla Public
# License, v. 2.0. If a copy of the MPL was not distributed with this
# file, You can obtain one at https://mozilla.org/MPL/2.0/.
"""Build orchestration service.

Exposes the build tool operations by project slug. Each mutating operation
loads the project's latest plan, applies the pure state logic to a deep
copy, and writes the copy back with a compare-and-swap on the plan
version. A usage error therefore leaves the stored plan untouched.
"""

from pathlib import Path

from loguru import logger
from pydantic import BaseModel, Field

from hive.build.checkpoint import (
    CheckpointAction,
    CheckpointDecision,
    CheckpointReview,
    approve_checkpoint,
    reject_checkpoint,
)
from hive.build.checkpoint import review_checkpoint as review_plan
from hive.build.exceptions import (
    ActivePlanExistsError,
    EmptyArchitectureError,
    PlanNotFoundError,
    PlanVersionConflictError,
    ProjectNotFoundError,
)
from hive.build.gateway import (
    ClaimResult,
    StepReport,
    claim_next_task,
    report_step,
    retry_task,
)
from hive.build.models import BuildPlan, FileChange, PlanStatus, StepOutcome
from hive.build.planner import plan_phases
from hive.build.resume import ResumeReport, resume_plan
from hive.build.rollback import RollbackReport, rollback_task
from hive.build.summary import PhaseSummary, PlanSummary, TaskRef, phase_summaries, summarize_plan
from hive.core.types import Project
from hive.server.database.build_repository import BuildPlanRepository
from hive.server.database.project_repository import ProjectRepository
from hive.tools.project_files import ProjectFiles


class PlanCreated(BaseModel):
    """Result of planning a build.

    Attributes:
        plan_id: ID of the new plan.
        project: Project slug.
        description: What is being built.
        status: Initial plan status.
        session_id: Session attached to the new plan.
        version: Stored plan version.
        total_tasks: Number of tasks across all phases.
        phases: Phase breakdown.
        forced_placements: Components placed to break dependency cycles.
        message: Human-readable summary.
    """

    plan_id: str
    project: str
    description: str
    status: PlanStatus
    session_id: str
    version: int
    total_tasks: int
    phases: list[PhaseSummary]
    forced_placements: list[str] = Field(default_factory=list)
    message: str


class BuildService:
    """Build tool operations addressed by project slug.

    Args:
        projects: Architecture provider.
        plans: Build plan store.
        checkpoint_every_phase: Whether new plans gate every phase behind a
            checkpoint.
    """

    def __init__(
        self,
        projects: ProjectRepository,
        plans: BuildPlanRepository,
        checkpoint_every_phase: bool = True,
    ):
        self._projects = projects
        self._plans = plans
        self._checkpoint_every_phase = checkpoint_every_phase

    async def _get_project(self, slug: str) -> Project:
        project = await self._projects.get_by_slug(slug)
        if project is None:
            raise ProjectNotFoundError(slug)
        return project

    async def _get_plan(self, slug: str, expected_version: int | None = None) -> BuildPlan:
        """Load a working copy of the project's latest plan.

        Raises:
            ProjectNotFoundError: If the project doesn't exist.
            PlanNotFoundError: If the project has no plan.
            PlanVersionConflictError: If expected_version is stale.
        """
        project = await self._get_project(slug)
        plan = await self._plans.get_by_project(project.id)
        if plan is None:
            raise PlanNotFoundError(slug)
        if expected_version is not None and expected_version != plan.version:
            raise PlanVersionConflictError(plan.id, expected_version, plan.version)
        return plan.model_copy(deep=True)

    async def plan_build(self, project: str, description: str = "") -> PlanCreated:
        """Create a build plan from the project's architecture.

        Args:
            project: Project slug.
            description: What is being built.

        Returns:
            PlanCreated with the phase breakdown.

        Raises:
            ProjectNotFoundError: If the project doesn't exist.
            EmptyArchitectureError: If the architecture has no components.
            ActivePlanExistsError: If an unfinished plan already exists.
        """
        record = await self._get_project(project)
        components = record.architecture.components
        if not components:
            raise EmptyArchitectureError(project)

        active = await self._plans.get_active(record.id)
        if active is not None:
            raise ActivePlanExistsError(project, active.id)

        phase_plan = plan_phases(components, checkpoint=self._checkpoint_every_phase)
        plan = BuildPlan(
            project_id=record.id,
            description=description,
            phases=phase_plan.phases,
        )
        plan = await self._plans.create(plan)

        logger.info(
            "Build plan created",
            project=project,
            plan_id=plan.id,
            phases=len(plan.phases),
            tasks=phase_plan.task_count,
        )

        return PlanCreated(
            plan_id=plan.id,
            project=project,
            description=plan.description,
            status=plan.status,
            session_id=plan.session_id,
            version=plan.version,
            total_tasks=phase_plan.task_count,
            phases=phase_summaries(plan),
            forced_placements=phase_plan.forced_placements,
            message=(
                f"Build plan created with {len(plan.phases)} phases "
                f"and {phase_plan.task_count} tasks."
            ),
        )

    async def execute_step(
        self,
        project: str,
        task_id: str,
        outcome: StepOutcome,
        file_changes: list[FileChange] | None = None,
        error: str | None = None,
        expected_version: int | None = None,
    ) -> StepReport:
        """Record the outcome of a task.

        Raises:
            ProjectNotFoundError: If the project doesn't exist.
            PlanNotFoundError: If the project has no plan.
            TaskNotFoundError: If the task is not in the plan.
            InvalidStateError: If the task cannot be reported now.
            PlanVersionConflictError: If the plan changed concurrently.
        """
        plan = await self._get_plan(project, expected_version)
        report = report_step(plan, task_id, outcome, file_changes=file_changes, error=error)
        await self._plans.update(plan)
        return report

    async def next_step(self, project: str) -> ClaimResult:
        """Claim the next actionable task.

        The plan is only written when the claim changed something.
        """
        plan = await self._get_plan(project)
        result = claim_next_task(plan)
        if result.changed:
            await self._plans.update(plan)
        return result

    async def retry_step(
        self, project: str, task_id: str, expected_version: int | None = None
    ) -> TaskRef:
        """Return a rolled-back task to pending."""
        plan = await self._get_plan(project, expected_version)
        task = retry_task(plan, task_id)
        await self._plans.update(plan)
        return task

    async def review_checkpoint(
        self,
        project: str,
        action: CheckpointAction = CheckpointAction.REVIEW,
        reason: str | None = None,
        expected_version: int | None = None,
    ) -> CheckpointReview | CheckpointDecision:
        """Review, approve or reject the current checkpoint.

        Review is read-only. Approve and reject write the plan.

        Raises:
            ProjectNotFoundError: If the project doesn't exist.
            PlanNotFoundError: If the project has no plan.
            InvalidStateError: If the plan is already completed.
            PlanVersionConflictError: If the plan changed concurrently.
        """
        plan = await self._get_plan(project, expected_version)
        if action == CheckpointAction.REVIEW:
            return review_plan(plan)

        if action == CheckpointAction.APPROVE:
            decision = approve_checkpoint(plan)
        else:
            decision = reject_checkpoint(plan, reason)
        await self._plans.update(plan)
        return decision

    async def resume_build(self, project: str) -> ResumeReport:
        """Attach a new session to the project's unfinished plan."""
        plan = await self._get_plan(project)
        report = resume_plan(plan)
        await self._plans.update(plan)
        return report

    async def rollback_step(
        self,
        project: str,
        task_id: str | None = None,
        project_root_path: str | Path | None = None,
        expected_version: int | None = None,
    ) -> RollbackReport:
        """Roll back a completed or failed task.

        File changes are reverted on disk only when project_root_path is
        given. Reverted files stay reverted even if the plan write then
        fails on a version conflict.

        Raises:
            ValueError: If project_root_path is not a directory.
            ProjectNotFoundError: If the project doesn't exist.
            PlanNotFoundError: If the project has no plan.
            TaskNotFoundError: If task_id is not in the plan.
            InvalidStateError: If nothing can be rolled back.
            PlanVersionConflictError: If the plan changed concurrently.
        """
        files = ProjectFiles(project_root_path) if project_root_path is not None else None
        plan = await self._get_plan(project, expected_version)
        report = rollback_task(plan, task_id, files)
        await self._plans.update(plan)
        return report

    async def build_status(self, project: str) -> PlanSummary:
        """Summarize the project's latest plan."""
        plan = await self._get_plan(project)
        return summarize_plan(plan)
