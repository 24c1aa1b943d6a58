# This Source Code Form is subject to the terms of the Mozilla Public
# License, v. 2.0. If a copy of the MPL was not distributed with this
# file, You can obtain one at https://mozilla.org/MPL/2.0/.
"""Session resumption for builds interrupted in an earlier session."""

from uuid import uuid4

from loguru import logger
from pydantic import BaseModel, Field

from hive.build.exceptions import InvalidStateError
from hive.build.models import BuildPlan, PhaseStatus, PlanStatus
from hive.build.summary import ProgressCounts, TaskRef, failed_tasks, progress_counts


class CurrentPhase(BaseModel):
    id: str
    name: str
    status: PhaseStatus


class ResumeReport(BaseModel):
    """State of a build after a new session attaches to it."""

    previous_session: str
    new_session: str
    status: PlanStatus
    progress: ProgressCounts
    current_phase: CurrentPhase | None = None
    at_checkpoint: bool
    failed_tasks: list[TaskRef] = Field(default_factory=list)
    next_task: TaskRef | None = None
    instructions: str


def resume_plan(plan: BuildPlan) -> ResumeReport:
    """Attach a new working session to an unfinished plan.

    Swaps in a fresh session id and clears a paused status. Clearing the
    pause does not address why the build was paused; it only lets work
    continue, the same way approving a checkpoint does.

    Args:
        plan: Working copy of the plan; mutated in place.

    Returns:
        ResumeReport with progress and the next actionable task.

    Raises:
        InvalidStateError: If the plan is already completed.
    """
    if plan.status == PlanStatus.COMPLETED:
        raise InvalidStateError(
            "Build is already complete. Nothing to resume.",
            current_status=plan.status,
        )

    previous = plan.session_id
    plan.session_id = str(uuid4())
    if plan.status == PlanStatus.PAUSED:
        plan.transition(PlanStatus.IN_PROGRESS)

    failed = failed_tasks(plan)
    found = plan.next_actionable()
    next_task = TaskRef.from_task(found[1]) if found else None

    current = None
    if 0 <= plan.current_phase < len(plan.phases):
        phase = plan.phases[plan.current_phase]
        current = CurrentPhase(id=phase.id, name=phase.name, status=phase.status)

    at_checkpoint = plan.at_checkpoint
    if at_checkpoint:
        instructions = "You're at a checkpoint. Review and approve or reject it before continuing."
    elif next_task:
        instructions = f"Run execute_step to continue with task {next_task.id}."
    elif failed:
        instructions = "Some tasks have failed. Fix the issues and retry, or roll the failed steps back."
    else:
        instructions = "No tasks available. The build may need a checkpoint review."

    logger.info("Build resumed", previous_session=previous, new_session=plan.session_id)

    return ResumeReport(
        previous_session=previous,
        new_session=plan.session_id,
        status=plan.status,
        progress=progress_counts(plan),
        current_phase=current,
        at_checkpoint=at_checkpoint,
        failed_tasks=failed,
        next_task=next_task,
        instructions=instructions,
    )
