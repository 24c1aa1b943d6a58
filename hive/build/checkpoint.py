# This Source Code Form is subject to the terms of the Mozilla Public
# License, v. 2.0. If a copy of the MPL was not distributed with this
# file, You can obtain one at https://mozilla.org/MPL/2.0/.
"""Checkpoint gate between build phases.

The gate is advisory. Approval advances the phase pointer without checking
that the current phase is actually complete; the calling agent is expected
to review first.
"""

from enum import StrEnum

from loguru import logger
from pydantic import BaseModel, Field

from hive.build.exceptions import InvalidStateError
from hive.build.models import BuildPlan, PlanStatus, TaskStatus
from hive.build.summary import (
    LedgerEntry,
    PhaseSummary,
    ProgressCounts,
    TaskRef,
    current_phase_name,
    file_ledger,
    phase_summaries,
    progress_counts,
    tasks_with_status,
)


class CheckpointAction(StrEnum):
    """Actions accepted by the checkpoint gate."""

    REVIEW = "review"
    APPROVE = "approve"
    REJECT = "reject"


class CheckpointReview(BaseModel):
    """Snapshot of build progress for a checkpoint decision."""

    status: PlanStatus
    progress: ProgressCounts
    current_phase: str | None
    at_checkpoint: bool
    phases: list[PhaseSummary]
    completed_tasks: list[TaskRef]
    pending_tasks: list[TaskRef]
    failed_tasks: list[TaskRef]
    file_changes: list[LedgerEntry]
    instructions: str


class CheckpointDecision(BaseModel):
    """Result of approving or rejecting a checkpoint."""

    action: CheckpointAction
    status: PlanStatus
    current_phase: int
    next_phase: PhaseSummary | None = None
    next_phase_tasks: list[TaskRef] = Field(default_factory=list)
    reason: str | None = None
    message: str
    instructions: str


def _guidance(plan: BuildPlan, failed: int) -> str:
    if plan.status == PlanStatus.COMPLETED:
        return "Build is complete."
    if plan.status == PlanStatus.PAUSED or plan.at_checkpoint:
        return "Run the checkpoint with 'approve' to continue or 'reject' to keep the build paused."
    if failed:
        return "Some tasks failed. Roll them back and retry, or fix the issues and continue."
    return "Build is in progress. Run execute_step to continue."


def review_checkpoint(plan: BuildPlan) -> CheckpointReview:
    """Summarize the plan for a checkpoint decision without modifying it.

    Args:
        plan: Plan to review.

    Returns:
        CheckpointReview with counts, the file-change ledger and guidance.
    """
    failed = tasks_with_status(plan, TaskStatus.FAILED)
    return CheckpointReview(
        status=plan.status,
        progress=progress_counts(plan),
        current_phase=current_phase_name(plan),
        at_checkpoint=plan.at_checkpoint,
        phases=phase_summaries(plan),
        completed_tasks=tasks_with_status(plan, TaskStatus.COMPLETED),
        pending_tasks=tasks_with_status(plan, TaskStatus.PENDING),
        failed_tasks=failed,
        file_changes=file_ledger(plan),
        instructions=_guidance(plan, len(failed)),
    )


def _reject_if_completed(plan: BuildPlan, action: CheckpointAction) -> None:
    if plan.status == PlanStatus.COMPLETED:
        raise InvalidStateError(
            f"Cannot {action} a checkpoint on a completed build plan",
            current_status=plan.status,
        )


def approve_checkpoint(plan: BuildPlan) -> CheckpointDecision:
    """Approve the current checkpoint and advance to the next phase.

    The phase pointer is capped at the last phase.

    Args:
        plan: Working copy of the plan; mutated in place.

    Returns:
        CheckpointDecision describing the phase now current.

    Raises:
        InvalidStateError: If the plan is already completed.
    """
    _reject_if_completed(plan, CheckpointAction.APPROVE)

    if plan.current_phase < len(plan.phases) - 1:
        plan.current_phase += 1
    plan.transition(PlanStatus.IN_PROGRESS)

    phase = plan.phases[plan.current_phase] if plan.phases else None
    logger.info("Checkpoint approved", current_phase=plan.current_phase + 1)

    return CheckpointDecision(
        action=CheckpointAction.APPROVE,
        status=plan.status,
        current_phase=plan.current_phase,
        next_phase=phase_summaries(plan)[plan.current_phase] if phase else None,
        next_phase_tasks=[TaskRef.from_task(t) for t in phase.tasks] if phase else [],
        message="Checkpoint approved. Continuing build.",
        instructions="Run execute_step to begin the next task.",
    )


def reject_checkpoint(plan: BuildPlan, reason: str | None = None) -> CheckpointDecision:
    """Reject the current checkpoint and pause the build.

    The reason is echoed back but not stored on the plan.

    Args:
        plan: Working copy of the plan; mutated in place.
        reason: Why the checkpoint was rejected.

    Returns:
        CheckpointDecision with the paused status.

    Raises:
        InvalidStateError: If the plan is already completed.
    """
    _reject_if_completed(plan, CheckpointAction.REJECT)
    plan.transition(PlanStatus.PAUSED)
    logger.info("Checkpoint rejected", reason=reason)

    return CheckpointDecision(
        action=CheckpointAction.REJECT,
        status=plan.status,
        current_phase=plan.current_phase,
        reason=reason or "No reason given.",
        message="Build paused at checkpoint.",
        instructions=(
            "Fix the issues and approve the checkpoint to continue, "
            "or roll back the last step."
        ),
    )
