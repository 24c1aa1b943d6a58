# This Source Code Form is subject to the terms of the Mozilla Public
# License, v. 2.0. If a copy of the MPL was not distributed with this
# file, You can obtain one at https://mozilla.org/MPL/2.0/.
"""Domain exceptions raised by the build orchestrator.

Every exception here is a usage or persistence error: it is raised before
any state is written, so the stored plan is unchanged when one escapes.
"""

from hive.core.exceptions import HiveError


class ProjectNotFoundError(HiveError):
    """Raised when a project slug doesn't exist.

    HTTP Status: 404 Not Found
    """

    def __init__(self, project: str):
        """Initialize ProjectNotFoundError.

        Args:
            project: Slug of the missing project.
        """
        self.project = project
        super().__init__(f"Project not found: {project}")


class PlanNotFoundError(HiveError):
    """Raised when a project has no build plan.

    HTTP Status: 404 Not Found
    """

    def __init__(self, project: str):
        """Initialize PlanNotFoundError.

        Args:
            project: Project slug or plan identifier that was looked up.
        """
        self.project = project
        super().__init__(f"No build plan found for project: {project}")


class TaskNotFoundError(HiveError):
    """Raised when a task ID is not part of the build plan.

    HTTP Status: 404 Not Found
    """

    def __init__(self, task_id: str):
        """Initialize TaskNotFoundError.

        Args:
            task_id: ID of the missing task.
        """
        self.task_id = task_id
        super().__init__(f"Task not found in build plan: {task_id}")


class InvalidStateError(HiveError):
    """Raised when an operation is invalid for the current plan or task state.

    HTTP Status: 422 Unprocessable Entity
    """

    def __init__(
        self,
        message: str,
        task_id: str | None = None,
        current_status: str | None = None,
    ):
        """Initialize InvalidStateError.

        Args:
            message: Error message describing the invalid operation.
            task_id: ID of the task involved (optional).
            current_status: Current status of the task or plan (optional).
        """
        self.task_id = task_id
        self.current_status = current_status
        super().__init__(message)


class InvalidTransitionError(InvalidStateError):
    """Raised when attempting a status transition the state machine forbids.

    Attributes:
        current: The current status.
        target: The attempted target status.
    """

    def __init__(self, current: str, target: str, task_id: str | None = None):
        """Initialize InvalidTransitionError.

        Args:
            current: The current status.
            target: The target status that is not allowed from current.
            task_id: ID of the task, when the transition is a task transition.
        """
        self.current = current
        self.target = target
        subject = f"Task {task_id}" if task_id else "Build plan"
        super().__init__(
            f"{subject} cannot transition from '{current}' to '{target}'",
            task_id=task_id,
            current_status=current,
        )


class DependencyNotMetError(InvalidStateError):
    """Raised when a task is reported before its dependencies are completed."""

    def __init__(self, task_id: str, unmet: list[str]):
        """Initialize DependencyNotMetError.

        Args:
            task_id: Task that was reported.
            unmet: Dependency task IDs that are not yet completed.
        """
        self.unmet = unmet
        super().__init__(
            f"Task {task_id} has unmet dependencies: {', '.join(unmet)}",
            task_id=task_id,
            current_status="pending",
        )


class NothingToRollBackError(InvalidStateError):
    """Raised when no completed or failed task exists to roll back."""

    def __init__(self) -> None:
        super().__init__("No completed or failed tasks to roll back")


class EmptyArchitectureError(InvalidStateError):
    """Raised when planning from an architecture with no components."""

    def __init__(self, project: str | None = None):
        """Initialize EmptyArchitectureError.

        Args:
            project: Slug of the project whose architecture is empty.
        """
        self.project = project
        super().__init__(
            "Architecture has no components. "
            "Add components to the architecture before planning a build."
        )


class ActivePlanExistsError(HiveError):
    """Raised when planning a project that already has an active build plan.

    HTTP Status: 409 Conflict
    """

    def __init__(self, project: str, plan_id: str):
        """Initialize ActivePlanExistsError.

        Args:
            project: Project identifier.
            plan_id: ID of the existing active plan.
        """
        self.project = project
        self.plan_id = plan_id
        super().__init__(f"Build plan {plan_id} is already active for project {project}")


class PlanVersionConflictError(HiveError):
    """Raised when a plan was modified since it was read.

    HTTP Status: 409 Conflict
    """

    def __init__(self, plan_id: str, expected_version: int, actual_version: int | None = None):
        """Initialize PlanVersionConflictError.

        Args:
            plan_id: ID of the conflicting plan.
            expected_version: Version the caller based its update on.
            actual_version: Version currently stored, if known.
        """
        self.plan_id = plan_id
        self.expected_version = expected_version
        self.actual_version = actual_version
        stored = f" (stored version {actual_version})" if actual_version is not None else ""
        super().__init__(
            f"Build plan {plan_id} changed since version {expected_version}{stored}"
        )


class ProjectExistsError(HiveError):
    """Raised when registering a project whose slug is already taken.

    HTTP Status: 409 Conflict
    """

    def __init__(self, project: str):
        """Initialize ProjectExistsError.

        Args:
            project: The duplicate slug.
        """
        self.project = project
        super().__init__(f"Project already exists: {project}")
