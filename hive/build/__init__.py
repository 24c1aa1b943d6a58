from hive.build.exceptions import (
    ActivePlanExistsError as ActivePlanExistsError,
    DependencyNotMetError as DependencyNotMetError,
    EmptyArchitectureError as EmptyArchitectureError,
    InvalidStateError as InvalidStateError,
    InvalidTransitionError as InvalidTransitionError,
    NothingToRollBackError as NothingToRollBackError,
    PlanNotFoundError as PlanNotFoundError,
    PlanVersionConflictError as PlanVersionConflictError,
    ProjectExistsError as ProjectExistsError,
    ProjectNotFoundError as ProjectNotFoundError,
    TaskNotFoundError as TaskNotFoundError,
)
from hive.build.models import (
    BuildPhase as BuildPhase,
    BuildPlan as BuildPlan,
    BuildTask as BuildTask,
    FileAction as FileAction,
    FileChange as FileChange,
    PhaseStatus as PhaseStatus,
    PlanStatus as PlanStatus,
    StepOutcome as StepOutcome,
    TaskStatus as TaskStatus,
)
from hive.build.planner import PhasePlan as PhasePlan, plan_phases as plan_phases
