# This Source Code Form is subject to the terms of the Mozilla Public
# License, v. 2.0. If a copy of the MPL was not distributed with this
# file, You can obtain one at https://mozilla.org/MPL/2.0/.
"""Phase planner: turns an architecture into layered build phases.

Layering is a batched Kahn topological sort. Each pass collects every
unplaced component whose in-architecture dependencies are already placed;
that batch becomes the next phase. Declared architectures are often
approximate, so a dependency cycle does not fail planning: when a pass
finds nothing placeable, the first unplaced component (in declaration
order) is force-placed on its own and layering continues.

Tasks only ever depend on tasks from strictly earlier phases, so the task
graph is a DAG with respect to phase order even when the architecture is
cyclic.
"""

from collections.abc import Sequence

from loguru import logger
from pydantic import BaseModel, Field

from hive.build.exceptions import EmptyArchitectureError
from hive.build.models import BuildPhase, BuildTask
from hive.core.types import Component


class PhasePlan(BaseModel):
    """Planner output.

    Attributes:
        phases: Ordered phases, numbered from 1.
        forced_placements: Components placed without their dependencies
            satisfied, to break a dependency cycle.
    """

    phases: list[BuildPhase]
    forced_placements: list[str] = Field(default_factory=list)

    @property
    def task_count(self) -> int:
        return sum(len(p.tasks) for p in self.phases)


def make_task_id(phase_index: int, task_index: int) -> str:
    """Deterministic task id from 0-based phase and task positions."""
    return f"p{phase_index + 1}t{task_index + 1}"


def layer_components(components: Sequence[Component]) -> tuple[list[list[str]], list[str]]:
    """Group component names into dependency layers.

    Args:
        components: Components in declaration order. Names must be unique.

    Returns:
        Tuple of (layers, forced) where layers is a list of component-name
        lists and forced holds the names placed to break a stall.
    """
    names = {c.name for c in components}
    # Dangling references are dropped, not errored
    deps = {c.name: {d for d in c.dependencies if d in names and d != c.name} for c in components}

    layers: list[list[str]] = []
    forced: list[str] = []
    placed: set[str] = set()

    while len(placed) < len(components):
        layer = [
            c.name
            for c in components
            if c.name not in placed and deps[c.name] <= placed
        ]

        if not layer:
            stalled = next(c.name for c in components if c.name not in placed)
            logger.warning(
                "Dependency cycle detected, force-placing component",
                component=stalled,
                phase=len(layers) + 1,
                unmet=sorted(deps[stalled] - placed),
            )
            forced.append(stalled)
            layer = [stalled]

        layers.append(layer)
        placed.update(layer)

    return layers, forced


def plan_phases(components: Sequence[Component], checkpoint: bool = True) -> PhasePlan:
    """Convert an architecture's components into ordered build phases.

    Args:
        components: Architecture components in declaration order.
        checkpoint: Whether each phase requires approval before the next.

    Returns:
        PhasePlan with one phase per dependency layer and one task per
        component.

    Raises:
        EmptyArchitectureError: If there are no components.
    """
    if not components:
        raise EmptyArchitectureError()

    by_name = {c.name: c for c in components}
    layers, forced = layer_components(components)

    # component name -> task id, filled phase by phase so lookups only
    # ever see earlier phases
    scheduled: dict[str, str] = {}
    phases: list[BuildPhase] = []

    for phase_index, layer in enumerate(layers):
        tasks: list[BuildTask] = []
        for task_index, name in enumerate(layer):
            component = by_name[name]
            depends_on: list[str] = []
            for dep in component.dependencies:
                task_id = scheduled.get(dep)
                if task_id is not None and task_id not in depends_on:
                    depends_on.append(task_id)

            description = f"Implement the {name} component"
            if component.description:
                description += f": {component.description}"

            tasks.append(
                BuildTask(
                    id=make_task_id(phase_index, task_index),
                    name=f"Build {name}",
                    description=description,
                    component=name,
                    depends_on=depends_on,
                    expected_files=list(component.files),
                )
            )

        for name, task in zip(layer, tasks, strict=True):
            scheduled[name] = task.id

        phases.append(
            BuildPhase(
                id=f"phase-{phase_index + 1}",
                name=f"Phase {phase_index + 1}",
                description=f"Build: {', '.join(layer)}",
                tasks=tasks,
                checkpoint=checkpoint,
            )
        )

    logger.debug(
        "Derived build phases",
        phases=len(phases),
        tasks=len(components),
        forced=len(forced),
    )
    return PhasePlan(phases=phases, forced_placements=forced)
