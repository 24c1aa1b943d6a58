"""Architecture and project type definitions shared across Hive.

Contains the pydantic models for the architecture declaration that the
build planner consumes (Component, Architecture) and the Project record
that owns it.
"""
from datetime import UTC, datetime
from uuid import uuid4

from pydantic import BaseModel, ConfigDict, Field, field_validator


class Component(BaseModel):
    """A single buildable unit of a project's architecture.

    This model is frozen (immutable). Architectures are edited by replacing
    the whole component list, never by mutating a component in place.

    Attributes:
        name: Component name, unique within its architecture.
        type: Free-form label (e.g., 'service', 'database', 'ui').
        description: What the component does.
        files: Glob patterns for the files this component owns.
        dependencies: Names of other components this one depends on.
    """

    model_config = ConfigDict(frozen=True)

    name: str = Field(..., min_length=1)
    type: str = "module"
    description: str = ""
    files: list[str] = Field(default_factory=list)
    dependencies: list[str] = Field(default_factory=list)


class Architecture(BaseModel):
    """Declared architecture of a project.

    Attributes:
        description: Overall description of the system.
        components: Components in declaration order.
    """

    model_config = ConfigDict(frozen=True)

    description: str = ""
    components: list[Component] = Field(default_factory=list)

    @field_validator("components")
    @classmethod
    def _unique_names(cls, components: list[Component]) -> list[Component]:
        """Reject architectures that declare the same component twice."""
        seen: set[str] = set()
        for component in components:
            if component.name in seen:
                raise ValueError(f"Duplicate component name: {component.name}")
            seen.add(component.name)
        return components


class Project(BaseModel):
    """A tracked project and its current architecture.

    Attributes:
        id: Unique project identifier (UUID).
        slug: URL-safe unique handle used by every tool call.
        name: Human-readable project name.
        description: Short project description.
        architecture: Current architecture declaration.
        created: When the project was registered.
        updated: When the project was last modified.
    """

    id: str = Field(default_factory=lambda: str(uuid4()))
    slug: str = Field(..., min_length=1, pattern=r"^[a-z0-9][a-z0-9_-]*$")
    name: str
    description: str = ""
    architecture: Architecture = Field(default_factory=Architecture)
    created: datetime = Field(default_factory=lambda: datetime.now(UTC))
    updated: datetime = Field(default_factory=lambda: datetime.now(UTC))
