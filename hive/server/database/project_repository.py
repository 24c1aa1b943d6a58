"""Repository for projects and their architecture declarations."""

from datetime import UTC, datetime

import aiosqlite

from hive.build.exceptions import ProjectExistsError, ProjectNotFoundError
from hive.core.types import Architecture, Project
from hive.server.database.connection import Database


class ProjectRepository:
    """Repository for project CRUD operations.

    Acts as the architecture provider for the build planner: the
    architecture is stored as a JSON column on the project row.
    """

    def __init__(self, db: Database):
        """Initialize repository with database connection.

        Args:
            db: Database connection instance.
        """
        self._db = db

    async def create(self, project: Project) -> Project:
        """Register a new project.

        Args:
            project: Project to create.

        Returns:
            Created project.

        Raises:
            ProjectExistsError: If the slug is already taken.
        """
        try:
            await self._db.execute(
                """
                INSERT INTO projects (
                    id, slug, name, description, architecture_json, created, updated
                ) VALUES (?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    project.id,
                    project.slug,
                    project.name,
                    project.description,
                    project.architecture.model_dump_json(),
                    project.created.isoformat(),
                    project.updated.isoformat(),
                ),
            )
        except aiosqlite.IntegrityError as e:
            raise ProjectExistsError(project.slug) from e
        return project

    async def get_by_slug(self, slug: str) -> Project | None:
        """Get a project by slug.

        Args:
            slug: Project slug.

        Returns:
            Project if found, None otherwise.
        """
        row = await self._db.fetch_one(
            "SELECT * FROM projects WHERE slug = ?",
            (slug,),
        )
        return self._row_to_project(row) if row else None

    async def list_all(self) -> list[Project]:
        """List all projects.

        Returns:
            List of all projects, ordered by slug.
        """
        rows = await self._db.fetch_all("SELECT * FROM projects ORDER BY slug")
        return [self._row_to_project(row) for row in rows]

    async def update_architecture(self, slug: str, architecture: Architecture) -> Project:
        """Replace a project's architecture.

        Existing build plans are not touched; the new architecture only
        affects plans created afterwards.

        Args:
            slug: Project slug.
            architecture: New architecture declaration.

        Returns:
            Updated project.

        Raises:
            ProjectNotFoundError: If the project doesn't exist.
        """
        rows_affected = await self._db.execute(
            "UPDATE projects SET architecture_json = ?, updated = ? WHERE slug = ?",
            (architecture.model_dump_json(), datetime.now(UTC).isoformat(), slug),
        )
        if rows_affected == 0:
            raise ProjectNotFoundError(slug)

        project = await self.get_by_slug(slug)
        if project is None:
            raise RuntimeError(f"Project {slug} not found after update")
        return project

    def _row_to_project(self, row: aiosqlite.Row) -> Project:
        """Convert database row to Project model.

        Args:
            row: Database row from projects table.

        Returns:
            Project model instance.
        """
        return Project(
            id=row["id"],
            slug=row["slug"],
            name=row["name"],
            description=row["description"],
            architecture=Architecture.model_validate_json(row["architecture_json"]),
            created=row["created"],
            updated=row["updated"],
        )
