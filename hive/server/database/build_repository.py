"""Repository for build plan persistence operations."""

import json
from datetime import UTC, datetime

import aiosqlite

from hive.build.exceptions import (
    ActivePlanExistsError,
    PlanNotFoundError,
    PlanVersionConflictError,
)
from hive.build.models import BuildPlan
from hive.server.database.connection import Database


class BuildPlanRepository:
    """Repository for build plan CRUD operations.

    The phase tree, with its tasks and their file changes, is stored as a
    single JSON column and always written whole. Updates are a
    compare-and-swap on the plan's version counter.
    """

    def __init__(self, db: Database):
        """Initialize repository.

        Args:
            db: Database connection.
        """
        self._db = db

    async def create(self, plan: BuildPlan) -> BuildPlan:
        """Store a new build plan.

        Args:
            plan: Initial plan state.

        Returns:
            The stored plan.

        Raises:
            ActivePlanExistsError: If the project already has an unfinished plan.
        """
        try:
            async with self._db.transaction():
                active = await self.get_active(plan.project_id)
                if active is not None:
                    raise ActivePlanExistsError(plan.project_id, active.id)

                await self._db.execute(
                    """
                    INSERT INTO build_plans (
                        id, project_id, description, status, current_phase,
                        phases_json, session_id, version, created, updated
                    ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                    """,
                    (
                        plan.id,
                        plan.project_id,
                        plan.description,
                        plan.status,
                        plan.current_phase,
                        self._dump_phases(plan),
                        plan.session_id,
                        plan.version,
                        plan.created.isoformat(),
                        plan.updated.isoformat(),
                    ),
                )
        except aiosqlite.IntegrityError:
            # Lost a race with another writer on the partial unique index
            active = await self.get_active(plan.project_id)
            if active is None:
                raise
            raise ActivePlanExistsError(plan.project_id, active.id) from None
        return plan

    async def get(self, plan_id: str) -> BuildPlan | None:
        """Get build plan by ID.

        Args:
            plan_id: Plan identifier.

        Returns:
            Build plan or None if not found.
        """
        row = await self._db.fetch_one(
            "SELECT * FROM build_plans WHERE id = ?",
            (plan_id,),
        )
        return self._row_to_plan(row) if row else None

    async def get_by_project(self, project_id: str) -> BuildPlan | None:
        """Get the most recent build plan of a project.

        Args:
            project_id: Project identifier.

        Returns:
            Latest plan, completed or not, or None if the project has none.
        """
        row = await self._db.fetch_one(
            """
            SELECT * FROM build_plans
            WHERE project_id = ?
            ORDER BY created DESC
            LIMIT 1
            """,
            (project_id,),
        )
        return self._row_to_plan(row) if row else None

    async def get_active(self, project_id: str) -> BuildPlan | None:
        """Get the unfinished build plan of a project.

        Args:
            project_id: Project identifier.

        Returns:
            The non-completed plan or None.
        """
        row = await self._db.fetch_one(
            """
            SELECT * FROM build_plans
            WHERE project_id = ?
            AND status != 'completed'
            """,
            (project_id,),
        )
        return self._row_to_plan(row) if row else None

    async def list_by_project(self, project_id: str) -> list[BuildPlan]:
        """List every build plan of a project, newest first.

        Args:
            project_id: Project identifier.

        Returns:
            List of plans.
        """
        rows = await self._db.fetch_all(
            """
            SELECT * FROM build_plans
            WHERE project_id = ?
            ORDER BY created DESC
            """,
            (project_id,),
        )
        return [self._row_to_plan(row) for row in rows]

    async def update(self, plan: BuildPlan) -> BuildPlan:
        """Write a modified plan back if nobody else wrote it first.

        The write only succeeds when the stored version still equals
        plan.version. The stored copy gets version + 1 and a fresh
        updated timestamp.

        Args:
            plan: Modified plan, carrying the version it was read at.

        Returns:
            The plan as stored, with the bumped version.

        Raises:
            PlanNotFoundError: If the plan doesn't exist.
            PlanVersionConflictError: If the stored version differs.
        """
        stored = plan.model_copy(
            update={"version": plan.version + 1, "updated": datetime.now(UTC)}
        )
        rows_affected = await self._db.execute(
            """
            UPDATE build_plans SET
                description = ?,
                status = ?,
                current_phase = ?,
                phases_json = ?,
                session_id = ?,
                version = ?,
                updated = ?
            WHERE id = ? AND version = ?
            """,
            (
                stored.description,
                stored.status,
                stored.current_phase,
                self._dump_phases(stored),
                stored.session_id,
                stored.version,
                stored.updated.isoformat(),
                plan.id,
                plan.version,
            ),
        )
        if rows_affected == 0:
            actual = await self._db.fetch_scalar(
                "SELECT version FROM build_plans WHERE id = ?",
                (plan.id,),
            )
            if actual is None:
                raise PlanNotFoundError(plan.id)
            raise PlanVersionConflictError(
                plan.id,
                plan.version,
                actual if isinstance(actual, int) else None,
            )
        return stored

    def _dump_phases(self, plan: BuildPlan) -> str:
        return json.dumps([phase.model_dump(mode="json") for phase in plan.phases])

    def _row_to_plan(self, row: aiosqlite.Row) -> BuildPlan:
        """Convert database row to BuildPlan model.

        Derived phase statuses present in the JSON are ignored on parse.

        Args:
            row: Database row from build_plans table.

        Returns:
            BuildPlan model instance.
        """
        return BuildPlan.model_validate(
            {
                "id": row["id"],
                "project_id": row["project_id"],
                "description": row["description"],
                "status": row["status"],
                "current_phase": row["current_phase"],
                "phases": json.loads(row["phases_json"]),
                "session_id": row["session_id"],
                "version": row["version"],
                "created": row["created"],
                "updated": row["updated"],
            }
        )
