# This Source Code Form is subject to the terms of the Mozilla Public
# License, v. 2.0. If a copy of the MPL was not distributed with this
# file, You can obtain one at https://mozilla.org/MPL/2.0/.
"""FastAPI dependency injection providers."""

from __future__ import annotations

from hive.build.service import BuildService
from hive.server.database import ProjectRepository
from hive.server.database.connection import Database


# Module-level database instance
_database: Database | None = None

# Module-level build service instance
_build_service: BuildService | None = None


def set_database(db: Database) -> None:
    """Set the global database instance.

    This should be called during application startup.

    Args:
        db: Database instance to set.
    """
    global _database
    _database = db


def clear_database() -> None:
    """Clear the global database instance.

    This should be called during application shutdown.
    """
    global _database
    _database = None


def get_database() -> Database:
    """Get the database instance.

    Returns:
        The current Database instance.

    Raises:
        RuntimeError: If database not initialized.
    """
    if _database is None:
        raise RuntimeError("Database not initialized. Is the server running?")
    return _database


def get_project_repository() -> ProjectRepository:
    """Get the project repository dependency.

    Returns:
        ProjectRepository instance.

    Raises:
        RuntimeError: If database not initialized.
    """
    db = get_database()
    return ProjectRepository(db)


def set_build_service(service: BuildService) -> None:
    """Set the global build service instance.

    This should be called during application startup.

    Args:
        service: BuildService instance to set.
    """
    global _build_service
    _build_service = service


def clear_build_service() -> None:
    """Clear the global build service instance.

    This should be called during application shutdown.
    """
    global _build_service
    _build_service = None


def get_build_service() -> BuildService:
    """Get the build service instance.

    Returns:
        The current BuildService instance.

    Raises:
        RuntimeError: If build service not initialized.
    """
    if _build_service is None:
        raise RuntimeError("Build service not initialized. Is the server running?")
    return _build_service
