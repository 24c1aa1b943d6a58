"""Database package for Hive server."""

from hive.server.database.build_repository import BuildPlanRepository
from hive.server.database.connection import Database
from hive.server.database.project_repository import ProjectRepository


__all__ = [
    "BuildPlanRepository",
    "Database",
    "ProjectRepository",
]
