"""Hive FastAPI server package."""
from hive.server.database import Database


__all__ = [
    "Database",
]
