"""API route modules."""
from hive.server.routes.builds import router as builds_router
from hive.server.routes.health import router as health_router
from hive.server.routes.projects import router as projects_router


__all__ = ["builds_router", "health_router", "projects_router"]
