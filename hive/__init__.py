"""Hive: build plan orchestration for agent-driven projects."""

__version__ = "0.1.0"

__all__ = [
    "__version__",
]
