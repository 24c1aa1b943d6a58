"""Tests for the project's pytest collection settings."""
import tomllib
from fnmatch import fnmatch
from pathlib import Path

PYPROJECT = Path(__file__).parents[2] / "pyproject.toml"


def test_build_test_package_is_collected() -> None:
    """tests/unit/build must not match any directory pytest skips."""
    settings = tomllib.loads(PYPROJECT.read_text())["tool"]["pytest"]["ini_options"]

    assert not any(fnmatch("build", pattern) for pattern in settings["norecursedirs"])
    assert (Path(__file__).parent / "build" / "test_gateway.py").exists()
