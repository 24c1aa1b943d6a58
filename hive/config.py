# This Source Code Form is subject to the terms of the Mozilla Public
# License, v. 2.0. If a copy of the MPL was not distributed with this
# file, You can obtain one at https://mozilla.org/MPL/2.0/.
"""Hive configuration with environment variable and YAML file support."""
import os
from pathlib import Path

import yaml
from pydantic import Field, ValidationError, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from hive.core.exceptions import ConfigurationError
from hive.core.types import Architecture


HIVE_ROOT = Path.home() / ".hive"
DEFAULT_CONFIG_PATH = HIVE_ROOT / "config.yaml"


class HiveConfig(BaseSettings):
    """Hive configuration with environment variable support.

    All settings can be overridden via environment variables with HIVE_ prefix.
    Example: HIVE_PORT=9000 overrides the port setting.
    """

    model_config = SettingsConfigDict(
        env_prefix="HIVE_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Server binding
    host: str = Field(
        default="127.0.0.1",
        description="Host to bind the server to",
    )
    port: int = Field(
        default=8421,
        ge=1,
        le=65535,
        description="Port to bind the server to",
    )

    # Database
    database_path: Path = Field(
        default_factory=lambda: HIVE_ROOT / "hive.db",
        description="Path to SQLite database file",
    )

    # Logging
    log_level: str = Field(
        default="INFO",
        description="Minimum log level (DEBUG, INFO, WARNING, ERROR)",
    )

    # Planning
    checkpoint_every_phase: bool = Field(
        default=True,
        description="Require checkpoint approval after every build phase",
    )

    @field_validator("database_path")
    @classmethod
    def _expand_home(cls, v: Path) -> Path:
        return v.expanduser()

    @field_validator("log_level")
    @classmethod
    def _normalize_level(cls, v: str) -> str:
        level = v.upper()
        if level not in {"TRACE", "DEBUG", "INFO", "SUCCESS", "WARNING", "ERROR", "CRITICAL"}:
            raise ValueError(f"Unknown log level: {v}")
        return level


def load_config(config_path: Path | None = None) -> HiveConfig:
    """Load configuration from an optional YAML file.

    Resolution order:
    1. Explicit config_path parameter (if provided)
    2. HIVE_CONFIG environment variable (if set)
    3. Default: ~/.hive/config.yaml, skipped when it doesn't exist

    Values from the file take precedence over HIVE_* environment variables.

    Args:
        config_path: Optional explicit path to the configuration file.

    Returns:
        HiveConfig populated from the file and the environment.

    Raises:
        FileNotFoundError: If an explicitly requested file does not exist.
        ConfigurationError: If the file is malformed or fails validation.
    """
    explicit = config_path is not None
    if config_path is None:
        env_path = os.environ.get("HIVE_CONFIG")
        explicit = bool(env_path)
        config_path = Path(env_path) if env_path else DEFAULT_CONFIG_PATH

    if not config_path.exists():
        if explicit:
            raise FileNotFoundError(f"Configuration file not found at {config_path}")
        return HiveConfig()

    try:
        with open(config_path) as f:
            data = yaml.safe_load(f)
    except yaml.YAMLError as e:
        raise ConfigurationError(f"Malformed configuration file {config_path}: {e}") from e

    if data is None:
        data = {}
    if not isinstance(data, dict):
        raise ConfigurationError(
            f"Configuration file {config_path} must contain a mapping, got {type(data).__name__}"
        )

    try:
        return HiveConfig(**data)
    except ValidationError as e:
        raise ConfigurationError(f"Invalid configuration in {config_path}: {e}") from e


def load_architecture(path: Path) -> Architecture:
    """Load an architecture declaration from a YAML file.

    The file holds either a mapping with ``description`` and ``components``
    keys or a bare list of components.

    Args:
        path: Path to the YAML file.

    Returns:
        Validated Architecture.

    Raises:
        FileNotFoundError: If the file does not exist.
        ConfigurationError: If the file is malformed or fails validation.
    """
    if not path.exists():
        raise FileNotFoundError(f"Architecture file not found at {path}")

    try:
        with open(path) as f:
            data = yaml.safe_load(f)
    except yaml.YAMLError as e:
        raise ConfigurationError(f"Malformed architecture file {path}: {e}") from e

    if isinstance(data, list):
        data = {"components": data}
    elif data is None:
        data = {}
    elif not isinstance(data, dict):
        raise ConfigurationError(
            f"Architecture file {path} must contain a mapping or a list, got {type(data).__name__}"
        )

    try:
        return Architecture.model_validate(data)
    except ValidationError as e:
        raise ConfigurationError(f"Invalid architecture in {path}: {e}") from e
