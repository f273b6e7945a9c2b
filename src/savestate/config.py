"""Configuration for savestate streamers.

Two models are provided:

- :class:`StreamerSettings` holds the serialisable policy knobs and can be
  loaded from a YAML file with ``SAVESTATE_*`` environment overrides.
- :class:`StreamerConfig` is the immutable configuration a streamer is built
  from; it adds the fallback and test savestates, which only exist in code.
"""

from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Any

import yaml
from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator, model_validator
from typing_extensions import Self

from .errors import ConfigurationError, ErrorCode
from .storage import default_save_folder

logger = logging.getLogger(__name__)

ENV_PREFIX = "SAVESTATE_"
MAX_BACKUP_COUNT = 5


class StreamerSettings(BaseModel):
    """Policy knobs that can live in a configuration file."""

    model_config = ConfigDict(extra="forbid", frozen=True)

    folder_path: str = Field(
        default_factory=lambda: str(default_save_folder()),
        description="Folder holding the main save file, backups and debug export",
    )
    backup_count: int = Field(
        default=2,
        ge=0,
        le=MAX_BACKUP_COUNT,
        description="Number of backup files to keep (0 = disabled)",
    )
    validate_files: bool = Field(
        default=True,
        description="Frame save files with a header and validate it before loading",
    )
    debug_mode: bool = Field(
        default=False,
        description="Write a human-readable debug export on every save",
    )
    max_version: int | None = Field(
        default=None,
        ge=1,
        description="Reject frames whose header version exceeds this value",
    )

    @field_validator("folder_path")
    @classmethod
    def validate_folder_not_empty(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("folder_path cannot be empty")
        return v

    def to_config(
        self,
        fallback_savestate: Any,
        *,
        test_savestate: Any = None,
        use_test_savestate: bool = False,
    ) -> StreamerConfig:
        return StreamerConfig(
            **self.model_dump(),
            fallback_savestate=fallback_savestate,
            test_savestate=test_savestate,
            use_test_savestate=use_test_savestate,
        )


class StreamerConfig(StreamerSettings):
    """Complete, immutable streamer configuration."""

    model_config = ConfigDict(extra="forbid", frozen=True, arbitrary_types_allowed=True)

    fallback_savestate: Any = Field(
        ..., description="Returned when no valid save or backup can be loaded"
    )
    test_savestate: Any = Field(
        default=None, description="Returned unconditionally when use_test_savestate is set"
    )
    use_test_savestate: bool = Field(default=False, description="Bypass all file I/O on load")

    @model_validator(mode="after")
    def validate_test_savestate(self) -> Self:
        if self.use_test_savestate and self.test_savestate is None:
            raise ValueError("use_test_savestate requires a test_savestate")
        return self

    @property
    def folder(self) -> Path:
        return Path(self.folder_path)


def _parse_env_value(value: str) -> Any:
    """Parse environment variable value to appropriate type."""
    if value.lower() in ("true", "yes", "on"):
        return True
    if value.lower() in ("false", "no", "off"):
        return False
    if value.lower() in ("none", "null", ""):
        return None

    try:
        return int(value)
    except ValueError:
        pass

    try:
        return float(value)
    except ValueError:
        pass

    return value


def _apply_env_overrides(config: dict[str, Any]) -> dict[str, Any]:
    """Apply ``SAVESTATE_<FIELD>`` environment overrides.

    For example ``SAVESTATE_BACKUP_COUNT=3`` or ``SAVESTATE_VALIDATE_FILES=false``.
    ``SAVESTATE_HOME`` is consumed by :func:`default_save_folder` instead.
    """
    fields = StreamerSettings.model_fields
    for env_key, env_value in os.environ.items():
        if not env_key.startswith(ENV_PREFIX):
            continue
        key = env_key[len(ENV_PREFIX) :].lower()
        if key not in fields:
            continue
        config[key] = env_value if key == "folder_path" else _parse_env_value(env_value)
    return config


def _load_yaml(path: str) -> dict[str, Any]:
    try:
        with open(path, encoding="utf-8") as f:
            data = yaml.safe_load(f) or {}
    except yaml.YAMLError as e:
        raise ConfigurationError(
            ErrorCode.E801_INVALID_CONFIG_FILE, f"Invalid YAML syntax in '{path}': {e}"
        ) from e
    except OSError as e:
        raise ConfigurationError(
            ErrorCode.E801_INVALID_CONFIG_FILE, f"Error reading YAML file '{path}': {e}"
        ) from e

    if not isinstance(data, dict):
        raise ConfigurationError(
            ErrorCode.E801_INVALID_CONFIG_FILE,
            f"Configuration in '{path}' must be a mapping, got {type(data).__name__}",
        )
    # Settings may be nested under a top-level "savestate" key
    section = data.get("savestate", data)
    if not isinstance(section, dict):
        raise ConfigurationError(
            ErrorCode.E801_INVALID_CONFIG_FILE,
            f"'savestate' section in '{path}' must be a mapping",
        )
    return dict(section)


def load_settings(path: str | None = None, *, env_override: bool = True) -> StreamerSettings:
    """Load streamer settings from an optional YAML file.

    Args:
        path: Path to a YAML file (.yaml or .yml); defaults are used when None
        env_override: If True, apply ``SAVESTATE_*`` environment overrides

    Returns:
        Validated StreamerSettings

    Raises:
        ConfigurationError: If the file is missing, malformed or invalid
    """
    config: dict[str, Any] = {}

    if path is not None:
        if not Path(path).is_file():
            raise ConfigurationError(
                ErrorCode.E801_INVALID_CONFIG_FILE, f"Configuration file not found: {path}"
            )
        if not path.endswith((".yaml", ".yml")):
            raise ConfigurationError(
                ErrorCode.E801_INVALID_CONFIG_FILE,
                "Unsupported configuration file format. Only YAML (.yaml, .yml) is supported.",
            )
        config = _load_yaml(path)

    if env_override:
        config = _apply_env_overrides(config)

    try:
        settings = StreamerSettings.model_validate(config)
    except ValidationError as e:
        source = path or "environment"
        raise ConfigurationError(
            ErrorCode.E801_INVALID_CONFIG_FILE,
            f"Configuration validation failed for '{source}':\n{e}",
        ) from e

    logger.debug(f"Loaded streamer settings: {settings.model_dump()}")
    return settings
