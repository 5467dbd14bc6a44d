"""Harness configuration, from an optional YAML file and CLI overrides."""

import os
from collections.abc import Mapping, Sequence
from pathlib import Path
from typing import Any

import yaml
from pydantic import BaseModel, ConfigDict, Field, ValidationError

DEFAULT_EXCLUDES = (".git", ".venv", "venv", "node_modules", "__pycache__")


class ConfigError(Exception):
    """Raised when the harness configuration is unusable."""


def default_concurrency() -> int:
    """Use the CPU count, capped at 8."""
    return min(8, os.cpu_count() or 1)


class HarnessConfig(BaseModel):
    """Settings for one harness run."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    skip_execution: bool = Field(
        default=False, description="Syntax-only mode: never run the execution stage"
    )
    exclude: Sequence[str] = Field(
        default=DEFAULT_EXCLUDES, description="Glob patterns of paths to ignore"
    )
    timeout: float = Field(
        default=60.0, gt=0, description="Seconds allowed per external check or probe"
    )
    concurrency: int = Field(
        default_factory=default_concurrency, ge=1, description="Scripts processed at once"
    )
    output_dir: Path = Field(
        default=Path("test-results"),
        description="Report and log directory; relative paths are under the root",
    )
    interpreters: Sequence[str] | None = Field(
        default=None,
        description="Backends to use; None means every registered, available one",
    )
    interpreter_settings: Mapping[str, dict[str, Any]] = Field(
        default_factory=dict, description="Per-backend settings keyed by backend"
    )
    privileged: bool | None = Field(
        default=None, description="Override host privilege detection"
    )
    env: Mapping[str, str] = Field(
        default_factory=dict, description="Extra environment for probed scripts"
    )

    def with_overrides(self, **overrides: Any) -> "HarnessConfig":
        """Return a validated copy with the non-None overrides applied."""
        values = self.model_dump()
        values.update({k: v for k, v in overrides.items() if v is not None})
        try:
            return HarnessConfig.model_validate(values)
        except ValidationError as exc:
            raise ConfigError(f"Invalid configuration: {exc}") from exc


def load_config(path: Path) -> HarnessConfig:
    """Load harness configuration from a YAML file.

    An empty file yields the defaults.

    Raises:
        ConfigError: If the file is missing, is not valid YAML or does not
            match the configuration schema

    """
    try:
        content = path.read_text(encoding="utf-8")
    except OSError as exc:
        raise ConfigError(f"Cannot read config file {path}: {exc}") from exc

    try:
        data = yaml.safe_load(content)
    except yaml.YAMLError as exc:
        raise ConfigError(f"Invalid YAML in {path}: {exc}") from exc

    if data is None:
        return HarnessConfig()
    if not isinstance(data, dict):
        raise ConfigError(f"Invalid configuration schema in {path}: expected a mapping")

    try:
        return HarnessConfig.model_validate(data)
    except ValidationError as exc:
        raise ConfigError(f"Invalid configuration schema in {path}: {exc}") from exc
