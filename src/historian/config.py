from __future__ import annotations

from pathlib import Path
from typing import Any, Literal, Self

import yaml
from pydantic import BaseModel, Field, ValidationError, model_validator
from pydantic.fields import FieldInfo
from pydantic_settings import (
    BaseSettings,
    PydanticBaseSettingsSource,
    SettingsConfigDict,
)

from historian.exceptions import ConfigError
from historian.logging import get_logger

__all__ = [
    "CacheConfig",
    "GitConfig",
    "HistorianConfig",
    "load_config",
    "get_user_config_path",
    "PROJECT_CONFIG_NAME",
]

logger = get_logger(__name__)

#: Project-level configuration file name, looked up in the working directory
PROJECT_CONFIG_NAME = "historian.yaml"

# Set by load_config() while HistorianConfig is built; None means ./historian.yaml
_project_config_override: Path | None = None


class CacheConfig(BaseModel):
    """Settings for the commit-history cache.

    Attributes:
        enabled: Whether the cache is enabled at startup (default: True).
        page_capacity: Distinct log-entry queries kept in memory (default: 5).
        count_capacity: Distinct commit-count queries kept in memory
            (default: 100).
        full_load_threshold: Entries fetched for a first page warm-up. A cached
            page shorter than this is the complete history for its query
            (default: 1200).
        quiet_interval_ms: Quiet time after the last repository change before
            the cache is refilled (default: 1000).
        unwatchable_prefixes: Root path prefixes that cannot be watched
            reliably (network mounts). Caching stays disabled for them.
    """

    enabled: bool = True
    page_capacity: int = Field(default=5, ge=1, le=1000)
    count_capacity: int = Field(default=100, ge=1, le=100000)
    full_load_threshold: int = Field(default=1200, ge=1, le=100000)
    quiet_interval_ms: int = Field(default=1000, ge=0, le=60000)
    unwatchable_prefixes: list[str] = Field(default_factory=lambda: ["/mnt"])

    @property
    def quiet_interval(self) -> float:
        """Quiet interval in seconds."""
        return self.quiet_interval_ms / 1000.0


class GitConfig(BaseModel):
    """Settings for the git executable.

    Attributes:
        git_path: Path to the git executable. When unset, or when the
            configured executable cannot be run, ``git`` from PATH is used.
    """

    git_path: str | None = None

    @model_validator(mode="after")
    def check_git_path(self) -> Self:
        if self.git_path is not None and not self.git_path.strip():
            self.git_path = None
        return self


class YamlConfigSource(PydanticBaseSettingsSource):
    """Custom settings source that loads from YAML files."""

    def __init__(
        self,
        settings_cls: type[BaseSettings],
        yaml_file: Path | None = None,
    ):
        super().__init__(settings_cls)
        self.yaml_file = yaml_file
        self._config_data: dict[str, Any] = {}
        if yaml_file and yaml_file.exists():
            try:
                with open(yaml_file) as f:
                    loaded = yaml.safe_load(f)
                    if loaded is None:
                        logger.warning("config_file_empty", path=str(yaml_file))
                    elif isinstance(loaded, dict):
                        self._config_data = loaded
                    else:
                        raise ConfigError(
                            message=f"Config file {yaml_file} must contain a mapping",
                            value=type(loaded).__name__,
                        )
            except yaml.YAMLError as e:
                raise ConfigError(
                    message=f"Invalid YAML in {yaml_file}: {e}",
                    field=None,
                    value=None,
                ) from e

    def get_field_value(
        self, field: FieldInfo, field_name: str
    ) -> tuple[Any, str, bool]:
        """Get value for a specific field from the YAML config."""
        if field_name in self._config_data:
            return self._config_data[field_name], field_name, False
        return None, field_name, False

    def __call__(self) -> dict[str, Any]:
        """Return the complete config data."""
        return self._config_data


class HistorianConfig(BaseSettings):
    """Root configuration object containing all Historian settings."""

    model_config = SettingsConfigDict(
        env_prefix="HISTORIAN_",
        env_nested_delimiter="__",
        extra="ignore",
    )

    cache: CacheConfig = Field(default_factory=CacheConfig)
    git: GitConfig = Field(default_factory=GitConfig)
    verbosity: Literal["error", "warning", "info", "debug"] = "warning"

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: type[BaseSettings],
        init_settings: PydanticBaseSettingsSource,
        env_settings: PydanticBaseSettingsSource,
        dotenv_settings: PydanticBaseSettingsSource,
        file_secret_settings: PydanticBaseSettingsSource,
    ) -> tuple[PydanticBaseSettingsSource, ...]:
        """Customize the order of settings sources.

        Priority (highest to lowest):
        1. Init settings (explicit keyword arguments)
        2. Environment variables (HISTORIAN_*)
        3. Project YAML config (./historian.yaml)
        4. User YAML config (~/.config/historian/config.yaml)
        """
        project_config_path = _project_config_override or (
            Path.cwd() / PROJECT_CONFIG_NAME
        )
        return (
            init_settings,
            env_settings,
            YamlConfigSource(settings_cls, project_config_path),
            YamlConfigSource(settings_cls, get_user_config_path()),
        )


def get_user_config_path() -> Path:
    """Get the path to the user configuration file.

    Returns:
        Path to ~/.config/historian/config.yaml
    """
    return Path.home() / ".config" / "historian" / "config.yaml"


def load_config(config_path: Path | None = None) -> HistorianConfig:
    """Load configuration with hierarchy: defaults -> user -> project -> env.

    Args:
        config_path: Optional path to project config file. Defaults to
            ./historian.yaml

    Returns:
        HistorianConfig instance with merged configuration

    Raises:
        ConfigError: If configuration is invalid
    """
    if config_path is None:
        config_path = Path.cwd() / PROJECT_CONFIG_NAME

    if not config_path.exists():
        logger.info("project_config_missing", path=str(config_path))

    global _project_config_override
    _project_config_override = config_path
    try:
        return HistorianConfig()
    except ValidationError as e:
        first_error = e.errors()[0]
        field = ".".join(str(loc) for loc in first_error["loc"])
        raise ConfigError(
            message=f"Invalid configuration: {first_error['msg']}",
            field=field,
            value=first_error.get("input"),
        ) from e
    finally:
        _project_config_override = None
