"""Configuration loading with pydantic-settings.

Supports loading configuration from multiple sources with precedence:
1. Direct kwargs (highest priority, usually CLI flags)
2. Environment variables (COVPIPE__SECTION__KEY)
3. Workspace config (covpipe.yaml or .covpipe.yaml)
4. Built-in defaults (lowest priority)
"""

from pathlib import Path
from typing import Any

import yaml
from pydantic import ValidationError
from pydantic_settings import BaseSettings, PydanticBaseSettingsSource, SettingsConfigDict

from covpipe.config.constants import CONFIG_FILE_NAMES
from covpipe.config.models import (
    CoverageConfig,
    CovPipeConfig,
    LoggingConfig,
    ReportConfig,
    ToolchainConfig,
)
from covpipe.core.errors import ConfigError


def _load_yaml(path: Path) -> dict[str, Any]:
    if not path.exists():
        return {}
    try:
        with path.open() as f:
            data = yaml.safe_load(f) or {}
    except yaml.YAMLError as e:
        raise ConfigError.parse_error(str(path), str(e)) from e
    if not isinstance(data, dict):
        raise ConfigError.parse_error(str(path), "top level must be a mapping")
    return data


class _YamlSource(PydanticBaseSettingsSource):
    """Settings source that reads from pre-loaded YAML config."""

    def __init__(self, settings_cls: type[BaseSettings], yaml_config: dict[str, Any]) -> None:
        super().__init__(settings_cls)
        self._yaml_config = yaml_config

    def get_field_value(
        self,
        field: Any,  # noqa: ARG002
        field_name: str,
    ) -> tuple[Any, str, bool]:
        val = self._yaml_config.get(field_name)
        return val, field_name, val is not None

    def __call__(self) -> dict[str, Any]:
        return self._yaml_config


def _make_settings_class(yaml_config: dict[str, Any]) -> type[BaseSettings]:
    """Create a Settings class with an instance-bound YAML source."""

    class CovPipeSettings(BaseSettings):
        """Root config. Env vars: COVPIPE__COVERAGE__SNAPSHOT_NAME_PATTERN, etc."""

        model_config = SettingsConfigDict(
            env_prefix="COVPIPE__",
            env_nested_delimiter="__",
            case_sensitive=False,
        )

        logging: LoggingConfig = LoggingConfig()
        coverage: CoverageConfig = CoverageConfig()
        toolchain: ToolchainConfig = ToolchainConfig()
        report: ReportConfig = ReportConfig()

        @classmethod
        def settings_customise_sources(
            cls,
            settings_cls: type[BaseSettings],
            init_settings: PydanticBaseSettingsSource,
            env_settings: PydanticBaseSettingsSource,
            dotenv_settings: PydanticBaseSettingsSource,  # noqa: ARG003
            file_secret_settings: PydanticBaseSettingsSource,  # noqa: ARG003
        ) -> tuple[PydanticBaseSettingsSource, ...]:
            # Precedence (first wins): init kwargs > env vars > yaml files
            return (init_settings, env_settings, _YamlSource(settings_cls, yaml_config))

    return CovPipeSettings


def find_config_file(workspace: Path) -> Path | None:
    """Return the first workspace config file that exists."""
    for name in CONFIG_FILE_NAMES:
        candidate = workspace / name
        if candidate.is_file():
            return candidate
    return None


def load_config(
    workspace: Path | None = None,
    *,
    config_file: Path | None = None,
    **kwargs: Any,
) -> CovPipeConfig:
    """Load config: defaults < workspace YAML < env vars < kwargs.

    Args:
        workspace: Directory to look for covpipe.yaml in.
                   Defaults to current working directory.
        config_file: Explicit config file; overrides workspace lookup.
        **kwargs: Per-section override dicts, e.g.
                  ``coverage={"output_destination": "out"}``.

    Returns:
        Fully resolved configuration object.

    Raises:
        ConfigError: On invalid YAML syntax or validation errors.
    """
    workspace = workspace or Path.cwd()
    path = config_file or find_config_file(workspace)
    if config_file is not None and not config_file.exists():
        raise ConfigError.parse_error(str(config_file), "file does not exist")

    yaml_config = _load_yaml(path) if path else {}

    settings_cls = _make_settings_class(yaml_config)
    try:
        # Sources are deep-merged, so a partial section in kwargs keeps YAML/env values
        settings = settings_cls(**kwargs)
    except ValidationError as e:
        err = e.errors()[0]
        field = ".".join(str(loc) for loc in err["loc"])
        raise ConfigError.invalid_value(field, err.get("input"), err["msg"]) from e

    return CovPipeConfig.model_validate(settings.model_dump())
