from __future__ import annotations

import json
import logging
import os
from collections.abc import Mapping
from enum import Enum
from pathlib import Path
from typing import Any

import yaml
from dotenv import load_dotenv
from pydantic import Field, field_validator

from swarm_loopguard.core.config.parameter_resolution import (
    ParameterResolution,
    ParameterSource,
)
from swarm_loopguard.core.config.validation import validate_leniently
from swarm_loopguard.core.interfaces.model_bases import DomainModel
from swarm_loopguard.loop_detection.config import ENV_PREFIX, LoopDetectionConfig

logger = logging.getLogger(__name__)

CONFIG_PATH_ENV = "SWARM_LOOPGUARD_CONFIG"
CONFIG_DIR_NAME = "swarm-loopguard"
CONFIG_FILE_NAMES = ("config.json", "config.yaml", "config.yml")
DEFAULT_STATE_DIR = ".claude/swarm-tools/loop-detector"
DEFAULT_MODEL_NAME = "all-MiniLM-L6-v2"


class LogLevel(str, Enum):
    """Log levels for configuration."""

    DEBUG = "DEBUG"
    INFO = "INFO"
    WARNING = "WARNING"
    ERROR = "ERROR"
    CRITICAL = "CRITICAL"


class EmbeddingProviderKind(str, Enum):
    """Which embedding backend feeds the semantic matcher."""

    # Local sentence-transformers model when its files are present, else none
    AUTO = "auto"
    NONE = "none"
    SENTENCE_TRANSFORMERS = "sentence-transformers"
    REMOTE = "remote"
    HASHING = "hashing"


def default_model_path(model_name: str = DEFAULT_MODEL_NAME) -> Path:
    return Path.home() / ".cache" / CONFIG_DIR_NAME / "models" / model_name


class EmbeddingConfig(DomainModel):
    """Embedding provider configuration."""

    provider: EmbeddingProviderKind = EmbeddingProviderKind.AUTO
    model_name: str = DEFAULT_MODEL_NAME
    # Directory of a downloaded sentence-transformers model
    model_path: str | None = None
    base_url: str | None = None
    api_key: str | None = None
    timeout_seconds: float = Field(default=2.0, gt=0.0, le=60.0)
    # Separate budget for importing the library and reading the model once per process
    load_timeout_seconds: float = Field(default=30.0, gt=0.0, le=600.0)
    dimension: int = Field(default=384, ge=8, le=8192)

    def resolved_model_path(self) -> Path:
        if self.model_path:
            return Path(self.model_path).expanduser()
        return default_model_path(self.model_name)


class LoggingConfig(DomainModel):
    """Logging configuration."""

    level: LogLevel = LogLevel.WARNING
    log_file: str | None = None
    json_logs: bool = False

    @field_validator("level", mode="before")
    @classmethod
    def _normalize_level(cls, v: Any) -> Any:
        return v.strip().upper() if isinstance(v, str) else v


class AppConfig(DomainModel):
    """Complete application configuration."""

    state_dir: str = DEFAULT_STATE_DIR
    lock_timeout_seconds: float = Field(default=2.0, gt=0.0, le=300.0)
    detection: LoopDetectionConfig = Field(default_factory=LoopDetectionConfig)
    embedding: EmbeddingConfig = Field(default_factory=EmbeddingConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)

    @classmethod
    def from_dict(
        cls,
        data: Mapping[str, Any],
        *,
        issues: list[str] | None = None,
        resolution: ParameterResolution | None = None,
    ) -> AppConfig:
        """Build a configuration from raw (file/environment) values, never failing.

        Fields whose values had to be discarded are recorded in ``resolution``
        as defaults so the origin report stays truthful.
        """
        sections: dict[str, tuple[type[DomainModel], Any]] = {
            "detection": (LoopDetectionConfig, data.get("detection")),
            "embedding": (EmbeddingConfig, data.get("embedding")),
            "logging": (LoggingConfig, data.get("logging")),
        }
        top_level = {k: v for k, v in data.items() if k not in sections}
        root, dropped = validate_leniently(
            cls, top_level, section="top-level", issues=issues
        )
        fallen_back = set(dropped)

        update: dict[str, Any] = {}
        for name, (model_cls, raw) in sections.items():
            if raw is None:
                continue
            if not isinstance(raw, Mapping):
                _note(issues, f"section '{name}' must be a mapping; using defaults")
                update[name] = model_cls()
                continue
            model, section_dropped = validate_leniently(
                model_cls, raw, section=name, issues=issues
            )
            update[name] = model
            fallen_back.update(f"{name}.{field}" for field in section_dropped)

        config = root.model_copy(update=update)
        if resolution is not None:
            flat = _flatten_dict(config.model_dump(mode="json"))
            for path in sorted(fallen_back):
                resolution.record(
                    path, flat.get(path), ParameterSource.DEFAULT, origin="fallback"
                )
        return config


def _note(issues: list[str] | None, message: str) -> None:
    logger.warning("Configuration: %s", message)
    if issues is not None:
        issues.append(message)


# Environment variable -> dotted config path
_ENV_PATHS: dict[str, str] = {
    f"{ENV_PREFIX}STATE_DIR": "state_dir",
    f"{ENV_PREFIX}LOCK_TIMEOUT": "lock_timeout_seconds",
    f"{ENV_PREFIX}LOG_LEVEL": "logging.level",
    f"{ENV_PREFIX}LOG_FILE": "logging.log_file",
    f"{ENV_PREFIX}JSON_LOGS": "logging.json_logs",
    f"{ENV_PREFIX}EMBEDDING_PROVIDER": "embedding.provider",
    f"{ENV_PREFIX}EMBEDDING_MODEL_PATH": "embedding.model_path",
    f"{ENV_PREFIX}EMBEDDING_BASE_URL": "embedding.base_url",
    f"{ENV_PREFIX}EMBEDDING_API_KEY": "embedding.api_key",
    f"{ENV_PREFIX}EMBEDDING_TIMEOUT": "embedding.timeout_seconds",
    f"{ENV_PREFIX}EMBEDDING_LOAD_TIMEOUT": "embedding.load_timeout_seconds",
}


def _env_overrides(
    env: Mapping[str, str], resolution: ParameterResolution | None = None
) -> dict[str, Any]:
    """Collect environment overrides as a nested dict of raw string values."""
    overrides: dict[str, Any] = {}
    for env_name, path in _ENV_PATHS.items():
        if env_name in env:
            _set_by_path(overrides, path, env[env_name])
            if resolution is not None:
                resolution.record(
                    path, env[env_name], ParameterSource.ENVIRONMENT, origin=env_name
                )

    for name, value in LoopDetectionConfig.env_overrides(env).items():
        _set_by_path(overrides, f"detection.{name}", value)
        if resolution is not None:
            resolution.record(
                f"detection.{name}",
                value,
                ParameterSource.ENVIRONMENT,
                origin=f"{ENV_PREFIX}{name.upper()}",
            )
    return overrides


def discover_config_path(
    config_path: str | Path | None = None,
    environ: Mapping[str, str] | None = None,
) -> Path | None:
    """Locate the configuration file.

    Order: explicit path, ``$SWARM_LOOPGUARD_CONFIG``, then the per-user file
    under ``$XDG_CONFIG_HOME/swarm-loopguard`` (``~/.config`` by default).
    """
    env = os.environ if environ is None else environ
    if config_path:
        return Path(config_path).expanduser()
    if env.get(CONFIG_PATH_ENV):
        return Path(env[CONFIG_PATH_ENV]).expanduser()

    base = env.get("XDG_CONFIG_HOME") or str(Path.home() / ".config")
    config_dir = Path(base).expanduser() / CONFIG_DIR_NAME
    for name in CONFIG_FILE_NAMES:
        candidate = config_dir / name
        if candidate.is_file():
            return candidate
    return None


def _read_config_file(path: Path) -> dict[str, Any]:
    """Parse a JSON or YAML configuration file; problems degrade to no file."""
    if not path.exists():
        logger.warning("Configuration file not found: %s", path)
        return {}

    try:
        with open(path, encoding="utf-8") as f:
            if path.suffix.lower() == ".json":
                data = json.load(f)
            else:
                data = yaml.safe_load(f)
    except (OSError, UnicodeDecodeError, json.JSONDecodeError, yaml.YAMLError) as exc:
        logger.warning("Ignoring unreadable configuration file %s: %s", path, exc)
        return {}

    if data is None:
        return {}
    if not isinstance(data, dict):
        logger.warning(
            "Ignoring configuration file %s: top level must be a mapping", path
        )
        return {}
    return data


def load_config(
    config_path: str | Path | None = None,
    *,
    resolution: ParameterResolution | None = None,
    environ: Mapping[str, str] | None = None,
    cli_overrides: Mapping[str, Any] | None = None,
    load_env_file: bool = True,
) -> AppConfig:
    """
    Load configuration from file, environment and command-line overrides.

    Malformed values never fail the load; they are reported as warnings and
    replaced by their defaults.

    Args:
        config_path: Optional explicit path to a configuration file
        resolution: Optional tracker receiving the origin of each value
        environ: Environment to read instead of ``os.environ``
        cli_overrides: Dotted-path values supplied on the command line
        load_env_file: Whether to load a ``.env`` file first

    Returns:
        AppConfig instance
    """
    if load_env_file and environ is None:
        load_dotenv()
    env = os.environ if environ is None else environ
    res = resolution if resolution is not None else ParameterResolution()

    config_data: dict[str, Any] = {}
    path = discover_config_path(config_path, env)
    if path is not None:
        file_config = _read_config_file(path)
        _merge_dicts(config_data, file_config)
        for name, value in _flatten_dict(file_config).items():
            res.record(name, value, ParameterSource.CONFIG_FILE, origin=str(path))

    _merge_dicts(config_data, _env_overrides(env, res))

    for name, value in (cli_overrides or {}).items():
        if value is None:
            continue
        _set_by_path(config_data, name, value)
        res.record(name, value, ParameterSource.CLI)

    config = AppConfig.from_dict(config_data, resolution=res)
    if logger.isEnabledFor(logging.DEBUG):
        res.log(logger, config)
    return config


def _merge_dicts(target: dict[str, Any], source: Mapping[str, Any]) -> None:
    for key, value in source.items():
        if isinstance(value, Mapping) and isinstance(target.get(key), dict):
            _merge_dicts(target[key], value)
        elif isinstance(value, Mapping):
            target[key] = dict(value)
        else:
            target[key] = value


def _flatten_dict(data: Mapping[str, Any], prefix: str = "") -> dict[str, Any]:
    flattened: dict[str, Any] = {}
    for key, value in data.items():
        path = f"{prefix}.{key}" if prefix else str(key)
        if isinstance(value, Mapping):
            flattened.update(_flatten_dict(value, path))
        else:
            flattened[path] = value
    return flattened


def _set_by_path(data: dict[str, Any], path: str, value: Any) -> None:
    parts = path.split(".")
    node = data
    for part in parts[:-1]:
        child = node.get(part)
        if not isinstance(child, dict):
            child = {}
            node[part] = child
        node = child
    node[parts[-1]] = value
