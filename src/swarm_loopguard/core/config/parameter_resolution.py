"""Track where each configuration value came from and report it."""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any

from swarm_loopguard.core.common.logging_utils import redact


class ParameterSource(Enum):
    """Configuration sources, lowest precedence first."""

    DEFAULT = "default"
    CONFIG_FILE = "config"
    ENVIRONMENT = "environment"
    CLI = "cli"


@dataclass
class ResolvedParameter:
    """Final value of one dotted configuration path and its source."""

    name: str
    value: Any
    source: ParameterSource
    origin: str | None = None

    def describe(self) -> str:
        value_repr = _value_repr(_redact_if_needed(self.name, self.value))
        origin_suffix = f" {self.origin}" if self.origin else ""
        return f"{self.name} = {value_repr} ({self.source.value}{origin_suffix})"


class ParameterResolution:
    """Records every value a source supplied; the last record wins."""

    def __init__(self) -> None:
        self._latest: dict[str, tuple[ParameterSource, str | None]] = {}

    def record(
        self,
        name: str,
        value: Any,
        source: ParameterSource,
        *,
        origin: str | None = None,
    ) -> None:
        self._latest[name] = (source, origin)

    def source_of(self, name: str) -> ParameterSource:
        entry = self._latest.get(name)
        return entry[0] if entry else ParameterSource.DEFAULT

    def build_report(self, config: Any) -> list[ResolvedParameter]:
        """Pair every value of ``config`` with the source that supplied it."""
        report: list[ResolvedParameter] = []
        for name, value in _flatten_config(config).items():
            source, origin = self._latest.get(name, (ParameterSource.DEFAULT, None))
            report.append(
                ResolvedParameter(name=name, value=value, source=source, origin=origin)
            )
        return sorted(report, key=lambda r: r.name)

    def log(self, logger: logging.Logger, config: Any) -> None:
        for entry in self.build_report(config):
            logger.debug("Resolved parameter %s", entry.describe())


def _flatten_config(config: Any) -> dict[str, Any]:
    """Convert a Pydantic model or mapping into a flat dict of dotted paths."""
    if hasattr(config, "model_dump"):
        data = config.model_dump(mode="json")
    elif isinstance(config, dict):
        data = config
    else:
        raise TypeError("Unsupported configuration object type")

    flattened: dict[str, Any] = {}

    def _walk(value: Any, prefix: str) -> None:
        if isinstance(value, dict):
            for key, item in value.items():
                _walk(item, f"{prefix}.{key}" if prefix else key)
        else:
            flattened[prefix] = value

    _walk(data, "")
    return flattened


SECRET_FIELD_SUFFIXES = {"api_key", "token", "secret", "password"}


def _redact_if_needed(name: str, value: Any) -> Any:
    if name.rsplit(".", 1)[-1].lower() not in SECRET_FIELD_SUFFIXES:
        return value
    if isinstance(value, str):
        return redact(value)
    return value if value is None else "***"


def _value_repr(value: Any) -> str:
    if isinstance(value, dict | list):
        return json.dumps(value, sort_keys=True)
    return repr(value)


__all__ = [
    "ParameterResolution",
    "ParameterSource",
    "ResolvedParameter",
]
