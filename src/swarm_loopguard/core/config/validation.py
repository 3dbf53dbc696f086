"""Tolerant validation of configuration sections read from files or the environment."""

from __future__ import annotations

import logging
from collections.abc import Mapping
from typing import Any, TypeVar

from pydantic import BaseModel, ValidationError

logger = logging.getLogger(__name__)

M = TypeVar("M", bound=BaseModel)


def validate_leniently(
    model_cls: type[M],
    raw: Mapping[str, Any],
    *,
    section: str,
    issues: list[str] | None = None,
) -> tuple[M, set[str]]:
    """Validate ``raw`` against ``model_cls`` without ever failing.

    Unknown keys are ignored and invalid values are dropped so their defaults
    apply. When the surviving values are inconsistent with each other the
    whole section falls back to its defaults. Every problem is logged as a
    warning and appended to ``issues`` when given.

    Returns:
        The validated model and the names of the fields that fell back to defaults.
    """
    found: list[str] = [] if issues is None else issues
    start = len(found)
    known = model_cls.model_fields
    values: dict[str, Any] = {}
    dropped: set[str] = set()

    for key, value in raw.items():
        if key not in known:
            found.append(f"unknown {section} setting '{key}' ignored")
            continue
        values[key] = value

    try:
        model = model_cls.model_validate(values)
        _log_issues(found[start:])
        return model, dropped
    except ValidationError as exc:
        cross_field = False
        for error in exc.errors():
            loc = error.get("loc") or ()
            name = loc[0] if loc else None
            if name in values:
                bad = values.pop(name)
                dropped.add(name)
                found.append(
                    f"invalid {section} value {bad!r} for '{name}': {error['msg']}; using default"
                )
            elif name not in dropped:
                cross_field = True
                found.append(f"inconsistent {section} settings: {error['msg']}")

    if not cross_field:
        try:
            model = model_cls.model_validate(values)
            _log_issues(found[start:])
            return model, dropped
        except ValidationError as exc:
            found.extend(
                f"inconsistent {section} settings: {e['msg']}" for e in exc.errors()
            )

    found.append(f"falling back to default {section} settings")
    dropped.update(values)
    _log_issues(found[start:])
    return model_cls(), dropped


def _log_issues(issues: list[str]) -> None:
    if issues and logger.isEnabledFor(logging.WARNING):
        for issue in issues:
            logger.warning("Configuration: %s", issue)
