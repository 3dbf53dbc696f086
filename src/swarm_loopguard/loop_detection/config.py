"""
Configuration for loop detection.

Handles validation of the detection thresholds, which can come from:
- Configuration files (JSON or YAML, already parsed into a dict)
- Environment variables (``LOOPGUARD_<FIELD>``)

Programmatic construction is strict: an invalid value raises immediately.
Loading through :meth:`AppConfig.from_dict` is lenient: malformed values
are dropped with a warning and fall back to their defaults.
"""

from __future__ import annotations

from collections.abc import Mapping

from pydantic import Field, model_validator

from swarm_loopguard.core.interfaces.model_bases import ValueObject

ENV_PREFIX = "LOOPGUARD_"


class LoopDetectionConfig(ValueObject):
    """Thresholds and windows driving the three detectors and the policy."""

    # History store
    history_capacity: int = Field(default=50, ge=1, le=10_000)
    # Characters of the normalized prompt kept on each turn for diagnostics
    excerpt_length: int = Field(default=200, ge=0, le=10_000)

    # Exact matcher; the window includes the current turn
    exact_window: int = Field(default=20, ge=1)
    exact_min_repeats: int = Field(default=3, ge=2)
    strip_volatile_tokens: bool = True

    # Semantic matcher; the window counts previous turns only
    semantic_enabled: bool = True
    semantic_window: int = Field(default=10, ge=1)
    semantic_min_repeats: int = Field(default=3, ge=1)
    semantic_threshold: float = Field(default=0.85, gt=0.0, le=1.0)

    # Oscillation detector
    oscillation_min_period: int = Field(default=1, ge=1)
    oscillation_max_period: int = Field(default=4, ge=1)
    oscillation_min_repeats: int = Field(default=3, ge=2)

    # Intervention policy
    suspected_to_confirmed_repeats: int = Field(default=2, ge=1)
    cooldown_turns: int = Field(default=5, ge=0)
    break_confidence_threshold: float = Field(default=0.9, ge=0.0, le=1.0)

    @model_validator(mode="after")
    def _check_consistency(self) -> LoopDetectionConfig:
        if self.exact_window < self.exact_min_repeats:
            raise ValueError("exact_window must be >= exact_min_repeats")
        if self.semantic_window < self.semantic_min_repeats:
            raise ValueError("semantic_window must be >= semantic_min_repeats")
        if self.oscillation_min_period > self.oscillation_max_period:
            raise ValueError("oscillation_min_period must be <= oscillation_max_period")
        return self

    @classmethod
    def env_overrides(cls, environ: Mapping[str, str]) -> dict[str, str]:
        """Collect ``LOOPGUARD_<FIELD>`` overrides keyed by field name."""
        overrides: dict[str, str] = {}
        for name in cls.model_fields:
            env_name = f"{ENV_PREFIX}{name.upper()}"
            if env_name in environ:
                overrides[name] = environ[env_name]
        return overrides

    def validate_runtime(self) -> list[str]:
        """Return non-fatal observations about settings that cannot take effect."""
        notes: list[str] = []
        visible = self.history_capacity + 1
        if self.exact_min_repeats > visible:
            notes.append("exact_min_repeats exceeds history_capacity + 1; exact loops cannot fire")
        if self.semantic_min_repeats > self.history_capacity:
            notes.append("semantic_min_repeats exceeds history_capacity; semantic loops cannot fire")
        if self.oscillation_min_repeats * self.oscillation_min_period > visible:
            notes.append("oscillation window exceeds history_capacity + 1; oscillation cannot fire")
        return notes

