"""Intervention counters kept per agent and aggregated across the state directory."""

from __future__ import annotations

from collections.abc import Iterable

from pydantic import Field

from swarm_loopguard.core.interfaces.model_bases import ValueObject
from swarm_loopguard.loop_detection.event import (
    DetectorKind,
    InterventionAction,
    LoopDetectionResult,
)

_KIND_FIELDS = {
    DetectorKind.EXACT: "exact_loops",
    DetectorKind.SEMANTIC: "semantic_loops",
    DetectorKind.OSCILLATION: "state_oscillations",
}


class InterventionCounters(ValueObject):
    """Running totals for one agent, persisted alongside its history."""

    turns_seen: int = Field(default=0, ge=0)
    detections: int = Field(default=0, ge=0)
    suppressed: int = Field(default=0, ge=0)
    warns: int = Field(default=0, ge=0)
    breaks: int = Field(default=0, ge=0)
    exact_loops: int = Field(default=0, ge=0)
    semantic_loops: int = Field(default=0, ge=0)
    state_oscillations: int = Field(default=0, ge=0)

    @property
    def interventions(self) -> int:
        return self.warns + self.breaks

    def record(self, result: LoopDetectionResult) -> InterventionCounters:
        """Return counters updated with one (non-duplicate) turn's result."""
        update: dict[str, int] = {"turns_seen": self.turns_seen + 1}
        if result.detected:
            update["detections"] = self.detections + 1
        if result.suppressed:
            update["suppressed"] = self.suppressed + 1
        if result.action == InterventionAction.WARN:
            update["warns"] = self.warns + 1
        elif result.action == InterventionAction.BREAK:
            update["breaks"] = self.breaks + 1
        if result.action != InterventionAction.NONE and result.kind is not None:
            name = _KIND_FIELDS[result.kind]
            update[name] = getattr(self, name) + 1
        return self.model_copy(update=update)


class InterventionStats(ValueObject):
    """Aggregate intervention statistics across all stored agents."""

    agents: int = 0
    total_turns: int = 0
    total_detections: int = 0
    total_interventions: int = 0
    warns: int = 0
    breaks: int = 0
    exact_loops: int = 0
    semantic_loops: int = 0
    state_oscillations: int = 0

    @classmethod
    def aggregate(cls, counters: Iterable[InterventionCounters]) -> InterventionStats:
        totals = {name: 0 for name in cls.model_fields}
        for item in counters:
            totals["agents"] += 1
            totals["total_turns"] += item.turns_seen
            totals["total_detections"] += item.detections
            totals["total_interventions"] += item.interventions
            totals["warns"] += item.warns
            totals["breaks"] += item.breaks
            totals["exact_loops"] += item.exact_loops
            totals["semantic_loops"] += item.semantic_loops
            totals["state_oscillations"] += item.state_oscillations
        return cls(**totals)
