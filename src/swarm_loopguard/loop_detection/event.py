"""
Loop detection verdicts and results.

This module defines the closed set of detector kinds, the verdict each
detector reports, and the LoopDetectionResult returned to the caller.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from swarm_loopguard.core.interfaces.model_bases import InternalDTO


class DetectorKind(str, Enum):
    """Kinds of loop the engine recognizes."""

    EXACT = "exact"
    OSCILLATION = "oscillation"
    SEMANTIC = "semantic"

    @property
    def precedence(self) -> int:
        """Lower is more reliable; used to tag a turn where several kinds fire."""
        return _PRECEDENCE[self]


_PRECEDENCE = {
    DetectorKind.EXACT: 0,
    DetectorKind.OSCILLATION: 1,
    DetectorKind.SEMANTIC: 2,
}


class InterventionAction(str, Enum):
    """What the caller should do about the current turn."""

    NONE = "none"
    WARN = "warn"
    BREAK = "break"


@dataclass(frozen=True)
class DetectorVerdict(InternalDTO):
    """A single detector firing on the current turn."""

    kind: DetectorKind
    confidence: float
    matched_turns: frozenset[int]
    period: int | None = None

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "kind": self.kind.value,
            "confidence": round(self.confidence, 6),
            "matched_turns": sorted(self.matched_turns),
        }
        if self.period is not None:
            data["period"] = self.period
        return data


def primary_verdict(verdicts: list[DetectorVerdict]) -> DetectorVerdict | None:
    """Pick the verdict whose kind has the highest precedence."""
    if not verdicts:
        return None
    return min(verdicts, key=lambda v: v.kind.precedence)


@dataclass
class LoopDetectionResult(InternalDTO):
    """Outcome of one engine invocation. Returned to the caller, never persisted."""

    detected: bool
    kind: DetectorKind | None = None
    confidence: float = 0.0
    action: InterventionAction = InterventionAction.NONE
    evidence: frozenset[int] = frozenset()
    agent_id: str | None = None
    sequence_number: int | None = None
    phase: str = "normal"
    suppressed: bool = False
    duplicate: bool = False
    semantic_available: bool = False
    verdicts: list[DetectorVerdict] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)

    @classmethod
    def no_loop(
        cls,
        agent_id: str | None = None,
        *,
        warnings: list[str] | None = None,
        **kwargs: Any,
    ) -> LoopDetectionResult:
        return cls(detected=False, agent_id=agent_id, warnings=list(warnings or []), **kwargs)

    def to_dict(self) -> dict[str, Any]:
        return {
            "detected": self.detected,
            "kind": self.kind.value if self.kind is not None else None,
            "confidence": round(self.confidence, 6),
            "action": self.action.value,
            "evidence": sorted(self.evidence),
            "agent_id": self.agent_id,
            "sequence_number": self.sequence_number,
            "phase": self.phase,
            "suppressed": self.suppressed,
            "duplicate": self.duplicate,
            "semantic_available": self.semantic_available,
            "verdicts": [v.to_dict() for v in self.verdicts],
            "warnings": list(self.warnings),
        }
