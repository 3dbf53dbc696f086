"""Per-turn input shared by all detectors."""

from __future__ import annotations

from dataclasses import dataclass
from typing import ClassVar, Protocol

from swarm_loopguard.core.interfaces.model_bases import InternalDTO
from swarm_loopguard.loop_detection.event import DetectorKind, DetectorVerdict
from swarm_loopguard.loop_detection.history import History


@dataclass(frozen=True)
class DetectionContext(InternalDTO):
    """The current turn, already hashed/embedded, plus the agent's prior history."""

    history: History
    sequence_number: int
    prompt_hash: str
    state_fingerprint: str | None = None
    embedding: tuple[float, ...] | None = None


class Matcher(Protocol):
    """Uniform detector capability: evaluate the current turn against history."""

    kind: ClassVar[DetectorKind]

    def evaluate(self, context: DetectionContext) -> DetectorVerdict | None: ...
