"""Per-agent turn history.

A :class:`History` is a bounded, ordered, immutable sequence of
:class:`Turn` records. Appending returns a new history; the oldest turns are
evicted once capacity is exceeded and sequence numbers must strictly increase.
"""

from __future__ import annotations

import logging
from collections.abc import Iterator, Sequence
from datetime import datetime, timezone

from pydantic import Field

from swarm_loopguard.core.common.exceptions import (
    DuplicateTurnError,
    InvariantViolationError,
)
from swarm_loopguard.core.interfaces.model_bases import ValueObject

logger = logging.getLogger(__name__)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Turn(ValueObject):
    """One recorded agent turn. Immutable once appended."""

    sequence_number: int = Field(ge=1)
    prompt_hash: str = Field(min_length=64, max_length=64)
    normalized_prompt_excerpt: str = ""
    embedding: tuple[float, ...] | None = None
    state_fingerprint: str | None = Field(default=None, min_length=64, max_length=64)
    timestamp: datetime = Field(default_factory=_utcnow)


class History:
    """Bounded FIFO of turns for a single agent."""

    __slots__ = ("_capacity", "_turns")

    def __init__(self, capacity: int, turns: Sequence[Turn] = ()) -> None:
        if capacity < 1:
            raise InvariantViolationError(
                "History capacity must be positive", details={"capacity": capacity}
            )
        self._capacity = capacity
        kept = tuple(turns)[-capacity:]
        _check_ordering(kept)
        self._turns: tuple[Turn, ...] = kept

    @property
    def capacity(self) -> int:
        return self._capacity

    @property
    def turns(self) -> tuple[Turn, ...]:
        return self._turns

    @property
    def last_sequence_number(self) -> int:
        """Sequence number of the newest turn, 0 for an empty history."""
        return self._turns[-1].sequence_number if self._turns else 0

    def recent(self, count: int) -> tuple[Turn, ...]:
        """Return up to ``count`` newest turns, oldest first."""
        if count <= 0:
            return ()
        return self._turns[-count:]

    def append(self, turn: Turn) -> History:
        """Return a new history with ``turn`` appended and capacity enforced."""
        if turn.sequence_number <= self.last_sequence_number:
            raise DuplicateTurnError(turn.sequence_number, self.last_sequence_number)

        turns = self._turns + (turn,)
        evicted = len(turns) - self._capacity
        if evicted > 0:
            if logger.isEnabledFor(logging.DEBUG):
                logger.debug("Evicting %d oldest turn(s) from history", evicted)
            turns = turns[evicted:]
        return History(self._capacity, turns)

    def validate(self) -> None:
        """Raise InvariantViolationError when a structural invariant is broken."""
        if len(self._turns) > self._capacity:
            raise InvariantViolationError(
                "History exceeds its capacity",
                details={"length": len(self._turns), "capacity": self._capacity},
            )
        _check_ordering(self._turns)

    def __len__(self) -> int:
        return len(self._turns)

    def __iter__(self) -> Iterator[Turn]:
        return iter(self._turns)

    def __bool__(self) -> bool:
        return bool(self._turns)

    def __repr__(self) -> str:
        return f"<History turns={len(self._turns)} capacity={self._capacity}>"


def _check_ordering(turns: Sequence[Turn]) -> None:
    previous = 0
    for turn in turns:
        if turn.sequence_number <= previous:
            raise InvariantViolationError(
                "Turn sequence numbers must strictly increase",
                details={
                    "sequence_number": turn.sequence_number,
                    "previous": previous,
                },
            )
        previous = turn.sequence_number
