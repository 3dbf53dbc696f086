"""Cyclic oscillation over the sequence of agent state fingerprints."""

from __future__ import annotations

import logging
from collections.abc import Sequence
from typing import ClassVar

from swarm_loopguard.loop_detection.config import LoopDetectionConfig
from swarm_loopguard.loop_detection.context import DetectionContext
from swarm_loopguard.loop_detection.event import DetectorKind, DetectorVerdict

logger = logging.getLogger(__name__)


def find_period(
    sequence: Sequence[str | None],
    min_period: int,
    max_period: int,
    min_repeats: int,
) -> tuple[int, int] | None:
    """Find the smallest period repeating over the tail of ``sequence``.

    A period ``p`` matches when the last ``min_repeats * p`` items satisfy
    ``item[i] == item[i - p]``. Equality is exact and a missing fingerprint
    (``None``) never matches anything. For ``p > 1`` a constant cycle is not an
    oscillation; that is period 1.

    Returns:
        ``(period, matched_cycles)`` for the first satisfying period, where
        ``matched_cycles`` counts whole cycles in the trailing periodic run,
        or ``None`` when no period in range matches.
    """
    size = len(sequence)
    for period in range(min_period, max_period + 1):
        span = min_repeats * period
        if span > size:
            break

        start = size - span
        window = sequence[start:]
        if any(item is None for item in window):
            continue
        if period > 1 and len(set(window[:period])) == 1:
            continue
        if not all(window[i] == window[i - period] for i in range(period, span)):
            continue

        run_length = span
        j = start - 1
        while j >= 0 and sequence[j] is not None and sequence[j] == sequence[j + period]:
            run_length += 1
            j -= 1
        return period, run_length // period
    return None


class OscillationDetector:
    """Detects an agent cycling through the same states (A,B,A,B,...)."""

    kind: ClassVar[DetectorKind] = DetectorKind.OSCILLATION

    def __init__(self, config: LoopDetectionConfig) -> None:
        self.min_period = config.oscillation_min_period
        self.max_period = config.oscillation_max_period
        self.min_repeats = config.oscillation_min_repeats

    def evaluate(self, context: DetectionContext) -> DetectorVerdict | None:
        if context.state_fingerprint is None:
            return None

        turns = context.history.turns
        fingerprints = [turn.state_fingerprint for turn in turns]
        fingerprints.append(context.state_fingerprint)
        numbers = [turn.sequence_number for turn in turns]
        numbers.append(context.sequence_number)

        found = find_period(
            fingerprints, self.min_period, self.max_period, self.min_repeats
        )
        if found is None:
            return None

        period, cycles = found
        span = period * self.min_repeats
        if logger.isEnabledFor(logging.DEBUG):
            logger.debug(
                "State oscillation: period %d repeated %d time(s)", period, cycles
            )
        return DetectorVerdict(
            kind=self.kind,
            confidence=min(1.0, cycles / self.min_repeats),
            matched_turns=frozenset(numbers[-span:]),
            period=period,
        )
