"""Exact (post-normalization) prompt repetition."""

from __future__ import annotations

import logging
from typing import ClassVar

from swarm_loopguard.loop_detection.config import LoopDetectionConfig
from swarm_loopguard.loop_detection.context import DetectionContext
from swarm_loopguard.loop_detection.event import DetectorKind, DetectorVerdict

logger = logging.getLogger(__name__)


class ExactMatcher:
    """Counts the current prompt hash within the recent window.

    The window spans the current turn plus the ``exact_window - 1`` turns
    before it. Deterministic: byte-identical normalized prompts always match.
    """

    kind: ClassVar[DetectorKind] = DetectorKind.EXACT

    def __init__(self, config: LoopDetectionConfig) -> None:
        self.window = config.exact_window
        self.min_repeats = config.exact_min_repeats

    def evaluate(self, context: DetectionContext) -> DetectorVerdict | None:
        matched = [
            turn.sequence_number
            for turn in context.history.recent(self.window - 1)
            if turn.prompt_hash == context.prompt_hash
        ]
        count = len(matched) + 1
        if count < self.min_repeats:
            return None

        if logger.isEnabledFor(logging.DEBUG):
            logger.debug(
                "Exact repetition: hash %s seen %d times in last %d turns",
                context.prompt_hash[:12],
                count,
                self.window,
            )
        return DetectorVerdict(
            kind=self.kind,
            confidence=min(1.0, count / self.min_repeats),
            matched_turns=frozenset([*matched, context.sequence_number]),
        )
