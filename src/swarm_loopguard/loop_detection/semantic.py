"""Paraphrase-level repetition via embedding cosine similarity.

The matcher is optional: without an embedding provider (or with semantic
matching disabled) it never produces a verdict. Each turn is embedded exactly
once; the vector is stored on the turn and reused by later comparisons.
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from typing import ClassVar

import numpy as np

from swarm_loopguard.core.common.exceptions import (
    EmbeddingProviderError,
    EmbeddingTimeoutError,
    EmbeddingUnavailableError,
)
from swarm_loopguard.core.interfaces.embedding_provider_interface import (
    IEmbeddingProvider,
)
from swarm_loopguard.core.interfaces.model_bases import InternalDTO
from swarm_loopguard.loop_detection.config import LoopDetectionConfig
from swarm_loopguard.loop_detection.context import DetectionContext
from swarm_loopguard.loop_detection.event import DetectorKind, DetectorVerdict

logger = logging.getLogger(__name__)

# Absorbs float rounding so a similarity equal to the threshold still matches.
_SIMILARITY_EPSILON = 1e-9


def _similarities(current: np.ndarray, stored: np.ndarray) -> np.ndarray:
    norms = np.linalg.norm(stored, axis=1) * np.linalg.norm(current)
    dots = stored @ current
    with np.errstate(divide="ignore", invalid="ignore"):
        sims = np.where(norms > 0.0, dots / norms, 0.0)
    return np.clip(sims, -1.0, 1.0)


@dataclass(frozen=True)
class EmbeddingOutcome(InternalDTO):
    """Result of embedding the current prompt."""

    vector: tuple[float, ...] | None = None
    warning: str | None = None


class SemanticMatcher:
    """Counts recent turns whose stored embedding is close to the current one."""

    kind: ClassVar[DetectorKind] = DetectorKind.SEMANTIC

    def __init__(
        self,
        config: LoopDetectionConfig,
        provider: IEmbeddingProvider | None = None,
    ) -> None:
        self.window = config.semantic_window
        self.min_repeats = config.semantic_min_repeats
        self.threshold = config.semantic_threshold
        self.provider = provider if config.semantic_enabled else None
        self._disabled_reason: str | None = None

    @property
    def available(self) -> bool:
        return self.provider is not None and self._disabled_reason is None

    def embed(self, text: str) -> EmbeddingOutcome:
        """Embed the current prompt, absorbing provider failures."""
        if not self.available:
            return EmbeddingOutcome()
        assert self.provider is not None

        try:
            raw = self.provider.vectorize(text)
        except EmbeddingUnavailableError as e:
            # Capability absent: stop asking for the rest of the process lifetime
            self._disabled_reason = str(e)
            logger.warning(
                "Embedding provider %s unavailable, semantic matching disabled: %s",
                self.provider.name,
                e,
            )
            return EmbeddingOutcome(warning="embedding_unavailable")
        except EmbeddingTimeoutError as e:
            logger.warning(
                "Embedding provider %s timed out, skipping semantic check: %s",
                self.provider.name,
                e,
            )
            return EmbeddingOutcome(warning="embedding_timeout")
        except EmbeddingProviderError as e:
            logger.warning(
                "Embedding provider %s failed, skipping semantic check: %s",
                self.provider.name,
                e,
            )
            return EmbeddingOutcome(warning="embedding_failed")

        vector = tuple(float(x) for x in raw)
        if not vector or not all(math.isfinite(x) for x in vector):
            logger.warning(
                "Embedding provider %s returned an unusable vector", self.provider.name
            )
            return EmbeddingOutcome(warning="embedding_failed")
        return EmbeddingOutcome(vector=vector)

    def evaluate(self, context: DetectionContext) -> DetectorVerdict | None:
        if context.embedding is None:
            return None

        dimension = len(context.embedding)
        candidates = [
            turn
            for turn in context.history.recent(self.window)
            if turn.embedding is not None and len(turn.embedding) == dimension
        ]
        if len(candidates) < self.min_repeats:
            return None

        current = np.asarray(context.embedding, dtype=np.float64)
        stored = np.asarray([turn.embedding for turn in candidates], dtype=np.float64)
        sims = _similarities(current, stored)
        hits = sims >= self.threshold - _SIMILARITY_EPSILON

        count = int(np.count_nonzero(hits))
        if count < self.min_repeats:
            return None

        best = float(np.max(sims[hits]))
        matched = [turn.sequence_number for turn, hit in zip(candidates, hits) if hit]
        if logger.isEnabledFor(logging.DEBUG):
            logger.debug(
                "Semantic repetition: %d of %d recent turns >= %.3f (max %.3f)",
                count,
                len(candidates),
                self.threshold,
                best,
            )
        return DetectorVerdict(
            kind=self.kind,
            confidence=min(1.0, max(0.0, best)),
            matched_turns=frozenset([*matched, context.sequence_number]),
        )
