"""
Loop detection engine.

Orchestrates one agent turn per call: lock the agent's record, load it, run
the exact, oscillation and semantic detectors, advance the intervention
policy, append the turn, persist, and return a LoopDetectionResult. The
engine holds no per-agent state in memory between calls.
"""

from __future__ import annotations

import logging
import os
from collections.abc import Callable

from swarm_loopguard.core.common.exceptions import (
    DuplicateTurnError,
    InvalidRequestError,
    LockTimeoutError,
    StateStoreError,
)
from swarm_loopguard.core.common.logging_utils import get_logger, redact_text
from swarm_loopguard.core.interfaces.embedding_provider_interface import (
    IEmbeddingProvider,
)
from swarm_loopguard.core.interfaces.loop_detection_engine_interface import (
    ILoopDetectionEngine,
)
from swarm_loopguard.loop_detection.config import LoopDetectionConfig
from swarm_loopguard.loop_detection.context import DetectionContext, Matcher
from swarm_loopguard.loop_detection.event import DetectorVerdict, LoopDetectionResult
from swarm_loopguard.loop_detection.exact import ExactMatcher
from swarm_loopguard.loop_detection.hasher import ContentHasher, PromptNormalizer
from swarm_loopguard.loop_detection.history import Turn
from swarm_loopguard.loop_detection.locking import agent_lock
from swarm_loopguard.loop_detection.oscillation import OscillationDetector
from swarm_loopguard.loop_detection.policy import InterventionPolicy
from swarm_loopguard.loop_detection.semantic import SemanticMatcher
from swarm_loopguard.loop_detection.stats import InterventionStats
from swarm_loopguard.loop_detection.store import AgentRecord, HistoryStore

logger = logging.getLogger(__name__)
events = get_logger("swarm_loopguard.events")

DEFAULT_LOCK_TIMEOUT_SECONDS = 2.0


class LoopDetectionEngine(ILoopDetectionEngine):
    """Persistent multi-type loop detector for swarm agents."""

    def __init__(
        self,
        config: LoopDetectionConfig | None = None,
        state_dir: str | os.PathLike[str] | None = None,
        *,
        store: HistoryStore | None = None,
        embedding_provider: IEmbeddingProvider | None = None,
        lock_timeout_seconds: float = DEFAULT_LOCK_TIMEOUT_SECONDS,
        on_loop_confirmed: Callable[[LoopDetectionResult], None] | None = None,
    ) -> None:
        self.config = config or LoopDetectionConfig()
        if store is None:
            if state_dir is None:
                raise ValueError("Either state_dir or store must be provided")
            store = HistoryStore(state_dir, self.config.history_capacity)
        self.store = store
        self.lock_timeout_seconds = lock_timeout_seconds
        self.on_loop_confirmed = on_loop_confirmed

        self.normalizer = PromptNormalizer(self.config.strip_volatile_tokens)
        self.hasher = ContentHasher()
        self.embedding_provider = embedding_provider
        self.semantic = SemanticMatcher(self.config, embedding_provider)
        # Closed set, in precedence order
        self.matchers: tuple[Matcher, ...] = (
            ExactMatcher(self.config),
            OscillationDetector(self.config),
            self.semantic,
        )
        self.policy = InterventionPolicy(self.config)

        for note in self.config.validate_runtime():
            logger.warning("Loop detection config: %s", note)

        if logger.isEnabledFor(logging.INFO):
            logger.info(
                "LoopDetectionEngine initialized: state_dir=%s, capacity=%d, semantic=%s",
                self.store.state_dir,
                self.config.history_capacity,
                self.semantic.available,
            )

    def detect(
        self,
        agent_id: str,
        prompt: str,
        state_fingerprint: bytes | str | None = None,
        sequence_number: int | None = None,
    ) -> LoopDetectionResult:
        _validate_request(agent_id, prompt, state_fingerprint, sequence_number)

        normalized = self.normalizer.normalize(prompt)
        prompt_hash = self.hasher.hash(normalized)
        fingerprint = (
            self.hasher.fingerprint(state_fingerprint)
            if state_fingerprint is not None
            else None
        )

        # Embed before taking the lock so the critical section stays short
        outcome = self.semantic.embed(normalized)
        warnings = [outcome.warning] if outcome.warning else []

        try:
            with agent_lock(
                self.store.lock_path(agent_id), agent_id, self.lock_timeout_seconds
            ):
                record = self.store.load(agent_id)
                warnings.extend(record.warnings)
                turn = Turn(
                    sequence_number=sequence_number or record.history.last_sequence_number + 1,
                    prompt_hash=prompt_hash,
                    normalized_prompt_excerpt=redact_text(
                        normalized[: self.config.excerpt_length]
                    ),
                    embedding=outcome.vector,
                    state_fingerprint=fingerprint,
                )
                return self._evaluate(record, turn, warnings)
        except LockTimeoutError as e:
            logger.warning("%s; skipping loop detection for this turn", e.message)
            events.warning("loop_detection_skipped", agent_id=agent_id, reason="lock_timeout")
            return LoopDetectionResult.no_loop(
                agent_id,
                warnings=[*warnings, "lock_timeout"],
                sequence_number=sequence_number,
                semantic_available=self.semantic.available,
            )

    def _evaluate(
        self, record: AgentRecord, turn: Turn, warnings: list[str]
    ) -> LoopDetectionResult:
        history = record.history
        agent_id = record.agent_id

        try:
            new_history = self.store.append(history, turn)
        except DuplicateTurnError:
            if logger.isEnabledFor(logging.INFO):
                logger.info(
                    "Ignoring re-delivered turn %d for agent %s (last is %d)",
                    turn.sequence_number,
                    agent_id,
                    history.last_sequence_number,
                )
            return LoopDetectionResult.no_loop(
                agent_id,
                warnings=warnings,
                sequence_number=turn.sequence_number,
                phase=record.intervention.phase.value,
                duplicate=True,
                semantic_available=self.semantic.available,
            )

        context = DetectionContext(
            history=history,
            sequence_number=turn.sequence_number,
            prompt_hash=turn.prompt_hash,
            state_fingerprint=turn.state_fingerprint,
            embedding=turn.embedding,
        )
        verdicts = self._run_matchers(context)
        decision = self.policy.decide(record.intervention, turn.sequence_number, verdicts)

        result = LoopDetectionResult(
            detected=decision.detected,
            kind=decision.kind,
            confidence=decision.confidence,
            action=decision.action,
            evidence=decision.evidence,
            agent_id=agent_id,
            sequence_number=turn.sequence_number,
            phase=decision.phase.value,
            suppressed=decision.suppressed,
            semantic_available=self.semantic.available,
            verdicts=verdicts,
            warnings=warnings,
        )

        counters = record.counters.record(result)
        try:
            self.store.save(agent_id, new_history, decision.state, counters)
        except StateStoreError as e:
            logger.error("Could not persist loop detection state: %s", e.message)
            result.warnings.append("state_not_saved")

        self._emit(result)
        if decision.confirmed and self.on_loop_confirmed is not None:
            self.on_loop_confirmed(result)
        return result

    def _run_matchers(self, context: DetectionContext) -> list[DetectorVerdict]:
        verdicts: list[DetectorVerdict] = []
        for matcher in self.matchers:
            verdict = matcher.evaluate(context)
            if verdict is not None:
                verdicts.append(verdict)
        return verdicts

    def _emit(self, result: LoopDetectionResult) -> None:
        if result.detected:
            events.info(
                "loop_detected",
                agent_id=result.agent_id,
                turn=result.sequence_number,
                kind=result.kind.value if result.kind else None,
                confidence=round(result.confidence, 4),
                action=result.action.value,
                phase=result.phase,
            )
        elif result.suppressed:
            events.debug(
                "loop_suppressed",
                agent_id=result.agent_id,
                turn=result.sequence_number,
                kinds=[v.kind.value for v in result.verdicts],
            )

    def reset(self, agent_id: str) -> bool:
        _validate_agent_id(agent_id)
        with agent_lock(
            self.store.lock_path(agent_id), agent_id, self.lock_timeout_seconds
        ):
            return self.store.reset(agent_id)

    def close(self) -> None:
        """Release resources held by the embedding provider."""
        if self.embedding_provider is not None:
            self.embedding_provider.close()

    def list_agents(self) -> list[str]:
        return self.store.list_agents()

    def get_intervention_stats(self) -> InterventionStats:
        return InterventionStats.aggregate(
            state.counters for state in self.store.iter_states()
        )


def _validate_agent_id(agent_id: object) -> None:
    if not isinstance(agent_id, str) or not agent_id.strip():
        raise InvalidRequestError("agent_id must be a non-empty string")
    if not _is_utf8_encodable(agent_id):
        raise InvalidRequestError("agent_id must be valid Unicode text")


def _validate_request(
    agent_id: object,
    prompt: object,
    state_fingerprint: object,
    sequence_number: object,
) -> None:
    _validate_agent_id(agent_id)
    if not isinstance(prompt, str):
        raise InvalidRequestError("prompt must be a string")
    if state_fingerprint is not None and not isinstance(state_fingerprint, bytes | str):
        raise InvalidRequestError("state_fingerprint must be bytes or a string")
    if sequence_number is not None and (
        isinstance(sequence_number, bool)
        or not isinstance(sequence_number, int)
        or sequence_number < 1
    ):
        raise InvalidRequestError("sequence_number must be a positive integer")


def _is_utf8_encodable(text: str) -> bool:
    try:
        text.encode("utf-8")
    except UnicodeEncodeError:
        return False
    return True
