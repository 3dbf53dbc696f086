"""Intervention policy: turns per-turn detector verdicts into a rate-limited decision.

The policy is a small state machine persisted per agent:

    normal --(any verdict)--> suspected(kind)
    suspected(kind) --(kind fires again, streak reaches threshold)--> confirmed
    suspected --(a quiet turn)--> normal
    confirmed --(immediately)--> cooldown(until_turn)
    cooldown --(turn >= until_turn)--> normal

``confirmed`` is never stored; it only names the turn on which the single
warn/break action is emitted.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from enum import Enum

from pydantic import Field, model_validator

from swarm_loopguard.core.interfaces.model_bases import InternalDTO, ValueObject
from swarm_loopguard.loop_detection.config import LoopDetectionConfig
from swarm_loopguard.loop_detection.event import (
    DetectorKind,
    DetectorVerdict,
    InterventionAction,
    primary_verdict,
)

logger = logging.getLogger(__name__)


class InterventionPhase(str, Enum):
    NORMAL = "normal"
    SUSPECTED = "suspected"
    CONFIRMED = "confirmed"
    COOLDOWN = "cooldown"


class InterventionState(ValueObject):
    """Persisted policy state of one agent."""

    phase: InterventionPhase = InterventionPhase.NORMAL
    kind: DetectorKind | None = None
    since_turn: int | None = Field(default=None, ge=1)
    streak: int = Field(default=0, ge=0)
    until_turn: int | None = Field(default=None, ge=0)

    @model_validator(mode="after")
    def _check_phase_fields(self) -> InterventionState:
        if self.phase == InterventionPhase.CONFIRMED:
            raise ValueError("'confirmed' is transient and cannot be stored")
        if self.phase == InterventionPhase.SUSPECTED and (
            self.kind is None or self.since_turn is None or self.streak < 1
        ):
            raise ValueError("suspected state requires kind, since_turn and streak >= 1")
        if self.phase == InterventionPhase.COOLDOWN and self.until_turn is None:
            raise ValueError("cooldown state requires until_turn")
        return self

    @classmethod
    def normal(cls) -> InterventionState:
        return cls()

    @classmethod
    def suspected(cls, kind: DetectorKind, since_turn: int, streak: int) -> InterventionState:
        return cls(
            phase=InterventionPhase.SUSPECTED,
            kind=kind,
            since_turn=since_turn,
            streak=streak,
        )

    @classmethod
    def cooldown(cls, kind: DetectorKind, until_turn: int) -> InterventionState:
        return cls(phase=InterventionPhase.COOLDOWN, kind=kind, until_turn=until_turn)


@dataclass(frozen=True)
class PolicyDecision(InternalDTO):
    """What the policy decided for one turn, plus the state to persist."""

    state: InterventionState
    phase: InterventionPhase
    detected: bool = False
    kind: DetectorKind | None = None
    confidence: float = 0.0
    action: InterventionAction = InterventionAction.NONE
    evidence: frozenset[int] = field(default_factory=frozenset)
    suppressed: bool = False

    @property
    def confirmed(self) -> bool:
        return self.phase == InterventionPhase.CONFIRMED


def _collect_evidence(verdicts: list[DetectorVerdict]) -> frozenset[int]:
    evidence: set[int] = set()
    for verdict in verdicts:
        evidence.update(verdict.matched_turns)
    return frozenset(evidence)


class InterventionPolicy:
    """Hysteresis over detector verdicts: suspect first, confirm on sustained signal."""

    def __init__(self, config: LoopDetectionConfig) -> None:
        self.confirm_repeats = config.suspected_to_confirmed_repeats
        self.cooldown_turns = config.cooldown_turns
        self.break_threshold = config.break_confidence_threshold

    def decide(
        self,
        state: InterventionState,
        turn: int,
        verdicts: list[DetectorVerdict],
    ) -> PolicyDecision:
        """Advance ``state`` by one turn given that turn's verdicts.

        Args:
            state: The agent's persisted policy state before this turn
            turn: The current turn's sequence number
            verdicts: Every verdict produced for this turn (may be empty)

        Returns:
            The decision for this turn, carrying the state to persist.
        """
        if state.phase == InterventionPhase.COOLDOWN:
            assert state.until_turn is not None
            if turn < state.until_turn:
                if verdicts and logger.isEnabledFor(logging.DEBUG):
                    logger.debug(
                        "Suppressing %d verdict(s) at turn %d (cooldown until %d)",
                        len(verdicts),
                        turn,
                        state.until_turn,
                    )
                return PolicyDecision(
                    state=state,
                    phase=InterventionPhase.COOLDOWN,
                    suppressed=bool(verdicts),
                )
            if logger.isEnabledFor(logging.DEBUG):
                logger.debug("Cooldown expired at turn %d", turn)
            state = InterventionState.normal()

        primary = primary_verdict(verdicts)
        if primary is None:
            if state.phase == InterventionPhase.SUSPECTED and logger.isEnabledFor(
                logging.DEBUG
            ):
                logger.debug(
                    "Quiet turn %d, clearing suspected %s streak of %d",
                    turn,
                    state.kind.value if state.kind else None,
                    state.streak,
                )
            return PolicyDecision(
                state=InterventionState.normal(), phase=InterventionPhase.NORMAL
            )

        fired = {verdict.kind: verdict for verdict in verdicts}
        if state.phase == InterventionPhase.SUSPECTED and state.kind in fired:
            assert state.kind is not None and state.since_turn is not None
            tracked = fired[state.kind]
            streak = state.streak + 1
            since_turn = state.since_turn
        else:
            tracked = primary
            streak = 1
            since_turn = turn

        evidence = _collect_evidence(verdicts)

        if streak >= self.confirm_repeats:
            action = (
                InterventionAction.BREAK
                if tracked.confidence >= self.break_threshold
                else InterventionAction.WARN
            )
            logger.info(
                "Confirmed %s loop at turn %d after %d consecutive detection(s); action=%s",
                tracked.kind.value,
                turn,
                streak,
                action.value,
            )
            return PolicyDecision(
                state=InterventionState.cooldown(
                    tracked.kind, until_turn=turn + self.cooldown_turns
                ),
                phase=InterventionPhase.CONFIRMED,
                detected=True,
                kind=tracked.kind,
                confidence=tracked.confidence,
                action=action,
                evidence=evidence,
            )

        if logger.isEnabledFor(logging.DEBUG):
            logger.debug(
                "Suspected %s loop at turn %d (streak %d of %d)",
                tracked.kind.value,
                turn,
                streak,
                self.confirm_repeats,
            )
        return PolicyDecision(
            state=InterventionState.suspected(tracked.kind, since_turn, streak),
            phase=InterventionPhase.SUSPECTED,
            detected=True,
            kind=primary.kind,
            confidence=primary.confidence,
            evidence=evidence,
        )
