from __future__ import annotations

import abc
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from swarm_loopguard.loop_detection.event import LoopDetectionResult
    from swarm_loopguard.loop_detection.stats import InterventionStats


class ILoopDetectionEngine(abc.ABC):
    """
    Interface for a service that classifies an agent's turn stream as looping.
    """

    @abc.abstractmethod
    def detect(
        self,
        agent_id: str,
        prompt: str,
        state_fingerprint: bytes | str | None = None,
        sequence_number: int | None = None,
    ) -> LoopDetectionResult:
        """
        Records one agent turn and reports whether the agent is looping.

        Args:
            agent_id: Identifier of the agent whose turn this is.
            prompt: The prompt text of the turn.
            state_fingerprint: Opaque agent state, digested for oscillation checks.
            sequence_number: Explicit turn number; the next number when omitted.

        Returns:
            A well-formed result, "no loop" whenever detection had to be skipped.
        """
        raise NotImplementedError

    @abc.abstractmethod
    def reset(self, agent_id: str) -> bool:
        """
        Forgets all stored state of an agent.

        Returns:
            True if state existed, False otherwise.
        """
        raise NotImplementedError

    @abc.abstractmethod
    def list_agents(self) -> list[str]:
        """
        Lists the agents with stored state.
        """
        raise NotImplementedError

    @abc.abstractmethod
    def get_intervention_stats(self) -> InterventionStats:
        """
        Aggregates intervention counters across all stored agents.
        """
        raise NotImplementedError
