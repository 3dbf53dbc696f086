"""
Loop detection for swarm agents.

Classifies each agent's stream of turns as exact repetition, semantic
(paraphrase) repetition or cyclic state oscillation, and turns that into a
rate-limited warn/break decision. State is persisted per agent between calls.
"""

from .config import LoopDetectionConfig
from .engine import LoopDetectionEngine
from .event import DetectorKind, DetectorVerdict, InterventionAction, LoopDetectionResult
from .history import History, Turn
from .policy import InterventionPhase, InterventionPolicy, InterventionState
from .stats import InterventionCounters, InterventionStats
from .store import HistoryStore

__all__ = [
    "DetectorKind",
    "DetectorVerdict",
    "History",
    "HistoryStore",
    "InterventionAction",
    "InterventionCounters",
    "InterventionPhase",
    "InterventionPolicy",
    "InterventionState",
    "InterventionStats",
    "LoopDetectionConfig",
    "LoopDetectionEngine",
    "LoopDetectionResult",
    "Turn",
]
