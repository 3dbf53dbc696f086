"""Durable per-agent state: history, intervention state and counters.

Each agent has one JSON document at ``<state_dir>/<agent_key>.json``. Writes
go to a temporary file in the same directory which then replaces the record,
so a crash mid-write never leaves a partial document behind. A record that
cannot be read is treated as empty: the store is a heuristic cache, not a
system of record.
"""

from __future__ import annotations

import hashlib
import json
import logging
import os
import re
import tempfile
from collections.abc import Iterator
from dataclasses import dataclass, field
from pathlib import Path

from pydantic import Field, ValidationError

from swarm_loopguard.core.common.exceptions import (
    CorruptStateError,
    InvariantViolationError,
    StateStoreError,
)
from swarm_loopguard.core.interfaces.model_bases import InternalDTO, ValueObject
from swarm_loopguard.loop_detection.history import History, Turn
from swarm_loopguard.loop_detection.policy import InterventionState
from swarm_loopguard.loop_detection.stats import InterventionCounters

logger = logging.getLogger(__name__)

STATE_FORMAT_VERSION = 1
RECORD_SUFFIX = ".json"
LOCK_SUFFIX = ".lock"

_UNSAFE_KEY_CHARS = re.compile(r"[^A-Za-z0-9._-]")
_MAX_KEY_LENGTH = 96


def agent_key(agent_id: str) -> str:
    """Map an agent id to a filesystem-safe storage key.

    Ids that are already safe are used verbatim; anything altered gets a short
    digest suffix so distinct ids never collide. Ids with upper-case letters
    get the suffix too, since case-insensitive filesystems fold them.
    """
    safe = _UNSAFE_KEY_CHARS.sub("_", agent_id)
    if (
        safe == agent_id
        and safe == safe.lower()
        and not safe.startswith(".")
        and len(safe) <= _MAX_KEY_LENGTH
    ):
        return safe
    digest = hashlib.sha256(agent_id.encode("utf-8")).hexdigest()[:12]
    stem = safe.lstrip(".")[: _MAX_KEY_LENGTH - 13] or "agent"
    return f"{stem}-{digest}"


class AgentState(ValueObject):
    """On-disk schema of one agent's record."""

    version: int = STATE_FORMAT_VERSION
    agent_id: str = Field(min_length=1)
    turns: tuple[Turn, ...] = ()
    intervention: InterventionState = Field(default_factory=InterventionState)
    counters: InterventionCounters = Field(default_factory=InterventionCounters)


@dataclass
class AgentRecord(InternalDTO):
    """An agent's state as loaded for one engine invocation."""

    agent_id: str
    history: History
    intervention: InterventionState = field(default_factory=InterventionState)
    counters: InterventionCounters = field(default_factory=InterventionCounters)
    warnings: list[str] = field(default_factory=list)


class HistoryStore:
    """Filesystem-backed store of per-agent records."""

    def __init__(self, state_dir: str | os.PathLike[str], capacity: int) -> None:
        self.state_dir = Path(state_dir).expanduser()
        self.capacity = capacity

    def record_path(self, agent_id: str) -> Path:
        return self.state_dir / f"{agent_key(agent_id)}{RECORD_SUFFIX}"

    def lock_path(self, agent_id: str) -> Path:
        return self.state_dir / f"{agent_key(agent_id)}{LOCK_SUFFIX}"

    def load(self, agent_id: str) -> AgentRecord:
        """Load an agent's record; missing or unreadable records load as empty.

        An unreadable record adds the ``corrupt_state`` warning to the result.
        """
        path = self.record_path(agent_id)
        if not path.exists():
            return AgentRecord(agent_id=agent_id, history=History(self.capacity))

        try:
            state = self._read(path, agent_id)
        except CorruptStateError as e:
            logger.warning(
                "Discarding unreadable state for agent %s at %s: %s",
                agent_id,
                path,
                e.message,
            )
            return AgentRecord(
                agent_id=agent_id,
                history=History(self.capacity),
                warnings=["corrupt_state"],
            )

        history = History(self.capacity, state.turns)
        if logger.isEnabledFor(logging.DEBUG):
            logger.debug(
                "Loaded %d turn(s) for agent %s (phase %s)",
                len(history),
                agent_id,
                state.intervention.phase.value,
            )
        return AgentRecord(
            agent_id=agent_id,
            history=history,
            intervention=state.intervention,
            counters=state.counters,
        )

    def append(self, history: History, turn: Turn) -> History:
        """Append ``turn`` enforcing capacity; see :meth:`History.append`."""
        return history.append(turn)

    def save(
        self,
        agent_id: str,
        history: History,
        intervention: InterventionState | None = None,
        counters: InterventionCounters | None = None,
    ) -> None:
        """Validate and atomically persist an agent's record.

        Raises:
            InvariantViolationError: The state breaks a structural invariant;
                nothing is written.
            StateStoreError: The record could not be written.
        """
        if history.capacity != self.capacity:
            raise InvariantViolationError(
                "History capacity does not match the store",
                details={"history": history.capacity, "store": self.capacity},
            )
        history.validate()
        try:
            state = AgentState(
                agent_id=agent_id,
                turns=history.turns,
                intervention=intervention or InterventionState(),
                counters=counters or InterventionCounters(),
            )
        except ValidationError as e:
            raise InvariantViolationError(
                "Agent state failed validation", details={"errors": e.errors()}
            ) from e

        payload = json.dumps(state.to_dict(), ensure_ascii=False, indent=2)
        path = self.record_path(agent_id)
        try:
            _atomic_write(path, payload)
        except OSError as e:
            raise StateStoreError(
                f"Failed to write state for agent '{agent_id}'",
                agent_id=agent_id,
                details={"path": str(path), "reason": str(e)},
            ) from e

        if logger.isEnabledFor(logging.DEBUG):
            logger.debug("Saved %d turn(s) for agent %s", len(history), agent_id)

    def reset(self, agent_id: str) -> bool:
        """Delete an agent's record. Returns False when there was none."""
        path = self.record_path(agent_id)
        try:
            path.unlink()
        except FileNotFoundError:
            return False
        except OSError as e:
            raise StateStoreError(
                f"Failed to reset state for agent '{agent_id}'",
                agent_id=agent_id,
                details={"path": str(path), "reason": str(e)},
            ) from e
        logger.info("Reset loop detection state for agent %s", agent_id)
        return True

    def list_agents(self) -> list[str]:
        """Return the ids of all agents with a readable record."""
        return sorted(state.agent_id for state in self.iter_states())

    def iter_states(self) -> Iterator[AgentState]:
        """Yield every readable record in the state directory."""
        if not self.state_dir.is_dir():
            return
        for path in sorted(self.state_dir.glob(f"*{RECORD_SUFFIX}")):
            try:
                yield self._read(path)
            except CorruptStateError as e:
                logger.warning("Skipping unreadable state file %s: %s", path, e.message)

    def _read(self, path: Path, agent_id: str | None = None) -> AgentState:
        try:
            raw = path.read_text(encoding="utf-8")
            data = json.loads(raw)
            state = AgentState.model_validate(data)
            History(self.capacity, state.turns).validate()
        except (OSError, UnicodeDecodeError, json.JSONDecodeError) as e:
            raise CorruptStateError(str(e), agent_id=agent_id) from e
        except (ValidationError, InvariantViolationError) as e:
            raise CorruptStateError(
                f"schema mismatch: {e}", agent_id=agent_id
            ) from e

        if state.version != STATE_FORMAT_VERSION:
            raise CorruptStateError(
                f"unsupported state version {state.version}", agent_id=agent_id
            )
        if agent_id is not None and state.agent_id != agent_id:
            raise CorruptStateError(
                f"record belongs to agent '{state.agent_id}'", agent_id=agent_id
            )
        return state


def _atomic_write(path: Path, content: str) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    fd, tmp_path = tempfile.mkstemp(
        dir=path.parent, prefix=f".{path.stem}.", suffix=".tmp"
    )
    try:
        with os.fdopen(fd, "w", encoding="utf-8") as f:
            f.write(content)
            f.flush()
            os.fsync(f.fileno())
        os.replace(tmp_path, path)
    finally:
        if os.path.exists(tmp_path):
            os.remove(tmp_path)
