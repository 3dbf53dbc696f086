import json
from pathlib import Path

import pytest
from swarm_loopguard.core.common.exceptions import (
    InvariantViolationError,
    StateStoreError,
)
from swarm_loopguard.loop_detection.event import DetectorKind
from swarm_loopguard.loop_detection.history import History
from swarm_loopguard.loop_detection.policy import InterventionPhase, InterventionState
from swarm_loopguard.loop_detection.stats import InterventionCounters
from swarm_loopguard.loop_detection.store import (
    STATE_FORMAT_VERSION,
    HistoryStore,
    agent_key,
)

from tests.conftest import make_turn


@pytest.fixture
def store(state_dir: Path) -> HistoryStore:
    return HistoryStore(state_dir, capacity=5)


def _history(*numbers: int, capacity: int = 5) -> History:
    return History(capacity, [make_turn(n, f"prompt {n}") for n in numbers])


class TestAgentKey:
    def test_safe_ids_are_kept(self) -> None:
        assert agent_key("worker-1") == "worker-1"
        assert agent_key("agent_a.v2") == "agent_a.v2"

    def test_ids_differing_only_in_case_stay_distinct_when_folded(self) -> None:
        # Case-insensitive filesystems would map both to one file
        upper = agent_key("Coder")
        assert upper.startswith("Coder-")
        assert upper.lower() != agent_key("coder").lower()
        assert agent_key("CODER").lower() != upper.lower()

    def test_unsafe_ids_get_digest_suffix(self) -> None:
        key = agent_key("../etc/passwd")
        assert "/" not in key
        assert not key.startswith(".")
        assert key != agent_key("__etc_passwd")

    def test_similar_ids_do_not_collide(self) -> None:
        assert agent_key("a/b") != agent_key("a_b")
        assert agent_key("a/b") != agent_key("a:b")

    def test_long_ids_are_bounded(self) -> None:
        assert len(agent_key("x" * 500)) <= 96


class TestHistoryStore:
    """Durable per-agent records."""

    def test_missing_record_loads_empty(self, store: HistoryStore) -> None:
        record = store.load("nobody")
        assert len(record.history) == 0
        assert record.intervention.phase == InterventionPhase.NORMAL
        assert record.warnings == []

    def test_save_then_load(self, store: HistoryStore) -> None:
        intervention = InterventionState.suspected(DetectorKind.EXACT, since_turn=3, streak=1)
        counters = InterventionCounters(turns_seen=3, detections=1)
        store.save("agent-1", _history(1, 2, 3), intervention, counters)

        record = store.load("agent-1")
        assert [t.sequence_number for t in record.history] == [1, 2, 3]
        assert record.history.turns[0].normalized_prompt_excerpt == "prompt 1"
        assert record.intervention == intervention
        assert record.counters == counters

    def test_record_is_versioned_json(self, store: HistoryStore) -> None:
        store.save("agent-1", _history(1))
        data = json.loads(store.record_path("agent-1").read_text(encoding="utf-8"))
        assert data["version"] == STATE_FORMAT_VERSION
        assert data["agent_id"] == "agent-1"
        assert len(data["turns"]) == 1

    def test_save_leaves_no_temporary_files(self, store: HistoryStore, state_dir: Path) -> None:
        store.save("agent-1", _history(1))
        store.save("agent-1", _history(1, 2))
        assert sorted(p.name for p in state_dir.iterdir()) == ["agent-1.json"]

    def test_corrupt_record_loads_empty_with_warning(self, store: HistoryStore) -> None:
        path = store.record_path("agent-1")
        path.parent.mkdir(parents=True)
        path.write_text("{not json", encoding="utf-8")

        record = store.load("agent-1")
        assert len(record.history) == 0
        assert record.warnings == ["corrupt_state"]

    def test_schema_mismatch_is_corrupt(self, store: HistoryStore) -> None:
        path = store.record_path("agent-1")
        path.parent.mkdir(parents=True)
        path.write_text(
            json.dumps({"version": STATE_FORMAT_VERSION, "agent_id": "agent-1", "turns": [{"x": 1}]}),
            encoding="utf-8",
        )
        assert store.load("agent-1").warnings == ["corrupt_state"]

    def test_unknown_version_is_corrupt(self, store: HistoryStore) -> None:
        path = store.record_path("agent-1")
        path.parent.mkdir(parents=True)
        path.write_text(json.dumps({"version": 99, "agent_id": "agent-1"}), encoding="utf-8")
        assert store.load("agent-1").warnings == ["corrupt_state"]

    def test_record_of_another_agent_is_corrupt(self, store: HistoryStore) -> None:
        store.save("agent-1", _history(1))
        store.record_path("agent-1").rename(store.record_path("agent-2"))
        assert store.load("agent-2").warnings == ["corrupt_state"]

    def test_save_rejects_capacity_mismatch(self, store: HistoryStore) -> None:
        with pytest.raises(InvariantViolationError):
            store.save("agent-1", _history(1, capacity=10))
        assert not store.record_path("agent-1").exists()

    def test_lower_capacity_trims_on_load(self, state_dir: Path) -> None:
        HistoryStore(state_dir, capacity=5).save("agent-1", _history(1, 2, 3, 4, 5))
        record = HistoryStore(state_dir, capacity=2).load("agent-1")
        assert [t.sequence_number for t in record.history] == [4, 5]

    def test_write_failure_raises_state_store_error(self, tmp_path: Path) -> None:
        blocker = tmp_path / "not-a-dir"
        blocker.write_text("", encoding="utf-8")
        store = HistoryStore(blocker, capacity=5)
        with pytest.raises(StateStoreError):
            store.save("agent-1", _history(1))

    def test_append_enforces_capacity(self, store: HistoryStore) -> None:
        history = _history(1, 2, 3, 4, 5)
        history = store.append(history, make_turn(6))
        assert [t.sequence_number for t in history] == [2, 3, 4, 5, 6]

    def test_reset(self, store: HistoryStore) -> None:
        store.save("agent-1", _history(1))
        assert store.reset("agent-1") is True
        assert not store.record_path("agent-1").exists()
        assert store.reset("agent-1") is False

    def test_list_agents_skips_unreadable_records(
        self, store: HistoryStore, state_dir: Path
    ) -> None:
        store.save("b/agent", _history(1))
        store.save("a-agent", _history(1))
        (state_dir / "broken.json").write_text("[]", encoding="utf-8")
        assert store.list_agents() == ["a-agent", "b/agent"]

    def test_list_agents_without_state_dir(self, tmp_path: Path) -> None:
        assert HistoryStore(tmp_path / "missing", capacity=5).list_agents() == []
