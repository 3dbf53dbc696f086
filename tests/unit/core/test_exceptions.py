from swarm_loopguard.core.common.exceptions import (
    CorruptStateError,
    DuplicateTurnError,
    EmbeddingProviderError,
    EmbeddingTimeoutError,
    EmbeddingUnavailableError,
    InvalidRequestError,
    InvariantViolationError,
    LockTimeoutError,
    LoopGuardError,
    StateStoreError,
)


class TestLoopGuardError:
    def test_to_dict_includes_extra_attributes(self) -> None:
        error = LockTimeoutError("agent-1", 2.0)
        data = error.to_dict()["error"]
        assert data["type"] == "LockTimeoutError"
        assert data["agent_id"] == "agent-1"
        assert data["timeout_seconds"] == 2.0
        assert "exit_code" not in data

    def test_exit_codes(self) -> None:
        assert InvalidRequestError().exit_code == 2
        assert InvariantViolationError().exit_code == 1
        assert LoopGuardError("x").exit_code == 1

    def test_hierarchy(self) -> None:
        assert issubclass(CorruptStateError, StateStoreError)
        assert issubclass(DuplicateTurnError, StateStoreError)
        assert issubclass(EmbeddingTimeoutError, EmbeddingProviderError)
        assert issubclass(EmbeddingUnavailableError, EmbeddingProviderError)

    def test_duplicate_turn_details(self) -> None:
        error = DuplicateTurnError(3, 5, agent_id="agent-1")
        assert error.details == {"sequence_number": 3, "last_sequence_number": 5}
        assert "3" in error.message and "5" in error.message
