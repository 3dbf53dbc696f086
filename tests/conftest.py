import logging
from collections.abc import Callable, Iterator, Mapping, Sequence
from pathlib import Path
from typing import Any

import pytest
from swarm_loopguard.core.common.exceptions import EmbeddingProviderError
from swarm_loopguard.core.interfaces.embedding_provider_interface import (
    IEmbeddingProvider,
)
from swarm_loopguard.loop_detection.config import LoopDetectionConfig
from swarm_loopguard.loop_detection.engine import LoopDetectionEngine
from swarm_loopguard.loop_detection.hasher import ContentHasher
from swarm_loopguard.loop_detection.history import Turn


class FakeEmbeddingProvider(IEmbeddingProvider):
    """Returns canned vectors keyed by (normalized) prompt text."""

    def __init__(
        self,
        vectors: Mapping[str, Sequence[float]],
        default: Sequence[float] | None = None,
        error: Exception | None = None,
    ) -> None:
        self.vectors = dict(vectors)
        self.default = default
        self.error = error
        self.calls: list[str] = []
        self.closed = False

    @property
    def name(self) -> str:
        return "fake"

    @property
    def dimension(self) -> int | None:
        return None

    def vectorize(self, text: str) -> Sequence[float]:
        self.calls.append(text)
        if self.error is not None:
            raise self.error
        if text in self.vectors:
            return self.vectors[text]
        if self.default is not None:
            return self.default
        raise EmbeddingProviderError(f"no vector for {text!r}", provider_name=self.name)

    def close(self) -> None:
        self.closed = True


def make_turn(
    sequence_number: int,
    prompt: str = "prompt",
    *,
    embedding: Sequence[float] | None = None,
    state: str | None = None,
) -> Turn:
    hasher = ContentHasher()
    return Turn(
        sequence_number=sequence_number,
        prompt_hash=hasher.hash(prompt),
        normalized_prompt_excerpt=prompt,
        embedding=tuple(embedding) if embedding is not None else None,
        state_fingerprint=hasher.fingerprint(state) if state is not None else None,
    )


@pytest.fixture(autouse=True)
def _restore_logging() -> Iterator[None]:
    """Undo handler changes made by configure_logging() during a test."""
    root = logging.getLogger()
    handlers = list(root.handlers)
    level = root.level
    yield
    for handler in list(root.handlers):
        if handler not in handlers:
            root.removeHandler(handler)
            handler.close()
    for handler in handlers:
        if handler not in root.handlers:
            root.addHandler(handler)
    root.setLevel(level)


@pytest.fixture
def state_dir(tmp_path: Path) -> Path:
    return tmp_path / "state"


@pytest.fixture
def make_engine(state_dir: Path) -> Callable[..., LoopDetectionEngine]:
    """Factory for engines sharing one state directory."""

    def _make(
        provider: IEmbeddingProvider | None = None,
        lock_timeout_seconds: float = 2.0,
        **config_values: Any,
    ) -> LoopDetectionEngine:
        return LoopDetectionEngine(
            LoopDetectionConfig(**config_values),
            state_dir,
            embedding_provider=provider,
            lock_timeout_seconds=lock_timeout_seconds,
        )

    return _make
