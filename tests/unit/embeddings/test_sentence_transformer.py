import sys
import time
import types
from pathlib import Path

import pytest
from swarm_loopguard.core.common.exceptions import (
    EmbeddingProviderError,
    EmbeddingUnavailableError,
)
from swarm_loopguard.embeddings import sentence_transformer
from swarm_loopguard.embeddings.sentence_transformer import (
    SentenceTransformerEmbeddingProvider,
)
from swarm_loopguard.embeddings.timeout import TimeBoundedEmbeddingProvider


class FakeModel:
    instances: list["FakeModel"] = []

    def __init__(self, path: str, device: str = "cpu") -> None:
        self.path = path
        self.device = device
        FakeModel.instances.append(self)

    def get_sentence_embedding_dimension(self) -> int:
        return 2

    def encode(self, text: str, normalize_embeddings: bool = False):
        if text == "explode":
            raise RuntimeError("bad input")
        return [0.6, 0.8]


@pytest.fixture
def fake_library(monkeypatch):
    FakeModel.instances = []
    module = types.ModuleType("sentence_transformers")
    module.SentenceTransformer = FakeModel  # type: ignore[attr-defined]
    monkeypatch.setitem(sys.modules, "sentence_transformers", module)
    monkeypatch.setattr(sentence_transformer, "sentence_transformers_installed", lambda: True)
    return module


class TestSentenceTransformerEmbeddingProvider:
    def test_missing_model_directory_is_unavailable(self, tmp_path: Path) -> None:
        provider = SentenceTransformerEmbeddingProvider(tmp_path / "absent")
        assert not provider.is_available()
        with pytest.raises(EmbeddingUnavailableError):
            provider.vectorize("hello")
        # The failure is remembered
        with pytest.raises(EmbeddingUnavailableError):
            provider.vectorize("hello")

    def test_model_is_loaded_once(self, tmp_path: Path, fake_library) -> None:
        provider = SentenceTransformerEmbeddingProvider(tmp_path)
        assert provider.is_available()
        assert provider.dimension is None

        assert provider.vectorize("hello") == [0.6, 0.8]
        assert provider.vectorize("again") == [0.6, 0.8]
        assert len(FakeModel.instances) == 1
        assert FakeModel.instances[0].path == str(tmp_path)
        assert provider.dimension == 2

    def test_encoding_failure(self, tmp_path: Path, fake_library) -> None:
        provider = SentenceTransformerEmbeddingProvider(tmp_path)
        with pytest.raises(EmbeddingProviderError):
            provider.vectorize("explode")

    def test_load_failure_is_unavailable(self, tmp_path: Path, fake_library) -> None:
        def broken(*args, **kwargs):
            raise OSError("weights missing")

        fake_library.SentenceTransformer = broken
        provider = SentenceTransformerEmbeddingProvider(tmp_path)
        with pytest.raises(EmbeddingUnavailableError):
            provider.vectorize("hello")

    def test_slow_model_load_does_not_use_encode_budget(self, tmp_path: Path, fake_library) -> None:
        class SlowLoadingModel(FakeModel):
            def __init__(self, path: str, device: str = "cpu") -> None:
                time.sleep(0.3)
                super().__init__(path, device)

        fake_library.SentenceTransformer = SlowLoadingModel
        provider = TimeBoundedEmbeddingProvider(
            SentenceTransformerEmbeddingProvider(tmp_path),
            timeout_seconds=0.1,
            load_timeout_seconds=5.0,
        )
        assert list(provider.vectorize("hello")) == [0.6, 0.8]
        assert len(FakeModel.instances) == 1
