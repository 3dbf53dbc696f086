from pathlib import Path

import pytest
from swarm_loopguard.core.config.app_config import EmbeddingConfig, EmbeddingProviderKind
from swarm_loopguard.embeddings import sentence_transformer
from swarm_loopguard.embeddings.factory import create_embedding_provider
from swarm_loopguard.embeddings.hashing import HashingEmbeddingProvider
from swarm_loopguard.embeddings.remote import RemoteEmbeddingProvider
from swarm_loopguard.embeddings.timeout import TimeBoundedEmbeddingProvider


class TestCreateEmbeddingProvider:
    def test_none(self) -> None:
        assert create_embedding_provider(EmbeddingConfig(provider="none")) is None

    def test_hashing(self) -> None:
        provider = create_embedding_provider(EmbeddingConfig(provider="hashing", dimension=64))
        assert isinstance(provider, HashingEmbeddingProvider)
        assert provider.dimension == 64

    def test_remote_requires_base_url(self) -> None:
        assert create_embedding_provider(EmbeddingConfig(provider="remote")) is None

    def test_remote_request_has_an_overall_deadline(self) -> None:
        provider = create_embedding_provider(
            EmbeddingConfig(
                provider="remote", base_url="http://localhost:9999/v1", timeout_seconds=1.5
            )
        )
        assert isinstance(provider, TimeBoundedEmbeddingProvider)
        assert isinstance(provider.inner, RemoteEmbeddingProvider)
        assert provider.timeout_seconds == 1.5
        assert provider.inner.timeout_seconds == 1.5
        provider.close()

    @pytest.mark.parametrize("kind", ["auto", "sentence-transformers"])
    def test_missing_local_model_disables_semantic(self, tmp_path: Path, kind: str) -> None:
        config = EmbeddingConfig(provider=kind, model_path=str(tmp_path / "missing"))
        assert create_embedding_provider(config) is None

    def test_local_model_is_time_bounded(self, tmp_path: Path, monkeypatch) -> None:
        monkeypatch.setattr(sentence_transformer, "sentence_transformers_installed", lambda: True)
        config = EmbeddingConfig(
            provider=EmbeddingProviderKind.AUTO,
            model_path=str(tmp_path),
            timeout_seconds=0.5,
            load_timeout_seconds=45.0,
        )
        provider = create_embedding_provider(config)
        assert isinstance(provider, TimeBoundedEmbeddingProvider)
        assert provider.timeout_seconds == 0.5
        assert provider.load_timeout_seconds == 45.0
        assert provider.name == f"sentence-transformers:{tmp_path.name}"
