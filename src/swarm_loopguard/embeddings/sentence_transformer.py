"""Local sentence-transformers embeddings.

The model is never downloaded here: it must already sit in ``model_path``.
A missing library or model directory means the capability is absent, which
the engine treats as "no semantic matching", not as an error.
"""

from __future__ import annotations

import importlib
import importlib.util
import logging
import threading
from pathlib import Path
from typing import Any

from swarm_loopguard.core.common.exceptions import (
    EmbeddingProviderError,
    EmbeddingUnavailableError,
)
from swarm_loopguard.core.interfaces.embedding_provider_interface import (
    IEmbeddingProvider,
)

logger = logging.getLogger(__name__)


def sentence_transformers_installed() -> bool:
    return importlib.util.find_spec("sentence_transformers") is not None


class SentenceTransformerEmbeddingProvider(IEmbeddingProvider):
    """Lazily loads a local model on first use, then reuses it."""

    def __init__(self, model_path: str | Path, device: str = "cpu") -> None:
        self.model_path = Path(model_path).expanduser()
        self.device = device
        self._model: Any = None
        self._dimension: int | None = None
        self._load_error: str | None = None
        self._lock = threading.Lock()

    @property
    def name(self) -> str:
        return f"sentence-transformers:{self.model_path.name}"

    @property
    def dimension(self) -> int | None:
        return self._dimension

    def is_available(self) -> bool:
        """Cheap check that the library and model files are present."""
        return sentence_transformers_installed() and self.model_path.is_dir()

    def load(self) -> None:
        self._load()

    def _load(self) -> Any:
        if self._model is not None:
            return self._model
        if self._load_error is not None:
            raise EmbeddingUnavailableError(self._load_error, provider_name=self.name)

        with self._lock:
            if self._model is not None:
                return self._model
            if not sentence_transformers_installed():
                self._load_error = "sentence-transformers is not installed"
            elif not self.model_path.is_dir():
                self._load_error = f"model directory not found: {self.model_path}"
            else:
                try:
                    module = importlib.import_module("sentence_transformers")
                    logger.info("Loading embedding model from %s", self.model_path)
                    model = module.SentenceTransformer(
                        str(self.model_path), device=self.device
                    )
                except Exception as e:
                    self._load_error = f"failed to load model: {e}"
                else:
                    self._model = model
                    self._dimension = model.get_sentence_embedding_dimension()
                    return model
            raise EmbeddingUnavailableError(self._load_error, provider_name=self.name)

    def vectorize(self, text: str) -> list[float]:
        model = self._load()
        try:
            vector = model.encode(text, normalize_embeddings=True)
        except Exception as e:
            raise EmbeddingProviderError(
                f"encoding failed: {e}", provider_name=self.name
            ) from e
        return [float(x) for x in vector]
