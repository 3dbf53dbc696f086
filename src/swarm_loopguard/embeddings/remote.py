"""OpenAI-compatible remote embeddings over httpx."""

from __future__ import annotations

import logging
from typing import Any

import httpx

from swarm_loopguard.core.common.exceptions import (
    EmbeddingProviderError,
    EmbeddingTimeoutError,
)
from swarm_loopguard.core.interfaces.embedding_provider_interface import (
    IEmbeddingProvider,
)

logger = logging.getLogger(__name__)


class RemoteEmbeddingProvider(IEmbeddingProvider):
    """Calls ``POST {base_url}/embeddings`` with a bounded timeout."""

    def __init__(
        self,
        base_url: str,
        model: str,
        *,
        api_key: str | None = None,
        timeout_seconds: float = 2.0,
        client: httpx.Client | None = None,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.model = model
        self.timeout_seconds = timeout_seconds
        self.headers = {"Authorization": f"Bearer {api_key}"} if api_key else {}
        self.client = client or httpx.Client(timeout=httpx.Timeout(timeout_seconds))
        self._dimension: int | None = None

    @property
    def name(self) -> str:
        return f"remote:{self.model}"

    @property
    def dimension(self) -> int | None:
        return self._dimension

    def vectorize(self, text: str) -> list[float]:
        url = f"{self.base_url}/embeddings"
        payload = {"model": self.model, "input": text}
        try:
            response = self.client.post(url, json=payload, headers=self.headers)
        except httpx.TimeoutException as e:
            raise EmbeddingTimeoutError(
                self.timeout_seconds, provider_name=self.name
            ) from e
        except httpx.RequestError as e:
            raise EmbeddingProviderError(
                f"Could not connect to embedding backend ({e})", provider_name=self.name
            ) from e

        if response.status_code >= 400:
            raise EmbeddingProviderError(
                f"Embedding backend returned HTTP {response.status_code}",
                provider_name=self.name,
                details={"status_code": response.status_code, "body": response.text[:500]},
            )

        vector = _extract_embedding(response)
        if vector is None:
            raise EmbeddingProviderError(
                "Embedding backend returned an unexpected payload",
                provider_name=self.name,
            )
        if self._dimension is None:
            self._dimension = len(vector)
        return vector

    def close(self) -> None:
        self.client.close()


def _extract_embedding(response: httpx.Response) -> list[float] | None:
    try:
        body: Any = response.json()
        raw = body["data"][0]["embedding"]
        return [float(x) for x in raw]
    except (ValueError, KeyError, IndexError, TypeError):
        return None
