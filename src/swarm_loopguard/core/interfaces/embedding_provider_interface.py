from __future__ import annotations

import abc
from collections.abc import Sequence


class IEmbeddingProvider(abc.ABC):
    """
    Interface for a service that turns text into a fixed-length float vector.

    Implementations are optional collaborators of the loop detection engine:
    an engine constructed without one simply skips semantic matching.
    """

    @property
    @abc.abstractmethod
    def name(self) -> str:
        """Short identifier used in logs and diagnostics."""
        raise NotImplementedError

    @property
    @abc.abstractmethod
    def dimension(self) -> int | None:
        """
        Length of the vectors this provider returns.

        Returns:
            The vector length, or None when it is only known after the first call.
        """
        raise NotImplementedError

    @abc.abstractmethod
    def vectorize(self, text: str) -> Sequence[float]:
        """
        Computes the embedding of ``text``.

        Raises:
            EmbeddingUnavailableError: The backing model/library is absent.
            EmbeddingTimeoutError: The computation exceeded its time budget.
            EmbeddingProviderError: Any other provider failure.
        """
        raise NotImplementedError

    def load(self) -> None:
        """
        Acquires expensive resources (a model, a library) ahead of the first call.

        The default does nothing; ``vectorize`` must work without a prior call.

        Raises:
            EmbeddingUnavailableError: The backing model/library is absent.
        """

    def close(self) -> None:
        """Releases resources held by the provider."""
