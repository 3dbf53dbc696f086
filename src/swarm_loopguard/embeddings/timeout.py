"""Time bound for embedding providers.

Every call runs on its own daemon thread. A computation that overruns is
abandoned: the caller stops waiting and the thread can never keep a
short-lived hook process alive at interpreter exit.
"""

from __future__ import annotations

import logging
import queue
import threading
from collections.abc import Callable, Sequence
from typing import Any

from swarm_loopguard.core.common.exceptions import (
    EmbeddingTimeoutError,
    EmbeddingUnavailableError,
)
from swarm_loopguard.core.interfaces.embedding_provider_interface import (
    IEmbeddingProvider,
)

logger = logging.getLogger(__name__)


class _Overrun(Exception):
    pass


class TimeBoundedEmbeddingProvider(IEmbeddingProvider):
    """Bounds the wrapped provider's load and each of its vectorize calls.

    Loading (e.g. importing a model library and reading weights) gets its own
    ``load_timeout_seconds`` budget and happens once, before the first
    vectorize call. A load that overruns makes the provider unavailable; a
    vectorize call that overruns only times out that call.
    """

    def __init__(
        self,
        inner: IEmbeddingProvider,
        timeout_seconds: float,
        *,
        load_timeout_seconds: float | None = None,
    ) -> None:
        self.inner = inner
        self.timeout_seconds = timeout_seconds
        self.load_timeout_seconds = (
            load_timeout_seconds if load_timeout_seconds is not None else timeout_seconds
        )
        self._loaded = False
        self._load_error: str | None = None

    @property
    def name(self) -> str:
        return self.inner.name

    @property
    def dimension(self) -> int | None:
        return self.inner.dimension

    def load(self) -> None:
        if self._loaded:
            return
        if self._load_error is not None:
            raise EmbeddingUnavailableError(self._load_error, provider_name=self.inner.name)

        try:
            self._call(self.inner.load, self.load_timeout_seconds)
        except _Overrun:
            self._load_error = (
                f"loading exceeded {self.load_timeout_seconds}s"
            )
            logger.warning(
                "Embedding provider %s did not load within %.2fs",
                self.inner.name,
                self.load_timeout_seconds,
            )
            raise EmbeddingUnavailableError(
                self._load_error, provider_name=self.inner.name
            ) from None
        self._loaded = True

    def vectorize(self, text: str) -> Sequence[float]:
        self.load()
        try:
            return self._call(self.inner.vectorize, self.timeout_seconds, text)
        except _Overrun:
            if logger.isEnabledFor(logging.DEBUG):
                logger.debug(
                    "Embedding by %s exceeded %.2fs", self.inner.name, self.timeout_seconds
                )
            raise EmbeddingTimeoutError(
                self.timeout_seconds, provider_name=self.inner.name
            ) from None

    def close(self) -> None:
        self.inner.close()

    def _call(self, func: Callable[..., Any], timeout: float, *args: Any) -> Any:
        results: queue.Queue[tuple[bool, Any]] = queue.Queue(maxsize=1)

        def run() -> None:
            try:
                results.put((True, func(*args)))
            except Exception as e:
                results.put((False, e))

        worker = threading.Thread(
            target=run, name=f"embedding-{self.inner.name}", daemon=True
        )
        worker.start()
        try:
            ok, value = results.get(timeout=timeout)
        except queue.Empty:
            raise _Overrun() from None
        if not ok:
            raise value
        return value
