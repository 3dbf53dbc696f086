"""Turn embedding configuration into an optional provider."""

from __future__ import annotations

import logging

from swarm_loopguard.core.config.app_config import EmbeddingConfig, EmbeddingProviderKind
from swarm_loopguard.core.interfaces.embedding_provider_interface import (
    IEmbeddingProvider,
)
from swarm_loopguard.embeddings.hashing import HashingEmbeddingProvider
from swarm_loopguard.embeddings.remote import RemoteEmbeddingProvider
from swarm_loopguard.embeddings.sentence_transformer import (
    SentenceTransformerEmbeddingProvider,
)
from swarm_loopguard.embeddings.timeout import TimeBoundedEmbeddingProvider

logger = logging.getLogger(__name__)


def create_embedding_provider(config: EmbeddingConfig) -> IEmbeddingProvider | None:
    """Build the configured provider, or None when semantic matching is unavailable.

    Absence is never an error: a missing model, library or endpoint only
    disables the semantic matcher.
    """
    kind = config.provider

    if kind == EmbeddingProviderKind.NONE:
        return None

    if kind == EmbeddingProviderKind.HASHING:
        return HashingEmbeddingProvider(config.dimension)

    if kind == EmbeddingProviderKind.REMOTE:
        if not config.base_url:
            logger.warning(
                "Remote embedding provider selected without base_url; "
                "semantic matching disabled"
            )
            return None
        remote = RemoteEmbeddingProvider(
            config.base_url,
            config.model_name,
            api_key=config.api_key,
            timeout_seconds=config.timeout_seconds,
        )
        # httpx bounds each phase separately; this bounds the whole request
        return TimeBoundedEmbeddingProvider(remote, config.timeout_seconds)

    local = SentenceTransformerEmbeddingProvider(config.resolved_model_path())
    if not local.is_available():
        log = logger.warning if kind == EmbeddingProviderKind.SENTENCE_TRANSFORMERS else logger.debug
        log(
            "Local embedding model unavailable at %s; semantic matching disabled",
            local.model_path,
        )
        return None
    return TimeBoundedEmbeddingProvider(
        local,
        config.timeout_seconds,
        load_timeout_seconds=config.load_timeout_seconds,
    )
