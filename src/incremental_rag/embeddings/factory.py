"""Embedding provider selection."""

import logging

from incremental_rag.config.settings import EmbeddingBackend
from incremental_rag.core.interfaces import IEmbeddingProvider
from incremental_rag.embeddings.embedder import HuggingFaceEmbedder
from incremental_rag.embeddings.openai_embedder import OpenAIEmbedder
from incremental_rag.models import ConfigurationError

logger = logging.getLogger(__name__)


def create_embedding_provider(config) -> IEmbeddingProvider:
    """
    Create the embedding provider named by ``config.embedding_backend``.

    Ingestion and query must share the provider returned here; vectors from
    different models are not comparable.

    Raises:
        ConfigurationError: If the backend is unknown or misconfigured
    """
    try:
        backend = EmbeddingBackend(config.embedding_backend)
    except ValueError as e:
        raise ConfigurationError(
            f"Unknown embedding backend: {config.embedding_backend}",
            config_key="embedding_backend",
            expected_type="huggingface | openai",
            actual_value=config.embedding_backend,
        ) from e

    if backend == EmbeddingBackend.OPENAI:
        if not config.openai_api_key and not config.openai_base_url:
            raise ConfigurationError(
                "The openai embedding backend needs openai_api_key or openai_base_url",
                config_key="openai_api_key",
            )
        logger.info("Using OpenAI-compatible embedding backend")
        return OpenAIEmbedder(config)

    logger.info("Using HuggingFace embedding backend")
    return HuggingFaceEmbedder(config)
