"""
OpenAI-compatible embedding provider implementation.

Generates embeddings through a remote, rate-limited embeddings API using the
``openai`` async client. Works against OpenAI itself and any compatible
provider reachable through ``openai_base_url``.
"""

import logging

import openai

from incremental_rag.core.interfaces import IEmbeddingProvider
from incremental_rag.core.resilience import is_transient_error
from incremental_rag.models import EmbeddingModelError

logger = logging.getLogger(__name__)

_OPENAI_BATCH_LIMIT = 2048

# Known embedding model dimensions.
_MODEL_DIMENSIONS: dict[str, int] = {
    "text-embedding-3-small": 1536,
    "text-embedding-3-large": 3072,
    "text-embedding-ada-002": 1536,
}


class OpenAIEmbedder(IEmbeddingProvider):
    """
    Embedding provider backed by an OpenAI-compatible embeddings API.

    Library errors are mapped to EmbeddingModelError with ``transient`` set
    for timeouts, dropped connections, rate limiting and server errors, so
    the resilience policy retries only those.
    """

    def __init__(self, config, client: openai.AsyncOpenAI | None = None):
        self.config = config
        self._model_name = config.openai_embedding_model
        self._dimension = _MODEL_DIMENSIONS.get(self._model_name, config.embedding_dimension)

        if client is None:
            client_kwargs: dict = {"timeout": config.openai_timeout_seconds, "max_retries": 0}
            if config.openai_api_key:
                client_kwargs["api_key"] = config.openai_api_key.get_secret_value()
            if config.openai_base_url:
                client_kwargs["base_url"] = config.openai_base_url
            client = openai.AsyncOpenAI(**client_kwargs)
        self._client = client

        logger.info("Initializing OpenAI embedder: %s (%d dimensions)", self._model_name, self._dimension)

    async def generate_embedding(self, text: str) -> list[float]:
        if not text or not text.strip():
            return [0.0] * self._dimension

        embeddings = await self._create([text])
        return embeddings[0]

    async def generate_batch_embeddings(self, texts: list[str]) -> list[list[float]]:
        """
        Generate embeddings for multiple texts, splitting oversized batches.

        Args:
            texts: List of texts to embed

        Returns:
            List of embedding vectors in input order

        Raises:
            EmbeddingModelError: If any request fails
        """
        if not texts:
            return []

        results: list[list[float]] = []
        for start in range(0, len(texts), _OPENAI_BATCH_LIMIT):
            batch = texts[start : start + _OPENAI_BATCH_LIMIT]
            results.extend(await self._create(batch))
        return results

    async def _create(self, batch: list[str]) -> list[list[float]]:
        try:
            response = await self._client.embeddings.create(input=batch, model=self._model_name)
        except openai.APIError as e:
            transient = is_transient_error(e)
            logger.error("Embedding request failed (%s): %s", "transient" if transient else "permanent", e)

            raise EmbeddingModelError(
                f"Embedding request failed: {e}",
                model_name=self._model_name,
                operation="embeddings.create",
                underlying_error=e,
                transient=transient,
            ) from e

        logger.debug(
            "Embedded batch of %d with %s (%s tokens)",
            len(batch),
            self._model_name,
            response.usage.total_tokens if response.usage else "unknown",
        )
        return [item.embedding for item in sorted(response.data, key=lambda item: item.index)]

    async def close(self) -> None:
        """Release the underlying HTTP client."""
        await self._client.close()

    @property
    def embedding_dimension(self) -> int:
        return self._dimension

    @property
    def model_name(self) -> str:
        return self._model_name
