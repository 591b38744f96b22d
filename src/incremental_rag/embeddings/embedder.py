"""
Local sentence-transformers embedding provider.

Embeds chunk text on this machine with a HuggingFace model, so ingestion
works without any remote embedding service.
"""

import asyncio
import logging

from incremental_rag.core.interfaces import IEmbeddingProvider
from incremental_rag.models import EmbeddingModelError

logger = logging.getLogger(__name__)


def _is_out_of_memory(error: Exception) -> bool:
    # torch reports allocator exhaustion as RuntimeError subclasses
    return isinstance(error, MemoryError) or "out of memory" in str(error).lower()


class HuggingFaceEmbedder(IEmbeddingProvider):
    """
    Embedding provider running a sentence-transformers model in-process.

    The model is loaded on first use and encoding runs in the default thread
    pool. Vectors are normalized, so cosine and inner-product metrics rank
    identically. Running out of device memory is reported as transient since
    a later attempt with less concurrent load can succeed.
    """

    def __init__(self, config):
        self.config = config
        self._model = None
        self._device = config.resolve_embedding_device()
        self._model_name = config.embedding_model
        self._dimension = config.embedding_dimension

        logger.info("Configured local embedder %s (device: %s)", self._model_name, self._device)

    @property
    def model(self):
        """The sentence-transformers model, loaded on first access."""
        if self._model is None:
            self._load_model()
        return self._model

    def _load_model(self):
        try:
            from sentence_transformers import SentenceTransformer

            cache_folder = str(self.config.embedding_cache_dir) if self.config.embedding_cache_dir else None
            model = SentenceTransformer(self._model_name, device=self._device, cache_folder=cache_folder)
        except Exception as e:
            logger.error("Could not load embedding model %s: %s", self._model_name, e)
            raise EmbeddingModelError(
                f"Failed to load model {self._model_name}: {e}",
                model_name=self._model_name,
                operation="load_model",
                underlying_error=e,
            ) from e

        reported = model.get_sentence_embedding_dimension()
        if reported and reported != self._dimension:
            logger.warning(
                "%s produces %d-dimensional vectors but %d were configured; using %d",
                self._model_name,
                reported,
                self._dimension,
                reported,
            )
            self._dimension = reported

        self._model = model
        logger.info("Loaded %s on %s", self._model_name, self._device)

    async def initialize(self) -> None:
        """Load the model ahead of the first embedding request."""
        await asyncio.get_running_loop().run_in_executor(None, lambda: self.model)

    async def generate_embedding(self, text: str) -> list[float]:
        embeddings = await self._embed([text], operation="generate_embedding")
        return embeddings[0]

    async def generate_batch_embeddings(self, texts: list[str]) -> list[list[float]]:
        """
        Embed several texts with one call into the model.

        Blank texts are not sent to the model; they keep their position in
        the result and receive a zero vector.
        """
        return await self._embed(texts, operation="generate_batch_embeddings")

    async def _embed(self, texts: list[str], operation: str) -> list[list[float]]:
        stripped = [text.strip() if text else "" for text in texts]
        positions = [i for i, text in enumerate(stripped) if text]
        if not positions:
            return [[0.0] * self._dimension for _ in texts]

        try:
            vectors = await asyncio.get_running_loop().run_in_executor(
                None, self._encode, [stripped[i] for i in positions]
            )
        except EmbeddingModelError:
            raise
        except Exception as e:
            transient = _is_out_of_memory(e)
            logger.error("Encoding %d texts failed (transient: %s): %s", len(positions), transient, e)
            raise EmbeddingModelError(
                f"Failed to generate embeddings: {e}",
                model_name=self._model_name,
                operation=operation,
                underlying_error=e,
                transient=transient,
            ) from e

        results = [[0.0] * self._dimension for _ in texts]
        for position, vector in zip(positions, vectors, strict=True):
            results[position] = vector.tolist()
        return results

    def _encode(self, texts: list[str]):
        return self.model.encode(
            texts,
            batch_size=self.config.embedding_batch_size,
            convert_to_numpy=True,
            normalize_embeddings=True,
            show_progress_bar=False,
        )

    @property
    def embedding_dimension(self) -> int:
        return self._dimension

    @property
    def model_name(self) -> str:
        return self._model_name
