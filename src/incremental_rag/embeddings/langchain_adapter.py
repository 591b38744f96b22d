"""
LangChain embedding adapter.

Adapts any of our embedding providers to LangChain's Embeddings interface
for seamless integration with langchain-milvus.
"""

import asyncio
import logging

import nest_asyncio
from langchain_core.embeddings import Embeddings

from incremental_rag.core.interfaces import IEmbeddingProvider

logger = logging.getLogger(__name__)


class LangChainEmbeddingAdapter(Embeddings):
    """
    Adapter to make an IEmbeddingProvider compatible with LangChain.

    Wraps our async embedding provider to provide LangChain's expected
    synchronous interface. Chunks reach the vector store with their
    embeddings precomputed, so the sync path is only hit by LangChain
    helpers that embed on their own.
    """

    def __init__(self, provider: IEmbeddingProvider):
        self._provider = provider

    def _run(self, coro):
        """Run a coroutine to completion from LangChain's synchronous interface."""
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            return asyncio.run(coro)

        # Re-entrant run when LangChain calls back from inside our own event loop
        nest_asyncio.apply(loop)
        return loop.run_until_complete(coro)

    def embed_documents(self, texts: list[str]) -> list[list[float]]:
        """
        Embed a list of documents (synchronous interface for LangChain).

        Args:
            texts: List of document texts to embed

        Returns:
            List of embedding vectors
        """
        return self._run(self._provider.generate_batch_embeddings(texts))

    def embed_query(self, text: str) -> list[float]:
        """
        Embed a single query text (synchronous interface for LangChain).

        Args:
            text: Query text to embed

        Returns:
            Embedding vector
        """
        return self._run(self._provider.generate_embedding(text))

    async def aembed_documents(self, texts: list[str]) -> list[list[float]]:
        return await self._provider.generate_batch_embeddings(texts)

    async def aembed_query(self, text: str) -> list[float]:
        return await self._provider.generate_embedding(text)

    @property
    def embedding_dimension(self) -> int:
        """Get the dimensionality of embeddings."""
        return self._provider.embedding_dimension

    @property
    def model_name(self) -> str:
        """Get the model name."""
        return self._provider.model_name
