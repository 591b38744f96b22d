"""
Query processing implementation for search operations.

Embeds natural language queries with the same embedder used at ingestion and
runs a nearest-neighbor search against the vector store.
"""

import logging

from incremental_rag.core.cancellation import CancellationToken, ensure_token
from incremental_rag.core.interfaces import IVectorStore
from incremental_rag.core.resilience import ResiliencePolicy
from incremental_rag.ingestion.chunker import ChunkEmbedder
from incremental_rag.models.query import QueryResult, SearchRequest

logger = logging.getLogger(__name__)


class QueryProcessor:
    """
    Processes search queries and coordinates with embedding and storage components.

    Results come back in the rank order of the vector store under its
    configured metric; nothing is re-ranked or filtered here.
    """

    def __init__(self, config, embedder: ChunkEmbedder, vector_store: IVectorStore, policy: ResiliencePolicy):
        """
        Initialize the query processor.

        Args:
            config: System configuration
            embedder: Embedder shared with ingestion, so query and chunk vectors are comparable
            vector_store: Vector database for similarity search
            policy: Resilience policy applied to the search call
        """
        self.config = config
        self.embedder = embedder
        self.vector_store = vector_store
        self.policy = policy

    async def search(
        self,
        query_text: str,
        cancel: CancellationToken | None = None,
        limit: int | None = None,
    ) -> list[str]:
        """
        Retrieve the contents of the chunks most relevant to a query.

        Args:
            query_text: Natural language query
            cancel: Optional cancellation token
            limit: Optional top-k override

        Returns:
            Chunk contents, most relevant first
        """
        results = await self.search_results(SearchRequest(query=query_text, limit=limit), cancel)
        return [result.content for result in results]

    async def search_results(
        self,
        request: SearchRequest,
        cancel: CancellationToken | None = None,
    ) -> list[QueryResult]:
        """
        Process a search request and return ranked results.

        Args:
            request: Search request with query and parameters
            cancel: Optional cancellation token

        Returns:
            List of query results ordered by relevance

        Raises:
            OperationCancelledError: If cancellation is requested
            Exception: Any embedding or search failure, re-raised unchanged
        """
        cancel = ensure_token(cancel)
        top_k = min(request.limit or self.config.default_search_limit, self.config.max_search_limit)

        try:
            logger.debug("Processing search request %s: %s", request.request_id, request.query)

            query_embedding = await self.embedder.get_embedding(request.query, cancel)

            cancel.raise_if_cancelled("search")
            results = await self.policy.run("search", self.vector_store.search, query_embedding, top_k)

            logger.debug("Search completed: %d results", len(results))
            return results

        except Exception as e:
            logger.error("Query processing failed for %r: %s", request.query, e)
            raise
