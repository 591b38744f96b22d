"""
Vector store implementation.
"""

import asyncio
import logging
from typing import Any

from langchain_milvus import Milvus

from incremental_rag.config.settings import RAGConfig
from incremental_rag.core.interfaces import IEmbeddingProvider, IVectorStore
from incremental_rag.core.resilience import is_transient_error
from incremental_rag.embeddings.langchain_adapter import LangChainEmbeddingAdapter
from incremental_rag.models.document import TextChunk
from incremental_rag.models.exceptions import VectorStoreError
from incremental_rag.models.query import QueryResult

logger = logging.getLogger(__name__)

_LIST_BATCH_SIZE = 1000
_LISTED_METADATA_FIELDS = ("document_reference", "source_prefix", "file_name", "chunk_index")


def _quote(value: str) -> str:
    """Quote a string literal for a Milvus boolean expression."""
    escaped = value.replace("\\", "\\\\").replace('"', '\\"')
    return f'"{escaped}"'


class MilvusVectorStore(IVectorStore):
    """
    Milvus vector store implementation.

    Leverages langchain-milvus for all vector operations. Chunks arrive with
    precomputed embeddings and deterministic ids, so upserts are idempotent
    by id and every chunk can be located by its document reference.
    """

    def __init__(self, config: RAGConfig, embedding_provider: IEmbeddingProvider):
        """Initialize vector store with configuration."""
        self.config = config
        self.embedding_provider = embedding_provider
        self._vectorstore: Milvus | None = None
        self._initialized = False

    @property
    def is_initialized(self) -> bool:
        """Check if the vector store is initialized."""
        return self._initialized and self._vectorstore is not None

    @property
    def collection_name(self) -> str:
        return self.config.milvus_collection_name

    async def initialize_collections(self) -> None:
        """Connect to Milvus; the collection itself is created on first insert."""
        if self._initialized:
            return

        try:
            self._vectorstore = await asyncio.to_thread(self._create_vectorstore)
            self._initialized = True
            logger.info(
                "Milvus vector store initialized: collection=%s metric=%s",
                self.collection_name,
                self.config.metric_type_value,
            )

        except Exception as e:
            raise VectorStoreError(
                f"Failed to initialize Milvus vector store: {e}",
                operation="initialize_collections",
                collection_name=self.collection_name,
                underlying_error=e,
                transient=is_transient_error(e),
            ) from e

    def _create_vectorstore(self) -> Milvus:
        return Milvus(
            embedding_function=LangChainEmbeddingAdapter(self.embedding_provider),
            collection_name=self.collection_name,
            connection_args=self.config.get_milvus_connection_args(),
            index_params=self.config.get_index_params(),
            search_params={"metric_type": self.config.metric_type_value},
            consistency_level="Strong",
            auto_id=False,
            drop_old=False,
        )

    def _require_initialized(self, operation: str) -> Milvus:
        if not self.is_initialized:
            raise VectorStoreError("Vector store not initialized", operation=operation)
        return self._vectorstore

    async def exists(self) -> bool:
        """Check whether the chunk collection exists in Milvus."""
        vectorstore = self._require_initialized("exists")
        try:
            return await asyncio.to_thread(self._collection_exists, vectorstore)
        except Exception as e:
            raise VectorStoreError(
                f"Failed to check collection existence: {e}",
                operation="exists",
                collection_name=self.collection_name,
                underlying_error=e,
                transient=is_transient_error(e),
            ) from e

    @staticmethod
    def _collection_exists(vectorstore: Milvus) -> bool:
        client = getattr(vectorstore, "client", None)
        if client is not None and hasattr(client, "has_collection"):
            return bool(client.has_collection(vectorstore.collection_name))
        return vectorstore.col is not None

    async def upsert_chunks(self, chunks: list[TextChunk]) -> None:
        """Replace chunks by id: existing ids are deleted before the new rows are added."""
        if not chunks:
            return

        vectorstore = self._require_initialized("upsert_chunks")
        missing = [chunk.id for chunk in chunks if not chunk.has_embedding()]
        if missing:
            raise VectorStoreError(
                f"{len(missing)} chunks have no embedding",
                operation="upsert_chunks",
                collection_name=self.collection_name,
                record_count=len(chunks),
            )

        ids = [chunk.id for chunk in chunks]
        try:
            if await asyncio.to_thread(self._collection_exists, vectorstore):
                await asyncio.to_thread(vectorstore.delete, ids=ids)

            await asyncio.to_thread(
                vectorstore.add_embeddings,
                texts=[chunk.content for chunk in chunks],
                embeddings=[chunk.embedding for chunk in chunks],
                metadatas=[self._chunk_metadata(chunk) for chunk in chunks],
                ids=ids,
            )
            logger.debug("Upserted %d chunks into %s", len(chunks), self.collection_name)

        except Exception as e:
            raise VectorStoreError(
                f"Failed to upsert chunks: {e}",
                operation="upsert_chunks",
                collection_name=self.collection_name,
                record_count=len(chunks),
                underlying_error=e,
                transient=is_transient_error(e),
            ) from e

    async def delete_by_reference(self, reference: str) -> int:
        """Delete every chunk of a document; chunk ids are looked up first."""
        vectorstore = self._require_initialized("delete_by_reference")

        try:
            if not await asyncio.to_thread(self._collection_exists, vectorstore):
                return 0

            pks = await asyncio.to_thread(vectorstore.get_pks, f"document_reference == {_quote(reference)}")
            if not pks:
                return 0

            await asyncio.to_thread(vectorstore.delete, ids=list(pks))
            logger.debug("Deleted %d chunks for %s", len(pks), reference)
            return len(pks)

        except Exception as e:
            raise VectorStoreError(
                f"Failed to delete chunks for {reference}: {e}",
                operation="delete_by_reference",
                collection_name=self.collection_name,
                underlying_error=e,
                transient=is_transient_error(e),
            ) from e

    async def search(self, query_embedding: list[float], top_k: int) -> list[QueryResult]:
        """Nearest-neighbor search; results keep the rank order Milvus returns."""
        vectorstore = self._require_initialized("search")

        try:
            if not await asyncio.to_thread(self._collection_exists, vectorstore):
                return []

            scored_results = await asyncio.to_thread(
                vectorstore.similarity_search_with_score_by_vector,
                embedding=query_embedding,
                k=top_k,
            )
        except Exception as e:
            raise VectorStoreError(
                f"Similarity search failed: {e}",
                operation="search",
                collection_name=self.collection_name,
                underlying_error=e,
                transient=is_transient_error(e),
            ) from e

        results = []
        for doc, score in scored_results:
            metadata = doc.metadata
            results.append(
                QueryResult(
                    content=doc.page_content,
                    document_reference=metadata.get("document_reference", ""),
                    chunk_id=str(doc.id or metadata.get("pk", "")),
                    chunk_index=metadata.get("chunk_index", 0),
                    score=float(score),
                )
            )
        return results

    async def list_references(self, source_prefix: str) -> list[TextChunk]:
        """List every stored chunk of a source without its embedding, page by page."""
        vectorstore = self._require_initialized("list_references")

        try:
            if not await asyncio.to_thread(self._collection_exists, vectorstore):
                return []

            rows = await asyncio.to_thread(
                self._query_all, vectorstore, f"source_prefix == {_quote(source_prefix)}"
            )
        except Exception as e:
            raise VectorStoreError(
                f"Failed to list references for {source_prefix}: {e}",
                operation="list_references",
                collection_name=self.collection_name,
                underlying_error=e,
                transient=is_transient_error(e),
            ) from e

        primary_field = getattr(vectorstore, "_primary_field", "pk")
        text_field = getattr(vectorstore, "_text_field", "text")
        return [
            TextChunk(
                id=str(row.get(primary_field, "")),
                content=row.get(text_field, ""),
                document_reference=row.get("document_reference", ""),
                source_prefix=row.get("source_prefix", source_prefix),
                file_name=row.get("file_name", ""),
                chunk_index=row.get("chunk_index", 0),
            )
            for row in rows
        ]

    @staticmethod
    def _query_all(vectorstore: Milvus, expr: str) -> list[dict[str, Any]]:
        # A query iterator is not bounded by the offset + limit result window
        iterator = vectorstore.client.query_iterator(
            collection_name=vectorstore.collection_name,
            filter=expr,
            output_fields=[
                getattr(vectorstore, "_primary_field", "pk"),
                getattr(vectorstore, "_text_field", "text"),
                *_LISTED_METADATA_FIELDS,
            ],
            batch_size=_LIST_BATCH_SIZE,
        )
        rows: list[dict[str, Any]] = []
        try:
            while page := iterator.next():
                rows.extend(page)
        finally:
            iterator.close()
        return rows

    async def health_check(self) -> dict[str, Any]:
        """Check the health status of the vector store."""
        if not self.is_initialized:
            return {
                "status": "error",
                "message": "Vector store not initialized",
                "connected": False,
            }

        try:
            exists = await asyncio.to_thread(self._collection_exists, self._vectorstore)
            return {
                "status": "healthy",
                "connected": True,
                "collection_name": self.collection_name,
                "collection_exists": exists,
                "metric_type": self.config.metric_type_value,
            }
        except Exception as e:
            logger.warning("Vector store health check failed: %s", e)
            return {
                "status": "error",
                "message": f"Connection test failed: {e}",
                "connected": False,
            }

    async def get_chunk_count(self) -> int:
        """Get the total number of indexed chunks."""
        if not self.is_initialized:
            return 0

        col = getattr(self._vectorstore, "col", None)
        if col is None:
            return 0
        return await asyncio.to_thread(lambda: col.num_entities)

    async def cleanup(self) -> None:
        """Release the Milvus connection."""
        self._vectorstore = None
        self._initialized = False
        logger.info("Milvus vector store cleaned up successfully")

    @staticmethod
    def _chunk_metadata(chunk: TextChunk) -> dict[str, Any]:
        return {
            "document_reference": chunk.document_reference,
            "source_prefix": chunk.source_prefix,
            "file_name": chunk.file_name,
            "chunk_index": chunk.chunk_index,
        }
