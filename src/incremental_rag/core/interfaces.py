"""
Abstract interfaces for the incremental RAG system.

These interfaces define the contracts for the external collaborators of the
ingestion-and-retrieval pipeline, enabling dependency injection for testing
and alternative implementations.
"""

from abc import ABC, abstractmethod
from collections.abc import AsyncIterator
from datetime import datetime
from typing import Any

from incremental_rag.core.cancellation import CancellationToken
from incremental_rag.models import ChatMessage, ContentHash, PathSpec, QueryResult, RawDocument, TextChunk


class IDocumentSource(ABC):
    """
    Interface for anything that can produce documents for ingestion.

    Local disks and cloud drives implement this one contract; the pipeline
    never looks past it.
    """

    @property
    @abstractmethod
    def prefix(self) -> str:
        """Prefix that qualifies every reference produced by this source."""
        pass

    @property
    @abstractmethod
    def description(self) -> str:
        """Human-readable description of the source."""
        pass

    @abstractmethod
    def get_documents(self, cancel: CancellationToken) -> AsyncIterator[RawDocument]:
        """
        Produce a lazy, finite sequence of raw documents.

        Args:
            cancel: Cancellation token polled between documents and pages

        Yields:
            RawDocument for every document currently present in the source
        """
        pass

    @property
    @abstractmethod
    def failed_path_specs(self) -> list[PathSpec]:
        """
        Path specs whose enumeration failed during the last ``get_documents`` call.

        Locations that no longer exist are not failures; their documents are
        legitimately gone.
        """
        pass


class IDocumentType(ABC):
    """Interface for extracting plain text from one document format."""

    @abstractmethod
    def get_text(self, content: bytes, file_name: str) -> str:
        """
        Extract plain text from document bytes.

        Args:
            content: Raw document bytes
            file_name: Name of the file, for error context

        Returns:
            Extracted plain text

        Raises:
            TextExtractionError: If the document cannot be read
        """
        pass

    @property
    @abstractmethod
    def name(self) -> str:
        """Short name of the document type."""
        pass


class IEmbeddingProvider(ABC):
    """Interface for generating embeddings from text."""

    @abstractmethod
    async def generate_embedding(self, text: str) -> list[float]:
        """
        Generate an embedding vector for the given text.

        Args:
            text: Text to embed

        Returns:
            Embedding vector as list of floats

        Raises:
            EmbeddingModelError: If embedding generation fails
        """
        pass

    @abstractmethod
    async def generate_batch_embeddings(self, texts: list[str]) -> list[list[float]]:
        """
        Generate embeddings for multiple texts efficiently.

        Args:
            texts: List of texts to embed

        Returns:
            List of embedding vectors

        Raises:
            EmbeddingModelError: If batch embedding generation fails
        """
        pass

    @property
    @abstractmethod
    def embedding_dimension(self) -> int:
        """Get the dimensionality of embeddings produced by this provider."""
        pass

    @property
    @abstractmethod
    def model_name(self) -> str:
        """Get the name/identifier of the embedding model."""
        pass


class IVectorStore(ABC):
    """Interface for vector index operations."""

    @abstractmethod
    async def initialize_collections(self) -> None:
        """
        Connect to the index, creating it on first use.

        Raises:
            VectorStoreError: If initialization fails
        """
        pass

    @abstractmethod
    async def exists(self) -> bool:
        """Check whether the index already exists in the backing service."""
        pass

    @abstractmethod
    async def upsert_chunks(self, chunks: list[TextChunk]) -> None:
        """
        Insert or replace chunks by id.

        Args:
            chunks: Chunks with populated embeddings

        Raises:
            VectorStoreError: If the write fails
        """
        pass

    @abstractmethod
    async def delete_by_reference(self, reference: str) -> int:
        """
        Delete every chunk belonging to a document.

        Args:
            reference: Document reference

        Returns:
            Number of chunks deleted

        Raises:
            VectorStoreError: If deletion fails
        """
        pass

    @abstractmethod
    async def search(self, query_embedding: list[float], top_k: int) -> list[QueryResult]:
        """
        Nearest-neighbor search under the index's configured metric.

        Args:
            query_embedding: Query vector
            top_k: Maximum number of matches

        Returns:
            Matches ordered most relevant first

        Raises:
            VectorStoreError: If search fails
        """
        pass

    @abstractmethod
    async def list_references(self, source_prefix: str) -> list[TextChunk]:
        """
        List chunks stored for a source, without embeddings.

        Used to recover previously seen references when the hash store is
        not authoritative.
        """
        pass

    @abstractmethod
    async def health_check(self) -> dict[str, Any]:
        """
        Check the health and status of the vector store.

        Returns:
            Dictionary with health status information
        """
        pass


class IHashStore(ABC):
    """Interface for the persisted content hash records."""

    @abstractmethod
    async def open(self) -> None:
        """Open the store at the start of a pass."""
        pass

    @abstractmethod
    async def close(self) -> None:
        """Flush and close the store at the end of a pass."""
        pass

    @abstractmethod
    async def get(self, reference: str) -> ContentHash | None:
        """Get the hash record for a reference, if any."""
        pass

    @abstractmethod
    async def put(self, record: ContentHash) -> None:
        """Insert or replace a hash record."""
        pass

    @abstractmethod
    async def delete(self, reference: str) -> None:
        """Remove the hash record for a reference."""
        pass

    @abstractmethod
    async def touch(self, reference: str, seen_at: datetime) -> bool:
        """Update when a reference was last seen; returns False when it has no record."""
        pass

    @abstractmethod
    async def all_references(self, source_prefix: str) -> set[str]:
        """Get every reference recorded for a source."""
        pass

    @abstractmethod
    async def clear(self, source_prefix: str | None = None) -> int:
        """Remove records for one source, or all records; returns how many were removed."""
        pass


class IAnswerGenerator(ABC):
    """Interface for the downstream answer-generation service."""

    @abstractmethod
    async def generate(
        self,
        question: str,
        context: list[str],
        history: list[ChatMessage],
        cancel: CancellationToken | None = None,
    ) -> str:
        """
        Generate an answer grounded in retrieved context.

        Args:
            question: User question
            context: Ranked chunk contents, most relevant first
            history: Previous conversation turns, oldest first
            cancel: Optional cancellation token

        Returns:
            Answer text

        Raises:
            GenerationError: If the service call fails
        """
        pass
