"""Data models and schemas for the RAG system."""

from incremental_rag.models.document import (
    ChangeDecision,
    ContentHash,
    DocumentFailure,
    IngestionProgress,
    IngestionResult,
    PathSpec,
    RawDocument,
    SourceFailure,
    TextChunk,
    make_chunk_id,
    make_reference,
)
from incremental_rag.models.exceptions import (
    BaseError,
    ChunkingError,
    ConfigurationError,
    DocumentSourceError,
    EmbeddingModelError,
    GenerationError,
    HashStoreError,
    IndexingError,
    InitializationError,
    MonitoringError,
    OperationCancelledError,
    SearchError,
    TextExtractionError,
    VectorStoreError,
)
from incremental_rag.models.query import ChatMessage, ChatRole, QueryResult, SearchRequest

__all__ = [
    "ChangeDecision",
    "ContentHash",
    "DocumentFailure",
    "IngestionProgress",
    "IngestionResult",
    "PathSpec",
    "RawDocument",
    "SourceFailure",
    "TextChunk",
    "make_chunk_id",
    "make_reference",
    "ChatMessage",
    "ChatRole",
    "QueryResult",
    "SearchRequest",
    "BaseError",
    "ChunkingError",
    "ConfigurationError",
    "DocumentSourceError",
    "EmbeddingModelError",
    "GenerationError",
    "HashStoreError",
    "IndexingError",
    "InitializationError",
    "MonitoringError",
    "OperationCancelledError",
    "SearchError",
    "TextExtractionError",
    "VectorStoreError",
]
