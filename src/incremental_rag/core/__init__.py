"""Core RAG contracts, cancellation and resilience."""

from incremental_rag.core.cancellation import CancellationToken, ensure_token
from incremental_rag.core.interfaces import (
    IAnswerGenerator,
    IDocumentSource,
    IDocumentType,
    IEmbeddingProvider,
    IHashStore,
    IVectorStore,
)
from incremental_rag.core.resilience import ResiliencePolicy, is_transient_error, with_resilience

__all__ = [
    "CancellationToken",
    "ensure_token",
    "IAnswerGenerator",
    "IDocumentSource",
    "IDocumentType",
    "IEmbeddingProvider",
    "IHashStore",
    "IVectorStore",
    "ResiliencePolicy",
    "is_transient_error",
    "with_resilience",
]
