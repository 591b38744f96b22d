"""
Chunking and embedding of extracted document text.

Text is split into fixed-size character windows with overlap. Every
character of the text falls inside at least one window, so no content is
dropped at a boundary. Each window is then embedded through the resilience
policy; a document is returned either fully embedded or not at all.
"""

import logging
from collections.abc import Callable

from incremental_rag.core.cancellation import CancellationToken, ensure_token
from incremental_rag.core.interfaces import IEmbeddingProvider
from incremental_rag.core.resilience import ResiliencePolicy
from incremental_rag.models import (
    ChunkingError,
    EmbeddingModelError,
    IngestionProgress,
    TextChunk,
    make_chunk_id,
)

logger = logging.getLogger(__name__)

ProgressSink = Callable[[IngestionProgress], None]


class TextChunker:
    """
    Fixed-size window splitter with overlap.

    A window is cut at the last whitespace in its second half when there is
    one, so words are rarely split. The next window starts ``chunk_overlap``
    characters before the previous one ended and always moves forward.
    """

    def __init__(self, chunk_size: int, chunk_overlap: int):
        if chunk_size <= 0:
            raise ChunkingError(f"chunk_size must be positive, got {chunk_size}")
        if not 0 <= chunk_overlap < chunk_size:
            raise ChunkingError(f"chunk_overlap must be in [0, {chunk_size}), got {chunk_overlap}")

        self.chunk_size = chunk_size
        self.chunk_overlap = chunk_overlap

    def split(self, text: str) -> list[tuple[int, int, str]]:
        """
        Split text into overlapping windows.

        Args:
            text: Extracted plain text

        Returns:
            List of ``(start, end, window_text)`` tuples in document order;
            empty for empty or whitespace-only text
        """
        if not text or not text.strip():
            return []

        windows = []
        length = len(text)
        start = 0

        while start < length:
            end = min(start + self.chunk_size, length)
            if end < length:
                end = self._find_break(text, start, end)

            windows.append((start, end, text[start:end]))
            if end >= length:
                break

            next_start = end - self.chunk_overlap
            start = next_start if next_start > start else end

        return windows

    def _find_break(self, text: str, start: int, end: int) -> int:
        """Find a cut position after the last whitespace in the second half of the window."""
        floor = start + self.chunk_size // 2
        for position in range(end - 1, floor - 1, -1):
            if text[position].isspace():
                return position + 1
        return end


class ChunkEmbedder:
    """Splits document text and embeds each chunk under the resilience policy."""

    def __init__(self, config, embedding_provider: IEmbeddingProvider, policy: ResiliencePolicy | None = None):
        self.config = config
        self.embedding_provider = embedding_provider
        self.policy = policy or ResiliencePolicy(config)
        self.chunker = TextChunker(config.chunk_size, config.chunk_overlap)

    async def embed(
        self,
        full_text: str,
        document_type: str,
        file_name: str,
        reference: str,
        source_prefix: str,
        progress: ProgressSink | None = None,
        cancel: CancellationToken | None = None,
    ) -> list[TextChunk]:
        """
        Chunk and embed the full text of one document.

        Args:
            full_text: Extracted plain text
            document_type: Name of the document type the text came from
            file_name: File name, for chunk metadata and progress
            reference: Document reference owning the chunks
            source_prefix: Prefix of the document's source
            progress: Optional sink receiving one update per embedded chunk
            cancel: Optional cancellation token, checked before each chunk

        Returns:
            Every chunk of the document with its embedding populated

        Raises:
            OperationCancelledError: If cancellation is requested
            EmbeddingModelError: If an embedding could not be obtained
        """
        cancel = ensure_token(cancel)
        windows = self.chunker.split(full_text)
        logger.debug("Split %s (%s) into %d chunks", file_name, document_type, len(windows))

        chunks: list[TextChunk] = []
        for index, (_start, _end, window) in enumerate(windows):
            cancel.raise_if_cancelled("chunk embedding")

            embedding = await self.get_embedding(window, cancel)
            chunks.append(
                TextChunk(
                    id=make_chunk_id(reference, index),
                    content=window,
                    document_reference=reference,
                    source_prefix=source_prefix,
                    file_name=file_name,
                    chunk_index=index,
                    embedding=embedding,
                )
            )

            if progress is not None:
                progress(
                    IngestionProgress(
                        documents_processed=index + 1,
                        total_documents=len(windows),
                        current_description=f"Embedded chunk {index + 1} of {file_name}",
                    )
                )

        return chunks

    async def get_embedding(self, text: str, cancel: CancellationToken | None = None) -> list[float]:
        """
        Embed a single text through the resilience policy.

        Raises:
            OperationCancelledError: If cancellation is requested
            EmbeddingModelError: If the service returned no vector
        """
        ensure_token(cancel).raise_if_cancelled("embedding")

        embedding = await self.policy.run("generate_embedding", self.embedding_provider.generate_embedding, text)
        if not embedding:
            raise EmbeddingModelError(
                "Embedding service returned an empty vector",
                model_name=self.embedding_provider.model_name,
                operation="generate_embedding",
            )
        return embedding
