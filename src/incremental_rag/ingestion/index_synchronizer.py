"""
Index synchronization for incremental ingestion.

Reconciles the chunks produced for a document with the vector index, and
purges the chunks of documents that disappeared from their source.
"""

import logging
from collections.abc import Awaitable, Callable

from incremental_rag.core.interfaces import IVectorStore
from incremental_rag.core.resilience import ResiliencePolicy
from incremental_rag.models import ChangeDecision, IndexingError, TextChunk

logger = logging.getLogger(__name__)


class IndexSynchronizer:
    """Applies change decisions to the vector index."""

    def __init__(self, vector_store: IVectorStore, policy: ResiliencePolicy):
        self.vector_store = vector_store
        self.policy = policy

    async def sync(self, reference: str, decision: ChangeDecision, chunks: list[TextChunk]) -> None:
        """
        Bring the index in line with one document.

        Any chunks already indexed under the reference are deleted before the
        new chunks are written, so no stale chunk survives a re-chunking that
        yields fewer chunks. New documents are cleared too: a document whose
        hash record was dropped after a failed sync may still have chunks.

        Args:
            reference: Document reference
            decision: Change decision for the document
            chunks: Fully embedded chunks of the document's current text

        Raises:
            IndexingError: If a chunk belongs to another document
            VectorStoreError: If the index rejects a write
        """
        decision = ChangeDecision(decision)
        if decision == ChangeDecision.UNCHANGED:
            return

        foreign = [chunk.id for chunk in chunks if chunk.document_reference != reference]
        if foreign:
            raise IndexingError(
                f"{len(foreign)} chunks do not belong to {reference}",
                document_reference=reference,
                stage="sync",
            )

        deleted = await self.policy.run("delete_by_reference", self.vector_store.delete_by_reference, reference)
        if deleted:
            logger.debug("Removed %d superseded chunks for %s", deleted, reference)

        if chunks:
            await self.policy.run("upsert_chunks", self.vector_store.upsert_chunks, chunks)

        logger.info("Synchronized %s (%s): %d chunks", reference, decision.value, len(chunks))

    async def sweep(
        self,
        vanished_references: set[str],
        forget: Callable[[str], Awaitable[None]] | None = None,
    ) -> int:
        """
        Delete the chunks of documents that no longer exist in their source.

        Args:
            vanished_references: References seen in the previous run but not in this one
            forget: Optional callback removing the hash record once a reference is purged

        Returns:
            Number of references swept
        """
        swept = 0
        for reference in sorted(vanished_references):
            await self.policy.run("delete_by_reference", self.vector_store.delete_by_reference, reference)
            if forget is not None:
                await forget(reference)
            swept += 1
            logger.info("Swept deleted document %s", reference)
        return swept
