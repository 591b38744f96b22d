"""
Change detection for incremental ingestion.

Compares a document's current content hash with the one recorded when it was
last indexed, and tracks which references existed in the previous run so that
deletions in a source can be propagated to the index.
"""

import hashlib
import logging
from datetime import UTC, datetime

from incremental_rag.core.interfaces import IHashStore, IVectorStore
from incremental_rag.models import ChangeDecision, ContentHash

logger = logging.getLogger(__name__)


def compute_hash(text: str) -> str:
    """Compute the SHA-256 hex digest of extracted document text."""
    return hashlib.sha256(text.encode("utf-8")).hexdigest()


class ChangeDetector:
    """
    Decides whether documents are new, unchanged or modified.

    Hash records are written only through ``commit``, which the orchestrator
    calls after the document's chunks are in the index. A document whose
    ingestion fails therefore keeps its old record, or none, and is picked
    up again on the next pass.
    """

    def __init__(self, hash_store: IHashStore, vector_store: IVectorStore | None = None, config=None):
        self.hash_store = hash_store
        self.vector_store = vector_store
        self.recover_from_index = bool(config and config.recover_references_from_index)

    compute_hash = staticmethod(compute_hash)

    async def decide(self, reference: str, new_hash: str) -> ChangeDecision:
        """
        Classify a document against its persisted hash record.

        Args:
            reference: Document reference
            new_hash: Hash of the document's current text

        Returns:
            NEW when no record exists, UNCHANGED when the hashes match,
            MODIFIED otherwise
        """
        record = await self.hash_store.get(reference)
        if record is None:
            decision = ChangeDecision.NEW
        elif record.hash == new_hash.lower():
            decision = ChangeDecision.UNCHANGED
        else:
            decision = ChangeDecision.MODIFIED

        logger.debug("Change decision for %s: %s", reference, decision.value)
        return decision

    async def references_seen_in_previous_run(self, source_prefix: str) -> set[str]:
        """
        Get every reference of a source that was indexed before this pass.

        When recovery from the index is enabled, references that have chunks
        in the vector index but no hash record are included as well.
        """
        references = await self.hash_store.all_references(source_prefix)

        if self.recover_from_index and self.vector_store is not None:
            chunks = await self.vector_store.list_references(source_prefix)
            recovered = {chunk.document_reference for chunk in chunks if chunk.document_reference}
            extra = recovered - references
            if extra:
                logger.info("Recovered %d references for %s from the vector index", len(extra), source_prefix)
            references |= recovered

        return references

    async def commit(self, reference: str, source_prefix: str, new_hash: str) -> None:
        """Record the hash of a document whose chunks were indexed successfully."""
        await self.hash_store.put(
            ContentHash(
                reference=reference,
                source_prefix=source_prefix,
                hash=new_hash,
                last_seen=datetime.now(UTC),
            )
        )

    async def mark_seen(self, reference: str) -> None:
        """Refresh ``last_seen`` for a document that was enumerated but not re-indexed."""
        await self.hash_store.touch(reference, datetime.now(UTC))

    async def forget(self, reference: str) -> None:
        """Remove the hash record of a document deleted from its source."""
        await self.hash_store.delete(reference)
        logger.debug("Forgot hash record for %s", reference)
