"""Incremental ingestion: change detection, chunking, hash persistence and index sync."""

from incremental_rag.ingestion.change_detector import ChangeDetector, compute_hash
from incremental_rag.ingestion.chunker import ChunkEmbedder, TextChunker
from incremental_rag.ingestion.hash_store import SQLiteHashStore
from incremental_rag.ingestion.index_synchronizer import IndexSynchronizer

__all__ = [
    "ChangeDetector",
    "compute_hash",
    "ChunkEmbedder",
    "TextChunker",
    "SQLiteHashStore",
    "IndexSynchronizer",
]
