"""Vector index storage backends."""

from incremental_rag.storage.milvus_store import MilvusVectorStore

__all__ = ["MilvusVectorStore"]
