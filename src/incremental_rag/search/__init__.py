"""Query-time retrieval."""

from incremental_rag.search.query_processor import QueryProcessor

__all__ = ["QueryProcessor"]
