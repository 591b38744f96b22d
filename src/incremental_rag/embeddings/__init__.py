"""
Embedding providers and adapters.

This module provides embedding generation functionality including local
HuggingFace and remote OpenAI-compatible embedders and a LangChain
compatibility adapter.
"""

from incremental_rag.embeddings.embedder import HuggingFaceEmbedder
from incremental_rag.embeddings.factory import create_embedding_provider
from incremental_rag.embeddings.langchain_adapter import LangChainEmbeddingAdapter
from incremental_rag.embeddings.openai_embedder import OpenAIEmbedder

__all__ = [
    "HuggingFaceEmbedder",
    "OpenAIEmbedder",
    "LangChainEmbeddingAdapter",
    "create_embedding_provider",
]
