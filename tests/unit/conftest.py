"""Shared fixtures and in-memory collaborators for unit tests."""

import math
import re
import zlib
from typing import Any

import pytest
from incremental_rag.config import RAGConfig
from incremental_rag.core import IAnswerGenerator, IDocumentSource, IEmbeddingProvider, IVectorStore
from incremental_rag.models import PathSpec, QueryResult, RawDocument, TextChunk

_TOKEN = re.compile(r"[a-z0-9]+")


def bag_of_words(text: str, dimension: int) -> list[float]:
    """Normalized bag-of-words vector; tokens are truncated to 7 characters so word forms share a bucket."""
    vector = [0.0] * dimension
    for token in _TOKEN.findall(text.lower()):
        vector[zlib.crc32(token[:7].encode()) % dimension] += 1.0

    norm = math.sqrt(sum(value * value for value in vector))
    if norm == 0:
        return vector
    return [value / norm for value in vector]


def cosine(a: list[float], b: list[float]) -> float:
    norm_a = math.sqrt(sum(x * x for x in a))
    norm_b = math.sqrt(sum(x * x for x in b))
    if norm_a == 0 or norm_b == 0:
        return 0.0
    return sum(x * y for x, y in zip(a, b, strict=True)) / (norm_a * norm_b)


class FakeEmbeddingProvider(IEmbeddingProvider):
    """Deterministic embedder that counts calls and can be told to fail."""

    def __init__(self, dimension: int = 1024):
        self.dimension = dimension
        self.calls = 0
        self.errors: list[Exception] = []
        self.fail_when: dict[str, Exception] = {}

    async def generate_embedding(self, text: str) -> list[float]:
        self.calls += 1
        for marker, error in self.fail_when.items():
            if marker in text:
                raise error
        if self.errors:
            raise self.errors.pop(0)
        return bag_of_words(text, self.dimension)

    async def generate_batch_embeddings(self, texts: list[str]) -> list[list[float]]:
        return [await self.generate_embedding(text) for text in texts]

    @property
    def embedding_dimension(self) -> int:
        return self.dimension

    @property
    def model_name(self) -> str:
        return "fake-bag-of-words"


class FakeVectorStore(IVectorStore):
    """In-memory index ranking by cosine similarity; counts every write."""

    def __init__(self):
        self.chunks: dict[str, TextChunk] = {}
        self.created = False
        self.writes = 0
        self.upsert_errors: list[Exception] = []
        self.delete_errors: list[Exception] = []
        self.search_error: Exception | None = None

    async def initialize_collections(self) -> None:
        pass

    async def exists(self) -> bool:
        return self.created

    async def upsert_chunks(self, chunks: list[TextChunk]) -> None:
        if self.upsert_errors:
            raise self.upsert_errors.pop(0)
        self.writes += 1
        self.created = True
        for chunk in chunks:
            self.chunks[chunk.id] = chunk

    async def delete_by_reference(self, reference: str) -> int:
        if self.delete_errors:
            raise self.delete_errors.pop(0)
        doomed = [chunk_id for chunk_id, chunk in self.chunks.items() if chunk.document_reference == reference]
        if doomed:
            self.writes += 1
        for chunk_id in doomed:
            del self.chunks[chunk_id]
        return len(doomed)

    async def search(self, query_embedding: list[float], top_k: int) -> list[QueryResult]:
        if self.search_error is not None:
            raise self.search_error
        ranked = sorted(self.chunks.values(), key=lambda c: cosine(query_embedding, c.embedding), reverse=True)
        return [
            QueryResult(
                content=chunk.content,
                document_reference=chunk.document_reference,
                chunk_id=chunk.id,
                chunk_index=chunk.chunk_index,
                score=cosine(query_embedding, chunk.embedding),
            )
            for chunk in ranked[:top_k]
        ]

    async def list_references(self, source_prefix: str) -> list[TextChunk]:
        return [chunk for chunk in self.chunks.values() if chunk.source_prefix == source_prefix]

    async def health_check(self) -> dict[str, Any]:
        return {"status": "healthy", "chunks": len(self.chunks)}

    def chunks_for(self, reference: str) -> list[TextChunk]:
        return sorted(
            (chunk for chunk in self.chunks.values() if chunk.document_reference == reference),
            key=lambda chunk: chunk.chunk_index,
        )

    def drop(self) -> None:
        """Simulate the index being dropped out from under the pipeline."""
        self.chunks.clear()
        self.created = False


class FakeSource(IDocumentSource):
    """Source over an editable mapping of path to text."""

    def __init__(self, prefix: str = "test:FakeSource", documents: dict[str, str] | None = None):
        self._prefix = prefix
        self.documents = dict(documents or {})
        self.failed: list[PathSpec] = []
        self.enumeration_error: Exception | None = None

    @property
    def prefix(self) -> str:
        return self._prefix

    @property
    def description(self) -> str:
        return "Fake Source"

    @property
    def failed_path_specs(self) -> list[PathSpec]:
        return list(self.failed)

    async def get_documents(self, cancel):
        for path, text in sorted(self.documents.items()):
            cancel.raise_if_cancelled("fake enumeration")
            yield RawDocument(source_prefix=self.prefix, path=path, content=text.encode("utf-8"))
        if self.enumeration_error is not None:
            raise self.enumeration_error

    def reference(self, path: str) -> str:
        return f"{self.prefix}@{path}"


class FakeAnswerGenerator(IAnswerGenerator):
    """Echoes the top context passage and records every call."""

    def __init__(self):
        self.calls: list[dict[str, Any]] = []

    async def generate(self, question, context, history, cancel=None) -> str:
        self.calls.append({"question": question, "context": list(context), "history": list(history)})
        return f"Answer from: {context[0]}" if context else "I don't know."


@pytest.fixture
def config(tmp_path):
    """Configuration with small chunks, no retry delay and storage under tmp_path."""
    return RAGConfig(
        _env_file=None,
        hash_store_path=tmp_path / "hashes.db",
        path_spec_dir=tmp_path / "config",
        chunk_size=50,
        chunk_overlap=10,
        retry_max_attempts=4,
        retry_initial_backoff_seconds=0,
        retry_max_backoff_seconds=0,
        embedding_device="cpu",
        monitoring_debounce_seconds=0.05,
    )


@pytest.fixture
def embedding_provider():
    return FakeEmbeddingProvider()


@pytest.fixture
def vector_store():
    return FakeVectorStore()


@pytest.fixture
def answer_generator():
    return FakeAnswerGenerator()


@pytest.fixture
def source_factory():
    """Factory for fake sources, for tests that need more than one."""
    return FakeSource
