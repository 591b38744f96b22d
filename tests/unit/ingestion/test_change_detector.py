"""Unit tests for ChangeDetector."""

import hashlib
from datetime import UTC, datetime

import pytest
import pytest_asyncio
from incremental_rag.ingestion import ChangeDetector, SQLiteHashStore, compute_hash
from incremental_rag.models import ChangeDecision, ContentHash, TextChunk


@pytest_asyncio.fixture
async def hash_store(tmp_path):
    store = SQLiteHashStore(tmp_path / "hashes.db")
    await store.open()
    yield store
    await store.close()


class TestChangeDetector:
    """Test cases for ChangeDetector."""

    def test_compute_hash(self):
        assert compute_hash("hello world") == hashlib.sha256(b"hello world").hexdigest()
        assert compute_hash("café") == hashlib.sha256("café".encode()).hexdigest()

    @pytest.mark.asyncio
    async def test_decisions(self, hash_store):
        detector = ChangeDetector(hash_store)
        reference = "src@doc.txt"

        assert await detector.decide(reference, compute_hash("v1")) == ChangeDecision.NEW

        await detector.commit(reference, "src", compute_hash("v1"))
        assert await detector.decide(reference, compute_hash("v1")) == ChangeDecision.UNCHANGED
        assert await detector.decide(reference, compute_hash("v2")) == ChangeDecision.MODIFIED

    @pytest.mark.asyncio
    async def test_decide_does_not_write(self, hash_store):
        detector = ChangeDetector(hash_store)

        await detector.decide("src@doc.txt", compute_hash("v1"))

        assert await hash_store.get("src@doc.txt") is None

    @pytest.mark.asyncio
    async def test_mark_seen_refreshes_timestamp(self, hash_store):
        detector = ChangeDetector(hash_store)
        await hash_store.put(
            ContentHash(
                reference="src@doc.txt",
                source_prefix="src",
                hash=compute_hash("v1"),
                last_seen=datetime(2020, 1, 1, tzinfo=UTC),
            )
        )

        await detector.mark_seen("src@doc.txt")

        record = await hash_store.get("src@doc.txt")
        assert record.last_seen > datetime(2020, 1, 1, tzinfo=UTC)
        assert record.hash == compute_hash("v1")

    @pytest.mark.asyncio
    async def test_forget(self, hash_store):
        detector = ChangeDetector(hash_store)
        await detector.commit("src@doc.txt", "src", compute_hash("v1"))

        await detector.forget("src@doc.txt")

        assert await detector.decide("src@doc.txt", compute_hash("v1")) == ChangeDecision.NEW

    @pytest.mark.asyncio
    async def test_previous_references_from_hash_store(self, hash_store):
        detector = ChangeDetector(hash_store)
        await detector.commit("src@a.txt", "src", compute_hash("a"))
        await detector.commit("other@b.txt", "other", compute_hash("b"))

        assert await detector.references_seen_in_previous_run("src") == {"src@a.txt"}

    @pytest.mark.asyncio
    async def test_previous_references_recovered_from_index(self, hash_store, vector_store, config):
        config.recover_references_from_index = True
        await vector_store.upsert_chunks(
            [
                TextChunk(
                    id="c1",
                    content="orphan",
                    document_reference="src@orphan.txt",
                    source_prefix="src",
                    embedding=[1.0],
                )
            ]
        )
        detector = ChangeDetector(hash_store, vector_store, config)
        await detector.commit("src@a.txt", "src", compute_hash("a"))

        assert await detector.references_seen_in_previous_run("src") == {"src@a.txt", "src@orphan.txt"}

    @pytest.mark.asyncio
    async def test_index_not_consulted_by_default(self, hash_store, vector_store, config):
        await vector_store.upsert_chunks(
            [TextChunk(id="c1", content="orphan", document_reference="src@orphan.txt", source_prefix="src")]
        )
        detector = ChangeDetector(hash_store, vector_store, config)

        assert await detector.references_seen_in_previous_run("src") == set()
