"""
RAG engine: orchestration of ingestion passes and questions.

One ingestion pass walks every configured document source, re-indexes only
the documents whose content changed, and ends each source with a deletion
sweep for documents that disappeared. Questions are answered from the
chunks retrieved for them.
"""

import logging
from collections import deque
from collections.abc import Callable
from datetime import UTC, datetime
from typing import Any

from incremental_rag.config.settings import RAGConfig, get_config
from incremental_rag.core.cancellation import CancellationToken, ensure_token
from incremental_rag.core.interfaces import (
    IAnswerGenerator,
    IDocumentSource,
    IEmbeddingProvider,
    IHashStore,
    IVectorStore,
)
from incremental_rag.core.resilience import ResiliencePolicy
from incremental_rag.embeddings.factory import create_embedding_provider
from incremental_rag.ingestion.change_detector import ChangeDetector, compute_hash
from incremental_rag.ingestion.chunker import ChunkEmbedder
from incremental_rag.ingestion.hash_store import SQLiteHashStore
from incremental_rag.ingestion.index_synchronizer import IndexSynchronizer
from incremental_rag.models import (
    ChangeDecision,
    ChatMessage,
    ChatRole,
    IngestionProgress,
    IngestionResult,
    InitializationError,
    OperationCancelledError,
    RawDocument,
)
from incremental_rag.parsers.document_types import DocumentTypeFactory
from incremental_rag.search.query_processor import QueryProcessor

logger = logging.getLogger(__name__)

ProgressSink = Callable[[IngestionProgress], None]


class _PassProgress:
    """
    Single document-level counter behind every progress update of one pass.

    Chunk updates from the embedder are re-stamped with the pass counters,
    so ``documents_processed`` never moves backwards.
    """

    def __init__(self, sink: ProgressSink | None):
        self.sink = sink
        self.processed = 0
        self.enumerated = 0

    def document_started(self, description: str) -> None:
        self.enumerated += 1
        self._emit(description)

    def document_finished(self, description: str) -> None:
        self.processed += 1
        self._emit(description)

    def chunk_sink(self) -> ProgressSink | None:
        if self.sink is None:
            return None
        return lambda update: self._emit(update.current_description)

    def _emit(self, description: str) -> None:
        if self.sink is not None:
            self.sink(
                IngestionProgress(
                    documents_processed=self.processed,
                    total_documents=self.enumerated,
                    current_description=description,
                )
            )


class RAGEngine:
    """
    Orchestrates document ingestion and question answering.

    Collaborators are injected; anything not supplied is built from the
    configuration. The hash store is opened at the start of every pass and
    closed at its end.
    """

    def __init__(
        self,
        config: RAGConfig | None = None,
        sources: list[IDocumentSource] | None = None,
        vector_store: IVectorStore | None = None,
        hash_store: IHashStore | None = None,
        embedding_provider: IEmbeddingProvider | None = None,
        answer_generator: IAnswerGenerator | None = None,
        document_types: DocumentTypeFactory | None = None,
    ):
        self.config = config or get_config()
        self.policy = ResiliencePolicy(self.config)
        self.document_types = document_types or DocumentTypeFactory()
        self.embedding_provider = embedding_provider or create_embedding_provider(self.config)

        if vector_store is None:
            from incremental_rag.storage.milvus_store import MilvusVectorStore

            vector_store = MilvusVectorStore(self.config, self.embedding_provider)
        self.vector_store = vector_store

        if sources is None:
            from incremental_rag.sources.local_filesystem import LocalFileSystemSource

            sources = [LocalFileSystemSource(self.config, document_types=self.document_types)]
        self.sources = sources

        self.hash_store = hash_store or SQLiteHashStore(self.config.hash_store_path)
        self._answer_generator = answer_generator

        self.change_detector = ChangeDetector(self.hash_store, self.vector_store, self.config)
        self.chunk_embedder = ChunkEmbedder(self.config, self.embedding_provider, self.policy)
        self.synchronizer = IndexSynchronizer(self.vector_store, self.policy)
        self.query_processor = QueryProcessor(self.config, self.chunk_embedder, self.vector_store, self.policy)

        self._initialized = False
        self._last_result: IngestionResult | None = None

    @property
    def answer_generator(self) -> IAnswerGenerator:
        if self._answer_generator is None:
            from incremental_rag.generation.openai_generator import OpenAIAnswerGenerator

            self._answer_generator = OpenAIAnswerGenerator(self.config, policy=self.policy)
        return self._answer_generator

    async def initialize(self) -> None:
        """
        Prepare the embedding model and connect to the vector index.

        Raises:
            InitializationError: If a component cannot be initialized
        """
        if self._initialized:
            return

        try:
            initialize_provider = getattr(self.embedding_provider, "initialize", None)
            if initialize_provider is not None:
                await initialize_provider()
            await self.policy.run("initialize_collections", self.vector_store.initialize_collections)
        except Exception as e:
            raise InitializationError(
                f"Failed to initialize RAG engine: {e}",
                component="rag_engine",
                underlying_error=e,
            ) from e

        self._initialized = True
        logger.info("RAG engine initialized with %d document sources", len(self.sources))

    async def process_files(
        self,
        cancel: CancellationToken | None = None,
        progress: ProgressSink | None = None,
    ) -> IngestionResult:
        """
        Run one ingestion pass over every document source.

        Failures of individual documents are recorded in the result and do not
        stop the pass. A document that failed keeps its previous hash record,
        or none, so the next pass retries it.

        Args:
            cancel: Optional cancellation token, polled per document and per chunk
            progress: Optional sink for progress updates; ``documents_processed``
                never decreases within a pass

        Returns:
            Statistics for the pass

        Raises:
            OperationCancelledError: If the pass is cancelled; work already
                committed stays valid
        """
        cancel = ensure_token(cancel)
        await self.initialize()

        result = IngestionResult()
        tracker = _PassProgress(progress)
        logger.info("Starting ingestion pass over %d sources", len(self.sources))

        await self.hash_store.open()
        try:
            if not await self.policy.run("exists", self.vector_store.exists):
                cleared = await self.hash_store.clear()
                if cleared:
                    logger.warning("Vector index is missing; discarded %d hash records to re-index everything", cleared)

            for source in self.sources:
                cancel.raise_if_cancelled("ingestion pass")
                await self._process_source(source, result, cancel, tracker)
                result.sources_processed += 1
        finally:
            await self.hash_store.close()
            result.completed_at = datetime.now(UTC)

        self._last_result = result
        logger.info("Ingestion pass finished: %s", result)
        return result

    async def _process_source(
        self,
        source: IDocumentSource,
        result: IngestionResult,
        cancel: CancellationToken,
        tracker: _PassProgress,
    ) -> None:
        logger.info("Scanning %s", source.description)
        seen: set[str] = set()
        enumeration_failed = False

        try:
            async for document in source.get_documents(cancel):
                cancel.raise_if_cancelled("document")
                seen.add(document.reference)
                description = f"{document.description or source.description}: {document.path}"
                tracker.document_started(description)

                try:
                    decision, chunk_count = await self._process_document(document, tracker, cancel)
                except OperationCancelledError:
                    raise
                except Exception as e:
                    logger.error("Failed to ingest %s: %s", document.reference, e)
                    result.record_failure(document.reference, e)
                    tracker.document_finished(description)
                    continue

                if decision is None:
                    result.empty += 1
                elif decision == ChangeDecision.NEW:
                    result.new += 1
                elif decision == ChangeDecision.MODIFIED:
                    result.modified += 1
                else:
                    result.unchanged += 1
                result.chunks_indexed += chunk_count
                tracker.document_finished(description)

        except OperationCancelledError:
            logger.warning("Ingestion cancelled while scanning %s; deletion sweep skipped", source.description)
            raise
        except Exception as e:
            logger.error("Enumeration of %s failed: %s", source.description, e)
            result.record_source_failure(source.prefix, "enumeration", e)
            enumeration_failed = True

        # The prefix of some sources is only known once enumeration has started
        previous = await self.change_detector.references_seen_in_previous_run(source.prefix)
        vanished = previous - seen

        if enumeration_failed or source.failed_path_specs:
            if vanished:
                logger.warning(
                    "Skipping deletion sweep for %s: enumeration was incomplete, %d references kept",
                    source.prefix,
                    len(vanished),
                )
            result.sweeps_skipped.append(source.prefix)
            return

        if not vanished:
            return

        try:
            result.deleted += await self.synchronizer.sweep(vanished, forget=self.change_detector.forget)
        except Exception as e:
            logger.error("Deletion sweep for %s failed: %s", source.prefix, e)
            result.record_source_failure(source.prefix, "sweep", e)

    async def _process_document(
        self,
        document: RawDocument,
        tracker: _PassProgress,
        cancel: CancellationToken,
    ) -> tuple[ChangeDecision | None, int]:
        """
        Ingest one document.

        Returns:
            The change decision and the number of chunks written. The decision
            is None for a document without any text: its old chunks are removed
            and no hash record is kept, since a record promises indexed chunks.
        """
        reference = document.reference
        document_type = self.document_types.create(document.file_name)
        text = document_type.get_text(document.content, document.file_name)
        new_hash = compute_hash(text)

        decision = await self.change_detector.decide(reference, new_hash)
        if decision == ChangeDecision.UNCHANGED:
            logger.debug("Skipping unchanged document %s", reference)
            await self.change_detector.mark_seen(reference)
            return decision, 0

        chunks = await self.chunk_embedder.embed(
            text,
            document_type.name,
            document.file_name,
            reference,
            document.source_prefix,
            tracker.chunk_sink(),
            cancel,
        )

        cancel.raise_if_cancelled("index sync")
        try:
            await self.synchronizer.sync(reference, decision, chunks)
        except Exception:
            if decision == ChangeDecision.MODIFIED:
                # Old chunks may already be gone; without a record the next pass re-indexes it as new
                await self.change_detector.forget(reference)
            raise

        if not chunks:
            if decision == ChangeDecision.MODIFIED:
                await self.change_detector.forget(reference)
            logger.info("Document %s has no text to index", reference)
            return None, 0

        await self.change_detector.commit(reference, document.source_prefix, new_hash)

        logger.info("Indexed %s document %s (%d chunks)", decision.value, reference, len(chunks))
        return decision, len(chunks)

    def new_chat_history(self) -> deque[ChatMessage]:
        """Create an empty conversation history bounded by ``chat_history_max_messages``."""
        return deque(maxlen=self.config.chat_history_max_messages)

    async def search(
        self,
        query: str,
        cancel: CancellationToken | None = None,
        limit: int | None = None,
    ) -> list[str]:
        """Retrieve ranked chunk contents for a query."""
        await self.initialize()
        return await self.query_processor.search(query, cancel, limit)

    async def ask(
        self,
        question: str,
        chat_history: deque[ChatMessage] | None = None,
        cancel: CancellationToken | None = None,
    ) -> str:
        """
        Answer a question from the indexed documents.

        Failures are not masked; no fallback answer is produced.

        Args:
            question: User question
            chat_history: Optional conversation history; the question and the
                answer are appended to it
            cancel: Optional cancellation token

        Returns:
            Answer text
        """
        cancel = ensure_token(cancel)
        await self.initialize()

        context = await self.query_processor.search(question, cancel)
        history = list(chat_history) if chat_history else []

        cancel.raise_if_cancelled("answer generation")
        answer = await self.answer_generator.generate(question, context, history, cancel)

        if chat_history is not None:
            chat_history.append(ChatMessage(role=ChatRole.USER, content=question))
            chat_history.append(ChatMessage(role=ChatRole.ASSISTANT, content=answer))
            while len(chat_history) > self.config.chat_history_max_messages:
                chat_history.popleft()

        return answer

    async def get_status(self) -> dict[str, Any]:
        """Report component health and the outcome of the last pass."""
        status: dict[str, Any] = {
            "initialized": self._initialized,
            "sources": [{"prefix": source.prefix, "description": source.description} for source in self.sources],
            "embedding_model": self.embedding_provider.model_name,
            "embedding_dimension": self.embedding_provider.embedding_dimension,
            "metric_type": self.config.metric_type_value,
            "chunk_size": self.config.chunk_size,
            "chunk_overlap": self.config.chunk_overlap,
        }

        if self._initialized:
            status["vector_store"] = await self.vector_store.health_check()

        if self._last_result is not None:
            status["last_pass"] = self._last_result.model_dump(mode="json")

        return status

    async def shutdown(self) -> None:
        """Release every component that holds a connection."""
        await self.hash_store.close()

        components: list[Any] = [*self.sources, self.vector_store, self.embedding_provider, self._answer_generator]
        for component in components:
            if component is None:
                continue
            release = getattr(component, "cleanup", None) or getattr(component, "close", None)
            if release is not None:
                await release()

        self._initialized = False
        logger.info("RAG engine shut down")
