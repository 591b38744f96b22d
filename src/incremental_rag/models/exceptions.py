"""
Custom exception classes for the incremental RAG system.

Provides specific exception types for different error scenarios to enable
proper error handling and debugging throughout the ingestion and query flows.
"""

from typing import Any


class BaseError(Exception):
    """
    Base exception class for all incremental RAG errors.

    All custom exceptions in the system should inherit from this base class
    to enable consistent error handling and logging.
    """

    def __init__(
        self,
        message: str,
        error_code: str | None = None,
        context: dict[str, Any] | None = None,
        cause: Exception | None = None,
        transient: bool = False,
    ):
        """
        Initialize the RAG error.

        Args:
            message: Human-readable error description
            error_code: Optional error code for programmatic handling
            context: Optional dictionary with error context information
            cause: Optional underlying exception that caused this error
            transient: Whether retrying the failed operation may succeed
        """
        super().__init__(message)
        self.message = message
        self.error_code = error_code
        self.context = context or {}
        self.cause = cause
        self.transient = transient

    def __str__(self) -> str:
        """String representation including error code if present."""
        if self.error_code:
            return f"[{self.error_code}] {self.message}"
        return self.message

    def __repr__(self) -> str:
        """Detailed representation for debugging."""
        return (
            f"{self.__class__.__name__}("
            f"message='{self.message}', "
            f"error_code='{self.error_code}', "
            f"transient={self.transient}, "
            f"context={self.context})"
        )


class ConfigurationError(BaseError):
    """Raised when there are configuration or settings issues."""

    def __init__(
        self,
        message: str,
        config_key: str | None = None,
        expected_type: str | None = None,
        actual_value: Any | None = None,
    ):
        context = {}
        if config_key:
            context["config_key"] = config_key
        if expected_type:
            context["expected_type"] = expected_type
        if actual_value is not None:
            context["actual_value"] = str(actual_value)

        super().__init__(message, error_code="CONFIG_ERROR", context=context)


class EmbeddingModelError(BaseError):
    """Raised when embedding model loading or inference fails."""

    def __init__(
        self,
        message: str,
        model_name: str | None = None,
        operation: str | None = None,
        underlying_error: Exception | None = None,
        transient: bool = False,
    ):
        context = {}
        if model_name:
            context["model_name"] = model_name
        if operation:
            context["operation"] = operation

        super().__init__(
            message,
            error_code="EMBEDDING_ERROR",
            context=context,
            cause=underlying_error,
            transient=transient,
        )


class TextExtractionError(BaseError):
    """Raised when plain text cannot be extracted from a document."""

    def __init__(
        self,
        message: str,
        file_name: str | None = None,
        document_type: str | None = None,
        underlying_error: Exception | None = None,
    ):
        context = {}
        if file_name:
            context["file_name"] = file_name
        if document_type:
            context["document_type"] = document_type

        super().__init__(message, error_code="EXTRACTION_ERROR", context=context, cause=underlying_error)


class ChunkingError(BaseError):
    """Raised when a document cannot be split into chunks."""

    def __init__(
        self,
        message: str,
        document_reference: str | None = None,
        underlying_error: Exception | None = None,
    ):
        context = {}
        if document_reference:
            context["document_reference"] = document_reference

        super().__init__(message, error_code="CHUNKING_ERROR", context=context, cause=underlying_error)


class IndexingError(BaseError):
    """Raised when a document cannot be synchronized with the vector index."""

    def __init__(
        self,
        message: str,
        document_reference: str | None = None,
        stage: str | None = None,
        documents_processed: int | None = None,
        underlying_error: Exception | None = None,
    ):
        context = {}
        if document_reference:
            context["document_reference"] = document_reference
        if stage:
            context["indexing_stage"] = stage
        if documents_processed is not None:
            context["documents_processed"] = documents_processed

        super().__init__(
            message,
            error_code="INDEXING_ERROR",
            context=context,
            cause=underlying_error,
        )


class SearchError(BaseError):
    """Raised when search operation fails."""

    def __init__(
        self,
        message: str,
        query: str | None = None,
        search_stage: str | None = None,
        underlying_error: Exception | None = None,
    ):
        context = {}
        if query:
            context["query"] = query
        if search_stage:
            context["search_stage"] = search_stage

        super().__init__(message, error_code="SEARCH_ERROR", context=context, cause=underlying_error)


class VectorStoreError(BaseError):
    """Raised when vector store operations fail."""

    def __init__(
        self,
        message: str,
        operation: str | None = None,
        collection_name: str | None = None,
        record_count: int | None = None,
        underlying_error: Exception | None = None,
        transient: bool = False,
    ):
        context = {}
        if operation:
            context["operation"] = operation
        if collection_name:
            context["collection_name"] = collection_name
        if record_count is not None:
            context["record_count"] = record_count

        super().__init__(
            message,
            error_code="VECTOR_STORE_ERROR",
            context=context,
            cause=underlying_error,
            transient=transient,
        )


class HashStoreError(BaseError):
    """Raised when the persisted content hash store cannot be read or written."""

    def __init__(
        self,
        message: str,
        operation: str | None = None,
        reference: str | None = None,
        underlying_error: Exception | None = None,
    ):
        context = {}
        if operation:
            context["operation"] = operation
        if reference:
            context["reference"] = reference

        super().__init__(message, error_code="HASH_STORE_ERROR", context=context, cause=underlying_error)


class DocumentSourceError(BaseError):
    """Raised when a document source cannot enumerate or download documents."""

    def __init__(
        self,
        message: str,
        source: str | None = None,
        path: str | None = None,
        status_code: int | None = None,
        underlying_error: Exception | None = None,
        transient: bool = False,
    ):
        context = {}
        if source:
            context["source"] = source
        if path:
            context["path"] = path
        if status_code is not None:
            context["status_code"] = status_code

        super().__init__(
            message,
            error_code="SOURCE_ERROR",
            context=context,
            cause=underlying_error,
            transient=transient,
        )
        self.status_code = status_code


class GenerationError(BaseError):
    """Raised when the answer-generation service fails."""

    def __init__(
        self,
        message: str,
        model_name: str | None = None,
        underlying_error: Exception | None = None,
        transient: bool = False,
    ):
        context = {}
        if model_name:
            context["model_name"] = model_name

        super().__init__(
            message,
            error_code="GENERATION_ERROR",
            context=context,
            cause=underlying_error,
            transient=transient,
        )


class MonitoringError(BaseError):
    """Raised when file monitoring operations fail."""

    def __init__(
        self,
        message: str,
        path: str | None = None,
        operation: str | None = None,
        underlying_error: Exception | None = None,
    ):
        context = {}
        if path:
            context["path"] = path
        if operation:
            context["operation"] = operation

        super().__init__(
            message,
            error_code="MONITORING_ERROR",
            context=context,
            cause=underlying_error,
        )


class OperationCancelledError(BaseError):
    """Raised when a cancellation token is observed at a suspension point."""

    def __init__(self, message: str = "Operation was cancelled", stage: str | None = None):
        context = {}
        if stage:
            context["stage"] = stage

        super().__init__(message, error_code="CANCELLED", context=context)


class InitializationError(BaseError):
    """Raised when system initialization fails."""

    def __init__(
        self,
        message: str,
        component: str | None = None,
        underlying_error: Exception | None = None,
    ):
        context = {}
        if component:
            context["component"] = component

        super().__init__(
            message,
            error_code="INITIALIZATION_ERROR",
            context=context,
            cause=underlying_error,
        )