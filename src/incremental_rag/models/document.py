"""
Data models for documents, chunks and ingestion bookkeeping.

These models represent the core data structures that flow through an
ingestion pass: raw documents from a source, the chunks produced for them,
and the persisted content hash records used for change detection.
"""

import hashlib
from datetime import UTC, datetime
from enum import Enum
from pathlib import PurePath

from pydantic import BaseModel, ConfigDict, Field, computed_field, field_validator


class ChangeDecision(str, Enum):
    """Outcome of comparing a document's content hash with the previous run."""

    NEW = "new"
    UNCHANGED = "unchanged"
    MODIFIED = "modified"


class PathSpec(BaseModel):
    """Inclusion rule describing one location a document source should scan."""

    path: str = Field(..., min_length=1, description="Location to scan (file or folder)")
    description: str = Field(default="", description="Human-readable description of the location")

    model_config = ConfigDict(frozen=True)


class RawDocument(BaseModel):
    """
    A document as yielded by a document source.

    The reference is unique per source and stable across runs, and is used as
    the key for change detection and for locating the document's chunks.
    """

    source_prefix: str = Field(..., min_length=1, description="Prefix identifying the source")
    path: str = Field(..., min_length=1, description="Source-specific path of the document")
    content: bytes = Field(..., repr=False, description="Raw document bytes")
    description: str = Field(default="", description="Description of the path spec it came from")

    @computed_field
    @property
    def reference(self) -> str:
        """Stable, source-qualified reference used as the change detection key."""
        return make_reference(self.source_prefix, self.path)

    @computed_field
    @property
    def file_name(self) -> str:
        """Get the file name without folder."""
        return PurePath(self.path).name

    def __str__(self) -> str:
        return f"RawDocument({self.reference}, {len(self.content)} bytes)"


class TextChunk(BaseModel):
    """
    Represents a bounded slice of a document's text and its embedding.

    Chunk ids are derived from the document reference and the chunk position,
    so re-chunking an unchanged document produces the same ids.
    """

    id: str = Field(..., min_length=1, description="Unique chunk identifier")
    content: str = Field(..., min_length=1, description="Chunk text")
    document_reference: str = Field(..., min_length=1, description="Reference of the owning document")
    source_prefix: str = Field(default="", description="Prefix of the source the document came from")
    file_name: str = Field(default="", description="File name of the owning document")
    chunk_index: int = Field(default=0, ge=0, description="Order within document")
    embedding: list[float] = Field(default_factory=list, repr=False, description="Embedding vector")

    @computed_field
    @property
    def content_length(self) -> int:
        """Get the character length of the chunk text."""
        return len(self.content)

    def has_embedding(self) -> bool:
        """Check whether the chunk carries a populated embedding."""
        return bool(self.embedding)

    def __str__(self) -> str:
        preview = self.content[:100] + "..." if len(self.content) > 100 else self.content
        return f"Chunk({self.document_reference}#{self.chunk_index}: {preview})"

    model_config = ConfigDict(validate_assignment=True)


class ContentHash(BaseModel):
    """Persisted record of the content hash last indexed for a document."""

    reference: str = Field(..., min_length=1, description="Document reference")
    source_prefix: str = Field(..., min_length=1, description="Prefix of the owning source")
    hash: str = Field(..., min_length=64, max_length=64, description="SHA-256 content hash")
    last_seen: datetime = Field(
        default_factory=lambda: datetime.now(UTC),
        description="When the document was last indexed",
    )

    @field_validator('hash')
    @classmethod
    def validate_hash(cls, v):
        """Ensure content hash is valid SHA-256."""
        if not all(c in '0123456789abcdef' for c in v.lower()):
            raise ValueError("hash must be a valid SHA-256 hex string")
        return v.lower()


class IngestionProgress(BaseModel):
    """Ephemeral progress signal surfaced to a caller-supplied progress sink."""

    documents_processed: int = Field(default=0, ge=0)
    total_documents: int = Field(default=0, ge=0)
    current_description: str = Field(default="")

    def __str__(self) -> str:
        return f"[{self.documents_processed}/{self.total_documents}] {self.current_description}"


class DocumentFailure(BaseModel):
    """A document whose ingestion failed during a pass."""

    reference: str
    error: str


class SourceFailure(BaseModel):
    """A source-level failure: enumeration aborted or the deletion sweep failed."""

    source_prefix: str
    stage: str
    error: str


class IngestionResult(BaseModel):
    """Statistics for one complete ingestion pass."""

    sources_processed: int = 0
    new: int = 0
    modified: int = 0
    unchanged: int = 0
    deleted: int = 0
    empty: int = Field(default=0, description="Documents with no extractable text; nothing is indexed for them")
    chunks_indexed: int = 0
    sweeps_skipped: list[str] = Field(default_factory=list)
    failures: list[DocumentFailure] = Field(default_factory=list)
    source_failures: list[SourceFailure] = Field(default_factory=list)
    started_at: datetime = Field(default_factory=lambda: datetime.now(UTC))
    completed_at: datetime | None = None

    @computed_field
    @property
    def failed(self) -> int:
        """Number of documents that failed to ingest."""
        return len(self.failures)

    @computed_field
    @property
    def documents_seen(self) -> int:
        """Number of documents enumerated across all sources."""
        return self.new + self.modified + self.unchanged + self.empty + self.failed

    def record_failure(self, reference: str, error: Exception) -> None:
        self.failures.append(DocumentFailure(reference=reference, error=str(error)))

    def record_source_failure(self, source_prefix: str, stage: str, error: Exception) -> None:
        self.source_failures.append(SourceFailure(source_prefix=source_prefix, stage=stage, error=str(error)))

    def __str__(self) -> str:
        return (
            f"IngestionResult(new={self.new}, modified={self.modified}, unchanged={self.unchanged}, "
            f"deleted={self.deleted}, empty={self.empty}, failed={self.failed}, "
            f"source_failures={len(self.source_failures)})"
        )


def make_reference(source_prefix: str, path: str) -> str:
    """Build the stable reference for a document path within a source."""
    return f"{source_prefix}@{path}"


def make_chunk_id(document_reference: str, chunk_index: int) -> str:
    """Derive a deterministic chunk id from its document reference and position."""
    return hashlib.sha256(f"{document_reference}#{chunk_index}".encode()).hexdigest()
