"""
Data models for search queries, results and conversations.

These models handle query requests, ranked retrieval results and the chat
history passed to the answer-generation service.
"""

from datetime import UTC, datetime
from enum import Enum
from uuid import UUID, uuid4

from pydantic import BaseModel, ConfigDict, Field, computed_field, field_validator


class ChatRole(str, Enum):
    """Speaker of a chat message."""

    SYSTEM = "system"
    USER = "user"
    ASSISTANT = "assistant"


class ChatMessage(BaseModel):
    """A single turn of conversation history."""

    role: ChatRole
    content: str

    model_config = ConfigDict(use_enum_values=True, frozen=True)


class QueryResult(BaseModel):
    """
    Represents a single nearest-neighbor match for a query.

    Results are returned by the vector index in rank order; the score is the
    raw value reported by the index under its configured metric.
    """

    content: str = Field(..., min_length=1, description="Matching chunk content")
    document_reference: str = Field(..., description="Reference of the document the chunk belongs to")
    chunk_id: str = Field(default="", description="Unique chunk identifier")
    chunk_index: int = Field(default=0, ge=0, description="Position within document")
    score: float = Field(default=0.0, description="Similarity score reported by the vector index")

    @computed_field
    @property
    def content_preview(self) -> str:
        """Get a truncated preview of the chunk content."""
        max_length = 200
        if len(self.content) <= max_length:
            return self.content
        return self.content[:max_length] + "..."

    def __str__(self) -> str:
        return f"Result({self.score:.3f}: {self.content_preview})"


class SearchRequest(BaseModel):
    """Represents a search request with query parameters."""

    query: str = Field(..., min_length=1, description="Natural language search query")
    limit: int | None = Field(default=None, ge=1, le=1000, description="Top-k override")

    request_id: UUID = Field(default_factory=uuid4, description="Unique request identifier")
    timestamp: datetime = Field(
        default_factory=lambda: datetime.now(UTC),
        description="Request timestamp",
    )

    @field_validator('query')
    @classmethod
    def validate_query(cls, v):
        """Validate and clean the query string."""
        query = ' '.join(v.split())
        if not query:
            raise ValueError("Query cannot be empty or whitespace only")
        return query

    def __str__(self) -> str:
        return f"SearchRequest('{self.query}', limit={self.limit})"
