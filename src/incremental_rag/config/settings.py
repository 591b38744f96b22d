"""
Configuration management for the incremental RAG system.

Handles environment variables, configuration file loading, and provides
default settings with validation for all system components.
"""

import fnmatch
import logging.config
import os
from enum import Enum
from pathlib import Path
from typing import Any

import torch
from pydantic import Field, SecretStr, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from incremental_rag.models.exceptions import ConfigurationError


class LogLevel(str, Enum):
    """Logging level enumeration."""

    DEBUG = "DEBUG"
    INFO = "INFO"
    WARNING = "WARNING"
    ERROR = "ERROR"
    CRITICAL = "CRITICAL"


class EmbeddingDevice(str, Enum):
    """Device options for embedding model inference."""

    CPU = "cpu"
    CUDA = "cuda"
    MPS = "mps"  # Apple Metal Performance Shaders
    AUTO = "auto"  # Automatically detect best available


class EmbeddingBackend(str, Enum):
    """Embedding service implementations."""

    HUGGINGFACE = "huggingface"
    OPENAI = "openai"


class MetricType(str, Enum):
    """Similarity metrics supported by the vector index."""

    COSINE = "COSINE"
    IP = "IP"
    L2 = "L2"


class RAGConfig(BaseSettings):
    """
    Central configuration class for the incremental RAG system.

    Handles all configuration options with environment variable support,
    validation, and sensible defaults for development and production use.
    """

    model_config = SettingsConfigDict(
        env_prefix="INCREMENTAL_RAG_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        use_enum_values=True,
    )

    # === Milvus Vector Database Configuration ===
    milvus_host: str = Field(default="localhost", description="Milvus server hostname or IP address")
    milvus_port: int = Field(default=19530, ge=1, le=65535, description="Milvus server port")
    milvus_user: str | None = Field(default=None, description="Milvus username (if authentication enabled)")
    milvus_password: SecretStr | None = Field(default=None, description="Milvus password (if authentication enabled)")
    milvus_db_name: str = Field(default="default", description="Milvus database name")
    milvus_collection_name: str = Field(default="incremental_rag_chunks", description="Milvus collection for chunks")
    milvus_metric_type: MetricType = Field(
        default=MetricType.COSINE, description="Similarity metric shared by ingestion and query"
    )
    milvus_index_type: str = Field(default="HNSW", description="Milvus vector index type")
    milvus_connection_timeout: int = Field(default=30, ge=5, le=300, description="Connection timeout in seconds")

    # === Embedding Configuration ===
    embedding_backend: EmbeddingBackend = Field(
        default=EmbeddingBackend.HUGGINGFACE, description="Embedding service implementation"
    )
    embedding_model: str = Field(
        default="sentence-transformers/all-MiniLM-L6-v2", description="HuggingFace model identifier for embeddings"
    )
    embedding_device: EmbeddingDevice = Field(
        default=EmbeddingDevice.AUTO, description="Device for embedding model inference"
    )
    embedding_dimension: int = Field(default=384, ge=1, le=8192, description="Dimension of embedding vectors")
    embedding_batch_size: int = Field(default=32, ge=1, le=256, description="Batch size for embedding generation")
    embedding_cache_dir: Path | None = Field(default=None, description="Directory for caching embedding models")

    # === OpenAI-compatible Service Configuration ===
    openai_api_key: SecretStr | None = Field(default=None, description="API key for the OpenAI-compatible service")
    openai_base_url: str | None = Field(default=None, description="Base URL for OpenAI-compatible providers")
    openai_embedding_model: str = Field(default="text-embedding-3-small", description="Remote embedding model")
    openai_chat_model: str = Field(default="gpt-4o-mini", description="Answer-generation model")
    openai_timeout_seconds: float = Field(default=30.0, gt=0, le=600, description="Request timeout in seconds")
    answer_temperature: float = Field(default=0.2, ge=0.0, le=2.0, description="Sampling temperature for answers")
    answer_max_tokens: int = Field(default=1024, ge=1, le=32768, description="Maximum tokens per answer")

    # === Document Processing Configuration ===
    chunk_size: int = Field(default=1000, ge=50, le=16000, description="Maximum characters per chunk")
    chunk_overlap: int = Field(default=100, ge=0, le=4000, description="Characters shared by adjacent chunks")
    max_file_size_mb: int = Field(default=10, ge=1, le=100, description="Maximum file size to process (MB)")
    supported_file_extensions: list[str] = Field(
        default=[".md", ".markdown", ".txt"], description="File extensions to process"
    )
    ignored_patterns: list[str] = Field(
        default=["*.tmp", "*.swp", "*/.git/*", "*/.DS_Store"], description="File patterns to ignore"
    )

    # === Search Configuration ===
    default_search_limit: int = Field(default=5, ge=1, le=100, description="Default number of chunks to retrieve")
    max_search_limit: int = Field(default=100, ge=1, le=1000, description="Maximum allowed search result limit")

    # === Resilience Configuration ===
    retry_max_attempts: int = Field(default=4, ge=1, le=20, description="Attempts per call, including the first")
    retry_initial_backoff_seconds: float = Field(default=1.0, ge=0.0, le=60.0, description="First retry delay")
    retry_max_backoff_seconds: float = Field(default=20.0, ge=0.0, le=600.0, description="Upper bound on retry delay")

    # === Ingestion Configuration ===
    hash_store_path: Path = Field(
        default=Path("data/document_hashes.db"), description="SQLite file holding content hash records"
    )
    path_spec_dir: Path = Field(default=Path("config"), description="Directory of <SourceName>.json path specs")
    recover_references_from_index: bool = Field(
        default=False, description="Also read previously seen references from the vector index"
    )
    onedrive_graph_url: str = Field(default="https://graph.microsoft.com/v1.0", description="Microsoft Graph URL")
    onedrive_access_token: SecretStr | None = Field(default=None, description="Bearer token for Microsoft Graph")
    chat_history_max_messages: int = Field(default=10, ge=0, le=200, description="Conversation turns kept")

    # === File Monitoring Configuration ===
    monitoring_enabled: bool = Field(default=True, description="Enable file system monitoring for re-ingestion")
    monitoring_debounce_seconds: float = Field(
        default=2.0, ge=0.0, le=300.0, description="Quiet period before a change triggers a pass"
    )

    # === Logging Configuration ===
    log_level: LogLevel = Field(default=LogLevel.INFO, description="Logging level")
    log_file: Path | None = Field(default=None, description="Log file path (stdout if None)")
    log_format: str = Field(
        default="%(asctime)s - %(name)s - %(levelname)s - %(message)s", description="Log message format"
    )

    @field_validator('embedding_cache_dir', mode='before')
    @classmethod
    def validate_embedding_cache_dir(cls, v):
        """Set default cache directory if not provided."""
        if v is None:
            cache_home = os.environ.get('XDG_CACHE_HOME')
            if cache_home:
                return Path(cache_home) / "incremental_rag" / "models"
            else:
                return Path.home() / ".cache" / "incremental_rag" / "models"
        return Path(v)

    @field_validator('supported_file_extensions')
    @classmethod
    def validate_file_extensions(cls, v):
        """Ensure file extensions start with dot."""
        validated = []
        for ext in v:
            if not ext.startswith('.'):
                ext = f'.{ext}'
            validated.append(ext.lower())
        return validated

    @model_validator(mode='after')
    def validate_chunk_settings(self):
        """Ensure chunk overlap is less than chunk size."""
        if self.chunk_overlap >= self.chunk_size:
            raise ConfigurationError(
                "chunk_overlap must be less than chunk_size",
                config_key="chunk_overlap",
                expected_type="int < chunk_size",
                actual_value=self.chunk_overlap,
            )
        return self

    @model_validator(mode='after')
    def validate_search_limits(self):
        """Ensure default search limit doesn't exceed maximum."""
        if self.default_search_limit > self.max_search_limit:
            raise ConfigurationError(
                "default_search_limit cannot exceed max_search_limit",
                config_key="default_search_limit",
                expected_type="int <= max_search_limit",
                actual_value=self.default_search_limit,
            )
        return self

    @model_validator(mode='after')
    def validate_retry_backoff(self):
        """Ensure the initial retry delay doesn't exceed the maximum delay."""
        if self.retry_initial_backoff_seconds > self.retry_max_backoff_seconds:
            raise ConfigurationError(
                "retry_initial_backoff_seconds cannot exceed retry_max_backoff_seconds",
                config_key="retry_initial_backoff_seconds",
                expected_type="float <= retry_max_backoff_seconds",
                actual_value=self.retry_initial_backoff_seconds,
            )
        return self

    def get_milvus_connection_args(self) -> dict[str, Any]:
        """Get Milvus connection arguments for langchain-milvus."""
        args: dict[str, Any] = {
            "uri": f"http://{self.milvus_host}:{self.milvus_port}",
            "db_name": self.milvus_db_name,
            "timeout": self.milvus_connection_timeout,
        }

        if self.milvus_user:
            args["user"] = self.milvus_user
        if self.milvus_password:
            args["password"] = self.milvus_password.get_secret_value()

        return args

    def get_index_params(self) -> dict[str, Any]:
        """Get vector index parameters; the metric is shared with search."""
        return {"index_type": self.milvus_index_type, "metric_type": self.metric_type_value}

    @property
    def metric_type_value(self) -> str:
        """Metric name as a plain string, regardless of enum handling."""
        return self.milvus_metric_type.value if isinstance(self.milvus_metric_type, Enum) else self.milvus_metric_type

    def resolve_embedding_device(self) -> str:
        """Resolve the actual device to use for embedding inference."""
        device = self.embedding_device.value if isinstance(self.embedding_device, Enum) else self.embedding_device
        if device == EmbeddingDevice.AUTO.value:
            if torch.cuda.is_available():
                return "cuda"
            elif hasattr(torch.backends, 'mps') and torch.backends.mps.is_available():
                return "mps"
            return "cpu"
        return device

    def is_file_supported(self, file_path: str | Path) -> bool:
        """Check if a file type is supported for processing."""
        extension = Path(file_path).suffix.lower()
        return extension in self.supported_file_extensions

    def should_ignore_file(self, file_path: str | Path) -> bool:
        """Check if a file should be ignored based on patterns."""
        path_str = Path(file_path).as_posix()
        return any(fnmatch.fnmatch(path_str, pattern) for pattern in self.ignored_patterns)

    def get_log_config(self) -> dict[str, Any]:
        """Get logging configuration dictionary."""
        level = self.log_level.value if isinstance(self.log_level, Enum) else self.log_level
        config = {
            "version": 1,
            "disable_existing_loggers": False,
            "formatters": {"standard": {"format": self.log_format}},
            "handlers": {
                "default": {
                    "level": level,
                    "formatter": "standard",
                    "class": "logging.StreamHandler" if not self.log_file else "logging.FileHandler",
                }
            },
            "loggers": {"incremental_rag": {"handlers": ["default"], "level": level, "propagate": False}},
        }

        if self.log_file:
            config["handlers"]["default"]["filename"] = str(self.log_file)

        return config


def configure_logging(config: RAGConfig) -> None:
    """Apply the configured logging setup to the ``incremental_rag`` logger tree."""
    logging.config.dictConfig(config.get_log_config())


# Global configuration instance
_config: RAGConfig | None = None


def get_config() -> RAGConfig:
    """
    Get the global configuration instance.

    Creates a new instance on first call and reuses it for subsequent calls.
    """
    global _config
    if _config is None:
        _config = RAGConfig()
    return _config


def reload_config() -> RAGConfig:
    """Force reload the configuration from environment/files."""
    global _config
    _config = RAGConfig()
    return _config


def set_config(config: RAGConfig) -> None:
    """
    Set a custom configuration instance.

    Primarily used for testing or advanced configuration scenarios.
    """
    global _config
    _config = config
