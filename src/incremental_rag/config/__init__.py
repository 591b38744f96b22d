"""Configuration management and settings."""

from incremental_rag.config.settings import (
    EmbeddingBackend,
    EmbeddingDevice,
    MetricType,
    RAGConfig,
    configure_logging,
    get_config,
    reload_config,
    set_config,
)

__all__ = [
    "RAGConfig",
    "get_config",
    "reload_config",
    "set_config",
    "configure_logging",
    "EmbeddingBackend",
    "EmbeddingDevice",
    "MetricType",
]
