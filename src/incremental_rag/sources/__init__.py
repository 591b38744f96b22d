"""Document sources that feed the ingestion pipeline."""

from incremental_rag.sources.local_filesystem import LocalFileSystemSource
from incremental_rag.sources.onedrive import OneDriveSource
from incremental_rag.sources.path_provider import PathSpecProvider

__all__ = [
    "LocalFileSystemSource",
    "OneDriveSource",
    "PathSpecProvider",
]
