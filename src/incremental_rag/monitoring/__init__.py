"""
Monitoring package for file system change detection.

This package watches local document directories and runs an ingestion
pass when files are added, modified, or deleted.
"""

from .file_watcher import FileChangeEvent, SourceChangeWatcher
from .monitoring_coordinator import MonitoringCoordinator

__all__ = [
    "FileChangeEvent",
    "SourceChangeWatcher",
    "MonitoringCoordinator",
]
