"""
Monitoring coordinator for automatic re-ingestion.

Connects file watching to the RAG engine: every debounced batch of file
changes triggers one ingestion pass, and passes never overlap.
"""

import asyncio
import logging
from pathlib import Path
from typing import Any

from incremental_rag.models import IngestionResult, MonitoringError
from incremental_rag.monitoring.file_watcher import FileChangeEvent, SourceChangeWatcher

logger = logging.getLogger(__name__)


class MonitoringCoordinator:
    """
    Coordinates file watching and ingestion passes.

    Ingestion is incremental, so a full pass after a change only re-embeds the
    documents that actually changed.
    """

    def __init__(self, config, engine, file_watcher: SourceChangeWatcher | None = None):
        """
        Initialize the monitoring coordinator.

        Args:
            config: RAG configuration
            engine: RAG engine whose ``process_files`` runs each pass
            file_watcher: Optional file watcher (will create if not provided)
        """
        self.config = config
        self.engine = engine
        self.file_watcher = file_watcher or SourceChangeWatcher(config, on_change=self._handle_changes)

        self._pass_lock = asyncio.Lock()
        self._monitoring_active = False
        self._monitored_directories: list[Path] = []

        self._stats: dict[str, Any] = {
            "passes": 0,
            "failed_passes": 0,
            "changes_received": 0,
            "documents_failed": 0,
            "last_result": None,
            "errors": [],
        }

    async def start_monitoring(self, directories: list[Path], initial_pass: bool = True) -> None:
        """
        Start watching directories and re-ingest whenever they change.

        Args:
            directories: Directories to monitor
            initial_pass: Whether to run an ingestion pass before watching

        Raises:
            MonitoringError: If monitoring is disabled or cannot be started
        """
        if not self.config.monitoring_enabled:
            raise MonitoringError("File monitoring is disabled in configuration", operation="start_monitoring")
        if not directories:
            raise MonitoringError("No directories to monitor", operation="start_monitoring")

        logger.info("Starting monitoring for %d directories (initial_pass: %s)", len(directories), initial_pass)

        if initial_pass:
            await self.perform_manual_pass()

        for directory in directories:
            self.file_watcher.start_watching(directory)
            if directory not in self._monitored_directories:
                self._monitored_directories.append(directory)

        self._monitoring_active = True
        logger.info("Monitoring started for: %s", ", ".join(str(d) for d in directories))

    def stop_monitoring(self) -> None:
        """Stop all file monitoring."""
        if not self._monitoring_active:
            logger.debug("Monitoring not active, nothing to stop")
            return

        self.file_watcher.stop_watching()
        self._monitoring_active = False
        self._monitored_directories.clear()
        logger.info("File monitoring stopped")

    async def _handle_changes(self, events: list[FileChangeEvent]) -> None:
        self._stats["changes_received"] += len(events)
        logger.info("Re-ingesting after %d file changes", len(events))

        try:
            await self.perform_manual_pass()
        except Exception as e:
            # Reported through the stats; the next change triggers another pass
            logger.error("Ingestion pass after file changes failed: %s", e)

    async def perform_manual_pass(self) -> IngestionResult:
        """
        Run one ingestion pass, waiting for any pass already in progress.

        Returns:
            Result of the pass

        Raises:
            Exception: Whatever the ingestion pass raised
        """
        async with self._pass_lock:
            try:
                result = await self.engine.process_files()
            except Exception as e:
                self._stats["failed_passes"] += 1
                self._record_error(str(e))
                raise

        self._stats["passes"] += 1
        self._stats["documents_failed"] += result.failed
        self._stats["last_result"] = str(result)
        for failure in result.failures:
            self._record_error(f"{failure.reference}: {failure.error}")
        for failure in result.source_failures:
            self._record_error(f"{failure.source_prefix} ({failure.stage}): {failure.error}")

        return result

    def _record_error(self, message: str) -> None:
        self._stats["errors"].append(message)
        # Keep only the last 100 errors
        if len(self._stats["errors"]) > 100:
            self._stats["errors"] = self._stats["errors"][-100:]

    @property
    def is_monitoring(self) -> bool:
        """Check if currently monitoring for changes."""
        return self._monitoring_active

    @property
    def pass_in_progress(self) -> bool:
        return self._pass_lock.locked()

    def get_monitored_directories(self) -> list[str]:
        """Get list of currently monitored directories."""
        return [str(path) for path in self._monitored_directories]

    def get_monitoring_stats(self) -> dict[str, Any]:
        """
        Get monitoring statistics.

        Returns:
            Dictionary with monitoring statistics
        """
        return {
            "monitoring_active": self._monitoring_active,
            "monitored_directories": self.get_monitored_directories(),
            "pass_in_progress": self.pass_in_progress,
            "file_watcher_status": {
                "is_watching": self.file_watcher.is_watching,
                "watched_paths": self.file_watcher.get_watched_paths(),
                "pending_events": self.file_watcher.get_pending_events_count(),
            },
            "processing_stats": {**self._stats, "errors": list(self._stats["errors"])},
            "configuration": {
                "monitoring_enabled": self.config.monitoring_enabled,
                "debounce_seconds": self.config.monitoring_debounce_seconds,
            },
        }
