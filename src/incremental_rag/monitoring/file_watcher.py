"""
File system watcher for local document sources.

Monitors the directories covered by local path specs and turns bursts of
file additions, modifications and deletions into a single debounced
notification, so one ingestion pass handles a whole batch of edits.
"""

import asyncio
import concurrent.futures
import logging
import time
from collections.abc import Awaitable, Callable
from pathlib import Path

from watchdog.events import FileSystemEvent, FileSystemEventHandler
from watchdog.observers import Observer

from incremental_rag.models import MonitoringError

logger = logging.getLogger(__name__)


class FileChangeEvent:
    """Represents a file system change event."""

    def __init__(self, event_type: str, file_path: Path):
        self.event_type = event_type  # 'created', 'modified', 'deleted'
        self.file_path = file_path
        self.timestamp = time.time()

    def __str__(self) -> str:
        return f"FileChangeEvent({self.event_type}: {self.file_path})"


ChangeCallback = Callable[[list[FileChangeEvent]], Awaitable[None] | None]


class SourceChangeWatcher(FileSystemEventHandler):
    """
    Watchdog handler that batches changes to supported files.

    Every relevant event restarts the debounce timer; once the directories have
    been quiet for ``debounce_seconds`` the callback receives the latest event
    per file.
    """

    def __init__(self, config, on_change: ChangeCallback, debounce_seconds: float | None = None):
        """
        Initialize the watcher.

        Args:
            config: RAG configuration with file support settings
            on_change: Callback receiving each debounced batch of events
            debounce_seconds: Quiet period before a batch is delivered;
                defaults to ``config.monitoring_debounce_seconds``
        """
        super().__init__()
        self.config = config
        self.on_change = on_change
        self.debounce_seconds = (
            config.monitoring_debounce_seconds if debounce_seconds is None else debounce_seconds
        )

        self._pending_events: dict[str, FileChangeEvent] = {}
        self._debounce_future: concurrent.futures.Future | None = None

        self._observer: Observer | None = None
        self._watched_paths: set[str] = set()

        # Watchdog calls handlers from its own thread; batches are delivered on this loop
        self._loop: asyncio.AbstractEventLoop | None = None

    def start_watching(self, directory_path: Path, recursive: bool = True) -> None:
        """
        Start watching a directory for file changes.

        Raises:
            MonitoringError: If monitoring cannot be started
        """
        if not directory_path.is_dir():
            raise MonitoringError(
                f"Not an existing directory: {directory_path}", path=str(directory_path), operation="start_watching"
            )

        try:
            self._loop = asyncio.get_running_loop()
        except RuntimeError as e:
            raise MonitoringError(
                "start_watching must be called from a running event loop",
                path=str(directory_path),
                operation="start_watching",
                underlying_error=e,
            ) from e

        try:
            if self._observer is None:
                self._observer = Observer()

            directory_str = str(directory_path.resolve())
            if directory_str not in self._watched_paths:
                self._observer.schedule(self, directory_str, recursive=recursive)
                self._watched_paths.add(directory_str)
                logger.info("Started monitoring %s (recursive: %s)", directory_path, recursive)

            if not self._observer.is_alive():
                self._observer.start()
                logger.info("File monitoring observer started")

        except OSError as e:
            logger.error("Failed to start file monitoring: %s", e)
            raise MonitoringError(
                f"Failed to start monitoring: {e}",
                path=str(directory_path),
                operation="start_watching",
                underlying_error=e,
            ) from e

    def stop_watching(self) -> None:
        """Stop all file monitoring and drop pending events."""
        if self._observer is not None and self._observer.is_alive():
            self._observer.stop()
            self._observer.join(timeout=5.0)
            logger.info("File monitoring stopped")
        self._observer = None

        if self._debounce_future is not None and not self._debounce_future.done():
            self._debounce_future.cancel()
        self._debounce_future = None

        self._pending_events.clear()
        self._watched_paths.clear()

    def on_created(self, event: FileSystemEvent) -> None:
        if not event.is_directory:
            self._handle_file_event("created", Path(event.src_path))

    def on_modified(self, event: FileSystemEvent) -> None:
        if not event.is_directory:
            self._handle_file_event("modified", Path(event.src_path))

    def on_deleted(self, event: FileSystemEvent) -> None:
        if not event.is_directory:
            self._handle_file_event("deleted", Path(event.src_path))

    def on_moved(self, event: FileSystemEvent) -> None:
        if not event.is_directory:
            self._handle_file_event("deleted", Path(event.src_path))
            self._handle_file_event("created", Path(event.dest_path))

    def _handle_file_event(self, event_type: str, file_path: Path) -> None:
        """Record an event and restart the debounce timer."""
        if not self._should_process_file(file_path):
            return

        logger.debug("File event: %s %s", event_type, file_path)

        file_key = str(file_path)
        existing = self._pending_events.get(file_key)
        # A file created and then modified within one batch is still new
        if not (existing and existing.event_type == "created" and event_type == "modified"):
            self._pending_events[file_key] = FileChangeEvent(event_type, file_path)

        if self._debounce_future is not None and not self._debounce_future.done():
            self._debounce_future.cancel()

        if self._loop is None or self._loop.is_closed():
            logger.error("No event loop available to deliver change for %s", file_key)
            return

        self._debounce_future = asyncio.run_coroutine_threadsafe(self._deliver_after_quiet_period(), self._loop)

    async def _deliver_after_quiet_period(self) -> None:
        await asyncio.sleep(self.debounce_seconds)

        events = list(self._pending_events.values())
        self._pending_events.clear()
        if not events:
            return

        logger.info("Delivering %d file changes", len(events))
        try:
            result = self.on_change(events)
            if asyncio.iscoroutine(result):
                await result
        except Exception as e:
            logger.error("Change callback failed for %d events: %s", len(events), e)

    def _should_process_file(self, file_path: Path) -> bool:
        return self.config.is_file_supported(file_path) and not self.config.should_ignore_file(file_path)

    @property
    def is_watching(self) -> bool:
        """Check if currently watching for file changes."""
        return self._observer is not None and self._observer.is_alive()

    def get_watched_paths(self) -> list[str]:
        """Get list of currently watched directory paths."""
        return list(self._watched_paths)

    def get_pending_events_count(self) -> int:
        """Get count of events waiting for the debounce period to end."""
        return len(self._pending_events)
