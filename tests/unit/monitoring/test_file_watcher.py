"""Unit tests for file watcher implementation."""

import asyncio
from pathlib import Path
from unittest.mock import AsyncMock, Mock, patch

import pytest
from incremental_rag.models import MonitoringError
from incremental_rag.monitoring import FileChangeEvent, SourceChangeWatcher
from watchdog.events import (
    DirCreatedEvent,
    FileCreatedEvent,
    FileDeletedEvent,
    FileModifiedEvent,
    FileMovedEvent,
)


class TestFileChangeEvent:
    """Test cases for FileChangeEvent."""

    def test_create_event(self):
        event = FileChangeEvent("created", Path("/test/file.md"))

        assert event.event_type == "created"
        assert event.file_path == Path("/test/file.md")
        assert event.timestamp > 0
        assert str(event) == "FileChangeEvent(created: /test/file.md)"


class TestSourceChangeWatcher:
    """Test cases for SourceChangeWatcher."""

    @pytest.fixture
    def on_change(self):
        return AsyncMock()

    @pytest.fixture
    def watcher(self, config, on_change):
        return SourceChangeWatcher(config, on_change=on_change, debounce_seconds=0.05)

    def test_initialization(self, watcher):
        assert watcher.debounce_seconds == 0.05
        assert watcher._observer is None
        assert not watcher.is_watching
        assert watcher.get_watched_paths() == []

    def test_default_debounce_from_config(self, config, on_change):
        assert SourceChangeWatcher(config, on_change).debounce_seconds == config.monitoring_debounce_seconds

    @pytest.mark.asyncio
    @patch('incremental_rag.monitoring.file_watcher.Observer')
    async def test_start_watching_success(self, mock_observer_class, watcher, tmp_path):
        mock_observer = Mock()
        mock_observer.is_alive.return_value = False
        mock_observer_class.return_value = mock_observer

        watcher.start_watching(tmp_path)

        mock_observer.schedule.assert_called_once_with(watcher, str(tmp_path.resolve()), recursive=True)
        mock_observer.start.assert_called_once()
        assert watcher.get_watched_paths() == [str(tmp_path.resolve())]

    @pytest.mark.asyncio
    async def test_start_watching_nonexistent_directory(self, watcher, tmp_path):
        with pytest.raises(MonitoringError):
            watcher.start_watching(tmp_path / "missing")

    def test_start_watching_requires_event_loop(self, watcher, tmp_path):
        with pytest.raises(MonitoringError):
            watcher.start_watching(tmp_path)

    @pytest.mark.asyncio
    @patch('incremental_rag.monitoring.file_watcher.Observer')
    async def test_stop_watching(self, mock_observer_class, watcher, tmp_path):
        mock_observer = Mock()
        mock_observer.is_alive.side_effect = [False, True]
        mock_observer_class.return_value = mock_observer
        watcher.start_watching(tmp_path)

        watcher.stop_watching()

        mock_observer.stop.assert_called_once()
        mock_observer.join.assert_called_once()
        assert watcher.get_watched_paths() == []

    @pytest.mark.asyncio
    async def test_burst_of_events_delivered_once(self, watcher, on_change, tmp_path):
        """Test that changes within the quiet period are batched into one callback."""
        watcher._loop = asyncio.get_running_loop()
        first = tmp_path / "a.md"
        second = tmp_path / "b.txt"

        watcher.on_created(FileCreatedEvent(str(first)))
        watcher.on_modified(FileModifiedEvent(str(first)))
        watcher.on_deleted(FileDeletedEvent(str(second)))
        assert watcher.get_pending_events_count() == 2

        await asyncio.sleep(0.2)

        on_change.assert_awaited_once()
        events = {event.file_path: event.event_type for event in on_change.await_args.args[0]}
        assert events == {first: "created", second: "deleted"}
        assert watcher.get_pending_events_count() == 0

    @pytest.mark.asyncio
    async def test_unsupported_and_directory_events_ignored(self, watcher, on_change, tmp_path):
        watcher._loop = asyncio.get_running_loop()

        watcher.on_created(FileCreatedEvent(str(tmp_path / "photo.png")))
        watcher.on_created(FileCreatedEvent(str(tmp_path / "draft.tmp")))
        watcher.on_created(DirCreatedEvent(str(tmp_path / "folder")))

        await asyncio.sleep(0.1)

        on_change.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_move_is_delete_plus_create(self, watcher, on_change, tmp_path):
        watcher._loop = asyncio.get_running_loop()

        watcher.on_moved(FileMovedEvent(str(tmp_path / "old.md"), str(tmp_path / "new.md")))
        await asyncio.sleep(0.2)

        events = {event.file_path.name: event.event_type for event in on_change.await_args.args[0]}
        assert events == {"old.md": "deleted", "new.md": "created"}

    @pytest.mark.asyncio
    async def test_callback_errors_are_contained(self, watcher, on_change, tmp_path):
        watcher._loop = asyncio.get_running_loop()
        on_change.side_effect = RuntimeError("pass failed")

        watcher.on_created(FileCreatedEvent(str(tmp_path / "a.md")))
        await asyncio.sleep(0.2)

        on_change.assert_awaited_once()
        assert watcher.get_pending_events_count() == 0
