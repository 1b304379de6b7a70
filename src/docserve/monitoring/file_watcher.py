"""
Watchdog adapter delivering raw filesystem events to the event loop.

Watchdog calls handlers on its own observer thread. Handlers must never
block there, so each event is handed to the loop through a bounded queue
and dropped when the queue is full. Dropping is safe: reconciliation
always re-derives state from disk rather than trusting event payloads.
"""

import asyncio
import logging
import threading
from pathlib import Path

from watchdog.events import FileSystemEvent, FileSystemEventHandler
from watchdog.observers import Observer

from docserve.models import EventKind, RawEvent, RenameMode, WatchSetupError

logger = logging.getLogger(__name__)


class DocumentWatcher(FileSystemEventHandler):
    """
    File system watcher for document trees.

    Converts watchdog events into RawEvent objects and queues the ones that
    concern documents or assets.
    """

    def __init__(self, config, queue_size: int | None = None):
        """
        Initialize the watcher.

        Args:
            config: Docserve configuration with extension and ignore settings
            queue_size: Capacity of the hand-off queue (config.event_queue_size if None)
        """
        super().__init__()
        self.config = config
        self.queue_size = queue_size or config.event_queue_size

        self._queue: asyncio.Queue[RawEvent] = asyncio.Queue(maxsize=self.queue_size)
        self._observer: Observer | None = None
        self._watched_paths: set[str] = set()
        self._loop: asyncio.AbstractEventLoop | None = None
        # Events handed to the loop but not yet queued
        self._in_flight = 0
        self._in_flight_lock = threading.Lock()

        self.received_events = 0
        self.dropped_events = 0

    def start_watching(self, directory_path: Path, recursive: bool = True) -> None:
        """
        Start watching a directory.

        Must be called from the event loop that will consume the events.

        Args:
            directory_path: Directory to monitor
            recursive: Whether to monitor subdirectories

        Raises:
            WatchSetupError: If the watch cannot be established
        """
        try:
            if not directory_path.exists():
                raise WatchSetupError(
                    f"Directory does not exist: {directory_path}", path=str(directory_path), operation="start_watching"
                )

            if not directory_path.is_dir():
                raise WatchSetupError(
                    f"Path is not a directory: {directory_path}", path=str(directory_path), operation="start_watching"
                )

            try:
                self._loop = asyncio.get_running_loop()
            except RuntimeError as e:
                raise WatchSetupError(
                    "start_watching requires a running event loop",
                    path=str(directory_path),
                    operation="start_watching",
                    underlying_error=e,
                ) from e

            if self._observer is None:
                self._observer = Observer()

            directory_str = str(directory_path.resolve())
            if directory_str not in self._watched_paths:
                self._observer.schedule(self, directory_str, recursive=recursive)
                self._watched_paths.add(directory_str)
                logger.info("Started watching %s (recursive: %s)", directory_str, recursive)

            if not self._observer.is_alive():
                self._observer.start()
                logger.debug("Observer thread started")

        except WatchSetupError:
            raise
        except Exception as e:
            logger.error("Failed to start file watching: %s", e)
            raise WatchSetupError(
                f"Failed to start watching: {e}",
                path=str(directory_path),
                operation="start_watching",
                underlying_error=e,
            ) from e

    def stop_watching(self) -> None:
        """Stop the observer thread and forget watched paths."""
        if self._observer and self._observer.is_alive():
            self._observer.stop()
            self._observer.join(timeout=self.config.observer_join_timeout)
            logger.info("File watching stopped")

        self._observer = None
        self._watched_paths.clear()
        with self._in_flight_lock:
            # Callbacks still pending on a closed loop never run
            self._in_flight = 0

    # === watchdog callbacks, observer thread ===

    def on_created(self, event: FileSystemEvent) -> None:
        if not event.is_directory:
            self._submit(RawEvent(EventKind.CREATE, [Path(event.src_path)]))

    def on_modified(self, event: FileSystemEvent) -> None:
        if not event.is_directory:
            self._submit(RawEvent(EventKind.MODIFY, [Path(event.src_path)]))

    def on_deleted(self, event: FileSystemEvent) -> None:
        if event.is_directory:
            # Contents vanished with it; let a rescan sort it out
            self._submit(RawEvent(EventKind.RENAME, [Path(event.src_path)], RenameMode.OTHER), force=True)
        else:
            self._submit(RawEvent(EventKind.REMOVE, [Path(event.src_path)]))

    def on_moved(self, event: FileSystemEvent) -> None:
        dest_path = getattr(event, "dest_path", None)
        if not dest_path:
            return
        paths = [Path(event.src_path), Path(dest_path)]
        if event.is_directory:
            self._submit(RawEvent(EventKind.RENAME, paths, RenameMode.OTHER), force=True)
        else:
            self._submit(RawEvent(EventKind.RENAME, paths, RenameMode.BOTH))

    def _submit(self, event: RawEvent, force: bool = False) -> None:
        """Hand an event to the loop without blocking the observer thread."""
        if not force and not any(self._is_relevant(path) for path in event.paths):
            return

        loop = self._loop
        if loop is None or loop.is_closed():
            self.dropped_events += 1
            return

        with self._in_flight_lock:
            # qsize() read off-loop is approximate; the loop-side put_nowait still enforces the bound
            if self._in_flight + self._queue.qsize() >= self.queue_size:
                self.dropped_events += 1
                logger.warning("Event queue full, dropping %s", event)
                return
            self._in_flight += 1

        try:
            loop.call_soon_threadsafe(self._enqueue, event)
        except RuntimeError:
            # Loop shut down between the check and the call
            with self._in_flight_lock:
                self._in_flight -= 1
                self.dropped_events += 1

    def _enqueue(self, event: RawEvent) -> None:
        with self._in_flight_lock:
            self._in_flight -= 1
        self.received_events += 1
        try:
            self._queue.put_nowait(event)
        except asyncio.QueueFull:
            self.dropped_events += 1
            logger.warning("Event queue full, dropping %s", event)

    def _is_relevant(self, path: Path) -> bool:
        try:
            return self.config.is_document(path) or self.config.is_asset(path)
        except Exception as e:
            logger.debug("Error checking relevance of %s: %s", path, e)
            return False

    # === loop side ===

    async def next_event(self) -> RawEvent:
        """Wait for the next queued raw event."""
        return await self._queue.get()

    @property
    def is_watching(self) -> bool:
        return self._observer is not None and self._observer.is_alive()

    def get_watched_paths(self) -> list[str]:
        return list(self._watched_paths)

    def get_queued_events_count(self) -> int:
        return self._queue.qsize()
