"""
Monitoring coordinator for the live document index.

Builds the initial index for a file or directory, starts the filesystem
watch, and pumps raw events through the router until stopped.
"""

import asyncio
import logging
from collections.abc import Callable
from pathlib import Path
from typing import Any

from docserve.core.change_bus import ChangeBus
from docserve.core.event_router import EventRouter
from docserve.core.file_index import FileIndex
from docserve.core.scanner import scan_documents
from docserve.core.shared_index import SharedIndex
from docserve.models.exceptions import InitializationError, ShutdownError
from docserve.monitoring.file_watcher import DocumentWatcher
from docserve.rendering import MarkdownRenderer

logger = logging.getLogger(__name__)


class MonitoringCoordinator:
    """
    Owns the lifecycle of one live index.

    A file target runs in single-file mode (root is its parent directory,
    watched non-recursively); a directory target runs in directory mode
    with a recursive watch.
    """

    def __init__(
        self,
        config,
        renderer: Callable[[str], str] | None = None,
        file_watcher: DocumentWatcher | None = None,
        bus: ChangeBus | None = None,
    ):
        """
        Initialize the coordinator.

        Args:
            config: Docserve configuration
            renderer: Document renderer (MarkdownRenderer if None)
            file_watcher: Optional watcher (will create if not provided)
            bus: Optional change bus (will create if not provided)
        """
        self.config = config
        self.renderer = renderer or MarkdownRenderer()
        self.file_watcher = file_watcher or DocumentWatcher(config)
        self.bus = bus or ChangeBus(config.bus_capacity)

        self.shared_index: SharedIndex | None = None
        self.router: EventRouter | None = None
        self._pump_task: asyncio.Task | None = None
        self._monitoring_active = False

        self._stats = {"events_routed": 0, "routing_errors": 0, "errors": []}

    async def start(self, target: Path) -> SharedIndex:
        """
        Index the target and start watching it.

        Args:
            target: Markdown file or directory to serve

        Returns:
            Handle to the live index

        Raises:
            InitializationError: If the target is unusable or a document cannot be read
            WatchSetupError: If the watch cannot be established
        """
        target = Path(target)
        try:
            target = target.resolve(strict=True)
        except OSError as e:
            raise InitializationError(
                f"Path does not exist: {target}", path=str(target), initialization_stage="resolve", underlying_error=e
            ) from e

        if target.is_file():
            root, files, directory_mode = target.parent, [target], False
        elif target.is_dir():
            try:
                files = scan_documents(target, self.config.document_extensions)
            except OSError as e:
                raise InitializationError(
                    f"Cannot scan directory: {e}", path=str(target), initialization_stage="scan", underlying_error=e
                ) from e
            if not files:
                raise InitializationError(
                    "No markdown files found in directory", path=str(target), initialization_stage="scan"
                )
            root, directory_mode = target, True
        else:
            raise InitializationError(
                "Path must be a file or directory", path=str(target), initialization_stage="resolve"
            )

        index = await asyncio.to_thread(
            FileIndex.initialize,
            root,
            files,
            self.config,
            self.renderer,
            self.bus,
            directory_mode,
        )
        self.shared_index = SharedIndex(index)
        self.router = EventRouter(self.shared_index, self.config)

        self.file_watcher.start_watching(root, recursive=directory_mode)
        self._pump_task = asyncio.create_task(self._pump_events())
        self._monitoring_active = True

        if directory_mode:
            logger.info("Serving markdown files from: %s", root)
        else:
            logger.info("Serving markdown file: %s", target)
        return self.shared_index

    async def _pump_events(self) -> None:
        while True:
            event = await self.file_watcher.next_event()
            try:
                await self.router.handle(event)
                self._stats["events_routed"] += 1
            except Exception as e:
                self._stats["routing_errors"] += 1
                self._stats["errors"].append(f"{event}: {e}")
                # Keep only the last 100 errors
                if len(self._stats["errors"]) > 100:
                    self._stats["errors"] = self._stats["errors"][-100:]
                logger.error("Error routing %s: %s", event, e, exc_info=True)

    async def stop(self) -> None:
        """Stop watching and cancel background work."""
        if not self._monitoring_active:
            logger.debug("Monitoring not active, nothing to stop")
            return

        try:
            self.file_watcher.stop_watching()
            if self.router is not None:
                self.router.scheduler.cancel()
            if self._pump_task is not None:
                self._pump_task.cancel()
                await asyncio.gather(self._pump_task, return_exceptions=True)
                self._pump_task = None
        except Exception as e:
            logger.error("Error stopping monitoring: %s", e)
            raise ShutdownError("Failed to stop monitoring", component="monitoring", underlying_error=e) from e
        finally:
            self._monitoring_active = False

        logger.info("Monitoring stopped")

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.stop()

    @property
    def is_monitoring(self) -> bool:
        return self._monitoring_active

    def get_monitoring_stats(self) -> dict[str, Any]:
        """
        Get monitoring statistics.

        Returns:
            Dictionary with watcher, routing and bus counters
        """
        return {
            "monitoring_active": self._monitoring_active,
            "directory_mode": self.shared_index.directory_mode if self.shared_index else None,
            "file_watcher_status": {
                "is_watching": self.file_watcher.is_watching,
                "watched_paths": self.file_watcher.get_watched_paths(),
                "queued_events": self.file_watcher.get_queued_events_count(),
                "received_events": self.file_watcher.received_events,
                "dropped_events": self.file_watcher.dropped_events,
            },
            "routing_stats": {
                "events_routed": self._stats["events_routed"],
                "routing_errors": self._stats["routing_errors"],
                "errors": list(self._stats["errors"]),
                "rescans_run": self.router.scheduler.runs if self.router else 0,
            },
            "bus_stats": {
                "subscribers": self.bus.subscriber_count,
                "messages_published": self.bus.published_count,
            },
            "configuration": {
                "rescan_delay_seconds": self.config.rescan_delay_seconds,
                "event_queue_size": self.config.event_queue_size,
                "bus_capacity": self.config.bus_capacity,
            },
        }
