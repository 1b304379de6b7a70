"""
Routing of raw filesystem events onto index mutations.

Rename-class events in directory mode are never acted on directly; they arm
the debounced reconciliation. Everything else touches only the single path
it names.
"""

import asyncio
import logging
from pathlib import Path

from docserve.core.debounce import DebounceScheduler
from docserve.core.file_index import READ_ERRORS
from docserve.core.shared_index import SharedIndex
from docserve.models.events import EventKind, RawEvent, RenameMode
from docserve.models.messages import FileAddedMessage, ReloadMessage, ServerMessage

logger = logging.getLogger(__name__)


class EventRouter:
    """Turns raw watch events into index updates and change messages."""

    def __init__(self, shared: SharedIndex, config, scheduler: DebounceScheduler | None = None):
        """
        Initialize the router.

        Args:
            shared: Locked handle to the index
            config: Docserve configuration
            scheduler: Debounce scheduler; one running synchronize() is created if omitted
        """
        self.shared = shared
        self.config = config
        self.scheduler = scheduler or DebounceScheduler(config.rescan_delay_seconds, self.synchronize)

    async def handle(self, event: RawEvent) -> None:
        """Route one raw event."""
        logger.debug("Routing %s", event)

        if event.kind == EventKind.RENAME:
            await self._handle_rename(event)
            return

        for path in event.paths:
            if self._is_ignored(path):
                continue
            if self.config.is_document(path):
                if event.kind in (EventKind.CREATE, EventKind.MODIFY):
                    await self._handle_document_change(path)
                elif event.kind == EventKind.REMOVE:
                    self._handle_document_remove(path)
            elif self.config.is_asset(path):
                if event.kind in (EventKind.CREATE, EventKind.MODIFY, EventKind.REMOVE):
                    await self._handle_asset_change(path)

    async def synchronize(self) -> ServerMessage | None:
        """
        Reconcile the index against the filesystem and publish the result.

        The directory walk and file reads run in a worker thread without the
        lock; only the snapshot and the final apply hold it.
        """
        async with self.shared.locked() as index:
            snapshot = index.snapshot()

        try:
            result = await asyncio.to_thread(index.collect_rescan, snapshot)
        except OSError as e:
            logger.error("Rescan of %s failed: %s", self.shared.root, e)
            return None

        async with self.shared.locked() as index:
            return index.apply_rescan(result)

    async def _handle_rename(self, event: RawEvent) -> None:
        if self.shared.directory_mode:
            self.scheduler.schedule()
            return

        # Single-file mode: only one path to reconcile, resolve immediately
        mode = event.rename_mode
        paths = event.paths
        if mode == RenameMode.BOTH:
            if len(paths) > 1:
                await self._handle_document_change(paths[1])
        elif mode == RenameMode.TO:
            if paths:
                await self._handle_document_change(paths[0])
        elif mode == RenameMode.ANY:
            if paths and paths[0].exists():
                await self._handle_document_change(paths[0])
        elif mode in (RenameMode.FROM, RenameMode.OTHER, None):
            pass

    async def _handle_document_change(self, path: Path) -> None:
        if not self.config.is_document(path):
            return

        async with self.shared.locked() as index:
            key = index.key_for(path)
            if key is None:
                return

            if key in index:
                try:
                    changed = index.refresh(key)
                except READ_ERRORS as e:
                    logger.warning("Could not refresh %s: %s", key, e)
                    return
                if changed:
                    index.publish(ReloadMessage())
            elif index.directory_mode:
                try:
                    added = index.add_if_absent(path)
                except READ_ERRORS as e:
                    logger.warning("Could not add %s: %s", key, e)
                    return
                if added is not None:
                    index.publish(FileAddedMessage(name=added))

    def _handle_document_remove(self, path: Path) -> None:
        if not self.shared.directory_mode:
            return
        self.scheduler.schedule()

    async def _handle_asset_change(self, path: Path) -> None:
        async with self.shared.locked() as index:
            if index.key_for(path) is not None:
                index.publish(ReloadMessage())

    def _is_ignored(self, path: Path) -> bool:
        try:
            relative = Path(path).relative_to(self.shared.root)
        except ValueError:
            relative = Path(path)
        return self.config.should_ignore(relative)
