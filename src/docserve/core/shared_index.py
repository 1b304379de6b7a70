"""
Exclusive-access handle around the one FileIndex.
"""

import asyncio
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from pathlib import Path

from docserve.core.change_bus import ChangeBus
from docserve.core.file_index import FileIndex


class SharedIndex:
    """
    Serializes every read and write of a FileIndex through one lock.

    Reconciliation must see a consistent snapshot, so readers are excluded
    while a writer is active. The handle is passed explicitly to every
    component that needs the index.
    """

    def __init__(self, index: FileIndex):
        self._index = index
        self._lock = asyncio.Lock()

    @asynccontextmanager
    async def locked(self) -> AsyncIterator[FileIndex]:
        """Hold the lock for the duration of the block."""
        async with self._lock:
            yield self._index

    # Fixed at construction, safe to read without the lock

    @property
    def root(self) -> Path:
        return self._index.root

    @property
    def directory_mode(self) -> bool:
        return self._index.directory_mode

    @property
    def bus(self) -> ChangeBus:
        return self._index.bus
