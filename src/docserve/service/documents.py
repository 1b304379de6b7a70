"""
Transport-agnostic serving boundary over the live index.

Request handlers of any web framework call into DocumentService; it
enforces root confinement and never lets a half-finished editor save
surface as a missing document.
"""

import asyncio
import logging
from pathlib import Path, PurePosixPath

from pydantic import BaseModel, ConfigDict, computed_field

from docserve.core.file_index import READ_ERRORS
from docserve.core.shared_index import SharedIndex
from docserve.models.exceptions import DocumentNotFoundError
from docserve.models.messages import ReloadMessage
from docserve.rendering import has_mermaid
from docserve.security import resolve_within_root

logger = logging.getLogger(__name__)

ASSET_CONTENT_TYPES = {
    ".png": "image/png",
    ".jpg": "image/jpeg",
    ".jpeg": "image/jpeg",
    ".gif": "image/gif",
    ".svg": "image/svg+xml",
    ".webp": "image/webp",
    ".bmp": "image/bmp",
    ".ico": "image/x-icon",
}


def guess_asset_content_type(name: str) -> str:
    return ASSET_CONTENT_TYPES.get(PurePosixPath(name).suffix.lower(), "application/octet-stream")


class DocumentView(BaseModel):
    """A document as returned to a client."""

    name: str
    markdown: str
    html: str

    @computed_field
    @property
    def mermaid_enabled(self) -> bool:
        return has_mermaid(self.html)

    model_config = ConfigDict(frozen=True)


class DocumentService:
    """Read and write access to tracked documents and static assets."""

    def __init__(self, shared: SharedIndex, config):
        self.shared = shared
        self.config = config

    async def list_documents(self) -> list[str]:
        """Tracked keys in ascending order."""
        async with self.shared.locked() as index:
            return index.sorted_keys()

    async def default_document(self) -> str:
        """
        Name of the document served at the root, the first in sorted order.

        Raises:
            DocumentNotFoundError: If nothing is tracked
        """
        keys = await self.list_documents()
        if not keys:
            raise DocumentNotFoundError("No files available to serve")
        return keys[0]

    async def get_document(self, name: str) -> DocumentView:
        """
        Fetch a document, re-reading it first if it changed on disk.

        A failed re-read serves the cached content: the file may be between
        the steps of an editor's save, and the index still knows it. A
        re-read that finds new content announces it, since no later pass
        will see the difference again.

        Raises:
            PathEscapeError: If the name resolves outside the root
            DocumentNotFoundError: If the name is not tracked
        """
        resolve_within_root(self.shared.root, name)
        key = self._key(name)

        async with self.shared.locked() as index:
            if key not in index:
                raise DocumentNotFoundError("File not found", name=name)
            try:
                if index.refresh(key):
                    index.publish(ReloadMessage())
            except READ_ERRORS as e:
                logger.debug("Serving cached %s, refresh failed: %s", key, e)
            tracked = index.get(key)
            return DocumentView(name=key, markdown=tracked.content, html=tracked.html)

    async def update_document(self, name: str, content: str) -> None:
        """
        Overwrite a tracked document and notify clients.

        Raises:
            PathEscapeError: If the name resolves outside the root
            DocumentNotFoundError: If the name is not tracked
            OSError: If the file cannot be written
        """
        resolve_within_root(self.shared.root, name)
        key = self._key(name)

        async with self.shared.locked() as index:
            tracked = index.get(key)
            if tracked is None:
                raise DocumentNotFoundError("File not found", name=name)
            path = tracked.path

        await asyncio.to_thread(path.write_text, content, encoding="utf-8")

        async with self.shared.locked() as index:
            try:
                index.refresh(key)
            except READ_ERRORS as e:
                logger.warning("Could not refresh %s after update: %s", key, e)
            index.publish(ReloadMessage())

    async def read_asset(self, name: str) -> tuple[bytes, str]:
        """
        Read a static asset below the root.

        Returns:
            File contents and content type

        Raises:
            PathEscapeError: If the name resolves outside the root, including via symlinks
            DocumentNotFoundError: If the name is not an asset or does not exist
        """
        path = resolve_within_root(self.shared.root, name)
        if not self.config.is_asset(name):
            raise DocumentNotFoundError("File not found", name=name)
        try:
            data = await asyncio.to_thread(Path(path).read_bytes)
        except OSError as e:
            raise DocumentNotFoundError("File not found", name=name) from e
        return data, guess_asset_content_type(name)

    @staticmethod
    def _key(name: str) -> str:
        parts = [part for part in name.replace("\\", "/").split("/") if part not in ("", ".")]
        return "/".join(parts)
