"""
In-memory registry of tracked documents.

The index is the single mutable source of truth: it maps each document's
root-relative key to its TrackedFile, knows whether it serves a single file
or a whole tree, and owns the ChangeBus its mutations are announced on.
It performs no locking itself; SharedIndex serializes access to it.
"""

import logging
from collections.abc import Callable, Iterable, Mapping
from pathlib import Path

from pydantic import BaseModel

from docserve.core.change_bus import ChangeBus
from docserve.core.classifier import FileChange, classify_change
from docserve.core.scanner import relative_key, scan_documents
from docserve.models.exceptions import InitializationError, PathEscapeError
from docserve.models.messages import ServerMessage
from docserve.models.tracked_file import TrackedFile, compute_digest
from docserve.security.paths import is_within_root

logger = logging.getLogger(__name__)

# Per-file failures that are skipped rather than aborting a pass
READ_ERRORS = (OSError, UnicodeDecodeError, PathEscapeError)


class RescanResult(BaseModel):
    """Outcome of the filesystem half of a reconciliation pass."""

    scanned_keys: set[str]
    present_keys: set[str] | None = None  # None in single-file mode, where keys never change
    added: dict[str, TrackedFile] = {}
    refreshed: dict[str, TrackedFile] = {}


class FileIndex:
    """
    Registry mapping relative paths to tracked documents.

    Keys are forward-slash paths relative to the canonicalized root, and
    every tracked file resolves to a strict descendant of that root.
    """

    def __init__(
        self,
        root: Path,
        config,
        renderer: Callable[[str], str],
        bus: ChangeBus | None = None,
        directory_mode: bool = True,
    ):
        """
        Create an empty index.

        Args:
            root: Directory documents are tracked under
            config: Docserve configuration with document extensions
            renderer: Converts document text into cached HTML; must not raise
            bus: Change bus mutations are published on
            directory_mode: Track a whole tree (True) or a single file (False)
        """
        self.root = Path(root).resolve()
        self.config = config
        self.renderer = renderer
        self.bus = bus or ChangeBus(config.bus_capacity)
        self.directory_mode = directory_mode
        self._files: dict[str, TrackedFile] = {}

    @classmethod
    def initialize(
        cls,
        root: Path,
        files: Iterable[Path],
        config,
        renderer: Callable[[str], str],
        bus: ChangeBus | None = None,
        directory_mode: bool = True,
    ) -> "FileIndex":
        """
        Build an index by reading and digesting every given file once.

        Raises:
            InitializationError: If any file cannot be read; startup is all or nothing
        """
        index = cls(root, config, renderer, bus=bus, directory_mode=directory_mode)
        for file_path in files:
            path = Path(file_path)
            if not path.is_absolute():
                path = index.root / path
            key = relative_key(index.root, path)
            if key is None:
                # Root may have been reached through a symlinked parent
                path = path.parent.resolve() / path.name
                key = relative_key(index.root, path)
            if key is None:
                raise InitializationError(
                    f"File is not below the root: {file_path}",
                    path=str(file_path),
                    initialization_stage="key",
                )
            try:
                index._files[key] = index._load(key, path)
            except READ_ERRORS as e:
                raise InitializationError(
                    f"Failed to read {file_path}: {e}",
                    path=str(file_path),
                    initialization_stage="read",
                    underlying_error=e,
                ) from e

        logger.info(
            "Indexed %d document(s) under %s (%s mode)",
            len(index._files),
            index.root,
            "directory" if directory_mode else "single-file",
        )
        return index

    # === Read accessors ===

    def __contains__(self, key: object) -> bool:
        return key in self._files

    def __len__(self) -> int:
        return len(self._files)

    def get(self, key: str) -> TrackedFile | None:
        return self._files.get(key)

    def sorted_keys(self) -> list[str]:
        """Keys in ascending order; the first one is the default document."""
        return sorted(self._files)

    def digests(self) -> dict[str, str]:
        return {key: tracked.content_digest for key, tracked in self._files.items()}

    def key_for(self, path: Path) -> str | None:
        """Key a filesystem path would be tracked under, or None if outside the root."""
        path = Path(path)
        if not path.is_absolute():
            path = self.root / path
        return relative_key(self.root, path)

    # === Mutations ===


    def _load(self, key: str, path: Path, html_by_digest: Mapping[str, str] | None = None) -> TrackedFile:
        if not is_within_root(self.root, path):
            raise PathEscapeError(f"{key} resolves outside the root", requested_path=key, root=str(self.root))

        stat = path.stat()
        content = path.read_text(encoding="utf-8")
        digest = compute_digest(content)
        if html_by_digest and digest in html_by_digest:
            html = html_by_digest[digest]
        else:
            html = self.renderer(content)
        return TrackedFile(
            relative_path=key,
            path=path,
            modified_ns=stat.st_mtime_ns,
            content_digest=digest,
            content=content,
            html=html,
        )

    def _reread(self, tracked: TrackedFile) -> TrackedFile | None:
        """
        Read a tracked file again if its modification time is strictly newer.

        Returns a new record and never mutates the given one, so it is safe
        to call on a snapshot from a worker thread.

        Returns:
            The updated record, or None if the file has not been touched

        Raises:
            OSError: If the file cannot be stat'ed or read
        """
        modified_ns = tracked.path.stat().st_mtime_ns
        if modified_ns <= tracked.modified_ns:
            return None

        content = tracked.path.read_text(encoding="utf-8")
        if compute_digest(content) == tracked.content_digest:
            html = tracked.html
        else:
            html = self.renderer(content)
        updated = tracked.model_copy()
        updated.apply_content(content, html, modified_ns)
        return updated

    def refresh(self, key: str) -> bool:
        """
        Re-read a tracked file if it changed on disk since last seen.

        Content is only re-read when the modification time is strictly
        newer than the stored one, so repeated calls are no-ops.

        Returns:
            True if the content digest changed

        Raises:
            OSError: If the file cannot be stat'ed or read
        """
        tracked = self._files.get(key)
        if tracked is None:
            return False

        updated = self._reread(tracked)
        if updated is None:
            return False

        self._files[key] = updated
        changed = updated.content_digest != tracked.content_digest
        logger.debug("Refreshed %s%s", key, "" if changed else ", content unchanged")
        return changed

    def add_if_absent(self, path: Path) -> str | None:
        """
        Start tracking a file unless its key is already present.

        Returns:
            The new key, or None if the file was already tracked or is outside the root

        Raises:
            OSError: If the file cannot be read
            PathEscapeError: If the file resolves outside the root
        """
        path = Path(path)
        key = self.key_for(path)
        if key is None or key in self._files:
            return None
        self._files[key] = self._load(key, self.root / key)
        logger.debug("Now tracking %s", key)
        return key

    def remove(self, key: str) -> TrackedFile | None:
        tracked = self._files.pop(key, None)
        if tracked is not None:
            logger.debug("Stopped tracking %s", key)
        return tracked

    # === Reconciliation passes ===

    def snapshot(self) -> dict[str, TrackedFile]:
        """
        Current records by key.

        Records are replaced rather than mutated, so the snapshot stays
        consistent while the index moves on.
        """
        return dict(self._files)

    def collect_rescan(self, snapshot: Mapping[str, TrackedFile], refresh_content: bool = True) -> RescanResult:
        """
        Do the filesystem half of a reconciliation pass.

        Touches only the snapshot and the disk, never the live registry, so
        it can run in a worker thread without holding the index lock.
        Files that cannot be read are skipped; a later pass picks them up.

        Args:
            snapshot: Records the pass starts from, see snapshot()
            refresh_content: Also re-read tracked files with a newer timestamp

        Returns:
            Keys found on disk, newly loaded files and refreshed records

        Raises:
            OSError: If the root itself cannot be read
        """
        present_keys = None
        added: dict[str, TrackedFile] = {}

        if self.directory_mode:
            current = {}
            for path in scan_documents(self.root, self.config.document_extensions):
                key = relative_key(self.root, path)
                if key is not None:
                    current[key] = path
            present_keys = set(current)

            # Cached output of vanished files is reused for identical content
            html_by_digest = {
                snapshot[key].content_digest: snapshot[key].html for key in snapshot.keys() - present_keys
            }
            for key in sorted(present_keys - snapshot.keys()):
                try:
                    added[key] = self._load(key, current[key], html_by_digest)
                except READ_ERRORS as e:
                    logger.warning("Skipping %s during rescan: %s", key, e)

        refreshed: dict[str, TrackedFile] = {}
        if refresh_content:
            for key, tracked in snapshot.items():
                if present_keys is not None and key not in present_keys:
                    continue
                try:
                    updated = self._reread(tracked)
                except READ_ERRORS as e:
                    logger.warning("Could not refresh %s: %s", key, e)
                    continue
                if updated is not None:
                    refreshed[key] = updated

        return RescanResult(
            scanned_keys=set(snapshot),
            present_keys=present_keys,
            added=added,
            refreshed=refreshed,
        )

    def _apply_keys(self, result: RescanResult) -> bool:
        if result.present_keys is None:
            return False

        changed = False
        # Only keys the pass started from; later direct additions are kept
        for key in result.scanned_keys - result.present_keys:
            if self.remove(key) is not None:
                changed = True
        for key, tracked in result.added.items():
            if key not in self._files:
                self._files[key] = tracked
                changed = True
        return changed

    def apply_rescan(self, result: RescanResult) -> ServerMessage | None:
        """
        Apply a collected pass to the registry, classify and publish.

        Refreshed records only replace ones that are still older, so
        changes picked up in the meantime are neither undone nor announced
        twice.

        Returns:
            The published message, or None if nothing changed
        """
        old_keys = set(self._files)
        old_digests = self.digests()

        self._apply_keys(result)
        for key, updated in result.refreshed.items():
            tracked = self._files.get(key)
            if tracked is not None and updated.modified_ns > tracked.modified_ns:
                self._files[key] = updated

        change: FileChange = classify_change(old_keys, old_digests, set(self._files), self._files)
        message = change.to_message()
        if message is not None:
            logger.info("Detected change: %s", change.change_type.value)
            self.publish(message)
        return message

    def reconcile(self) -> bool:
        """
        Bring the tracked key set in line with a fresh directory scan.

        Only meaningful in directory mode.

        Returns:
            True if keys were added or removed, False if the sets were equal

        Raises:
            OSError: If the root itself cannot be read
        """
        if not self.directory_mode:
            return False
        return self._apply_keys(self.collect_rescan(self.snapshot(), refresh_content=False))

    def synchronize(self) -> ServerMessage | None:
        """
        Run a full reconciliation pass in place and publish what changed.

        EventRouter splits the same pass around the index lock; this is the
        single-threaded form.

        Returns:
            The published message, or None if nothing changed

        Raises:
            OSError: If the root itself cannot be read
        """
        return self.apply_rescan(self.collect_rescan(self.snapshot()))

    def publish(self, message: ServerMessage) -> None:
        self.bus.publish(message)
