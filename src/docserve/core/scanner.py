"""
Recursive discovery of documents under a root directory.
"""

import logging
import os
from collections.abc import Iterable
from pathlib import Path, PurePath

from docserve.security.paths import is_within_root

logger = logging.getLogger(__name__)


def relative_key(root: Path, path: Path) -> str | None:
    """
    Build the index key of a path: relative to root, forward slashes.

    Returns:
        The key, or None if the path is not strictly below root
    """
    try:
        relative = Path(path).relative_to(root)
    except ValueError:
        return None
    if relative == Path("."):
        return None
    return relative.as_posix()


def scan_documents(root: Path, extensions: Iterable[str]) -> list[Path]:
    """
    Recursively collect documents under root.

    Subdirectories are descended without restriction; symlinked directories
    are not followed. Entries whose real location is outside the root (links
    pointing elsewhere) are left out, as they could never be served.
    Results are sorted by their root-relative path so the first entry is
    stable across runs.

    Args:
        root: Directory to scan
        extensions: Dotted document extensions, matched case-insensitively

    Returns:
        Absolute paths of matching files, sorted by relative path

    Raises:
        OSError: If root itself cannot be read
    """
    root = Path(root)
    suffixes = {ext.lower() for ext in extensions}

    if not root.is_dir():
        raise NotADirectoryError(f"Not a directory: {root}")
    real_root = root.resolve()

    def on_error(error: OSError) -> None:
        if error.filename is not None and Path(error.filename) == root:
            raise error
        logger.warning("Skipping unreadable directory %s: %s", error.filename, error)

    found: dict[str, Path] = {}
    for dirpath, _dirnames, filenames in os.walk(root, onerror=on_error):
        for filename in filenames:
            if PurePath(filename).suffix.lower() not in suffixes:
                continue
            path = Path(dirpath) / filename
            key = relative_key(root, path)
            if key is None:
                continue
            if not is_within_root(real_root, path):
                logger.debug("Skipping %s, it resolves outside the root", key)
                continue
            found[key] = path

    return [found[key] for key in sorted(found)]
