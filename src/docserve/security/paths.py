"""Path resolution helpers for root-scoped access."""

import re
from pathlib import Path
from typing import Final

from docserve.models.exceptions import PathEscapeError

WINDOWS_ABSOLUTE_PATTERN: Final[re.Pattern[str]] = re.compile(r"^[a-zA-Z]:[\\/]")


def _normalize_relative_input(candidate: str) -> tuple[str, bool]:
    """Normalize path separators and detect absolute-style inputs."""
    normalized = candidate.replace("\\", "/")
    if normalized.startswith("/"):
        return normalized, True
    if WINDOWS_ABSOLUTE_PATTERN.match(normalized):
        return normalized, True
    return normalized, False


def is_within_root(root: Path, path: Path) -> bool:
    """
    Check that a path, symlinks followed, is a strict descendant of root.

    Args:
        root: Already canonicalized root directory
        path: Path to check

    Returns:
        False for the root itself, anything outside it and unresolvable links
    """
    try:
        resolved = Path(path).resolve()
    except (OSError, RuntimeError):
        # Symlink loops
        return False
    return resolved != root and resolved.is_relative_to(root)


def resolve_within_root(root: Path, candidate: str) -> Path:
    """
    Resolve a requested root-relative path, following symlinks.

    The fully canonicalized result must be a strict descendant of the
    canonicalized root, whatever the request looks like.

    Raises:
        PathEscapeError: If the path is empty, absolute, or resolves outside root
    """
    root = Path(root).resolve()
    normalized, is_absolute_style = _normalize_relative_input(candidate)

    parts = [part for part in normalized.split("/") if part not in ("", ".")]
    if not parts:
        raise PathEscapeError("Path is empty.", requested_path=candidate, root=str(root))

    if is_absolute_style:
        raise PathEscapeError("Absolute paths are not served.", requested_path=candidate, root=str(root))

    resolved = (root / Path(*parts)).resolve(strict=False)
    if resolved == root or not resolved.is_relative_to(root):
        raise PathEscapeError("Resolved path escapes the root.", requested_path=candidate, root=str(root))
    return resolved
