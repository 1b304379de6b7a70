"""Root-scoped path resolution."""

from docserve.security.paths import is_within_root, resolve_within_root

__all__ = ["is_within_root", "resolve_within_root"]
