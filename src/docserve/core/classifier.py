"""
Classification of index changes into client-facing change messages.

Filesystem events do not reliably report renames, so a change is inferred
from the key sets before and after a reconciliation pass:

1. exactly one key added and one removed is reported as a rename, whether
   or not the two files share content;
2. otherwise any removal is reported as the removal of one (the first)
   removed key;
3. anything else that changed, additions or content edits, is a reload.

Rename wins over removal when the cardinalities match because an editor
renaming a file is by far the most common cause of that pattern.
"""

from collections.abc import Mapping, Set
from enum import Enum
from typing import assert_never

from pydantic import BaseModel, ConfigDict

from docserve.models.messages import (
    FileRemovedMessage,
    FileRenamedMessage,
    ReloadMessage,
    ServerMessage,
)
from docserve.models.tracked_file import TrackedFile


class ChangeType(str, Enum):
    """Semantic change detected between two index states."""

    RENAMED = "renamed"
    REMOVED = "removed"
    RELOAD = "reload"
    UNCHANGED = "unchanged"


class FileChange(BaseModel):
    """Outcome of one classification."""

    change_type: ChangeType
    name: str | None = None
    old_name: str | None = None
    new_name: str | None = None

    model_config = ConfigDict(frozen=True)

    @property
    def is_change(self) -> bool:
        return self.change_type != ChangeType.UNCHANGED

    def to_message(self) -> ServerMessage | None:
        """Map the change onto its wire message; None when nothing changed."""
        change_type = self.change_type
        if change_type is ChangeType.RENAMED:
            return FileRenamedMessage(old_name=self.old_name, new_name=self.new_name)
        elif change_type is ChangeType.REMOVED:
            return FileRemovedMessage(name=self.name)
        elif change_type is ChangeType.RELOAD:
            return ReloadMessage()
        elif change_type is ChangeType.UNCHANGED:
            return None
        else:
            assert_never(change_type)


def classify_change(
    old_keys: Set[str],
    old_digests: Mapping[str, str],
    new_keys: Set[str],
    new_files: Mapping[str, TrackedFile],
) -> FileChange:
    """
    Diff two index states and produce one semantic change.

    Args:
        old_keys: Keys tracked before the pass
        old_digests: Content digests before the pass, by key
        new_keys: Keys tracked after the pass
        new_files: Tracked files after the pass, by key

    Returns:
        The single change to report
    """
    added = sorted(set(new_keys) - set(old_keys))
    removed = sorted(set(old_keys) - set(new_keys))

    if len(added) == 1 and len(removed) == 1:
        return FileChange(change_type=ChangeType.RENAMED, old_name=removed[0], new_name=added[0])

    if removed:
        # Extra removals in the same pass are not reported individually
        return FileChange(change_type=ChangeType.REMOVED, name=removed[0])

    if added:
        return FileChange(change_type=ChangeType.RELOAD)

    for key in new_keys:
        tracked = new_files.get(key)
        if tracked is not None and old_digests.get(key) != tracked.content_digest:
            return FileChange(change_type=ChangeType.RELOAD)

    return FileChange(change_type=ChangeType.UNCHANGED)
