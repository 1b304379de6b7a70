"""
Raw filesystem events as handed over by the watch adapter.

These carry no semantics beyond what the OS reported; ordering and
completeness are best-effort only.
"""

import time
from enum import Enum
from pathlib import Path


class EventKind(str, Enum):
    """Kind of raw filesystem event."""

    CREATE = "create"
    MODIFY = "modify"
    REMOVE = "remove"
    RENAME = "rename"
    OTHER = "other"


class RenameMode(str, Enum):
    """Which side(s) of a rename a raw event describes."""

    ANY = "any"  # platform could not tell
    TO = "to"  # paths[0] is the new location
    FROM = "from"  # paths[0] is the old location
    BOTH = "both"  # paths[0] old, paths[1] new
    OTHER = "other"


class RawEvent:
    """Represents one raw filesystem event for a watched root."""

    def __init__(self, kind: EventKind, paths: list[Path], rename_mode: RenameMode | None = None):
        self.kind = kind
        self.paths = [Path(p) for p in paths]
        self.rename_mode = rename_mode
        self.timestamp = time.time()

    @property
    def is_rename(self) -> bool:
        return self.kind == EventKind.RENAME

    def __str__(self) -> str:
        paths = ", ".join(str(p) for p in self.paths)
        if self.rename_mode is not None:
            return f"RawEvent({self.kind.value}/{self.rename_mode.value}: {paths})"
        return f"RawEvent({self.kind.value}: {paths})"
