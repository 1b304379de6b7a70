"""Tracking and change-classification engine."""

from docserve.core.change_bus import ChangeBus, Subscription
from docserve.core.classifier import ChangeType, FileChange, classify_change
from docserve.core.debounce import DebounceScheduler
from docserve.core.event_router import EventRouter
from docserve.core.file_index import FileIndex
from docserve.core.interfaces import IMessageChannel, IRenderer
from docserve.core.scanner import relative_key, scan_documents
from docserve.core.shared_index import SharedIndex

__all__ = [
    "ChangeBus",
    "Subscription",
    "ChangeType",
    "FileChange",
    "classify_change",
    "DebounceScheduler",
    "EventRouter",
    "FileIndex",
    "SharedIndex",
    "IRenderer",
    "IMessageChannel",
    "relative_key",
    "scan_documents",
]
