"""
Monitoring package for filesystem change detection.

Connects the watchdog observer to the live index: raw events are handed to
the event loop and routed onto index updates and change messages.
"""

from .file_watcher import DocumentWatcher
from .monitoring_coordinator import MonitoringCoordinator

__all__ = [
    "DocumentWatcher",
    "MonitoringCoordinator",
]
