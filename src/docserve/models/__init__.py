"""Data models, wire messages and exceptions."""

from docserve.models.events import EventKind, RawEvent, RenameMode
from docserve.models.exceptions import (
    ChannelClosedError,
    ConfigurationError,
    DocserveError,
    DocumentNotFoundError,
    InitializationError,
    PathEscapeError,
    RenderError,
    ShutdownError,
    WatchSetupError,
)
from docserve.models.messages import (
    ClientMessage,
    FileAddedMessage,
    FileRemovedMessage,
    FileRenamedMessage,
    PingMessage,
    PongMessage,
    ReloadMessage,
    RequestRefreshMessage,
    ServerMessage,
    decode_client_message,
    decode_server_message,
    encode_server_message,
)
from docserve.models.tracked_file import TrackedFile, compute_digest

__all__ = [
    "EventKind",
    "RawEvent",
    "RenameMode",
    "TrackedFile",
    "compute_digest",
    "ServerMessage",
    "ClientMessage",
    "ReloadMessage",
    "FileAddedMessage",
    "FileRenamedMessage",
    "FileRemovedMessage",
    "PongMessage",
    "PingMessage",
    "RequestRefreshMessage",
    "encode_server_message",
    "decode_server_message",
    "decode_client_message",
    "DocserveError",
    "ConfigurationError",
    "InitializationError",
    "WatchSetupError",
    "PathEscapeError",
    "DocumentNotFoundError",
    "RenderError",
    "ChannelClosedError",
    "ShutdownError",
]
