"""
Wire protocol between the server and connected clients.

Every message is a JSON object tagged by a ``type`` field, e.g.
``{"type": "FileRenamed", "old_name": "a.md", "new_name": "b.md"}``.
"""

from typing import Annotated, Literal

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter


class _WireMessage(BaseModel):
    model_config = ConfigDict(frozen=True)


class ReloadMessage(_WireMessage):
    """Re-fetch current state entirely."""

    type: Literal["Reload"] = "Reload"


class FileAddedMessage(_WireMessage):
    """A new tracked file appeared."""

    type: Literal["FileAdded"] = "FileAdded"
    name: str


class FileRenamedMessage(_WireMessage):
    """A tracked file's key changed."""

    type: Literal["FileRenamed"] = "FileRenamed"
    old_name: str
    new_name: str


class FileRemovedMessage(_WireMessage):
    """A tracked file disappeared."""

    type: Literal["FileRemoved"] = "FileRemoved"
    name: str


class PongMessage(_WireMessage):
    """Keepalive reply."""

    type: Literal["Pong"] = "Pong"


class PingMessage(_WireMessage):
    type: Literal["Ping"] = "Ping"


class RequestRefreshMessage(_WireMessage):
    type: Literal["RequestRefresh"] = "RequestRefresh"


ServerMessage = Annotated[
    ReloadMessage | FileAddedMessage | FileRenamedMessage | FileRemovedMessage | PongMessage,
    Field(discriminator="type"),
]

ClientMessage = Annotated[PingMessage | RequestRefreshMessage, Field(discriminator="type")]

_server_adapter: TypeAdapter[ServerMessage] = TypeAdapter(ServerMessage)
_client_adapter: TypeAdapter[ClientMessage] = TypeAdapter(ClientMessage)


def encode_server_message(message: ServerMessage) -> str:
    """Serialize a server message to its JSON wire form."""
    return message.model_dump_json()


def decode_server_message(text: str | bytes) -> ServerMessage:
    """
    Parse a server message from JSON.

    Raises:
        pydantic.ValidationError: If the payload is not a known message
    """
    return _server_adapter.validate_json(text)


def decode_client_message(text: str | bytes) -> ClientMessage:
    """
    Parse a client message from JSON.

    Raises:
        pydantic.ValidationError: If the payload is not a known message
    """
    return _client_adapter.validate_json(text)
