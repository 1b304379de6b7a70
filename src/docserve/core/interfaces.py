"""
Abstract interfaces for the collaborators docserve consumes.

The core never renders markdown or speaks a network protocol itself; these
contracts describe what it expects from the components that do.
"""

from abc import ABC, abstractmethod


class IRenderer(ABC):
    """Interface for converting document text into renderable output."""

    @abstractmethod
    def render(self, content: str) -> str:
        """
        Convert document content into derived output.

        Implementations must not raise: on failure they return a visible
        placeholder instead.

        Args:
            content: Raw document text

        Returns:
            Rendered output
        """
        pass

    def __call__(self, content: str) -> str:
        return self.render(content)


class IMessageChannel(ABC):
    """Interface for a bidirectional text channel to one client."""

    @abstractmethod
    async def send_text(self, text: str) -> None:
        """
        Send one serialized message to the client.

        Raises:
            ChannelClosedError: If the client has disconnected
        """
        pass

    @abstractmethod
    async def receive_text(self) -> str | None:
        """
        Wait for the next message from the client.

        Returns:
            The message text, or None once the client closed the channel

        Raises:
            ChannelClosedError: If the connection dropped
        """
        pass
