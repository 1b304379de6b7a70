"""
Per-client session pumping change messages over a message channel.
"""

import asyncio
import logging
from typing import assert_never

from pydantic import ValidationError

from docserve.core.change_bus import ChangeBus, Subscription
from docserve.core.interfaces import IMessageChannel
from docserve.models.exceptions import ChannelClosedError
from docserve.models.messages import (
    ClientMessage,
    PingMessage,
    RequestRefreshMessage,
    decode_client_message,
    encode_server_message,
)

logger = logging.getLogger(__name__)


class ClientSession:
    """
    One connected client.

    Runs a send loop forwarding bus messages and a receive loop reading
    client messages; whichever ends first ends the session, and the bus
    subscription is dropped with it.
    """

    def __init__(self, channel: IMessageChannel, bus: ChangeBus):
        self.channel = channel
        self.bus = bus
        self.sent_count = 0

    async def run(self) -> None:
        subscription = self.bus.subscribe()
        send_task = asyncio.create_task(self._send_loop(subscription))
        receive_task = asyncio.create_task(self._receive_loop())
        try:
            done, pending = await asyncio.wait({send_task, receive_task}, return_when=asyncio.FIRST_COMPLETED)
            for task in pending:
                task.cancel()
            await asyncio.gather(*pending, return_exceptions=True)
            for task in done:
                if not task.cancelled() and task.exception() is not None:
                    logger.error("Client session ended with error: %s", task.exception())
        finally:
            send_task.cancel()
            receive_task.cancel()
            subscription.close()
        logger.debug("Client session closed after %d message(s)", self.sent_count)

    async def _send_loop(self, subscription: Subscription) -> None:
        async for message in subscription:
            try:
                await self.channel.send_text(encode_server_message(message))
            except (ChannelClosedError, OSError) as e:
                logger.debug("Send failed, closing session: %s", e)
                return
            self.sent_count += 1

    async def _receive_loop(self) -> None:
        while True:
            try:
                text = await self.channel.receive_text()
            except (ChannelClosedError, OSError):
                return
            if text is None:
                return
            try:
                message = decode_client_message(text)
            except ValidationError:
                logger.debug("Ignoring invalid client message: %r", text)
                continue
            self.handle_client_message(message)

    def handle_client_message(self, message: ClientMessage) -> None:
        """Both client messages are accepted and currently need no reply."""
        if isinstance(message, PingMessage):
            pass
        elif isinstance(message, RequestRefreshMessage):
            pass
        else:
            assert_never(message)
