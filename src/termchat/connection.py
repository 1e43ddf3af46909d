"""
Connection Handler for the Chat Client

This module owns the single persistent WebSocket connection to the chat
server and hides raw I/O from the protocol layer.

Architecture:
    - Uses WebSocket for real-time bidirectional communication
    - Supports dependency injection for the network layer and the clock
      (for testability)
    - Received envelopes and detected disconnects are published through
      an EventDispatcher; the handler never interprets message types

Failure semantics:
    - Connection loss is not fatal: disconnect listeners are notified and
      the receive loop keeps running until a listener reconnects
    - A malformed frame on an established connection is fatal
"""

import asyncio
import logging
from typing import Any, Awaitable, Callable, Dict, Optional

import websockets
from websockets.asyncio.client import ClientConnection
from websockets.exceptions import ConnectionClosed, WebSocketException

from .events import DisconnectListener, EventDispatcher, ResponseListener
from .protocol import build_url, decode_envelope, encode_envelope

logger = logging.getLogger(__name__)

# Seconds to wait between connection attempts
RETRY_DELAY = 5.0

# WebSocket close code for a normal closure
NORMAL_CLOSURE = 1000


class ConnectionHandler:
    """
    Wrapper around the WebSocket connection with convenient methods.

    Attributes:
        address: Server address in the form 'host:port'
        tls: Whether the secure scheme is used
        url: WebSocket endpoint URL
        websocket: Active connection (None while disconnected)
        dispatcher: Event bus for response and disconnect listeners
    """

    def __init__(
        self,
        address: str,
        tls: bool = False,
        dispatcher: Optional[EventDispatcher] = None,
        websocket_factory: Optional[Callable[[str], Awaitable[Any]]] = None,
        sleep: Optional[Callable[[float], Awaitable[None]]] = None,
        retry_delay: float = RETRY_DELAY,
    ):
        """
        Initialize the connection handler.

        Args:
            address: Server address in the form 'host:port'
            tls: Establish a secure connection if True
            dispatcher: Event bus to publish to (a new one by default)
            websocket_factory: Optional factory for creating WebSocket
                             connections (for dependency injection/testing)
            sleep: Optional replacement for asyncio.sleep (fake clock)
            retry_delay: Seconds between connection attempts
        """
        self.address = address
        self.tls = tls
        self.url = build_url(address, tls)
        self.websocket: Optional[ClientConnection] = None
        self.dispatcher = dispatcher or EventDispatcher()
        self.retry_delay = retry_delay
        self._websocket_factory = websocket_factory or websockets.connect
        self._sleep = sleep or asyncio.sleep

        logger.info("ConnectionHandler initialized for %s", self.url)

    @property
    def is_connected(self) -> bool:
        """Check if a connection handle is currently open."""
        return self.websocket is not None

    async def connect(self) -> None:
        """
        Connect to the server, retrying until it succeeds.

        There is no retry limit and no backoff: every failed attempt is
        logged and followed by a fixed delay.
        """
        while True:
            try:
                logger.debug("Connecting to %s...", self.url)
                self.websocket = await self._websocket_factory(self.url)
            except (OSError, asyncio.TimeoutError, WebSocketException) as e:
                logger.error(
                    "Connect to server: %s. Retrying in %g seconds.",
                    e,
                    self.retry_delay,
                )
                await self._sleep(self.retry_delay)
                continue
            logger.info("Connected to %s", self.address)
            return

    def add_on_response_listener(self, listener: ResponseListener) -> None:
        """Register a listener to run when a message arrives from the server."""
        self.dispatcher.add_response_listener(listener)

    def add_on_disconnect_listener(self, listener: DisconnectListener) -> None:
        """Register a listener to run when the connection to the server is lost."""
        self.dispatcher.add_disconnect_listener(listener)

    async def send(self, envelope: Dict[str, Any]) -> None:
        """
        Send the JSON encoding of an envelope to the server.

        Args:
            envelope: Message to send, including its "type" key

        Raises:
            ConnectionError: If not connected or the write fails
        """
        websocket = self.websocket
        if websocket is None:
            raise ConnectionError("Not connected to chat server")

        frame = encode_envelope(envelope)
        try:
            await websocket.send(frame)
        except (ConnectionClosed, OSError) as e:
            raise ConnectionError(f"Write to chat server: {e}") from e
        logger.debug("Sent message: %s", frame)

    async def listen(self) -> None:
        """
        Receive messages until an unrecoverable read error occurs.

        Every decoded envelope is passed to the response listeners. When
        the connection is lost the disconnect listeners run and the loop
        carries on reading, so a listener can replace the connection.

        Raises:
            ProtocolError: If a malformed frame arrives
        """
        self.dispatcher.freeze()
        logger.info("Starting message receive loop")

        while True:
            try:
                frame = await self._read_frame()
            except (ConnectionClosed, OSError) as e:
                logger.warning("Connection to server lost: %s", e)
                self.websocket = None
                await self.dispatcher.dispatch_disconnect(e)
                if self.websocket is None:
                    await self._sleep(self.retry_delay)
                continue

            logger.debug("Received message: %s", frame)
            envelope = decode_envelope(frame)
            await self.dispatcher.dispatch_response(envelope)

    async def close(self) -> None:
        """
        Send a normal closure to the server and close the connection.

        Best effort: failures are logged, never raised.
        """
        websocket = self.websocket
        if websocket is None:
            logger.debug("Close requested while disconnected")
            return

        self.websocket = None
        try:
            await websocket.close(code=NORMAL_CLOSURE)
        except (ConnectionClosed, OSError) as e:
            logger.error("Close connection: %s", e)
            return
        logger.info("Disconnected from chat server")

    async def _read_frame(self) -> Any:
        websocket = self.websocket
        if websocket is None:
            raise ConnectionError("Not connected to chat server")
        return await websocket.recv()
