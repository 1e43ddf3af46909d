"""
Event Dispatch for the Chat Client

This module decouples the network layer from its consumers. The connection
handler owns an EventDispatcher and fans every received envelope and every
detected disconnect out to the registered listeners.

Architecture:
    - Two append-only registries: response listeners and disconnect listeners
    - Invocation is synchronous on the receive loop, in registration order
    - Listeners may be plain callables or coroutine functions
    - A failing listener is logged and dispatch continues with the next one
    - Registration is closed once the receive loop starts (freeze)
"""

import inspect
import logging
import threading
from typing import Any, Awaitable, Callable, Dict, List, Union

logger = logging.getLogger(__name__)

ResponseListener = Callable[[Dict[str, Any]], Union[None, Awaitable[None]]]
DisconnectListener = Callable[[BaseException], Union[None, Awaitable[None]]]


async def invoke_listener(listener: Callable[..., Any], *args: Any) -> Any:
    """
    Call a listener and await its result if it returned an awaitable.

    Args:
        listener: Plain callable or coroutine function
        *args: Arguments passed to the listener

    Returns:
        Whatever the listener returned (after awaiting it)
    """
    result = listener(*args)
    if inspect.isawaitable(result):
        result = await result
    return result


class EventDispatcher:
    """
    Ordered, multi-subscriber callback registry.

    Attributes:
        frozen: True once the receive loop has started consuming events
    """

    def __init__(self) -> None:
        self._response_listeners: List[ResponseListener] = []
        self._disconnect_listeners: List[DisconnectListener] = []
        self._lock = threading.Lock()
        self.frozen = False

    def add_response_listener(self, listener: ResponseListener) -> None:
        """
        Register a listener for every envelope received from the server.

        Raises:
            RuntimeError: If dispatch has already started
        """
        with self._lock:
            self._check_open()
            self._response_listeners.append(listener)

    def add_disconnect_listener(self, listener: DisconnectListener) -> None:
        """
        Register a listener to run when the connection is lost.

        Raises:
            RuntimeError: If dispatch has already started
        """
        with self._lock:
            self._check_open()
            self._disconnect_listeners.append(listener)

    def freeze(self) -> None:
        """Close registration. Called when the receive loop starts."""
        with self._lock:
            self.frozen = True

    @property
    def response_listener_count(self) -> int:
        return len(self._response_listeners)

    @property
    def disconnect_listener_count(self) -> int:
        return len(self._disconnect_listeners)

    async def dispatch_response(self, envelope: Dict[str, Any]) -> None:
        """Invoke every response listener with the envelope, in order."""
        with self._lock:
            listeners = list(self._response_listeners)
        for listener in listeners:
            try:
                await invoke_listener(listener, envelope)
            except Exception:
                logger.exception(
                    "Response listener %s failed on message type %s",
                    _listener_name(listener),
                    envelope.get("type"),
                )

    async def dispatch_disconnect(self, error: BaseException) -> None:
        """Invoke every disconnect listener with the triggering error, in order."""
        with self._lock:
            listeners = list(self._disconnect_listeners)
        for listener in listeners:
            try:
                await invoke_listener(listener, error)
            except Exception:
                logger.exception(
                    "Disconnect listener %s failed", _listener_name(listener)
                )

    def _check_open(self) -> None:
        if self.frozen:
            raise RuntimeError(
                "Listeners must be registered before the receive loop starts"
            )


def _listener_name(listener: Callable[..., Any]) -> str:
    return getattr(listener, "__qualname__", repr(listener))
