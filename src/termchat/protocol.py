"""
Protocol Definitions for Client-Server Communication

This module defines the wire-level vocabulary shared by the chat client and
server: the message type codes, the response status codes, and the helpers
for turning WebSocket text frames into envelopes and back.

Message Format:
    Every frame carries exactly one flat JSON object with an integer
    "type" discriminant next to the message-specific fields:
    {
        "type": 3,
        "token": "...",
        "msg": "hello"
    }
"""

import json
from enum import IntEnum
from typing import Any, Dict, Union

# Path appended to "host:port" when building the endpoint URL
CHAT_PATH = "/chat"


class MessageType(IntEnum):
    """Type codes distinguishing requests and responses."""

    LOGIN_REQUEST = 1
    LOGIN_RESPONSE = 2
    POST_MESSAGE_REQUEST = 3
    POST_MESSAGE_RESPONSE = 4
    CHAT_MESSAGE = 5
    ONLINE_USERS_REQUEST = 6
    ONLINE_USERS_RESPONSE = 7


class Status(IntEnum):
    """Status codes carried by every server response."""

    OK = 1
    INVALID_TOKEN = 2
    NAME_TAKEN = 3
    NAME_EMPTY = 4
    NAME_TOO_LONG = 5
    MESSAGE_EMPTY = 6
    MESSAGE_TOO_LONG = 7


class ProtocolError(Exception):
    """
    Raised when a frame violates the message stream contract.

    The client cannot resynchronise with the server after this, so the
    receive loop stops and the error is treated as fatal.
    """


def build_url(address: str, tls: bool) -> str:
    """
    Build the WebSocket endpoint URL for a server address.

    Args:
        address: Server address in the form 'host:port'
        tls: Use the secure scheme if True

    Returns:
        Endpoint URL, e.g. ws://localhost:8080/chat
    """
    scheme = "wss" if tls else "ws"
    return f"{scheme}://{address}{CHAT_PATH}"


def decode_envelope(frame: Union[str, bytes]) -> Dict[str, Any]:
    """
    Decode one text frame into a generic envelope.

    Args:
        frame: Raw frame payload received from the server

    Returns:
        The decoded JSON object

    Raises:
        ProtocolError: If the frame is not a JSON object
    """
    try:
        envelope = json.loads(frame)
    except (json.JSONDecodeError, UnicodeDecodeError) as e:
        raise ProtocolError(f"Malformed frame from server: {e}") from e

    if not isinstance(envelope, dict):
        raise ProtocolError(
            f"Expected JSON object from server, got {type(envelope).__name__}"
        )
    return envelope


def encode_envelope(envelope: Dict[str, Any]) -> str:
    """Encode an envelope as a JSON text frame."""
    return json.dumps(envelope)

