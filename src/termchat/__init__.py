"""
Terminal Chat Client Package

This package provides a terminal chat client: the WebSocket connection
handler, the listener-based event dispatch, the session protocol with its
login handshake and reconnect state machine, and the Textual user interface.

Schemas are organized in the `schemas` subpackage by category:
    - login: Login handshake
    - message: Posting and receiving chat messages
    - users: Online users list
"""

from .config import Config, ConfigError, read_config, write_config
from .connection import ConnectionHandler
from .events import EventDispatcher
from .handoff import TokenHandoff
from .protocol import MessageType, ProtocolError, Status
from .session import ChatSession, SessionState
from .schemas import (
    # Base classes
    BaseRequest,
    BaseResponse,
    MessageDecodeError,
    # Login schemas
    LoginRequest,
    LoginResponse,
    # Message schemas
    PostMessageRequest,
    PostMessageResponse,
    ChatMessage,
    # Online users schemas
    OnlineUsersRequest,
    OnlineUsersResponse,
)

__version__ = "0.1.0"

__all__ = [
    # Core classes
    "ConnectionHandler",
    "EventDispatcher",
    "TokenHandoff",
    "ChatSession",
    "SessionState",
    # Protocol
    "MessageType",
    "Status",
    "ProtocolError",
    # Config
    "Config",
    "ConfigError",
    "read_config",
    "write_config",
    # Base schema classes
    "BaseRequest",
    "BaseResponse",
    "MessageDecodeError",
    # Login schemas
    "LoginRequest",
    "LoginResponse",
    # Message schemas
    "PostMessageRequest",
    "PostMessageResponse",
    "ChatMessage",
    # Online users schemas
    "OnlineUsersRequest",
    "OnlineUsersResponse",
]
