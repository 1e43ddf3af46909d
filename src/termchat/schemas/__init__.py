"""
Schemas Package

This package contains protocol message schemas for client-server communication.
Schemas are organized by category: login, chat message, and online users.

The package provides base classes (BaseRequest, BaseResponse) that eliminate
code duplication for serialization and deserialization methods.
"""

from .base import BaseRequest, BaseResponse, MessageDecodeError
from .login import LoginRequest, LoginResponse
from .message import ChatMessage, PostMessageRequest, PostMessageResponse
from .users import OnlineUsersRequest, OnlineUsersResponse

__all__ = [
    # Base classes
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
