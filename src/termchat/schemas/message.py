"""
Message Schema Definitions

This module defines the message structures for chat message operations
including posting messages and receiving chat lines from the server.
"""

from dataclasses import dataclass
from typing import Any, Dict

from ..protocol import MessageType, Status
from .base import BaseRequest, BaseResponse, parse_status


@dataclass
class PostMessageRequest(BaseRequest):
    """
    Request to post a message to the chat.

    Attributes:
        token: Bearer token received at login
        msg: The message text
    """

    token: str
    msg: str

    message_type = MessageType.POST_MESSAGE_REQUEST


@dataclass
class PostMessageResponse(BaseResponse):
    """
    Response telling whether a message was posted.

    Attributes:
        status: Outcome of the post
    """

    status: Status

    message_type = MessageType.POST_MESSAGE_RESPONSE

    @classmethod
    def _from_data(cls, data: Dict[str, Any]) -> "PostMessageResponse":
        """Create from the envelope dictionary."""
        return cls(status=parse_status(data["status"]))


@dataclass
class ChatMessage(BaseResponse):
    """
    Chat line pushed by the server to every client.

    Attributes:
        nickname: Author of the message
        msg: The message text
        is_system: True for server notices (joins, leaves, ...)
    """

    nickname: str
    msg: str
    is_system: bool = False

    message_type = MessageType.CHAT_MESSAGE

    @classmethod
    def _from_data(cls, data: Dict[str, Any]) -> "ChatMessage":
        """Create from the envelope dictionary."""
        nickname = data.get("nickname", "")
        msg = data["msg"]
        is_system = data.get("isSystem", False)
        if not isinstance(nickname, str) or not isinstance(msg, str):
            raise TypeError("nickname and msg must be strings")
        if not isinstance(is_system, bool):
            raise TypeError(f"isSystem must be a boolean, got {is_system!r}")
        return cls(nickname=nickname, msg=msg, is_system=is_system)
