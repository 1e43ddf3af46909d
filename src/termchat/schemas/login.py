"""
Login Schema Definitions

This module defines the messages of the login handshake: the client asks
for a session under a nickname and the server answers with a bearer token.
"""

from dataclasses import dataclass
from typing import Any, Dict

from ..protocol import MessageType, Status
from .base import BaseRequest, BaseResponse, parse_status


@dataclass
class LoginRequest(BaseRequest):
    """
    Request to log in under a nickname.

    Attributes:
        nickname: Name to show to other users
    """

    nickname: str

    message_type = MessageType.LOGIN_REQUEST


@dataclass
class LoginResponse(BaseResponse):
    """
    Response to a login request.

    Attributes:
        status: Login outcome
        token: Bearer token, empty unless status is OK
    """

    status: Status
    token: str = ""

    message_type = MessageType.LOGIN_RESPONSE

    @classmethod
    def _from_data(cls, data: Dict[str, Any]) -> "LoginResponse":
        """Create from the envelope dictionary."""
        status = parse_status(data["status"])
        token = data.get("token") or ""
        if not isinstance(token, str):
            raise TypeError(f"token must be a string, got {token!r}")
        return cls(status=status, token=token if status == Status.OK else "")
