"""
Online Users Schema Definitions

This module defines the request for the list of online users and the
server's answer to it.
"""

from dataclasses import dataclass
from typing import Any, Dict, List, Optional

from ..protocol import MessageType, Status
from .base import BaseRequest, BaseResponse, parse_status


@dataclass
class OnlineUsersRequest(BaseRequest):
    """
    Request for the nicknames of everyone currently online.

    Attributes:
        token: Bearer token received at login
    """

    token: str

    message_type = MessageType.ONLINE_USERS_REQUEST


@dataclass
class OnlineUsersResponse(BaseResponse):
    """
    Response containing the online users.

    Attributes:
        status: Outcome of the request
        users: Nicknames of online users, None unless status is OK
    """

    status: Status
    users: Optional[List[str]] = None

    message_type = MessageType.ONLINE_USERS_RESPONSE

    @classmethod
    def _from_data(cls, data: Dict[str, Any]) -> "OnlineUsersResponse":
        """Create from the envelope dictionary."""
        status = parse_status(data["status"])
        if status != Status.OK:
            return cls(status=status)

        users = data.get("users") or []
        if not isinstance(users, list) or not all(
            isinstance(user, str) for user in users
        ):
            raise TypeError(f"users must be a list of strings, got {users!r}")
        return cls(status=status, users=list(users))
