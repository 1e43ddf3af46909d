"""
Base Schema Classes

This module provides base classes for request and response schemas with
common serialization and deserialization methods to avoid code duplication.

Unlike nested protocols, the chat server expects flat envelopes: the
dataclass fields sit next to the integer "type" key.
"""

import json
from dataclasses import asdict, fields
from typing import Any, Dict, TypeVar

from ..protocol import MessageType, Status

T = TypeVar("T", bound="BaseResponse")


class MessageDecodeError(ValueError):
    """Raised when an envelope cannot be decoded into its typed schema."""


class BaseRequest:
    """
    Base class for request schemas.

    Provides common serialization methods for converting request objects
    to dictionary and JSON formats.
    """

    message_type: MessageType

    def to_dict(self) -> Dict[str, Any]:
        """
        Convert to dictionary for JSON serialization.

        Returns:
            Dictionary with the integer 'type' key followed by the
            request fields.
        """
        data: Dict[str, Any] = {"type": int(self.message_type)}
        data.update(asdict(self))
        return data

    def to_json(self) -> str:
        """
        Convert to JSON string.

        Returns:
            JSON string representation of the request.
        """
        return json.dumps(self.to_dict())


class BaseResponse:
    """
    Base class for response schemas.

    Provides common deserialization methods for creating response objects
    from dictionary and JSON formats.
    """

    message_type: MessageType

    @classmethod
    def from_dict(cls: type[T], data: Dict[str, Any]) -> T:
        """
        Create instance from dictionary.

        Args:
            data: Envelope received from the server.

        Returns:
            Instance of the response class.

        Raises:
            MessageDecodeError: If the envelope has the wrong type or
                is missing required fields.
        """
        if data.get("type") != cls.message_type:
            raise MessageDecodeError(
                f"Expected type {int(cls.message_type)}, "
                f"got {data.get('type')!r}"
            )
        try:
            return cls._from_data(data)
        except (KeyError, TypeError, ValueError) as e:
            raise MessageDecodeError(
                f"Decode {cls.__name__}: {e!r}"
            ) from e

    @classmethod
    def from_json(cls: type[T], json_str: str) -> T:
        """
        Create instance from JSON string.

        Args:
            json_str: JSON string containing response data.

        Returns:
            Instance of the response class.
        """
        data = json.loads(json_str)
        return cls.from_dict(data)

    @classmethod
    def _from_data(cls: type[T], data: Dict[str, Any]) -> T:
        """
        Create instance from the envelope dictionary.

        Should be overridden by subclasses for custom deserialization.
        The default picks the dataclass fields out of the envelope.
        """
        return cls(**{f.name: data[f.name] for f in fields(cls)})


def parse_status(value: Any) -> Status:
    """
    Convert a wire status value into a Status.

    Raises:
        ValueError: If the value is not a known status code.
    """
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise ValueError(f"Invalid status value: {value!r}")
    if isinstance(value, float) and not value.is_integer():
        raise ValueError(f"Invalid status value: {value!r}")
    return Status(int(value))
