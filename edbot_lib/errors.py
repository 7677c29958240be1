"""
edbot_lib/errors.py

Typed errors raised by the Edbot client.

Every error derives from EdbotError so callers can catch the whole family.
"""

from __future__ import annotations

from typing import Optional


class EdbotError(Exception):
    """Base exception for all Edbot client failures."""


class EdbotInvalidArgument(EdbotError, ValueError):
    """Raised when a caller passes an invalid argument or configuration."""


class EdbotNotConnectedError(EdbotError):
    """Raised when an operation requires a synchronized session."""

    def __init__(self, message: str = "Not connected") -> None:
        super().__init__(message)


class EdbotNotConfiguredError(EdbotError):
    """Raised when a robot name is absent from the mirrored robot registry."""

    def __init__(self, robot_name: str) -> None:
        super().__init__(f"{robot_name} is not configured")
        self.robot_name = robot_name


class EdbotRequestError(EdbotError):
    """The server answered a request with status.success = false."""

    def __init__(
        self,
        text: str,
        *,
        request_type: Optional[int] = None,
        sequence: Optional[int] = None,
    ) -> None:
        super().__init__(text)
        self.text = text
        self.request_type = request_type
        self.sequence = sequence


class EdbotConnectionError(EdbotError):
    """Raised when the underlying channel fails."""


class EdbotConnectionClosedError(EdbotConnectionError):
    """A pending call was abandoned because the channel closed."""

    def __init__(self, code: int, reason: str = "") -> None:
        detail = f": {reason}" if reason else ""
        super().__init__(f"Connection closed (code={code}){detail}")
        self.code = code
        self.reason = reason


class EdbotTimeoutError(EdbotError):
    """Raised when an optional request or control timeout expires."""


class EdbotProtocolError(EdbotError):
    """Raised for malformed traffic or an exhausted sequence space."""


__all__ = [
    "EdbotConnectionClosedError",
    "EdbotConnectionError",
    "EdbotError",
    "EdbotInvalidArgument",
    "EdbotNotConfiguredError",
    "EdbotNotConnectedError",
    "EdbotProtocolError",
    "EdbotRequestError",
    "EdbotTimeoutError",
]
