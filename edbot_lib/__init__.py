"""Python client for the Edbot Studio WebSocket API."""

from .client import EdbotClient
from .const import Category, RequestType
from .errors import (
    EdbotConnectionClosedError,
    EdbotConnectionError,
    EdbotError,
    EdbotInvalidArgument,
    EdbotNotConfiguredError,
    EdbotNotConnectedError,
    EdbotProtocolError,
    EdbotRequestError,
    EdbotTimeoutError,
)
from .message import Envelope, ResponseStatus
from .session import Session, SessionState
from .types import ClientConfig

__all__ = [
    "Category",
    "ClientConfig",
    "EdbotClient",
    "EdbotConnectionClosedError",
    "EdbotConnectionError",
    "EdbotError",
    "EdbotInvalidArgument",
    "EdbotNotConfiguredError",
    "EdbotNotConnectedError",
    "EdbotProtocolError",
    "EdbotRequestError",
    "EdbotTimeoutError",
    "Envelope",
    "RequestType",
    "ResponseStatus",
    "Session",
    "SessionState",
]
