"""Protocol constants for the Edbot Studio API."""

from __future__ import annotations

from enum import IntEnum


class Category(IntEnum):
    """Envelope category (the role of a message on the channel)."""

    REQUEST = 1
    RESPONSE = 2
    UPDATE = 3
    DELETE = 4
    CLOSE = 5  # synthesized locally, never on the wire


class RequestType(IntEnum):
    """Operation identifiers carried by REQUEST/RESPONSE envelopes."""

    INIT = 1
    GET_CLIENTS = 2
    GET_SERVERS = 3
    GET_SENSORS = 4
    RUN_MOTION = 5
    SET_SERVOS = 6
    SET_SPEAKER = 7
    SET_DISPLAY = 8
    SET_OPTIONS = 9
    SET_CUSTOM = 10
    SAY = 11
    RESET = 12


DEFAULT_SERVER = "localhost"
DEFAULT_PORT = 54255
API_PATH = "/api"

FIRST_SEQUENCE = 1
MAX_SEQUENCE = 4_294_967_295  # unsigned 32-bit

CONTROL_POLL_INTERVAL_S = 0.1
DEFAULT_OPEN_TIMEOUT_S = 10.0

CLOSE_NORMAL = 1000
CLOSE_ABNORMAL = 1006
CLOSE_INTERNAL_ERROR = 1011
CLOSE_REASON_CLIENT = "Closed by client"
CLOSE_REASON_HANDSHAKE = "Handshake rejected"
CLOSE_REASON_ABANDONED = "Connect abandoned"

__all__ = [
    "API_PATH",
    "CLOSE_ABNORMAL",
    "CLOSE_INTERNAL_ERROR",
    "CLOSE_NORMAL",
    "CLOSE_REASON_ABANDONED",
    "CLOSE_REASON_CLIENT",
    "CLOSE_REASON_HANDSHAKE",
    "CONTROL_POLL_INTERVAL_S",
    "Category",
    "DEFAULT_OPEN_TIMEOUT_S",
    "DEFAULT_PORT",
    "DEFAULT_SERVER",
    "FIRST_SEQUENCE",
    "MAX_SEQUENCE",
    "RequestType",
]
