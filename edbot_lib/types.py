"""Public types for edbot_lib."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from .const import (
    API_PATH,
    CONTROL_POLL_INTERVAL_S,
    DEFAULT_OPEN_TIMEOUT_S,
    DEFAULT_PORT,
    DEFAULT_SERVER,
)
from .errors import EdbotInvalidArgument


@dataclass(frozen=True, slots=True)
class ClientConfig:
    """
    Immutable client configuration.

    Provided once at construction time and treated as read-only thereafter.
    A timeout of None means "wait forever", which is the server's reference
    behavior for requests and for awaiting robot control.
    """

    server: str = DEFAULT_SERVER
    port: int = DEFAULT_PORT
    name: Optional[str] = None
    reporters: bool = True
    device_alias: Optional[str] = None
    request_timeout_s: Optional[float] = None
    control_timeout_s: Optional[float] = None
    control_poll_interval_s: float = CONTROL_POLL_INTERVAL_S
    open_timeout_s: Optional[float] = DEFAULT_OPEN_TIMEOUT_S
    wire_log: bool = False            # log raw TX/RX text at DEBUG
    logger_name: Optional[str] = None

    @property
    def url(self) -> str:
        return f"ws://{self.server}:{self.port}{API_PATH}"

    def validate(self) -> None:
        if not isinstance(self.server, str) or not self.server:
            raise EdbotInvalidArgument("server must be a non-empty string.")
        if isinstance(self.port, bool) or not isinstance(self.port, int) or self.port <= 0:
            raise EdbotInvalidArgument("port must be a positive integer.")
        for field_name in ("request_timeout_s", "control_timeout_s", "open_timeout_s"):
            value = getattr(self, field_name)
            if value is not None and value <= 0:
                raise EdbotInvalidArgument(f"{field_name} must be positive or None.")
        if self.control_poll_interval_s <= 0:
            raise EdbotInvalidArgument("control_poll_interval_s must be positive.")

    def init_params(self) -> dict[str, object]:
        """Params of the INIT handshake request."""
        return {
            "name": self.name,
            "reporters": self.reporters,
            "deviceAlias": self.device_alias,
        }


__all__ = ["ClientConfig"]
