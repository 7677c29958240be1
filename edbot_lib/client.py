"""
Stable client facade for Edbot Studio.

This wraps the internal Session with:
- one method per server operation
- read helpers over the mirrored state (robots, control ownership)
- a polling wait for robot control
- event subscription helpers
"""

from __future__ import annotations

import asyncio
import logging
import threading
from typing import Any, Callable, Mapping, Optional

from .const import RequestType
from .control import ControlLatch
from .errors import EdbotInvalidArgument, EdbotNotConfiguredError
from .message import Envelope
from .session import ChannelFactory, Listener, Session, SessionState
from .types import ClientConfig


class EdbotClient:
    """
    Client API for consumers.

    Request methods return an ``asyncio.Future``; they raise
    EdbotNotConnectedError immediately (before anything is sent) when the
    session is not synchronized.

    Typical usage:
        client = EdbotClient(ClientConfig(name="demo"))
        await client.connect()
        for name in client.get_robot_names():
            print(name, client.have_control(name))
        await client.run_motion({"name": "Bob", "motion": "Wave"})
        await client.disconnect()
    """

    def __init__(
        self,
        config: ClientConfig | None = None,
        *,
        listener: Optional[Listener] = None,
        channel_factory: Optional[ChannelFactory] = None,
        logger: Optional[logging.Logger] = None,
        session: Optional[Session] = None,
    ) -> None:
        self.cfg = config or (session.cfg if session is not None else ClientConfig())
        self._log = logger or logging.getLogger(self.cfg.logger_name or __name__)
        self._listener = listener
        self._subscriber_callbacks: list[Callable[[Envelope], None]] = []
        self._subscriber_lock = threading.Lock()
        self._subscriber_error_types: set[type] = set()
        if session is None:
            session = Session(self.cfg, channel_factory=channel_factory, logger=self._log)
        session.set_listener(self._handle_envelope)
        self._session = session
        self._control_latch = ControlLatch(
            self.have_control, poll_interval_s=self.cfg.control_poll_interval_s
        )

    # --------------------------
    # Lifecycle
    # --------------------------

    @property
    def session(self) -> Session:
        return self._session

    @property
    def state(self) -> SessionState:
        return self._session.state

    @property
    def connected(self) -> bool:
        return self._session.connected

    def get_connected(self) -> bool:
        return self.connected

    async def connect(self) -> None:
        await self._session.connect()

    async def disconnect(self) -> None:
        """
        If connected, close the connection; listeners receive a CLOSE envelope.
        If the connection is already closed, it does nothing.
        """
        await self._session.disconnect()

    async def reconnect(self) -> None:
        await self._session.reconnect()

    # --------------------------
    # Subscribers
    # --------------------------

    def subscribe(self, callback: Callable[[Envelope], None]) -> Callable[[], None]:
        with self._subscriber_lock:
            if callback not in self._subscriber_callbacks:
                self._subscriber_callbacks.append(callback)
        return lambda: self.unsubscribe(callback)

    def unsubscribe(self, callback: Callable[[Envelope], None]) -> bool:
        with self._subscriber_lock:
            if callback not in self._subscriber_callbacks:
                return False
            self._subscriber_callbacks.remove(callback)
        return True

    def _handle_envelope(self, envelope: Envelope) -> None:
        with self._subscriber_lock:
            callbacks = list(self._subscriber_callbacks)
        if self._listener is not None:
            callbacks.insert(0, self._listener)
        for cb in callbacks:
            try:
                cb(envelope)
            except Exception as exc:  # noqa: BLE001
                exc_type = type(exc)
                if exc_type not in self._subscriber_error_types:
                    self._subscriber_error_types.add(exc_type)
                    self._log.warning("Subscriber callback failed: %s", exc_type.__name__)

    # --------------------------
    # Mirrored state
    # --------------------------

    def get_data(self) -> dict[str, Any]:
        return self._session.data

    def _robots(self) -> Mapping[str, Any]:
        robots = self._session.data.get("robots")
        return robots if isinstance(robots, Mapping) else {}

    def get_robot_names(self, model: Optional[str] = None) -> list[str]:
        robots = self._robots()
        if model is None:
            return list(robots)
        return [name for name, robot in robots.items() if _model_type(robot) == model]

    def get_robot(self, name: str) -> dict[str, Any]:
        robots = self._robots()
        if name not in robots:
            raise EdbotNotConfiguredError(name)
        return robots[name]

    def _device_id(self) -> Any:
        session_info = self._session.data.get("session")
        if not isinstance(session_info, Mapping):
            return None
        device = session_info.get("device")
        if not isinstance(device, Mapping):
            return None
        return device.get("id")

    def have_control(self, name: str) -> bool:
        robot = self.get_robot(name)
        device_id = self._device_id()
        if device_id is None or not isinstance(robot, Mapping):
            return False
        return robot.get("control") == device_id

    def await_control(self, name: str, *, timeout_s: Optional[float] = None) -> asyncio.Task[None]:
        """
        Wait until this device holds control of robot ``name``.

        The robot is looked up immediately, so an unknown name or a
        disconnected client raises here rather than from the returned task.
        """
        if timeout_s is not None and timeout_s <= 0:
            raise EdbotInvalidArgument("timeout_s must be positive or None.")
        self.get_robot(name)
        timeout = timeout_s if timeout_s is not None else self.cfg.control_timeout_s
        return asyncio.get_running_loop().create_task(
            self._control_latch.wait(name, timeout_s=timeout),
            name=f"edbot-await-control-{name}",
        )

    # --------------------------
    # Requests
    # --------------------------

    def request(
        self,
        request_type: RequestType | int,
        params: Any = None,
        *,
        timeout_s: Optional[float] = None,
    ) -> asyncio.Future[Any]:
        return self._session.request(request_type, params, timeout_s=timeout_s)

    def get_clients(self) -> asyncio.Future[Any]:
        return self.request(RequestType.GET_CLIENTS)

    def get_servers(self) -> asyncio.Future[Any]:
        return self.request(RequestType.GET_SERVERS)

    def get_sensors(self, params: Any = None) -> asyncio.Future[Any]:
        return self.request(RequestType.GET_SENSORS, params)

    def run_motion(self, params: Any) -> asyncio.Future[Any]:
        return self.request(RequestType.RUN_MOTION, params)

    def set_servos(self, params: Any) -> asyncio.Future[Any]:
        return self.request(RequestType.SET_SERVOS, params)

    def set_speaker(self, params: Any) -> asyncio.Future[Any]:
        return self.request(RequestType.SET_SPEAKER, params)

    def set_display(self, params: Any) -> asyncio.Future[Any]:
        return self.request(RequestType.SET_DISPLAY, params)

    def set_options(self, params: Any) -> asyncio.Future[Any]:
        return self.request(RequestType.SET_OPTIONS, params)

    def set_custom(self, params: Any) -> asyncio.Future[Any]:
        return self.request(RequestType.SET_CUSTOM, params)

    def say(self, params: Any) -> asyncio.Future[Any]:
        return self.request(RequestType.SAY, params)

    def reset(self, params: Any = None) -> asyncio.Future[Any]:
        return self.request(RequestType.RESET, params)


def _model_type(robot: Any) -> Any:
    if not isinstance(robot, Mapping):
        return None
    model = robot.get("model")
    if not isinstance(model, Mapping):
        return None
    return model.get("type")


__all__ = ["EdbotClient"]
