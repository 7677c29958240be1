"""
Edbot Session (protocol core)

Responsibilities:
- Own the channel lifecycle: connect, INIT handshake, close.
- Tag outbound requests with per-connection sequence numbers and route each
  RESPONSE back to its caller exactly once.
- Keep the state mirror in step with UPDATE/DELETE patches once synchronized.
- Surface every dispatched envelope (and a synthesized CLOSE) to one listener.

Non-responsibilities (explicit):
- Transport details (opening sockets, framing): see channel.py.
- Reconnection/backoff policy: reconnect() is mechanical, any policy belongs above.
- Domain payload shaping for individual operations: see client.py.
"""

from __future__ import annotations

import asyncio
import functools
import logging
from enum import Enum
from typing import Any, Callable, Coroutine, Mapping, Optional

from .channel import Channel, ChannelListener, WebSocketChannel
from .const import (
    CLOSE_ABNORMAL,
    CLOSE_NORMAL,
    CLOSE_REASON_ABANDONED,
    CLOSE_REASON_CLIENT,
    CLOSE_REASON_HANDSHAKE,
    Category,
    RequestType,
)
from .errors import (
    EdbotConnectionClosedError,
    EdbotConnectionError,
    EdbotError,
    EdbotInvalidArgument,
    EdbotNotConnectedError,
    EdbotProtocolError,
    EdbotRequestError,
    EdbotTimeoutError,
)
from .message import Envelope, build_close_envelope, build_request, decode_envelope, encode_envelope
from .pending import PendingCallTable
from .states import StateMirror
from .types import ClientConfig

Listener = Callable[[Envelope], None]
ChannelFactory = Callable[[ChannelListener], Channel]


class SessionState(str, Enum):
    """Connection lifecycle states. Owned exclusively by Session."""

    DISCONNECTED = "disconnected"
    CONNECTING = "connecting"
    SYNCHRONIZED = "synchronized"


def _type_name(request_type: Any) -> str:
    return request_type.name if isinstance(request_type, RequestType) else str(request_type)


class _ChannelEvents:
    """Binds channel callbacks to the connection generation that created them."""

    def __init__(self, session: "Session", generation: int) -> None:
        self._session = session
        self._generation = generation

    def on_open(self) -> None:
        self._session._on_open(self._generation)

    def on_message(self, text: str) -> None:
        self._session._on_message(self._generation, text)

    def on_close(self, code: int, reason: str) -> None:
        self._session._on_close(self._generation, code, reason)

    def on_error(self, reason: str) -> None:
        self._session._on_error(self._generation, reason)


class Session:
    """
    One connection to an Edbot Studio server.

    Typical usage:
        s = Session(ClientConfig(name="demo"), listener=print)
        await s.connect()                        # INIT handshake, mirror seeded
        data = await s.request(RequestType.GET_CLIENTS)
        await s.disconnect()
    """

    def __init__(
        self,
        config: ClientConfig | None = None,
        *,
        listener: Optional[Listener] = None,
        channel_factory: Optional[ChannelFactory] = None,
        logger: Optional[logging.Logger] = None,
    ) -> None:
        self.cfg = config or ClientConfig()
        self._log = logger or logging.getLogger(self.cfg.logger_name or __name__)
        self._listener = listener
        self._channel_factory = channel_factory or self._default_channel_factory

        self.state: SessionState = SessionState.DISCONNECTED
        self.last_error: Exception | None = None
        self.mirror = StateMirror()

        self._pending = PendingCallTable()
        self._channel: Optional[Channel] = None
        self._generation = 0
        self._connect_future: Optional[asyncio.Future[Any]] = None
        self._background: set[asyncio.Task[Any]] = set()
        self._listener_error_types: set[type] = set()

    def _default_channel_factory(self, listener: ChannelListener) -> Channel:
        return WebSocketChannel(
            listener,
            open_timeout_s=self.cfg.open_timeout_s,
            wire_log=self.cfg.wire_log,
            logger=self._log,
        )

    # --------------------------
    # Accessors
    # --------------------------

    @property
    def connected(self) -> bool:
        return self.state is SessionState.SYNCHRONIZED

    @property
    def data(self) -> dict[str, Any]:
        """The live mirrored state tree."""
        self._require_synchronized()
        return self.mirror.snapshot()

    def pending_count(self) -> int:
        return self._pending.pending_count()

    def set_listener(self, listener: Optional[Listener]) -> None:
        self._listener = listener

    def _require_synchronized(self) -> None:
        if self.state is not SessionState.SYNCHRONIZED:
            raise EdbotNotConnectedError()

    # --------------------------
    # Connection lifecycle
    # --------------------------

    async def connect(self) -> None:
        """
        Open the channel and complete the INIT handshake.

        Returns immediately when already synchronized; joins the in-flight
        attempt when one is already connecting.
        """
        if self.state is SessionState.SYNCHRONIZED:
            return
        if self.state is SessionState.CONNECTING and self._connect_future is not None:
            await asyncio.shield(self._connect_future)
            return

        self.cfg.validate()
        loop = asyncio.get_running_loop()
        self._generation += 1
        self._pending = PendingCallTable()
        self.mirror.reset()
        self.last_error = None
        self.state = SessionState.CONNECTING
        future: asyncio.Future[Any] = loop.create_future()
        self._connect_future = future

        url = self.cfg.url
        self._log.info("Edbot session connecting to %s", url)
        channel = self._channel_factory(_ChannelEvents(self, self._generation))
        self._channel = channel
        try:
            channel.open(url)
        except (EdbotError, OSError) as e:
            self._fail_connect(
                EdbotConnectionError(f"Failed to open {url}: {e}"),
                close_code=CLOSE_ABNORMAL,
                close_reason=str(e),
            )

        try:
            await asyncio.shield(future)
        except asyncio.CancelledError:
            if not future.done() and self._connect_future is future:
                self._log.debug("Connect to %s cancelled by caller", url)
                future.cancel()
                self._fail_connect(
                    EdbotConnectionError("Connect cancelled."),
                    close_reason=CLOSE_REASON_ABANDONED,
                )
            raise

    async def disconnect(self) -> None:
        """
        Close the channel; the close event tears the session state down.

        Safe to call when not connected.
        """
        channel = self._channel
        if channel is None:
            return
        await channel.close(CLOSE_NORMAL, CLOSE_REASON_CLIENT)

    async def reconnect(self) -> None:
        """Mechanical reconnect helper (no backoff/policy)."""
        await self.disconnect()
        await self.connect()

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
        """
        Send a REQUEST and return a future settled by the matching RESPONSE.

        Raises EdbotNotConnectedError synchronously (nothing is sent) unless
        the session is synchronized. The future resolves with the response
        data, or fails with EdbotRequestError carrying status.text.
        """
        if timeout_s is not None and timeout_s <= 0:
            raise EdbotInvalidArgument("timeout_s must be positive or None.")
        self._require_synchronized()
        loop = asyncio.get_running_loop()
        future: asyncio.Future[Any] = loop.create_future()
        generation = self._generation
        sequence = self._send_request(request_type, params, future)

        timeout = timeout_s if timeout_s is not None else self.cfg.request_timeout_s
        if timeout is not None and not future.done():
            handle = loop.call_later(
                timeout, self._expire_request, generation, sequence, request_type, timeout
            )
            future.add_done_callback(lambda _: handle.cancel())
        future.add_done_callback(functools.partial(self._forget_cancelled, generation, sequence))
        return future

    def _send_request(self, request_type: RequestType | int, params: Any, future: asyncio.Future[Any]) -> int:
        channel = self._channel
        if channel is None:
            raise EdbotNotConnectedError()
        sequence = self._pending.register(future)
        text = encode_envelope(build_request(sequence, request_type, params))
        try:
            channel.send(text)
        except EdbotError as e:
            self._pending.reject(sequence, e)
        return sequence

    def _expire_request(self, generation: int, sequence: int, request_type: Any, timeout: float) -> None:
        if generation != self._generation:
            return
        self._log.debug(
            "Request %s (sequence %s) timed out after %ss", _type_name(request_type), sequence, timeout
        )
        self._pending.reject(
            sequence,
            EdbotTimeoutError(
                f"Request {_type_name(request_type)} (sequence {sequence}) timed out after {timeout}s."
            ),
        )

    def _forget_cancelled(self, generation: int, sequence: int, future: asyncio.Future[Any]) -> None:
        if future.cancelled() and generation == self._generation:
            self._pending.discard(sequence)

    # --------------------------
    # Channel events
    # --------------------------

    def _on_open(self, generation: int) -> None:
        if generation != self._generation or self.state is not SessionState.CONNECTING:
            return
        future = self._connect_future
        if future is None or future.done():
            return
        self._send_request(RequestType.INIT, self.cfg.init_params(), future)
        if future.done():
            # The INIT send failed and already rejected the connect future.
            self._fail_connect(
                EdbotConnectionError("Failed to send INIT request."),
                close_code=CLOSE_ABNORMAL,
                close_reason="Failed to send INIT request.",
            )

    def _on_message(self, generation: int, text: str) -> None:
        if generation != self._generation:
            return
        try:
            envelope = decode_envelope(text)
        except EdbotProtocolError as e:
            self._log.warning("Ignoring undecodable message: %s", e)
            return
        self._dispatch(envelope)

    def _on_close(self, generation: int, code: int, reason: str) -> None:
        if generation != self._generation:
            return
        exc = EdbotConnectionClosedError(code, reason)
        self.last_error = exc
        abandoned = self._teardown(exc)
        self._log.info(
            "Edbot session closed (code=%s reason=%r); abandoned %d pending call(s)",
            code,
            reason,
            abandoned,
        )
        self._notify(build_close_envelope(code, reason))

    def _on_error(self, generation: int, reason: str) -> None:
        if generation != self._generation:
            return
        exc = EdbotConnectionError(reason)
        self.last_error = exc
        self._log.warning("Edbot channel error in state=%s: %s", self.state.value, reason)
        if self.state is SessionState.CONNECTING:
            self._fail_connect(exc, close_code=CLOSE_ABNORMAL, close_reason=reason)
        # Once synchronized, the close event that follows performs the teardown.

    # --------------------------
    # Dispatch
    # --------------------------

    def _dispatch(self, envelope: Envelope) -> None:
        category = envelope.category
        if category == Category.RESPONSE:
            self._handle_response(envelope)
        elif category == Category.UPDATE:
            if self.state is not SessionState.SYNCHRONIZED:
                self._log.debug("Dropping update received before synchronization")
                return
            if not self.mirror.apply_update(envelope.data):
                self._log.warning("Ignoring update with non-object data: %r", type(envelope.data).__name__)
                return
            self._notify(envelope)
        elif category == Category.DELETE:
            if self.state is not SessionState.SYNCHRONIZED:
                self._log.debug("Dropping delete received before synchronization")
                return
            path = envelope.data.get("path") if isinstance(envelope.data, Mapping) else None
            if not self.mirror.apply_delete(path):
                self._log.warning("Ignoring delete with invalid path: %r", path)
                return
            self._notify(envelope)
        else:
            self._log.debug("Ignoring envelope with unsupported category %r", category)

    def _handle_response(self, envelope: Envelope) -> None:
        status = envelope.response_status()
        handshake_failed = False
        if envelope.type == RequestType.INIT and self.state is SessionState.CONNECTING:
            if status.success:
                self.mirror.mark_synchronized(envelope.data)
                self.state = SessionState.SYNCHRONIZED
                self._log.info("Edbot session synchronized with %s", self.cfg.url)
            else:
                handshake_failed = True

        self._notify(envelope)

        sequence = envelope.sequence
        if sequence is not None:
            if status.success:
                matched = self._pending.resolve(sequence, envelope.data)
            else:
                matched = self._pending.reject(
                    sequence,
                    EdbotRequestError(status.text, request_type=envelope.type, sequence=sequence),
                )
            if not matched:
                self._log.debug("Ignoring response for unknown sequence %s", sequence)

        if handshake_failed:
            self._log.warning("Edbot handshake rejected by %s: %s", self.cfg.url, status.text)
            self._fail_connect(
                EdbotRequestError(status.text, request_type=RequestType.INIT, sequence=sequence),
                close_reason=CLOSE_REASON_HANDSHAKE,
            )

    def _notify(self, envelope: Envelope) -> None:
        listener = self._listener
        if listener is None:
            return
        try:
            listener(envelope)
        except Exception as exc:  # noqa: BLE001
            exc_type = type(exc)
            if exc_type not in self._listener_error_types:
                self._listener_error_types.add(exc_type)
                self._log.warning("Listener callback failed: %s", exc_type.__name__, exc_info=True)

    # --------------------------
    # Teardown helpers
    # --------------------------

    def _teardown(self, exc: EdbotError) -> int:
        """
        Return to DISCONNECTED: clear the mirror and reject every pending call.

        Bumping the generation makes any later event from the old channel inert.
        """
        self._generation += 1
        self.state = SessionState.DISCONNECTED
        self.mirror.reset()
        self._channel = None
        abandoned = self._pending.drain_abandoned()
        connect_future = self._connect_future
        self._connect_future = None
        if connect_future is not None and not connect_future.done():
            connect_future.set_exception(exc)
        for future in abandoned:
            if not future.done():
                future.set_exception(exc)
        return len(abandoned)

    def _fail_connect(
        self,
        exc: EdbotError,
        *,
        close_code: int = CLOSE_NORMAL,
        close_reason: str = CLOSE_REASON_HANDSHAKE,
    ) -> None:
        """Abandon a connect attempt: tear down, close the channel and report CLOSE."""
        channel = self._channel
        self._teardown(exc)
        if channel is not None:
            self._spawn(channel.close(CLOSE_NORMAL, close_reason))
        self._notify(build_close_envelope(close_code, close_reason))

    def _spawn(self, coro: Coroutine[Any, Any, Any]) -> None:
        task = asyncio.get_running_loop().create_task(coro)
        self._background.add(task)
        task.add_done_callback(self._background.discard)


__all__ = ["Session", "SessionState"]
