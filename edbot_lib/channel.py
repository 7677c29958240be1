"""
Channel adapter for the Edbot Studio WebSocket endpoint.

Responsibilities:
- Open the WebSocket, pump inbound text frames to a single listener in arrival order.
- Serialize outbound text through one sender task so wire order equals call order.
- Report open / message / close / error boundary events; nothing else.

Non-responsibilities (explicit):
- Parsing payloads (text is opaque here).
- Retry / reconnection policy (belongs above the Session layer).
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
from typing import Optional, Protocol

import websockets
from websockets.exceptions import ConnectionClosed, WebSocketException

from .const import CLOSE_ABNORMAL, CLOSE_INTERNAL_ERROR, CLOSE_NORMAL, DEFAULT_OPEN_TIMEOUT_S
from .errors import EdbotConnectionError


class ChannelListener(Protocol):
    def on_open(self) -> None: ...

    def on_message(self, text: str) -> None: ...

    def on_close(self, code: int, reason: str) -> None: ...

    def on_error(self, reason: str) -> None: ...


class Channel(Protocol):
    def open(self, url: str) -> None: ...

    def send(self, text: str) -> None: ...

    async def close(self, code: int = CLOSE_NORMAL, reason: str = "") -> None: ...


class WebSocketChannel:
    """
    Duplex text channel over ``websockets``.

    Typical usage (the Session does this):
        ch = WebSocketChannel(listener)
        ch.open("ws://localhost:54255/api")   # on_open / on_error follow
        ch.send('{"category":1,...}')
        await ch.close(1000, "Closed by client")
    """

    def __init__(
        self,
        listener: ChannelListener,
        *,
        open_timeout_s: Optional[float] = DEFAULT_OPEN_TIMEOUT_S,
        wire_log: bool = False,
        logger: Optional[logging.Logger] = None,
    ) -> None:
        self._listener = listener
        self._open_timeout_s = open_timeout_s
        self._wire_log = wire_log
        self._log = logger or logging.getLogger(__name__)
        self._ws = None
        self._task: Optional[asyncio.Task[None]] = None
        self._outbox: asyncio.Queue[str] = asyncio.Queue()
        self._closed = False

    @property
    def is_open(self) -> bool:
        return self._ws is not None and not self._closed

    def open(self, url: str) -> None:
        if self._task is not None:
            raise EdbotConnectionError("Channel has already been opened.")
        self._task = asyncio.get_running_loop().create_task(
            self._run(url), name="edbot-channel"
        )

    def send(self, text: str) -> None:
        if not self.is_open:
            raise EdbotConnectionError("Channel is not open.")
        self._outbox.put_nowait(text)

    async def close(self, code: int = CLOSE_NORMAL, reason: str = "") -> None:
        """Close the channel. Safe to call multiple times."""
        task = self._task
        if task is None or self._closed:
            return
        if self._ws is None:
            # Still opening: abandon the attempt and report the close ourselves.
            task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await task
            self._finish(code, reason)
            return
        with contextlib.suppress(ConnectionClosed, OSError):
            await self._ws.close(code=code, reason=reason)
        if task is not asyncio.current_task():
            await task

    async def _run(self, url: str) -> None:
        try:
            ws = await websockets.connect(url, open_timeout=self._open_timeout_s)
        except (OSError, asyncio.TimeoutError, WebSocketException) as e:
            self._closed = True
            reason = str(e) or type(e).__name__
            self._log.warning("Failed to open channel to %s: %s", url, reason)
            self._listener.on_error(reason)
            return

        self._ws = ws
        sender = asyncio.get_running_loop().create_task(self._sender(ws))
        self._listener.on_open()
        try:
            async for frame in ws:
                if isinstance(frame, bytes):
                    frame = frame.decode("utf-8", errors="replace")
                if self._wire_log and self._log.isEnabledFor(logging.DEBUG):
                    self._log.debug("RX text (%d chars): %s", len(frame), frame)
                self._listener.on_message(frame)
        except ConnectionClosed:
            pass
        except Exception as e:  # noqa: BLE001
            self._log.warning(
                "Channel receive loop failed: %s", str(e) or type(e).__name__, exc_info=True
            )
            with contextlib.suppress(ConnectionClosed, OSError):
                await ws.close(code=CLOSE_INTERNAL_ERROR, reason="Receive loop failed")
        finally:
            sender.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await sender
            code = ws.close_code if ws.close_code is not None else CLOSE_ABNORMAL
            self._finish(code, ws.close_reason or "")

    async def _sender(self, ws) -> None:
        while True:
            text = await self._outbox.get()
            if self._wire_log and self._log.isEnabledFor(logging.DEBUG):
                self._log.debug("TX text (%d chars): %s", len(text), text)
            try:
                await ws.send(text)
            except ConnectionClosed:
                self._log.debug("Channel sender stopped; connection closed")
                return

    def _finish(self, code: int, reason: str) -> None:
        if self._closed:
            return
        self._closed = True
        self._listener.on_close(code, reason)


__all__ = ["Channel", "ChannelListener", "WebSocketChannel"]
