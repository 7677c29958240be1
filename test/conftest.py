from __future__ import annotations

import asyncio
import json
from typing import Any

import pytest

from edbot_lib.errors import EdbotConnectionError


class FakeChannel:
    """Scripted channel: records what the session sends, replays what the server says."""

    def __init__(self, listener) -> None:
        self.listener = listener
        self.url = None
        self.sent: list[dict[str, Any]] = []
        self.closed = None
        self.fail_send = False

    def open(self, url: str) -> None:
        self.url = url

    def send(self, text: str) -> None:
        if self.closed is not None or self.fail_send:
            raise EdbotConnectionError("Channel is not open.")
        self.sent.append(json.loads(text))

    async def close(self, code: int = 1000, reason: str = "") -> None:
        if self.closed is not None:
            return
        self.closed = (code, reason)
        self.listener.on_close(code, reason)

    # server side

    def server_open(self) -> None:
        self.listener.on_open()

    def server_push(self, obj: dict[str, Any]) -> None:
        self.listener.on_message(json.dumps(obj))

    def server_respond(
        self,
        request: dict[str, Any],
        *,
        success: bool = True,
        text: str = "",
        data: Any = None,
    ) -> None:
        self.server_push(
            {
                "category": 2,
                "type": request["type"],
                "sequence": request["sequence"],
                "status": {"success": success, "text": text},
                "data": data,
            }
        )

    def server_update(self, data: dict[str, Any]) -> None:
        self.server_push({"category": 3, "data": data})

    def server_delete(self, path) -> None:
        self.server_push({"category": 4, "data": {"path": path}})

    def server_close(self, code: int = 1006, reason: str = "") -> None:
        if self.closed is not None:
            return
        self.closed = (code, reason)
        self.listener.on_close(code, reason)


class FakeChannelFactory:
    def __init__(self) -> None:
        self.channels: list[FakeChannel] = []

    def __call__(self, listener) -> FakeChannel:
        channel = FakeChannel(listener)
        self.channels.append(channel)
        return channel

    @property
    def last(self) -> FakeChannel:
        return self.channels[-1]


async def complete_handshake(connect, factory: FakeChannelFactory, data: Any = None) -> FakeChannel:
    """Run ``connect()`` against a fresh fake channel and answer its INIT request."""
    task = asyncio.create_task(connect())
    await asyncio.sleep(0)
    channel = factory.last
    channel.server_open()
    channel.server_respond(channel.sent[-1], data={} if data is None else data)
    await task
    return channel


@pytest.fixture
def channel_factory() -> FakeChannelFactory:
    return FakeChannelFactory()


@pytest.fixture
def handshake(channel_factory):
    async def _handshake(connect, data: Any = None) -> FakeChannel:
        return await complete_handshake(connect, channel_factory, data)

    return _handshake
