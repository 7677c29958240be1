import asyncio
import logging

import pytest

from edbot_lib.const import Category, RequestType
from edbot_lib.errors import (
    EdbotConnectionClosedError,
    EdbotConnectionError,
    EdbotInvalidArgument,
    EdbotNotConnectedError,
    EdbotRequestError,
    EdbotTimeoutError,
)
from edbot_lib.session import Session
from edbot_lib.types import ClientConfig


@pytest.fixture
def events():
    return []


@pytest.fixture
def session(channel_factory, events):
    return Session(ClientConfig(name="test"), listener=events.append, channel_factory=channel_factory)


@pytest.mark.asyncio
async def test_request_resolves_with_response_data(session, handshake):
    channel = await handshake(session.connect)

    fut = session.request(RequestType.GET_CLIENTS)
    sent = channel.sent[-1]
    assert sent == {"category": 1, "type": 2, "sequence": 2, "params": None}

    channel.server_respond(sent, data={"clients": ["a"]})

    assert await fut == {"clients": ["a"]}
    assert session.pending_count() == 0


@pytest.mark.asyncio
async def test_out_of_order_responses_reach_their_callers(session, handshake):
    channel = await handshake(session.connect)

    first = session.request(RequestType.GET_CLIENTS)
    second = session.request(RequestType.GET_SERVERS)
    third = session.request(RequestType.SAY, {"name": "Bob", "text": "hi"})
    req1, req2, req3 = channel.sent[1:]
    assert [r["sequence"] for r in (req1, req2, req3)] == [2, 3, 4]

    channel.server_respond(req3, data="said")
    channel.server_respond(req1, data="clients")
    channel.server_respond(req2, data="servers")

    assert await asyncio.gather(first, second, third) == ["clients", "servers", "said"]


@pytest.mark.asyncio
async def test_failed_response_rejects_with_status_text(session, handshake):
    channel = await handshake(session.connect)

    fut = session.request(RequestType.RUN_MOTION, {"name": "Bob", "motion": "Nope"})
    channel.server_respond(channel.sent[-1], success=False, text="Unknown motion")

    with pytest.raises(EdbotRequestError, match="Unknown motion") as excinfo:
        await fut
    assert excinfo.value.sequence == 2
    assert excinfo.value.request_type == RequestType.RUN_MOTION


@pytest.mark.asyncio
async def test_request_when_not_connected_raises_without_sending(session, channel_factory, handshake):
    with pytest.raises(EdbotNotConnectedError):
        session.request(RequestType.GET_CLIENTS)
    assert channel_factory.channels == []

    channel = await handshake(session.connect)
    await session.disconnect()

    with pytest.raises(EdbotNotConnectedError):
        session.request(RequestType.GET_CLIENTS)
    assert len(channel.sent) == 1


@pytest.mark.asyncio
async def test_duplicate_and_unknown_responses_are_ignored(session, handshake, events, caplog):
    channel = await handshake(session.connect)
    fut = session.request(RequestType.GET_SERVERS)
    request = channel.sent[-1]

    channel.server_respond(request, data=1)
    with caplog.at_level(logging.DEBUG):
        channel.server_respond(request, data=2)
        channel.server_respond({"type": 3, "sequence": 99}, data=3)

    assert await fut == 1
    assert "unknown sequence 99" in caplog.text
    # every response is still surfaced to the listener
    assert [e.data for e in events if e.category is Category.RESPONSE][-3:] == [1, 2, 3]


@pytest.mark.asyncio
async def test_close_rejects_every_pending_call(session, handshake, events):
    channel = await handshake(session.connect)
    futs = [session.request(RequestType.GET_CLIENTS) for _ in range(3)]

    channel.server_close(1006, "gone")

    for fut in futs:
        with pytest.raises(EdbotConnectionClosedError) as excinfo:
            await fut
        assert excinfo.value.code == 1006
    assert session.pending_count() == 0
    assert events[-1].category is Category.CLOSE
    assert events[-1].data == {"code": 1006, "reason": "gone"}


@pytest.mark.asyncio
async def test_request_timeout_removes_entry(session, handshake):
    await handshake(session.connect)

    fut = session.request(RequestType.GET_SENSORS, timeout_s=0.01)

    with pytest.raises(EdbotTimeoutError, match="GET_SENSORS"):
        await fut
    assert session.pending_count() == 0


@pytest.mark.asyncio
async def test_config_request_timeout_applies_by_default(channel_factory, handshake):
    session = Session(ClientConfig(request_timeout_s=0.01), channel_factory=channel_factory)
    await handshake(session.connect)

    with pytest.raises(EdbotTimeoutError):
        await session.request(RequestType.GET_CLIENTS)


@pytest.mark.asyncio
async def test_late_response_after_timeout_is_ignored(session, handshake):
    channel = await handshake(session.connect)
    fut = session.request(RequestType.GET_CLIENTS, timeout_s=0.01)
    request = channel.sent[-1]

    with pytest.raises(EdbotTimeoutError):
        await fut
    channel.server_respond(request, data="late")

    assert session.connected
    assert session.pending_count() == 0


@pytest.mark.asyncio
async def test_cancelled_request_is_forgotten(session, handshake):
    await handshake(session.connect)
    fut = session.request(RequestType.GET_CLIENTS)
    assert session.pending_count() == 1

    fut.cancel()
    await asyncio.sleep(0)

    assert session.pending_count() == 0


@pytest.mark.asyncio
async def test_send_failure_rejects_request(session, handshake):
    channel = await handshake(session.connect)
    channel.fail_send = True

    fut = session.request(RequestType.GET_CLIENTS)

    with pytest.raises(EdbotConnectionError):
        await fut
    assert session.pending_count() == 0


@pytest.mark.asyncio
async def test_updates_and_deletes_follow_the_mirror(session, handshake, events):
    channel = await handshake(session.connect, {"robots": {"Bob": {"control": None, "servos": [1, 2]}}})

    channel.server_update({"robots": {"Bob": {"control": "dev-1"}}})
    channel.server_delete("robots.Bob.servos[0]")

    assert session.data == {"robots": {"Bob": {"control": "dev-1", "servos": [None, 2]}}}
    assert [e.category for e in events] == [Category.RESPONSE, Category.UPDATE, Category.DELETE]


@pytest.mark.asyncio
async def test_malformed_traffic_is_logged_and_skipped(session, handshake, events, caplog):
    channel = await handshake(session.connect, {"a": 1})

    with caplog.at_level(logging.WARNING):
        channel.listener.on_message("{not json")
        channel.server_update([1, 2])
        channel.server_push({"category": 4, "data": {}})
    channel.server_push({"category": 42, "data": {"x": 1}})

    assert session.data == {"a": 1}
    assert session.connected
    assert "undecodable" in caplog.text
    assert len(events) == 1


@pytest.mark.asyncio
async def test_listener_errors_are_logged_once_per_type(channel_factory, handshake, caplog):
    def _boom(envelope):
        raise RuntimeError("listener bug")

    session = Session(ClientConfig(), listener=_boom, channel_factory=channel_factory)
    with caplog.at_level(logging.WARNING):
        channel = await handshake(session.connect, {})
        channel.server_update({"a": 1})
        channel.server_update({"a": 2})

    assert session.data == {"a": 2}
    assert caplog.text.count("Listener callback failed") == 1


@pytest.mark.asyncio
async def test_deeply_nested_frame_is_dropped_and_session_survives(session, handshake, caplog):
    channel = await handshake(session.connect, {"a": 1})

    with caplog.at_level(logging.WARNING):
        channel.listener.on_message('{"category":3,"data":' + "[" * 100000 + "]" * 100000 + "}")

    assert session.connected
    assert "undecodable" in caplog.text
    fut = session.request(RequestType.GET_CLIENTS)
    channel.server_respond(channel.sent[-1], data="clients")
    assert await fut == "clients"


@pytest.mark.asyncio
@pytest.mark.parametrize("timeout_s", [0, -1])
async def test_non_positive_request_timeout_rejected(session, handshake, timeout_s):
    channel = await handshake(session.connect)

    with pytest.raises(EdbotInvalidArgument):
        session.request(RequestType.GET_CLIENTS, timeout_s=timeout_s)
    assert len(channel.sent) == 1
    assert session.pending_count() == 0
