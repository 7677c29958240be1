import asyncio

import pytest

from edbot_lib.errors import EdbotProtocolError
from edbot_lib.pending import PendingCallTable


@pytest.mark.asyncio
async def test_sequences_start_at_one_and_increase():
    table = PendingCallTable()
    loop = asyncio.get_running_loop()

    seqs = [table.register(loop.create_future()) for _ in range(3)]

    assert seqs == [1, 2, 3]
    assert table.pending_count() == 3
    assert table.next_sequence == 4


@pytest.mark.asyncio
async def test_resolve_pops_entry_exactly_once():
    table = PendingCallTable()
    fut = asyncio.get_running_loop().create_future()
    seq = table.register(fut)

    assert table.resolve(seq, {"ok": 1}) is True
    assert table.resolve(seq, {"ok": 2}) is False
    assert fut.result() == {"ok": 1}
    assert seq not in table
    assert table.pending_count() == 0


@pytest.mark.asyncio
async def test_reject_unknown_sequence_is_noop():
    table = PendingCallTable()
    fut = asyncio.get_running_loop().create_future()
    table.register(fut)

    assert table.reject(42, RuntimeError("x")) is False
    assert not fut.done()
    assert table.pending_count() == 1


@pytest.mark.asyncio
async def test_settling_done_future_still_removes_entry():
    table = PendingCallTable()
    fut = asyncio.get_running_loop().create_future()
    seq = table.register(fut)
    fut.cancel()

    assert table.reject(seq, RuntimeError("late")) is True
    assert fut.cancelled()
    assert table.pending_count() == 0


@pytest.mark.asyncio
async def test_drain_abandoned_empties_table():
    table = PendingCallTable()
    loop = asyncio.get_running_loop()
    futs = [loop.create_future() for _ in range(2)]
    for fut in futs:
        table.register(fut)

    abandoned = table.drain_abandoned()

    assert abandoned == futs
    assert table.pending_count() == 0
    assert table.drain_abandoned() == []


@pytest.mark.asyncio
async def test_exhausted_sequence_space_raises_instead_of_wrapping():
    table = PendingCallTable(first_sequence=9, max_sequence=10)
    loop = asyncio.get_running_loop()
    table.register(loop.create_future())
    table.register(loop.create_future())

    with pytest.raises(EdbotProtocolError):
        table.register(loop.create_future())
    assert table.pending_count() == 2


def test_invalid_range_rejected():
    with pytest.raises(ValueError):
        PendingCallTable(first_sequence=0)
    with pytest.raises(ValueError):
        PendingCallTable(first_sequence=5, max_sequence=4)
