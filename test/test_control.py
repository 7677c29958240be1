import asyncio

import pytest

from edbot_lib.control import ControlLatch
from edbot_lib.errors import EdbotTimeoutError


@pytest.mark.asyncio
async def test_latch_polls_until_check_passes():
    checks = []

    def _check(name):
        checks.append(name)
        return len(checks) >= 3

    await ControlLatch(_check, poll_interval_s=0.001).wait("Bob")

    assert checks == ["Bob", "Bob", "Bob"]


@pytest.mark.asyncio
async def test_latch_timeout():
    latch = ControlLatch(lambda name: False, poll_interval_s=0.001)

    with pytest.raises(EdbotTimeoutError, match="Bob"):
        await latch.wait("Bob", timeout_s=0.02)


@pytest.mark.asyncio
async def test_latch_propagates_check_errors():
    def _check(name):
        raise LookupError(name)

    with pytest.raises(LookupError):
        await ControlLatch(_check).wait("Bob")


@pytest.mark.asyncio
async def test_latch_wait_can_be_cancelled():
    task = asyncio.create_task(ControlLatch(lambda name: False, poll_interval_s=0.001).wait("Bob"))
    await asyncio.sleep(0.005)
    task.cancel()

    with pytest.raises(asyncio.CancelledError):
        await task


def test_poll_interval_must_be_positive():
    with pytest.raises(ValueError):
        ControlLatch(lambda name: True, poll_interval_s=0)
