"""Polling wait for exclusive robot control."""

from __future__ import annotations

import asyncio
from typing import Callable, Optional

from .const import CONTROL_POLL_INTERVAL_S
from .errors import EdbotTimeoutError


class ControlLatch:
    """
    Wait until ``check(robot_name)`` reports that the local device holds control.

    Control changes arrive as ordinary UPDATE patches with no dedicated event,
    so the latch polls. ``check`` is re-evaluated on every tick against the
    current state mirror; any error it raises (not connected, robot no longer
    configured) ends the wait.
    """

    def __init__(
        self,
        check: Callable[[str], bool],
        *,
        poll_interval_s: float = CONTROL_POLL_INTERVAL_S,
    ) -> None:
        if poll_interval_s <= 0:
            raise ValueError("poll_interval_s must be positive")
        self._check = check
        self._poll_interval_s = poll_interval_s

    async def wait(self, robot_name: str, *, timeout_s: Optional[float] = None) -> None:
        if timeout_s is None:
            await self._poll(robot_name)
            return
        try:
            await asyncio.wait_for(self._poll(robot_name), timeout=timeout_s)
        except asyncio.TimeoutError:
            raise EdbotTimeoutError(
                f"Timed out after {timeout_s}s waiting for control of {robot_name}."
            ) from None

    async def _poll(self, robot_name: str) -> None:
        while not self._check(robot_name):
            await asyncio.sleep(self._poll_interval_s)


__all__ = ["ControlLatch"]
