"""
edbot_lib/pending.py

Pending call table: sequence number -> outstanding caller future.

Principles:
- One table per connection; a new table restarts the sequence at 1.
- An entry is popped exactly once. Settling an unknown sequence is a no-op,
  which absorbs duplicate or stray responses.
- Sequence numbers never wrap: exhausting the 32-bit space raises instead of
  risking a collision with an older in-flight request.
"""

from __future__ import annotations

import asyncio
from typing import Any

from .const import FIRST_SEQUENCE, MAX_SEQUENCE
from .errors import EdbotProtocolError


class PendingCallTable:
    def __init__(
        self,
        *,
        first_sequence: int = FIRST_SEQUENCE,
        max_sequence: int = MAX_SEQUENCE,
    ) -> None:
        if first_sequence < 1 or max_sequence < first_sequence:
            raise ValueError("invalid sequence range")
        self._next_sequence = first_sequence
        self._max_sequence = max_sequence
        self._calls: dict[int, asyncio.Future[Any]] = {}

    @property
    def next_sequence(self) -> int:
        return self._next_sequence

    def pending_count(self) -> int:
        return len(self._calls)

    def __contains__(self, sequence: object) -> bool:
        return sequence in self._calls

    def register(self, future: asyncio.Future[Any]) -> int:
        """Store the continuation and return the sequence to tag the request with."""
        sequence = self._next_sequence
        if sequence > self._max_sequence:
            raise EdbotProtocolError(
                "Sequence numbers exhausted for this connection; reconnect to reset."
            )
        self._next_sequence = sequence + 1
        self._calls[sequence] = future
        return sequence

    def resolve(self, sequence: int, data: Any) -> bool:
        future = self._calls.pop(sequence, None)
        if future is None:
            return False
        if not future.done():
            future.set_result(data)
        return True

    def reject(self, sequence: int, exc: BaseException) -> bool:
        future = self._calls.pop(sequence, None)
        if future is None:
            return False
        if not future.done():
            future.set_exception(exc)
        return True

    def discard(self, sequence: int) -> bool:
        return self._calls.pop(sequence, None) is not None

    def drain_abandoned(self) -> list[asyncio.Future[Any]]:
        """Remove and return every outstanding continuation (used on disconnect)."""
        abandoned = list(self._calls.values())
        self._calls.clear()
        return abandoned


__all__ = ["PendingCallTable"]
