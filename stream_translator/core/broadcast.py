"""Pull-based broadcast of decoder updates to any number of readers.

WHY: Several independent consumers (a terminal printer, an HTTP long-poll,
an NDJSON stream) want to know when the decoder produced something,
without each one re-parsing the stream or polling in a loop.

HOW: Each call to next() registers one asyncio.Future in a FIFO waiter
list and awaits it. emit() resolves every registered future with the
same value and clears the list; complete() resolves them all with None
and latches the channel closed.

RULES:
- next() after complete() returns None immediately, every time
- One next() call consumes exactly one notification; there is no
  automatic re-subscription
- All waiters registered before an emit receive the same object
- Waiters resolve in registration order
- A waiter whose task was cancelled is skipped
- emit() after complete() raises ChannelClosedError
"""

from __future__ import annotations

import asyncio
from typing import Generic, List, Optional, TypeVar

T = TypeVar("T")


class ChannelClosedError(RuntimeError):
    """Raised when a producer emits on a channel that already completed.

    WHY: Completion is a one-way latch. An emit after it would be silently
    lost by every reader, so it is surfaced as a programming error.
    """


class UpdateChannel(Generic[T]):
    """Single-producer, many-reader notification channel.

    WHY: The decoder must not block on slow readers, and readers must not
    miss the end of the stream. Futures give both: the producer never
    awaits, and a reader is always woken by either the next value or the
    terminal None.

    HOW: Pending readers are futures in self._waiters. The producer side
    (emit/complete) runs synchronously inside the decoding task.

    RULES:
    - Producer-only: emit(), complete()
    - Reader: await next()
    - latest holds the most recently emitted value (None before the first)
    """

    def __init__(self) -> None:
        self._waiters: List[asyncio.Future] = []
        self._completed = False
        self.latest: Optional[T] = None

    @property
    def completed(self) -> bool:
        return self._completed

    @property
    def waiter_count(self) -> int:
        return len(self._waiters)

    async def next(self) -> Optional[T]:
        """Wait for the next emitted value, or None once the channel completes."""
        if self._completed:
            return None
        future = asyncio.get_running_loop().create_future()
        self._waiters.append(future)
        return await future

    def emit(self, value: T) -> None:
        """Deliver value to every reader currently waiting."""
        if self._completed:
            raise ChannelClosedError("Cannot emit on a completed channel")
        self.latest = value
        self._release(value)

    def complete(self) -> None:
        """Latch the channel closed and wake every waiter with None."""
        if self._completed:
            return
        self._completed = True
        self._release(None)

    def _release(self, value: Optional[T]) -> None:
        waiters, self._waiters = self._waiters, []
        for future in waiters:
            if not future.done():
                future.set_result(value)
