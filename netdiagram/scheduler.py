"""
Cooperative idle-time scheduling for deferred overlay work.

- `BuildQueue`: bounded, de-duplicated, priority-ordered queue of pending
  builds; `drain()` works through it under a time budget and returns what
  it did not get to
- `IdleScheduler`: where drain ticks run. `ManualScheduler` is pumped by the
  caller (CLI, tests); `AsyncioIdleScheduler` runs ticks on an asyncio loop
"""

import asyncio
import heapq
import itertools
import time
from typing import Callable, Hashable, Optional, Protocol

from .logging import get_logger

logger = get_logger(__name__)

Clock = Callable[[], float]


class IdleDeadline:
    """Time budget handed to an idle callback."""

    def __init__(self, clock: Clock, deadline: float):
        self._clock = clock
        self._deadline = deadline

    def time_remaining(self) -> float:
        """Milliseconds left in this slice (never negative)."""
        return max(0.0, (self._deadline - self._clock()) * 1000.0)

    @classmethod
    def starting_now(cls, budget_ms: float, clock: Clock = time.monotonic) -> "IdleDeadline":
        return cls(clock, clock() + budget_ms / 1000.0)


IdleCallback = Callable[[IdleDeadline], None]


class IdleScheduler(Protocol):
    def request(self, callback: IdleCallback) -> int:
        """Schedule a callback for the next idle slice; returns a handle."""
        ...

    def cancel(self, handle: int) -> None:
        """Cancel a pending callback. Unknown handles are ignored."""
        ...


class ManualScheduler:
    """
    Idle scheduler pumped explicitly by the caller.

    Callbacks requested while `run_pending()` is running wait for the next
    call, so a tick that reschedules itself never loops forever.

    Args:
        budget_ms: Slice length handed to each callback
        clock: Monotonic clock in seconds (injectable for tests)
    """

    def __init__(self, budget_ms: float = 8.0, clock: Clock = time.monotonic):
        self.budget_ms = budget_ms
        self.clock = clock
        self._pending: dict[int, IdleCallback] = {}
        self._ids = itertools.count(1)

    def request(self, callback: IdleCallback) -> int:
        handle = next(self._ids)
        self._pending[handle] = callback
        return handle

    def cancel(self, handle: int) -> None:
        self._pending.pop(handle, None)

    @property
    def pending(self) -> int:
        return len(self._pending)

    def run_pending(self) -> int:
        """Run every callback queued before this call. Returns how many ran."""
        batch = list(self._pending.items())
        ran = 0
        for handle, callback in batch:
            # Skip callbacks cancelled by an earlier callback in this batch
            if self._pending.pop(handle, None) is None:
                continue
            callback(IdleDeadline.starting_now(self.budget_ms, self.clock))
            ran += 1
        return ran

    def run_until_idle(self, max_rounds: int = 10_000) -> int:
        """Pump until nothing is pending. Returns the number of rounds."""
        rounds = 0
        while self._pending and rounds < max_rounds:
            self.run_pending()
            rounds += 1
        return rounds


class AsyncioIdleScheduler:
    """Idle scheduler that runs callbacks via `loop.call_soon`."""

    def __init__(self, loop: Optional[asyncio.AbstractEventLoop] = None, budget_ms: float = 8.0):
        self._loop = loop
        self.budget_ms = budget_ms
        self._handles: dict[int, asyncio.Handle] = {}
        self._ids = itertools.count(1)

    def _get_loop(self) -> asyncio.AbstractEventLoop:
        if self._loop is None:
            self._loop = asyncio.get_running_loop()
        return self._loop

    def request(self, callback: IdleCallback) -> int:
        handle = next(self._ids)
        self._handles[handle] = self._get_loop().call_soon(self._run, handle, callback)
        return handle

    def cancel(self, handle: int) -> None:
        pending = self._handles.pop(handle, None)
        if pending is not None:
            pending.cancel()

    def _run(self, handle: int, callback: IdleCallback) -> None:
        self._handles.pop(handle, None)
        callback(IdleDeadline.starting_now(self.budget_ms))


class BuildQueue:
    """
    Bounded priority queue of pending builds, one entry per key.

    Lower priority values come out first; ties keep insertion order.
    Re-pushing a queued key only ever raises its priority.
    """

    def __init__(self, capacity: int = 4096):
        self.capacity = capacity
        self._heap: list[tuple[float, int, Hashable]] = []
        self._entries: dict[Hashable, tuple[float, int]] = {}
        self._seq = itertools.count()

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, key: object) -> bool:
        return key in self._entries

    def push(self, key: Hashable, priority: float = 1) -> bool:
        """
        Queue a key, or raise the priority of an already queued key.

        Returns:
            False if the queue is full and the key was not queued
        """
        existing = self._entries.get(key)
        if existing is not None:
            if priority < existing[0]:
                self._add(key, priority, existing[1])
            return True
        if len(self._entries) >= self.capacity:
            logger.debug(f"Build queue full ({self.capacity}); deferring {key!r}")
            return False
        self._add(key, priority, next(self._seq))
        return True

    def _add(self, key: Hashable, priority: float, seq: int) -> None:
        self._entries[key] = (priority, seq)
        heapq.heappush(self._heap, (priority, seq, key))

    def pop(self) -> Optional[Hashable]:
        """Remove and return the most urgent key, or None when empty."""
        while self._heap:
            priority, seq, key = heapq.heappop(self._heap)
            if self._entries.get(key) == (priority, seq):
                del self._entries[key]
                return key
        return None

    def discard(self, key: Hashable) -> None:
        self._entries.pop(key, None)

    def clear(self) -> None:
        self._heap.clear()
        self._entries.clear()

    def reprioritize(self, priority_of: Callable[[Hashable], float]) -> None:
        """Recompute every queued key's priority, keeping insertion order for ties."""
        entries = [(priority_of(key), seq, key) for key, (_, seq) in self._entries.items()]
        self._entries = {key: (priority, seq) for priority, seq, key in entries}
        self._heap = entries
        heapq.heapify(self._heap)

    def keys(self) -> list[Hashable]:
        """Queued keys in the order they would be popped."""
        return [key for _, _, key in sorted((p, s, k) for k, (p, s) in self._entries.items())]

    def drain(self, process: Callable[[Hashable], None], deadline: IdleDeadline,
              max_items: Optional[int] = None) -> list[Hashable]:
        """
        Process queued keys until the batch limit or the time slice runs out.

        At least one key is processed per call so progress is guaranteed even
        with an exhausted slice.

        Args:
            process: Called once per popped key
            deadline: Time budget for this drain
            max_items: Batch size limit (None for no limit)

        Returns:
            Keys still queued, most urgent first
        """
        done = 0
        while self._entries:
            if done and (deadline.time_remaining() <= 0 or (max_items is not None and done >= max_items)):
                break
            key = self.pop()
            if key is None:
                break
            process(key)
            done += 1
        return self.keys()
