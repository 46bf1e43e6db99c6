import asyncio
import logging
import threading
import time

from flakeid.core.commonExceptions import GenerationInterruptedError

logger = logging.getLogger("flakeid.clock")


class SystemClock:
    """Wall clock in unix milliseconds."""

    def now_ms(self) -> int:
        return time.time_ns() // 1_000_000


class WaitCounters:
    """
    Number of callers currently waiting past an exhausted timestamp.

    Only feeds the back-off duration. An entry is dropped as soon as its
    millisecond has passed so the map never grows.
    """

    def __init__(self):
        self._lock = threading.Lock()
        self._counts: dict[int, int] = {}

    def enter(self, timestamp: int) -> int:
        with self._lock:
            count = self._counts.get(timestamp, 0) + 1
            self._counts[timestamp] = count
            return count

    def discard(self, timestamp: int):
        with self._lock:
            self._counts.pop(timestamp, None)

    def get(self, timestamp: int) -> int:
        with self._lock:
            return self._counts.get(timestamp, 0)

    def __len__(self):
        with self._lock:
            return len(self._counts)


def _backoff_seconds(waiters: int, max_backoff_ms: int) -> float:
    return min(waiters, max_backoff_ms) / 1000


def wait_for_next_millis(
    last_timestamp: int,
    clock,
    counters: WaitCounters,
    interrupt: threading.Event,
    max_backoff_ms: int,
) -> int:
    """
    Blocks until `clock` reads strictly past `last_timestamp` and returns that reading.

    Each poll sleeps one millisecond per caller already waiting on the same
    timestamp, capped at `max_backoff_ms`. Setting `interrupt` wakes the sleeper,
    which clears the flag and raises `GenerationInterruptedError`.
    """
    now = clock.now_ms()
    waiters = counters.enter(last_timestamp)
    backoff = _backoff_seconds(waiters, max_backoff_ms)
    logger.debug("Sequence exhausted at %s, waiting (waiters=%s, backoff=%.3fs)", last_timestamp, waiters, backoff)
    try:
        while now <= last_timestamp:
            if interrupt.wait(backoff):
                interrupt.clear()
                raise GenerationInterruptedError(
                    f"Interrupted while waiting for the millisecond after {last_timestamp}"
                )
            now = clock.now_ms()
    finally:
        counters.discard(last_timestamp)
    return now


async def async_wait_for_next_millis(
    last_timestamp: int,
    clock,
    counters: WaitCounters,
    max_backoff_ms: int,
) -> int:
    """Coroutine flavour of `wait_for_next_millis`; task cancellation is the interrupt."""
    now = clock.now_ms()
    waiters = counters.enter(last_timestamp)
    backoff = _backoff_seconds(waiters, max_backoff_ms)
    logger.debug("Sequence exhausted at %s, waiting (waiters=%s, backoff=%.3fs)", last_timestamp, waiters, backoff)
    try:
        while now <= last_timestamp:
            try:
                await asyncio.sleep(backoff)
            except asyncio.CancelledError as err:
                raise GenerationInterruptedError(
                    f"Cancelled while waiting for the millisecond after {last_timestamp}"
                ) from err
            now = clock.now_ms()
    finally:
        counters.discard(last_timestamp)
    return now
