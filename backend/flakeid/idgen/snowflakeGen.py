import asyncio
import logging
import threading
from bson.int64 import Int64

from flakeid.core.commonExceptions import (
    ClockRegressionError,
    ConfigurationError,
    TimestampOverflowError,
    resultHandler,
)
from flakeid.core.config import AppEnvironmentSetup as appset
from flakeid.idgen.clock import SystemClock, WaitCounters, async_wait_for_next_millis, wait_for_next_millis
from flakeid.idgen.codec import decode, encode
from flakeid.models.models import Identity, SnowflakeParts, bits

logger = logging.getLogger("flakeid.generator")

_NO_TIMESTAMP = -1


class _SnowflakeBase:
    """Identity, generation state and the commit step shared by both generators."""

    def __init__(self, datacenter_id: int, machine_id: int, *, clock=None, max_backoff_ms: int = None):
        self._identity = Identity.create(datacenter_id, machine_id)
        if max_backoff_ms is None:
            max_backoff_ms = appset.MAX_BACKOFF_MS
        if isinstance(max_backoff_ms, bool) or not isinstance(max_backoff_ms, int) or max_backoff_ms < 0:
            raise ConfigurationError(f"max_backoff_ms must be a non-negative int, got {max_backoff_ms!r}")
        self._max_backoff_ms = max_backoff_ms
        self._clock = clock or SystemClock()
        self._last_timestamp = _NO_TIMESTAMP
        self._sequence = 0
        self._wait_counts = WaitCounters()
        logger.debug(
            "Created %s for datacenter=%s machine=%s",
            type(self).__name__,
            self._identity.datacenter_id,
            self._identity.machine_id,
        )

    @classmethod
    def from_provider(cls, provider, **kwargs):
        """Builds a generator from anything exposing `currentDatacenterId()` and `currentMachineId()`."""
        return cls(provider.currentDatacenterId(), provider.currentMachineId(), **kwargs)

    @property
    def identity(self) -> Identity:
        return self._identity

    @property
    def datacenter_id(self) -> int:
        return self._identity.datacenter_id

    @property
    def machine_id(self) -> int:
        return self._identity.machine_id

    @staticmethod
    def decode(snowflake: int) -> SnowflakeParts:
        return decode(snowflake)

    def _check_clock(self, now: int, last: int):
        if now < last:
            logger.warning("Clock moved backwards by %sms, refusing to generate id", last - now)
            raise ClockRegressionError(last, now)

    def _commit(self, now: int, sequence: int) -> int:
        # state changes only once nothing can fail anymore
        elapsed = now - bits.EPOCH
        if elapsed < 0 or elapsed > bits.MAX_TIMESTAMP:
            raise TimestampOverflowError(f"timestamp {now} outside allowed range")
        self._last_timestamp = now
        self._sequence = sequence
        return encode(elapsed, self._identity.datacenter_id, self._identity.machine_id, sequence)


class SnowflakeGenerator(_SnowflakeBase):
    """
    Thread safe snowflake id generator.

    One lock covers reading the clock, comparing it with the last timestamp,
    bumping the sequence and recording the new timestamp, so no two calls can
    ever see the same (timestamp, sequence) pair.
    """

    def __init__(self, datacenter_id: int, machine_id: int, *, clock=None, max_backoff_ms: int = None):
        super().__init__(datacenter_id, machine_id, clock=clock, max_backoff_ms=max_backoff_ms)
        self._lock = threading.Lock()
        self._interrupt = threading.Event()

    def generate_id(self) -> int:
        with self._lock:
            now = self._clock.now_ms()
            last = self._last_timestamp
            self._check_clock(now, last)
            if now == last:
                sequence = (self._sequence + 1) & bits.SEQUENCE_MASK
                if sequence == 0:
                    now = wait_for_next_millis(
                        last, self._clock, self._wait_counts, self._interrupt, self._max_backoff_ms
                    )
            else:
                sequence = 0
            return self._commit(now, sequence)

    generateId = generate_id

    try_generate_id = resultHandler(generate_id)

    def interrupt(self):
        """
        Cancels a caller blocked on sequence exhaustion.

        If nobody is waiting the interrupt stays pending and fails the next wait.
        """
        self._interrupt.set()


class AsyncSnowflakeGenerator(_SnowflakeBase):
    """
    Same algorithm for asyncio code; ids come back as `bson.Int64` ready for Mongo documents.

    Cancelling a task blocked on sequence exhaustion raises `GenerationInterruptedError`.
    The cancellation is consumed there, so `asyncio.timeout()` and `TaskGroup`
    see that error instead of a `TimeoutError` or `CancelledError` when they
    cancel a caller stuck in that wait. The original `CancelledError` is kept
    as `__cause__`.
    """

    def __init__(self, datacenter_id: int, machine_id: int, *, clock=None, max_backoff_ms: int = None):
        super().__init__(datacenter_id, machine_id, clock=clock, max_backoff_ms=max_backoff_ms)
        self._lock = asyncio.Lock()  # safe for async code

    async def generate_id(self) -> Int64:
        async with self._lock:
            now = self._clock.now_ms()
            last = self._last_timestamp
            self._check_clock(now, last)
            if now == last:
                sequence = (self._sequence + 1) & bits.SEQUENCE_MASK
                if sequence == 0:                   # sequence rollover
                    now = await async_wait_for_next_millis(
                        last, self._clock, self._wait_counts, self._max_backoff_ms
                    )
            else:
                sequence = 0
            return Int64(self._commit(now, sequence))

    async def __call__(self) -> Int64:
        return await self.generate_id()
