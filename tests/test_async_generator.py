# tests/test_async_generator.py
from __future__ import annotations

import asyncio

import pytest
from bson.int64 import Int64

from conftest import FakeClock
from flakeid.core.commonExceptions import ClockRegressionError, ConfigurationError, GenerationInterruptedError
from flakeid.idgen.codec import decode
from flakeid.idgen.snowflakeGen import AsyncSnowflakeGenerator
from flakeid.models.models import bits

SEQUENCE_SPACE = bits.SEQUENCE_MASK + 1


def test_async_ids_are_int64_and_unique():
    generator = AsyncSnowflakeGenerator(2, 3)

    async def main():
        return await asyncio.gather(*(generator() for _ in range(5_000)))

    ids = asyncio.run(main())
    assert all(isinstance(i, Int64) for i in ids)
    assert len(set(ids)) == len(ids)
    assert {(decode(i).datacenter_id, decode(i).machine_id) for i in ids} == {(2, 3)}


def test_async_rejects_bad_identity():
    with pytest.raises(ConfigurationError):
        AsyncSnowflakeGenerator(0, 1024)


def test_async_sequence_and_exhaustion(start_ms):
    clock = FakeClock(start_ms, advance_after=SEQUENCE_SPACE + 1)
    generator = AsyncSnowflakeGenerator(0, 0, clock=clock, max_backoff_ms=1)

    async def main():
        return [await generator.generate_id() for _ in range(SEQUENCE_SPACE + 1)]

    parts = [decode(i) for i in asyncio.run(main())]
    assert parts[0].sequence == 0
    assert parts[1].sequence == 1
    assert parts[-1].timestamp_ms == parts[-2].timestamp_ms + 1
    assert parts[-1].sequence == 0


def test_async_clock_regression(frozen_clock, start_ms):
    generator = AsyncSnowflakeGenerator(0, 0, clock=frozen_clock)

    async def main():
        await generator()
        frozen_clock.value = start_ms - 10
        await generator()

    with pytest.raises(ClockRegressionError):
        asyncio.run(main())


def test_cancelled_wait_raises_interrupted(frozen_clock, start_ms):
    generator = AsyncSnowflakeGenerator(0, 0, clock=frozen_clock, max_backoff_ms=1)

    async def main():
        for _ in range(SEQUENCE_SPACE):
            await generator()
        task = asyncio.create_task(generator.generate_id())
        while generator._wait_counts.get(start_ms) == 0:
            await asyncio.sleep(0.001)
        task.cancel()
        await task

    with pytest.raises(GenerationInterruptedError) as excinfo:
        asyncio.run(main())
    assert isinstance(excinfo.value.__cause__, asyncio.CancelledError)
    assert len(generator._wait_counts) == 0
