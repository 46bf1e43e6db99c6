# tests/conftest.py
from __future__ import annotations

import sys
from pathlib import Path

import pytest

# backend/ holds the flakeid package; make it importable without an install
ROOT = Path(__file__).resolve().parents[1]
BACKEND = str(ROOT / "backend")
if BACKEND not in sys.path:
    sys.path.insert(0, BACKEND)

from flakeid.models.models import bits  # noqa: E402


class FakeClock:
    """
    Clock that stays on `value` until told otherwise.

    With `advance_after=n` the reading moves forward one millisecond once,
    on read number n + 1.
    """

    def __init__(self, value: int, *, advance_after: int | None = None):
        self.value = value
        self.reads = 0
        self.advance_after = advance_after

    def now_ms(self) -> int:
        self.reads += 1
        if self.advance_after is not None and self.reads > self.advance_after:
            self.value += 1
            self.advance_after = None
        return self.value


@pytest.fixture
def start_ms() -> int:
    return bits.EPOCH + 86_400_000


@pytest.fixture
def frozen_clock(start_ms) -> FakeClock:
    return FakeClock(start_ms)
