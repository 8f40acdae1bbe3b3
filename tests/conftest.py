"""Shared fixtures for sprite tests."""

from __future__ import annotations

import pytest

from sprite.db import TimerStore

# 2023-09-05T12:00:00Z
START_EPOCH = 1_693_915_200


class FakeClock:
    """Deterministic epoch clock for driving toggles."""

    def __init__(self, now: int = START_EPOCH) -> None:
        self.now = now

    def __call__(self) -> int:
        return self.now

    def advance(self, seconds: int) -> None:
        self.now += seconds


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def store(clock: FakeClock):
    """In-memory store driven by the fake clock."""
    with TimerStore.open_in_memory(clock=clock) as store:
        yield store
