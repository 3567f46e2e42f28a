"""Shared fixtures for unit tests."""

from __future__ import annotations

import asyncio

import pytest

from node_lifecycle.poller import ReadinessPoller


class FakeClock:
    """Monotonic clock advanced only by ``sleep`` and ``advance``."""

    def __init__(self, start: float = 0.0) -> None:
        self.now = start
        self.sleeps: list[float] = []

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds

    async def sleep(self, seconds: float) -> None:
        self.sleeps.append(seconds)
        self.now += seconds
        await asyncio.sleep(0)


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def poller(clock: FakeClock) -> ReadinessPoller:
    return ReadinessPoller(sleep=clock.sleep, clock=clock)
