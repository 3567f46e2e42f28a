"""Unit tests for ReadinessPoller."""

from __future__ import annotations

import asyncio
import math

import pytest

from node_lifecycle.poller import PollOutcome, ReadinessPoller


def _sequence(*results):
    calls = []

    async def check():
        calls.append(1)
        value = results[min(len(calls), len(results)) - 1]
        if isinstance(value, BaseException):
            raise value
        return value

    check.calls = calls  # type: ignore[attr-defined]
    return check


@pytest.mark.asyncio
class TestReadinessPoller:
    async def test_ready_on_first_check_does_not_sleep(self, poller, clock):
        assert await poller.wait(_sequence(True), period=1, timeout=10) is True
        assert clock.sleeps == []

    async def test_returns_on_first_true(self, poller, clock):
        check = _sequence(False, False, False, False, False, True)
        outcome = await poller.poll(check, period=1, timeout=10)

        assert outcome.ready
        assert outcome.attempts == 6
        assert outcome.elapsed == pytest.approx(5.0)
        assert len(check.calls) == 6

    async def test_times_out_within_timeout_plus_period(self, poller, clock):
        check = _sequence(False)
        outcome = await poller.poll(check, period=1, timeout=3)

        assert not outcome
        assert outcome.elapsed <= 3 + 1
        assert outcome.attempts <= math.ceil(3 / 1) + 1

    async def test_wait_returns_false_on_timeout(self, poller):
        assert await poller.wait(_sequence(False), period=2, timeout=5) is False

    async def test_uses_configured_period(self, poller, clock):
        await poller.poll(_sequence(False, False, True), period=2.5, timeout=30)
        assert clock.sleeps == [2.5, 2.5]

    async def test_transient_error_counts_as_not_ready(self, poller):
        check = _sequence(ConnectionError("flaky"), False, True)
        outcome = await poller.poll(
            check, period=1, timeout=10, transient=(ConnectionError,)
        )
        assert outcome.ready
        assert outcome.attempts == 3

    async def test_transient_errors_until_deadline_time_out(self, poller):
        check = _sequence(ConnectionError("down"))
        assert (
            await poller.wait(check, period=1, timeout=3, transient=(ConnectionError,))
            is False
        )

    async def test_fatal_error_propagates_immediately(self, poller):
        check = _sequence(False, KeyError("gone"), True)
        with pytest.raises(KeyError):
            await poller.poll(check, period=1, timeout=10)
        assert len(check.calls) == 2

    @pytest.mark.parametrize(("period", "timeout"), [(1, 0), (1, -1), (0, 10), (-1, 10)])
    async def test_rejects_non_positive_durations(self, poller, period, timeout):
        with pytest.raises(ValueError, match="must be positive"):
            await poller.wait(_sequence(True), period=period, timeout=timeout)

    async def test_cancellation_stops_polling(self):
        poller = ReadinessPoller()
        check = _sequence(False)
        task = asyncio.create_task(poller.wait(check, period=0.01, timeout=60))
        await asyncio.sleep(0.05)
        task.cancel()
        with pytest.raises(asyncio.CancelledError):
            await task

        calls = len(check.calls)
        await asyncio.sleep(0.05)
        assert len(check.calls) == calls


class TestPollOutcome:
    def test_truthiness_follows_ready(self):
        assert PollOutcome(ready=True, attempts=1, elapsed=0.0)
        assert not PollOutcome(ready=False, attempts=3, elapsed=2.0)
