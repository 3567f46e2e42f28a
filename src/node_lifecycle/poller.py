"""Time-bounded readiness polling."""

from __future__ import annotations

import asyncio
import time
from collections.abc import Awaitable, Callable
from dataclasses import dataclass

import structlog
from tenacity import (
    AsyncRetrying,
    RetryCallState,
    retry_if_exception_type,
    retry_if_result,
    wait_fixed,
)

logger = structlog.get_logger()

Check = Callable[[], Awaitable[bool]]


@dataclass(frozen=True, slots=True)
class PollOutcome:
    """Result of one bounded wait. Truthy when the check passed."""

    ready: bool
    attempts: int
    elapsed: float

    def __bool__(self) -> bool:
        return self.ready


def _not_ready(result: bool) -> bool:
    return not result


def _timed_out(retry_state: RetryCallState) -> bool:
    return False


class ReadinessPoller:
    """Repeats a boolean check until it passes or a deadline elapses.

    Each unsuccessful attempt is followed by a sleep of ``period`` seconds,
    so the whole wait returns within ``timeout + period`` plus the duration
    of the last check. Exceptions listed in ``transient`` count as "not
    ready yet"; anything else aborts the wait and propagates.

    Cancelling the awaiting task stops polling: the check in progress is
    interrupted at its next await and no further attempt starts.
    """

    def __init__(
        self,
        *,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._sleep = sleep
        self._clock = clock

    async def wait(
        self,
        check: Check,
        *,
        period: float,
        timeout: float,
        transient: tuple[type[BaseException], ...] = (),
        label: str = "resource",
    ) -> bool:
        outcome = await self.poll(
            check, period=period, timeout=timeout, transient=transient, label=label
        )
        return outcome.ready

    async def poll(
        self,
        check: Check,
        *,
        period: float,
        timeout: float,
        transient: tuple[type[BaseException], ...] = (),
        label: str = "resource",
    ) -> PollOutcome:
        if timeout <= 0:
            msg = f"timeout must be positive, got {timeout}"
            raise ValueError(msg)
        if period <= 0:
            msg = f"period must be positive, got {period}"
            raise ValueError(msg)

        retry = retry_if_result(_not_ready)
        if transient:
            retry = retry | retry_if_exception_type(transient)

        attempts = 0
        started = self._clock()

        def _deadline(retry_state: RetryCallState) -> bool:
            return self._clock() - started >= timeout

        async def _attempt() -> bool:
            nonlocal attempts
            attempts += 1
            try:
                ready = bool(await check())
            except transient as exc:
                logger.debug(
                    "poller.transient_error",
                    label=label,
                    attempt=attempts,
                    error=str(exc),
                )
                raise
            if not ready:
                logger.debug("poller.not_ready", label=label, attempt=attempts)
            return ready

        retrying = AsyncRetrying(
            stop=_deadline,
            wait=wait_fixed(period),
            retry=retry,
            retry_error_callback=_timed_out,
            sleep=self._sleep,
        )
        ready = await retrying(_attempt)

        elapsed = self._clock() - started
        if ready:
            logger.debug("poller.ready", label=label, attempts=attempts, elapsed=elapsed)
        else:
            logger.info(
                "poller.timed_out",
                label=label,
                attempts=attempts,
                elapsed=elapsed,
                timeout=timeout,
            )
        return PollOutcome(ready=ready, attempts=attempts, elapsed=elapsed)
