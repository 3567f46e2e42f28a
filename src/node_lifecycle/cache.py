"""Single-flight, time-to-live keyed cache.

Memoizes expensive or rate-limited lookups (tokens, security groups, key
pairs). Concurrent misses for the same key share one load; a failed load
propagates to every waiter of that attempt and leaves nothing cached.
"""

from __future__ import annotations

import asyncio
import time
from collections.abc import Awaitable, Callable, Hashable, Iterator
from dataclasses import dataclass
from typing import Generic, TypeVar

import structlog

logger = structlog.get_logger()

K = TypeVar("K", bound=Hashable)
V = TypeVar("V")

Loader = Callable[[K], Awaitable[V]]


@dataclass(frozen=True, slots=True)
class CacheEntry(Generic[K, V]):
    """A loaded value stamped with the clock reading at install time."""

    key: K
    value: V
    created_at: float


class KeyedCache(Generic[K, V]):
    """Async TTL cache with per-key single-flight loading.

    ``ttl`` is in seconds; ``None`` keeps entries until they are invalidated.
    All bookkeeping happens between awaits on the event loop, so no lock is
    held across a load and unrelated keys never wait on each other.
    """

    def __init__(
        self,
        ttl: float | None = None,
        *,
        loader: Loader[K, V] | None = None,
        clock: Callable[[], float] = time.monotonic,
        name: str = "cache",
    ) -> None:
        if ttl is not None and ttl <= 0:
            msg = f"ttl must be positive or None, got {ttl}"
            raise ValueError(msg)
        self._ttl = ttl
        self._loader = loader
        self._clock = clock
        self._name = name
        self._entries: dict[K, CacheEntry[K, V]] = {}
        self._in_flight: dict[K, asyncio.Task[V]] = {}
        # Bumped by put/invalidate so a load started earlier cannot install over them.
        self._generations: dict[K, int] = {}

    @property
    def ttl(self) -> float | None:
        return self._ttl

    async def get(self, key: K, loader: Loader[K, V] | None = None) -> V:
        """Return the cached value for *key*, loading it once if missing or expired."""
        entry = self._fresh_entry(key)
        if entry is not None:
            return entry.value

        task = self._in_flight.get(key)
        if task is None:
            load = loader or self._loader
            if load is None:
                msg = f"{self._name}: no loader given for key {key!r}"
                raise ValueError(msg)
            generation = self._generations.get(key, 0)
            task = asyncio.create_task(self._load(key, load, generation))
            task.add_done_callback(_retrieve_exception)
            self._in_flight[key] = task
        # Shield so one cancelled waiter does not cancel the shared load.
        return await asyncio.shield(task)

    def get_if_present(self, key: K) -> V | None:
        entry = self._fresh_entry(key)
        return entry.value if entry is not None else None

    def put(self, key: K, value: V) -> None:
        """Install a fresh entry, superseding any in-flight load for *key*."""
        self._supersede(key)
        self._entries[key] = CacheEntry(key, value, self._clock())

    def invalidate(self, key: K) -> None:
        """Drop *key*; a no-op if absent.

        A load already in flight still answers its current waiters but will
        not install its result, and the next ``get`` starts a fresh load.
        """
        self._supersede(key)
        if self._entries.pop(key, None) is not None:
            logger.debug("cache.invalidated", cache=self._name, key=str(key))

    def invalidate_all(self) -> None:
        for key in list(self._entries) + list(self._in_flight):
            self._supersede(key)
        self._entries.clear()

    def keys(self) -> list[K]:
        return [k for k in list(self._entries) if self._fresh_entry(k) is not None]

    def __contains__(self, key: object) -> bool:
        return self._fresh_entry(key) is not None  # type: ignore[arg-type]

    def __len__(self) -> int:
        return len(self.keys())

    def __iter__(self) -> Iterator[K]:
        return iter(self.keys())

    # -- internals -------------------------------------------------------------

    def _expired(self, entry: CacheEntry[K, V]) -> bool:
        if self._ttl is None:
            return False
        return self._clock() >= entry.created_at + self._ttl

    def _fresh_entry(self, key: K) -> CacheEntry[K, V] | None:
        entry = self._entries.get(key)
        if entry is None:
            return None
        if self._expired(entry):
            del self._entries[key]
            return None
        return entry

    def _supersede(self, key: K) -> None:
        self._generations[key] = self._generations.get(key, 0) + 1
        self._in_flight.pop(key, None)

    async def _load(self, key: K, load: Loader[K, V], generation: int) -> V:
        try:
            value = await load(key)
        except BaseException as exc:
            logger.warning(
                "cache.load_failed", cache=self._name, key=str(key), error=str(exc)
            )
            raise
        else:
            if self._generations.get(key, 0) == generation:
                self._entries[key] = CacheEntry(key, value, self._clock())
                logger.debug("cache.loaded", cache=self._name, key=str(key))
            return value
        finally:
            if self._in_flight.get(key) is asyncio.current_task():
                del self._in_flight[key]


def _retrieve_exception(task: asyncio.Task[object]) -> None:
    # Every waiter may have been cancelled; mark the error as seen.
    if not task.cancelled():
        task.exception()
