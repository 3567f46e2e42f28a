"""TeardownController: drain, delete, confirm, then clean up orphans."""

from __future__ import annotations

import time
from collections.abc import Callable, Hashable
from typing import Any

import structlog

from node_lifecycle.cache import KeyedCache
from node_lifecycle.compute.models import ResourceRef, TeardownResult, TeardownState
from node_lifecycle.compute.protocols import OrphanApi, ResourceApi
from node_lifecycle.config.models import TeardownConfig
from node_lifecycle.errors import (
    DeleteFailed,
    DrainTimeout,
    InconsistentState,
    LifecycleError,
    OrphanCleanupFailed,
)
from node_lifecycle.poller import ReadinessPoller

logger = structlog.get_logger()

PendingOperations = Callable[[Any], int]
NameOf = Callable[[Any], str]


def _absent(state: Any) -> bool:
    return state is None


class TeardownController:
    """Removes a resource only once its pending operations have drained.

    Deleting an absent resource succeeds without doing anything. Secondary
    resources named after the deleted one are removed afterwards; their
    failures are reported on the result and never raised.
    """

    def __init__(
        self,
        api: ResourceApi,
        *,
        pending_operations: PendingOperations,
        resource_name: NameOf,
        timeout: float,
        period: float = 1.0,
        orphans: OrphanApi | None = None,
        cache: KeyedCache[Hashable, Any] | None = None,
        is_gone: Callable[[Any], bool] = _absent,
        transient: tuple[type[BaseException], ...] = (),
        poller: ReadinessPoller | None = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._api = api
        self._pending_operations = pending_operations
        self._resource_name = resource_name
        self._timeout = timeout
        self._period = period
        self._orphans = orphans
        self._cache = cache
        self._is_gone = is_gone
        self._transient = transient
        self._poller = poller or ReadinessPoller()
        self._clock = clock

    @classmethod
    def from_config(
        cls,
        api: ResourceApi,
        config: TeardownConfig,
        *,
        pending_operations: PendingOperations,
        resource_name: NameOf,
        **kwargs: Any,
    ) -> TeardownController:
        return cls(
            api,
            pending_operations=pending_operations,
            resource_name=resource_name,
            timeout=config.active_transactions_timeout_ms / 1000,
            period=config.poll_period_ms / 1000,
            **kwargs,
        )

    async def destroy(self, resource_id: str) -> TeardownResult:
        started = self._clock()
        log = logger.bind(resource_id=resource_id)

        state = await self._api.get(resource_id)
        if state is None:
            log.info("teardown.not_found", state=TeardownState.NOT_FOUND)
            return TeardownResult(
                resource_id=resource_id,
                deleted=False,
                elapsed=self._clock() - started,
            )
        name = self._resource_name(state)
        last_state = state

        async def _drained() -> bool:
            nonlocal last_state
            current = await self._api.get(resource_id)
            if current is None:
                return True
            last_state = current
            return self._pending_operations(current) == 0

        log.debug("teardown.draining", state=TeardownState.DRAINING, timeout=self._timeout)
        outcome = await self._poller.poll(
            _drained,
            period=self._period,
            timeout=self._timeout,
            transient=self._transient,
            label=f"drain:{resource_id}",
        )
        if not outcome.ready:
            log.error(
                "teardown.drain_timeout",
                elapsed=outcome.elapsed,
                timeout=self._timeout,
                pending=self._pending_operations(last_state),
            )
            raise DrainTimeout(
                "Pending operations did not finish; resource was not deleted",
                resource_id=resource_id,
                elapsed=outcome.elapsed,
                timeout=self._timeout,
                last_state=last_state,
            )

        await self._delete(resource_id, log, started=started, last_state=last_state)
        result = TeardownResult(
            resource_id=resource_id,
            deleted=True,
            elapsed=0.0,
        )

        if self._orphans is not None:
            log.debug("teardown.cleaning_orphans", state=TeardownState.CLEANING_ORPHANS, name=name)
            await self._clean_orphans(name, result, log)

        result.elapsed = self._clock() - started
        log.info(
            "teardown.done",
            state=TeardownState.DONE,
            elapsed=result.elapsed,
            removed=len(result.removed),
            failures=len(result.failures),
        )
        return result

    async def _delete(
        self, resource_id: str, log: Any, *, started: float, last_state: Any
    ) -> None:
        log.debug("teardown.deleting", state=TeardownState.DELETING)
        try:
            accepted = await self._api.delete(resource_id)
        except LifecycleError:
            raise
        except Exception as exc:
            log.error("teardown.delete_failed", error=str(exc))
            raise DeleteFailed(
                f"Delete call failed: {exc}",
                resource_id=resource_id,
                elapsed=self._clock() - started,
                timeout=self._timeout,
                last_state=last_state,
            ) from exc
        if not accepted:
            log.error("teardown.delete_rejected")
            raise DeleteFailed(
                "Delete reported nothing deleted",
                resource_id=resource_id,
                elapsed=self._clock() - started,
                timeout=self._timeout,
                last_state=last_state,
            )

        remaining = await self._api.get(resource_id)
        if not self._is_gone(remaining):
            log.error("teardown.still_present", last_state=remaining)
            raise InconsistentState(
                "Resource still present after delete",
                resource_id=resource_id,
                elapsed=self._clock() - started,
                timeout=self._timeout,
                last_state=remaining,
            )
        log.info("teardown.deleted")

    async def _clean_orphans(self, name: str, result: TeardownResult, log: Any) -> None:
        assert self._orphans is not None
        try:
            refs = await self._orphans.list_orphans(name)
        except Exception as exc:
            listing = ResourceRef(kind="listing", id=name, name=name)
            log.warning("teardown.orphan_listing_failed", error=str(exc))
            result.failures.append(OrphanCleanupFailed(listing, exc))
            return

        for ref in refs:
            try:
                await self._orphans.delete_orphan(ref)
            except Exception as exc:
                log.warning(
                    "teardown.orphan_cleanup_failed",
                    kind=ref.kind,
                    orphan_id=ref.id,
                    error=str(exc),
                )
                result.failures.append(OrphanCleanupFailed(ref, exc))
                continue
            result.removed.append(ref)
            if self._cache is not None and ref.cache_key is not None:
                self._cache.invalidate(ref.cache_key)
            log.debug("teardown.orphan_removed", kind=ref.kind, orphan_id=ref.id)
