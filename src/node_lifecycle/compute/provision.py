"""ProvisionController: create, wait until ready, extract initial credentials."""

from __future__ import annotations

import asyncio
from collections.abc import Callable
from typing import Any

import structlog

from node_lifecycle.compute.models import (
    LoginCredentials,
    ProvisionRequest,
    ProvisionResult,
    ProvisionState,
    ResourceHandle,
)
from node_lifecycle.compute.protocols import ResourceApi
from node_lifecycle.config.models import ProvisionConfig
from node_lifecycle.errors import (
    CreateFailed,
    InconsistentState,
    LifecycleError,
    ReadinessTimeout,
)
from node_lifecycle.poller import ReadinessPoller

logger = structlog.get_logger()

ReadyPredicate = Callable[[Any], bool]
CredentialExtractor = Callable[[Any], LoginCredentials | None]

MIN_LOGIN_DETAILS_TIMEOUT = 0.5


class ProvisionController:
    """Turns an asynchronous create into a deadline-bounded "node is usable".

    On timeout the half-provisioned resource is deleted best-effort and
    ``ReadinessTimeout`` is raised; a failure of that delete is attached to
    the error rather than raised in its place.
    """

    def __init__(
        self,
        api: ResourceApi,
        *,
        is_ready: ReadyPredicate,
        extract_credentials: CredentialExtractor,
        timeout: float,
        period: float = 1.0,
        transient: tuple[type[BaseException], ...] = (),
        poller: ReadinessPoller | None = None,
    ) -> None:
        if timeout <= MIN_LOGIN_DETAILS_TIMEOUT:
            msg = (
                "login details timeout must be in seconds and greater than "
                f"{MIN_LOGIN_DETAILS_TIMEOUT}, got {timeout}"
            )
            raise ValueError(msg)
        self._api = api
        self._is_ready = is_ready
        self._extract_credentials = extract_credentials
        self._timeout = timeout
        self._period = period
        self._transient = transient
        self._poller = poller or ReadinessPoller()

    @classmethod
    def from_config(
        cls,
        api: ResourceApi,
        config: ProvisionConfig,
        *,
        is_ready: ReadyPredicate,
        extract_credentials: CredentialExtractor,
        **kwargs: Any,
    ) -> ProvisionController:
        return cls(
            api,
            is_ready=is_ready,
            extract_credentials=extract_credentials,
            timeout=config.login_details_timeout_ms / 1000,
            period=config.poll_period_ms / 1000,
            **kwargs,
        )

    async def provision(self, request: ProvisionRequest) -> ProvisionResult:
        log = logger.bind(group=request.group_name, name=request.instance_name)

        log.debug("provision.creating", state=ProvisionState.CREATING)
        try:
            handle = await self._api.create(request)
        except LifecycleError:
            raise
        except Exception as exc:
            log.error("provision.create_failed", error=str(exc))
            raise CreateFailed(
                f"Failed to create {request.instance_name} in group {request.group_name}: {exc}"
            ) from exc
        log = log.bind(resource_id=handle.id)
        log.info("provision.created")

        async def _has_login_details() -> bool:
            state = await self._api.get(handle.id)
            handle.status = state
            return state is not None and bool(self._is_ready(state))

        log.debug(
            "provision.awaiting_login_details",
            state=ProvisionState.WAITING_READY,
            timeout=self._timeout,
        )
        try:
            outcome = await self._poller.poll(
                _has_login_details,
                period=self._period,
                timeout=self._timeout,
                transient=self._transient,
                label=f"provision:{handle.id}",
            )
        except asyncio.CancelledError:
            # The resource is left in place; its id is in the log for manual cleanup.
            log.warning("provision.cancelled", last_state=handle.status)
            raise

        if not outcome.ready:
            elapsed = outcome.elapsed
            log.warning(
                "provision.timed_out",
                state=ProvisionState.TIMED_OUT,
                elapsed=elapsed,
                timeout=self._timeout,
            )
            cleanup_error = await self._destroy(handle, log)
            raise ReadinessTimeout(
                f"Resource is being destroyed as it had no login details after "
                f"{self._timeout:.1f}s; consider increasing the login details timeout",
                cleanup_error=cleanup_error,
                resource_id=handle.id,
                elapsed=elapsed,
                timeout=self._timeout,
                last_state=handle.status,
            )

        elapsed = outcome.elapsed
        credentials = await self._final_credentials(handle, elapsed)
        log.info(
            "provision.ready",
            state=ProvisionState.READY,
            elapsed=elapsed,
            attempts=outcome.attempts,
            user=credentials.user,
        )
        return ProvisionResult(handle=handle, credentials=credentials, elapsed=elapsed)

    async def _final_credentials(
        self, handle: ResourceHandle, elapsed: float
    ) -> LoginCredentials:
        context: dict[str, Any] = {
            "resource_id": handle.id,
            "elapsed": elapsed,
            "timeout": self._timeout,
        }
        state = await self._api.get(handle.id)
        if state is None:
            raise InconsistentState(
                "Resource reported ready but is gone on the final read",
                last_state=handle.status,
                **context,
            )
        handle.status = state
        try:
            credentials = self._extract_credentials(state)
        except Exception as exc:
            raise InconsistentState(
                f"Resource reported ready but its credentials could not be read: {exc}",
                last_state=state,
                **context,
            ) from exc
        if credentials is None:
            raise InconsistentState(
                "Resource reported ready but carries no login credentials",
                last_state=state,
                **context,
            )
        return credentials

    async def _destroy(self, handle: ResourceHandle, log: Any) -> BaseException | None:
        """Best-effort delete of a half-provisioned resource."""
        log.debug("provision.destroying", state=ProvisionState.DESTROYING)
        try:
            accepted = await self._api.delete(handle.id)
        except Exception as exc:
            log.warning("provision.destroy_failed", error=str(exc))
            return exc
        if not accepted:
            log.warning("provision.destroy_rejected")
            return RuntimeError(f"delete of {handle.id} was not accepted")
        log.info("provision.destroyed", state=ProvisionState.FAILED)
        return None
