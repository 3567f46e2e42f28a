"""Error taxonomy for provisioning, teardown, and credential lookups."""

from __future__ import annotations

from typing import Any


class LifecycleError(Exception):
    """Base class for lifecycle failures.

    Fatal errors carry the resource identifier, elapsed time against the
    configured timeout, and the last observed state so the caller can decide
    whether to retry the whole flow.
    """

    def __init__(
        self,
        message: str,
        *,
        resource_id: str | None = None,
        elapsed: float | None = None,
        timeout: float | None = None,
        last_state: Any = None,
    ) -> None:
        self.resource_id = resource_id
        self.elapsed = elapsed
        self.timeout = timeout
        self.last_state = last_state
        super().__init__(self._render(message))

    def _render(self, message: str) -> str:
        parts = [message]
        if self.resource_id is not None:
            parts.append(f"resource={self.resource_id}")
        if self.elapsed is not None and self.timeout is not None:
            parts.append(f"elapsed={self.elapsed:.1f}s/{self.timeout:.1f}s")
        elif self.elapsed is not None:
            parts.append(f"elapsed={self.elapsed:.1f}s")
        if self.last_state is not None:
            parts.append(f"last_state={self.last_state!r}")
        return " ".join(parts)


class CreateFailed(LifecycleError):
    """The create call itself failed; nothing was created."""


class AuthenticationFailed(LifecycleError):
    """The identity service rejected the credentials."""


class ReadinessTimeout(LifecycleError):
    """A created resource never became ready within its timeout.

    ``cleanup_error`` holds the failure of the compensating delete, if any.
    """

    def __init__(
        self,
        message: str,
        *,
        cleanup_error: BaseException | None = None,
        **context: Any,
    ) -> None:
        self.cleanup_error = cleanup_error
        if cleanup_error is not None:
            message = f"{message} (cleanup also failed: {cleanup_error})"
        super().__init__(message, **context)

    @property
    def cleaned_up(self) -> bool:
        return self.cleanup_error is None


class DrainTimeout(LifecycleError):
    """Pending operations did not drain before the timeout; nothing was deleted."""


class DeleteFailed(LifecycleError):
    """The delete call failed or reported that nothing was deleted."""


class InconsistentState(LifecycleError):
    """The backend reported ready/deleted but a subsequent read disagrees."""


class OrphanCleanupFailed(LifecycleError):
    """A secondary resource could not be removed. Collected, never raised."""

    def __init__(self, ref: Any, cause: BaseException) -> None:
        self.ref = ref
        self.cause = cause
        super().__init__(
            f"Failed to clean up orphan {ref}: {cause}",
            resource_id=getattr(ref, "id", None),
        )
