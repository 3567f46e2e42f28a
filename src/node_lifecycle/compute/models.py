"""Value types passed between the lifecycle controllers and provider glue."""

from __future__ import annotations

from collections.abc import Hashable
from dataclasses import dataclass, field
from enum import StrEnum
from typing import Any

from node_lifecycle.errors import OrphanCleanupFailed


class ProvisionState(StrEnum):
    REQUESTED = "requested"
    CREATING = "creating"
    WAITING_READY = "waiting_ready"
    READY = "ready"
    TIMED_OUT = "timed_out"
    DESTROYING = "destroying"
    FAILED = "failed"


class TeardownState(StrEnum):
    REQUESTED = "requested"
    NOT_FOUND = "not_found"
    DRAINING = "draining"
    DELETING = "deleting"
    CLEANING_ORPHANS = "cleaning_orphans"
    DONE = "done"


@dataclass(frozen=True)
class ProvisionRequest:
    """What to create and under which group/instance name."""

    desired_state: Any
    group_name: str
    instance_name: str


@dataclass
class ResourceHandle:
    """Provider id plus the last status observed while polling."""

    id: str
    status: Any = None


@dataclass(frozen=True)
class LoginCredentials:
    """Initial login secret reported by the provider for a new node."""

    user: str
    password: str | None = field(default=None, repr=False)
    private_key: str | None = field(default=None, repr=False)

    def __post_init__(self) -> None:
        if not self.user:
            msg = "login credentials require a user"
            raise ValueError(msg)
        if not self.password and not self.private_key:
            msg = f"login credentials for {self.user} carry neither password nor key"
            raise ValueError(msg)


@dataclass(frozen=True)
class ResourceRef:
    """A secondary resource tied to a primary one by naming convention.

    ``cache_key`` names the cache entry to drop once the resource is gone.
    """

    kind: str
    id: str
    name: str = ""
    cache_key: Hashable | None = None


@dataclass
class ProvisionResult:
    handle: ResourceHandle
    credentials: LoginCredentials
    elapsed: float
    state: ProvisionState = ProvisionState.READY


@dataclass
class TeardownResult:
    resource_id: str
    deleted: bool
    elapsed: float
    removed: list[ResourceRef] = field(default_factory=list)
    failures: list[OrphanCleanupFailed] = field(default_factory=list)
    state: TeardownState = TeardownState.DONE


@dataclass
class ImageResult:
    handle: ResourceHandle
    elapsed: float
    state: ProvisionState = ProvisionState.READY
