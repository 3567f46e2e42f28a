"""Readiness polling, single-flight caching and node lifecycle controllers."""

from node_lifecycle.cache import CacheEntry, KeyedCache
from node_lifecycle.errors import (
    AuthenticationFailed,
    CreateFailed,
    DeleteFailed,
    DrainTimeout,
    InconsistentState,
    LifecycleError,
    OrphanCleanupFailed,
    ReadinessTimeout,
)
from node_lifecycle.poller import PollOutcome, ReadinessPoller

__all__ = [
    "AuthenticationFailed",
    "CacheEntry",
    "CreateFailed",
    "DeleteFailed",
    "DrainTimeout",
    "InconsistentState",
    "KeyedCache",
    "LifecycleError",
    "OrphanCleanupFailed",
    "PollOutcome",
    "ReadinessPoller",
    "ReadinessTimeout",
]

__version__ = "0.1.0"
