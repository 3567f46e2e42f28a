"""Collaborator protocols implemented once per provider."""

from __future__ import annotations

from typing import Any, Protocol, runtime_checkable

from node_lifecycle.compute.models import ProvisionRequest, ResourceHandle, ResourceRef


@runtime_checkable
class ResourceApi(Protocol):
    """Issues create/get/delete calls for a primary resource (e.g. a node)."""

    async def create(self, request: ProvisionRequest) -> ResourceHandle:
        """Start creating the resource and return its handle without waiting."""
        ...

    async def get(self, resource_id: str) -> Any | None:
        """Return the current state, or None if the resource does not exist."""
        ...

    async def delete(self, resource_id: str) -> bool:
        """Request deletion; True when the backend accepted it."""
        ...


@runtime_checkable
class OrphanApi(Protocol):
    """Finds and removes secondary resources left behind by a deleted one."""

    async def list_orphans(self, name: str) -> list[ResourceRef]:
        """List resources whose names reference *name*."""
        ...

    async def delete_orphan(self, ref: ResourceRef) -> None:
        ...


@runtime_checkable
class ImageApi(Protocol):
    """Clones a node into a reusable image."""

    async def create_image(self, source_id: str, name: str) -> ResourceHandle:
        ...

    async def get_image(self, image_id: str) -> Any | None:
        ...

    async def delete_image(self, image_id: str) -> None:
        ...
