#!/usr/bin/env python3
"""Runnable demo: provision and tear down a simulated SoftLayer guest.

The backend below exposes login details after a few polls and keeps an
active transaction for a while before it can be deleted.

    python examples/in_memory_lifecycle_demo.py
"""

from __future__ import annotations

import asyncio
import itertools
from typing import Any

from node_lifecycle.compute.models import ProvisionRequest, ResourceHandle
from node_lifecycle.compute.naming import GroupNamingConvention
from node_lifecycle.config.models import LifecycleConfig
from node_lifecycle.providers.softlayer import provision_controller, teardown_controller


class SimulatedGuests:
    def __init__(self) -> None:
        self._ids = itertools.count(1000)
        self._guests: dict[str, dict[str, Any]] = {}
        self._reads: dict[str, int] = {}

    async def create(self, request: ProvisionRequest) -> ResourceHandle:
        guest_id = str(next(self._ids))
        self._guests[guest_id] = {
            "id": guest_id,
            "hostname": request.instance_name,
            "activeTransactionCount": 1,
        }
        self._reads[guest_id] = 0
        return ResourceHandle(id=guest_id)

    async def get(self, resource_id: str) -> dict[str, Any] | None:
        guest = self._guests.get(resource_id)
        if guest is None:
            return None
        self._reads[resource_id] += 1
        if self._reads[resource_id] == 3:
            guest.update(
                primaryBackendIpAddress="10.0.0.5",
                primaryIpAddress="169.45.1.5",
                operatingSystem={"passwords": [{"username": "root", "password": "demo"}]},
            )
        if self._reads[resource_id] == 6:
            guest["activeTransactionCount"] = 0
        return dict(guest)

    async def delete(self, resource_id: str) -> bool:
        return self._guests.pop(resource_id, None) is not None


async def main() -> None:
    config = LifecycleConfig.model_validate(
        {
            "provision": {"login_details_timeout_ms": 10_000, "poll_period_ms": 500},
            "teardown": {"active_transactions_timeout_ms": 10_000, "poll_period_ms": 500},
        }
    )
    naming = GroupNamingConvention(config.naming_prefix)
    api = SimulatedGuests()

    request = ProvisionRequest(
        desired_state={"cpus": 1, "memory": 1024},
        group_name="demo",
        instance_name=naming.name_for("demo"),
    )
    result = await provision_controller(api, config).provision(request)
    print(f"ready: {result.handle.id} user={result.credentials.user} in {result.elapsed:.1f}s")

    teardown = await teardown_controller(api, config).destroy(result.handle.id)
    print(f"deleted={teardown.deleted} in {teardown.elapsed:.1f}s")

    again = await teardown_controller(api, config).destroy(result.handle.id)
    print(f"second teardown deleted={again.deleted}")


if __name__ == "__main__":
    asyncio.run(main())
