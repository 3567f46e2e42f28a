"""SoftLayer virtual guest predicates and controller wiring.

Guests are plain mappings as returned by the ``SoftLayer_Virtual_Guest``
object mask (``primaryBackendIpAddress``, ``primaryIpAddress``,
``operatingSystem.passwords``, ``activeTransactionCount``, ``hostname``).
"""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any

from node_lifecycle.compute.models import LoginCredentials
from node_lifecycle.compute.protocols import ResourceApi
from node_lifecycle.compute.provision import ProvisionController
from node_lifecycle.compute.teardown import TeardownController
from node_lifecycle.config.models import LifecycleConfig


def _passwords(guest: Mapping[str, Any]) -> list[Mapping[str, Any]]:
    operating_system = guest.get("operatingSystem") or {}
    return list(operating_system.get("passwords") or [])


def guest_has_login_details(guest: Mapping[str, Any]) -> bool:
    """A guest is usable once it has both IPs and at least one OS password."""
    return (
        guest.get("primaryBackendIpAddress") is not None
        and guest.get("primaryIpAddress") is not None
        and len(_passwords(guest)) > 0
    )


def guest_login_credentials(guest: Mapping[str, Any]) -> LoginCredentials | None:
    passwords = _passwords(guest)
    if not passwords:
        return None
    first = passwords[0]
    return LoginCredentials(user=first["username"], password=first["password"])


def active_transaction_count(guest: Mapping[str, Any]) -> int:
    return int(guest.get("activeTransactionCount") or 0)


def guest_name(guest: Mapping[str, Any]) -> str:
    return str(guest.get("hostname", ""))


def provision_controller(
    api: ResourceApi, config: LifecycleConfig, **kwargs: Any
) -> ProvisionController:
    return ProvisionController.from_config(
        api,
        config.provision,
        is_ready=guest_has_login_details,
        extract_credentials=guest_login_credentials,
        **kwargs,
    )


def teardown_controller(
    api: ResourceApi, config: LifecycleConfig, **kwargs: Any
) -> TeardownController:
    return TeardownController.from_config(
        api,
        config.teardown,
        pending_operations=active_transaction_count,
        resource_name=guest_name,
        **kwargs,
    )
