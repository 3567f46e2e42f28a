"""Unit tests for the SoftLayer guest predicates and controller wiring."""

from __future__ import annotations

from unittest.mock import AsyncMock

import pytest

from node_lifecycle.compute.models import LoginCredentials, ProvisionRequest, ResourceHandle
from node_lifecycle.config.models import LifecycleConfig
from node_lifecycle.providers.softlayer import (
    active_transaction_count,
    guest_has_login_details,
    guest_login_credentials,
    guest_name,
    provision_controller,
    teardown_controller,
)

GUEST = {
    "id": 1234,
    "hostname": "nodes-web-1a2",
    "primaryBackendIpAddress": "10.0.0.5",
    "primaryIpAddress": "169.45.1.5",
    "operatingSystem": {
        "passwords": [
            {"username": "root", "password": "Xk9!"},
            {"username": "admin", "password": "other"},
        ]
    },
    "activeTransactionCount": 0,
}


class TestGuestPredicates:
    def test_complete_guest_has_login_details(self):
        assert guest_has_login_details(GUEST)

    @pytest.mark.parametrize("missing", ["primaryBackendIpAddress", "primaryIpAddress"])
    def test_missing_ip_is_not_ready(self, missing):
        guest = {k: v for k, v in GUEST.items() if k != missing}
        assert not guest_has_login_details(guest)

    def test_no_passwords_is_not_ready(self):
        assert not guest_has_login_details({**GUEST, "operatingSystem": {"passwords": []}})
        assert not guest_has_login_details({**GUEST, "operatingSystem": None})

    def test_credentials_from_first_password(self):
        assert guest_login_credentials(GUEST) == LoginCredentials(user="root", password="Xk9!")
        assert guest_login_credentials({"hostname": "x"}) is None

    def test_active_transactions(self):
        assert active_transaction_count({**GUEST, "activeTransactionCount": 3}) == 3
        assert active_transaction_count({"hostname": "x"}) == 0

    def test_guest_name(self):
        assert guest_name(GUEST) == "nodes-web-1a2"


@pytest.mark.asyncio
class TestControllerWiring:
    async def test_provision_with_guest_mappings(self, poller):
        pending = {**GUEST, "primaryIpAddress": None}
        api = AsyncMock()
        api.create.return_value = ResourceHandle(id="1234")
        api.get.side_effect = [pending, GUEST, GUEST]

        controller = provision_controller(api, LifecycleConfig(), poller=poller)
        result = await controller.provision(
            ProvisionRequest(desired_state={}, group_name="web", instance_name="nodes-web-1a2")
        )

        assert result.credentials.user == "root"
        assert controller._timeout == 1200.0

    async def test_teardown_waits_for_transactions(self, poller):
        busy = {**GUEST, "activeTransactionCount": 1}
        api = AsyncMock()
        api.get.side_effect = [busy, busy, GUEST, None]
        api.delete.return_value = True

        result = await teardown_controller(api, LifecycleConfig(), poller=poller).destroy("1234")

        assert result.deleted
        api.delete.assert_awaited_once_with("1234")
