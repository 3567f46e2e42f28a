"""Unit tests for compute value types."""

import pytest

from node_lifecycle.compute.models import LoginCredentials, ResourceRef, TeardownResult


class TestLoginCredentials:
    def test_password_hidden_from_repr(self):
        creds = LoginCredentials(user="root", password="Xk9!")
        assert "Xk9!" not in repr(creds)

    def test_private_key_alone_is_enough(self):
        assert LoginCredentials(user="core", private_key="-----BEGIN KEY-----").user == "core"

    def test_requires_user(self):
        with pytest.raises(ValueError, match="user"):
            LoginCredentials(user="", password="pw")

    def test_requires_a_secret(self):
        with pytest.raises(ValueError, match="neither password nor key"):
            LoginCredentials(user="root")


class TestResourceRef:
    def test_hashable(self):
        refs = {ResourceRef(kind="key_pair", id="k"), ResourceRef(kind="key_pair", id="k")}
        assert len(refs) == 1


class TestTeardownResult:
    def test_defaults(self):
        result = TeardownResult(resource_id="42", deleted=False, elapsed=0.0)
        assert result.removed == []
        assert result.failures == []
