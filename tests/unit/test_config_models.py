"""Unit tests for configuration Pydantic models."""

import pytest
from pydantic import ValidationError

from node_lifecycle.config.models import (
    OAUTH_TOKEN_TTL_SECONDS,
    SESSION_TOKEN_TTL_SECONDS,
    AuthConfig,
    CacheConfig,
    CredentialType,
    KeystoneVersion,
    LifecycleConfig,
    ProvisionConfig,
    TeardownConfig,
)


class TestProvisionConfig:
    def test_defaults(self):
        cfg = ProvisionConfig()
        assert cfg.login_details_timeout_ms == 1_200_000
        assert cfg.poll_period_ms == 1000

    @pytest.mark.parametrize("value", [0, 500, -1])
    def test_login_details_timeout_must_exceed_half_a_second(self, value):
        with pytest.raises(ValidationError, match="login_details_timeout_ms"):
            ProvisionConfig(login_details_timeout_ms=value)

    def test_accepts_just_above_minimum(self):
        assert ProvisionConfig(login_details_timeout_ms=501).login_details_timeout_ms == 501


class TestTeardownConfig:
    def test_defaults(self):
        assert TeardownConfig().active_transactions_timeout_ms == 180_000

    def test_rejects_tiny_timeout(self):
        with pytest.raises(ValidationError):
            TeardownConfig(active_transactions_timeout_ms=100)


class TestCacheConfig:
    def test_token_ttls(self):
        cfg = CacheConfig()
        assert cfg.token_ttl_seconds == OAUTH_TOKEN_TTL_SECONDS == 3540
        assert cfg.session_token_ttl_seconds == SESSION_TOKEN_TTL_SECONDS == 39600
        assert cfg.key_pair_ttl_seconds is None
        assert cfg.token_expiry_margin_seconds == 30

    def test_rejects_zero_ttl(self):
        with pytest.raises(ValidationError):
            CacheConfig(key_pair_ttl_seconds=0)


class TestAuthConfig:
    def test_defaults(self):
        cfg = AuthConfig(endpoint="http://keystone:5000/v2.0", identity="u", secret="p")
        assert cfg.version == KeystoneVersion.V2
        assert cfg.credential_type == CredentialType.PASSWORD
        assert cfg.domain_name == "Default"

    def test_secret_is_hidden(self):
        cfg = AuthConfig(endpoint="http://k", identity="u", secret="s3cret")
        assert cfg.secret.get_secret_value() == "s3cret"
        assert "s3cret" not in repr(cfg)
        assert "s3cret" not in cfg.model_dump_json()

    def test_v3_rejects_api_access_key(self):
        with pytest.raises(ValidationError, match="only supported with version 'v2'"):
            AuthConfig(
                endpoint="http://k",
                identity="u",
                secret="p",
                version="v3",
                credential_type="api_access_key",
            )

    def test_v2_accepts_api_access_key(self):
        cfg = AuthConfig(
            endpoint="http://k", identity="u", secret="p", credential_type="api_access_key"
        )
        assert cfg.credential_type == CredentialType.API_ACCESS_KEY


class TestLifecycleConfig:
    def test_defaults(self):
        cfg = LifecycleConfig()
        assert cfg.naming_prefix == "nodes"
        assert cfg.auth is None

    def test_unknown_keys_rejected(self):
        with pytest.raises(ValidationError):
            LifecycleConfig(bogus=True)

    @pytest.mark.parametrize("prefix", ["", "Nodes", "my-nodes", "1abc"])
    def test_invalid_naming_prefix(self, prefix):
        with pytest.raises(ValidationError):
            LifecycleConfig(naming_prefix=prefix)

    def test_partial_nested_mapping_keeps_other_defaults(self):
        cfg = LifecycleConfig.model_validate(
            {"naming_prefix": "lab", "teardown": {"poll_period_ms": 2000}}
        )
        assert cfg.naming_prefix == "lab"
        assert cfg.teardown.poll_period_ms == 2000
        assert cfg.teardown.active_transactions_timeout_ms == 180_000
        assert cfg.provision.login_details_timeout_ms == 1_200_000

    def test_nested_auth_mapping(self):
        cfg = LifecycleConfig.model_validate(
            {
                "auth": {
                    "endpoint": "http://keystone:5000/v3",
                    "version": "v3",
                    "identity": "admin",
                    "secret": "pw",
                    "project_name": "lab",
                }
            }
        )
        assert cfg.auth is not None
        assert cfg.auth.version == KeystoneVersion.V3
        assert cfg.auth.secret.get_secret_value() == "pw"

    def test_invalid_nested_value_names_the_field(self):
        with pytest.raises(ValidationError, match="login_details_timeout_ms"):
            LifecycleConfig.model_validate({"provision": {"login_details_timeout_ms": 100}})
