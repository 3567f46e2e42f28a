"""Factory functions selecting the identity strategy from config."""

from __future__ import annotations

from node_lifecycle.auth.keystone import KeystoneV2Authenticator, KeystoneV3Authenticator
from node_lifecycle.auth.tokens import Authenticator, Credentials, TokenSupplier
from node_lifecycle.config.models import AuthConfig, CacheConfig, KeystoneVersion


def create_authenticator(config: AuthConfig) -> Authenticator:
    """Create the authenticator for the configured identity API version."""
    if config.version == KeystoneVersion.V3:
        return KeystoneV3Authenticator(
            config.endpoint,
            project_name=config.project_name,
            domain_name=config.domain_name,
            timeout_seconds=config.timeout_seconds,
            retry=config.retry,
        )
    if config.version == KeystoneVersion.V2:
        return KeystoneV2Authenticator(
            config.endpoint,
            tenant_name=config.tenant_name,
            timeout_seconds=config.timeout_seconds,
            retry=config.retry,
        )
    msg = f"Unsupported identity version: {config.version}"
    raise ValueError(msg)


def credentials_from_config(config: AuthConfig) -> Credentials:
    return Credentials(
        identity=config.identity,
        secret=config.secret,
        credential_type=config.credential_type,
    )


def create_token_supplier(
    config: AuthConfig,
    cache: CacheConfig | None = None,
) -> TokenSupplier:
    """Wire a TokenSupplier for the configured identity API.

    v3 session tokens live for hours; v2/OAuth-style tokens are cached just
    under their one-hour validity.
    """
    cache = cache or CacheConfig()
    ttl = (
        cache.session_token_ttl_seconds
        if config.version == KeystoneVersion.V3
        else cache.token_ttl_seconds
    )
    return TokenSupplier(
        create_authenticator(config),
        credentials_from_config(config),
        ttl=ttl,
        expiry_margin=cache.token_expiry_margin_seconds,
    )
