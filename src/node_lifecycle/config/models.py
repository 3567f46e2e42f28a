"""Pydantic configuration models for node lifecycle flows."""

from __future__ import annotations

from enum import StrEnum
from typing import Self

from pydantic import BaseModel, Field, SecretStr, model_validator

# Observed token validity windows.
OAUTH_TOKEN_TTL_SECONDS = 59 * 60
SESSION_TOKEN_TTL_SECONDS = 11 * 60 * 60


class KeystoneVersion(StrEnum):
    """Supported identity API versions."""

    V2 = "v2"
    V3 = "v3"


class CredentialType(StrEnum):
    """How the identity/secret pair is presented to the identity service."""

    PASSWORD = "password"
    API_ACCESS_KEY = "api_access_key"


class RetryConfig(BaseModel):
    """Retry / backoff configuration for transient transport errors."""

    max_attempts: int = Field(default=5, ge=1)
    initial_wait_seconds: float = Field(default=1.0, gt=0)
    max_wait_seconds: float = Field(default=60.0, gt=0)
    multiplier: float = Field(default=2.0, ge=1.0)
    jitter: bool = True


class ProvisionConfig(BaseModel):
    """Timing for the create → wait-until-ready flow."""

    # Milliseconds to wait for an order to expose its login details.
    login_details_timeout_ms: int = Field(default=1_200_000, gt=500)
    poll_period_ms: int = Field(default=1000, ge=500)


class TeardownConfig(BaseModel):
    """Timing for the drain → delete flow."""

    # Milliseconds to wait for a node to be without active transactions.
    active_transactions_timeout_ms: int = Field(default=180_000, gt=500)
    poll_period_ms: int = Field(default=1000, ge=500)


class ImageConfig(BaseModel):
    """Timing for image clone availability."""

    image_available_timeout_ms: int = Field(default=1_200_000, gt=500)
    poll_period_ms: int = Field(default=1000, ge=500)


class CacheConfig(BaseModel):
    """Time-to-live per cache; ``None`` keeps entries until evicted."""

    token_ttl_seconds: float = Field(default=OAUTH_TOKEN_TTL_SECONDS, gt=0)
    session_token_ttl_seconds: float = Field(default=SESSION_TOKEN_TTL_SECONDS, gt=0)
    key_pair_ttl_seconds: float | None = Field(default=None, gt=0)
    token_expiry_margin_seconds: float = Field(default=30.0, ge=0)


class AuthConfig(BaseModel):
    """Identity service endpoint and the process's active credentials."""

    endpoint: str
    version: KeystoneVersion = KeystoneVersion.V2
    credential_type: CredentialType = CredentialType.PASSWORD
    identity: str
    secret: SecretStr
    tenant_name: str | None = None
    project_name: str | None = None
    domain_name: str = "Default"
    timeout_seconds: float = Field(default=30.0, gt=0)
    retry: RetryConfig = RetryConfig()

    @model_validator(mode="after")
    def check_version_requirements(self) -> Self:
        """API access keys are only accepted by the v2 token endpoint."""
        if (
            self.version == KeystoneVersion.V3
            and self.credential_type == CredentialType.API_ACCESS_KEY
        ):
            msg = "credential_type 'api_access_key' is only supported with version 'v2'"
            raise ValueError(msg)
        return self


class LifecycleConfig(BaseModel, extra="forbid"):
    """Root configuration: timeouts, cache TTLs, and optional identity settings."""

    naming_prefix: str = Field(default="nodes", pattern=r"^[a-z][a-z0-9]*$")
    provision: ProvisionConfig = ProvisionConfig()
    teardown: TeardownConfig = TeardownConfig()
    image: ImageConfig = ImageConfig()
    cache: CacheConfig = CacheConfig()
    auth: AuthConfig | None = None
