"""Thin async bindings for the Keystone v2 and v3 token endpoints."""

from __future__ import annotations

from abc import ABC, abstractmethod
from datetime import datetime
from typing import Any

import httpx
import structlog
from tenacity import (
    AsyncRetrying,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential_jitter,
)

from node_lifecycle.auth.tokens import Credentials, Token
from node_lifecycle.config.models import CredentialType, RetryConfig
from node_lifecycle.errors import AuthenticationFailed

logger = structlog.get_logger()

SUBJECT_TOKEN_HEADER = "X-Subject-Token"


def _parse_expiry(value: str | None) -> float | None:
    if not value:
        return None
    return datetime.fromisoformat(value).timestamp()


class _KeystoneAuthenticator(ABC):
    """Shared HTTP plumbing for both identity API versions."""

    path: str = ""

    def __init__(
        self,
        endpoint: str,
        *,
        timeout_seconds: float = 30.0,
        retry: RetryConfig | None = None,
    ) -> None:
        self._endpoint = endpoint.rstrip("/")
        self._retry = retry or RetryConfig()
        self._client = httpx.AsyncClient(
            base_url=self._endpoint,
            timeout=timeout_seconds,
        )

    async def close(self) -> None:
        await self._client.aclose()

    async def __aenter__(self) -> _KeystoneAuthenticator:
        return self

    async def __aexit__(self, *exc: object) -> None:
        await self.close()

    async def authenticate(self, credentials: Credentials) -> Token:
        body = self._request_body(credentials)
        retrying = AsyncRetrying(
            stop=stop_after_attempt(self._retry.max_attempts),
            wait=wait_exponential_jitter(
                initial=self._retry.initial_wait_seconds,
                max=self._retry.max_wait_seconds,
                jitter=self._retry.multiplier if self._retry.jitter else 0,
            ),
            retry=retry_if_exception_type(httpx.TransportError),
            reraise=True,
        )
        resp = await retrying(self._client.post, self.path, json=body)
        if resp.status_code in (401, 403):
            raise AuthenticationFailed(
                f"Identity service at {self._endpoint} rejected credentials "
                f"for {credentials.identity}: {resp.status_code}"
            )
        resp.raise_for_status()
        token = self._parse_token(resp)
        logger.info(
            "keystone.authenticated",
            endpoint=self._endpoint,
            identity=credentials.identity,
        )
        return token

    @abstractmethod
    def _request_body(self, credentials: Credentials) -> dict[str, Any]: ...

    @abstractmethod
    def _parse_token(self, resp: httpx.Response) -> Token: ...


class KeystoneV2Authenticator(_KeystoneAuthenticator):
    """``POST /tokens`` with password or API access key credentials."""

    path = "/tokens"

    def __init__(self, endpoint: str, *, tenant_name: str | None = None, **kwargs: Any) -> None:
        super().__init__(endpoint, **kwargs)
        self._tenant_name = tenant_name

    def _request_body(self, credentials: Credentials) -> dict[str, Any]:
        secret = credentials.secret.get_secret_value()
        auth: dict[str, Any]
        if credentials.credential_type == CredentialType.API_ACCESS_KEY:
            auth = {
                "apiAccessKeyCredentials": {
                    "accessKey": credentials.identity,
                    "secretKey": secret,
                }
            }
        else:
            auth = {
                "passwordCredentials": {
                    "username": credentials.identity,
                    "password": secret,
                }
            }
        if self._tenant_name:
            auth["tenantName"] = self._tenant_name
        return {"auth": auth}

    def _parse_token(self, resp: httpx.Response) -> Token:
        token = resp.json()["access"]["token"]
        return Token(id=token["id"], valid_until=_parse_expiry(token.get("expires")))


class KeystoneV3Authenticator(_KeystoneAuthenticator):
    """``POST /auth/tokens``; the token id arrives in ``X-Subject-Token``."""

    path = "/auth/tokens"

    def __init__(
        self,
        endpoint: str,
        *,
        project_name: str | None = None,
        domain_name: str = "Default",
        **kwargs: Any,
    ) -> None:
        super().__init__(endpoint, **kwargs)
        self._project_name = project_name
        self._domain_name = domain_name

    def _request_body(self, credentials: Credentials) -> dict[str, Any]:
        if credentials.credential_type != CredentialType.PASSWORD:
            msg = f"Keystone v3 does not accept {credentials.credential_type} credentials"
            raise ValueError(msg)
        auth: dict[str, Any] = {
            "identity": {
                "methods": ["password"],
                "password": {
                    "user": {
                        "name": credentials.identity,
                        "domain": {"name": self._domain_name},
                        "password": credentials.secret.get_secret_value(),
                    }
                },
            }
        }
        if self._project_name:
            auth["scope"] = {
                "project": {
                    "name": self._project_name,
                    "domain": {"name": self._domain_name},
                }
            }
        return {"auth": auth}

    def _parse_token(self, resp: httpx.Response) -> Token:
        token_id = resp.headers.get(SUBJECT_TOKEN_HEADER)
        if not token_id:
            raise AuthenticationFailed(
                f"Identity service at {self._endpoint} returned no {SUBJECT_TOKEN_HEADER}"
            )
        expires = resp.json().get("token", {}).get("expires_at")
        return Token(id=token_id, valid_until=_parse_expiry(expires))
