"""Cached bearer/session tokens for the process's active credentials."""

from __future__ import annotations

import time
from collections.abc import Callable
from dataclasses import dataclass, field
from typing import Protocol, runtime_checkable

import structlog
from pydantic import BaseModel, SecretStr

from node_lifecycle.cache import KeyedCache
from node_lifecycle.config.models import CredentialType
from node_lifecycle.errors import AuthenticationFailed

logger = structlog.get_logger()


class Credentials(BaseModel, frozen=True):
    """An identity/secret pair. Hashable so it can key a cache."""

    identity: str
    secret: SecretStr
    credential_type: CredentialType = CredentialType.PASSWORD


@dataclass(frozen=True, slots=True)
class Token:
    """An opaque token. ``valid_until`` is an epoch timestamp, or None if unknown."""

    id: str = field(repr=False)
    valid_until: float | None = None

    def expired(self, now: float, margin: float = 0.0) -> bool:
        if self.valid_until is None:
            return False
        return now >= self.valid_until - margin


@runtime_checkable
class Authenticator(Protocol):
    """Exchanges credentials for a token (or a bare session identifier)."""

    async def authenticate(self, credentials: Credentials) -> Token | str:
        """Raise AuthenticationFailed when the credentials are rejected."""
        ...


class TokenSupplier:
    """Hands out a current token, authenticating at most once per expiry.

    The authenticator passed in selects the strategy (e.g. v2 or v3 identity
    APIs); the supplier itself is identical for both.
    """

    def __init__(
        self,
        authenticator: Authenticator,
        credentials: Credentials | Callable[[], Credentials],
        *,
        ttl: float,
        expiry_margin: float = 30.0,
        cache: KeyedCache[Credentials, Token] | None = None,
        wall_clock: Callable[[], float] = time.time,
    ) -> None:
        self._authenticator = authenticator
        if isinstance(credentials, Credentials):
            self._credentials: Callable[[], Credentials] = lambda: credentials
        else:
            self._credentials = credentials
        self._cache = cache if cache is not None else KeyedCache(ttl, name="tokens")
        self._expiry_margin = expiry_margin
        self._wall_clock = wall_clock

    async def current_token(self) -> Token:
        creds = self._credentials()
        token = await self._cache.get(creds, self._authenticate)
        if token.expired(self._wall_clock(), self._expiry_margin):
            # Only the first caller to see this token drops it; later callers
            # join the reload already in flight.
            if self._cache.get_if_present(creds) is token:
                logger.info("token.expired_before_ttl", identity=creds.identity)
                self._cache.invalidate(creds)
            token = await self._cache.get(creds, self._authenticate)
        return token

    async def current_token_id(self) -> str:
        return (await self.current_token()).id

    def invalidate(self) -> None:
        """Forget the token for the current credentials, e.g. after a 401."""
        self._cache.invalidate(self._credentials())

    async def _authenticate(self, credentials: Credentials) -> Token:
        logger.debug("token.authenticating", identity=credentials.identity)
        result = await self._authenticator.authenticate(credentials)
        if isinstance(result, str):
            result = Token(id=result)
        if not result.id:
            raise AuthenticationFailed(
                f"Identity service returned an empty token for {credentials.identity}"
            )
        logger.info(
            "token.issued",
            identity=credentials.identity,
            valid_until=result.valid_until,
        )
        return result
