"""Settings-bound entry points for the request-handling layer."""

from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

import httpx

from ltiauth.core.http import create_http_client
from ltiauth.core.settings import LTISettings
from ltiauth.crypto.keys import require_encryption_key
from ltiauth.crypto.types import AccessTokenRecord, DecodedToken
from ltiauth.db.store import Store
from ltiauth.lti.access_token import get_access_token, get_cached_access_token
from ltiauth.lti.nonce import NonceGuard
from ltiauth.lti.platform import (
    Platform,
    PlatformRegistration,
    StoredPlatform,
    get_platform,
    platform_lookup,
    register_platform,
)
from ltiauth.lti.token_verifier import validate_token


class TokenEngine:
    """Verification and issuance wired to one store, HTTP client and config."""

    def __init__(
        self,
        store: Store,
        http_client: httpx.AsyncClient,
        settings: LTISettings | None = None,
    ) -> None:
        self.settings = settings or LTISettings()
        require_encryption_key(self.settings.encryption_key)
        self._store = store
        self.http_client = http_client
        self.nonce_guard = NonceGuard(store, self.settings.nonce_retention_seconds)

    @classmethod
    @asynccontextmanager
    async def from_settings(
        cls, store: Store, settings: LTISettings | None = None
    ) -> AsyncIterator["TokenEngine"]:
        """Open an engine with its own HTTP client built from ``settings``.

        The client is closed when the context exits.
        """
        settings = settings or LTISettings()
        async with create_http_client(settings) as http_client:
            yield cls(store, http_client, settings)

    async def register(self, registration: PlatformRegistration) -> StoredPlatform:
        return await register_platform(
            self._store,
            self.settings.encryption_key,
            registration,
            self.settings.key_size,
        )

    async def platform(self, url: str) -> StoredPlatform | None:
        return await get_platform(self._store, self.settings.encryption_key, url)

    async def validate(self, token: str) -> DecodedToken:
        """Verify a launch id_token from any registered platform."""
        return await validate_token(
            token,
            platform_lookup(self._store, self.settings.encryption_key),
            http_client=self.http_client,
            nonce_guard=self.nonce_guard,
            max_age=self.settings.iat_max_age,
        )

    async def access_token(self, platform: Platform) -> AccessTokenRecord:
        """Fetch a fresh service token for ``platform`` and cache it."""
        return await get_access_token(
            platform,
            store=self._store,
            http_client=self.http_client,
            encryption_key=self.settings.encryption_key,
            scope=self.settings.access_token_scope,
        )

    async def cached_access_token(self, platform_url: str) -> AccessTokenRecord | None:
        return await get_cached_access_token(
            self._store, self.settings.encryption_key, platform_url
        )

    async def purge_nonces(self) -> int:
        return await self.nonce_guard.purge_expired()
