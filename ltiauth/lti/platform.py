"""Registered platforms and the contract the token engine needs from them."""

from collections.abc import Awaitable, Callable
from typing import Protocol

import structlog
from pydantic import BaseModel

from ltiauth.core.settings import RSA_KEY_SIZE_DEFAULT
from ltiauth.crypto.keys import require_encryption_key
from ltiauth.crypto.types import AuthConfig
from ltiauth.db.store import Store
from ltiauth.lti.errors import KeyNotFoundError, NoPlatformRegisteredError
from ltiauth.lti.key_pair import (
    delete_key_pair,
    generate_provider_key_pair,
    get_private_key,
    get_public_key,
)

PLATFORM_COLLECTION = "platform"

logger = structlog.get_logger(__name__)


class Platform(Protocol):
    """What verification and issuance need to know about a platform."""

    def platform_url(self) -> str: ...

    def platform_client_id(self) -> str: ...

    def platform_auth_config(self) -> AuthConfig: ...

    def platform_access_token_endpoint(self) -> str: ...

    def platform_kid(self) -> str: ...

    async def platform_private_key(self) -> str: ...


PlatformLookup = Callable[[str], Awaitable[Platform | None]]


class PlatformRegistration(BaseModel):
    """Details supplied when registering a platform with the tool."""

    url: str
    name: str
    client_id: str
    authentication_endpoint: str = ""
    access_token_endpoint: str
    auth_config: AuthConfig


class PlatformRecord(PlatformRegistration):
    """Stored platform, including the kid of the tool's key for it."""

    kid: str


class StoredPlatform:
    """``Platform`` backed by a stored record; private key read on demand."""

    def __init__(self, record: PlatformRecord, store: Store, encryption_key: str) -> None:
        self.record = record
        self._store = store
        self._encryption_key = encryption_key

    def platform_url(self) -> str:
        return self.record.url

    def platform_name(self) -> str:
        return self.record.name

    def platform_client_id(self) -> str:
        return self.record.client_id

    def platform_auth_config(self) -> AuthConfig:
        return self.record.auth_config

    def platform_access_token_endpoint(self) -> str:
        return self.record.access_token_endpoint

    def platform_kid(self) -> str:
        return self.record.kid

    async def platform_public_key(self) -> str | None:
        return await get_public_key(self._store, self.record.kid)

    async def platform_private_key(self) -> str:
        """Decrypt the tool's private key for this platform."""
        key = await get_private_key(self._store, self._encryption_key, self.record.kid)
        if key is None:
            raise KeyNotFoundError(f"No private key stored for kid {self.record.kid}")
        return key


async def register_platform(
    store: Store,
    encryption_key: str,
    registration: PlatformRegistration,
    key_size: int = RSA_KEY_SIZE_DEFAULT,
) -> StoredPlatform:
    """Create the tool keypair for a platform and store the platform.

    Returns the already registered platform if ``registration.url`` is known,
    including when a concurrent registration for the same URL won the insert.
    """
    require_encryption_key(encryption_key)
    existing = await get_platform(store, encryption_key, registration.url)
    if existing is not None:
        return existing

    kid = await generate_provider_key_pair(store, encryption_key, key_size)
    record = PlatformRecord(**registration.model_dump(), kid=kid)
    inserted = await store.insert_if_absent(
        encryption_key,
        PLATFORM_COLLECTION,
        record.model_dump(mode="json", exclude={"url"}),
        {"platformUrl": record.url},
    )
    if not inserted:
        await delete_key_pair(store, kid)
        logger.info("platform_registration_lost_race", url=record.url, kid=kid)
        winner = await get_platform(store, encryption_key, registration.url)
        if winner is None:
            raise NoPlatformRegisteredError(record.url)
        return winner

    logger.info("platform_registered", url=record.url, kid=kid)
    return StoredPlatform(record, store, encryption_key)


async def get_platform(
    store: Store, encryption_key: str, url: str
) -> StoredPlatform | None:
    """Load a registered platform by its issuer URL."""
    raw = await store.get(encryption_key, PLATFORM_COLLECTION, {"platformUrl": url})
    if raw is None:
        return None
    raw["url"] = raw.pop("platformUrl")
    return StoredPlatform(PlatformRecord.model_validate(raw), store, encryption_key)


def platform_lookup(store: Store, encryption_key: str) -> PlatformLookup:
    """Bind ``get_platform`` to a store, as expected by ``validate_token``."""

    async def _lookup(url: str) -> Platform | None:
        return await get_platform(store, encryption_key, url)

    return _lookup
