"""Client-credentials access tokens obtained with a signed client assertion."""

import secrets
import time
from typing import Any

import httpx
import jwt
import structlog

from ltiauth.core.settings import AGS_SCOPES
from ltiauth.crypto.keys import require_encryption_key
from ltiauth.crypto.types import AccessTokenRecord
from ltiauth.db.store import Store
from ltiauth.lti.errors import TokenEndpointError
from ltiauth.lti.platform import Platform

ACCESS_TOKEN_COLLECTION = "accesstoken"
ASSERTION_TTL_SECONDS = 60
CLIENT_ASSERTION_TYPE = "urn:ietf:params:oauth:client-assertion-type:jwt-bearer"

logger = structlog.get_logger(__name__)


async def build_client_assertion(platform: Platform) -> str:
    """Sign the RS256 client assertion for the platform's token endpoint."""
    client_id = platform.platform_client_id()
    now = int(time.time())
    claims = {
        "iss": client_id,
        "sub": client_id,
        "aud": [platform.platform_access_token_endpoint()],
        "iat": now,
        "exp": now + ASSERTION_TTL_SECONDS,
        "jti": secrets.token_urlsafe(16),
    }
    return jwt.encode(
        claims,
        await platform.platform_private_key(),
        algorithm="RS256",
        headers={"kid": platform.platform_kid()},
    )


async def _exchange(
    endpoint: str, form: dict[str, str], http_client: httpx.AsyncClient
) -> dict[str, Any]:
    try:
        response = await http_client.post(endpoint, data=form)
    except httpx.HTTPError as exc:
        raise TokenEndpointError(f"Token endpoint {endpoint} unreachable") from exc
    if response.is_error:
        raise TokenEndpointError(
            f"Token endpoint {endpoint} returned {response.status_code}"
        )
    try:
        body = response.json()
    except ValueError as exc:
        raise TokenEndpointError("Token endpoint response is not JSON") from exc
    if not isinstance(body, dict):
        raise TokenEndpointError("Token endpoint response is not a JSON object")
    return body


async def get_access_token(
    platform: Platform,
    *,
    store: Store,
    http_client: httpx.AsyncClient,
    encryption_key: str,
    scope: str = AGS_SCOPES,
) -> AccessTokenRecord:
    """Obtain a new access token from the platform and cache it."""
    require_encryption_key(encryption_key)
    endpoint = platform.platform_access_token_endpoint()
    form = {
        "grant_type": "client_credentials",
        "client_assertion_type": CLIENT_ASSERTION_TYPE,
        "client_assertion": await build_client_assertion(platform),
        "scope": scope,
    }

    logger.debug("requesting_access_token", endpoint=endpoint)
    token = await _exchange(endpoint, form, http_client)

    record = AccessTokenRecord(platform_url=platform.platform_url(), token=token)
    await store.upsert(
        encryption_key,
        ACCESS_TOKEN_COLLECTION,
        {"token": record.token},
        {"platformUrl": record.platform_url},
    )
    logger.info("access_token_obtained", platform=record.platform_url)
    return record


async def get_cached_access_token(
    store: Store, encryption_key: str, platform_url: str
) -> AccessTokenRecord | None:
    """Return the last access token obtained for a platform."""
    raw = await store.get(
        encryption_key, ACCESS_TOKEN_COLLECTION, {"platformUrl": platform_url}
    )
    if raw is None:
        return None
    return AccessTokenRecord(platform_url=raw["platformUrl"], token=raw["token"])
