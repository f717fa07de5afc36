"""Resolve the PEM public key that verifies a platform's token."""

from collections.abc import Mapping
from typing import Any

import httpx
import jwt
import structlog

from ltiauth.crypto.keys import jwk_to_pem
from ltiauth.crypto.types import JWKKeyAuth, JWKSetAuth, RSAKeyAuth
from ltiauth.lti.errors import (
    EmptyKeySetError,
    KeyNotFoundError,
    KeySetFetchError,
    MissingKeyIdentifierError,
    UnsupportedStrategyError,
)
from ltiauth.lti.platform import Platform

logger = structlog.get_logger(__name__)


def _convert(jwk: Mapping[str, Any]) -> str:
    try:
        return jwk_to_pem(jwk)
    except (jwt.InvalidKeyError, ValueError, TypeError) as exc:
        raise KeyNotFoundError("Configured JWK is not a usable RSA key") from exc


async def fetch_key_set(url: str, http_client: httpx.AsyncClient) -> list[dict[str, Any]]:
    """GET a JWKS document and return its ``keys`` list."""
    try:
        response = await http_client.get(url)
        response.raise_for_status()
        body = response.json()
    except (httpx.HTTPError, ValueError) as exc:
        raise KeySetFetchError(f"Could not fetch key set from {url}") from exc

    keys = body.get("keys") if isinstance(body, dict) else None
    if not isinstance(keys, list) or not keys:
        raise EmptyKeySetError(f"No keys found in key set at {url}")
    return keys


async def _from_key_set(
    auth: JWKSetAuth, header: Mapping[str, Any], http_client: httpx.AsyncClient
) -> str:
    kid = header.get("kid")
    if not kid:
        raise MissingKeyIdentifierError("Token header has no kid")
    logger.debug("retrieving_key_from_jwk_set", url=auth.key, kid=kid)
    keys = await fetch_key_set(auth.key, http_client)
    match = next((k for k in keys if isinstance(k, dict) and k.get("kid") == kid), None)
    if match is None:
        raise KeyNotFoundError(f"No key with kid {kid} in key set")
    return _convert(match)


async def resolve_key(
    platform: Platform,
    header: Mapping[str, Any],
    http_client: httpx.AsyncClient,
) -> str:
    """Return the PEM key for a token, following the platform's auth config."""
    auth = platform.platform_auth_config()

    if isinstance(auth, JWKSetAuth):
        return await _from_key_set(auth, header, http_client)
    if isinstance(auth, JWKKeyAuth):
        logger.debug("retrieving_key_from_jwk_key")
        if not auth.key:
            raise KeyNotFoundError("Platform has no JWK configured")
        return _convert(auth.key)
    if isinstance(auth, RSAKeyAuth):
        logger.debug("retrieving_key_from_rsa_key")
        if not auth.key:
            raise KeyNotFoundError("Platform has no RSA key configured")
        return auth.key

    raise UnsupportedStrategyError(
        f"Unsupported key strategy: {getattr(auth, 'method', type(auth).__name__)}"
    )
