"""Verification of platform-issued id_tokens."""

from typing import Any

import httpx
import jwt
import structlog
from jwt.types import Options
from pydantic import ValidationError

from ltiauth.core.settings import IAT_MAX_AGE_DEFAULT
from ltiauth.crypto.types import DecodedToken
from ltiauth.lti.claims import validate_alg, validate_claims
from ltiauth.lti.errors import (
    NoPlatformRegisteredError,
    SignatureVerificationError,
    TokenExpiredError,
)
from ltiauth.lti.key_resolver import resolve_key
from ltiauth.lti.nonce import NonceGuard
from ltiauth.lti.platform import Platform, PlatformLookup

logger = structlog.get_logger(__name__)


def _unverified_parts(token: str) -> tuple[dict[str, Any], dict[str, Any]]:
    try:
        header = jwt.get_unverified_header(token)
        payload = jwt.decode(token, options={"verify_signature": False})
    except jwt.PyJWTError as exc:
        raise SignatureVerificationError("Token is not a well-formed JWT") from exc
    return header, payload


async def verify_token(
    token: str,
    key: str,
    alg: str | None,
    platform: Platform,
    nonce_guard: NonceGuard,
    *,
    max_age: int = IAT_MAX_AGE_DEFAULT,
) -> DecodedToken:
    """Verify the signature with exactly ``alg``, then run the claim checks."""
    validate_alg(alg)
    logger.debug("verifying_signature", alg=alg)

    # aud and iat have their own checks in validate_claims.
    opts: Options = {"verify_aud": False, "verify_iat": False}
    try:
        raw = jwt.decode(token, key, algorithms=[alg], options=opts)
    except jwt.ExpiredSignatureError as exc:
        raise TokenExpiredError("Token exp is in the past") from exc
    except (jwt.PyJWTError, ValueError, TypeError) as exc:
        raise SignatureVerificationError("Token signature is invalid") from exc

    try:
        decoded = DecodedToken.model_validate(raw)
    except ValidationError as exc:
        raise SignatureVerificationError("Token is missing required claims") from exc

    logger.debug("signature_verified")
    await validate_claims(decoded, platform, alg, nonce_guard, max_age=max_age)
    return decoded


async def validate_token(
    token: str,
    get_platform: PlatformLookup,
    *,
    http_client: httpx.AsyncClient,
    nonce_guard: NonceGuard,
    max_age: int = IAT_MAX_AGE_DEFAULT,
) -> DecodedToken:
    """Verify an id_token from a registered platform.

    Returns the decoded claims only once the signature and every OIDC claim
    check have passed.
    """
    header, payload = _unverified_parts(token)
    issuer = payload.get("iss")

    logger.debug("retrieving_platform", iss=issuer)
    platform = await get_platform(issuer) if isinstance(issuer, str) else None
    if platform is None:
        logger.info("token_rejected", code=NoPlatformRegisteredError.code, iss=issuer)
        raise NoPlatformRegisteredError(f"No platform registered for {issuer!r}")

    key = await resolve_key(platform, header, http_client)
    return await verify_token(
        token, key, header.get("alg"), platform, nonce_guard, max_age=max_age
    )
