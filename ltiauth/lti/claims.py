"""OIDC claim checks run after the signature is verified."""

import time

import structlog

from ltiauth.core.settings import IAT_MAX_AGE_DEFAULT
from ltiauth.crypto.types import DecodedToken
from ltiauth.lti.errors import (
    AudienceMismatchError,
    AuthorizedPartyMismatchError,
    TokenExpiredError,
    UnsupportedAlgorithmError,
)
from ltiauth.lti.nonce import NonceGuard
from ltiauth.lti.platform import Platform

SUPPORTED_ALGORITHM = "RS256"

logger = structlog.get_logger(__name__)


def validate_aud(token: DecodedToken, platform: Platform) -> None:
    """The tool's client id must be among the audiences.

    With several audiences, a present ``azp`` must name the tool.
    """
    client_id = platform.platform_client_id()
    audiences = token.aud if isinstance(token.aud, list) else [token.aud]
    if client_id not in audiences:
        raise AudienceMismatchError("aud does not contain the tool's client id")
    if isinstance(token.aud, list) and token.azp is not None and token.azp != client_id:
        raise AuthorizedPartyMismatchError("azp does not match the tool's client id")


def validate_alg(alg: str | None) -> None:
    """Only RS256 is accepted."""
    if alg != SUPPORTED_ALGORITHM:
        raise UnsupportedAlgorithmError(f"Algorithm {alg!r} is not supported")


def validate_iat(
    token: DecodedToken,
    now: float | None = None,
    max_age: int = IAT_MAX_AGE_DEFAULT,
) -> None:
    """Reject tokens issued more than ``max_age`` seconds ago."""
    current = time.time() if now is None else now
    elapsed = current - token.iat
    if elapsed > max_age:
        raise TokenExpiredError(f"Token issued {elapsed:.1f}s ago")


async def validate_claims(
    token: DecodedToken,
    platform: Platform,
    alg: str | None,
    nonce_guard: NonceGuard,
    *,
    max_age: int = IAT_MAX_AGE_DEFAULT,
    now: float | None = None,
) -> None:
    """Run audience, algorithm, freshness, and nonce checks.

    The nonce is consumed only once the other checks have passed.
    """
    logger.debug("claims_validation_started", iss=token.iss)
    validate_aud(token, platform)
    validate_alg(alg)
    validate_iat(token, now=now, max_age=max_age)
    await nonce_guard.check_and_store(token.nonce)
