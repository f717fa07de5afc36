"""Tests for the OIDC claim checks."""

import time

import pytest

from ltiauth.crypto.types import DecodedToken, RSAKeyAuth
from ltiauth.db.store import SQLStore
from ltiauth.lti.claims import (
    validate_alg,
    validate_aud,
    validate_claims,
    validate_iat,
)
from ltiauth.lti.errors import (
    AudienceMismatchError,
    AuthorizedPartyMismatchError,
    NonceReusedError,
    TokenExpiredError,
    UnsupportedAlgorithmError,
)
from ltiauth.lti.nonce import NonceGuard

ISSUER = "https://platform.example.edu"
CLIENT_ID = "tool-client-1"


def _token(**overrides) -> DecodedToken:
    claims = {"iss": ISSUER, "aud": CLIENT_ID, "iat": time.time(), "nonce": "n-1"}
    claims.update(overrides)
    return DecodedToken.model_validate(claims)


@pytest.fixture
def platform(make_platform):
    return make_platform(RSAKeyAuth(key="unused"))


class TestValidateAud:
    """Tests for the audience check."""

    def test_single_audience_matches(self, platform) -> None:
        validate_aud(_token(), platform)

    def test_single_audience_mismatch(self, platform) -> None:
        with pytest.raises(AudienceMismatchError):
            validate_aud(_token(aud="someone-else"), platform)

    def test_substring_is_not_a_match(self, platform) -> None:
        with pytest.raises(AudienceMismatchError):
            validate_aud(_token(aud="tool-client-10"), platform)

    def test_list_excluding_client(self, platform) -> None:
        with pytest.raises(AudienceMismatchError):
            validate_aud(_token(aud=["a", "b"]), platform)

    def test_list_without_azp(self, platform) -> None:
        validate_aud(_token(aud=[CLIENT_ID, "other"]), platform)

    def test_list_with_matching_azp(self, platform) -> None:
        validate_aud(_token(aud=[CLIENT_ID, "other"], azp=CLIENT_ID), platform)

    def test_list_with_mismatched_azp(self, platform) -> None:
        with pytest.raises(AuthorizedPartyMismatchError):
            validate_aud(_token(aud=[CLIENT_ID, "other"], azp="other"), platform)

    def test_azp_ignored_for_single_audience(self, platform) -> None:
        validate_aud(_token(azp="other"), platform)


class TestValidateAlg:
    """Tests for the algorithm check."""

    def test_rs256_accepted(self) -> None:
        validate_alg("RS256")

    @pytest.mark.parametrize("alg", ["HS256", "RS384", "none", "rs256", None])
    def test_others_rejected(self, alg: str | None) -> None:
        with pytest.raises(UnsupportedAlgorithmError):
            validate_alg(alg)


class TestValidateIat:
    """Tests for the freshness check."""

    def test_exactly_ten_seconds_passes(self) -> None:
        validate_iat(_token(iat=1000), now=1010.0)

    def test_just_over_ten_seconds_fails(self) -> None:
        with pytest.raises(TokenExpiredError):
            validate_iat(_token(iat=1000), now=1010.001)

    def test_old_token_fails(self) -> None:
        with pytest.raises(TokenExpiredError):
            validate_iat(_token(iat=time.time() - 60))

    def test_fresh_token_passes(self) -> None:
        validate_iat(_token(iat=int(time.time())))

    def test_custom_max_age(self) -> None:
        validate_iat(_token(iat=1000), now=1030.0, max_age=30)


class TestValidateClaims:
    """Tests for the combined claim validation."""

    async def test_all_checks_pass(self, platform, nonce_guard: NonceGuard) -> None:
        await validate_claims(_token(nonce="ok-1"), platform, "RS256", nonce_guard)

    async def test_reused_nonce(self, platform, nonce_guard: NonceGuard) -> None:
        await validate_claims(_token(nonce="dup"), platform, "RS256", nonce_guard)
        with pytest.raises(NonceReusedError):
            await validate_claims(_token(nonce="dup"), platform, "RS256", nonce_guard)

    async def test_failed_check_keeps_nonce_unused(
        self, platform, nonce_guard: NonceGuard, store: SQLStore
    ) -> None:
        with pytest.raises(AudienceMismatchError):
            await validate_claims(
                _token(aud="x", nonce="keep"), platform, "RS256", nonce_guard
            )
        assert await store.get(None, "nonce", {"nonce": "keep"}) is None
        await validate_claims(_token(nonce="keep"), platform, "RS256", nonce_guard)

    async def test_algorithm_checked(self, platform, nonce_guard: NonceGuard) -> None:
        with pytest.raises(UnsupportedAlgorithmError):
            await validate_claims(_token(), platform, "HS256", nonce_guard)

    async def test_freshness_checked(self, platform, nonce_guard: NonceGuard) -> None:
        with pytest.raises(TokenExpiredError):
            await validate_claims(
                _token(iat=1000), platform, "RS256", nonce_guard, now=1011.0
            )
