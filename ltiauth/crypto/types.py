"""Type definitions for key material, JWKS, and decoded tokens."""

from typing import Annotated, Any, Literal

from pydantic import BaseModel, ConfigDict, Field, StrictFloat, StrictInt


class KeyPairData(BaseModel):
    """An RSA keypair as PEM strings."""

    private_key_pem: str
    public_key_pem: str


class JWKEntry(BaseModel):
    """Single JWK entry in a JWKS response."""

    kty: str = "RSA"
    use: str = "sig"
    alg: str = "RS256"
    kid: str
    n: str
    e: str


class JWKSResponse(BaseModel):
    """JSON Web Key Set response."""

    keys: list[JWKEntry]


class JWKSetAuth(BaseModel):
    """Platform publishes its keys at a JWKS endpoint."""

    method: Literal["JWK_SET"] = "JWK_SET"
    key: str


class JWKKeyAuth(BaseModel):
    """Platform key configured as a single JWK."""

    method: Literal["JWK_KEY"] = "JWK_KEY"
    key: dict[str, Any] | None = None


class RSAKeyAuth(BaseModel):
    """Platform key configured as a PEM public key."""

    method: Literal["RSA_KEY"] = "RSA_KEY"
    key: str | None = None


AuthConfig = Annotated[
    JWKSetAuth | JWKKeyAuth | RSAKeyAuth, Field(discriminator="method")
]


class DecodedToken(BaseModel):
    """Verified id_token claims. Unknown claims are kept as extras.

    ``model_dump(exclude_unset=True)`` returns the claims exactly as signed;
    ``azp`` is only filled in with None when the token omits it.
    """

    model_config = ConfigDict(extra="allow")

    iss: str
    aud: str | list[str]
    azp: str | None = None
    iat: StrictInt | StrictFloat
    nonce: str


class AccessTokenRecord(BaseModel):
    """Access token obtained from a platform's token endpoint."""

    platform_url: str
    token: dict[str, Any]
