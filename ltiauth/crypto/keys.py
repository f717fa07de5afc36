"""RSA key generation, encryption, and JWK/PEM conversion."""

import base64
import json
import secrets
from collections.abc import Mapping
from typing import Any

from cryptography.fernet import Fernet
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric import rsa
from cryptography.hazmat.primitives.asymmetric.rsa import (
    RSAPrivateKey,
    RSAPublicKey,
)
from jwt.algorithms import RSAAlgorithm

from ltiauth.core.settings import RSA_KEY_SIZE_DEFAULT
from ltiauth.crypto.types import JWKEntry, KeyPairData

RSA_PUBLIC_EXPONENT = 65537
KID_BYTES = 16


def generate_kid() -> str:
    """Draw a random 16-byte key identifier as hex."""
    return secrets.token_hex(KID_BYTES)


def generate_rsa_keypair(key_size: int = RSA_KEY_SIZE_DEFAULT) -> KeyPairData:
    """Generate an RSA keypair: SPKI public PEM, PKCS#1 private PEM."""
    private_key = rsa.generate_private_key(
        public_exponent=RSA_PUBLIC_EXPONENT,
        key_size=key_size,
    )
    private_pem = private_key.private_bytes(
        encoding=serialization.Encoding.PEM,
        format=serialization.PrivateFormat.TraditionalOpenSSL,
        encryption_algorithm=serialization.NoEncryption(),
    ).decode()
    public_pem = (
        private_key.public_key()
        .public_bytes(
            encoding=serialization.Encoding.PEM,
            format=serialization.PublicFormat.SubjectPublicKeyInfo,
        )
        .decode()
    )
    return KeyPairData(private_key_pem=private_pem, public_key_pem=public_pem)


def require_encryption_key(encryption_key: str | None) -> str:
    """Return the key, or raise if encryption at rest is not configured."""
    if not encryption_key:
        raise ValueError("LTI_ENCRYPTION_KEY must be set")
    return encryption_key


def encrypt_text(plain: str, fernet_key: str) -> str:
    """Encrypt a string with Fernet for database storage."""
    cipher = Fernet(fernet_key.encode())
    return cipher.encrypt(plain.encode()).decode()


def decrypt_text(encrypted: str, fernet_key: str) -> str:
    """Decrypt a Fernet-encrypted string."""
    cipher = Fernet(fernet_key.encode())
    return cipher.decrypt(encrypted.encode()).decode()


def _int_to_base64url(value: int) -> str:
    """Encode an integer as base64url without padding."""
    byte_length = (value.bit_length() + 7) // 8
    raw = value.to_bytes(byte_length, byteorder="big")
    return base64.urlsafe_b64encode(raw).rstrip(b"=").decode()


def pem_to_jwk_entry(public_key_pem: str, kid: str) -> JWKEntry:
    """Convert a PEM public key to JWK format."""
    loaded = serialization.load_pem_public_key(public_key_pem.encode())
    if not isinstance(loaded, RSAPublicKey):
        raise ValueError("Only RSA public keys can be published")
    numbers = loaded.public_numbers()
    return JWKEntry(
        kid=kid,
        n=_int_to_base64url(numbers.n),
        e=_int_to_base64url(numbers.e),
    )


def jwk_to_pem(jwk: Mapping[str, Any]) -> str:
    """Convert an RSA JWK to an SPKI PEM public key.

    A JWK carrying private members yields its public half. Raises
    ``jwt.InvalidKeyError`` when the JWK is not a usable RSA key.
    """
    loaded = RSAAlgorithm.from_jwk(json.dumps(dict(jwk)))
    if isinstance(loaded, RSAPrivateKey):
        loaded = loaded.public_key()
    return loaded.public_bytes(
        encoding=serialization.Encoding.PEM,
        format=serialization.PublicFormat.SubjectPublicKeyInfo,
    ).decode()
