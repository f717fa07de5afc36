"""Shared test fixtures for LTI-AUTH."""

import time
from collections.abc import AsyncIterator, Callable
from pathlib import Path
from typing import Any

import jwt
import pytest
from cryptography.fernet import Fernet
from httpx import ASGITransport, AsyncClient
from sqlalchemy import event
from sqlalchemy.ext.asyncio import (
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from ltiauth.core.app import create_app
from ltiauth.crypto.keys import generate_rsa_keypair
from ltiauth.crypto.types import KeyPairData, RSAKeyAuth
from ltiauth.db.engine import get_store, init_schema
from ltiauth.db.store import SQLStore
from ltiauth.lti.nonce import NonceGuard

FERNET_KEY = Fernet.generate_key().decode()
TEST_KEY_SIZE = 2048
ISSUER = "https://platform.example.edu"
CLIENT_ID = "tool-client-1"
TOKEN_ENDPOINT = "https://platform.example.edu/oauth/token"

SignToken = Callable[..., str]


class FakePlatform:
    """In-memory ``Platform`` for tests that do not need the store."""

    def __init__(
        self,
        auth_config: Any,
        *,
        private_key_pem: str = "",
        kid: str = "tool-kid",
        client_id: str = CLIENT_ID,
    ) -> None:
        self.auth_config = auth_config
        self.private_key_pem = private_key_pem
        self.kid = kid
        self.client_id = client_id

    def platform_url(self) -> str:
        return ISSUER

    def platform_client_id(self) -> str:
        return self.client_id

    def platform_auth_config(self) -> Any:
        return self.auth_config

    def platform_access_token_endpoint(self) -> str:
        return TOKEN_ENDPOINT

    def platform_kid(self) -> str:
        return self.kid

    async def platform_private_key(self) -> str:
        return self.private_key_pem


@pytest.fixture(autouse=True)
def _set_env(monkeypatch: pytest.MonkeyPatch) -> None:
    """Set environment variables for test settings."""
    monkeypatch.setenv("LTI_ENCRYPTION_KEY", FERNET_KEY)
    monkeypatch.setenv("LTI_LOG_JSON", "false")


@pytest.fixture(scope="session")
def platform_keys() -> KeyPairData:
    """Keypair the fake platform signs its id_tokens with."""
    return generate_rsa_keypair(TEST_KEY_SIZE)


@pytest.fixture(scope="session")
def other_keys() -> KeyPairData:
    """Keypair unrelated to any registered platform."""
    return generate_rsa_keypair(TEST_KEY_SIZE)


@pytest.fixture
def sign_token(platform_keys: KeyPairData) -> SignToken:
    """Return a helper that signs id_token claims with the platform key."""
    counter = iter(range(1_000_000))

    def _sign(
        key: str | None = None,
        headers: dict[str, Any] | None = None,
        algorithm: str = "RS256",
        **overrides: Any,
    ) -> str:
        claims: dict[str, Any] = {
            "iss": ISSUER,
            "aud": CLIENT_ID,
            "iat": int(time.time()),
            "nonce": f"nonce-{time.time_ns()}-{next(counter)}",
            "sub": "user-1",
        }
        claims.update(overrides)
        claims = {k: v for k, v in claims.items() if v is not None}
        return jwt.encode(
            claims,
            key or platform_keys.private_key_pem,
            algorithm=algorithm,
            headers=headers,
        )

    return _sign


@pytest.fixture
def make_platform() -> type[FakePlatform]:
    return FakePlatform


@pytest.fixture
def rsa_platform(platform_keys: KeyPairData) -> FakePlatform:
    """Platform configured with the RSA_KEY strategy."""
    return FakePlatform(RSAKeyAuth(key=platform_keys.public_key_pem))


@pytest.fixture
async def session_factory(
    tmp_path: Path,
) -> AsyncIterator[async_sessionmaker[AsyncSession]]:
    """File-backed SQLite so concurrent sessions use separate connections."""
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'lti.db'}")

    @event.listens_for(engine.sync_engine, "connect")
    def _set_sqlite_pragma(dbapi_conn, _rec) -> None:
        cursor = dbapi_conn.cursor()
        cursor.execute("PRAGMA journal_mode=WAL")
        cursor.execute("PRAGMA busy_timeout=5000")
        cursor.close()

    await init_schema(engine)
    yield async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)
    await engine.dispose()


@pytest.fixture
def store(session_factory: async_sessionmaker[AsyncSession]) -> SQLStore:
    return SQLStore(session_factory)


@pytest.fixture
def nonce_guard(store: SQLStore) -> NonceGuard:
    return NonceGuard(store)


@pytest.fixture
async def client(store: SQLStore) -> AsyncIterator[AsyncClient]:
    """Create an httpx test client with the store overridden."""
    app = create_app()
    app.dependency_overrides[get_store] = lambda: store

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac
