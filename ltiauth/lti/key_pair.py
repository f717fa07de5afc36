"""Tool key pair generation and storage."""

import structlog

from ltiauth.core.settings import RSA_KEY_SIZE_DEFAULT
from ltiauth.crypto.keys import (
    generate_kid,
    generate_rsa_keypair,
    require_encryption_key,
)
from ltiauth.db.store import Store

PUBLIC_KEY_COLLECTION = "publickey"
PRIVATE_KEY_COLLECTION = "privatekey"

logger = structlog.get_logger(__name__)


async def generate_provider_key_pair(
    store: Store,
    encryption_key: str,
    key_size: int = RSA_KEY_SIZE_DEFAULT,
) -> str:
    """Generate and persist a keypair under a fresh kid. Returns the kid."""
    require_encryption_key(encryption_key)
    kid = generate_kid()
    while await store.get(None, PUBLIC_KEY_COLLECTION, {"kid": kid}) is not None:
        logger.warning("kid_collision", kid=kid)
        kid = generate_kid()

    keypair = generate_rsa_keypair(key_size)
    await store.insert(
        None, PUBLIC_KEY_COLLECTION, {"key": keypair.public_key_pem}, {"kid": kid}
    )
    await store.insert(
        encryption_key,
        PRIVATE_KEY_COLLECTION,
        {"key": keypair.private_key_pem},
        {"kid": kid},
    )
    logger.info("key_pair_generated", kid=kid, key_size=key_size)
    return kid


async def get_public_key(store: Store, kid: str) -> str | None:
    """Return the stored public PEM for ``kid``."""
    record = await store.get(None, PUBLIC_KEY_COLLECTION, {"kid": kid})
    return None if record is None else record["key"]


async def get_private_key(store: Store, encryption_key: str, kid: str) -> str | None:
    """Decrypt and return the stored private PEM for ``kid``."""
    record = await store.get(encryption_key, PRIVATE_KEY_COLLECTION, {"kid": kid})
    return None if record is None else record["key"]


async def delete_key_pair(store: Store, kid: str) -> None:
    """Remove both halves of a keypair so ``/keys`` stops publishing it."""
    await store.delete(PUBLIC_KEY_COLLECTION, {"kid": kid})
    await store.delete(PRIVATE_KEY_COLLECTION, {"kid": kid})
    logger.info("key_pair_deleted", kid=kid)
