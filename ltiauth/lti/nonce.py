"""Single-use nonce tracking."""

from datetime import UTC, datetime, timedelta

import structlog

from ltiauth.core.settings import NONCE_RETENTION_DEFAULT
from ltiauth.db.store import Store
from ltiauth.lti.errors import NonceReusedError

NONCE_COLLECTION = "nonce"

logger = structlog.get_logger(__name__)


class NonceGuard:
    """Accepts each nonce once, using the store's conditional insert.

    The unique key on the nonce makes check-and-store atomic even across
    processes sharing the database: of two racing inserts exactly one wins.
    """

    def __init__(
        self, store: Store, retention_seconds: int = NONCE_RETENTION_DEFAULT
    ) -> None:
        self._store = store
        self._retention = timedelta(seconds=retention_seconds)

    async def check_and_store(self, nonce: str) -> None:
        """Record ``nonce``; raise ``NonceReusedError`` if already seen."""
        logger.debug("validating_nonce")
        stored = await self._store.insert_if_absent(
            None, NONCE_COLLECTION, {}, {"nonce": nonce}
        )
        if not stored:
            raise NonceReusedError("Nonce has already been used")

    async def purge_expired(self, now: datetime | None = None) -> int:
        """Delete nonces older than the retention window."""
        cutoff = (now or datetime.now(UTC)) - self._retention
        removed = await self._store.delete_older_than(NONCE_COLLECTION, cutoff)
        logger.info("nonces_purged", removed=removed)
        return removed
