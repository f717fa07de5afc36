"""Key-value record store over SQLAlchemy.

Records live in named collections and are addressed by a mapping of key
fields (``{"kid": ...}``, ``{"nonce": ...}``). The payload is stored as JSON,
or as a Fernet ciphertext of that JSON when an encryption key is supplied.
Every operation runs in its own session so concurrent callers never share
one.
"""

import json
from collections.abc import Mapping
from datetime import UTC, datetime
from typing import Any, Protocol

import uuid_utils
from sqlalchemy import delete, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from ltiauth.crypto.keys import decrypt_text, encrypt_text
from ltiauth.db.models_store import StoredRecordEntity

Record = dict[str, Any]


class Store(Protocol):
    """Persistence contract used by the token engine."""

    async def get(
        self,
        encryption_key: str | None,
        collection: str,
        filters: Mapping[str, Any],
    ) -> Record | None: ...

    async def insert(
        self,
        encryption_key: str | None,
        collection: str,
        record: Mapping[str, Any],
        key_fields: Mapping[str, Any],
    ) -> None: ...

    async def insert_if_absent(
        self,
        encryption_key: str | None,
        collection: str,
        record: Mapping[str, Any],
        key_fields: Mapping[str, Any],
    ) -> bool: ...

    async def upsert(
        self,
        encryption_key: str | None,
        collection: str,
        record: Mapping[str, Any],
        key_fields: Mapping[str, Any],
    ) -> None: ...

    async def find_all(self, collection: str) -> list[Record]: ...

    async def delete(self, collection: str, filters: Mapping[str, Any]) -> bool: ...

    async def delete_older_than(self, collection: str, cutoff: datetime) -> int: ...


def record_key(key_fields: Mapping[str, Any]) -> str:
    """Canonical string form of a key-field mapping."""
    return json.dumps(dict(key_fields), sort_keys=True, separators=(",", ":"))


def _encode(record: Mapping[str, Any], encryption_key: str | None) -> str:
    raw = json.dumps(dict(record))
    if encryption_key:
        return encrypt_text(raw, encryption_key)
    return raw


def _decode(entity: StoredRecordEntity, encryption_key: str | None) -> Record:
    """Rebuild the record: key fields merged with the payload."""
    raw = entity.payload
    if entity.encrypted:
        if not encryption_key:
            raise ValueError(
                f"Record in {entity.collection!r} is encrypted and no key was given"
            )
        raw = decrypt_text(raw, encryption_key)
    result: Record = json.loads(entity.record_key)
    result.update(json.loads(raw))
    return result


class SQLStore:
    """``Store`` implementation on an async SQLAlchemy session factory."""

    def __init__(self, factory: async_sessionmaker[AsyncSession]) -> None:
        self._factory = factory

    @staticmethod
    def _entity(
        encryption_key: str | None,
        collection: str,
        record: Mapping[str, Any],
        key_fields: Mapping[str, Any],
    ) -> StoredRecordEntity:
        return StoredRecordEntity(
            id=str(uuid_utils.uuid7()),
            collection=collection,
            record_key=record_key(key_fields),
            payload=_encode(record, encryption_key),
            encrypted=bool(encryption_key),
            created_at=datetime.now(UTC),
        )

    async def get(
        self,
        encryption_key: str | None,
        collection: str,
        filters: Mapping[str, Any],
    ) -> Record | None:
        """Return the record stored under ``filters``, or None."""
        stmt = select(StoredRecordEntity).where(
            StoredRecordEntity.collection == collection,
            StoredRecordEntity.record_key == record_key(filters),
        )
        async with self._factory() as session:
            result = await session.execute(stmt)
            entity = result.scalar_one_or_none()
        if entity is None:
            return None
        return _decode(entity, encryption_key)

    async def insert(
        self,
        encryption_key: str | None,
        collection: str,
        record: Mapping[str, Any],
        key_fields: Mapping[str, Any],
    ) -> None:
        """Insert a record; a duplicate key raises ``IntegrityError``."""
        entity = self._entity(encryption_key, collection, record, key_fields)
        async with self._factory() as session:
            session.add(entity)
            await session.commit()

    async def insert_if_absent(
        self,
        encryption_key: str | None,
        collection: str,
        record: Mapping[str, Any],
        key_fields: Mapping[str, Any],
    ) -> bool:
        """Conditional insert. Returns False if the key already exists."""
        entity = self._entity(encryption_key, collection, record, key_fields)
        async with self._factory() as session:
            session.add(entity)
            try:
                await session.commit()
            except IntegrityError:
                await session.rollback()
                return False
        return True

    async def upsert(
        self,
        encryption_key: str | None,
        collection: str,
        record: Mapping[str, Any],
        key_fields: Mapping[str, Any],
    ) -> None:
        """Replace whatever is stored under the key in one transaction."""
        entity = self._entity(encryption_key, collection, record, key_fields)
        stmt = delete(StoredRecordEntity).where(
            StoredRecordEntity.collection == collection,
            StoredRecordEntity.record_key == entity.record_key,
        )
        async with self._factory() as session:
            try:
                await session.execute(stmt)
                session.add(entity)
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    async def find_all(self, collection: str) -> list[Record]:
        """Return every unencrypted record of a collection, oldest first."""
        stmt = (
            select(StoredRecordEntity)
            .where(
                StoredRecordEntity.collection == collection,
                StoredRecordEntity.encrypted.is_(False),
            )
            .order_by(StoredRecordEntity.created_at)
        )
        async with self._factory() as session:
            result = await session.execute(stmt)
            entities = list(result.scalars().all())
        return [_decode(e, None) for e in entities]

    async def delete(self, collection: str, filters: Mapping[str, Any]) -> bool:
        """Delete the record stored under ``filters``; False if there was none."""
        stmt = delete(StoredRecordEntity).where(
            StoredRecordEntity.collection == collection,
            StoredRecordEntity.record_key == record_key(filters),
        )
        async with self._factory() as session:
            result = await session.execute(stmt)
            await session.commit()
        return bool(result.rowcount)

    async def delete_older_than(self, collection: str, cutoff: datetime) -> int:
        """Delete records created before ``cutoff``; returns the count."""
        stmt = delete(StoredRecordEntity).where(
            StoredRecordEntity.collection == collection,
            StoredRecordEntity.created_at < cutoff,
        )
        async with self._factory() as session:
            result = await session.execute(stmt)
            await session.commit()
        return result.rowcount or 0
