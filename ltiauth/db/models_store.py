"""SQLAlchemy model backing the key-value store."""

from datetime import datetime

from sqlalchemy import Boolean, DateTime, String, Text, UniqueConstraint, func
from sqlalchemy.orm import Mapped, mapped_column

from ltiauth.db.base import BaseEntity


class StoredRecordEntity(BaseEntity):
    """One record of a collection, addressed by its key fields."""

    __tablename__ = "store_records"
    __table_args__ = (
        UniqueConstraint("collection", "record_key", name="uq_store_collection_key"),
    )

    id: Mapped[str] = mapped_column(String(48), primary_key=True)
    collection: Mapped[str] = mapped_column(String(50), nullable=False, index=True)
    record_key: Mapped[str] = mapped_column(String(1024), nullable=False)
    payload: Mapped[str] = mapped_column(Text, nullable=False)
    encrypted: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, server_default=func.now()
    )
