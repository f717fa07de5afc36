"""Declarative base for LTI-AUTH SQLAlchemy models."""

from sqlalchemy.orm import DeclarativeBase


class BaseEntity(DeclarativeBase):
    """Base class for all LTI-AUTH database entities."""
