"""
SQLAlchemy base configuration for Identity Reconciliation System
This module sets up the SQLAlchemy declarative base and the shared
columns every table carries (surrogate id, audit timestamps, soft delete)
"""

from datetime import datetime, timezone

from sqlalchemy import Column, DateTime, Integer
from sqlalchemy.orm import DeclarativeBase


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Base(DeclarativeBase):
    """Base class for all SQLAlchemy models"""
    pass


class BaseModel(Base):
    """
    Abstract model with the common columns

    `id` is assigned by the database and grows with insertion order,
    which makes it a stable tie-break next to `created_at`.
    """
    __abstract__ = True

    id = Column(Integer, primary_key=True, autoincrement=True)

    created_at = Column(
        DateTime(timezone=True),
        nullable=False,
        default=utcnow,
        comment="Creation timestamp, never updated"
    )

    updated_at = Column(
        DateTime(timezone=True),
        nullable=False,
        default=utcnow,
        onupdate=utcnow
    )

    deleted_at = Column(
        DateTime(timezone=True),
        nullable=True,
        comment="Soft delete marker - rows with a value are ignored by every lookup"
    )

    def to_dict(self):
        """Plain column/value mapping of this row"""
        return {column.name: getattr(self, column.name) for column in self.__table__.columns}
