"""
SQLAlchemy Base Model
Source: https://docs.sqlalchemy.org/en/20/orm/declarative_styles.html
"""

from datetime import datetime
from uuid import UUID, uuid4

from sqlalchemy import DateTime, Uuid, func
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


class Base(DeclarativeBase):
    """Base class for all SQLAlchemy models."""

    pass


class TimeStampedModel:
    """
    Mixin for models with created_at and updated_at timestamps.

    Timestamps are stored timezone-aware and interpreted as UTC by the
    reporting engine.
    """

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        nullable=False,
        index=True,
    )

    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        onupdate=func.now(),
        nullable=False,
    )


class UUIDModel:
    """
    Mixin for models with UUID primary key.

    Uses the generic Uuid type so the same models run on PostgreSQL
    (native uuid) and SQLite (CHAR(32)).
    """

    id: Mapped[UUID] = mapped_column(
        Uuid(as_uuid=True),
        primary_key=True,
        default=uuid4,
    )


def enum_values(enum_cls):  # type: ignore[no-untyped-def]
    """Persist enum values rather than member names."""
    return [member.value for member in enum_cls]
