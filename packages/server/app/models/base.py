"""Shared column definitions for the Prereq tables."""

from datetime import datetime, timezone
from decimal import Decimal
import uuid

import sqlalchemy as sa
from sqlmodel import Field, SQLModel

# Monetary columns: 14 digits, 2 after the point.
MONEY = sa.Numeric(14, 2)


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def money_field() -> Decimal:
    """A non-null Decimal amount defaulting to zero."""
    return Field(default=Decimal("0"), sa_type=MONEY, nullable=False)


def created_at_field(**sa_column_kwargs) -> datetime:
    """A timezone-aware creation timestamp filled by both Python and the database."""
    return Field(
        default_factory=utcnow,
        nullable=False,
        sa_column_kwargs={"server_default": sa.func.now(), **sa_column_kwargs},
        sa_type=sa.DateTime(timezone=True),
    )


class UUIDMixin(SQLModel):
    id: uuid.UUID = Field(
        default_factory=uuid.uuid4,
        primary_key=True,
        index=True,
        nullable=False,
    )


class TimestampMixin(SQLModel):
    created_at: datetime = created_at_field()
    updated_at: datetime = created_at_field(onupdate=utcnow)
