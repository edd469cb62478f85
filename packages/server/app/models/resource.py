"""Resource catalogue and per-task resource assignments."""

from decimal import Decimal
import uuid

import sqlalchemy as sa
from sqlmodel import Field, SQLModel

from .base import TimestampMixin, UUIDMixin

# Hourly rates and assigned hours: 10 digits, 2 after the point.
RATE = sa.Numeric(10, 2)
HOURS = sa.Numeric(8, 2)


class ResourceType(UUIDMixin, TimestampMixin, SQLModel, table=True):
    __tablename__ = "resource_types"

    name: str = Field(nullable=False, unique=True, max_length=50)


class Resource(UUIDMixin, TimestampMixin, SQLModel, table=True):
    __tablename__ = "resources"
    __table_args__ = (sa.CheckConstraint("rate > 0", name="ck_resources_rate_positive"),)

    name: str = Field(nullable=False, max_length=100)
    rate: Decimal = Field(sa_type=RATE, nullable=False)  # per hour
    type_id: uuid.UUID = Field(foreign_key="resource_types.id", nullable=False, index=True)


class ResourceAssignment(UUIDMixin, TimestampMixin, SQLModel, table=True):
    __tablename__ = "resource_assignments"
    __table_args__ = (
        sa.UniqueConstraint("task_id", "resource_id", name="uq_assignment_task_resource"),
        sa.CheckConstraint("hours > 0", name="ck_assignments_hours_positive"),
    )

    task_id: uuid.UUID = Field(
        foreign_key="tasks.id", nullable=False, index=True, ondelete="CASCADE"
    )
    resource_id: uuid.UUID = Field(foreign_key="resources.id", nullable=False, index=True)
    hours: Decimal = Field(sa_type=HOURS, nullable=False)
