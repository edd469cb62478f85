"""Precedence edge between two tasks of the same project."""

import uuid

import sqlalchemy as sa
from sqlmodel import Field, SQLModel

from .base import TimestampMixin, UUIDMixin


class TaskDependency(UUIDMixin, TimestampMixin, SQLModel, table=True):
    __tablename__ = "task_dependencies"
    __table_args__ = (
        sa.CheckConstraint("predecessor_id != successor_id", name="no_self_dependency"),
        sa.CheckConstraint("lag >= -365 AND lag <= 365", name="ck_dependency_lag_range"),
        sa.UniqueConstraint("predecessor_id", "successor_id", name="uq_dependency_pair"),
    )

    project_id: uuid.UUID = Field(
        foreign_key="projects.id", nullable=False, index=True, ondelete="CASCADE"
    )
    predecessor_id: uuid.UUID = Field(foreign_key="tasks.id", nullable=False, index=True)
    successor_id: uuid.UUID = Field(foreign_key="tasks.id", nullable=False, index=True)
    type: str = Field(default="FS", nullable=False)  # FS | SS | FF | SF
    lag: int = Field(default=0, nullable=False)  # days
