"""Task model: one node of a project's WBS tree."""

from datetime import date
from decimal import Decimal
from typing import Optional
import uuid

import sqlalchemy as sa
from sqlmodel import Field, SQLModel

from .base import TimestampMixin, UUIDMixin, money_field


class Task(UUIDMixin, TimestampMixin, SQLModel, table=True):
    __tablename__ = "tasks"
    __table_args__ = (
        # At most one root (level 0) per project.
        sa.Index(
            "uq_tasks_project_root",
            "project_id",
            unique=True,
            postgresql_where=sa.text("level = 0"),
            sqlite_where=sa.text("level = 0"),
        ),
        sa.UniqueConstraint("project_id", "activity_id", name="uq_tasks_project_activity"),
        sa.CheckConstraint("level >= 0 AND level <= 10", name="ck_tasks_level_range"),
        sa.Index("ix_tasks_project_level_wbs", "project_id", "level", "wbs_code"),
    )

    project_id: uuid.UUID = Field(
        foreign_key="projects.id", nullable=False, index=True, ondelete="CASCADE"
    )
    parent_id: Optional[uuid.UUID] = Field(default=None, foreign_key="tasks.id", index=True)
    level: int = Field(nullable=False, default=1)
    wbs_code: str = Field(default="", nullable=False)
    activity_id: Optional[str] = Field(default=None, max_length=64)
    title: str = Field(nullable=False)
    description: Optional[str] = None
    start_date: Optional[date] = None
    end_date: Optional[date] = None
    is_milestone: bool = Field(default=False, nullable=False)

    cost_labor: Decimal = money_field()
    cost_material: Decimal = money_field()
    cost_other: Decimal = money_field()
    # Own costs for a leaf, sum of the children's total_cost otherwise.
    total_cost: Decimal = money_field()

    resource_role: Optional[str] = None
    resource_qty: Optional[Decimal] = Field(default=None, sa_type=sa.Numeric(10, 2))
    resource_unit: Optional[str] = None
    role_hours: Optional[dict] = Field(default=None, sa_type=sa.JSON)

    @property
    def is_root(self) -> bool:
        return self.level == 0
