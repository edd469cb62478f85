"""Project model."""

from datetime import date
from decimal import Decimal
from typing import Optional
import uuid

from sqlmodel import Field, SQLModel

from .base import TimestampMixin, UUIDMixin, money_field


class Project(UUIDMixin, TimestampMixin, SQLModel, table=True):
    __tablename__ = "projects"

    name: str = Field(nullable=False, max_length=200)
    client: Optional[str] = None
    start_date: Optional[date] = None
    end_date: Optional[date] = None
    budget: Decimal = money_field()
    # Mirror of the root task's total_cost, kept current by the roll-up engine.
    budget_rollup: Decimal = money_field()
    created_by: Optional[uuid.UUID] = Field(default=None, foreign_key="users.id")
