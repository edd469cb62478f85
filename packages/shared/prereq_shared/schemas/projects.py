from datetime import date, datetime
from decimal import Decimal
from typing import Optional
from uuid import UUID

from pydantic import BaseModel, Field, model_validator

from .common import ProjectRole


class ProjectBase(BaseModel):
    name: str = Field(min_length=1, max_length=200)
    client: Optional[str] = None
    start_date: Optional[date] = None
    end_date: Optional[date] = None
    budget: Decimal = Field(default=Decimal("0"), ge=0, max_digits=14, decimal_places=2)

    @model_validator(mode="after")
    def _check_dates(self):
        if self.start_date and self.end_date and self.end_date < self.start_date:
            raise ValueError("end_date must not be before start_date")
        return self


class ProjectCreate(ProjectBase):
    pass


class ProjectUpdate(BaseModel):
    name: Optional[str] = Field(default=None, min_length=1, max_length=200)
    client: Optional[str] = None
    start_date: Optional[date] = None
    end_date: Optional[date] = None
    budget: Optional[Decimal] = Field(default=None, ge=0, max_digits=14, decimal_places=2)


class ProjectRead(ProjectBase):
    id: UUID
    budget_rollup: Decimal
    task_count: int = 0
    milestone_count: int = 0
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}


class ProjectMemberAdd(BaseModel):
    user_id: UUID
    role: ProjectRole = ProjectRole.VIEWER


class ProjectMemberRead(BaseModel):
    user_id: UUID
    email: str
    full_name: Optional[str] = None
    role: ProjectRole
    added_at: datetime


class BudgetRecalculation(BaseModel):
    """Result of a project-wide roll-up repair."""
    project_id: UUID
    tasks_recalculated: int
    budget_rollup: Decimal