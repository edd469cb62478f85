"""Task and WBS schemas shared by the API server and frontend codegen."""

from __future__ import annotations

from datetime import date, datetime
from decimal import Decimal
from typing import Dict, List, Optional

from pydantic import BaseModel, Field, UUID4, model_validator

from .common import MAX_WBS_LEVEL


# ---------------------------------------------------------------------------
# Task CRUD
# ---------------------------------------------------------------------------

class TaskBase(BaseModel):
    title: str = Field(min_length=1, max_length=500)
    description: Optional[str] = None
    wbs_code: str = ""
    activity_id: Optional[str] = Field(default=None, max_length=64)
    start_date: Optional[date] = None
    end_date: Optional[date] = None
    is_milestone: bool = False
    cost_labor: Decimal = Field(default=Decimal("0"), ge=0, max_digits=14, decimal_places=2)
    cost_material: Decimal = Field(default=Decimal("0"), ge=0, max_digits=14, decimal_places=2)
    cost_other: Decimal = Field(default=Decimal("0"), ge=0, max_digits=14, decimal_places=2)
    resource_role: Optional[str] = None
    resource_qty: Optional[Decimal] = Field(default=None, ge=0)
    resource_unit: Optional[str] = None

    @model_validator(mode="after")
    def _check_dates(self):
        if self.start_date and self.end_date and self.end_date < self.start_date:
            raise ValueError("end_date must not be before start_date")
        return self


class TaskCreate(TaskBase):
    # None asks for the project root, which every project already has.
    parent_id: Optional[UUID4] = None
    level: Optional[int] = Field(default=None, ge=0, le=MAX_WBS_LEVEL)


class TaskUpdate(BaseModel):
    title: Optional[str] = Field(default=None, min_length=1, max_length=500)
    description: Optional[str] = None
    wbs_code: Optional[str] = None
    activity_id: Optional[str] = Field(default=None, max_length=64)
    parent_id: Optional[UUID4] = None
    start_date: Optional[date] = None
    end_date: Optional[date] = None
    is_milestone: Optional[bool] = None
    cost_labor: Optional[Decimal] = Field(default=None, ge=0, max_digits=14, decimal_places=2)
    cost_material: Optional[Decimal] = Field(default=None, ge=0, max_digits=14, decimal_places=2)
    cost_other: Optional[Decimal] = Field(default=None, ge=0, max_digits=14, decimal_places=2)
    resource_role: Optional[str] = None
    resource_qty: Optional[Decimal] = Field(default=None, ge=0)
    resource_unit: Optional[str] = None


COST_FIELDS = ("cost_labor", "cost_material", "cost_other")


class TaskRead(BaseModel):
    id: UUID4
    project_id: UUID4
    parent_id: Optional[UUID4] = None
    level: int
    wbs_code: str
    activity_id: Optional[str] = None
    title: str
    description: Optional[str] = None
    start_date: Optional[date] = None
    end_date: Optional[date] = None
    is_milestone: bool
    cost_labor: Decimal
    cost_material: Decimal
    cost_other: Decimal
    total_cost: Decimal
    resource_role: Optional[str] = None
    resource_qty: Optional[Decimal] = None
    resource_unit: Optional[str] = None
    role_hours: Optional[Dict[str, float]] = None
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}


class WbsNode(TaskRead):
    children: List[WbsNode] = Field(default_factory=list)


class TaskDeleted(BaseModel):
    id: UUID4
    parent_id: Optional[UUID4] = None
    message: str = "Task deleted successfully"
