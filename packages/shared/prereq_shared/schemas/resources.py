"""Resource catalogue and task assignment schemas."""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import List, Optional

from pydantic import BaseModel, Field, UUID4, model_validator

from .common import TaskRef

# Hours one assignment may carry.
MAX_ASSIGNMENT_HOURS = Decimal("9999")


# ---------------------------------------------------------------------------
# Resource types
# ---------------------------------------------------------------------------


class ResourceTypeCreate(BaseModel):
    name: str = Field(min_length=1, max_length=50)


class ResourceSummary(BaseModel):
    id: UUID4
    name: str
    rate: Decimal

    model_config = {"from_attributes": True}


class ResourceTypeRead(BaseModel):
    id: UUID4
    name: str
    resources: List[ResourceSummary] = Field(default_factory=list)
    created_at: datetime


# ---------------------------------------------------------------------------
# Resources
# ---------------------------------------------------------------------------


class ResourceCreate(BaseModel):
    name: str = Field(min_length=1, max_length=100)
    rate: Decimal = Field(gt=0, max_digits=10, decimal_places=2)
    type_id: UUID4


class ResourceUpdate(BaseModel):
    name: Optional[str] = Field(default=None, min_length=1, max_length=100)
    rate: Optional[Decimal] = Field(default=None, gt=0, max_digits=10, decimal_places=2)
    type_id: Optional[UUID4] = None


class ResourceTypeRef(BaseModel):
    id: UUID4
    name: str


class ResourceAssignmentRef(BaseModel):
    """An assignment seen from the resource side."""
    id: UUID4
    hours: Decimal
    task: Optional[TaskRef] = None


class ResourceRead(BaseModel):
    id: UUID4
    name: str
    rate: Decimal
    type_id: UUID4
    type: Optional[ResourceTypeRef] = None
    assignments: List[ResourceAssignmentRef] = Field(default_factory=list)
    created_at: datetime
    updated_at: datetime


# ---------------------------------------------------------------------------
# Assignments
# ---------------------------------------------------------------------------


class AssignmentCreate(BaseModel):
    resource_id: UUID4
    hours: Decimal = Field(gt=0, le=MAX_ASSIGNMENT_HOURS, decimal_places=2)


class AssignmentBatchCreate(BaseModel):
    """Request body for POST /tasks/{task_id}/assignments."""
    assignments: List[AssignmentCreate] = Field(min_length=1)

    @model_validator(mode="after")
    def _unique_resources(self):
        ids = [a.resource_id for a in self.assignments]
        if len(ids) != len(set(ids)):
            raise ValueError("each resource may appear only once per request")
        return self


class AssignmentUpdate(BaseModel):
    hours: Decimal = Field(gt=0, le=MAX_ASSIGNMENT_HOURS, decimal_places=2)


class AssignmentRead(BaseModel):
    id: UUID4
    task_id: UUID4
    resource_id: UUID4
    hours: Decimal
    resource: Optional[ResourceSummary] = None
    resource_type: Optional[ResourceTypeRef] = None
    task: Optional[TaskRef] = None
    created_at: datetime
    updated_at: datetime


class TaskAssignments(BaseModel):
    task: TaskRef
    assignments: List[AssignmentRead] = Field(default_factory=list)
    total_hours: Decimal = Decimal("0")
