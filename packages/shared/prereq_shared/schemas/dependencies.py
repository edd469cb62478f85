"""Precedence edge (task dependency) schemas."""

from __future__ import annotations

from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, Field, UUID4

from .common import MAX_LAG_DAYS, MIN_LAG_DAYS, DependencyType, TaskRef


class DependencyCreate(BaseModel):
    """Request body for POST /dependencies."""
    predecessor_id: UUID4
    successor_id: UUID4
    type: DependencyType = DependencyType.FS
    lag: int = Field(default=0, ge=MIN_LAG_DAYS, le=MAX_LAG_DAYS)


class RelationCreate(BaseModel):
    """Request body for POST /tasks/{taskId}/relations (the task is the predecessor)."""
    successor_id: UUID4
    type: DependencyType = DependencyType.FS
    lag: int = Field(default=0, ge=MIN_LAG_DAYS, le=MAX_LAG_DAYS)


class DependencyUpdate(BaseModel):
    """Only the precedence type and lag of an edge can change."""
    type: Optional[DependencyType] = None
    lag: Optional[int] = Field(default=None, ge=MIN_LAG_DAYS, le=MAX_LAG_DAYS)


class DependencyRead(BaseModel):
    id: UUID4
    predecessor_id: UUID4
    successor_id: UUID4
    type: DependencyType
    lag: int
    predecessor: Optional[TaskRef] = None
    successor: Optional[TaskRef] = None
    created_at: datetime
    updated_at: datetime


class TaskDependencies(BaseModel):
    """Edges touching one task, split by which end the task sits on."""
    as_predecessor: List[DependencyRead] = Field(default_factory=list)
    as_successor: List[DependencyRead] = Field(default_factory=list)
