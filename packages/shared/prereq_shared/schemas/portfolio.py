from datetime import date
from decimal import Decimal
from typing import List, Optional
from uuid import UUID

from pydantic import BaseModel, Field

from .tasks import WbsNode


class PortfolioProject(BaseModel):
    id: UUID
    name: str
    client: Optional[str] = None
    start_date: Optional[date] = None
    end_date: Optional[date] = None
    budget: Decimal
    budget_rollup: Decimal
    task_count: int
    milestone_count: int


class DateRange(BaseModel):
    start: Optional[date] = None
    end: Optional[date] = None


class PortfolioSummary(BaseModel):
    total_projects: int
    total_tasks: int
    total_milestones: int
    total_budget: Decimal
    total_budget_rollup: Decimal
    date_range: DateRange
    projects: List[PortfolioProject] = Field(default_factory=list)


class PortfolioProjectNode(BaseModel):
    """A project wrapped as a level-1 node of the portfolio tree."""
    id: str
    project_id: UUID
    title: str
    level: int = 1
    start_date: Optional[date] = None
    end_date: Optional[date] = None
    budget_rollup: Decimal
    children: List[WbsNode] = Field(default_factory=list)


class PortfolioTree(BaseModel):
    id: str = "portfolio-root"
    title: str = "Portfolio"
    level: int = 0
    total_budget_rollup: Decimal
    children: List[PortfolioProjectNode] = Field(default_factory=list)
