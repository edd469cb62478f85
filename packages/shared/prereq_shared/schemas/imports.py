"""Schedule import schemas (JSON rows, CSV/Excel uploads, P6 files)."""

from __future__ import annotations

from decimal import Decimal
from typing import List, Optional

from pydantic import BaseModel, Field, field_validator

from .common import DependencyType

# Longest duration a schedule row may declare, in days.
MAX_IMPORT_DURATION_DAYS = 36_500


class ImportTaskRow(BaseModel):
    """One row of a flat, outline-ordered schedule."""
    level: int = Field(ge=1)
    activity_id: Optional[str] = Field(default=None, max_length=64)
    description: Optional[str] = None
    type: Optional[str] = None  # Task | Milestone
    duration: Optional[int] = Field(default=None, ge=0, le=MAX_IMPORT_DURATION_DAYS)
    start_date: Optional[str] = None
    finish_date: Optional[str] = None
    predecessors: Optional[str] = None  # comma-separated activity ids
    resourcing: Optional[str] = None
    budget: Optional[Decimal] = Field(default=None, ge=0)
    notes: Optional[str] = None

    @field_validator(
        "activity_id", "description", "duration", "start_date", "finish_date",
        "predecessors", "resourcing", "budget", "notes",
        mode="before",
    )
    @classmethod
    def _blank_to_none(cls, value):
        if value is None:
            return None
        value = str(value).strip()
        return value or None

    @property
    def is_milestone(self) -> bool:
        return (self.type or "").strip().lower() == "milestone"


class ImportLink(BaseModel):
    """Explicit precedence edge between two imported activity ids."""
    predecessor: str
    successor: str
    type: DependencyType = DependencyType.FS
    lag: int = 0


class ImportOptions(BaseModel):
    replace_existing: bool = False
    generate_wbs_codes: bool = False
    import_dependencies: bool = True


class ImportScheduleRequest(BaseModel):
    tasks: List[ImportTaskRow]
    options: ImportOptions = Field(default_factory=ImportOptions)


class SkippedRow(BaseModel):
    row: int
    activity_id: Optional[str] = None
    reason: str


class ImportResult(BaseModel):
    success: bool = True
    imported_tasks: int = 0
    imported_dependencies: int = 0
    skipped_rows: List[SkippedRow] = Field(default_factory=list)
    skipped_dependencies: int = 0
    budget_rollup: Decimal = Decimal("0")
    message: str = ""
