from decimal import Decimal
from enum import Enum
from typing import Optional
from uuid import UUID
from pydantic import BaseModel

# Deepest WBS level a task may sit at (root is 0).
MAX_WBS_LEVEL = 10

# Dependency lag bounds, in days.
MIN_LAG_DAYS = -365
MAX_LAG_DAYS = 365

ZERO = Decimal("0")


class ProjectRole(str, Enum):
    ADMIN = "ADMIN"
    PM = "PM"
    VIEWER = "VIEWER"


# Higher rank includes every permission of the lower ones.
PROJECT_ROLE_RANK: dict["ProjectRole", int] = {
    ProjectRole.ADMIN: 3,
    ProjectRole.PM: 2,
    ProjectRole.VIEWER: 1,
}


class DependencyType(str, Enum):
    FS = "FS"  # finish-to-start
    SS = "SS"  # start-to-start
    FF = "FF"  # finish-to-finish
    SF = "SF"  # start-to-finish


class ErrorDetail(BaseModel):
    code: str
    message: str
    status: int


class ErrorResponse(BaseModel):
    error: ErrorDetail


class TaskRef(BaseModel):
    """Minimal task reference embedded in dependency and import payloads."""
    id: UUID
    title: str
    wbs_code: Optional[str] = None
