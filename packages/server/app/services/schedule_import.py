"""
Schedule import: flat, outline-ordered rows into a project's WBS.

Rows arrive from JSON, CSV/Excel uploads (read with pandas) or the P6
adapters. The import is best-effort: a row that cannot be placed or
validated is logged and skipped, and the rest of the schedule still lands.
Precedence links go through the full dependency checker. Totals are
rebuilt with a project-wide recalculation at the end.
"""

from __future__ import annotations

import io
import re
import uuid
import zipfile
from datetime import date, timedelta
from decimal import Decimal, InvalidOperation
from typing import Iterable, Optional, Sequence, Union

import pandas as pd
import pydantic
import structlog
from sqlalchemy import delete
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlmodel import select

from app.core.database import lock_project
from app.core.errors import PrereqError, UnsupportedImportFile
from app.models.dependency import TaskDependency
from app.models.project import Project
from app.models.task import Task
from app.services import assignments as assignment_service
from app.services import dependencies as dependency_service
from app.services import wbs
from app.services.rollup import recalculate_project
from app.services.tasks import ensure_project_root
from prereq_shared.schemas.common import MAX_LAG_DAYS, MAX_WBS_LEVEL, MIN_LAG_DAYS, ZERO
from prereq_shared.schemas.imports import (
    ImportLink,
    ImportOptions,
    ImportResult,
    ImportTaskRow,
    SkippedRow,
)

log = structlog.get_logger()

# Resourcing is only recorded on work-package rows and below.
RESOURCE_MIN_LEVEL = 4

FILE_COLUMNS = (
    "level",
    "activity_id",
    "description",
    "type",
    "duration",
    "start_date",
    "finish_date",
    "predecessors",
    "resourcing",
    "budget",
    "notes",
)

_INTEGRAL_FLOAT = re.compile(r"^-?\d+\.0+$")
_ROLE_HOURS = re.compile(r"(.+?):\s*(\d+(?:\.\d+)?)h?")
_ROLE_QTY = re.compile(r"(.+?)\s*[(\s]+(\d+(?:\.\d+)?)")


# ---------------------------------------------------------------------------
# Field parsing
# ---------------------------------------------------------------------------


def parse_date(value: Optional[str]) -> Optional[date]:
    """Best-effort date parse; anything unreadable is None."""
    if value is None or str(value).strip() == "":
        return None
    parsed = pd.to_datetime(str(value).strip(), errors="coerce")
    if pd.isna(parsed):
        return None
    return parsed.date()


def resolve_dates(row: ImportTaskRow) -> tuple[Optional[date], Optional[date]]:
    """Start and end for a row, filling the end from duration when needed."""
    start = parse_date(row.start_date)
    end = parse_date(row.finish_date)
    if start is None:
        return None, end

    if end is None:
        if row.duration:
            end = start + timedelta(days=row.duration - 1)
        else:
            end = start + timedelta(days=1)
    if end < start:
        log.warning(
            "import.end_before_start",
            activity_id=row.activity_id,
            start=start.isoformat(),
            end=end.isoformat(),
        )
        end = start + timedelta(days=1)
    return start, end


def parse_resourcing(
    resourcing: Optional[str], level: int
) -> tuple[Optional[str], Optional[Decimal], Optional[dict]]:
    """Split a resourcing cell into (role, quantity, role_hours).

    Accepted forms: ``"Developer 1.5"``, ``"PM (2.0)"``,
    ``"Developer: 16h, Designer: 8h"`` and a bare role name (quantity 1).
    """
    if not resourcing or level < RESOURCE_MIN_LEVEL:
        return None, None, None
    text = resourcing.strip()

    if ":" in text and "h" in text:
        role_hours: dict[str, float] = {}
        for part in text.split(","):
            match = _ROLE_HOURS.match(part.strip())
            if match:
                role_hours[match.group(1).strip()] = float(match.group(2))
        if not role_hours:
            return None, None, None
        first_role, first_hours = next(iter(role_hours.items()))
        return first_role, Decimal(str(first_hours)), role_hours

    match = _ROLE_QTY.match(text)
    if match:
        return match.group(1).strip(), Decimal(match.group(2)), None
    return text, Decimal("1"), None


def split_predecessors(value: Optional[str]) -> list[str]:
    if not value:
        return []
    return [p.strip() for p in value.split(",") if p.strip()]


def parse_budget(value) -> Decimal:
    """Decimal from a numeric cell; unreadable or non-finite values are zero."""
    try:
        amount = Decimal(str(value).strip() or "0")
    except InvalidOperation:
        return ZERO
    return amount if amount.is_finite() else ZERO


# ---------------------------------------------------------------------------
# File reading
# ---------------------------------------------------------------------------


def _normalize_header(name) -> str:
    return str(name).strip().lower().replace(" ", "_")


def read_schedule_file(content: bytes, filename: str) -> list[dict]:
    """Read a CSV or Excel schedule into raw row dicts keyed by field name."""
    suffix = filename.rsplit(".", 1)[-1].lower() if "." in filename else ""
    try:
        if suffix == "csv":
            df = pd.read_csv(io.BytesIO(content), dtype=str, keep_default_na=False)
        elif suffix in ("xlsx", "xlsm"):
            df = pd.read_excel(
                io.BytesIO(content), dtype=str, keep_default_na=False, engine="openpyxl"
            )
        else:
            raise UnsupportedImportFile(
                f"Unsupported schedule file '{filename}'; expected .csv or .xlsx"
            )
    except (ValueError, zipfile.BadZipFile) as exc:
        raise UnsupportedImportFile(f"Could not read '{filename}': {exc}")

    df = df.rename(columns=_normalize_header)
    if "level" not in df.columns:
        raise UnsupportedImportFile(f"'{filename}' has no Level column")
    df = df[[c for c in FILE_COLUMNS if c in df.columns]].fillna("")

    records = []
    for record in df.to_dict(orient="records"):
        for key in ("level", "duration"):
            value = str(record.get(key, "")).strip()
            if _INTEGRAL_FLOAT.match(value):
                record[key] = value.split(".", 1)[0]
        records.append(record)
    return records


# ---------------------------------------------------------------------------
# Pipeline
# ---------------------------------------------------------------------------


async def clear_existing_tasks(session: AsyncSession, project: Project) -> int:
    """Drop the non-root tasks with their edges and assignments; reset the root's costs."""
    await session.execute(
        delete(TaskDependency).where(TaskDependency.project_id == project.id)
    )
    await assignment_service.delete_for_project(session, project.id, keep_root=True)
    levels = await session.execute(
        select(Task.level).where(Task.project_id == project.id, Task.level > 0).distinct()
    )
    removed = 0
    for level in sorted(levels.scalars().all(), reverse=True):
        result = await session.execute(
            delete(Task).where(Task.project_id == project.id, Task.level == level)
        )
        removed += result.rowcount or 0

    root = await wbs.get_root(session, project.id)
    if root is not None:
        root.cost_labor = root.cost_material = root.cost_other = ZERO
        root.total_cost = ZERO
        session.add(root)
    project.budget_rollup = ZERO
    session.add(project)
    await session.flush()
    log.info("import.cleared", project_id=str(project.id), tasks_removed=removed)
    return removed


async def _existing_activity_map(
    session: AsyncSession, project_id: uuid.UUID
) -> dict[str, Task]:
    result = await session.execute(
        select(Task).where(Task.project_id == project_id, Task.activity_id.is_not(None))
    )
    return {t.activity_id: t for t in result.scalars().all()}


async def _child_count(session: AsyncSession, parent_id: uuid.UUID) -> int:
    result = await session.execute(select(Task.id).where(Task.parent_id == parent_id))
    return len(result.all())


def _coerce_rows(
    rows: Iterable[Union[ImportTaskRow, dict]],
) -> tuple[list[tuple[int, ImportTaskRow]], list[SkippedRow]]:
    valid: list[tuple[int, ImportTaskRow]] = []
    skipped: list[SkippedRow] = []
    for index, raw in enumerate(rows, start=1):
        if isinstance(raw, ImportTaskRow):
            valid.append((index, raw))
            continue
        try:
            valid.append((index, ImportTaskRow.model_validate(raw)))
        except pydantic.ValidationError as exc:
            reason = "; ".join(
                f"{'.'.join(str(p) for p in err['loc'])}: {err['msg']}" for err in exc.errors()
            )
            activity_id = str(raw.get("activity_id") or "") or None
            log.warning("import.row_skipped", row=index, activity_id=activity_id, reason=reason)
            skipped.append(SkippedRow(row=index, activity_id=activity_id, reason=reason))
    return valid, skipped


def _skip(skipped: list[SkippedRow], index: int, row: ImportTaskRow, reason: str) -> None:
    log.warning("import.row_skipped", row=index, activity_id=row.activity_id, reason=reason)
    skipped.append(SkippedRow(row=index, activity_id=row.activity_id, reason=reason))


async def run_import(
    session: AsyncSession,
    project: Project,
    rows: Sequence[Union[ImportTaskRow, dict]],
    options: Optional[ImportOptions] = None,
    links: Sequence[ImportLink] = (),
) -> ImportResult:
    """Import outline-ordered rows (and optional explicit links) into a project."""
    options = options or ImportOptions()
    await lock_project(session, project.id)

    if options.replace_existing:
        await clear_existing_tasks(session, project)
    root = await ensure_project_root(session, project)

    valid_rows, skipped = _coerce_rows(rows)
    by_activity = await _existing_activity_map(session, project.id)

    # Most recent task seen at each level; level n rows hang under [n - 1].
    last_at_level: dict[int, Optional[Task]] = {0: root}
    positions: dict[uuid.UUID, int] = {}
    created: list[tuple[ImportTaskRow, Task]] = []

    for index, row in valid_rows:
        if row.level > MAX_WBS_LEVEL:
            _skip(skipped, index, row, f"level {row.level} exceeds maximum {MAX_WBS_LEVEL}")
            _forget_below(last_at_level, row.level - 1)
            continue

        parent = last_at_level.get(row.level - 1)
        if parent is None:
            _skip(skipped, index, row, f"no parent row at level {row.level - 1}")
            _forget_below(last_at_level, row.level - 1)
            continue

        if row.activity_id and row.activity_id in by_activity:
            _skip(skipped, index, row, f"duplicate activity id '{row.activity_id}'")
            _forget_below(last_at_level, row.level - 1)
            continue

        try:
            start, end = resolve_dates(row)
        except OverflowError:
            _skip(skipped, index, row, "dates fall outside the supported calendar")
            _forget_below(last_at_level, row.level - 1)
            continue

        if parent.id not in positions:
            positions[parent.id] = await _child_count(session, parent.id)
        position = positions[parent.id] + 1

        if options.generate_wbs_codes:
            wbs_code = wbs.child_wbs_code(parent, position)
        else:
            wbs_code = row.activity_id or ""

        role, qty, role_hours = parse_resourcing(row.resourcing, row.level)
        task = Task(
            project_id=project.id,
            parent_id=parent.id,
            level=parent.level + 1,
            wbs_code=wbs_code,
            activity_id=row.activity_id,
            title=row.description or row.activity_id or f"Row {index}",
            description=row.notes,
            start_date=start,
            end_date=end,
            is_milestone=row.is_milestone,
            cost_labor=row.budget or ZERO,
            resource_role=role,
            resource_qty=qty,
            role_hours=role_hours,
        )
        # One savepoint per row: a rejected insert loses only that row.
        try:
            async with session.begin_nested():
                session.add(task)
                await session.flush()
        except SQLAlchemyError as exc:
            _skip(skipped, index, row, f"insert rejected: {exc.__class__.__name__}")
            _forget_below(last_at_level, row.level - 1)
            continue

        positions[parent.id] = position
        last_at_level[row.level] = task
        _forget_below(last_at_level, row.level)
        if row.activity_id:
            by_activity[row.activity_id] = task
        created.append((row, task))

    imported_dependencies = 0
    skipped_dependencies = 0
    if options.import_dependencies:
        wanted = list(links)
        for row, _task in created:
            if not row.activity_id:
                continue
            for predecessor in split_predecessors(row.predecessors):
                wanted.append(ImportLink(predecessor=predecessor, successor=row.activity_id))
        for link in wanted:
            if await _create_link(session, link, by_activity):
                imported_dependencies += 1
            else:
                skipped_dependencies += 1

    totals = await recalculate_project(session, project.id)

    result = ImportResult(
        imported_tasks=len(created),
        imported_dependencies=imported_dependencies,
        skipped_rows=skipped,
        skipped_dependencies=skipped_dependencies,
        budget_rollup=totals["budget_rollup"],
        message=f"Imported {len(created)} tasks ({len(skipped)} rows skipped)",
    )
    log.info(
        "import.completed",
        project_id=str(project.id),
        imported_tasks=result.imported_tasks,
        imported_dependencies=imported_dependencies,
        skipped_rows=len(skipped),
        skipped_dependencies=skipped_dependencies,
    )
    return result


def _forget_below(last_at_level: dict[int, Optional[Task]], level: int) -> None:
    """Close every open level deeper than ``level``."""
    for deeper in [lvl for lvl in last_at_level if lvl > level]:
        del last_at_level[deeper]


async def _create_link(
    session: AsyncSession, link: ImportLink, by_activity: dict[str, Task]
) -> bool:
    predecessor = by_activity.get(link.predecessor)
    successor = by_activity.get(link.successor) if link.successor else None
    if predecessor is None or successor is None:
        log.warning(
            "import.dependency_skipped",
            predecessor=link.predecessor,
            successor=link.successor,
            reason="activity not found",
        )
        return False
    if not MIN_LAG_DAYS <= link.lag <= MAX_LAG_DAYS:
        log.warning(
            "import.dependency_skipped",
            predecessor=link.predecessor,
            successor=link.successor,
            reason=f"lag {link.lag} outside {MIN_LAG_DAYS}..{MAX_LAG_DAYS} days",
        )
        return False
    try:
        await dependency_service.create_dependency(
            session, predecessor.id, successor.id, link.type, link.lag
        )
    except PrereqError as exc:
        log.warning(
            "import.dependency_skipped",
            predecessor=link.predecessor,
            successor=link.successor,
            reason=exc.message,
            code=exc.code,
        )
        return False
    return True

