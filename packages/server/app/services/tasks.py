"""
Task service layer: WBS task CRUD, tree views and root bootstrapping.

Handles:
- Placement through the hierarchy validator (create and re-parent)
- Cost roll-up after every change that affects totals
- Removal of incident dependencies on delete
- Nested WBS tree and milestone views
"""

from __future__ import annotations

import uuid
from typing import List, Optional

import structlog
from sqlalchemy.ext.asyncio import AsyncSession
from sqlmodel import select

from app.core.database import lock_project
from app.core.errors import (
    DuplicateActivityId,
    InvalidDateRange,
    ProjectNotFound,
    RootTaskProtected,
    TaskHasChildren,
    TaskNotFound,
)
from app.models.project import Project
from app.models.task import Task
from app.services import assignments as assignment_service
from app.services import dependencies as dependency_service
from app.services import wbs
from app.services.rollup import rollup_from
from prereq_shared.schemas.tasks import (
    COST_FIELDS,
    TaskCreate,
    TaskUpdate,
    WbsNode,
)

log = structlog.get_logger()

ROOT_WBS_CODE = "0"

# Columns that are NOT NULL; an explicit null in an update leaves them unchanged.
REQUIRED_FIELDS = COST_FIELDS + ("title", "wbs_code", "is_milestone")


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


async def get_task_or_404(session: AsyncSession, task_id: uuid.UUID) -> Task:
    task = await session.get(Task, task_id)
    if task is None:
        raise TaskNotFound(f"Task {task_id} not found")
    return task


async def _check_activity_id(
    session: AsyncSession,
    project_id: uuid.UUID,
    activity_id: Optional[str],
    exclude_id: Optional[uuid.UUID] = None,
) -> None:
    if not activity_id:
        return
    stmt = select(Task.id).where(
        Task.project_id == project_id, Task.activity_id == activity_id
    )
    if exclude_id is not None:
        stmt = stmt.where(Task.id != exclude_id)
    result = await session.execute(stmt)
    if result.first() is not None:
        raise DuplicateActivityId(
            f"Activity id '{activity_id}' is already used in project {project_id}"
        )


async def _has_children(session: AsyncSession, task_id: uuid.UUID) -> bool:
    result = await session.execute(select(Task.id).where(Task.parent_id == task_id).limit(1))
    return result.first() is not None


# ---------------------------------------------------------------------------
# Root
# ---------------------------------------------------------------------------


def root_title(project: Project) -> str:
    return f"{project.name} (Project Root)"


async def ensure_project_root(session: AsyncSession, project: Project) -> Task:
    """Return the project's root task, creating it if missing."""
    root = await wbs.get_root(session, project.id)
    if root is not None:
        return root

    level = await wbs.resolve_level(session, project.id, None, 0)
    root = Task(
        project_id=project.id,
        parent_id=None,
        level=level,
        wbs_code=ROOT_WBS_CODE,
        title=root_title(project),
        start_date=project.start_date,
        end_date=project.end_date,
    )
    session.add(root)
    await session.flush()
    log.info("task.root_created", project_id=str(project.id), task_id=str(root.id))
    return root


# ---------------------------------------------------------------------------
# CRUD
# ---------------------------------------------------------------------------


async def create_task(
    session: AsyncSession,
    project_id: uuid.UUID,
    task_in: TaskCreate,
) -> Task:
    project = await lock_project(session, project_id)
    if project is None:
        raise ProjectNotFound(f"Project {project_id} not found")

    level = await wbs.resolve_level(session, project_id, task_in.parent_id, task_in.level)
    await _check_activity_id(session, project_id, task_in.activity_id)

    data = task_in.model_dump(exclude={"parent_id", "level"})
    if not data.get("wbs_code") and task_in.parent_id is not None:
        parent = await session.get(Task, task_in.parent_id)
        data["wbs_code"] = await wbs.next_wbs_code(session, parent)

    task = Task(project_id=project_id, parent_id=task_in.parent_id, level=level, **data)
    session.add(task)
    await session.flush()

    await rollup_from(session, task.id)
    log.info(
        "task.created",
        task_id=str(task.id),
        project_id=str(project_id),
        level=level,
        wbs_code=task.wbs_code,
    )
    return task


async def list_tasks(session: AsyncSession, project_id: uuid.UUID) -> List[Task]:
    result = await session.execute(
        select(Task)
        .where(Task.project_id == project_id)
        .order_by(Task.level, Task.wbs_code, Task.created_at)
    )
    return list(result.scalars().all())


async def update_task(
    session: AsyncSession,
    task: Task,
    task_in: TaskUpdate,
) -> Task:
    await lock_project(session, task.project_id)
    data = task_in.model_dump(exclude_unset=True)

    start = data.get("start_date", task.start_date)
    end = data.get("end_date", task.end_date)
    if start and end and end < start:
        raise InvalidDateRange("end_date must not be before start_date")

    if "activity_id" in data:
        await _check_activity_id(session, task.project_id, data["activity_id"], task.id)

    old_parent_id = task.parent_id
    moved = False
    if "parent_id" in data:
        new_parent_id = data.pop("parent_id")
        if new_parent_id != task.parent_id:
            new_level = await wbs.resolve_reparent(session, task, new_parent_id)
            await wbs.apply_reparent(session, task, new_parent_id, new_level)
            moved = True

    costs_changed = any(
        field in data and data[field] is not None and data[field] != getattr(task, field)
        for field in COST_FIELDS
    )

    for key, value in data.items():
        if key in REQUIRED_FIELDS and value is None:
            continue
        setattr(task, key, value)

    session.add(task)
    await session.flush()

    if moved and old_parent_id is not None:
        await rollup_from(session, old_parent_id)
    if moved or costs_changed:
        await rollup_from(session, task.id)

    log.info(
        "task.updated",
        task_id=str(task.id),
        fields=sorted(data.keys()),
        moved=moved,
    )
    return task


async def delete_task(session: AsyncSession, task: Task) -> Optional[uuid.UUID]:
    """Delete a leaf task; returns the former parent's id."""
    await lock_project(session, task.project_id)

    if task.level == 0:
        raise RootTaskProtected("The project root task cannot be deleted")
    if await _has_children(session, task.id):
        raise TaskHasChildren(
            f"Task {task.id} has child tasks; delete or move them first"
        )

    parent_id = task.parent_id
    removed = await dependency_service.delete_incident_edges(session, task.id)
    unassigned = await assignment_service.delete_for_task(session, task.id)
    await session.delete(task)
    await session.flush()

    if parent_id is not None:
        await rollup_from(session, parent_id)

    log.info(
        "task.deleted",
        task_id=str(task.id),
        parent_id=str(parent_id) if parent_id else None,
        dependencies_removed=removed,
        assignments_removed=unassigned,
    )
    return parent_id


# ---------------------------------------------------------------------------
# Views
# ---------------------------------------------------------------------------


async def get_wbs_tree(session: AsyncSession, project_id: uuid.UUID) -> List[WbsNode]:
    """The project's tasks as a nested tree, root first."""
    tasks = await list_tasks(session, project_id)
    nodes = {t.id: WbsNode.model_validate(t) for t in tasks}

    roots: List[WbsNode] = []
    for task in tasks:
        node = nodes[task.id]
        parent = nodes.get(task.parent_id) if task.parent_id else None
        if parent is None:
            roots.append(node)
        else:
            parent.children.append(node)
    return roots


async def get_milestones(session: AsyncSession, project_id: uuid.UUID) -> List[Task]:
    result = await session.execute(
        select(Task)
        .where(Task.project_id == project_id, Task.is_milestone.is_(True))
        .order_by(Task.start_date, Task.wbs_code)
    )
    return list(result.scalars().all())
