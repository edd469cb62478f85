"""
Cost roll-up engine.

A leaf's ``total_cost`` is the sum of its direct costs; a parent's is the sum
of its children's ``total_cost``. The root's total is mirrored onto
``Project.budget_rollup``. All arithmetic is Decimal.
"""

from __future__ import annotations

import uuid
from collections import defaultdict
from decimal import Decimal
from typing import Optional

import structlog
from sqlalchemy.ext.asyncio import AsyncSession
from sqlmodel import select

from app.core.errors import ProjectNotFound
from app.models.project import Project
from app.models.task import Task
from prereq_shared.schemas.common import MAX_WBS_LEVEL, ZERO
from prereq_shared.schemas.tasks import COST_FIELDS

log = structlog.get_logger()


def _as_decimal(value) -> Decimal:
    if value is None:
        return ZERO
    if isinstance(value, Decimal):
        return value
    return Decimal(str(value))


def direct_cost(task: Task) -> Decimal:
    """labor + material + other, missing values counted as zero."""
    return sum((_as_decimal(getattr(task, field, None)) for field in COST_FIELDS), ZERO)


async def _children_total(session: AsyncSession, task_id: uuid.UUID) -> Optional[Decimal]:
    """Sum of the children's totals, or None when the task has no children."""
    result = await session.execute(select(Task.total_cost).where(Task.parent_id == task_id))
    totals = result.scalars().all()
    if not totals:
        return None
    return sum((_as_decimal(t) for t in totals), ZERO)


async def rollup_from(session: AsyncSession, task_id: uuid.UUID) -> Optional[Task]:
    """Recompute ``total_cost`` from ``task_id`` up to the root.

    Returns the last task updated (the root on a complete walk). A task that
    has disappeared mid-walk ends the walk at the last valid ancestor.
    """
    await session.flush()

    current_id: Optional[uuid.UUID] = task_id
    last: Optional[Task] = None
    # A chain has at most MAX_WBS_LEVEL + 1 nodes (levels 0..MAX).
    for _ in range(MAX_WBS_LEVEL + 1):
        if current_id is None:
            break
        task = await session.get(Task, current_id)
        if task is None:
            log.warning(
                "rollup.walk_stopped",
                missing_task_id=str(current_id),
                last_task_id=str(last.id) if last else None,
            )
            break

        children_total = await _children_total(session, task.id)
        task.total_cost = direct_cost(task) if children_total is None else children_total
        session.add(task)

        if task.level == 0:
            project = await session.get(Project, task.project_id)
            if project is not None:
                project.budget_rollup = task.total_cost
                session.add(project)

        await session.flush()
        last = task
        current_id = task.parent_id
    return last


async def recalculate_project(session: AsyncSession, project_id: uuid.UUID) -> dict:
    """Recompute every task's total in one pass, deepest level first."""
    project = await session.get(Project, project_id)
    if project is None:
        raise ProjectNotFound(f"Project {project_id} not found")

    result = await session.execute(select(Task).where(Task.project_id == project_id))
    tasks = list(result.scalars().all())

    parents = {t.parent_id for t in tasks if t.parent_id is not None}
    children_totals: dict[uuid.UUID, Decimal] = defaultdict(lambda: ZERO)
    root: Optional[Task] = None

    for task in sorted(tasks, key=lambda t: t.level, reverse=True):
        if task.id in parents:
            task.total_cost = children_totals[task.id]
        else:
            task.total_cost = direct_cost(task)
        if task.parent_id is not None:
            children_totals[task.parent_id] += task.total_cost
        if task.level == 0:
            root = task
        session.add(task)

    project.budget_rollup = root.total_cost if root is not None else ZERO
    session.add(project)
    await session.flush()

    log.info(
        "rollup.project_recalculated",
        project_id=str(project_id),
        tasks=len(tasks),
        budget_rollup=str(project.budget_rollup),
    )
    return {
        "project_id": project_id,
        "tasks_recalculated": len(tasks),
        "budget_rollup": project.budget_rollup,
    }
