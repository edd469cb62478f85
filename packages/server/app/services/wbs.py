"""
WBS hierarchy validation.

Every task except the project root hangs off a parent in the same project,
and ``child.level == parent.level + 1`` holds everywhere. The functions here
compute the level a task must take for a requested placement, or raise the
typed error explaining why the placement is illegal. They never write; the
caller persists ``level`` and ``parent_id`` together.
"""

from __future__ import annotations

import uuid
from collections import defaultdict
from typing import Optional

from sqlalchemy.ext.asyncio import AsyncSession
from sqlmodel import select

from app.core.errors import (
    LevelMismatch,
    MaxDepthExceeded,
    ParentNotFound,
    RootExists,
    RootTaskProtected,
    WbsCycle,
)
from app.models.task import Task
from prereq_shared.schemas.common import MAX_WBS_LEVEL


# ---------------------------------------------------------------------------
# Lookups
# ---------------------------------------------------------------------------


async def get_root(session: AsyncSession, project_id: uuid.UUID) -> Optional[Task]:
    result = await session.execute(
        select(Task).where(Task.project_id == project_id, Task.level == 0)
    )
    return result.scalars().first()


async def load_children_map(
    session: AsyncSession, project_id: uuid.UUID
) -> dict[uuid.UUID, list[Task]]:
    """parent_id -> children, for every task in the project."""
    result = await session.execute(select(Task).where(Task.project_id == project_id))
    children: dict[uuid.UUID, list[Task]] = defaultdict(list)
    for task in result.scalars().all():
        if task.parent_id is not None:
            children[task.parent_id].append(task)
    return children


def iter_descendants(children: dict[uuid.UUID, list[Task]], task_id: uuid.UUID):
    """Breadth-first over every task below ``task_id`` (excluding it)."""
    queue = list(children.get(task_id, []))
    while queue:
        current = queue.pop(0)
        yield current
        queue.extend(children.get(current.id, []))


def subtree_height(children: dict[uuid.UUID, list[Task]], task: Task) -> int:
    """Levels below ``task`` in its subtree (0 for a leaf)."""
    deepest = task.level
    for descendant in iter_descendants(children, task.id):
        deepest = max(deepest, descendant.level)
    return deepest - task.level


# ---------------------------------------------------------------------------
# Placement
# ---------------------------------------------------------------------------


async def resolve_level(
    session: AsyncSession,
    project_id: uuid.UUID,
    parent_id: Optional[uuid.UUID],
    desired_level: Optional[int] = None,
) -> int:
    """Return the level a task placed under ``parent_id`` must have."""
    if parent_id is None:
        if await get_root(session, project_id) is not None:
            raise RootExists(f"Project {project_id} already has a root task")
        if desired_level is not None and desired_level != 0:
            raise LevelMismatch(
                f"Level mismatch: a root task must be level 0, got {desired_level}"
            )
        return 0

    parent = await session.get(Task, parent_id)
    if parent is None or parent.project_id != project_id:
        raise ParentNotFound(f"Parent task {parent_id} not found in project {project_id}")

    if parent.level >= MAX_WBS_LEVEL:
        raise MaxDepthExceeded(
            f"Maximum WBS depth is {MAX_WBS_LEVEL}; parent {parent_id} is already at "
            f"level {parent.level}"
        )

    expected = parent.level + 1
    if desired_level is not None and desired_level != expected:
        raise LevelMismatch(
            f"Level mismatch: expected {expected} under parent at level "
            f"{parent.level}, got {desired_level}"
        )
    return expected


async def resolve_reparent(
    session: AsyncSession,
    task: Task,
    new_parent_id: Optional[uuid.UUID],
) -> int:
    """Validate moving ``task`` (and its subtree) under ``new_parent_id``.

    Returns the task's new level.
    """
    if task.level == 0:
        raise RootTaskProtected("The project root task cannot be moved")
    if new_parent_id == task.id:
        raise WbsCycle("A task cannot be its own parent")

    # Walk up from the new parent; meeting the task means it would move
    # under its own descendant.
    current_id = new_parent_id
    for _ in range(MAX_WBS_LEVEL + 1):
        if current_id is None:
            break
        if current_id == task.id:
            raise WbsCycle(f"Task {task.id} cannot be moved under its own descendant")
        ancestor = await session.get(Task, current_id)
        if ancestor is None:
            break
        current_id = ancestor.parent_id

    new_level = await resolve_level(session, task.project_id, new_parent_id)

    children = await load_children_map(session, task.project_id)
    height = subtree_height(children, task)
    if new_level + height > MAX_WBS_LEVEL:
        raise MaxDepthExceeded(
            f"Moving this subtree to level {new_level} would put tasks at level "
            f"{new_level + height}; maximum is {MAX_WBS_LEVEL}"
        )
    return new_level


async def apply_reparent(
    session: AsyncSession,
    task: Task,
    new_parent_id: uuid.UUID,
    new_level: int,
) -> None:
    """Move ``task`` and shift every descendant by the same level delta."""
    delta = new_level - task.level
    if delta:
        children = await load_children_map(session, task.project_id)
        for descendant in iter_descendants(children, task.id):
            descendant.level += delta
            session.add(descendant)
    task.parent_id = new_parent_id
    task.level = new_level
    session.add(task)
    await session.flush()


# ---------------------------------------------------------------------------
# WBS codes
# ---------------------------------------------------------------------------


def child_wbs_code(parent: Task, position: int) -> str:
    """Dotted code of the ``position``-th (1-based) child of ``parent``.

    Children of the root are numbered "1", "2", ...; deeper tasks extend the
    parent's code ("2.1", "2.1.3").
    """
    if parent.level == 0 or not parent.wbs_code:
        return str(position)
    return f"{parent.wbs_code}.{position}"


async def next_wbs_code(session: AsyncSession, parent: Task) -> str:
    result = await session.execute(select(Task.id).where(Task.parent_id == parent.id))
    return child_wbs_code(parent, len(result.all()) + 1)
