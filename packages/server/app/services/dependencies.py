"""
Dependency graph checker and precedence-edge CRUD.

An edge ``predecessor -> successor`` is accepted only if every check below
passes, in this order (the first failure wins and nothing is written):

1. not a self-link
2. both endpoints exist and share a project
3. not a duplicate of an existing edge
4. the reverse edge does not exist
5. no path ``successor -> ... -> predecessor`` exists (no cycle of any length)
"""

from __future__ import annotations

import uuid
from collections import defaultdict
from typing import Optional, Sequence

import structlog
from sqlalchemy import or_
from sqlalchemy.ext.asyncio import AsyncSession
from sqlmodel import select

from app.core.database import lock_project
from app.core.errors import (
    CircularDependency,
    CrossProjectDependency,
    DependencyNotFound,
    DuplicateDependency,
    ReverseDependency,
    SelfLink,
    TaskNotFound,
)
from app.models.dependency import TaskDependency
from app.models.task import Task
from prereq_shared.schemas.common import DependencyType, TaskRef
from prereq_shared.schemas.dependencies import (
    DependencyCreate,
    DependencyRead,
    DependencyUpdate,
)

log = structlog.get_logger()


# ---------------------------------------------------------------------------
# Checks
# ---------------------------------------------------------------------------


def check_self_link(predecessor_id: uuid.UUID, successor_id: uuid.UUID) -> None:
    if predecessor_id == successor_id:
        raise SelfLink("A task cannot depend on itself")


async def load_endpoints(
    session: AsyncSession,
    predecessor_id: uuid.UUID,
    successor_id: uuid.UUID,
) -> tuple[Task, Task]:
    predecessor = await session.get(Task, predecessor_id)
    if predecessor is None:
        raise TaskNotFound(f"Predecessor task {predecessor_id} not found")
    successor = await session.get(Task, successor_id)
    if successor is None:
        raise TaskNotFound(f"Successor task {successor_id} not found")
    if predecessor.project_id != successor.project_id:
        raise CrossProjectDependency("Both tasks must belong to the same project")
    return predecessor, successor


async def _find_edge(
    session: AsyncSession, predecessor_id: uuid.UUID, successor_id: uuid.UUID
) -> Optional[TaskDependency]:
    result = await session.execute(
        select(TaskDependency).where(
            TaskDependency.predecessor_id == predecessor_id,
            TaskDependency.successor_id == successor_id,
        )
    )
    return result.scalars().first()


async def check_duplicate(
    session: AsyncSession, predecessor_id: uuid.UUID, successor_id: uuid.UUID
) -> None:
    if await _find_edge(session, predecessor_id, successor_id) is not None:
        raise DuplicateDependency("Dependency already exists")


async def check_reverse(
    session: AsyncSession, predecessor_id: uuid.UUID, successor_id: uuid.UUID
) -> None:
    if await _find_edge(session, successor_id, predecessor_id) is not None:
        raise ReverseDependency(
            "The reverse dependency already exists; adding this one would create a cycle"
        )


async def _has_path(
    session: AsyncSession,
    from_id: uuid.UUID,
    to_id: uuid.UUID,
    project_id: uuid.UUID,
) -> bool:
    """BFS to detect if there's a path from from_id to to_id in the dependency graph."""
    # Build adjacency: predecessor_id -> [successor_id]
    result = await session.execute(
        select(TaskDependency.predecessor_id, TaskDependency.successor_id).where(
            TaskDependency.project_id == project_id
        )
    )
    adj: dict[uuid.UUID, list[uuid.UUID]] = defaultdict(list)
    for predecessor_id, successor_id in result.all():
        adj[predecessor_id].append(successor_id)

    visited: set[uuid.UUID] = set()
    queue = [from_id]
    while queue:
        current = queue.pop(0)
        if current == to_id:
            return True
        if current in visited:
            continue
        visited.add(current)
        queue.extend(adj.get(current, []))
    return False


async def check_cycle(
    session: AsyncSession,
    predecessor_id: uuid.UUID,
    successor_id: uuid.UUID,
    project_id: uuid.UUID,
) -> None:
    # The new edge closes a cycle iff the successor already reaches the
    # predecessor.
    if await _has_path(session, successor_id, predecessor_id, project_id):
        raise CircularDependency(
            "Adding this dependency would create a circular dependency"
        )


async def validate_new_edge(
    session: AsyncSession,
    predecessor_id: uuid.UUID,
    successor_id: uuid.UUID,
) -> tuple[Task, Task]:
    """Run every check for a prospective edge; returns the two endpoints."""
    check_self_link(predecessor_id, successor_id)
    predecessor, successor = await load_endpoints(session, predecessor_id, successor_id)
    await lock_project(session, predecessor.project_id)
    await check_duplicate(session, predecessor_id, successor_id)
    await check_reverse(session, predecessor_id, successor_id)
    await check_cycle(session, predecessor_id, successor_id, predecessor.project_id)
    return predecessor, successor


# ---------------------------------------------------------------------------
# CRUD
# ---------------------------------------------------------------------------


async def create_dependency(
    session: AsyncSession,
    predecessor_id: uuid.UUID,
    successor_id: uuid.UUID,
    type: DependencyType = DependencyType.FS,
    lag: int = 0,
) -> TaskDependency:
    predecessor, _ = await validate_new_edge(session, predecessor_id, successor_id)
    dep = TaskDependency(
        project_id=predecessor.project_id,
        predecessor_id=predecessor_id,
        successor_id=successor_id,
        type=DependencyType(type).value,
        lag=lag,
    )
    session.add(dep)
    await session.flush()
    log.info(
        "dependency.created",
        dependency_id=str(dep.id),
        predecessor_id=str(predecessor_id),
        successor_id=str(successor_id),
        type=dep.type,
        lag=dep.lag,
    )
    return dep


async def create_from_schema(session: AsyncSession, data: DependencyCreate) -> TaskDependency:
    return await create_dependency(
        session, data.predecessor_id, data.successor_id, data.type, data.lag
    )


async def get_dependency_or_404(
    session: AsyncSession, dependency_id: uuid.UUID
) -> TaskDependency:
    dep = await session.get(TaskDependency, dependency_id)
    if dep is None:
        raise DependencyNotFound(f"Dependency {dependency_id} not found")
    return dep


async def get_relation_or_404(
    session: AsyncSession, predecessor_id: uuid.UUID, dependency_id: uuid.UUID
) -> TaskDependency:
    """A dependency that must hang off ``predecessor_id``."""
    dep = await session.get(TaskDependency, dependency_id)
    if dep is None or dep.predecessor_id != predecessor_id:
        raise DependencyNotFound(
            f"Dependency {dependency_id} not found for task {predecessor_id}"
        )
    return dep


async def list_dependencies(
    session: AsyncSession, project_ids: Sequence[uuid.UUID]
) -> list[TaskDependency]:
    if not project_ids:
        return []
    result = await session.execute(
        select(TaskDependency)
        .where(TaskDependency.project_id.in_(list(project_ids)))
        .order_by(TaskDependency.created_at)
    )
    return list(result.scalars().all())


async def update_dependency(
    session: AsyncSession, dep: TaskDependency, data: DependencyUpdate
) -> TaskDependency:
    changes = data.model_dump(exclude_unset=True, exclude_none=True)
    if "type" in changes:
        dep.type = DependencyType(changes["type"]).value
    if "lag" in changes:
        dep.lag = changes["lag"]
    session.add(dep)
    await session.flush()
    return dep


async def delete_dependency(session: AsyncSession, dep: TaskDependency) -> None:
    await session.delete(dep)
    await session.flush()
    log.info("dependency.deleted", dependency_id=str(dep.id))


async def delete_incident_edges(session: AsyncSession, task_id: uuid.UUID) -> int:
    """Remove every edge touching ``task_id``; returns how many were removed."""
    result = await session.execute(
        select(TaskDependency).where(
            or_(
                TaskDependency.predecessor_id == task_id,
                TaskDependency.successor_id == task_id,
            )
        )
    )
    edges = result.scalars().all()
    for dep in edges:
        await session.delete(dep)
    await session.flush()
    return len(edges)


async def get_task_dependencies(
    session: AsyncSession, task_id: uuid.UUID
) -> dict[str, list[TaskDependency]]:
    """Edges where the task is the predecessor and where it is the successor."""
    if await session.get(Task, task_id) is None:
        raise TaskNotFound(f"Task {task_id} not found")
    as_predecessor = await session.execute(
        select(TaskDependency).where(TaskDependency.predecessor_id == task_id)
    )
    as_successor = await session.execute(
        select(TaskDependency).where(TaskDependency.successor_id == task_id)
    )
    return {
        "as_predecessor": list(as_predecessor.scalars().all()),
        "as_successor": list(as_successor.scalars().all()),
    }


# ---------------------------------------------------------------------------
# Enrichment
# ---------------------------------------------------------------------------


def _ref(task: Optional[Task]) -> Optional[TaskRef]:
    if task is None:
        return None
    return TaskRef(id=task.id, title=task.title, wbs_code=task.wbs_code or None)


async def enrich_dependency(session: AsyncSession, dep: TaskDependency) -> DependencyRead:
    predecessor = await session.get(Task, dep.predecessor_id)
    successor = await session.get(Task, dep.successor_id)
    return DependencyRead(
        id=dep.id,
        predecessor_id=dep.predecessor_id,
        successor_id=dep.successor_id,
        type=dep.type,
        lag=dep.lag,
        predecessor=_ref(predecessor),
        successor=_ref(successor),
        created_at=dep.created_at,
        updated_at=dep.updated_at,
    )


async def enrich_dependencies(
    session: AsyncSession, deps: Sequence[TaskDependency]
) -> list[DependencyRead]:
    return [await enrich_dependency(session, d) for d in deps]
