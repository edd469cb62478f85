"""
Assignment service: resources booked onto tasks, with hours.

A resource appears at most once per task. Assignments are removed with their
task (task delete, project delete and the replace step of an import).
"""

from __future__ import annotations

import uuid
from decimal import Decimal
from typing import Optional, Sequence

import structlog
from sqlalchemy import delete
from sqlalchemy.ext.asyncio import AsyncSession
from sqlmodel import select

from app.core.errors import AssignmentNotFound, ResourceAlreadyAssigned, ResourceNotFound
from app.models.resource import Resource, ResourceAssignment, ResourceType
from app.models.task import Task
from app.services import resources as resource_service
from prereq_shared.schemas.common import TaskRef
from prereq_shared.schemas.resources import (
    AssignmentBatchCreate,
    AssignmentRead,
    AssignmentUpdate,
    ResourceSummary,
    ResourceTypeRef,
    TaskAssignments,
)

log = structlog.get_logger()


def _task_ref(task: Task) -> TaskRef:
    return TaskRef(id=task.id, title=task.title, wbs_code=task.wbs_code or None)


async def get_assignment_or_404(
    session: AsyncSession, assignment_id: uuid.UUID
) -> ResourceAssignment:
    assignment = await session.get(ResourceAssignment, assignment_id)
    if assignment is None:
        raise AssignmentNotFound(f"Assignment {assignment_id} not found")
    return assignment


async def create_assignments(
    session: AsyncSession, task: Task, data: AssignmentBatchCreate
) -> list[ResourceAssignment]:
    """Assign several resources to ``task`` at once; all or nothing."""
    wanted = [a.resource_id for a in data.assignments]
    result = await session.execute(select(Resource).where(Resource.id.in_(wanted)))
    found = {r.id: r for r in result.scalars().all()}
    missing = [str(rid) for rid in wanted if rid not in found]
    if missing:
        raise ResourceNotFound(
            f"Resources not found: {', '.join(missing)}", details={"resource_ids": missing}
        )

    existing = await session.execute(
        select(ResourceAssignment.resource_id).where(
            ResourceAssignment.task_id == task.id,
            ResourceAssignment.resource_id.in_(wanted),
        )
    )
    taken = [found[rid].name for rid in existing.scalars().all()]
    if taken:
        raise ResourceAlreadyAssigned(
            f"Already assigned to this task: {', '.join(sorted(taken))}"
        )

    created = [
        ResourceAssignment(task_id=task.id, resource_id=a.resource_id, hours=a.hours)
        for a in data.assignments
    ]
    session.add_all(created)
    await session.flush()
    log.info("assignments.created", task_id=str(task.id), count=len(created))
    return created


async def list_for_task(session: AsyncSession, task_id: uuid.UUID) -> list[ResourceAssignment]:
    """A task's assignments ordered by resource type name then resource name."""
    result = await session.execute(
        select(ResourceAssignment)
        .join(Resource, Resource.id == ResourceAssignment.resource_id)
        .join(ResourceType, ResourceType.id == Resource.type_id)
        .where(ResourceAssignment.task_id == task_id)
        .order_by(ResourceType.name, Resource.name)
    )
    return list(result.scalars().all())


async def update_assignment(
    session: AsyncSession, assignment: ResourceAssignment, data: AssignmentUpdate
) -> ResourceAssignment:
    assignment.hours = data.hours
    session.add(assignment)
    await session.flush()
    return assignment


async def delete_assignment(session: AsyncSession, assignment: ResourceAssignment) -> None:
    await session.delete(assignment)
    await session.flush()
    log.info("assignment.deleted", assignment_id=str(assignment.id))


async def available_resources(
    session: AsyncSession, task_id: uuid.UUID, type_id: Optional[uuid.UUID] = None
) -> list[Resource]:
    """Resources not yet assigned to the task."""
    assigned = await session.execute(
        select(ResourceAssignment.resource_id).where(ResourceAssignment.task_id == task_id)
    )
    return await resource_service.list_resources(
        session, type_id=type_id, exclude_ids=list(assigned.scalars().all())
    )


async def delete_for_task(session: AsyncSession, task_id: uuid.UUID) -> int:
    result = await session.execute(
        delete(ResourceAssignment).where(ResourceAssignment.task_id == task_id)
    )
    return result.rowcount or 0


async def delete_for_project(
    session: AsyncSession, project_id: uuid.UUID, keep_root: bool = False
) -> int:
    """Remove the assignments of every task in a project."""
    task_ids = select(Task.id).where(Task.project_id == project_id)
    if keep_root:
        task_ids = task_ids.where(Task.level > 0)
    result = await session.execute(
        delete(ResourceAssignment).where(ResourceAssignment.task_id.in_(task_ids))
    )
    return result.rowcount or 0


# ---------------------------------------------------------------------------
# Enrichment
# ---------------------------------------------------------------------------


async def enrich_assignments(
    session: AsyncSession, assignments: Sequence[ResourceAssignment]
) -> list[AssignmentRead]:
    if not assignments:
        return []
    rows = await session.execute(
        select(Resource, ResourceType)
        .join(ResourceType, ResourceType.id == Resource.type_id)
        .where(Resource.id.in_({a.resource_id for a in assignments}))
    )
    catalogue = {resource.id: (resource, rtype) for resource, rtype in rows.all()}
    tasks = await session.execute(
        select(Task).where(Task.id.in_({a.task_id for a in assignments}))
    )
    task_refs = {t.id: _task_ref(t) for t in tasks.scalars().all()}

    enriched = []
    for a in assignments:
        resource, rtype = catalogue.get(a.resource_id, (None, None))
        enriched.append(
            AssignmentRead(
                id=a.id,
                task_id=a.task_id,
                resource_id=a.resource_id,
                hours=a.hours,
                resource=ResourceSummary.model_validate(resource) if resource else None,
                resource_type=ResourceTypeRef(id=rtype.id, name=rtype.name) if rtype else None,
                task=task_refs.get(a.task_id),
                created_at=a.created_at,
                updated_at=a.updated_at,
            )
        )
    return enriched


async def task_assignments(session: AsyncSession, task: Task) -> TaskAssignments:
    assignments = await list_for_task(session, task.id)
    return TaskAssignments(
        task=_task_ref(task),
        assignments=await enrich_assignments(session, assignments),
        total_hours=sum((a.hours for a in assignments), Decimal("0")),
    )
