"""
Resource catalogue: resource types and the resources (people, crews, plant)
that can be assigned to tasks.

Catalogue entries are shared by every project. A type cannot be deleted
while resources use it, nor a resource while it is assigned.
"""

from __future__ import annotations

import uuid
from collections import defaultdict
from typing import Optional, Sequence

import structlog
from sqlalchemy import func
from sqlalchemy.ext.asyncio import AsyncSession
from sqlmodel import select

from app.core.errors import (
    ResourceInUse,
    ResourceNotFound,
    ResourceTypeExists,
    ResourceTypeNotFound,
)
from app.models.resource import Resource, ResourceAssignment, ResourceType
from app.models.task import Task
from prereq_shared.schemas.common import TaskRef
from prereq_shared.schemas.resources import (
    ResourceAssignmentRef,
    ResourceCreate,
    ResourceRead,
    ResourceSummary,
    ResourceTypeCreate,
    ResourceTypeRead,
    ResourceTypeRef,
    ResourceUpdate,
)

log = structlog.get_logger()


# ---------------------------------------------------------------------------
# Resource types
# ---------------------------------------------------------------------------


async def get_type_or_404(session: AsyncSession, type_id: uuid.UUID) -> ResourceType:
    resource_type = await session.get(ResourceType, type_id)
    if resource_type is None:
        raise ResourceTypeNotFound(f"Resource type {type_id} not found")
    return resource_type


async def create_type(session: AsyncSession, data: ResourceTypeCreate) -> ResourceType:
    name = data.name.strip()
    existing = await session.execute(
        select(ResourceType.id).where(func.lower(ResourceType.name) == name.lower())
    )
    if existing.first() is not None:
        raise ResourceTypeExists(f"Resource type '{name}' already exists")

    resource_type = ResourceType(name=name)
    session.add(resource_type)
    await session.flush()
    log.info("resource_type.created", type_id=str(resource_type.id), name=name)
    return resource_type


async def list_types(session: AsyncSession) -> list[ResourceType]:
    result = await session.execute(select(ResourceType).order_by(ResourceType.name))
    return list(result.scalars().all())


async def delete_type(session: AsyncSession, resource_type: ResourceType) -> None:
    in_use = await session.execute(
        select(Resource.id).where(Resource.type_id == resource_type.id).limit(1)
    )
    if in_use.first() is not None:
        raise ResourceInUse(
            f"Resource type '{resource_type.name}' still has resources; delete them first"
        )
    await session.delete(resource_type)
    await session.flush()
    log.info("resource_type.deleted", type_id=str(resource_type.id))


async def enrich_types(
    session: AsyncSession, types: Sequence[ResourceType]
) -> list[ResourceTypeRead]:
    if not types:
        return []
    result = await session.execute(
        select(Resource)
        .where(Resource.type_id.in_([t.id for t in types]))
        .order_by(Resource.name)
    )
    by_type: dict[uuid.UUID, list[ResourceSummary]] = defaultdict(list)
    for resource in result.scalars().all():
        by_type[resource.type_id].append(ResourceSummary.model_validate(resource))
    return [
        ResourceTypeRead(
            id=t.id, name=t.name, resources=by_type.get(t.id, []), created_at=t.created_at
        )
        for t in types
    ]


# ---------------------------------------------------------------------------
# Resources
# ---------------------------------------------------------------------------


async def get_resource_or_404(session: AsyncSession, resource_id: uuid.UUID) -> Resource:
    resource = await session.get(Resource, resource_id)
    if resource is None:
        raise ResourceNotFound(f"Resource {resource_id} not found")
    return resource


async def create_resource(session: AsyncSession, data: ResourceCreate) -> Resource:
    await get_type_or_404(session, data.type_id)
    resource = Resource(name=data.name.strip(), rate=data.rate, type_id=data.type_id)
    session.add(resource)
    await session.flush()
    log.info("resource.created", resource_id=str(resource.id), type_id=str(data.type_id))
    return resource


async def list_resources(
    session: AsyncSession,
    type_id: Optional[uuid.UUID] = None,
    exclude_ids: Sequence[uuid.UUID] = (),
) -> list[Resource]:
    """Resources ordered by type name then resource name."""
    stmt = select(Resource).join(ResourceType, ResourceType.id == Resource.type_id)
    if type_id is not None:
        stmt = stmt.where(Resource.type_id == type_id)
    if exclude_ids:
        stmt = stmt.where(Resource.id.not_in(list(exclude_ids)))
    result = await session.execute(stmt.order_by(ResourceType.name, Resource.name))
    return list(result.scalars().all())


async def update_resource(
    session: AsyncSession, resource: Resource, data: ResourceUpdate
) -> Resource:
    changes = data.model_dump(exclude_unset=True, exclude_none=True)
    if "type_id" in changes:
        await get_type_or_404(session, changes["type_id"])
    if "name" in changes:
        changes["name"] = changes["name"].strip()
    for key, value in changes.items():
        setattr(resource, key, value)
    session.add(resource)
    await session.flush()
    return resource


async def delete_resource(session: AsyncSession, resource: Resource) -> None:
    assigned = await session.execute(
        select(ResourceAssignment.id).where(ResourceAssignment.resource_id == resource.id).limit(1)
    )
    if assigned.first() is not None:
        raise ResourceInUse(
            f"Resource '{resource.name}' is assigned to tasks; remove the assignments first"
        )
    await session.delete(resource)
    await session.flush()
    log.info("resource.deleted", resource_id=str(resource.id))


async def enrich_resources(
    session: AsyncSession,
    resources: Sequence[Resource],
    project_ids: Optional[Sequence[uuid.UUID]] = None,
) -> list[ResourceRead]:
    """Attach each resource's type and its assignments (with task refs).

    With ``project_ids``, only assignments on those projects' tasks are listed.
    """
    if not resources:
        return []
    type_ids = {r.type_id for r in resources}
    types = await session.execute(select(ResourceType).where(ResourceType.id.in_(type_ids)))
    type_refs = {t.id: ResourceTypeRef(id=t.id, name=t.name) for t in types.scalars().all()}

    stmt = (
        select(ResourceAssignment, Task)
        .join(Task, Task.id == ResourceAssignment.task_id)
        .where(ResourceAssignment.resource_id.in_([r.id for r in resources]))
    )
    if project_ids is not None:
        stmt = stmt.where(Task.project_id.in_(list(project_ids)))
    rows = await session.execute(stmt.order_by(Task.wbs_code))
    assignments: dict[uuid.UUID, list[ResourceAssignmentRef]] = defaultdict(list)
    for assignment, task in rows.all():
        assignments[assignment.resource_id].append(
            ResourceAssignmentRef(
                id=assignment.id,
                hours=assignment.hours,
                task=TaskRef(id=task.id, title=task.title, wbs_code=task.wbs_code or None),
            )
        )

    return [
        ResourceRead(
            id=r.id,
            name=r.name,
            rate=r.rate,
            type_id=r.type_id,
            type=type_refs.get(r.type_id),
            assignments=assignments.get(r.id, []),
            created_at=r.created_at,
            updated_at=r.updated_at,
        )
        for r in resources
    ]
