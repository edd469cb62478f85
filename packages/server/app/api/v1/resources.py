"""
Resource catalogue endpoints.

The catalogue is shared across projects: any signed-in user may read and
maintain it. Assignment lists only show tasks of the caller's projects.
"""

from __future__ import annotations

import uuid
from typing import List, Optional

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.auth import get_current_user
from app.core.database import get_session
from app.models.user import User
from app.services import resources as resource_service
from app.services.projects import list_user_projects
from prereq_shared.schemas.resources import (
    ResourceCreate,
    ResourceRead,
    ResourceTypeCreate,
    ResourceTypeRead,
    ResourceUpdate,
)

router = APIRouter()


async def _visible_projects(session: AsyncSession, user: User) -> list[uuid.UUID]:
    return [p.id for p in await list_user_projects(session, user.id)]


# ---------------------------------------------------------------------------
# Resource types
# ---------------------------------------------------------------------------


@router.post("/types", response_model=ResourceTypeRead, status_code=201)
async def create_type_endpoint(
    body: ResourceTypeCreate,
    user: User = Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
):
    resource_type = await resource_service.create_type(session, body)
    await session.commit()
    await session.refresh(resource_type)
    return (await resource_service.enrich_types(session, [resource_type]))[0]


@router.get("/types", response_model=List[ResourceTypeRead])
async def list_types_endpoint(
    user: User = Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
):
    """Resource types by name, each with its resources."""
    types = await resource_service.list_types(session)
    return await resource_service.enrich_types(session, types)


@router.get("/types/{type_id}", response_model=ResourceTypeRead)
async def get_type_endpoint(
    type_id: uuid.UUID,
    user: User = Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
):
    resource_type = await resource_service.get_type_or_404(session, type_id)
    return (await resource_service.enrich_types(session, [resource_type]))[0]


@router.delete("/types/{type_id}")
async def delete_type_endpoint(
    type_id: uuid.UUID,
    user: User = Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
):
    resource_type = await resource_service.get_type_or_404(session, type_id)
    await resource_service.delete_type(session, resource_type)
    await session.commit()
    return {"ok": True}


# ---------------------------------------------------------------------------
# Resources
# ---------------------------------------------------------------------------


@router.post("/", response_model=ResourceRead, status_code=201)
async def create_resource_endpoint(
    body: ResourceCreate,
    user: User = Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
):
    resource = await resource_service.create_resource(session, body)
    await session.commit()
    await session.refresh(resource)
    return (await resource_service.enrich_resources(session, [resource], []))[0]


@router.get("/", response_model=List[ResourceRead])
async def list_resources_endpoint(
    type_id: Optional[uuid.UUID] = None,
    user: User = Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
):
    resources = await resource_service.list_resources(session, type_id=type_id)
    return await resource_service.enrich_resources(
        session, resources, await _visible_projects(session, user)
    )


@router.get("/{resource_id}", response_model=ResourceRead)
async def get_resource_endpoint(
    resource_id: uuid.UUID,
    user: User = Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
):
    resource = await resource_service.get_resource_or_404(session, resource_id)
    enriched = await resource_service.enrich_resources(
        session, [resource], await _visible_projects(session, user)
    )
    return enriched[0]


@router.patch("/{resource_id}", response_model=ResourceRead)
async def update_resource_endpoint(
    resource_id: uuid.UUID,
    body: ResourceUpdate,
    user: User = Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
):
    resource = await resource_service.get_resource_or_404(session, resource_id)
    resource = await resource_service.update_resource(session, resource, body)
    await session.commit()
    await session.refresh(resource)
    enriched = await resource_service.enrich_resources(
        session, [resource], await _visible_projects(session, user)
    )
    return enriched[0]


@router.delete("/{resource_id}")
async def delete_resource_endpoint(
    resource_id: uuid.UUID,
    user: User = Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
):
    resource = await resource_service.get_resource_or_404(session, resource_id)
    await resource_service.delete_resource(session, resource)
    await session.commit()
    return {"ok": True}
