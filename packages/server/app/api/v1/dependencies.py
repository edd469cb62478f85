"""
Dependency endpoints: precedence edges between tasks of one project.

Two surfaces over the same edges:
- /dependencies: edge-centric CRUD
- /tasks/{task_id}/relations: edges owned by a predecessor task

Every creation path runs the full checker (self-link, endpoints, duplicate,
reverse, cycle).
"""

from __future__ import annotations

import uuid
from typing import List, Optional

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.auth import get_current_user, require_project_role
from app.core.database import get_session
from app.models.user import User
from app.services import dependencies as dependency_service
from app.services.projects import list_user_projects
from app.services.tasks import get_task_or_404
from prereq_shared.schemas.common import ProjectRole
from prereq_shared.schemas.dependencies import (
    DependencyCreate,
    DependencyRead,
    DependencyUpdate,
    RelationCreate,
    TaskDependencies,
)

router = APIRouter()


# ---------------------------------------------------------------------------
# Dependencies
# ---------------------------------------------------------------------------


@router.post("/dependencies", response_model=DependencyRead, status_code=201)
async def create_dependency_endpoint(
    body: DependencyCreate,
    user: User = Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
):
    dependency_service.check_self_link(body.predecessor_id, body.successor_id)
    predecessor = await get_task_or_404(session, body.predecessor_id)
    await require_project_role(session, user.id, predecessor.project_id, ProjectRole.PM)
    dep = await dependency_service.create_from_schema(session, body)
    await session.commit()
    await session.refresh(dep)
    return await dependency_service.enrich_dependency(session, dep)


@router.get("/dependencies", response_model=List[DependencyRead])
async def list_dependencies_endpoint(
    project_id: Optional[uuid.UUID] = None,
    user: User = Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
):
    """Edges of one project, or of every project the caller belongs to."""
    if project_id is not None:
        await require_project_role(session, user.id, project_id, ProjectRole.VIEWER)
        project_ids = [project_id]
    else:
        project_ids = [p.id for p in await list_user_projects(session, user.id)]
    deps = await dependency_service.list_dependencies(session, project_ids)
    return await dependency_service.enrich_dependencies(session, deps)


@router.get("/dependencies/{dependency_id}", response_model=DependencyRead)
async def get_dependency_endpoint(
    dependency_id: uuid.UUID,
    user: User = Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
):
    dep = await dependency_service.get_dependency_or_404(session, dependency_id)
    await require_project_role(session, user.id, dep.project_id, ProjectRole.VIEWER)
    return await dependency_service.enrich_dependency(session, dep)


@router.patch("/dependencies/{dependency_id}", response_model=DependencyRead)
async def update_dependency_endpoint(
    dependency_id: uuid.UUID,
    body: DependencyUpdate,
    user: User = Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
):
    """Change an edge's type or lag; endpoints are immutable."""
    dep = await dependency_service.get_dependency_or_404(session, dependency_id)
    await require_project_role(session, user.id, dep.project_id, ProjectRole.PM)
    dep = await dependency_service.update_dependency(session, dep, body)
    await session.commit()
    await session.refresh(dep)
    return await dependency_service.enrich_dependency(session, dep)


@router.delete("/dependencies/{dependency_id}")
async def delete_dependency_endpoint(
    dependency_id: uuid.UUID,
    user: User = Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
):
    dep = await dependency_service.get_dependency_or_404(session, dependency_id)
    await require_project_role(session, user.id, dep.project_id, ProjectRole.PM)
    await dependency_service.delete_dependency(session, dep)
    await session.commit()
    return {"ok": True}


@router.get("/tasks/{task_id}/dependencies", response_model=TaskDependencies)
async def get_task_dependencies_endpoint(
    task_id: uuid.UUID,
    user: User = Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
):
    task = await get_task_or_404(session, task_id)
    await require_project_role(session, user.id, task.project_id, ProjectRole.VIEWER)
    edges = await dependency_service.get_task_dependencies(session, task_id)
    return TaskDependencies(
        as_predecessor=await dependency_service.enrich_dependencies(session, edges["as_predecessor"]),
        as_successor=await dependency_service.enrich_dependencies(session, edges["as_successor"]),
    )


# ---------------------------------------------------------------------------
# Relations (predecessor-scoped)
# ---------------------------------------------------------------------------


@router.post("/tasks/{task_id}/relations", response_model=DependencyRead, status_code=201)
async def create_relation_endpoint(
    task_id: uuid.UUID,
    body: RelationCreate,
    user: User = Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
):
    """Add an edge from this task to ``successor_id``."""
    dependency_service.check_self_link(task_id, body.successor_id)
    task = await get_task_or_404(session, task_id)
    await require_project_role(session, user.id, task.project_id, ProjectRole.PM)
    dep = await dependency_service.create_dependency(
        session, task_id, body.successor_id, body.type, body.lag
    )
    await session.commit()
    await session.refresh(dep)
    return await dependency_service.enrich_dependency(session, dep)


@router.patch("/tasks/{task_id}/relations/{dependency_id}", response_model=DependencyRead)
async def update_relation_endpoint(
    task_id: uuid.UUID,
    dependency_id: uuid.UUID,
    body: DependencyUpdate,
    user: User = Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
):
    task = await get_task_or_404(session, task_id)
    await require_project_role(session, user.id, task.project_id, ProjectRole.PM)
    dep = await dependency_service.get_relation_or_404(session, task_id, dependency_id)
    dep = await dependency_service.update_dependency(session, dep, body)
    await session.commit()
    await session.refresh(dep)
    return await dependency_service.enrich_dependency(session, dep)


@router.delete("/tasks/{task_id}/relations/{dependency_id}")
async def delete_relation_endpoint(
    task_id: uuid.UUID,
    dependency_id: uuid.UUID,
    user: User = Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
):
    task = await get_task_or_404(session, task_id)
    await require_project_role(session, user.id, task.project_id, ProjectRole.PM)
    dep = await dependency_service.get_relation_or_404(session, task_id, dependency_id)
    await dependency_service.delete_dependency(session, dep)
    await session.commit()
    return {"ok": True}
