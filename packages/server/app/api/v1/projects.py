"""
Project endpoints: CRUD, budget recalculation, membership.

- Creating a project auto-creates its root task and makes the caller a PM
- Reads need VIEWER, changes need PM
"""

from __future__ import annotations

import uuid
from typing import List

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.auth import get_current_user, require_project_role
from app.core.database import get_session, lock_project
from app.models.user import User
from app.services import projects as project_service
from app.services.rollup import recalculate_project
from prereq_shared.schemas.common import ProjectRole
from prereq_shared.schemas.projects import (
    BudgetRecalculation,
    ProjectCreate,
    ProjectMemberAdd,
    ProjectMemberRead,
    ProjectRead,
    ProjectUpdate,
)

router = APIRouter()


# ---------------------------------------------------------------------------
# Endpoints
# ---------------------------------------------------------------------------


@router.get("/", response_model=List[ProjectRead])
async def list_projects(
    user: User = Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
):
    """List the projects the caller is a member of."""
    projects = await project_service.list_user_projects(session, user.id)
    return await project_service.enrich_projects(session, projects)


@router.post("/", response_model=ProjectRead, status_code=201)
async def create_project(
    project_in: ProjectCreate,
    user: User = Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
):
    """Create a project with its root task; the caller becomes PM."""
    project = await project_service.create_project(session, project_in, user.id)
    await session.commit()
    await session.refresh(project)
    enriched = await project_service.enrich_projects(session, [project])
    return enriched[0]


@router.get("/{project_id}", response_model=ProjectRead)
async def get_project(
    project_id: uuid.UUID,
    user: User = Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
):
    project = await require_project_role(session, user.id, project_id, ProjectRole.VIEWER)
    enriched = await project_service.enrich_projects(session, [project])
    return enriched[0]


@router.patch("/{project_id}", response_model=ProjectRead)
async def update_project(
    project_id: uuid.UUID,
    project_in: ProjectUpdate,
    user: User = Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
):
    project = await require_project_role(session, user.id, project_id, ProjectRole.PM)
    project = await project_service.update_project(session, project, project_in)
    await session.commit()
    await session.refresh(project)
    enriched = await project_service.enrich_projects(session, [project])
    return enriched[0]


@router.delete("/{project_id}")
async def delete_project(
    project_id: uuid.UUID,
    user: User = Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
):
    """Delete a project with all of its tasks and dependencies."""
    project = await require_project_role(session, user.id, project_id, ProjectRole.PM)
    await project_service.delete_project(session, project)
    await session.commit()
    return {"ok": True}


@router.post("/{project_id}/recalculate-budgets", response_model=BudgetRecalculation)
async def recalculate_budgets(
    project_id: uuid.UUID,
    user: User = Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
):
    """Rebuild every task total and the project roll-up from direct costs."""
    await require_project_role(session, user.id, project_id, ProjectRole.PM)
    await lock_project(session, project_id)
    result = await recalculate_project(session, project_id)
    await session.commit()
    return result


# ---------------------------------------------------------------------------
# Project Membership
# ---------------------------------------------------------------------------


@router.get("/{project_id}/members", response_model=List[ProjectMemberRead])
async def list_members(
    project_id: uuid.UUID,
    user: User = Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
):
    await require_project_role(session, user.id, project_id, ProjectRole.VIEWER)
    return await project_service.list_members(session, project_id)


@router.post("/{project_id}/members", response_model=ProjectMemberRead, status_code=201)
async def add_member(
    project_id: uuid.UUID,
    body: ProjectMemberAdd,
    user: User = Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
):
    await require_project_role(session, user.id, project_id, ProjectRole.PM)
    await project_service.add_member(session, project_id, body.user_id, body.role)
    await session.commit()
    members = await project_service.list_members(session, project_id)
    return next(m for m in members if m["user_id"] == body.user_id)


@router.delete("/{project_id}/members/{user_id}")
async def remove_member(
    project_id: uuid.UUID,
    user_id: uuid.UUID,
    user: User = Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
):
    await require_project_role(session, user.id, project_id, ProjectRole.PM)
    await project_service.remove_member(session, project_id, user_id)
    await session.commit()
    return {"ok": True}
