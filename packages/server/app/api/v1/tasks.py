"""
Task endpoints: WBS CRUD, tree and milestone views.

- Placement is validated against the WBS hierarchy (one root, level = parent + 1, depth <= 10)
- Cost changes roll up to the root and the project's budget_rollup
- The root task cannot be deleted; tasks with children cannot be deleted
"""

from __future__ import annotations

import uuid
from typing import List

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.auth import get_current_user, require_project_role
from app.core.database import get_session
from app.models.user import User
from app.services import tasks as task_service
from prereq_shared.schemas.common import ProjectRole
from prereq_shared.schemas.tasks import (
    TaskCreate,
    TaskDeleted,
    TaskRead,
    TaskUpdate,
    WbsNode,
)

router = APIRouter()


# ---------------------------------------------------------------------------
# Project-scoped
# ---------------------------------------------------------------------------


@router.get("/projects/{project_id}/tasks", response_model=List[TaskRead])
async def list_tasks_endpoint(
    project_id: uuid.UUID,
    user: User = Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
):
    """List a project's tasks ordered by level, then WBS code."""
    await require_project_role(session, user.id, project_id, ProjectRole.VIEWER)
    return await task_service.list_tasks(session, project_id)


@router.post("/projects/{project_id}/tasks", response_model=TaskRead, status_code=201)
async def create_task_endpoint(
    project_id: uuid.UUID,
    task_in: TaskCreate,
    user: User = Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
):
    await require_project_role(session, user.id, project_id, ProjectRole.PM)
    task = await task_service.create_task(session, project_id, task_in)
    await session.commit()
    await session.refresh(task)
    return task


@router.get("/projects/{project_id}/wbs", response_model=List[WbsNode])
async def get_wbs_endpoint(
    project_id: uuid.UUID,
    user: User = Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
):
    """The project's WBS as a nested tree, root first."""
    await require_project_role(session, user.id, project_id, ProjectRole.VIEWER)
    return await task_service.get_wbs_tree(session, project_id)


@router.get("/projects/{project_id}/milestones", response_model=List[TaskRead])
async def get_milestones_endpoint(
    project_id: uuid.UUID,
    user: User = Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
):
    await require_project_role(session, user.id, project_id, ProjectRole.VIEWER)
    return await task_service.get_milestones(session, project_id)


# ---------------------------------------------------------------------------
# Task-scoped
# ---------------------------------------------------------------------------


@router.get("/tasks/{task_id}", response_model=TaskRead)
async def get_task_endpoint(
    task_id: uuid.UUID,
    user: User = Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
):
    task = await task_service.get_task_or_404(session, task_id)
    await require_project_role(session, user.id, task.project_id, ProjectRole.VIEWER)
    return task


@router.patch("/tasks/{task_id}", response_model=TaskRead)
async def update_task_endpoint(
    task_id: uuid.UUID,
    task_in: TaskUpdate,
    user: User = Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
):
    """Partial update; setting parent_id moves the task and its subtree."""
    task = await task_service.get_task_or_404(session, task_id)
    await require_project_role(session, user.id, task.project_id, ProjectRole.PM)
    task = await task_service.update_task(session, task, task_in)
    await session.commit()
    await session.refresh(task)
    return task


@router.delete("/tasks/{task_id}", response_model=TaskDeleted)
async def delete_task_endpoint(
    task_id: uuid.UUID,
    user: User = Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
):
    task = await task_service.get_task_or_404(session, task_id)
    await require_project_role(session, user.id, task.project_id, ProjectRole.PM)
    parent_id = await task_service.delete_task(session, task)
    await session.commit()
    return TaskDeleted(id=task_id, parent_id=parent_id)
