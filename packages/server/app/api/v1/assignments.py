"""
Assignment endpoints: resources booked onto a task.

Access follows the task's project: VIEWER to read, PM to change.
"""

from __future__ import annotations

import uuid
from typing import List, Optional

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.auth import get_current_user, require_project_role
from app.core.database import get_session
from app.models.user import User
from app.services import assignments as assignment_service
from app.services import resources as resource_service
from app.services.tasks import get_task_or_404
from prereq_shared.schemas.common import ProjectRole
from prereq_shared.schemas.resources import (
    AssignmentBatchCreate,
    AssignmentRead,
    AssignmentUpdate,
    ResourceRead,
    TaskAssignments,
)

router = APIRouter()


@router.post(
    "/tasks/{task_id}/assignments", response_model=List[AssignmentRead], status_code=201
)
async def create_assignments_endpoint(
    task_id: uuid.UUID,
    body: AssignmentBatchCreate,
    user: User = Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
):
    task = await get_task_or_404(session, task_id)
    await require_project_role(session, user.id, task.project_id, ProjectRole.PM)
    created = await assignment_service.create_assignments(session, task, body)
    await session.commit()
    for assignment in created:
        await session.refresh(assignment)
    return await assignment_service.enrich_assignments(session, created)


@router.get("/tasks/{task_id}/assignments", response_model=TaskAssignments)
async def list_assignments_endpoint(
    task_id: uuid.UUID,
    user: User = Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
):
    task = await get_task_or_404(session, task_id)
    await require_project_role(session, user.id, task.project_id, ProjectRole.VIEWER)
    return await assignment_service.task_assignments(session, task)


@router.get("/tasks/{task_id}/assignments/available", response_model=List[ResourceRead])
async def available_resources_endpoint(
    task_id: uuid.UUID,
    type_id: Optional[uuid.UUID] = None,
    user: User = Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
):
    """Resources that can still be assigned to the task."""
    task = await get_task_or_404(session, task_id)
    await require_project_role(session, user.id, task.project_id, ProjectRole.VIEWER)
    resources = await assignment_service.available_resources(session, task.id, type_id)
    return await resource_service.enrich_resources(session, resources, [task.project_id])


async def _load(
    session: AsyncSession, user: User, assignment_id: uuid.UUID, required: ProjectRole
):
    assignment = await assignment_service.get_assignment_or_404(session, assignment_id)
    task = await get_task_or_404(session, assignment.task_id)
    await require_project_role(session, user.id, task.project_id, required)
    return assignment


@router.get("/assignments/{assignment_id}", response_model=AssignmentRead)
async def get_assignment_endpoint(
    assignment_id: uuid.UUID,
    user: User = Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
):
    assignment = await _load(session, user, assignment_id, ProjectRole.VIEWER)
    return (await assignment_service.enrich_assignments(session, [assignment]))[0]


@router.patch("/assignments/{assignment_id}", response_model=AssignmentRead)
async def update_assignment_endpoint(
    assignment_id: uuid.UUID,
    body: AssignmentUpdate,
    user: User = Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
):
    assignment = await _load(session, user, assignment_id, ProjectRole.PM)
    assignment = await assignment_service.update_assignment(session, assignment, body)
    await session.commit()
    await session.refresh(assignment)
    return (await assignment_service.enrich_assignments(session, [assignment]))[0]


@router.delete("/assignments/{assignment_id}")
async def delete_assignment_endpoint(
    assignment_id: uuid.UUID,
    user: User = Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
):
    assignment = await _load(session, user, assignment_id, ProjectRole.PM)
    await assignment_service.delete_assignment(session, assignment)
    await session.commit()
    return {"ok": True}
