"""
Project service: business logic for project CRUD and membership.
"""

from __future__ import annotations

import uuid
from typing import Sequence

import structlog
from sqlalchemy import case, delete, func
from sqlalchemy.ext.asyncio import AsyncSession
from sqlmodel import select

from app.core.errors import MemberExists, MemberNotFound, UserNotFound
from app.models.dependency import TaskDependency
from app.models.membership import ProjectMember
from app.models.project import Project
from app.models.task import Task
from app.models.user import User
from app.services import assignments as assignment_service
from app.services.tasks import ensure_project_root, root_title
from prereq_shared.schemas.common import ProjectRole
from prereq_shared.schemas.projects import ProjectCreate, ProjectUpdate

log = structlog.get_logger()


async def create_project(
    session: AsyncSession, project_in: ProjectCreate, creator_id: uuid.UUID
) -> Project:
    """Create a project with its root task and make the creator a PM."""
    project = Project(**project_in.model_dump(), created_by=creator_id)
    session.add(project)
    await session.flush()  # get project.id

    await ensure_project_root(session, project)
    session.add(
        ProjectMember(project_id=project.id, user_id=creator_id, role=ProjectRole.PM.value)
    )
    await session.flush()

    log.info("project.created", project_id=str(project.id), name=project.name)
    return project


async def list_user_projects(session: AsyncSession, user_id: uuid.UUID) -> list[Project]:
    """Projects the user is a member of, newest first."""
    result = await session.execute(
        select(Project)
        .join(ProjectMember, ProjectMember.project_id == Project.id)
        .where(ProjectMember.user_id == user_id)
        .order_by(Project.created_at.desc())
    )
    return list(result.scalars().all())


async def update_project(
    session: AsyncSession, project: Project, project_in: ProjectUpdate
) -> Project:
    update_data = project_in.model_dump(exclude_unset=True)
    for key in ("name", "budget"):
        if key in update_data and update_data[key] is None:
            update_data.pop(key)
    for key, value in update_data.items():
        setattr(project, key, value)

    if "name" in update_data:
        root = await ensure_project_root(session, project)
        root.title = root_title(project)
        session.add(root)

    session.add(project)
    await session.flush()
    return project


async def delete_project(session: AsyncSession, project: Project) -> None:
    """Delete a project and everything hanging off it."""
    project_id = project.id
    await session.execute(delete(TaskDependency).where(TaskDependency.project_id == project_id))
    await assignment_service.delete_for_project(session, project_id)
    # Children first so parent foreign keys never dangle.
    levels = await session.execute(
        select(Task.level).where(Task.project_id == project_id).distinct()
    )
    for level in sorted(levels.scalars().all(), reverse=True):
        await session.execute(
            delete(Task).where(Task.project_id == project_id, Task.level == level)
        )
    await session.execute(delete(ProjectMember).where(ProjectMember.project_id == project_id))
    await session.delete(project)
    await session.flush()
    log.info("project.deleted", project_id=str(project_id))


# ---------------------------------------------------------------------------
# Counts
# ---------------------------------------------------------------------------


async def task_counts(
    session: AsyncSession, project_ids: Sequence[uuid.UUID]
) -> dict[uuid.UUID, tuple[int, int]]:
    """project_id -> (tasks excluding the root, milestones)."""
    if not project_ids:
        return {}
    stmt = (
        select(
            Task.project_id,
            func.count().label("cnt"),
            func.sum(case((Task.is_milestone.is_(True), 1), else_=0)).label("milestones"),
        )
        .where(Task.project_id.in_(list(project_ids)), Task.level > 0)
        .group_by(Task.project_id)
    )
    result = await session.execute(stmt)
    return {row.project_id: (row.cnt, int(row.milestones or 0)) for row in result}


def project_dict(project: Project, counts: dict[uuid.UUID, tuple[int, int]]) -> dict:
    task_count, milestone_count = counts.get(project.id, (0, 0))
    return {
        "id": project.id,
        "name": project.name,
        "client": project.client,
        "start_date": project.start_date,
        "end_date": project.end_date,
        "budget": project.budget,
        "budget_rollup": project.budget_rollup,
        "task_count": task_count,
        "milestone_count": milestone_count,
        "created_at": project.created_at,
        "updated_at": project.updated_at,
    }


async def enrich_projects(session: AsyncSession, projects: list[Project]) -> list[dict]:
    counts = await task_counts(session, [p.id for p in projects])
    return [project_dict(p, counts) for p in projects]


# ---------------------------------------------------------------------------
# Membership
# ---------------------------------------------------------------------------


async def list_members(session: AsyncSession, project_id: uuid.UUID) -> list[dict]:
    result = await session.execute(
        select(ProjectMember, User)
        .join(User, User.id == ProjectMember.user_id)
        .where(ProjectMember.project_id == project_id)
        .order_by(ProjectMember.added_at)
    )
    return [
        {
            "user_id": user.id,
            "email": user.email,
            "full_name": user.full_name,
            "role": member.role,
            "added_at": member.added_at,
        }
        for member, user in result.all()
    ]


async def add_member(
    session: AsyncSession, project_id: uuid.UUID, user_id: uuid.UUID, role: ProjectRole
) -> ProjectMember:
    if await session.get(User, user_id) is None:
        raise UserNotFound(f"User {user_id} not found")
    existing = await session.get(ProjectMember, (project_id, user_id))
    if existing is not None:
        raise MemberExists(f"User {user_id} is already a member of project {project_id}")

    member = ProjectMember(project_id=project_id, user_id=user_id, role=role.value)
    session.add(member)
    await session.flush()
    log.info("project.member_added", project_id=str(project_id), user_id=str(user_id), role=role.value)
    return member


async def remove_member(
    session: AsyncSession, project_id: uuid.UUID, user_id: uuid.UUID
) -> None:
    member = await session.get(ProjectMember, (project_id, user_id))
    if member is None:
        raise MemberNotFound(f"User {user_id} is not a member of project {project_id}")
    await session.delete(member)
    await session.flush()
    log.info("project.member_removed", project_id=str(project_id), user_id=str(user_id))
