"""
Authentication and project-level authorization.

- Bearer JWT whose ``sub`` is a user id (tokens are issued out of band,
  e.g. by ``app.scripts.create_local_user``)
- Project role hierarchy ADMIN > PM > VIEWER via ``project_members``
"""

from __future__ import annotations

import uuid
from datetime import datetime, timedelta, timezone
from typing import Optional

import jwt
import structlog
from fastapi import Depends
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.ext.asyncio import AsyncSession
from sqlmodel import select

from app.core.config import get_settings
from app.core.database import get_session
from app.core.errors import AuthenticationError, PermissionDeniedError, ProjectNotFound
from app.models.membership import ProjectMember
from app.models.project import Project
from app.models.user import User
from prereq_shared.schemas.common import PROJECT_ROLE_RANK, ProjectRole

log = structlog.get_logger()
settings = get_settings()

bearer_scheme = HTTPBearer(auto_error=False)

# ---------------------------------------------------------------------------
# JWT
# ---------------------------------------------------------------------------

def create_jwt(
    user_id: uuid.UUID,
    *,
    expires_delta: timedelta | None = None,
) -> str:
    """Create a signed access token for a user."""
    now = datetime.now(timezone.utc)
    exp = now + (expires_delta or timedelta(minutes=settings.jwt_expire_minutes))
    payload = {
        "sub": str(user_id),
        "iat": now,
        "exp": exp,
        "jti": str(uuid.uuid4()),
    }
    return jwt.encode(payload, settings.secret_key, algorithm=settings.jwt_algorithm)


def decode_jwt(token: str) -> dict:
    """Decode and verify a JWT. Raises jwt.PyJWTError on failure."""
    return jwt.decode(token, settings.secret_key, algorithms=[settings.jwt_algorithm])


# ---------------------------------------------------------------------------
# Authentication dependency
# ---------------------------------------------------------------------------

async def get_current_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
    session: AsyncSession = Depends(get_session),
) -> User:
    """Resolve the calling user from the Authorization header."""
    if credentials is None or credentials.scheme.lower() != "bearer":
        raise AuthenticationError("Authentication required")

    try:
        payload = decode_jwt(credentials.credentials)
        user_id = uuid.UUID(payload["sub"])
    except (jwt.PyJWTError, KeyError, ValueError):
        raise AuthenticationError("Invalid or expired token")

    user = await session.get(User, user_id)
    if user is None or not user.is_active:
        raise AuthenticationError("User not found")

    structlog.contextvars.bind_contextvars(user_id=str(user.id))
    return user


# ---------------------------------------------------------------------------
# Project authorization
# ---------------------------------------------------------------------------

def role_satisfies(role: str, required: ProjectRole) -> bool:
    try:
        actual = ProjectRole(role)
    except ValueError:
        return False
    return PROJECT_ROLE_RANK[actual] >= PROJECT_ROLE_RANK[required]


async def get_project_role(
    session: AsyncSession, user_id: uuid.UUID, project_id: uuid.UUID
) -> Optional[str]:
    result = await session.execute(
        select(ProjectMember.role).where(
            ProjectMember.project_id == project_id,
            ProjectMember.user_id == user_id,
        )
    )
    return result.scalar_one_or_none()


async def require_project_role(
    session: AsyncSession,
    user_id: uuid.UUID,
    project_id: uuid.UUID,
    required: ProjectRole = ProjectRole.VIEWER,
) -> Project:
    """Return the project if ``user_id`` holds at least ``required`` on it."""
    project = await session.get(Project, project_id)
    if project is None:
        raise ProjectNotFound(f"Project {project_id} not found")

    role = await get_project_role(session, user_id, project_id)
    if role is None or not role_satisfies(role, required):
        log.info(
            "auth.project_access_denied",
            project_id=str(project_id),
            role=role,
            required=required.value,
        )
        raise PermissionDeniedError(
            f"{required.value} access to project {project_id} required"
        )
    return project
