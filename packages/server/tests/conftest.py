"""
Shared fixtures: an in-memory SQLite database, an HTTP client wired to it,
and a couple of authenticated users.
"""

import os

# Must be set before the app (and its engine) is imported.
os.environ["PREREQ_DATABASE_URL"] = "sqlite+aiosqlite://"
os.environ["PREREQ_LOG_FORMAT"] = "console"

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy import event
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool
from sqlmodel import SQLModel

from app.core.auth import create_jwt
from app.core.database import get_session
from app.main import app
from app.models.user import User
from app.services import projects as project_service
from prereq_shared.schemas.projects import ProjectCreate


@pytest.fixture
async def engine():
    engine = create_async_engine(
        "sqlite+aiosqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )

    # Let SQLAlchemy issue BEGIN itself so SAVEPOINTs (per-row import
    # isolation) behave as they do on Postgres.
    @event.listens_for(engine.sync_engine, "connect")
    def _no_driver_begin(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None

    @event.listens_for(engine.sync_engine, "begin")
    def _explicit_begin(conn):
        conn.exec_driver_sql("BEGIN")

    async with engine.begin() as conn:
        await conn.run_sync(SQLModel.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


@pytest.fixture
async def session(session_factory):
    """A session for service-level tests (never mixed with the HTTP client)."""
    async with session_factory() as session:
        yield session


@pytest.fixture
async def client(session_factory):
    async def override_get_session():
        async with session_factory() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    app.dependency_overrides[get_session] = override_get_session
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac
    app.dependency_overrides.clear()


async def _make_user(session_factory, email: str, full_name: str) -> User:
    async with session_factory() as session:
        user = User(email=email, full_name=full_name)
        session.add(user)
        await session.commit()
        await session.refresh(user)
        return user


@pytest.fixture
async def user(session_factory) -> User:
    return await _make_user(session_factory, "pm@prereq.dev", "Pat Manager")


@pytest.fixture
async def other_user(session_factory) -> User:
    return await _make_user(session_factory, "viewer@prereq.dev", "Vic Viewer")


@pytest.fixture
def auth_headers(user) -> dict:
    return {"Authorization": f"Bearer {create_jwt(user.id)}"}


@pytest.fixture
def other_headers(other_user) -> dict:
    return {"Authorization": f"Bearer {create_jwt(other_user.id)}"}


@pytest.fixture
async def owner(session) -> User:
    """A user created through the service-level session."""
    user = User(email="owner@prereq.dev", full_name="Olive Owner")
    session.add(user)
    await session.flush()
    return user


@pytest.fixture
async def project(session, owner):
    """A fresh project (with its root task) owned by ``owner``."""
    return await project_service.create_project(
        session, ProjectCreate(name="Bridge Rehab"), owner.id
    )
