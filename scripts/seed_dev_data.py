#!/usr/bin/env python3
"""Seed a development database with a user, a demo project, a WBS, dependencies
and a small resource catalogue booked onto the build tasks.

Usage:
    uv run python scripts/seed_dev_data.py

Requires PREREQ_DATABASE_URL (or defaults to localhost). Creates the tables
if they are missing; use alembic for anything beyond local development.
"""

import asyncio
import os
import sys
from datetime import date
from decimal import Decimal

from sqlmodel import select

ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), ".."))
sys.path.insert(0, os.path.join(ROOT, "packages", "server"))
sys.path.insert(0, os.path.join(ROOT, "packages", "shared"))

from app.core.auth import create_jwt  # noqa: E402
from app.core.database import engine, get_session_context, init_db  # noqa: E402
from app.models.user import User  # noqa: E402
from app.services import assignments as assignment_service  # noqa: E402
from app.services import dependencies as dependency_service  # noqa: E402
from app.services import projects as project_service  # noqa: E402
from app.services import resources as resource_service  # noqa: E402
from app.services import tasks as task_service  # noqa: E402
from prereq_shared.schemas.projects import ProjectCreate  # noqa: E402
from prereq_shared.schemas.resources import (  # noqa: E402
    AssignmentBatchCreate,
    ResourceCreate,
    ResourceTypeCreate,
)
from prereq_shared.schemas.tasks import TaskCreate  # noqa: E402

SEED_EMAIL = "alice@prereq.dev"

# (title, parent title, cost_labor, cost_material, milestone)
WBS = [
    ("Design", None, "0", "0", False),
    ("Requirements", "Design", "4000", "0", False),
    ("Architecture", "Design", "6500", "500", False),
    ("Build", None, "0", "0", False),
    ("Foundations", "Build", "12000", "18000", False),
    ("Framing", "Build", "9000", "14000", False),
    ("Handover", None, "0", "0", True),
]

# predecessor -> successor, finish-to-start
LINKS = [
    ("Requirements", "Architecture"),
    ("Architecture", "Foundations"),
    ("Foundations", "Framing"),
    ("Framing", "Handover"),
]

# (type, resource, hourly rate)
RESOURCES = [
    ("Labour", "Carpenter", "68.00"),
    ("Labour", "Concreter", "72.00"),
    ("Plant", "Mobile crane", "240.00"),
]

# task -> [(resource, hours)]
BOOKINGS = {
    "Foundations": [("Concreter", "120"), ("Mobile crane", "16")],
    "Framing": [("Carpenter", "200"), ("Mobile crane", "24")],
}


async def seed_catalogue(session) -> dict:
    """Resources by name, reusing types and resources from earlier runs."""
    types = {t.name: t for t in await resource_service.list_types(session)}
    existing = {r.name: r for r in await resource_service.list_resources(session)}
    for type_name, name, rate in RESOURCES:
        if type_name not in types:
            types[type_name] = await resource_service.create_type(
                session, ResourceTypeCreate(name=type_name)
            )
        if name not in existing:
            existing[name] = await resource_service.create_resource(
                session,
                ResourceCreate(name=name, rate=Decimal(rate), type_id=types[type_name].id),
            )
    return existing


async def seed():
    await init_db()

    async with get_session_context() as session:
        result = await session.execute(select(User).where(User.email == SEED_EMAIL))
        user = result.scalar_one_or_none()
        if user is None:
            user = User(email=SEED_EMAIL, full_name="Alice")
            session.add(user)
            await session.flush()

        project = await project_service.create_project(
            session,
            ProjectCreate(
                name="Warehouse Extension",
                client="Acme Logistics",
                start_date=date(2026, 1, 5),
                end_date=date(2026, 9, 30),
                budget=Decimal("75000"),
            ),
            user.id,
        )

        root = await task_service.ensure_project_root(session, project)
        by_title = {}
        for title, parent, labor, material, milestone in WBS:
            parent_id = by_title[parent].id if parent else root.id
            task = await task_service.create_task(
                session,
                project.id,
                TaskCreate(
                    title=title,
                    parent_id=parent_id,
                    cost_labor=Decimal(labor),
                    cost_material=Decimal(material),
                    is_milestone=milestone,
                ),
            )
            by_title[title] = task

        for predecessor, successor in LINKS:
            await dependency_service.create_dependency(
                session, by_title[predecessor].id, by_title[successor].id
            )

        resources = await seed_catalogue(session)
        for title, bookings in BOOKINGS.items():
            await assignment_service.create_assignments(
                session,
                by_title[title],
                AssignmentBatchCreate(
                    assignments=[
                        {"resource_id": resources[name].id, "hours": Decimal(hours)}
                        for name, hours in bookings
                    ]
                ),
            )

        await session.refresh(project)
        print(f"Seeded project {project.name} ({project.id})")
        print(f"  tasks: {len(WBS)}, dependencies: {len(LINKS)}")
        print(f"  resources: {len(resources)}, booked tasks: {len(BOOKINGS)}")
        print(f"  budget roll-up: {project.budget_rollup}")
        print(f"  token for {SEED_EMAIL}: {create_jwt(user.id)}")

    await engine.dispose()


if __name__ == "__main__":
    asyncio.run(seed())
