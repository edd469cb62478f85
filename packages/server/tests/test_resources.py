"""
Resource catalogue and assignment tests.

Tests cover:
- Type and resource CRUD with duplicate, not-found and in-use checks
- Batch assignment to a task (missing resources, already assigned)
- Assignment listing, availability and cleanup when a task goes away
- HTTP surfaces: /resources and /tasks/{id}/assignments
"""

from __future__ import annotations

import uuid
from decimal import Decimal

import pytest
from httpx import AsyncClient

from app.core.errors import (
    AssignmentNotFound,
    ResourceAlreadyAssigned,
    ResourceInUse,
    ResourceNotFound,
    ResourceTypeExists,
    ResourceTypeNotFound,
)
from app.services import assignments as assignment_service
from app.services import projects as project_service
from app.services import resources as resource_service
from app.services import tasks as task_service
from app.services import wbs
from helpers import api_create_project, api_create_task, api_root_task
from prereq_shared.schemas.resources import (
    AssignmentBatchCreate,
    AssignmentUpdate,
    ResourceCreate,
    ResourceTypeCreate,
    ResourceUpdate,
)
from prereq_shared.schemas.tasks import TaskCreate


@pytest.fixture
async def catalogue(session):
    """Two types with three resources: Labour (Welder, Carpenter) and Plant (Crane)."""
    labour = await resource_service.create_type(session, ResourceTypeCreate(name="Labour"))
    plant = await resource_service.create_type(session, ResourceTypeCreate(name="Plant"))
    resources = {}
    for name, rate, rtype in (
        ("Welder", "85.00", labour),
        ("Carpenter", "70.00", labour),
        ("Crane", "250.00", plant),
    ):
        resources[name] = await resource_service.create_resource(
            session, ResourceCreate(name=name, rate=Decimal(rate), type_id=rtype.id)
        )
    return {"Labour": labour, "Plant": plant, **resources}


@pytest.fixture
async def task(session, project):
    root = await wbs.get_root(session, project.id)
    return await task_service.create_task(
        session, project.id, TaskCreate(title="Pour deck", parent_id=root.id)
    )


def batch(*pairs) -> AssignmentBatchCreate:
    return AssignmentBatchCreate(
        assignments=[{"resource_id": r.id, "hours": Decimal(h)} for r, h in pairs]
    )


# ---------------------------------------------------------------------------
# Catalogue
# ---------------------------------------------------------------------------


class TestCatalogue:
    async def test_duplicate_type_name(self, session, catalogue):
        with pytest.raises(ResourceTypeExists):
            await resource_service.create_type(session, ResourceTypeCreate(name="labour"))

    async def test_resource_needs_existing_type(self, session):
        with pytest.raises(ResourceTypeNotFound):
            await resource_service.create_resource(
                session, ResourceCreate(name="Pump", rate=Decimal("10"), type_id=uuid.uuid4())
            )

    async def test_list_ordered_by_type_then_name(self, session, catalogue):
        resources = await resource_service.list_resources(session)
        assert [r.name for r in resources] == ["Carpenter", "Welder", "Crane"]

    async def test_list_filtered_by_type(self, session, catalogue):
        resources = await resource_service.list_resources(session, type_id=catalogue["Plant"].id)
        assert [r.name for r in resources] == ["Crane"]

    async def test_types_carry_their_resources(self, session, catalogue):
        types = await resource_service.enrich_types(
            session, await resource_service.list_types(session)
        )
        assert [(t.name, [r.name for r in t.resources]) for t in types] == [
            ("Labour", ["Carpenter", "Welder"]),
            ("Plant", ["Crane"]),
        ]

    async def test_update_checks_new_type(self, session, catalogue):
        with pytest.raises(ResourceTypeNotFound):
            await resource_service.update_resource(
                session, catalogue["Crane"], ResourceUpdate(type_id=uuid.uuid4())
            )

    async def test_update_moves_resource(self, session, catalogue):
        crane = await resource_service.update_resource(
            session,
            catalogue["Crane"],
            ResourceUpdate(type_id=catalogue["Labour"].id, rate=Decimal("240")),
        )
        assert crane.type_id == catalogue["Labour"].id
        assert crane.rate == Decimal("240")

    async def test_type_with_resources_cannot_be_deleted(self, session, catalogue):
        with pytest.raises(ResourceInUse):
            await resource_service.delete_type(session, catalogue["Plant"])

    async def test_empty_type_deleted(self, session):
        spare = await resource_service.create_type(session, ResourceTypeCreate(name="Spare"))
        await resource_service.delete_type(session, spare)
        with pytest.raises(ResourceTypeNotFound):
            await resource_service.get_type_or_404(session, spare.id)

    async def test_assigned_resource_cannot_be_deleted(self, session, catalogue, task):
        await assignment_service.create_assignments(session, task, batch((catalogue["Crane"], "8")))
        with pytest.raises(ResourceInUse):
            await resource_service.delete_resource(session, catalogue["Crane"])

    async def test_missing_resource(self, session):
        with pytest.raises(ResourceNotFound):
            await resource_service.get_resource_or_404(session, uuid.uuid4())


# ---------------------------------------------------------------------------
# Assignments
# ---------------------------------------------------------------------------


class TestAssignments:
    async def test_batch_assigns_every_resource(self, session, catalogue, task):
        created = await assignment_service.create_assignments(
            session, task, batch((catalogue["Welder"], "16"), (catalogue["Crane"], "4.5"))
        )
        assert {a.resource_id for a in created} == {catalogue["Welder"].id, catalogue["Crane"].id}

        view = await assignment_service.task_assignments(session, task)
        # Labour before Plant.
        assert [a.resource.name for a in view.assignments] == ["Welder", "Crane"]
        assert view.total_hours == Decimal("20.5")
        assert view.task.id == task.id

    async def test_missing_resources_listed(self, session, catalogue, task):
        ghost = uuid.uuid4()
        with pytest.raises(ResourceNotFound) as excinfo:
            await assignment_service.create_assignments(
                session,
                task,
                AssignmentBatchCreate(
                    assignments=[
                        {"resource_id": catalogue["Welder"].id, "hours": 8},
                        {"resource_id": ghost, "hours": 8},
                    ]
                ),
            )
        assert excinfo.value.details == {"resource_ids": [str(ghost)]}
        assert await assignment_service.list_for_task(session, task.id) == []

    async def test_already_assigned_names_the_resource(self, session, catalogue, task):
        await assignment_service.create_assignments(session, task, batch((catalogue["Welder"], "8")))
        with pytest.raises(ResourceAlreadyAssigned, match="Welder"):
            await assignment_service.create_assignments(
                session, task, batch((catalogue["Carpenter"], "8"), (catalogue["Welder"], "2"))
            )
        remaining = await assignment_service.list_for_task(session, task.id)
        assert [a.resource_id for a in remaining] == [catalogue["Welder"].id]

    async def test_batch_rejects_repeated_resource(self, catalogue):
        with pytest.raises(ValueError):
            batch((catalogue["Welder"], "8"), (catalogue["Welder"], "2"))

    async def test_available_excludes_assigned(self, session, catalogue, task):
        await assignment_service.create_assignments(session, task, batch((catalogue["Welder"], "8")))
        available = await assignment_service.available_resources(session, task.id)
        assert [r.name for r in available] == ["Carpenter", "Crane"]

        plant_only = await assignment_service.available_resources(
            session, task.id, catalogue["Plant"].id
        )
        assert [r.name for r in plant_only] == ["Crane"]

    async def test_update_and_delete(self, session, catalogue, task):
        (assignment,) = await assignment_service.create_assignments(
            session, task, batch((catalogue["Crane"], "8"))
        )
        await assignment_service.update_assignment(
            session, assignment, AssignmentUpdate(hours=Decimal("12.25"))
        )
        fetched = await assignment_service.get_assignment_or_404(session, assignment.id)
        assert fetched.hours == Decimal("12.25")

        await assignment_service.delete_assignment(session, fetched)
        with pytest.raises(AssignmentNotFound):
            await assignment_service.get_assignment_or_404(session, assignment.id)

    async def test_resource_view_shows_task(self, session, catalogue, task, project):
        await assignment_service.create_assignments(session, task, batch((catalogue["Crane"], "8")))
        (crane,) = await resource_service.enrich_resources(session, [catalogue["Crane"]])
        assert crane.type.name == "Plant"
        assert [(a.task.title, a.hours) for a in crane.assignments] == [("Pour deck", Decimal("8"))]

        (hidden,) = await resource_service.enrich_resources(
            session, [catalogue["Crane"]], [uuid.uuid4()]
        )
        assert hidden.assignments == []


class TestCleanup:
    async def test_deleting_task_removes_assignments(self, session, catalogue, task):
        (assignment,) = await assignment_service.create_assignments(
            session, task, batch((catalogue["Welder"], "8"))
        )
        await task_service.delete_task(session, task)
        assert await assignment_service.list_for_task(session, assignment.task_id) == []
        # The resource is free to delete again.
        await resource_service.delete_resource(session, catalogue["Welder"])

    async def test_deleting_project_removes_assignments(self, session, catalogue, task, project):
        await assignment_service.create_assignments(session, task, batch((catalogue["Crane"], "8")))
        await project_service.delete_project(session, project)
        await resource_service.delete_resource(session, catalogue["Crane"])


# ---------------------------------------------------------------------------
# HTTP
# ---------------------------------------------------------------------------


@pytest.fixture
async def api_setup(client: AsyncClient, auth_headers):
    project = await api_create_project(client, auth_headers)
    root = await api_root_task(client, auth_headers, project["id"])
    task = await api_create_task(client, auth_headers, project["id"], root["id"], title="Erect steel")

    rtype = await client.post(
        "/api/v1/resources/types", json={"name": "Labour"}, headers=auth_headers
    )
    assert rtype.status_code == 201, rtype.text
    resource = await client.post(
        "/api/v1/resources/",
        json={"name": "Rigger", "rate": "65.00", "type_id": rtype.json()["id"]},
        headers=auth_headers,
    )
    assert resource.status_code == 201, resource.text
    return project, task, rtype.json(), resource.json()


@pytest.mark.asyncio
async def test_assignment_lifecycle(client: AsyncClient, auth_headers, api_setup):
    _, task, _, resource = api_setup
    created = await client.post(
        f"/api/v1/tasks/{task['id']}/assignments",
        json={"assignments": [{"resource_id": resource["id"], "hours": 40}]},
        headers=auth_headers,
    )
    assert created.status_code == 201, created.text
    (assignment,) = created.json()
    assert assignment["resource"]["name"] == "Rigger"
    assert assignment["resource_type"]["name"] == "Labour"
    assert assignment["task"]["title"] == "Erect steel"

    listed = await client.get(f"/api/v1/tasks/{task['id']}/assignments", headers=auth_headers)
    assert listed.status_code == 200
    assert Decimal(listed.json()["total_hours"]) == Decimal("40")

    again = await client.post(
        f"/api/v1/tasks/{task['id']}/assignments",
        json={"assignments": [{"resource_id": resource["id"], "hours": 1}]},
        headers=auth_headers,
    )
    assert again.status_code == 409
    assert again.json()["error"]["code"] == "RESOURCE_ALREADY_ASSIGNED"

    updated = await client.patch(
        f"/api/v1/assignments/{assignment['id']}", json={"hours": 12.5}, headers=auth_headers
    )
    assert updated.status_code == 200
    assert Decimal(updated.json()["hours"]) == Decimal("12.5")

    in_use = await client.delete(f"/api/v1/resources/{resource['id']}", headers=auth_headers)
    assert in_use.status_code == 409
    assert in_use.json()["error"]["code"] == "RESOURCE_IN_USE"

    deleted = await client.delete(f"/api/v1/assignments/{assignment['id']}", headers=auth_headers)
    assert deleted.status_code == 200
    missing = await client.get(f"/api/v1/assignments/{assignment['id']}", headers=auth_headers)
    assert missing.status_code == 404
    assert missing.json()["error"]["code"] == "ASSIGNMENT_NOT_FOUND"


@pytest.mark.asyncio
async def test_hours_out_of_range(client: AsyncClient, auth_headers, api_setup):
    _, task, _, resource = api_setup
    for hours in (0, 10000):
        response = await client.post(
            f"/api/v1/tasks/{task['id']}/assignments",
            json={"assignments": [{"resource_id": resource["id"], "hours": hours}]},
            headers=auth_headers,
        )
        assert response.status_code == 422


@pytest.mark.asyncio
async def test_assign_to_missing_task(client: AsyncClient, auth_headers, api_setup):
    _, _, _, resource = api_setup
    response = await client.post(
        f"/api/v1/tasks/{uuid.uuid4()}/assignments",
        json={"assignments": [{"resource_id": resource["id"], "hours": 8}]},
        headers=auth_headers,
    )
    assert response.status_code == 404
    assert response.json()["error"]["code"] == "TASK_NOT_FOUND"


@pytest.mark.asyncio
async def test_viewer_reads_but_cannot_assign(
    client: AsyncClient, auth_headers, other_user, other_headers, api_setup
):
    project, task, _, resource = api_setup
    await client.post(
        f"/api/v1/projects/{project['id']}/members",
        json={"user_id": str(other_user.id), "role": "VIEWER"},
        headers=auth_headers,
    )
    denied = await client.post(
        f"/api/v1/tasks/{task['id']}/assignments",
        json={"assignments": [{"resource_id": resource["id"], "hours": 8}]},
        headers=other_headers,
    )
    assert denied.status_code == 403

    available = await client.get(
        f"/api/v1/tasks/{task['id']}/assignments/available", headers=other_headers
    )
    assert available.status_code == 200
    assert [r["name"] for r in available.json()] == ["Rigger"]


@pytest.mark.asyncio
async def test_outsider_cannot_read_assignments(
    client: AsyncClient, other_headers, api_setup
):
    _, task, _, _ = api_setup
    response = await client.get(f"/api/v1/tasks/{task['id']}/assignments", headers=other_headers)
    assert response.status_code == 403


@pytest.mark.asyncio
async def test_type_endpoints(client: AsyncClient, auth_headers, api_setup):
    _, _, rtype, _ = api_setup
    duplicate = await client.post(
        "/api/v1/resources/types", json={"name": "Labour"}, headers=auth_headers
    )
    assert duplicate.status_code == 409
    assert duplicate.json()["error"]["code"] == "RESOURCE_TYPE_ALREADY_EXISTS"

    listed = await client.get("/api/v1/resources/types", headers=auth_headers)
    assert [(t["name"], [r["name"] for r in t["resources"]]) for t in listed.json()] == [
        ("Labour", ["Rigger"])
    ]

    in_use = await client.delete(f"/api/v1/resources/types/{rtype['id']}", headers=auth_headers)
    assert in_use.status_code == 409

    missing = await client.get(f"/api/v1/resources/types/{uuid.uuid4()}", headers=auth_headers)
    assert missing.status_code == 404
    assert missing.json()["error"]["code"] == "RESOURCE_TYPE_NOT_FOUND"


@pytest.mark.asyncio
async def test_catalogue_requires_login(client: AsyncClient):
    response = await client.get("/api/v1/resources/")
    assert response.status_code == 401
