"""
Integration tests for project endpoints and membership.

Tests cover:
- Project CRUD (root bootstrapping, root renaming, cascading delete)
- Membership and the ADMIN > PM > VIEWER role hierarchy
- Budget recalculation
"""

from __future__ import annotations

import uuid
from decimal import Decimal

import pytest
from httpx import AsyncClient

from helpers import api_create_project, api_create_task, api_root_task


# ---------------------------------------------------------------------------
# CRUD
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
async def test_create_project(client: AsyncClient, auth_headers, user):
    project = await api_create_project(
        client,
        auth_headers,
        name="Ring Road",
        client="County Council",
        start_date="2026-02-01",
        end_date="2026-12-18",
        budget="250000",
    )
    assert project["name"] == "Ring Road"
    assert Decimal(project["budget"]) == Decimal("250000")
    assert Decimal(project["budget_rollup"]) == Decimal("0")
    assert project["task_count"] == 0

    members = await client.get(f"/api/v1/projects/{project['id']}/members", headers=auth_headers)
    assert [(m["user_id"], m["role"]) for m in members.json()] == [(str(user.id), "PM")]


@pytest.mark.asyncio
async def test_project_dates_validated(client: AsyncClient, auth_headers):
    response = await client.post(
        "/api/v1/projects/",
        json={"name": "Backwards", "start_date": "2026-05-01", "end_date": "2026-04-01"},
        headers=auth_headers,
    )
    assert response.status_code == 422


@pytest.mark.asyncio
async def test_list_only_member_projects(client: AsyncClient, auth_headers, other_headers):
    await api_create_project(client, auth_headers, name="Mine")
    await api_create_project(client, other_headers, name="Theirs")

    response = await client.get("/api/v1/projects/", headers=auth_headers)
    assert [p["name"] for p in response.json()] == ["Mine"]


@pytest.mark.asyncio
async def test_non_member_forbidden(client: AsyncClient, auth_headers, other_headers):
    project = await api_create_project(client, auth_headers)
    response = await client.get(f"/api/v1/projects/{project['id']}", headers=other_headers)
    assert response.status_code == 403
    assert response.json()["error"]["code"] == "PERMISSION_DENIED"


@pytest.mark.asyncio
async def test_unknown_project(client: AsyncClient, auth_headers):
    response = await client.get(f"/api/v1/projects/{uuid.uuid4()}", headers=auth_headers)
    assert response.status_code == 404
    assert response.json()["error"]["code"] == "PROJECT_NOT_FOUND"


@pytest.mark.asyncio
async def test_rename_updates_root_title(client: AsyncClient, auth_headers):
    project = await api_create_project(client, auth_headers, name="Old Name")
    response = await client.patch(
        f"/api/v1/projects/{project['id']}", json={"name": "New Name"}, headers=auth_headers
    )
    assert response.status_code == 200
    assert response.json()["name"] == "New Name"

    root = await api_root_task(client, auth_headers, project["id"])
    assert root["title"] == "New Name (Project Root)"


@pytest.mark.asyncio
async def test_delete_project(client: AsyncClient, auth_headers):
    project = await api_create_project(client, auth_headers)
    root = await api_root_task(client, auth_headers, project["id"])
    a = await api_create_task(client, auth_headers, project["id"], root["id"], title="A")
    b = await api_create_task(client, auth_headers, project["id"], a["id"], title="B")
    await client.post(
        f"/api/v1/tasks/{a['id']}/relations", json={"successor_id": root["id"]}, headers=auth_headers
    )

    response = await client.delete(f"/api/v1/projects/{project['id']}", headers=auth_headers)
    assert response.status_code == 200

    gone = await client.get(f"/api/v1/projects/{project['id']}", headers=auth_headers)
    assert gone.status_code == 404
    orphan = await client.get(f"/api/v1/tasks/{b['id']}", headers=auth_headers)
    assert orphan.status_code == 404


# ---------------------------------------------------------------------------
# Membership
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
async def test_viewer_reads_but_cannot_write(
    client: AsyncClient, auth_headers, other_user, other_headers
):
    project = await api_create_project(client, auth_headers)
    added = await client.post(
        f"/api/v1/projects/{project['id']}/members",
        json={"user_id": str(other_user.id), "role": "VIEWER"},
        headers=auth_headers,
    )
    assert added.status_code == 201
    assert added.json()["email"] == "viewer@prereq.dev"

    read = await client.get(f"/api/v1/projects/{project['id']}/wbs", headers=other_headers)
    assert read.status_code == 200

    root = read.json()[0]
    write = await client.post(
        f"/api/v1/projects/{project['id']}/tasks",
        json={"title": "Sneaky", "parent_id": root["id"]},
        headers=other_headers,
    )
    assert write.status_code == 403


@pytest.mark.asyncio
async def test_member_added_twice(client: AsyncClient, auth_headers, other_user):
    project = await api_create_project(client, auth_headers)
    body = {"user_id": str(other_user.id), "role": "PM"}
    first = await client.post(f"/api/v1/projects/{project['id']}/members", json=body, headers=auth_headers)
    assert first.status_code == 201
    second = await client.post(f"/api/v1/projects/{project['id']}/members", json=body, headers=auth_headers)
    assert second.status_code == 409
    assert second.json()["error"]["code"] == "MEMBER_ALREADY_EXISTS"


@pytest.mark.asyncio
async def test_add_unknown_user(client: AsyncClient, auth_headers):
    project = await api_create_project(client, auth_headers)
    response = await client.post(
        f"/api/v1/projects/{project['id']}/members",
        json={"user_id": str(uuid.uuid4())},
        headers=auth_headers,
    )
    assert response.status_code == 404
    assert response.json()["error"]["code"] == "USER_NOT_FOUND"


@pytest.mark.asyncio
async def test_remove_member(client: AsyncClient, auth_headers, other_user, other_headers):
    project = await api_create_project(client, auth_headers)
    await client.post(
        f"/api/v1/projects/{project['id']}/members",
        json={"user_id": str(other_user.id), "role": "PM"},
        headers=auth_headers,
    )
    response = await client.delete(
        f"/api/v1/projects/{project['id']}/members/{other_user.id}", headers=auth_headers
    )
    assert response.status_code == 200

    denied = await client.get(f"/api/v1/projects/{project['id']}", headers=other_headers)
    assert denied.status_code == 403

    again = await client.delete(
        f"/api/v1/projects/{project['id']}/members/{other_user.id}", headers=auth_headers
    )
    assert again.status_code == 404


# ---------------------------------------------------------------------------
# Budget recalculation
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
async def test_recalculate_budgets(client: AsyncClient, auth_headers):
    project = await api_create_project(client, auth_headers)
    root = await api_root_task(client, auth_headers, project["id"])
    phase = await api_create_task(client, auth_headers, project["id"], root["id"])
    await api_create_task(client, auth_headers, project["id"], phase["id"], cost_labor="40")
    await api_create_task(client, auth_headers, project["id"], phase["id"], cost_material="60.5")

    response = await client.post(
        f"/api/v1/projects/{project['id']}/recalculate-budgets", headers=auth_headers
    )
    assert response.status_code == 200
    body = response.json()
    assert body["tasks_recalculated"] == 4
    assert Decimal(body["budget_rollup"]) == Decimal("100.5")
