"""
Integration tests for task endpoints.

Tests cover:
- Task CRUD with WBS placement and roll-up
- Structural errors (second root, protected root, non-empty parent)
- Tree and milestone views
- Error envelope for service and request-validation failures
"""

from __future__ import annotations

import uuid
from decimal import Decimal

import pytest
from httpx import AsyncClient

from helpers import api_create_project, api_create_task, api_root_task


@pytest.fixture
async def project(client: AsyncClient, auth_headers):
    return await api_create_project(client, auth_headers, name="Riverside Clinic")


@pytest.fixture
async def root(client: AsyncClient, auth_headers, project):
    return await api_root_task(client, auth_headers, project["id"])


# ---------------------------------------------------------------------------
# CRUD
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
async def test_new_project_has_only_root(client: AsyncClient, auth_headers, project, root):
    response = await client.get(f"/api/v1/projects/{project['id']}/tasks", headers=auth_headers)
    tasks = response.json()
    assert len(tasks) == 1
    assert root["title"] == "Riverside Clinic (Project Root)"
    assert root["wbs_code"] == "0"
    assert root["parent_id"] is None


@pytest.mark.asyncio
async def test_create_task(client: AsyncClient, auth_headers, project, root):
    task = await api_create_task(
        client,
        auth_headers,
        project["id"],
        root["id"],
        title="Groundworks",
        cost_labor="1500.25",
        cost_material="250",
        start_date="2026-03-02",
        end_date="2026-03-20",
    )
    assert task["level"] == 1
    assert task["wbs_code"] == "1"
    assert Decimal(task["total_cost"]) == Decimal("1750.25")

    project_resp = await client.get(f"/api/v1/projects/{project['id']}", headers=auth_headers)
    body = project_resp.json()
    assert Decimal(body["budget_rollup"]) == Decimal("1750.25")
    assert body["task_count"] == 1


@pytest.mark.asyncio
async def test_second_root_conflicts(client: AsyncClient, auth_headers, project, root):
    response = await client.post(
        f"/api/v1/projects/{project['id']}/tasks",
        json={"title": "Another root"},
        headers=auth_headers,
    )
    assert response.status_code == 409
    assert response.json() == {
        "error": {
            "code": "ROOT_ALREADY_EXISTS",
            "message": f"Project {project['id']} already has a root task",
            "status": 409,
        }
    }


@pytest.mark.asyncio
async def test_level_mismatch(client: AsyncClient, auth_headers, project, root):
    response = await client.post(
        f"/api/v1/projects/{project['id']}/tasks",
        json={"title": "Deep", "parent_id": root["id"], "level": 2},
        headers=auth_headers,
    )
    assert response.status_code == 422
    assert response.json()["error"]["code"] == "LEVEL_MISMATCH"


@pytest.mark.asyncio
async def test_duplicate_activity_id(client: AsyncClient, auth_headers, project, root):
    await api_create_task(client, auth_headers, project["id"], root["id"], activity_id="A100")
    response = await client.post(
        f"/api/v1/projects/{project['id']}/tasks",
        json={"title": "Again", "parent_id": root["id"], "activity_id": "A100"},
        headers=auth_headers,
    )
    assert response.status_code == 409
    assert response.json()["error"]["code"] == "DUPLICATE_ACTIVITY_ID"


@pytest.mark.asyncio
async def test_update_task(client: AsyncClient, auth_headers, project, root):
    task = await api_create_task(client, auth_headers, project["id"], root["id"], title="Fit-out")
    response = await client.patch(
        f"/api/v1/tasks/{task['id']}",
        json={"title": "Fit-out and finishes", "cost_other": "320.00", "is_milestone": True},
        headers=auth_headers,
    )
    assert response.status_code == 200
    body = response.json()
    assert body["title"] == "Fit-out and finishes"
    assert body["is_milestone"] is True
    assert Decimal(body["total_cost"]) == Decimal("320")


@pytest.mark.asyncio
async def test_update_null_title_is_ignored(client: AsyncClient, auth_headers, project, root):
    task = await api_create_task(client, auth_headers, project["id"], root["id"], title="Roofing")
    response = await client.patch(
        f"/api/v1/tasks/{task['id']}", json={"title": None}, headers=auth_headers
    )
    assert response.status_code == 200
    assert response.json()["title"] == "Roofing"


@pytest.mark.asyncio
async def test_update_end_before_start(client: AsyncClient, auth_headers, project, root):
    task = await api_create_task(
        client, auth_headers, project["id"], root["id"], start_date="2026-04-10"
    )
    response = await client.patch(
        f"/api/v1/tasks/{task['id']}", json={"end_date": "2026-04-01"}, headers=auth_headers
    )
    assert response.status_code == 422
    assert response.json()["error"]["code"] == "INVALID_DATE_RANGE"


@pytest.mark.asyncio
async def test_delete_leaf(client: AsyncClient, auth_headers, project, root):
    task = await api_create_task(
        client, auth_headers, project["id"], root["id"], cost_labor="900"
    )
    response = await client.delete(f"/api/v1/tasks/{task['id']}", headers=auth_headers)
    assert response.status_code == 200
    assert response.json()["parent_id"] == root["id"]

    project_resp = await client.get(f"/api/v1/projects/{project['id']}", headers=auth_headers)
    assert Decimal(project_resp.json()["budget_rollup"]) == Decimal("0")


@pytest.mark.asyncio
async def test_delete_root_protected(client: AsyncClient, auth_headers, project, root):
    response = await client.delete(f"/api/v1/tasks/{root['id']}", headers=auth_headers)
    assert response.status_code == 422
    assert response.json()["error"]["code"] == "ROOT_TASK_PROTECTED"


@pytest.mark.asyncio
async def test_delete_parent_with_children(client: AsyncClient, auth_headers, project, root):
    parent = await api_create_task(client, auth_headers, project["id"], root["id"])
    await api_create_task(client, auth_headers, project["id"], parent["id"])
    response = await client.delete(f"/api/v1/tasks/{parent['id']}", headers=auth_headers)
    assert response.status_code == 422
    assert response.json()["error"]["code"] == "TASK_HAS_CHILDREN"


@pytest.mark.asyncio
async def test_unknown_task(client: AsyncClient, auth_headers):
    response = await client.get(f"/api/v1/tasks/{uuid.uuid4()}", headers=auth_headers)
    assert response.status_code == 404
    assert response.json()["error"]["code"] == "TASK_NOT_FOUND"


@pytest.mark.asyncio
async def test_request_validation_envelope(client: AsyncClient, auth_headers, project, root):
    response = await client.post(
        f"/api/v1/projects/{project['id']}/tasks",
        json={"parent_id": root["id"], "cost_labor": "-5"},
        headers=auth_headers,
    )
    assert response.status_code == 422
    error = response.json()["error"]
    assert error["code"] == "VALIDATION_ERROR"
    fields = {tuple(d["loc"]) for d in error["details"]}
    assert ("body", "title") in fields
    assert ("body", "cost_labor") in fields


# ---------------------------------------------------------------------------
# Views
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
async def test_wbs_tree(client: AsyncClient, auth_headers, project, root):
    design = await api_create_task(client, auth_headers, project["id"], root["id"], title="Design")
    await api_create_task(
        client, auth_headers, project["id"], design["id"], title="Survey", cost_labor="100"
    )
    await api_create_task(client, auth_headers, project["id"], root["id"], title="Build")

    response = await client.get(f"/api/v1/projects/{project['id']}/wbs", headers=auth_headers)
    tree = response.json()
    assert len(tree) == 1
    top = tree[0]
    assert top["level"] == 0
    assert [c["title"] for c in top["children"]] == ["Design", "Build"]
    assert top["children"][0]["children"][0]["wbs_code"] == "1.1"
    assert Decimal(top["total_cost"]) == Decimal("100")


@pytest.mark.asyncio
async def test_milestones(client: AsyncClient, auth_headers, project, root):
    await api_create_task(client, auth_headers, project["id"], root["id"], title="Work")
    await api_create_task(
        client, auth_headers, project["id"], root["id"], title="Handover", is_milestone=True
    )
    response = await client.get(
        f"/api/v1/projects/{project['id']}/milestones", headers=auth_headers
    )
    assert [m["title"] for m in response.json()] == ["Handover"]


@pytest.mark.asyncio
async def test_move_over_http(client: AsyncClient, auth_headers, project, root):
    design = await api_create_task(client, auth_headers, project["id"], root["id"], title="Design")
    build = await api_create_task(client, auth_headers, project["id"], root["id"], title="Build")
    response = await client.patch(
        f"/api/v1/tasks/{build['id']}", json={"parent_id": design["id"]}, headers=auth_headers
    )
    assert response.status_code == 200
    assert response.json()["level"] == 2

    cycle = await client.patch(
        f"/api/v1/tasks/{design['id']}", json={"parent_id": build["id"]}, headers=auth_headers
    )
    assert cycle.status_code == 422
    assert cycle.json()["error"]["code"] == "WBS_CYCLE"
