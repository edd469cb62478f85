"""
Portfolio summary and combined WBS tests.
"""

from __future__ import annotations

from decimal import Decimal

import pytest
from httpx import AsyncClient

from helpers import api_create_project, api_create_task, api_root_task


@pytest.fixture
async def portfolio(client: AsyncClient, auth_headers, other_headers):
    north = await api_create_project(
        client, auth_headers, name="North Depot", budget="50000",
        start_date="2026-02-01", end_date="2026-06-30",
    )
    south = await api_create_project(
        client, auth_headers, name="South Depot", budget="20000",
        start_date="2026-04-01", end_date="2026-10-31",
    )
    await api_create_project(client, other_headers, name="Not Mine", budget="999999")

    north_root = await api_root_task(client, auth_headers, north["id"])
    phase = await api_create_task(client, auth_headers, north["id"], north_root["id"], title="Civils")
    await api_create_task(client, auth_headers, north["id"], phase["id"], cost_labor="1200")
    await api_create_task(
        client, auth_headers, north["id"], north_root["id"], title="Handover", is_milestone=True
    )

    south_root = await api_root_task(client, auth_headers, south["id"])
    await api_create_task(client, auth_headers, south["id"], south_root["id"], cost_material="800")
    return north, south


@pytest.mark.asyncio
async def test_summary(client: AsyncClient, auth_headers, portfolio):
    response = await client.get("/api/v1/portfolio/summary", headers=auth_headers)
    assert response.status_code == 200
    body = response.json()

    assert body["total_projects"] == 2
    assert body["total_tasks"] == 4
    assert body["total_milestones"] == 1
    assert Decimal(body["total_budget"]) == Decimal("70000")
    assert Decimal(body["total_budget_rollup"]) == Decimal("2000")
    assert body["date_range"] == {"start": "2026-02-01", "end": "2026-10-31"}

    by_name = {p["name"]: p for p in body["projects"]}
    assert set(by_name) == {"North Depot", "South Depot"}
    assert by_name["North Depot"]["task_count"] == 3
    assert Decimal(by_name["South Depot"]["budget_rollup"]) == Decimal("800")


@pytest.mark.asyncio
async def test_tree(client: AsyncClient, auth_headers, portfolio):
    north, _ = portfolio
    response = await client.get("/api/v1/portfolio/wbs", headers=auth_headers)
    assert response.status_code == 200
    tree = response.json()

    assert tree["id"] == "portfolio-root"
    assert tree["level"] == 0
    assert Decimal(tree["total_budget_rollup"]) == Decimal("2000")

    nodes = {n["title"]: n for n in tree["children"]}
    assert set(nodes) == {"North Depot", "South Depot"}
    north_node = nodes["North Depot"]
    assert north_node["id"] == f"project-{north['id']}"
    assert north_node["level"] == 1
    # Project roots are folded into the project node.
    assert [c["title"] for c in north_node["children"]] == ["Civils", "Handover"]
    assert north_node["children"][0]["children"][0]["level"] == 2


@pytest.mark.asyncio
async def test_empty_portfolio(client: AsyncClient, auth_headers):
    response = await client.get("/api/v1/portfolio/summary", headers=auth_headers)
    body = response.json()
    assert body["total_projects"] == 0
    assert body["date_range"] == {"start": None, "end": None}
