"""HTTP helpers shared by the API tests."""

from httpx import AsyncClient


async def api_create_project(client: AsyncClient, headers: dict, /, **fields) -> dict:
    body = {"name": "Harbour Wall"}
    body.update(fields)
    response = await client.post("/api/v1/projects/", json=body, headers=headers)
    assert response.status_code == 201, response.text
    return response.json()


async def api_root_task(client: AsyncClient, headers: dict, project_id: str) -> dict:
    response = await client.get(f"/api/v1/projects/{project_id}/tasks", headers=headers)
    assert response.status_code == 200, response.text
    return next(t for t in response.json() if t["level"] == 0)


async def api_create_task(
    client: AsyncClient, headers: dict, project_id: str, parent_id: str, **fields
) -> dict:
    body = {"title": "Task", "parent_id": parent_id}
    body.update(fields)
    response = await client.post(
        f"/api/v1/projects/{project_id}/tasks", json=body, headers=headers
    )
    assert response.status_code == 201, response.text
    return response.json()
