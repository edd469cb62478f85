"""
API v1 Router

Project-scoped endpoints live under /projects/{project_id}; task,
dependency, assignment and resource endpoints are addressed by their own ids.
"""

from fastapi import APIRouter
from . import assignments, dependencies, imports, portfolio, projects, resources, tasks

router = APIRouter()

router.include_router(projects.router, prefix="/projects", tags=["Projects"])
router.include_router(imports.router, prefix="/projects", tags=["Import"])
router.include_router(tasks.router, tags=["Tasks"])
router.include_router(dependencies.router, tags=["Dependencies"])
router.include_router(resources.router, prefix="/resources", tags=["Resources"])
router.include_router(assignments.router, tags=["Assignments"])
router.include_router(portfolio.router, prefix="/portfolio", tags=["Portfolio"])


@router.get("/", tags=["API"])
async def api_root():
    """API root: returns version and available endpoints."""
    return {
        "api": "v1",
        "version": "0.1.0",
        "endpoints": [
            "/projects",
            "/projects/{project_id}/tasks",
            "/projects/{project_id}/wbs",
            "/projects/{project_id}/import-schedule",
            "/projects/{project_id}/import-p6",
            "/tasks/{task_id}",
            "/tasks/{task_id}/relations",
            "/tasks/{task_id}/assignments",
            "/assignments/{assignment_id}",
            "/dependencies",
            "/resources",
            "/resources/types",
            "/portfolio/summary",
            "/portfolio/wbs",
        ],
    }
