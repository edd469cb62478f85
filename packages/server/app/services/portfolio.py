"""
Portfolio views across every project a user belongs to.
"""

from __future__ import annotations

import uuid

from sqlalchemy.ext.asyncio import AsyncSession

from app.services.projects import list_user_projects, task_counts
from app.services.tasks import get_wbs_tree
from prereq_shared.schemas.common import ZERO
from prereq_shared.schemas.portfolio import (
    DateRange,
    PortfolioProject,
    PortfolioProjectNode,
    PortfolioSummary,
    PortfolioTree,
)


async def get_summary(session: AsyncSession, user_id: uuid.UUID) -> PortfolioSummary:
    projects = await list_user_projects(session, user_id)
    counts = await task_counts(session, [p.id for p in projects])

    rows = []
    for project in projects:
        task_count, milestone_count = counts.get(project.id, (0, 0))
        rows.append(
            PortfolioProject(
                id=project.id,
                name=project.name,
                client=project.client,
                start_date=project.start_date,
                end_date=project.end_date,
                budget=project.budget,
                budget_rollup=project.budget_rollup,
                task_count=task_count,
                milestone_count=milestone_count,
            )
        )

    starts = [p.start_date for p in projects if p.start_date]
    ends = [p.end_date for p in projects if p.end_date]
    return PortfolioSummary(
        total_projects=len(rows),
        total_tasks=sum(r.task_count for r in rows),
        total_milestones=sum(r.milestone_count for r in rows),
        total_budget=sum((r.budget for r in rows), ZERO),
        total_budget_rollup=sum((r.budget_rollup for r in rows), ZERO),
        date_range=DateRange(
            start=min(starts) if starts else None,
            end=max(ends) if ends else None,
        ),
        projects=rows,
    )


async def get_portfolio_tree(session: AsyncSession, user_id: uuid.UUID) -> PortfolioTree:
    """Synthetic portfolio node -> project nodes -> each project's WBS."""
    projects = await list_user_projects(session, user_id)
    nodes = []
    for project in projects:
        tree = await get_wbs_tree(session, project.id)
        # The project node stands in for the root task; hang its children directly.
        children = []
        for top in tree:
            children.extend(top.children if top.level == 0 else [top])
        nodes.append(
            PortfolioProjectNode(
                id=f"project-{project.id}",
                project_id=project.id,
                title=project.name,
                start_date=project.start_date,
                end_date=project.end_date,
                budget_rollup=project.budget_rollup,
                children=children,
            )
        )
    return PortfolioTree(
        total_budget_rollup=sum((n.budget_rollup for n in nodes), ZERO),
        children=nodes,
    )
