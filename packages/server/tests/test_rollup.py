"""
Cost roll-up tests.

A leaf's total is its labor + material + other; a parent's total is the sum
of its children's totals; the root total is mirrored onto the project.
"""

from __future__ import annotations

import uuid
from decimal import Decimal

import pytest

from app.core.errors import ProjectNotFound
from app.models.project import Project
from app.models.task import Task
from app.services import rollup
from app.services import tasks as task_service
from app.services import wbs
from prereq_shared.schemas.tasks import TaskCreate, TaskUpdate


async def add_task(session, project, parent, title="Task", **costs):
    fields = {k: Decimal(v) for k, v in costs.items()}
    return await task_service.create_task(
        session, project.id, TaskCreate(title=title, parent_id=parent.id, **fields)
    )


@pytest.fixture
async def tree(session, project):
    """root -> design -> (survey, drawings); root -> build"""
    root = await wbs.get_root(session, project.id)
    design = await add_task(session, project, root, "Design")
    survey = await add_task(session, project, design, "Survey", cost_labor="1200.00", cost_material="300.50")
    drawings = await add_task(session, project, design, "Drawings", cost_other="499.50")
    build = await add_task(session, project, root, "Build", cost_labor="10000")
    return {"root": root, "design": design, "survey": survey, "drawings": drawings, "build": build}


class TestDirectCost:
    def test_sums_three_components(self):
        task = Task(
            project_id=uuid.uuid4(),
            title="Leaf",
            cost_labor=Decimal("10.10"),
            cost_material=Decimal("5"),
            cost_other=Decimal("0.40"),
        )
        assert rollup.direct_cost(task) == Decimal("15.50")

    def test_missing_components_count_as_zero(self):
        task = Task(project_id=uuid.uuid4(), title="Leaf", cost_labor=Decimal("7"))
        task.cost_other = None
        assert rollup.direct_cost(task) == Decimal("7")


class TestRollup:
    async def test_totals_after_creation(self, session, project, tree):
        assert tree["survey"].total_cost == Decimal("1500.50")
        assert tree["drawings"].total_cost == Decimal("499.50")
        assert tree["design"].total_cost == Decimal("2000.00")
        assert tree["root"].total_cost == Decimal("12000.00")
        assert project.budget_rollup == Decimal("12000.00")

    async def test_parent_total_ignores_its_own_costs(self, session, project, tree):
        await task_service.update_task(
            session, tree["design"], TaskUpdate(cost_labor=Decimal("999"))
        )
        assert tree["design"].total_cost == Decimal("2000.00")
        assert tree["root"].total_cost == Decimal("12000.00")

    async def test_cost_change_propagates_to_project(self, session, project, tree):
        await task_service.update_task(
            session, tree["survey"], TaskUpdate(cost_material=Decimal("800.50"))
        )
        assert tree["survey"].total_cost == Decimal("2000.50")
        assert tree["design"].total_cost == Decimal("2500.00")
        assert project.budget_rollup == Decimal("12500.00")

    async def test_delete_leaf_updates_ancestors(self, session, project, tree):
        await task_service.delete_task(session, tree["drawings"])
        assert tree["design"].total_cost == Decimal("1500.50")
        assert project.budget_rollup == Decimal("11500.50")

    async def test_parent_without_children_falls_back_to_direct_cost(self, session, project, tree):
        await task_service.update_task(
            session, tree["design"], TaskUpdate(cost_other=Decimal("50"))
        )
        await task_service.delete_task(session, tree["survey"])
        await task_service.delete_task(session, tree["drawings"])
        assert tree["design"].total_cost == Decimal("50.00")
        assert project.budget_rollup == Decimal("10050.00")

    async def test_move_updates_old_and_new_parents(self, session, project, tree):
        await task_service.update_task(
            session, tree["survey"], TaskUpdate(parent_id=tree["build"].id)
        )
        assert tree["design"].total_cost == Decimal("499.50")
        assert tree["build"].total_cost == Decimal("1500.50")
        assert project.budget_rollup == Decimal("2000.00")

    async def test_walk_returns_root(self, session, project, tree):
        last = await rollup.rollup_from(session, tree["survey"].id)
        assert last.id == tree["root"].id

    async def test_walk_from_missing_task(self, session, project, tree):
        assert await rollup.rollup_from(session, uuid.uuid4()) is None


class TestRecalculate:
    async def test_repairs_stale_totals(self, session, project, tree):
        tree["design"].total_cost = Decimal("1")
        tree["root"].total_cost = Decimal("2")
        project.budget_rollup = Decimal("3")
        session.add_all([tree["design"], tree["root"], project])
        await session.flush()

        result = await rollup.recalculate_project(session, project.id)

        assert result["tasks_recalculated"] == 5
        assert result["budget_rollup"] == Decimal("12000.00")
        assert tree["design"].total_cost == Decimal("2000.00")
        refreshed = await session.get(Project, project.id)
        assert refreshed.budget_rollup == Decimal("12000.00")

    async def test_unknown_project(self, session):
        with pytest.raises(ProjectNotFound):
            await rollup.recalculate_project(session, uuid.uuid4())
