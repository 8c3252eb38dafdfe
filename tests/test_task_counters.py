"""Tests for project task counters and task completion timestamps."""

from datetime import datetime
from types import SimpleNamespace
from uuid import uuid4

import pytest
from httpx import AsyncClient
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from pmdash.models import Project, Task, TaskStatus, User
from pmdash.services.task_counter_service import (
    CounterDelta,
    apply_completion_timestamp,
    apply_counter_delta,
    delta_for_create,
    delta_for_delete,
    delta_for_status_change,
    recalculate_project_counters,
    record_status_change,
    record_task_created,
    record_task_deleted,
)


async def stored_counters(db_session: AsyncSession, project_id) -> tuple:
    result = await db_session.execute(
        select(Project.total_tasks, Project.completed_tasks).where(Project.id == project_id)
    )
    return tuple(result.one())


class TestCounterDeltas:
    """Pure delta calculations."""

    def test_create(self):
        assert delta_for_create("Pending") == CounterDelta(total=1)
        assert delta_for_create(TaskStatus.DONE) == CounterDelta(total=1, completed=1)

    def test_delete(self):
        assert delta_for_delete("Blocked") == CounterDelta(total=-1)
        assert delta_for_delete("Done") == CounterDelta(total=-1, completed=-1)

    @pytest.mark.parametrize(
        "old,new,expected",
        [
            ("Pending", "Done", 1),
            ("Ongoing", "Done", 1),
            ("Done", "Ongoing", -1),
            ("Done", "Blocked", -1),
            ("Done", "Done", 0),
            ("Pending", "Ongoing", 0),
            ("Blocked", "Pending", 0),
        ],
    )
    def test_status_change(self, old, new, expected):
        delta = delta_for_status_change(old, new)
        assert delta.total == 0
        assert delta.completed == expected

    def test_empty_delta(self):
        assert CounterDelta().is_empty
        assert not CounterDelta(completed=-1).is_empty


class TestCompletionTimestamp:
    def test_entering_done_stamps(self):
        task = SimpleNamespace(completed_at=None)
        now = datetime(2026, 3, 1, 12, 0)
        apply_completion_timestamp(task, "Ongoing", "Done", now=now)
        assert task.completed_at == now

    def test_staying_done_keeps_stamp(self):
        stamp = datetime(2026, 1, 1)
        task = SimpleNamespace(completed_at=stamp)
        apply_completion_timestamp(task, "Done", "Done", now=datetime(2026, 3, 1))
        assert task.completed_at == stamp

    def test_leaving_done_clears(self):
        task = SimpleNamespace(completed_at=datetime(2026, 1, 1))
        apply_completion_timestamp(task, "Done", "Pending")
        assert task.completed_at is None

    def test_new_task_created_done(self):
        task = SimpleNamespace(completed_at=None)
        apply_completion_timestamp(task, None, TaskStatus.DONE)
        assert task.completed_at is not None


@pytest.mark.asyncio
class TestCounterWrites:
    """Counter updates issued against the database."""

    async def test_record_functions_track_lifecycle(
        self,
        db_session: AsyncSession,
        test_project: Project,
        member_user: User,
    ):
        task = Task(
            project_id=test_project.id,
            assigned_to=member_user.id,
            title="Lifecycle",
            status="Pending",
        )
        db_session.add(task)
        await db_session.flush()

        await record_task_created(db_session, task)
        assert await stored_counters(db_session, test_project.id) == (1, 0)

        task.status = "Done"
        await record_status_change(db_session, task, "Pending", "Done")
        assert task.completed_at is not None
        assert await stored_counters(db_session, test_project.id) == (1, 1)

        await record_task_deleted(db_session, task)
        assert await stored_counters(db_session, test_project.id) == (0, 0)

    async def test_decrement_never_goes_negative(
        self, db_session: AsyncSession, test_project: Project
    ):
        await apply_counter_delta(db_session, test_project.id, CounterDelta(total=-1, completed=-1))
        assert await stored_counters(db_session, test_project.id) == (0, 0)


@pytest.mark.asyncio
class TestRecalculateCounters:
    async def test_fixes_drift(
        self,
        db_session: AsyncSession,
        test_project: Project,
        test_task: Task,
        member_user: User,
    ):
        db_session.add(
            Task(
                project_id=test_project.id,
                assigned_to=member_user.id,
                title="Finished",
                status="Done",
            )
        )
        test_project.total_tasks = 7
        test_project.completed_tasks = 0
        await db_session.commit()

        result = await recalculate_project_counters(db_session)
        await db_session.commit()

        assert result.projects_checked == 1
        assert result.projects_corrected == 1
        correction = result.corrections[0]
        assert correction.project_id == test_project.id
        assert correction.total_tasks_before == 7
        assert correction.total_tasks_after == 2
        assert correction.completed_tasks_after == 1
        assert await stored_counters(db_session, test_project.id) == (2, 1)

    async def test_consistent_projects_untouched(
        self, db_session: AsyncSession, test_project: Project, test_task: Task
    ):
        result = await recalculate_project_counters(db_session, test_project.id)
        assert result.projects_checked == 1
        assert result.projects_corrected == 0
        assert result.corrections == []

    async def test_project_without_tasks_is_zeroed(
        self, db_session: AsyncSession, test_project: Project
    ):
        test_project.total_tasks = 3
        await db_session.commit()

        result = await recalculate_project_counters(db_session, test_project.id)

        assert result.projects_corrected == 1
        assert await stored_counters(db_session, test_project.id) == (0, 0)


@pytest.mark.asyncio
class TestReconcileEndpoint:
    async def test_admin_runs_reconciliation(
        self,
        client: AsyncClient,
        db_session: AsyncSession,
        test_project: Project,
        test_task: Task,
        admin_headers: dict,
    ):
        test_project.total_tasks = 5
        await db_session.commit()

        response = await client.post("/api/admin/reconcile-counters", headers=admin_headers)

        assert response.status_code == 200
        assert response.json()["projects_corrected"] == 1

        project = await client.get(f"/api/projects/{test_project.id}", headers=admin_headers)
        assert project.json()["total_tasks"] == 1

    async def test_scoped_to_one_project(
        self, client: AsyncClient, test_project: Project, admin_headers: dict
    ):
        response = await client.post(
            "/api/admin/reconcile-counters",
            params={"project_id": str(uuid4())},
            headers=admin_headers,
        )
        assert response.status_code == 200
        assert response.json()["projects_checked"] == 0

    async def test_admin_only(self, client: AsyncClient, manager_headers: dict):
        response = await client.post("/api/admin/reconcile-counters", headers=manager_headers)
        assert response.status_code == 403
