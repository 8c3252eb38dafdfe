"""
Task counter service keeping project task counters in step with tasks.

Each project stores two derived counters: ``total_tasks`` and
``completed_tasks`` (tasks whose status is Done). They are never written by
clients; this module adjusts them whenever a task is created, changes
status or is deleted.

Counter changes are issued as ``UPDATE ... SET col = col + delta`` in the
caller's session, so they commit or roll back together with the task write
that caused them. ``recalculate_project_counters`` rebuilds both counters
from the Tasks table and is the repair path if they ever drift.
"""

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Optional
from uuid import UUID

from sqlalchemy import case, func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from ..models.project import Project
from ..models.task import Task, TaskStatus
from ..schemas.project import CounterReconciliation, ReconciliationResult

logger = logging.getLogger(__name__)

DONE = TaskStatus.DONE.value


def _is_done(status) -> bool:
    return (status.value if isinstance(status, TaskStatus) else status) == DONE


@dataclass(frozen=True)
class CounterDelta:
    """
    Change to apply to a project's counters.

    Attributes:
        total: Change to total_tasks
        completed: Change to completed_tasks
    """

    total: int = 0
    completed: int = 0

    @property
    def is_empty(self) -> bool:
        return self.total == 0 and self.completed == 0


def delta_for_create(status) -> CounterDelta:
    """A new task always counts once, and once more if it starts Done."""
    return CounterDelta(total=1, completed=1 if _is_done(status) else 0)


def delta_for_status_change(old_status, new_status) -> CounterDelta:
    """
    Counter change for a status transition.

    Only transitions into or out of Done move ``completed_tasks``; Done to
    Done and moves between the other statuses change nothing.
    """
    was_done = _is_done(old_status)
    is_done = _is_done(new_status)
    if is_done and not was_done:
        return CounterDelta(completed=1)
    if was_done and not is_done:
        return CounterDelta(completed=-1)
    return CounterDelta()


def delta_for_delete(status) -> CounterDelta:
    return CounterDelta(total=-1, completed=-1 if _is_done(status) else 0)


def apply_completion_timestamp(
    task: Task,
    old_status,
    new_status,
    now: Optional[datetime] = None,
) -> None:
    """
    Keep ``completed_at`` set exactly while the task is Done.

    Entering Done stamps the time, leaving Done clears it, and staying in
    Done keeps the original stamp.
    """
    was_done = _is_done(old_status) if old_status is not None else False
    is_done = _is_done(new_status)
    if is_done and not was_done:
        task.completed_at = now or datetime.utcnow()
    elif not is_done:
        task.completed_at = None


def _clamped(column, delta: int):
    if delta >= 0:
        return column + delta
    return case((column + delta < 0, 0), else_=column + delta)


async def apply_counter_delta(
    db: AsyncSession,
    project_id: UUID,
    delta: CounterDelta,
) -> None:
    """
    Apply a counter delta to one project inside the current transaction.

    Decrements never take a counter below zero. Project objects already
    loaded in the session are not refreshed; callers reload when they
    need the new values.
    """
    if delta.is_empty:
        return

    values = {}
    if delta.total:
        values["total_tasks"] = _clamped(Project.total_tasks, delta.total)
    if delta.completed:
        values["completed_tasks"] = _clamped(Project.completed_tasks, delta.completed)

    await db.execute(
        update(Project)
        .where(Project.id == project_id)
        .values(**values)
        .execution_options(synchronize_session=False)
    )
    logger.debug(
        "Project %s counters adjusted by total=%+d completed=%+d",
        project_id, delta.total, delta.completed,
    )


async def record_task_created(db: AsyncSession, task: Task) -> None:
    """Stamp completion if needed and count a newly added task."""
    apply_completion_timestamp(task, None, task.status)
    await apply_counter_delta(db, task.project_id, delta_for_create(task.status))


async def record_status_change(
    db: AsyncSession,
    task: Task,
    old_status,
    new_status,
) -> None:
    """Update ``completed_at`` and the project's completed count for a transition."""
    apply_completion_timestamp(task, old_status, new_status)
    await apply_counter_delta(
        db, task.project_id, delta_for_status_change(old_status, new_status)
    )


async def record_task_deleted(db: AsyncSession, task: Task) -> None:
    await apply_counter_delta(db, task.project_id, delta_for_delete(task.status))


async def recalculate_project_counters(
    db: AsyncSession,
    project_id: Optional[UUID] = None,
) -> ReconciliationResult:
    """
    Recount tasks and overwrite drifted project counters.

    This is a full recalculation over the Tasks table. Use it for data
    integrity checks; regular writes go through the incremental functions.

    Args:
        db: Database session (the caller commits)
        project_id: Limit the pass to one project; all projects when None

    Returns:
        ReconciliationResult listing every project that was corrected
    """
    counts_query = select(
        Task.project_id,
        func.count(Task.id),
        func.coalesce(func.sum(case((Task.status == DONE, 1), else_=0)), 0),
    ).group_by(Task.project_id)
    projects_query = select(Project.id, Project.total_tasks, Project.completed_tasks)
    if project_id is not None:
        counts_query = counts_query.where(Task.project_id == project_id)
        projects_query = projects_query.where(Project.id == project_id)

    actual = {
        row[0]: (int(row[1]), int(row[2]))
        for row in (await db.execute(counts_query)).all()
    }
    projects = (await db.execute(projects_query)).all()

    corrections = []
    for pid, stored_total, stored_completed in projects:
        total, completed = actual.get(pid, (0, 0))
        if (stored_total, stored_completed) == (total, completed):
            continue
        await db.execute(
            update(Project)
            .where(Project.id == pid)
            .values(total_tasks=total, completed_tasks=completed)
            .execution_options(synchronize_session=False)
        )
        corrections.append(
            CounterReconciliation(
                project_id=pid,
                total_tasks_before=stored_total,
                total_tasks_after=total,
                completed_tasks_before=stored_completed,
                completed_tasks_after=completed,
            )
        )
        logger.warning(
            "Corrected counters for project %s: total %d -> %d, completed %d -> %d",
            pid, stored_total, total, stored_completed, completed,
        )

    logger.info(
        "Counter reconciliation checked %d project(s), corrected %d",
        len(projects), len(corrections),
    )
    return ReconciliationResult(
        projects_checked=len(projects),
        projects_corrected=len(corrections),
        corrections=corrections,
    )
