"""
Recount tasks and repair project total/completed counters.

Usage:
    python scripts/reconcile_counters.py              # all projects
    python scripts/reconcile_counters.py <project_id> # one project
"""

import asyncio
import sys
from uuid import UUID

sys.path.insert(0, ".")

from pmdash.database import async_session_maker
from pmdash.services.task_counter_service import recalculate_project_counters


async def reconcile(project_id=None):
    async with async_session_maker() as db:
        result = await recalculate_project_counters(db, project_id)
        await db.commit()

    print(f'Checked {result.projects_checked} project(s), corrected {result.projects_corrected}')
    for fix in result.corrections:
        print(
            f'  {fix.project_id}: total {fix.total_tasks_before} -> {fix.total_tasks_after}, '
            f'completed {fix.completed_tasks_before} -> {fix.completed_tasks_after}'
        )


if __name__ == '__main__':
    target = UUID(sys.argv[1]) if len(sys.argv) > 1 else None
    asyncio.run(reconcile(target))
