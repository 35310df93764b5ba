"""
Month-over-month task counts.

Every metric is counted twice, once for tasks created this calendar month and
once for tasks created last calendar month; the difference is this minus last.
The overdue metric also requires due_date < now, evaluated against the current
instant for both windows.
"""
from __future__ import annotations

import uuid
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Callable, Dict, List, Optional

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from taskboard.core.dates import Window, month_windows
from taskboard.db.models import Task, TaskStatus

DONE = TaskStatus.DONE.value


@dataclass(frozen=True)
class MetricCount:
    count: int
    difference: int


@dataclass(frozen=True)
class AnalyticsSnapshot:
    task: MetricCount
    assigned: MetricCount
    incompleted: MetricCount
    completed: MetricCount
    overdue: MetricCount

    def as_flat_dict(self) -> Dict[str, int]:
        return {
            "task_count": self.task.count,
            "task_difference": self.task.difference,
            "assigned_task_count": self.assigned.count,
            "assigned_task_difference": self.assigned.difference,
            "in_completed_task_count": self.incompleted.count,
            "in_completed_task_difference": self.incompleted.difference,
            "completed_task_count": self.completed.count,
            "completed_task_difference": self.completed.difference,
            "overdue_task_count": self.overdue.count,
            "overdue_task_difference": self.overdue.difference,
        }


Predicates = Callable[[uuid.UUID, datetime], List[Any]]

METRICS: Dict[str, Predicates] = {
    "task": lambda member_id, now: [],
    "assigned": lambda member_id, now: [Task.assignee_id == member_id],
    "incompleted": lambda member_id, now: [Task.assignee_id == member_id, Task.status != DONE],
    "completed": lambda member_id, now: [Task.status == DONE],
    "overdue": lambda member_id, now: [Task.status != DONE, Task.due_date < now],
}


def _count(db: Session, scope: List[Any], extra: List[Any], window: Window) -> int:
    stmt = (
        select(func.count())
        .select_from(Task)
        .where(*scope, *extra, Task.created_at >= window.start, Task.created_at <= window.end)
    )
    return int(db.execute(stmt).scalar_one() or 0)


def compute_analytics(
    db: Session,
    *,
    member_id: uuid.UUID,
    now: datetime,
    project_id: Optional[uuid.UUID] = None,
    workspace_id: Optional[uuid.UUID] = None,
) -> AnalyticsSnapshot:
    if project_id is None and workspace_id is None:
        raise ValueError("project_id or workspace_id is required")

    scope: List[Any] = []
    if project_id is not None:
        scope.append(Task.project_id == project_id)
    if workspace_id is not None:
        scope.append(Task.workspace_id == workspace_id)

    this_month, last_month = month_windows(now)

    results: Dict[str, MetricCount] = {}
    for name, predicates in METRICS.items():
        extra = predicates(member_id, now)
        this_count = _count(db, scope, extra, this_month)
        last_count = _count(db, scope, extra, last_month)
        results[name] = MetricCount(count=this_count, difference=this_count - last_count)

    return AnalyticsSnapshot(**results)
