from __future__ import annotations

from taskboard.schemas.common import ApiModel


class ProjectOut(ApiModel):
    id: str
    workspace_id: str
    name: str
    image: str


class AnalyticsOut(ApiModel):
    task_count: int
    task_difference: int
    assigned_task_count: int
    assigned_task_difference: int
    in_completed_task_count: int
    in_completed_task_difference: int
    completed_task_count: int
    completed_task_difference: int
    overdue_task_count: int
    overdue_task_difference: int
