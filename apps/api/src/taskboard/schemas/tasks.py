from __future__ import annotations

import uuid
from datetime import datetime
from typing import List, Optional

from pydantic import Field

from taskboard.core.config import settings
from taskboard.db.models import TaskStatus
from taskboard.schemas.common import ApiModel
from taskboard.schemas.projects import ProjectOut
from taskboard.schemas.workspaces import MemberOut


class TaskCreateIn(ApiModel):
    name: str = Field(min_length=1, max_length=240)
    status: TaskStatus
    workspace_id: uuid.UUID
    project_id: uuid.UUID
    due_date: datetime
    assignee_id: uuid.UUID
    description: Optional[str] = None


class TaskUpdateIn(ApiModel):
    name: Optional[str] = Field(default=None, min_length=1, max_length=240)
    status: Optional[TaskStatus] = None
    project_id: Optional[uuid.UUID] = None
    due_date: Optional[datetime] = None
    assignee_id: Optional[uuid.UUID] = None
    description: Optional[str] = None


class TaskPositionIn(ApiModel):
    id: uuid.UUID
    status: TaskStatus
    position: int = Field(ge=settings.POSITION_STEP, le=settings.POSITION_MAX)


class TaskBulkUpdateIn(ApiModel):
    tasks: List[TaskPositionIn] = Field(min_length=1)


class TaskMoveIn(ApiModel):
    status: TaskStatus
    prev_task_id: Optional[uuid.UUID] = None
    next_task_id: Optional[uuid.UUID] = None


class TaskOut(ApiModel):
    id: str
    workspace_id: str
    project_id: str
    assignee_id: str
    name: str
    description: Optional[str] = None
    status: TaskStatus
    due_date: datetime
    position: int
    created_at: Optional[datetime] = None


class EnrichedTaskOut(TaskOut):
    # left unset (and so omitted) when the reference does not resolve
    project: Optional[ProjectOut] = None
    assignee: Optional[MemberOut] = None
