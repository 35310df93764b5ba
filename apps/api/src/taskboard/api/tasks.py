from __future__ import annotations

import logging
import uuid
from datetime import datetime
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy import select
from sqlalchemy.orm import Session

from taskboard.api.deps import parse_uuid_or_404, require_membership, require_user
from taskboard.api.members import member_out
from taskboard.api.projects import project_out
from taskboard.core.enrichment import EnrichedTask, populate_tasks
from taskboard.core.positions import allocate_position, place_between
from taskboard.db.models import Project, Task, TaskStatus, User
from taskboard.db.session import get_db
from taskboard.schemas.common import DataOut, DeletedOut, DocumentsOut
from taskboard.schemas.tasks import (
    EnrichedTaskOut,
    TaskBulkUpdateIn,
    TaskCreateIn,
    TaskMoveIn,
    TaskOut,
    TaskUpdateIn,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/tasks", tags=["tasks"])


# -------------------------
# Helpers
# -------------------------
def _task_fields(t: Task) -> dict:
    return dict(
        id=str(t.id),
        workspace_id=str(t.workspace_id),
        project_id=str(t.project_id),
        assignee_id=str(t.assignee_id),
        name=t.name,
        description=t.description,
        status=t.status,
        due_date=t.due_date,
        position=t.position,
        created_at=t.created_at,
    )


def task_out(t: Task) -> TaskOut:
    return TaskOut(**_task_fields(t))


def enriched_out(e: EnrichedTask) -> EnrichedTaskOut:
    fields = _task_fields(e.task)
    if e.project is not None:
        fields["project"] = project_out(e.project)
    if e.assignee is not None:
        fields["assignee"] = member_out(e.assignee.member, e.assignee.name, e.assignee.email)
    return EnrichedTaskOut(**fields)


def _get_task(db: Session, task_id: str) -> Task:
    t = db.get(Task, parse_uuid_or_404(task_id, "Task"))
    if not t:
        raise HTTPException(status_code=404, detail="Task not found")
    return t


def _ensure_project_in_workspace(db: Session, project_id: uuid.UUID, workspace_id: uuid.UUID) -> Project:
    p = db.get(Project, project_id)
    if not p or p.workspace_id != workspace_id:
        raise HTTPException(status_code=404, detail="Project not found")
    return p


def _escape_like(value: str) -> str:
    return value.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")


def _lane_neighbour(db: Session, task_id: Optional[uuid.UUID], lane: tuple) -> Optional[Task]:
    if task_id is None:
        return None
    t = db.get(Task, task_id)
    if not t:
        raise HTTPException(status_code=404, detail="Task not found")
    if (t.workspace_id, t.project_id, t.status) != lane:
        raise HTTPException(status_code=400, detail="Neighbour task is not in the target lane")
    return t


# -------------------------
# Routes
# -------------------------
@router.get("", response_model=DataOut[DocumentsOut[EnrichedTaskOut]], response_model_exclude_unset=True)
def list_tasks(
    workspace_id: str = Query(..., alias="workspaceId"),
    search: Optional[str] = Query(None),
    project_id: Optional[uuid.UUID] = Query(None, alias="projectId"),
    assignee_id: Optional[uuid.UUID] = Query(None, alias="assigneeId"),
    due_date: Optional[datetime] = Query(None, alias="dueDate"),
    status: Optional[TaskStatus] = Query(None),
    db: Session = Depends(get_db),
    user: User = Depends(require_user),
):
    member = require_membership(db, workspace_id, user)

    q = select(Task).where(Task.workspace_id == member.workspace_id)
    if project_id:
        q = q.where(Task.project_id == project_id)
    if assignee_id:
        q = q.where(Task.assignee_id == assignee_id)
    if due_date:
        q = q.where(Task.due_date == due_date)
    if status:
        q = q.where(Task.status == status.value)
    if search:
        q = q.where(Task.name.ilike(f"%{_escape_like(search)}%", escape="\\"))

    tasks = db.execute(q).scalars().all()
    populated = populate_tasks(db, tasks, workspace_id=member.workspace_id)

    return DataOut(data=DocumentsOut(documents=[enriched_out(e) for e in populated], total=len(tasks)))


@router.post("", response_model=DataOut[TaskOut])
def create_task(payload: TaskCreateIn, db: Session = Depends(get_db), user: User = Depends(require_user)):
    member = require_membership(db, payload.workspace_id, user)
    _ensure_project_in_workspace(db, payload.project_id, member.workspace_id)

    position = allocate_position(
        db,
        workspace_id=member.workspace_id,
        project_id=payload.project_id,
        status=payload.status.value,
    )

    t = Task(
        workspace_id=member.workspace_id,
        project_id=payload.project_id,
        assignee_id=payload.assignee_id,
        name=payload.name.strip(),
        description=payload.description,
        status=payload.status.value,
        due_date=payload.due_date,
        position=position,
    )
    db.add(t)
    db.commit()
    db.refresh(t)

    logger.info("Created task=%s lane=(%s, %s) position=%d", t.id, t.project_id, t.status, t.position)
    return DataOut(data=task_out(t))


@router.post("/bulk-update", response_model=DataOut[List[TaskOut]])
def bulk_update_tasks(payload: TaskBulkUpdateIn, db: Session = Depends(get_db), user: User = Depends(require_user)):
    ids = [item.id for item in payload.tasks]
    rows = db.execute(select(Task).where(Task.id.in_(ids))).scalars().all()
    by_id = {t.id: t for t in rows}

    missing = [str(i) for i in ids if i not in by_id]
    if missing:
        raise HTTPException(status_code=404, detail="Task not found")

    workspace_ids = {t.workspace_id for t in rows}
    if len(workspace_ids) != 1:
        raise HTTPException(status_code=400, detail="All tasks must belong to the same workspace")

    require_membership(db, workspace_ids.pop(), user)

    for item in payload.tasks:
        t = by_id[item.id]
        t.status = item.status.value
        t.position = item.position
        db.add(t)
    db.commit()

    return DataOut(data=[task_out(by_id[i]) for i in ids])


@router.get("/{task_id}", response_model=DataOut[EnrichedTaskOut], response_model_exclude_unset=True)
def get_task(task_id: str, db: Session = Depends(get_db), user: User = Depends(require_user)):
    t = _get_task(db, task_id)
    require_membership(db, t.workspace_id, user)

    [populated] = populate_tasks(db, [t], workspace_id=t.workspace_id)
    return DataOut(data=enriched_out(populated))


@router.patch("/{task_id}", response_model=DataOut[TaskOut])
def update_task(
    task_id: str,
    payload: TaskUpdateIn,
    db: Session = Depends(get_db),
    user: User = Depends(require_user),
):
    t = _get_task(db, task_id)
    require_membership(db, t.workspace_id, user)

    old_lane = (t.project_id, t.status)

    if payload.project_id is not None:
        _ensure_project_in_workspace(db, payload.project_id, t.workspace_id)
        t.project_id = payload.project_id
    if payload.status is not None:
        t.status = payload.status.value
    if payload.name is not None:
        t.name = payload.name.strip()
    if payload.description is not None:
        t.description = payload.description
    if payload.due_date is not None:
        t.due_date = payload.due_date
    if payload.assignee_id is not None:
        t.assignee_id = payload.assignee_id

    # a task entering another lane goes to that lane's tail
    if (t.project_id, t.status) != old_lane:
        t.position = allocate_position(db, workspace_id=t.workspace_id, project_id=t.project_id, status=t.status)

    db.add(t)
    db.commit()
    db.refresh(t)
    return DataOut(data=task_out(t))


@router.post("/{task_id}/move", response_model=DataOut[TaskOut])
def move_task(
    task_id: str,
    payload: TaskMoveIn,
    db: Session = Depends(get_db),
    user: User = Depends(require_user),
):
    t = _get_task(db, task_id)
    require_membership(db, t.workspace_id, user)

    status = payload.status.value
    lane = (t.workspace_id, t.project_id, status)

    if payload.prev_task_id is None and payload.next_task_id is None:
        if t.status != status:
            t.position = allocate_position(db, workspace_id=t.workspace_id, project_id=t.project_id, status=status)
            t.status = status
        db.add(t)
        db.commit()
        db.refresh(t)
        return DataOut(data=task_out(t))

    prev_task = _lane_neighbour(db, payload.prev_task_id, lane)
    next_task = _lane_neighbour(db, payload.next_task_id, lane)
    if t in (prev_task, next_task):
        raise HTTPException(status_code=400, detail="A task cannot be its own neighbour")
    if prev_task is not None and next_task is not None and prev_task.position >= next_task.position:
        raise HTTPException(status_code=400, detail="Neighbours are out of order")

    position = place_between(
        db,
        workspace_id=t.workspace_id,
        project_id=t.project_id,
        status=status,
        prev_task=prev_task,
        next_task=next_task,
    )

    t.status = status
    t.position = position
    db.add(t)
    db.commit()
    db.refresh(t)
    return DataOut(data=task_out(t))


@router.delete("/{task_id}", response_model=DataOut[DeletedOut])
def delete_task(task_id: str, db: Session = Depends(get_db), user: User = Depends(require_user)):
    t = _get_task(db, task_id)
    require_membership(db, t.workspace_id, user)

    deleted_id = str(t.id)
    db.delete(t)
    db.commit()
    return DataOut(data=DeletedOut(id=deleted_id))
