"""
Join tasks with their project and assignee without per-task queries.

For a task set referencing k projects and m members this issues one project
query, one member query, and one user lookup per distinct member. References
that no longer resolve leave the field as None; the task is still returned.
"""
from __future__ import annotations

import uuid
from dataclasses import dataclass
from typing import Dict, Iterable, List, Optional, Sequence, Set

from sqlalchemy import select
from sqlalchemy.orm import Session

from taskboard.db.models import Project, Task, User, WorkspaceMember


@dataclass(frozen=True)
class UserIdentity:
    id: uuid.UUID
    name: str
    email: str


@dataclass(frozen=True)
class Assignee:
    member: WorkspaceMember
    name: str
    email: str


@dataclass(frozen=True)
class EnrichedTask:
    task: Task
    project: Optional[Project]
    assignee: Optional[Assignee]


class UserDirectory:
    """
    Request-scoped identity lookup. There is no batch API, so each distinct
    user costs one lookup; repeats are served from the cache.
    """

    def __init__(self, db: Session) -> None:
        self.db = db
        self._cache: Dict[uuid.UUID, Optional[UserIdentity]] = {}

    def get(self, user_id: uuid.UUID) -> Optional[UserIdentity]:
        if user_id in self._cache:
            return self._cache[user_id]

        user = self.db.get(User, user_id)
        identity = UserIdentity(id=user.id, name=user.name, email=user.email) if user else None
        self._cache[user_id] = identity
        return identity


def _distinct(ids: Iterable[Optional[uuid.UUID]]) -> Set[uuid.UUID]:
    return {i for i in ids if i is not None}


def fetch_projects(db: Session, workspace_id: uuid.UUID, project_ids: Set[uuid.UUID]) -> Dict[uuid.UUID, Project]:
    if not project_ids:
        return {}
    rows = (
        db.execute(select(Project).where(Project.workspace_id == workspace_id, Project.id.in_(list(project_ids))))
        .scalars()
        .all()
    )
    return {p.id: p for p in rows}


def fetch_assignees(
    db: Session,
    workspace_id: uuid.UUID,
    member_ids: Set[uuid.UUID],
    directory: UserDirectory,
) -> Dict[uuid.UUID, Assignee]:
    if not member_ids:
        return {}
    members = (
        db.execute(
            select(WorkspaceMember).where(
                WorkspaceMember.workspace_id == workspace_id,
                WorkspaceMember.id.in_(list(member_ids)),
            )
        )
        .scalars()
        .all()
    )

    out: Dict[uuid.UUID, Assignee] = {}
    for m in members:
        identity = directory.get(m.user_id)
        if identity is None:
            # member row survived its user; treat as dangling
            continue
        out[m.id] = Assignee(member=m, name=identity.name, email=identity.email)
    return out


def populate_tasks(
    db: Session,
    tasks: Sequence[Task],
    *,
    workspace_id: uuid.UUID,
    directory: Optional[UserDirectory] = None,
) -> List[EnrichedTask]:
    directory = directory or UserDirectory(db)

    projects = fetch_projects(db, workspace_id, _distinct(t.project_id for t in tasks))
    assignees = fetch_assignees(db, workspace_id, _distinct(t.assignee_id for t in tasks), directory)

    return [
        EnrichedTask(task=t, project=projects.get(t.project_id), assignee=assignees.get(t.assignee_id))
        for t in tasks
    ]
