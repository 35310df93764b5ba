# apps/api/tests/conftest.py

from __future__ import annotations

import os

os.environ.setdefault("DATABASE_URL", "sqlite://")

import uuid
from datetime import datetime, timedelta, timezone
from typing import Iterator, List, Optional

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine, event, select
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from taskboard.core.security import SESSION_COOKIE_NAME, issue_session_token
from taskboard.db.base import Base
from taskboard.db.models import MemberRole, Project, Task, TaskStatus, User, Workspace, WorkspaceMember
from taskboard.db.session import get_db
from taskboard.main import app


@pytest.fixture()
def engine() -> Iterator[Engine]:
    eng = create_engine("sqlite://", connect_args={"check_same_thread": False}, poolclass=StaticPool)
    Base.metadata.create_all(eng)
    yield eng
    eng.dispose()


@pytest.fixture()
def session_factory(engine: Engine) -> sessionmaker:
    return sessionmaker(bind=engine, autoflush=False, expire_on_commit=False)


@pytest.fixture()
def db(engine: Engine) -> Iterator[Session]:
    """
    Session used by tests to arrange and inspect rows; separate from request sessions.
    """
    session = sessionmaker(bind=engine)()
    yield session
    session.close()


@pytest.fixture()
def client(session_factory: sessionmaker) -> Iterator[TestClient]:
    def _get_db() -> Iterator[Session]:
        session = session_factory()
        try:
            yield session
        except Exception:
            session.rollback()
            raise
        finally:
            session.close()

    app.dependency_overrides[get_db] = _get_db
    with TestClient(app) as c:
        yield c
    app.dependency_overrides.clear()


class StatementLog:
    """
    Records SQL statements issued against an engine.
    """

    def __init__(self) -> None:
        self.statements: List[str] = []

    def __call__(self, conn, cursor, statement, parameters, context, executemany) -> None:
        self.statements.append(statement)

    def touching(self, table: str) -> List[str]:
        needle = f"FROM {table}"
        return [s for s in self.statements if needle in s]

    def clear(self) -> None:
        self.statements.clear()


@pytest.fixture()
def sql_log(engine: Engine) -> Iterator[StatementLog]:
    log = StatementLog()
    event.listen(engine, "before_cursor_execute", log)
    yield log
    event.remove(engine, "before_cursor_execute", log)


class Factory:
    def __init__(self, db: Session) -> None:
        self.db = db
        self._n = 0

    def _save(self, obj):
        self.db.add(obj)
        self.db.commit()
        self.db.refresh(obj)
        return obj

    def user(self, name: Optional[str] = None) -> User:
        self._n += 1
        name = name or f"User {self._n}"
        return self._save(User(email=f"user{self._n}@example.com", name=name, password_hash="x"))

    def workspace(self, owner: User, name: str = "Acme") -> Workspace:
        ws = self._save(Workspace(name=name, owner_user_id=owner.id, image="", invite_code="abc123"))
        self.member(ws, owner, MemberRole.ADMIN)
        return ws

    def member(self, ws: Workspace, user: User, role: MemberRole = MemberRole.MEMBER) -> WorkspaceMember:
        return self._save(WorkspaceMember(workspace_id=ws.id, user_id=user.id, role=role.value))

    def member_of(self, ws: Workspace, user: User) -> WorkspaceMember:
        return self.db.execute(
            select(WorkspaceMember).where(WorkspaceMember.workspace_id == ws.id, WorkspaceMember.user_id == user.id)
        ).scalar_one()

    def project(self, ws: Workspace, name: str = "Website") -> Project:
        return self._save(Project(workspace_id=ws.id, name=name, image=""))

    def task(
        self,
        project: Project,
        assignee_id: uuid.UUID,
        *,
        name: str = "Task",
        status: TaskStatus = TaskStatus.TODO,
        position: int = 1000,
        created_at: Optional[datetime] = None,
        due_date: Optional[datetime] = None,
    ) -> Task:
        now = datetime.now(timezone.utc)
        t = Task(
            workspace_id=project.workspace_id,
            project_id=project.id,
            assignee_id=assignee_id,
            name=name,
            status=status.value,
            position=position,
            due_date=due_date or now + timedelta(days=7),
        )
        if created_at is not None:
            t.created_at = created_at
        return self._save(t)


@pytest.fixture()
def factory(db: Session) -> Factory:
    return Factory(db)


@pytest.fixture()
def login(client: TestClient):
    """
    Act as the given user on subsequent requests.
    """

    def _login(user: User) -> None:
        client.cookies.set(SESSION_COOKIE_NAME, issue_session_token(user_id=user.id, email=user.email))

    return _login
