from __future__ import annotations

import uuid

from sqlalchemy import func, select

from taskboard.api.deps import resolve_membership
from taskboard.db.models import Project, Task, WorkspaceMember


def _count(db, model) -> int:
    return db.execute(select(func.count()).select_from(model)).scalar_one()


def test_resolve_membership_returns_row_or_none(db, factory):
    owner = factory.user()
    outsider = factory.user()
    ws = factory.workspace(owner)

    member = resolve_membership(db, ws.id, owner.id)
    assert member is not None
    assert member.role == "ADMIN"

    assert resolve_membership(db, ws.id, outsider.id) is None
    assert resolve_membership(db, str(ws.id), owner.id) is not None
    assert resolve_membership(db, "not-a-uuid", owner.id) is None


def test_unauthenticated_requests_are_rejected(client):
    res = client.get("/workspaces")
    assert res.status_code == 401
    assert res.json()["detail"] == "Not authenticated"


def test_non_member_cannot_list_tasks_and_no_task_reads_happen(client, factory, login, sql_log):
    owner = factory.user()
    outsider = factory.user()
    ws = factory.workspace(owner)
    project = factory.project(ws)
    factory.task(project, uuid.uuid4())
    login(outsider)

    sql_log.clear()
    res = client.get("/tasks", params={"workspaceId": str(ws.id)})

    assert res.status_code == 401
    assert res.json()["detail"] == "Unauthorized"
    assert sql_log.touching("tasks") == []


def test_non_member_cannot_create_task(client, factory, login, db):
    owner = factory.user()
    outsider = factory.user()
    ws = factory.workspace(owner)
    project = factory.project(ws)
    login(outsider)

    res = client.post(
        "/tasks",
        json={
            "name": "Sneaky",
            "status": "TODO",
            "workspaceId": str(ws.id),
            "projectId": str(project.id),
            "assigneeId": str(uuid.uuid4()),
            "dueDate": "2026-11-01T00:00:00Z",
        },
    )
    assert res.status_code == 401
    assert _count(db, Task) == 0


def test_non_member_project_operations_are_unauthorized(client, factory, login, db):
    owner = factory.user()
    outsider = factory.user()
    ws = factory.workspace(owner)
    project = factory.project(ws, "Secret")
    login(outsider)

    assert client.post("/projects", data={"name": "X", "workspaceId": str(ws.id)}).status_code == 401
    assert client.get("/projects", params={"workspaceId": str(ws.id)}).status_code == 401
    assert client.get(f"/projects/{project.id}").status_code == 401
    assert client.patch(f"/projects/{project.id}", data={"name": "Hacked"}).status_code == 401
    assert client.delete(f"/projects/{project.id}").status_code == 401
    assert client.get(f"/projects/{project.id}/analytics").status_code == 401

    db.expire_all()
    remaining = db.execute(select(Project)).scalars().all()
    assert [p.name for p in remaining] == ["Secret"]


def test_upload_is_not_stored_for_non_member(client, factory, login, db):
    owner = factory.user()
    outsider = factory.user()
    ws = factory.workspace(owner)
    project = factory.project(ws)
    login(outsider)

    res = client.patch(
        f"/projects/{project.id}",
        data={"name": "X"},
        files={"image": ("logo.png", b"\x89PNG....", "image/png")},
    )
    assert res.status_code == 401

    db.expire_all()
    assert db.get(Project, project.id).image == ""


def test_list_workspaces_is_empty_without_memberships(client, factory, login):
    user = factory.user()
    other = factory.user()
    factory.workspace(other)
    login(user)

    res = client.get("/workspaces")
    assert res.status_code == 200
    assert res.json() == {"data": {"documents": [], "total": 0}}


def test_create_workspace_makes_creator_admin(client, factory, login, db):
    user = factory.user()
    login(user)

    res = client.post("/workspaces", data={"name": "Studio"})
    assert res.status_code == 200, res.text
    data = res.json()["data"]
    assert data["name"] == "Studio"
    assert data["ownerUserId"] == str(user.id)
    assert len(data["inviteCode"]) == 6

    member = db.execute(select(WorkspaceMember).where(WorkspaceMember.user_id == user.id)).scalar_one()
    assert member.role == "ADMIN"
    assert str(member.workspace_id) == data["id"]

    listed = client.get("/workspaces").json()["data"]
    assert listed["total"] == 1
    assert listed["documents"][0]["id"] == data["id"]


def test_create_workspace_stores_uploaded_image_as_data_url(client, factory, login):
    user = factory.user()
    login(user)

    res = client.post("/workspaces", data={"name": "Pics"}, files={"image": ("a.png", b"abc", "image/png")})
    assert res.status_code == 200, res.text
    assert res.json()["data"]["image"] == "data:image/png;base64,YWJj"


def test_join_with_invite_code(client, factory, login):
    owner = factory.user()
    joiner = factory.user()
    ws = factory.workspace(owner)
    login(joiner)

    assert client.get(f"/workspaces/{ws.id}").status_code == 401
    assert client.post(f"/workspaces/{ws.id}/join", json={"code": "wrong"}).status_code == 400

    res = client.post(f"/workspaces/{ws.id}/join", json={"code": ws.invite_code})
    assert res.status_code == 200, res.text
    assert client.get(f"/workspaces/{ws.id}").status_code == 200

    again = client.post(f"/workspaces/{ws.id}/join", json={"code": ws.invite_code})
    assert again.status_code == 400


def test_only_admin_can_update_workspace(client, factory, login):
    owner = factory.user()
    member = factory.user()
    ws = factory.workspace(owner)
    factory.member(ws, member)

    login(member)
    assert client.patch(f"/workspaces/{ws.id}", data={"name": "Nope"}).status_code == 401
    assert client.post(f"/workspaces/{ws.id}/reset-invite-code").status_code == 401

    login(owner)
    res = client.patch(f"/workspaces/{ws.id}", data={"name": "Renamed"})
    assert res.status_code == 200
    assert res.json()["data"]["name"] == "Renamed"

    reset = client.post(f"/workspaces/{ws.id}/reset-invite-code")
    assert reset.json()["data"]["inviteCode"] != ws.invite_code


def test_member_removal_rules(client, factory, login):
    owner = factory.user()
    alice = factory.user()
    bob = factory.user()
    ws = factory.workspace(owner)
    alice_row = factory.member(ws, alice)
    bob_row = factory.member(ws, bob)

    login(alice)
    assert client.delete(f"/members/{bob_row.id}").status_code == 401
    assert client.delete(f"/members/{alice_row.id}").status_code == 200

    login(owner)
    assert client.delete(f"/members/{bob_row.id}").status_code == 200

    members = client.get("/members", params={"workspaceId": str(ws.id)}).json()["data"]
    assert members["total"] == 1
    only = members["documents"][0]
    assert only["userId"] == str(owner.id)
    assert only["email"] == owner.email

    assert client.delete(f"/members/{only['id']}").status_code == 400


def test_only_admin_can_change_roles(client, factory, login):
    owner = factory.user()
    alice = factory.user()
    ws = factory.workspace(owner)
    alice_row = factory.member(ws, alice)

    login(alice)
    assert client.patch(f"/members/{alice_row.id}", json={"role": "ADMIN"}).status_code == 401

    login(owner)
    res = client.patch(f"/members/{alice_row.id}", json={"role": "ADMIN"})
    assert res.status_code == 200
    assert res.json()["data"]["role"] == "ADMIN"
    assert res.json()["data"]["name"] == alice.name

    assert client.patch(f"/members/{alice_row.id}", json={"role": "OWNER"}).status_code == 422


def test_last_admin_cannot_leave_or_step_down(client, factory, login):
    owner = factory.user()
    alice = factory.user()
    ws = factory.workspace(owner)
    owner_row = factory.member_of(ws, owner)
    alice_row = factory.member(ws, alice)
    login(owner)

    assert client.delete(f"/members/{owner_row.id}").status_code == 400
    assert client.patch(f"/members/{owner_row.id}", json={"role": "MEMBER"}).status_code == 400

    assert client.patch(f"/members/{alice_row.id}", json={"role": "ADMIN"}).status_code == 200
    assert client.patch(f"/members/{owner_row.id}", json={"role": "MEMBER"}).status_code == 200
    assert client.delete(f"/members/{owner_row.id}").status_code == 200

    login(alice)
    members = client.get("/members", params={"workspaceId": str(ws.id)}).json()["data"]
    assert [(m["userId"], m["role"]) for m in members["documents"]] == [(str(alice.id), "ADMIN")]
