from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy import func, select
from sqlalchemy.orm import Session

from taskboard.api.deps import parse_uuid_or_404, require_membership, require_user
from taskboard.core.enrichment import UserDirectory
from taskboard.db.models import MemberRole, User, WorkspaceMember
from taskboard.db.session import get_db
from taskboard.schemas.common import DataOut, DeletedOut, DocumentsOut
from taskboard.schemas.workspaces import MemberOut, MemberRoleIn

router = APIRouter(prefix="/members", tags=["members"])


def member_out(m: WorkspaceMember, name: str, email: str) -> MemberOut:
    return MemberOut(
        id=str(m.id),
        workspace_id=str(m.workspace_id),
        user_id=str(m.user_id),
        role=m.role,
        name=name,
        email=email,
    )


def _get_member(db: Session, member_id: str) -> WorkspaceMember:
    m = db.get(WorkspaceMember, parse_uuid_or_404(member_id, "Member"))
    if not m:
        raise HTTPException(status_code=404, detail="Member not found")
    return m


def _member_count(db: Session, m: WorkspaceMember) -> int:
    return db.execute(
        select(func.count()).select_from(WorkspaceMember).where(WorkspaceMember.workspace_id == m.workspace_id)
    ).scalar_one()


def _is_last_admin(db: Session, m: WorkspaceMember) -> bool:
    if m.role != MemberRole.ADMIN.value:
        return False
    admins = db.execute(
        select(func.count())
        .select_from(WorkspaceMember)
        .where(WorkspaceMember.workspace_id == m.workspace_id, WorkspaceMember.role == MemberRole.ADMIN.value)
    ).scalar_one()
    return admins == 1


@router.get("", response_model=DataOut[DocumentsOut[MemberOut]])
def list_members(
    workspace_id: str = Query(..., alias="workspaceId"),
    db: Session = Depends(get_db),
    user: User = Depends(require_user),
):
    caller = require_membership(db, workspace_id, user)

    rows = (
        db.execute(
            select(WorkspaceMember)
            .where(WorkspaceMember.workspace_id == caller.workspace_id)
            .order_by(WorkspaceMember.created_at.asc())
        )
        .scalars()
        .all()
    )

    directory = UserDirectory(db)
    out: list[MemberOut] = []
    for m in rows:
        identity = directory.get(m.user_id)
        if identity is None:
            continue
        out.append(member_out(m, identity.name, identity.email))

    return DataOut(data=DocumentsOut(documents=out, total=len(out)))


@router.delete("/{member_id}", response_model=DataOut[DeletedOut])
def remove_member(member_id: str, db: Session = Depends(get_db), user: User = Depends(require_user)):
    target = _get_member(db, member_id)
    caller = require_membership(db, target.workspace_id, user)

    # members may leave; only admins remove others
    if caller.id != target.id and caller.role != MemberRole.ADMIN.value:
        raise HTTPException(status_code=401, detail="Unauthorized")

    if _member_count(db, target) == 1:
        raise HTTPException(status_code=400, detail="Cannot delete the only member")
    if _is_last_admin(db, target):
        raise HTTPException(status_code=400, detail="Cannot remove the last admin")

    db.delete(target)
    db.commit()
    return DataOut(data=DeletedOut(id=member_id))


@router.patch("/{member_id}", response_model=DataOut[MemberOut])
def update_member_role(
    member_id: str,
    payload: MemberRoleIn,
    db: Session = Depends(get_db),
    user: User = Depends(require_user),
):
    target = _get_member(db, member_id)
    caller = require_membership(db, target.workspace_id, user)

    if caller.role != MemberRole.ADMIN.value:
        raise HTTPException(status_code=401, detail="Unauthorized")

    if _member_count(db, target) == 1 and payload.role != MemberRole.ADMIN:
        raise HTTPException(status_code=400, detail="Cannot downgrade the only member")
    if payload.role != MemberRole.ADMIN and _is_last_admin(db, target):
        raise HTTPException(status_code=400, detail="Cannot downgrade the last admin")

    target.role = payload.role.value
    db.add(target)
    db.commit()
    db.refresh(target)

    identity = UserDirectory(db).get(target.user_id)
    return DataOut(
        data=member_out(target, identity.name if identity else "", identity.email if identity else "")
    )
