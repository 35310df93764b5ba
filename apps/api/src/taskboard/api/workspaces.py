from __future__ import annotations

import secrets
import string
from typing import Optional, Union

from fastapi import APIRouter, Depends, Form, HTTPException, UploadFile
from sqlalchemy import select
from sqlalchemy.orm import Session

from taskboard.api.deps import parse_uuid_or_404, require_admin, require_membership, require_user
from taskboard.core.analytics import compute_analytics
from taskboard.core.config import settings
from taskboard.core.dates import utcnow
from taskboard.core.images import ImageStore, get_image_store, resolve_image
from taskboard.db.models import MemberRole, User, Workspace, WorkspaceMember
from taskboard.db.session import get_db
from taskboard.schemas.common import DataOut, DocumentsOut
from taskboard.schemas.projects import AnalyticsOut
from taskboard.schemas.workspaces import JoinWorkspaceIn, WorkspaceOut

router = APIRouter(prefix="/workspaces", tags=["workspaces"])

_INVITE_ALPHABET = string.ascii_letters + string.digits


def generate_invite_code(length: int) -> str:
    return "".join(secrets.choice(_INVITE_ALPHABET) for _ in range(length))


def workspace_out(ws: Workspace) -> WorkspaceOut:
    return WorkspaceOut(
        id=str(ws.id),
        name=ws.name,
        owner_user_id=str(ws.owner_user_id),
        image=ws.image or "",
        invite_code=ws.invite_code,
    )


def _get_workspace(db: Session, workspace_id: str) -> Workspace:
    ws = db.get(Workspace, parse_uuid_or_404(workspace_id, "Workspace"))
    if not ws:
        raise HTTPException(status_code=404, detail="Workspace not found")
    return ws


@router.get("", response_model=DataOut[DocumentsOut[WorkspaceOut]])
def list_workspaces(db: Session = Depends(get_db), user: User = Depends(require_user)):
    workspace_ids = (
        db.execute(select(WorkspaceMember.workspace_id).where(WorkspaceMember.user_id == user.id)).scalars().all()
    )
    if not workspace_ids:
        return DataOut(data=DocumentsOut(documents=[], total=0))

    rows = (
        db.execute(select(Workspace).where(Workspace.id.in_(workspace_ids)).order_by(Workspace.created_at.desc()))
        .scalars()
        .all()
    )
    return DataOut(data=DocumentsOut(documents=[workspace_out(w) for w in rows], total=len(rows)))


@router.post("", response_model=DataOut[WorkspaceOut])
def create_workspace(
    name: str = Form(..., min_length=1, max_length=200),
    image: Union[UploadFile, str, None] = Form(None),
    db: Session = Depends(get_db),
    user: User = Depends(require_user),
    images: ImageStore = Depends(get_image_store),
):
    ws = Workspace(
        name=name.strip(),
        owner_user_id=user.id,
        image=resolve_image(images, image),
        invite_code=generate_invite_code(settings.INVITE_CODE_LENGTH),
    )
    db.add(ws)
    db.flush()

    # creator is the first admin
    db.add(WorkspaceMember(workspace_id=ws.id, user_id=user.id, role=MemberRole.ADMIN.value))
    db.commit()
    db.refresh(ws)
    return DataOut(data=workspace_out(ws))


@router.get("/{workspace_id}", response_model=DataOut[WorkspaceOut])
def get_workspace(workspace_id: str, db: Session = Depends(get_db), user: User = Depends(require_user)):
    require_membership(db, workspace_id, user)
    return DataOut(data=workspace_out(_get_workspace(db, workspace_id)))


@router.patch("/{workspace_id}", response_model=DataOut[WorkspaceOut])
def update_workspace(
    workspace_id: str,
    name: Optional[str] = Form(None, min_length=1, max_length=200),
    image: Union[UploadFile, str, None] = Form(None),
    db: Session = Depends(get_db),
    user: User = Depends(require_user),
    images: ImageStore = Depends(get_image_store),
):
    require_admin(db, workspace_id, user)
    ws = _get_workspace(db, workspace_id)

    if name is not None:
        ws.name = name.strip()
    ws.image = resolve_image(images, image, default=ws.image)

    db.add(ws)
    db.commit()
    db.refresh(ws)
    return DataOut(data=workspace_out(ws))


@router.post("/{workspace_id}/reset-invite-code", response_model=DataOut[WorkspaceOut])
def reset_invite_code(workspace_id: str, db: Session = Depends(get_db), user: User = Depends(require_user)):
    require_admin(db, workspace_id, user)
    ws = _get_workspace(db, workspace_id)

    ws.invite_code = generate_invite_code(settings.INVITE_CODE_LENGTH)
    db.add(ws)
    db.commit()
    db.refresh(ws)
    return DataOut(data=workspace_out(ws))


@router.post("/{workspace_id}/join", response_model=DataOut[WorkspaceOut])
def join_workspace(
    workspace_id: str,
    payload: JoinWorkspaceIn,
    db: Session = Depends(get_db),
    user: User = Depends(require_user),
):
    ws = _get_workspace(db, workspace_id)

    existing = db.execute(
        select(WorkspaceMember).where(
            WorkspaceMember.workspace_id == ws.id,
            WorkspaceMember.user_id == user.id,
        )
    ).scalar_one_or_none()
    if existing:
        raise HTTPException(status_code=400, detail="Already a member")

    if payload.code != ws.invite_code:
        raise HTTPException(status_code=400, detail="Invalid invite code")

    db.add(WorkspaceMember(workspace_id=ws.id, user_id=user.id, role=MemberRole.MEMBER.value))
    db.commit()
    return DataOut(data=workspace_out(ws))


@router.get("/{workspace_id}/analytics", response_model=DataOut[AnalyticsOut])
def get_workspace_analytics(workspace_id: str, db: Session = Depends(get_db), user: User = Depends(require_user)):
    member = require_membership(db, workspace_id, user)

    snapshot = compute_analytics(db, member_id=member.id, now=utcnow(), workspace_id=member.workspace_id)
    return DataOut(data=AnalyticsOut(**snapshot.as_flat_dict()))
