from __future__ import annotations

from typing import Optional, Union

from fastapi import APIRouter, Depends, Form, HTTPException, Query, UploadFile
from sqlalchemy import select
from sqlalchemy.orm import Session

from taskboard.api.deps import parse_uuid_or_404, require_membership, require_user
from taskboard.core.analytics import compute_analytics
from taskboard.core.dates import utcnow
from taskboard.core.images import ImageStore, get_image_store, resolve_image
from taskboard.db.models import Project, User
from taskboard.db.session import get_db
from taskboard.schemas.common import DataOut, DeletedOut, DocumentsOut
from taskboard.schemas.projects import AnalyticsOut, ProjectOut

router = APIRouter(prefix="/projects", tags=["projects"])


def project_out(p: Project) -> ProjectOut:
    return ProjectOut(id=str(p.id), workspace_id=str(p.workspace_id), name=p.name, image=p.image or "")


def _get_project(db: Session, project_id: str) -> Project:
    p = db.get(Project, parse_uuid_or_404(project_id, "Project"))
    if not p:
        raise HTTPException(status_code=404, detail="Project not found")
    return p


@router.post("", response_model=DataOut[ProjectOut])
def create_project(
    name: str = Form(..., min_length=1, max_length=200),
    workspace_id: str = Form(..., alias="workspaceId"),
    image: Union[UploadFile, str, None] = Form(None),
    db: Session = Depends(get_db),
    user: User = Depends(require_user),
    images: ImageStore = Depends(get_image_store),
):
    member = require_membership(db, workspace_id, user)

    p = Project(name=name.strip(), workspace_id=member.workspace_id, image=resolve_image(images, image))
    db.add(p)
    db.commit()
    db.refresh(p)
    return DataOut(data=project_out(p))


@router.get("", response_model=DataOut[DocumentsOut[ProjectOut]])
def list_projects(
    workspace_id: str = Query(..., alias="workspaceId"),
    db: Session = Depends(get_db),
    user: User = Depends(require_user),
):
    member = require_membership(db, workspace_id, user)

    rows = (
        db.execute(
            select(Project).where(Project.workspace_id == member.workspace_id).order_by(Project.created_at.desc())
        )
        .scalars()
        .all()
    )
    return DataOut(data=DocumentsOut(documents=[project_out(p) for p in rows], total=len(rows)))


@router.get("/{project_id}", response_model=DataOut[ProjectOut])
def get_project(project_id: str, db: Session = Depends(get_db), user: User = Depends(require_user)):
    p = _get_project(db, project_id)
    require_membership(db, p.workspace_id, user)
    return DataOut(data=project_out(p))


@router.patch("/{project_id}", response_model=DataOut[ProjectOut])
def update_project(
    project_id: str,
    name: Optional[str] = Form(None, min_length=1, max_length=200),
    image: Union[UploadFile, str, None] = Form(None),
    db: Session = Depends(get_db),
    user: User = Depends(require_user),
    images: ImageStore = Depends(get_image_store),
):
    p = _get_project(db, project_id)
    require_membership(db, p.workspace_id, user)

    if name is not None:
        p.name = name.strip()
    p.image = resolve_image(images, image, default=p.image)

    db.add(p)
    db.commit()
    db.refresh(p)
    return DataOut(data=project_out(p))


@router.delete("/{project_id}", response_model=DataOut[DeletedOut])
def delete_project(project_id: str, db: Session = Depends(get_db), user: User = Depends(require_user)):
    p = _get_project(db, project_id)
    require_membership(db, p.workspace_id, user)

    deleted_id = str(p.id)
    db.delete(p)
    db.commit()
    return DataOut(data=DeletedOut(id=deleted_id))


@router.get("/{project_id}/analytics", response_model=DataOut[AnalyticsOut])
def get_project_analytics(project_id: str, db: Session = Depends(get_db), user: User = Depends(require_user)):
    p = _get_project(db, project_id)
    member = require_membership(db, p.workspace_id, user)

    snapshot = compute_analytics(db, member_id=member.id, now=utcnow(), project_id=p.id)
    return DataOut(data=AnalyticsOut(**snapshot.as_flat_dict()))
