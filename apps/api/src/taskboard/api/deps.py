from __future__ import annotations

import logging
import uuid
from typing import Optional, Union

from fastapi import Depends, HTTPException, Request
from sqlalchemy import select
from sqlalchemy.orm import Session

from taskboard.core.security import session_user
from taskboard.db.models import MemberRole, User, WorkspaceMember
from taskboard.db.session import get_db

logger = logging.getLogger(__name__)


def require_user(request: Request, db: Session = Depends(get_db)) -> User:
    user = session_user(db, request)
    if not user:
        raise HTTPException(status_code=401, detail="Not authenticated")
    return user


def parse_uuid(value: Union[str, uuid.UUID, None]) -> Optional[uuid.UUID]:
    if value is None or isinstance(value, uuid.UUID):
        return value
    try:
        return uuid.UUID(value)
    except ValueError:
        return None


def parse_uuid_or_404(value: str, entity: str) -> uuid.UUID:
    parsed = parse_uuid(value)
    if parsed is None:
        raise HTTPException(status_code=404, detail=f"{entity} not found")
    return parsed


def resolve_membership(
    db: Session, workspace_id: Union[str, uuid.UUID, None], user_id: uuid.UUID
) -> Optional[WorkspaceMember]:
    ws_id = parse_uuid(workspace_id)
    if ws_id is None:
        return None

    return db.execute(
        select(WorkspaceMember).where(
            WorkspaceMember.workspace_id == ws_id,
            WorkspaceMember.user_id == user_id,
        )
    ).scalar_one_or_none()


def require_membership(db: Session, workspace_id: Union[str, uuid.UUID, None], user: User) -> WorkspaceMember:
    """
    Gate for every workspace-scoped operation. Must run before any upload or write.
    """
    member = resolve_membership(db, workspace_id, user.id)
    if not member:
        logger.info("Denied user=%s workspace=%s: not a member", user.id, workspace_id)
        raise HTTPException(status_code=401, detail="Unauthorized")
    return member


def require_admin(db: Session, workspace_id: Union[str, uuid.UUID, None], user: User) -> WorkspaceMember:
    member = require_membership(db, workspace_id, user)
    if member.role != MemberRole.ADMIN.value:
        logger.info("Denied user=%s workspace=%s: admin role required", user.id, workspace_id)
        raise HTTPException(status_code=401, detail="Unauthorized")
    return member
