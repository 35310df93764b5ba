from __future__ import annotations

from pydantic import Field

from taskboard.db.models import MemberRole
from taskboard.schemas.common import ApiModel


class WorkspaceOut(ApiModel):
    id: str
    name: str
    owner_user_id: str
    image: str
    invite_code: str


class JoinWorkspaceIn(ApiModel):
    code: str = Field(min_length=1, max_length=32)


class MemberOut(ApiModel):
    id: str
    workspace_id: str
    user_id: str
    role: MemberRole
    name: str
    email: str


class MemberRoleIn(ApiModel):
    role: MemberRole
