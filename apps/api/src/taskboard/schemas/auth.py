from __future__ import annotations

from pydantic import EmailStr, Field

from taskboard.schemas.common import ApiModel


class RegisterIn(ApiModel):
    name: str = Field(min_length=1, max_length=200)
    email: EmailStr
    password: str = Field(min_length=8, max_length=72)


class LoginIn(ApiModel):
    email: EmailStr
    password: str = Field(min_length=8, max_length=72)


class UserOut(ApiModel):
    id: str
    name: str
    email: EmailStr
