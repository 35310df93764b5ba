from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, HTTPException, Response
from sqlalchemy import select
from sqlalchemy.orm import Session

from taskboard.api.deps import require_user
from taskboard.core.config import settings
from taskboard.core.security import (
    SESSION_COOKIE_NAME,
    SESSION_COOKIE_PATH,
    hash_password,
    issue_session_token,
    verify_password,
)
from taskboard.db.models import User
from taskboard.db.session import get_db
from taskboard.schemas.auth import LoginIn, RegisterIn, UserOut
from taskboard.schemas.common import DataOut

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/auth", tags=["auth"])


def _start_session(response: Response, user: User) -> DataOut[UserOut]:
    response.set_cookie(
        key=SESSION_COOKIE_NAME,
        value=issue_session_token(user_id=user.id, email=user.email),
        httponly=True,
        secure=bool(settings.COOKIE_SECURE),
        samesite=settings.COOKIE_SAMESITE,
        path=SESSION_COOKIE_PATH,
        max_age=settings.ACCESS_EXPIRES_MINUTES * 60,
    )
    return DataOut(data=UserOut(id=str(user.id), name=user.name, email=user.email))


def _find_by_email(db: Session, email: str):
    return db.execute(select(User).where(User.email == email)).scalar_one_or_none()


@router.post("/register", response_model=DataOut[UserOut])
def register(payload: RegisterIn, response: Response, db: Session = Depends(get_db)):
    email = payload.email.strip().lower()
    if _find_by_email(db, email):
        raise HTTPException(status_code=409, detail="Email already registered")

    user = User(email=email, name=payload.name.strip(), password_hash=hash_password(payload.password))
    db.add(user)
    db.commit()
    db.refresh(user)

    logger.info("Registered user %s", user.id)
    return _start_session(response, user)


@router.post("/login", response_model=DataOut[UserOut])
def login(payload: LoginIn, response: Response, db: Session = Depends(get_db)):
    user = _find_by_email(db, payload.email.strip().lower())
    if user is None or not verify_password(payload.password, user.password_hash):
        raise HTTPException(status_code=401, detail="Invalid credentials")
    return _start_session(response, user)


@router.post("/logout")
def logout(response: Response):
    response.delete_cookie(key=SESSION_COOKIE_NAME, path=SESSION_COOKIE_PATH)
    return {"ok": True}


@router.get("/me", response_model=DataOut[UserOut])
def me(user: User = Depends(require_user)):
    return DataOut(data=UserOut(id=str(user.id), name=user.name, email=user.email))
