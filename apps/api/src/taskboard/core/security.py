from __future__ import annotations

import uuid
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Optional

import bcrypt
from fastapi import Request
from jose import JWTError, jwt
from sqlalchemy.orm import Session

from taskboard.core.config import settings
from taskboard.db.models import User

SESSION_COOKIE_NAME = "taskboard_session"
SESSION_COOKIE_PATH = "/"
SESSION_TOKEN_TYPE = "session"

# bcrypt ignores everything past this many bytes
BCRYPT_MAX_BYTES = 72


def _password_bytes(password: str) -> bytes:
    raw = password.encode("utf-8")
    if len(raw) > BCRYPT_MAX_BYTES:
        raise ValueError(f"Password longer than {BCRYPT_MAX_BYTES} bytes")
    return raw


def hash_password(password: str) -> str:
    return bcrypt.hashpw(_password_bytes(password), bcrypt.gensalt(rounds=12)).decode("utf-8")


def verify_password(password: str, password_hash: str) -> bool:
    try:
        return bcrypt.checkpw(_password_bytes(password), password_hash.encode("utf-8"))
    except ValueError:
        # over-long password or a hash bcrypt can't parse
        return False


def issue_session_token(*, user_id: uuid.UUID, email: str) -> str:
    issued = datetime.now(timezone.utc)
    claims: Dict[str, Any] = {
        "sub": str(user_id),
        "email": email,
        "typ": SESSION_TOKEN_TYPE,
        "iat": int(issued.timestamp()),
        "exp": int((issued + timedelta(minutes=settings.ACCESS_EXPIRES_MINUTES)).timestamp()),
    }
    return jwt.encode(claims, settings.JWT_SECRET, algorithm=settings.JWT_ALG)


def read_session_token(token: str) -> Optional[uuid.UUID]:
    """
    Return the user id carried by a valid session token, None for anything else
    (bad signature, expired, wrong type, malformed subject).
    """
    try:
        claims = jwt.decode(token, settings.JWT_SECRET, algorithms=[settings.JWT_ALG])
    except JWTError:
        return None

    if claims.get("typ") != SESSION_TOKEN_TYPE:
        return None
    try:
        return uuid.UUID(str(claims.get("sub") or ""))
    except ValueError:
        return None


def session_user(db: Session, request: Request) -> Optional[User]:
    token = request.cookies.get(SESSION_COOKIE_NAME)
    if not token:
        return None

    user_id = read_session_token(token)
    return db.get(User, user_id) if user_id else None
