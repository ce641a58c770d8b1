import logging
import time
from typing import Optional

import jwt
from fastapi import Depends, HTTPException
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from pymongo.database import Database

from . import config
from .db import USERS, get_db
from .models import ROLE_ADMIN

logger = logging.getLogger(__name__)

ALGORITHM = "HS256"

# auto_error=False so a missing header yields our 401 rather than the framework default
bearer = HTTPBearer(auto_error=False)


def create_access_token(uid: str, role: str, expires_delta: Optional[int] = None) -> str:
    settings = config.get_settings()
    now = int(time.time())
    exp = now + (expires_delta or settings.token_ttl_seconds)
    payload = {"uid": uid, "role": role, "iat": now, "exp": exp}
    return jwt.encode(payload, settings.jwt_secret, algorithm=ALGORITHM)


def decode_access_token(token: str) -> dict:
    return jwt.decode(token, config.get_settings().jwt_secret, algorithms=[ALGORITHM])


def _resolve_user(credentials: Optional[HTTPAuthorizationCredentials], db: Database) -> dict:
    try:
        payload = decode_access_token(credentials.credentials)
    except jwt.PyJWTError:
        raise HTTPException(status_code=401, detail="Invalid token")
    uid = payload.get("uid")
    # the stored role is authoritative, not the one baked into the token
    user = db[USERS].find_one({"uid": uid}) if uid else None
    if not user:
        raise HTTPException(status_code=401, detail="Invalid token")
    return user


def get_current_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer),
    db: Database = Depends(get_db),
) -> dict:
    if credentials is None:
        raise HTTPException(status_code=401, detail="Access Denied")
    return _resolve_user(credentials, db)


def get_optional_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer),
    db: Database = Depends(get_db),
) -> Optional[dict]:
    """Like get_current_user, but anonymous callers and stale tokens resolve to None."""
    if credentials is None:
        return None
    try:
        return _resolve_user(credentials, db)
    except HTTPException:
        return None


def is_admin(user: Optional[dict]) -> bool:
    return bool(user) and user.get("role") == ROLE_ADMIN


def require_admin(user: dict = Depends(get_current_user)) -> dict:
    if not is_admin(user):
        logger.warning("Admin route denied for uid=%s", user.get("uid"))
        raise HTTPException(status_code=403, detail="forbidden")
    return user


def ensure_self_or_admin(user: dict, uid: str):
    if not is_admin(user) and user.get("uid") != uid:
        raise HTTPException(status_code=403, detail="forbidden")
