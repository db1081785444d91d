from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any

import jwt
from fastapi import HTTPException, Request

from persistence import KVUserRepository, KVVideoRepository
from persistence.models import UserRecord
from settings import Settings

logger = logging.getLogger(__name__)


def get_app_settings(request: Request) -> Settings:
    return request.app.state.settings


def get_user_repo(request: Request) -> KVUserRepository:
    return request.app.state.users


def get_video_repo(request: Request) -> KVVideoRepository:
    return request.app.state.videos


@dataclass(frozen=True)
class AuthContext:
    user_id: str
    claims: dict[str, Any]


def _bearer_token(request: Request) -> str | None:
    auth = request.headers.get("Authorization")
    if not auth:
        return None
    parts = auth.split(" ", 1)
    if len(parts) != 2 or parts[0].lower() != "bearer" or not parts[1].strip():
        return None
    return parts[1].strip()


def require_auth(request: Request) -> AuthContext:
    token = _bearer_token(request)
    if not token:
        raise HTTPException(status_code=401, detail="Unauthorized - No token provided")

    settings = get_app_settings(request)
    try:
        claims = jwt.decode(token, settings.jwt_secret, algorithms=[settings.jwt_alg])
    except jwt.PyJWTError as e:
        logger.info("AUTH: rejected bearer token: %r", e)
        raise HTTPException(status_code=401, detail="Unauthorized - Invalid token") from e

    sub = claims.get("sub")
    if not isinstance(sub, str) or not sub.strip():
        raise HTTPException(status_code=401, detail="Unauthorized - Invalid token")
    return AuthContext(user_id=sub.strip(), claims=claims)


async def load_user(request: Request, auth: AuthContext) -> UserRecord | None:
    return await get_user_repo(request).get(auth.user_id)
