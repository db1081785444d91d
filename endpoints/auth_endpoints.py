# auth_endpoints.py
from __future__ import annotations

import logging
import time
from typing import Any

import jwt
from fastapi import APIRouter, Depends, HTTPException, Request
from fastapi.responses import JSONResponse

from endpoints.deps import AuthContext, get_app_settings, get_user_repo, require_auth
from persistence.models import UserRecord
from settings import Settings

router = APIRouter(prefix="/auth", tags=["auth"])
logger = logging.getLogger(__name__)


def _mask_token(token: str, *, head: int = 16, tail: int = 8) -> str:
    if not token:
        return ""
    if len(token) <= head + tail + 3:
        return token
    return f"{token[:head]}...{token[-tail:]}"


def issue_access_token(user: UserRecord, settings: Settings) -> dict[str, Any]:
    now = int(time.time())
    exp = now + settings.jwt_ttl_seconds

    payload = {
        "iss": settings.base_url,
        "sub": user.id,
        "iat": now,
        "exp": exp,
        "username": user.username,
        "role": user.role,
    }
    token = jwt.encode(payload, settings.jwt_secret, algorithm=settings.jwt_alg)
    if settings.debug_log_tokens:
        # WARNING: This logs bearer tokens. Use only for local debugging.
        logger.debug("ISSUED JWT: sub=%s role=%s", user.id, user.role)
        logger.debug("ISSUED JWT (masked): %s", _mask_token(token))
    return {
        "access_token": token,
        "token_type": "Bearer",
        "expires_in": exp - now,
    }


@router.post("/signup")
async def signup(request: Request, body: dict[str, Any]):
    users = get_user_repo(request)
    user = await users.create(
        username=body.get("username"),
        email=body.get("email"),
        password=body.get("password"),
        role=body.get("role"),
    )
    return JSONResponse({"success": True, "user": user.public_doc()})


@router.post("/login")
async def login(request: Request, body: dict[str, Any]):
    login_name = body.get("username") or body.get("email")
    password = body.get("password")
    if not isinstance(login_name, str) or not isinstance(password, str) or not login_name.strip() or not password:
        raise HTTPException(status_code=400, detail="Missing required fields")

    user = await get_user_repo(request).authenticate(login_name, password)
    if user is None:
        raise HTTPException(status_code=401, detail="Invalid credentials")

    payload = issue_access_token(user, get_app_settings(request))
    payload["user"] = user.public_doc()
    return JSONResponse(payload)


@router.get("/profile")
async def profile(request: Request, auth: AuthContext = Depends(require_auth)):
    user = await get_user_repo(request).get(auth.user_id)
    if user is None:
        raise HTTPException(status_code=404, detail="User profile not found")
    return JSONResponse({"user": user.public_doc()})
