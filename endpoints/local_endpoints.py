from __future__ import annotations

import logging
from typing import Any, Optional

from fastapi import APIRouter, File, HTTPException, Request, UploadFile
from fastapi.responses import JSONResponse

from endpoints.deps import get_app_settings, get_user_repo, get_video_repo
from endpoints.media import media_url, save_upload
from persistence.models import DEFAULT_LOCAL_THUMBNAIL
from persistence.paths import thumbnails_dir
from persistence.repositories import seed_default_creator

# KV-only helpers for local development: no bearer token required.
router = APIRouter(prefix="/local", tags=["local"])
logger = logging.getLogger(__name__)

DEFAULT_CREATOR_USERNAME = "ade"
DEFAULT_CREATOR_EMAIL = "ade@dayo.com"
DEFAULT_CREATOR_PASSWORD = "Password123"


@router.post("/videos")
async def create_local_video(request: Request, body: dict[str, Any]):
    record = await get_video_repo(request).create(
        title=body.get("title"),
        description=body.get("description"),
        genre=body.get("genre"),
        ageRating=body.get("ageRating"),
        uploadedBy=body.get("uploadedBy"),
        videoUrl=body.get("videoUrl"),
        thumbnail=body.get("thumbnail"),
    )
    return JSONResponse({"success": True, "video": record.model_dump(mode="json")})


@router.post("/upload")
async def upload_local_file(request: Request, file: Optional[UploadFile] = File(None)):
    if file is None or not file.filename:
        raise HTTPException(status_code=400, detail="No file provided")

    media_dir = get_app_settings(request).media_dir
    filename = await save_upload(file, media_dir)
    thumbnails_dir(media_dir)
    return JSONResponse(
        {
            "url": media_url(filename),
            "path": f"{media_dir.name}/{filename}",
            "thumbnail": DEFAULT_LOCAL_THUMBNAIL,
        }
    )


@router.get("/users")
async def list_local_users(request: Request):
    users = await get_user_repo(request).list_users()
    return JSONResponse({"users": [u.public_doc() for u in users]})


@router.post("/users")
async def create_local_user(request: Request, body: dict[str, Any]):
    user = await get_user_repo(request).create(
        username=body.get("username"),
        email=body.get("email"),
        password=body.get("password"),
        role=body.get("role"),
    )
    return JSONResponse({"success": True, "user": user.public_doc()})


@router.post("/users/delete-all")
async def delete_all_users(request: Request):
    deleted = await get_user_repo(request).delete_all()
    logger.warning("LOCAL USERS: deleted %d user keys", deleted)
    return JSONResponse({"success": True, "deleted": deleted})


@router.post("/users/seed-default")
async def seed_default_user(request: Request):
    user, created = await seed_default_creator(
        get_user_repo(request),
        username=DEFAULT_CREATOR_USERNAME,
        email=DEFAULT_CREATOR_EMAIL,
        password=DEFAULT_CREATOR_PASSWORD,
    )
    return JSONResponse({"success": True, "user": user.public_doc(), "created": created})
