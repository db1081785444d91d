from __future__ import annotations

import logging
from typing import Any, Optional

from fastapi import APIRouter, Depends, File, Form, HTTPException, Query, Request, UploadFile
from fastapi.responses import JSONResponse

from endpoints.deps import AuthContext, get_app_settings, get_video_repo, load_user, require_auth
from endpoints.media import media_url, save_upload
from persistence.repositories import DEFAULT_PAGE_SIZE

router = APIRouter(tags=["videos"])
logger = logging.getLogger(__name__)


@router.get("/videos")
async def list_videos(
    request: Request,
    page: int = Query(1, ge=1),
    limit: int = Query(DEFAULT_PAGE_SIZE, ge=1, le=100),
    search: str = "",
):
    result = await get_video_repo(request).list_videos(page=page, limit=limit, search=search)
    logger.debug("VIDEOS: total=%d page=%d limit=%d hasMore=%s", result.total, page, limit, result.hasMore)
    return JSONResponse(result.model_dump(mode="json"))


@router.post("/videos/upload")
async def upload_video(
    request: Request,
    title: str = Form(""),
    description: str = Form(""),
    genre: str = Form(""),
    ageRating: str = Form(""),
    thumbnailUrl: Optional[str] = Form(None),
    video: Optional[UploadFile] = File(None),
    auth: AuthContext = Depends(require_auth),
):
    user = await load_user(request, auth)
    if user is None or user.role != "streamer":
        raise HTTPException(status_code=403, detail="Only streamers can upload videos")
    if not title.strip() or not description.strip() or not genre.strip() or not ageRating.strip() or video is None:
        raise HTTPException(status_code=400, detail="Missing required fields")

    filename = await save_upload(video, get_app_settings(request).media_dir)
    record = await get_video_repo(request).create(
        title=title,
        description=description,
        genre=genre,
        ageRating=ageRating,
        uploadedBy=user.username,
        uploaderId=user.id,
        videoUrl=media_url(filename),
        videoPath=filename,
        thumbnail=thumbnailUrl,
    )
    return JSONResponse({"success": True, "video": record.model_dump(mode="json")})


@router.get("/videos/{video_id}")
async def get_video(request: Request, video_id: str):
    videos = get_video_repo(request)
    record = await videos.get(video_id)
    if record is None:
        raise HTTPException(status_code=404, detail="Video not found")
    return JSONResponse({"video": videos.with_absolute_urls(record).model_dump(mode="json")})


@router.post("/videos/{video_id}/view")
async def track_view(request: Request, video_id: str):
    views = await get_video_repo(request).record_view(video_id)
    return JSONResponse({"views": views})


@router.post("/videos/{video_id}/rate")
async def rate_video(
    request: Request,
    video_id: str,
    body: dict[str, Any],
    auth: AuthContext = Depends(require_auth),
):
    user = await load_user(request, auth)
    if user is None or user.role != "viewer":
        raise HTTPException(status_code=403, detail="Only viewers can rate videos")
    record = await get_video_repo(request).rate(user, video_id, body.get("rating"))
    return JSONResponse({"rating": record.rating, "totalRatings": record.totalRatings})


@router.post("/videos/{video_id}/comments")
async def add_comment(
    request: Request,
    video_id: str,
    body: dict[str, Any],
    auth: AuthContext = Depends(require_auth),
):
    user = await load_user(request, auth)
    if user is None:
        raise HTTPException(status_code=404, detail="User not found")
    comment = await get_video_repo(request).add_comment(user, video_id, body.get("content"))
    return JSONResponse({"success": True, "comment": comment.model_dump(mode="json")})


@router.get("/stats")
async def platform_stats(request: Request):
    stats = await get_video_repo(request).stats()
    return JSONResponse(stats.model_dump(mode="json"))
