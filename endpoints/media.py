from __future__ import annotations

import asyncio
import logging
import re
import uuid
from pathlib import Path

from fastapi import HTTPException, UploadFile

from persistence.paths import ensure_dir

logger = logging.getLogger(__name__)

MEDIA_URL_PREFIX = "/media"
MAX_VIDEO_BYTES = 100 * 1024 * 1024
CHUNK_SIZE = 1024 * 1024

_UNSAFE_CHARS = re.compile(r"[^a-zA-Z0-9.-]")


def safe_filename(name: str | None) -> str:
    cleaned = _UNSAFE_CHARS.sub("_", name or "")
    if not cleaned.strip("._"):
        cleaned = "upload.mp4"
    return f"{uuid.uuid4()}-{cleaned}"


def media_url(filename: str) -> str:
    return f"{MEDIA_URL_PREFIX}/{filename}"


async def save_upload(upload: UploadFile, media_dir: Path, *, max_bytes: int = MAX_VIDEO_BYTES) -> str:
    """
    Stream an uploaded file into the media directory.

    Returns the stored filename; the partial file is removed on failure.
    """
    ensure_dir(media_dir)
    filename = safe_filename(upload.filename)
    target = media_dir / filename

    written = 0
    fh = await asyncio.to_thread(target.open, "wb")
    try:
        while True:
            chunk = await upload.read(CHUNK_SIZE)
            if not chunk:
                break
            written += len(chunk)
            if written > max_bytes:
                raise HTTPException(status_code=413, detail="File too large")
            await asyncio.to_thread(fh.write, chunk)
    except BaseException:
        await asyncio.to_thread(fh.close)
        target.unlink(missing_ok=True)
        raise
    await asyncio.to_thread(fh.close)

    if written == 0:
        target.unlink(missing_ok=True)
        raise HTTPException(status_code=400, detail="No file provided")

    logger.info("MEDIA UPLOAD: stored %s (%d bytes)", filename, written)
    return filename
