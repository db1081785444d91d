from __future__ import annotations

import asyncio
import logging
import uuid
from datetime import datetime, timezone
from typing import Any, Callable, Protocol

from pydantic import ValidationError as ModelValidationError

from . import keys
from .errors import ConflictError, NotFoundError, PermissionDeniedError, UserExistsError, ValidationError
from .interfaces import KeyValueStore
from .models import (
    DEFAULT_THUMBNAIL,
    CommentRecord,
    PlatformStats,
    RatingRecord,
    Role,
    UserRecord,
    VideoPage,
    VideoRecord,
)
from .passwords import hash_password, verify_password

logger = logging.getLogger(__name__)

ROLES: tuple[str, ...] = ("viewer", "streamer")
DEFAULT_PAGE_SIZE = 20


def utc_now_iso() -> str:
    return datetime.now(timezone.utc).isoformat().replace("+00:00", "Z")


def _upload_sort_key(video: VideoRecord) -> datetime:
    try:
        dt = datetime.fromisoformat(video.uploadDate.replace("Z", "+00:00"))
    except ValueError:
        return datetime.min.replace(tzinfo=timezone.utc)
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt


def _absolute_url(url: str, base_url: str) -> str:
    if not url or url.startswith("http") or not base_url:
        return url
    return f"{base_url}{url}"


def _require_text(value: Any) -> str | None:
    if not isinstance(value, str):
        return None
    s = value.strip()
    return s or None


class AsyncUserRepository(Protocol):
    async def get(self, user_id: str) -> UserRecord | None: ...
    async def get_by_username(self, username: str) -> UserRecord | None: ...
    async def get_by_email(self, email: str) -> UserRecord | None: ...

    async def create(self, *, username: str, email: str, password: str, role: str) -> UserRecord: ...
    async def authenticate(self, login: str, password: str) -> UserRecord | None: ...

    async def list_users(self) -> list[UserRecord]: ...
    async def delete_all(self) -> int: ...


class AsyncVideoRepository(Protocol):
    """
    Domain-level video persistence interface.
    Intentionally granular: mirrors how a real DB would be used.
    """

    async def create(self, **fields: Any) -> VideoRecord: ...
    async def get(self, video_id: str) -> VideoRecord | None: ...
    async def list_videos(self, *, page: int = 1, limit: int = DEFAULT_PAGE_SIZE, search: str = "") -> VideoPage: ...

    async def record_view(self, video_id: str) -> int: ...
    async def rate(self, user: UserRecord, video_id: str, rating: Any) -> VideoRecord: ...
    async def add_comment(self, user: UserRecord, video_id: str, content: Any) -> CommentRecord: ...

    async def stats(self) -> PlatformStats: ...


class KVUserRepository(AsyncUserRepository):
    """
    Users live under ``user:<id>`` with ``user:username:<name>`` and
    ``user:email:<email>`` pointing back at the id.
    """

    def __init__(self, store: KeyValueStore) -> None:
        self._store = store

    async def get(self, user_id: str) -> UserRecord | None:
        doc = await self._store.get(keys.user_key(user_id))
        if not isinstance(doc, dict):
            return None
        try:
            return UserRecord.model_validate(doc)
        except ModelValidationError as e:
            logger.warning("USER LOAD: invalid record for %s: %r", user_id, e)
            return None

    async def _get_via(self, lookup_key: str) -> UserRecord | None:
        user_id = await self._store.get(lookup_key)
        if not isinstance(user_id, str):
            return None
        return await self.get(user_id)

    async def get_by_username(self, username: str) -> UserRecord | None:
        return await self._get_via(keys.username_key(username))

    async def get_by_email(self, email: str) -> UserRecord | None:
        return await self._get_via(keys.email_key(email))

    async def _claim(self, lookup_key: str, user_id: str) -> None:
        def _claim_if_free(current: Any) -> str:
            if current is not None:
                raise UserExistsError("User already exists")
            return user_id

        await self._store.update(lookup_key, _claim_if_free)

    async def create(
        self,
        *,
        username: Any,
        email: Any,
        password: Any,
        role: Any,
        user_id: str | None = None,
    ) -> UserRecord:
        uname = _require_text(username)
        mail = _require_text(email)
        if not uname or not mail or not _require_text(password) or not _require_text(role):
            raise ValidationError("Missing required fields")
        if role not in ROLES:
            raise ValidationError("Invalid role. Must be viewer or streamer")

        uid = user_id or str(uuid.uuid4())
        # Claim both lookups first so two concurrent signups cannot share a name.
        await self._claim(keys.username_key(uname), uid)
        try:
            await self._claim(keys.email_key(mail), uid)
        except UserExistsError:
            await self._store.delete(keys.username_key(uname))
            raise

        record = UserRecord(
            id=uid,
            username=uname,
            email=mail,
            role=role,
            password_hash=await asyncio.to_thread(hash_password, password),
            created_at=utc_now_iso(),
        )
        await self._store.set(keys.user_key(uid), record.model_dump(mode="json"))
        logger.info("USER CREATE: %s (%s)", uname, role)
        return record

    async def authenticate(self, login: str, password: str) -> UserRecord | None:
        login = (login or "").strip()
        if not login or not password:
            return None
        user = await self.get_by_username(login)
        if user is None and "@" in login:
            user = await self.get_by_email(login)
        if user is None or not await asyncio.to_thread(verify_password, password, user.password_hash):
            return None
        return user

    async def list_users(self) -> list[UserRecord]:
        users: list[UserRecord] = []
        for key, doc in await self._store.scan_prefix(keys.USER_PREFIX):
            if not keys.is_primary_key(key, keys.USER_PREFIX) or not isinstance(doc, dict):
                continue
            try:
                users.append(UserRecord.model_validate(doc))
            except ModelValidationError as e:
                logger.warning("USER LIST: skipping invalid record %s: %r", key, e)
        return users

    async def delete_all(self) -> int:
        doomed = [key for key, _ in await self._store.scan_prefix(keys.USER_PREFIX)]
        if doomed:
            await self._store.delete_many(doomed)
        return len(doomed)


class KVVideoRepository(AsyncVideoRepository):
    """
    Videos live under ``video:<id>``; ``videos:all`` keeps ids newest first and
    ``user:videos:<id>`` keeps each uploader's ids in upload order.

    Counters, ratings and comments go through ``store.update`` so concurrent
    requests never drop each other's writes.
    """

    def __init__(self, store: KeyValueStore, *, base_url: str = "") -> None:
        self._store = store
        self._base_url = base_url.rstrip("/")

    async def create(
        self,
        *,
        title: Any,
        description: Any,
        genre: Any,
        ageRating: Any,
        uploadedBy: Any,
        videoUrl: Any,
        uploaderId: str | None = None,
        videoPath: str | None = None,
        thumbnail: Any = None,
    ) -> VideoRecord:
        required = (title, description, genre, ageRating, uploadedBy, videoUrl)
        if any(_require_text(v) is None for v in required):
            raise ValidationError("Missing required fields")

        video_id = str(uuid.uuid4())
        record = VideoRecord(
            id=video_id,
            title=title.strip(),
            description=description.strip(),
            genre=genre.strip(),
            ageRating=ageRating.strip(),
            publisher=uploadedBy.strip(),
            producer=uploadedBy.strip(),
            uploadedBy=uploadedBy.strip(),
            uploaderId=uploaderId,
            videoUrl=videoUrl.strip(),
            videoPath=videoPath,
            thumbnail=_require_text(thumbnail) or DEFAULT_THUMBNAIL,
            uploadDate=utc_now_iso(),
        )
        await self._store.set(keys.video_key(video_id), record.model_dump(mode="json"))
        await self._store.update(keys.ALL_VIDEOS_KEY, lambda ids: [video_id, *ids], default=[])
        if uploaderId:
            await self._store.update(keys.user_videos_key(uploaderId), lambda ids: [*ids, video_id], default=[])
        logger.info("VIDEO CREATE: %s by %s", video_id, record.uploadedBy)
        return record

    async def get(self, video_id: str) -> VideoRecord | None:
        doc = await self._store.get(keys.video_key(video_id))
        if not isinstance(doc, dict):
            return None
        try:
            return VideoRecord.model_validate(doc)
        except ModelValidationError as e:
            logger.warning("VIDEO LOAD: invalid record for %s: %r", video_id, e)
            return None

    def with_absolute_urls(self, video: VideoRecord) -> VideoRecord:
        """Prefix relative media URLs with the public base URL (in place)."""
        video.videoUrl = _absolute_url(video.videoUrl, self._base_url)
        video.thumbnail = _absolute_url(video.thumbnail, self._base_url)
        return video

    async def _all_videos(self) -> list[VideoRecord]:
        videos: list[VideoRecord] = []
        for key, doc in await self._store.scan_prefix(keys.VIDEO_PREFIX):
            if not keys.is_primary_key(key, keys.VIDEO_PREFIX) or not isinstance(doc, dict):
                continue
            try:
                videos.append(VideoRecord.model_validate(doc))
            except ModelValidationError as e:
                logger.warning("VIDEO LIST: skipping invalid record %s: %r", key, e)
        return videos

    async def list_videos(self, *, page: int = 1, limit: int = DEFAULT_PAGE_SIZE, search: str = "") -> VideoPage:
        page = max(1, int(page))
        limit = max(1, int(limit))
        videos = [self.with_absolute_urls(v) for v in await self._all_videos()]

        needle = (search or "").strip().lower()
        if needle:
            videos = [
                v
                for v in videos
                if needle in v.title.lower()
                or needle in v.description.lower()
                or needle in v.genre.lower()
                or needle in v.uploadedBy.lower()
            ]

        videos.sort(key=_upload_sort_key, reverse=True)

        start = (page - 1) * limit
        return VideoPage(
            videos=videos[start : start + limit],
            total=len(videos),
            page=page,
            limit=limit,
            hasMore=start + limit < len(videos),
        )

    async def _update_video(self, video_id: str, mutate: Callable[[VideoRecord], None]) -> VideoRecord:
        def _apply(doc: Any) -> dict[str, Any]:
            if not isinstance(doc, dict):
                raise NotFoundError("Video not found")
            video = VideoRecord.model_validate(doc)
            mutate(video)
            return video.model_dump(mode="json")

        return VideoRecord.model_validate(await self._store.update(keys.video_key(video_id), _apply))

    async def record_view(self, video_id: str) -> int:
        def _bump(video: VideoRecord) -> None:
            video.views += 1

        return (await self._update_video(video_id, _bump)).views

    async def rate(self, user: UserRecord, video_id: str, rating: Any) -> VideoRecord:
        if user.role != "viewer":
            raise PermissionDeniedError("Only viewers can rate videos")
        if isinstance(rating, bool) or not isinstance(rating, (int, float)) or not 1 <= rating <= 5:
            raise ValidationError("Rating must be between 1 and 5")
        if await self.get(video_id) is None:
            raise NotFoundError("Video not found")

        record = RatingRecord(rating=rating, timestamp=utc_now_iso()).model_dump(mode="json")

        def _claim(current: Any) -> dict[str, Any]:
            if current is not None:
                raise ConflictError("You have already rated this video")
            return record

        rkey = keys.rating_key(user.id, video_id)
        await self._store.update(rkey, _claim)

        def _fold(video: VideoRecord) -> None:
            total = video.totalRatings + 1
            video.rating = (video.rating * video.totalRatings + rating) / total
            video.totalRatings = total

        try:
            return await self._update_video(video_id, _fold)
        except NotFoundError:
            await self._store.delete(rkey)
            raise

    async def add_comment(self, user: UserRecord, video_id: str, content: Any) -> CommentRecord:
        text = _require_text(content)
        if text is None:
            raise ValidationError("Comment content is required")

        comment = CommentRecord(
            id=str(uuid.uuid4()),
            userId=user.id,
            username=user.username,
            content=text,
            createdAt=utc_now_iso(),
        )

        def _prepend(video: VideoRecord) -> None:
            video.comments.insert(0, comment)

        await self._update_video(video_id, _prepend)
        await self._store.set(keys.comment_key(comment.id), comment.model_dump(mode="json"))
        return comment

    async def stats(self) -> PlatformStats:
        ids = await self._store.get(keys.ALL_VIDEOS_KEY)
        ids = [i for i in ids if isinstance(i, str)] if isinstance(ids, list) else []
        docs = await self._store.get_many([keys.video_key(i) for i in ids])
        videos = [d for d in docs if isinstance(d, dict)]

        roles: list[Any] = []
        for key, doc in await self._store.scan_prefix(keys.USER_PREFIX):
            if keys.is_primary_key(key, keys.USER_PREFIX) and isinstance(doc, dict):
                roles.append(doc.get("role"))

        return PlatformStats(
            totalVideos=len(videos),
            totalViews=sum(int(v.get("views") or 0) for v in videos),
            totalRatings=sum(int(v.get("totalRatings") or 0) for v in videos),
            streamers=roles.count("streamer"),
            viewers=roles.count("viewer"),
        )


async def seed_default_creator(users: KVUserRepository, *, username: str, email: str, password: str) -> tuple[UserRecord, bool]:
    """Create the default streamer unless its username or email is taken."""
    existing = await users.get_by_username(username) or await users.get_by_email(email)
    if existing is not None:
        return existing, False
    role: Role = "streamer"
    try:
        user = await users.create(username=username, email=email, password=password, role=role)
    except UserExistsError:
        existing = await users.get_by_username(username) or await users.get_by_email(email)
        if existing is None:
            raise
        return existing, False
    return user, True
