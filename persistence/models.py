from __future__ import annotations

from typing import Any, Literal

from pydantic import BaseModel, Field

Role = Literal["viewer", "streamer"]

DEFAULT_THUMBNAIL = "https://images.unsplash.com/photo-1574717024653-61fd2cf4d44d?w=400&h=225&fit=crop"
DEFAULT_LOCAL_THUMBNAIL = "/media/thumbnails/default.jpg"


class UserRecord(BaseModel):
    id: str
    username: str
    email: str
    role: Role
    password_hash: str | None = None
    created_at: str

    def public_doc(self) -> dict[str, Any]:
        return self.model_dump(mode="json", exclude={"password_hash"})


class CommentRecord(BaseModel):
    id: str
    userId: str
    username: str
    content: str
    timestamp: str = "just now"
    createdAt: str


class VideoRecord(BaseModel):
    id: str
    title: str
    description: str
    genre: str
    ageRating: str
    publisher: str
    producer: str
    uploadedBy: str
    uploaderId: str | None = None
    videoUrl: str = ""
    videoPath: str | None = None
    thumbnail: str = DEFAULT_THUMBNAIL
    uploadDate: str
    rating: float = 0
    totalRatings: int = 0
    views: int = 0
    # Newest first.
    comments: list[CommentRecord] = Field(default_factory=list)


class RatingRecord(BaseModel):
    rating: int | float = Field(ge=1, le=5)
    timestamp: str


class VideoPage(BaseModel):
    videos: list[VideoRecord]
    total: int
    page: int
    limit: int
    hasMore: bool


class PlatformStats(BaseModel):
    totalVideos: int
    totalViews: int
    totalRatings: int
    streamers: int
    viewers: int
