from __future__ import annotations

# Key layout (the store itself enforces none of it):
#   <entity>:<id>                 primary record
#   <entity>:<field>:<value>      secondary lookup -> id
#   <entity>:<list>:<owner>       one-to-many index -> [ids]

USER_PREFIX = "user:"
VIDEO_PREFIX = "video:"
COMMENT_PREFIX = "comment:"
RATING_PREFIX = "rating:"
ALL_VIDEOS_KEY = "videos:all"


def user_key(user_id: str) -> str:
    return f"user:{user_id}"


def username_key(username: str) -> str:
    return f"user:username:{username.strip().lower()}"


def email_key(email: str) -> str:
    return f"user:email:{email.strip().lower()}"


def user_videos_key(user_id: str) -> str:
    return f"user:videos:{user_id}"


def video_key(video_id: str) -> str:
    return f"video:{video_id}"


def comment_key(comment_id: str) -> str:
    return f"comment:{comment_id}"


def rating_key(user_id: str, video_id: str) -> str:
    return f"rating:{user_id}:{video_id}"


def is_primary_key(key: str, prefix: str) -> bool:
    """True for ``<entity>:<id>`` keys, False for lookup and index keys."""
    return key.startswith(prefix) and ":" not in key[len(prefix):]
