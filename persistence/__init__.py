from __future__ import annotations

from .errors import (
    ConflictError,
    NotFoundError,
    PermissionDeniedError,
    RepositoryError,
    UserExistsError,
    ValidationError,
)
from .interfaces import KeyValueStore
from .kv_store import JsonFileKeyValueStore
from .repositories import (
    AsyncUserRepository,
    AsyncVideoRepository,
    KVUserRepository,
    KVVideoRepository,
)

__all__ = [
    "KeyValueStore",
    "JsonFileKeyValueStore",
    "AsyncUserRepository",
    "KVUserRepository",
    "AsyncVideoRepository",
    "KVVideoRepository",
    "RepositoryError",
    "ValidationError",
    "PermissionDeniedError",
    "NotFoundError",
    "ConflictError",
    "UserExistsError",
]
