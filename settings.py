from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path

from persistence.paths import default_media_dir, default_store_path


def _env_bool(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    return raw.strip().lower() in ("1", "true", "yes", "on")


def _env_int(name: str, default: int, *, minimum: int = 0) -> int:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    try:
        value = int(raw)
    except ValueError:
        return default
    return value if value >= minimum else default


def _env_path(name: str, default: Path) -> Path:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    return Path(raw).expanduser()


@dataclass(frozen=True)
class Settings:
    # Deployment / URLs
    public_base_url: str
    local_base_url: str
    base_url: str

    # JWT
    jwt_secret: str
    jwt_alg: str
    jwt_ttl_seconds: int

    # Debug / logging
    debug_log_tokens: bool
    debug_log_requests: bool
    log_level: str

    # Key-value store
    kv_persist: bool
    kv_store_path: Path
    kv_save_interval_seconds: int

    # Local media + seeding
    media_dir: Path
    seed_default_creator: bool


def get_settings() -> Settings:
    public_base_url = (os.getenv("PUBLIC_BASE_URL", "")).rstrip("/")
    local_base_url = (os.getenv("LOCAL_BASE_URL", "http://127.0.0.1:3001")).rstrip("/")
    base_url = public_base_url or local_base_url

    # NOTE: default is insecure; set JWT_SECRET in production
    jwt_secret = os.getenv("JWT_SECRET", "dev-only-super-secret")
    jwt_alg = os.getenv("JWT_ALG", "HS256")
    jwt_ttl_seconds = _env_int("JWT_TTL_SECONDS", 60 * 60, minimum=1)

    debug_log_tokens = _env_bool("DEBUG_LOG_TOKENS", False)
    debug_log_requests = _env_bool("DEBUG_LOG_REQUESTS", True)
    log_level = os.getenv("LOG_LEVEL", "INFO").strip().upper() or "INFO"

    # Turn off on ephemeral filesystems; every restart then starts empty.
    kv_persist = _env_bool("KV_PERSIST", True)
    kv_store_path = _env_path("KV_STORE_PATH", default_store_path())
    kv_save_interval_seconds = _env_int("KV_SAVE_INTERVAL_SECONDS", 30, minimum=1)

    media_dir = _env_path("MEDIA_DIR", default_media_dir())
    seed_default_creator = _env_bool("SEED_DEFAULT_CREATOR", True)

    return Settings(
        public_base_url=public_base_url,
        local_base_url=local_base_url,
        base_url=base_url,
        jwt_secret=jwt_secret,
        jwt_alg=jwt_alg,
        jwt_ttl_seconds=jwt_ttl_seconds,
        debug_log_tokens=debug_log_tokens,
        debug_log_requests=debug_log_requests,
        log_level=log_level,
        kv_persist=kv_persist,
        kv_store_path=kv_store_path,
        kv_save_interval_seconds=kv_save_interval_seconds,
        media_dir=media_dir,
        seed_default_creator=seed_default_creator,
    )
