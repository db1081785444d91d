from __future__ import annotations

from pathlib import Path


def project_root() -> Path:
    # persistence/paths.py -> persistence -> project root
    return Path(__file__).resolve().parents[1]


def ensure_dir(path: Path) -> Path:
    path.mkdir(parents=True, exist_ok=True)
    return path


def data_dir() -> Path:
    return project_root() / "data"


def default_store_path() -> Path:
    return data_dir() / "kv-store.json"


def default_media_dir() -> Path:
    return project_root() / "videos"


def thumbnails_dir(media_dir: Path) -> Path:
    return ensure_dir(media_dir / "thumbnails")
