from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any

logger = logging.getLogger(__name__)


def read_json(path: Path) -> Any | None:
    """
    Read JSON from disk.

    Returns None for missing files, empty files, or invalid JSON.
    """
    try:
        if not path.exists():
            return None
        raw = path.read_text(encoding="utf-8")
        if not raw.strip():
            return None
        return json.loads(raw)
    except (OSError, UnicodeDecodeError, ValueError) as e:
        logger.warning("JSON READ: failed to read %s: %r", path, e)
        return None


def dump_json(payload: Any, *, indent: int = 2, sort_keys: bool = False) -> str:
    return json.dumps(payload, indent=indent, sort_keys=sort_keys, ensure_ascii=False) + "\n"


def atomic_write_text(path: Path, text: str) -> None:
    """
    Atomically write text to disk by writing to a temp file then replacing.
    """
    path.parent.mkdir(parents=True, exist_ok=True)
    tmp_path = path.with_suffix(path.suffix + ".tmp")
    with tmp_path.open("w", encoding="utf-8") as f:
        f.write(text)
    tmp_path.replace(path)


def atomic_write_json(path: Path, payload: Any, *, indent: int = 2, sort_keys: bool = False) -> None:
    atomic_write_text(path, dump_json(payload, indent=indent, sort_keys=sort_keys))
