from __future__ import annotations

import asyncio
import contextlib
import copy
import logging
from pathlib import Path
from typing import Any, Callable, Iterable, Sequence

from json_store import atomic_write_text, dump_json, read_json

from .interfaces import KeyValueStore
from .locks import GLOBAL_PATH_LOCKS

logger = logging.getLogger(__name__)

DEFAULT_SAVE_INTERVAL_SECONDS = 30.0


class JsonFileKeyValueStore(KeyValueStore):
    """
    In-process key-value store persisted as a single JSON snapshot file.

    - ``open()`` loads the snapshot once; a missing or unreadable file yields an
      empty mapping.
    - Every mutation rewrites the whole snapshot (atomically); a background
      task also rewrites it every ``save_interval`` seconds.
    - Values that cannot be encoded as JSON stay in memory but are left out
      of the snapshot.
    - Save failures are logged and never raised; memory stays authoritative.
    - ``path=None`` disables persistence: nothing is read or written.

    Mutations and snapshots are serialized by one asyncio lock, so a
    read-modify-write done through ``update()`` cannot lose a concurrent write.
    Values are copied on the way in and out; callers never share the stored
    objects.
    """

    def __init__(self, path: Path | None, *, save_interval: float = DEFAULT_SAVE_INTERVAL_SECONDS):
        self._path = path
        self._save_interval = float(save_interval)
        self._data: dict[str, Any] = {}
        self._lock = asyncio.Lock()
        self._opened = False
        self._dirty = False
        self._autosave_task: asyncio.Task[None] | None = None

    @classmethod
    def from_settings(cls, settings: Any) -> "JsonFileKeyValueStore":
        path = settings.kv_store_path if settings.kv_persist else None
        return cls(path, save_interval=settings.kv_save_interval_seconds)

    @property
    def path(self) -> Path | None:
        return self._path

    @property
    def persistent(self) -> bool:
        return self._path is not None

    @property
    def dirty(self) -> bool:
        return self._dirty

    def __len__(self) -> int:
        return len(self._data)

    def keys(self) -> list[str]:
        return list(self._data)

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------
    async def open(self) -> None:
        if self._opened:
            return
        async with self._lock:
            if self._opened:
                return
            self._data = await self._load()
            self._dirty = False
            self._opened = True

    async def _load(self) -> dict[str, Any]:
        if self._path is None:
            logger.info("KV STORE: persistence disabled, starting in-memory")
            return {}
        raw = await asyncio.to_thread(read_json, self._path)
        if isinstance(raw, dict):
            logger.info("KV STORE: loaded %d keys from %s", len(raw), self._path)
            return {str(k): v for k, v in raw.items()}
        if raw is not None:
            logger.warning("KV STORE: %s does not hold a JSON object, ignoring it", self._path)
        logger.info("KV STORE: initialized with empty data (%s)", self._path)
        return {}

    def start_autosave(self) -> None:
        if self._path is None or self._autosave_task is not None:
            return
        self._autosave_task = asyncio.get_running_loop().create_task(self._autosave_loop())

    async def _autosave_loop(self) -> None:
        while True:
            await asyncio.sleep(self._save_interval)
            await self.save()

    async def close(self) -> None:
        task, self._autosave_task = self._autosave_task, None
        if task is not None:
            task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await task
        if self._opened:
            await self.save()

    # ------------------------------------------------------------------
    # Persistence
    # ------------------------------------------------------------------
    async def save(self) -> bool:
        """Rewrite the snapshot file. Returns False if the write failed."""
        async with self._lock:
            return await self._save_locked()

    def _snapshot_text(self) -> str:
        try:
            return dump_json(self._data)
        except (TypeError, ValueError):
            pass
        # Snapshot every key whose value encodes; skip only the others.
        encodable: dict[str, Any] = {}
        for k, v in self._data.items():
            try:
                dump_json(v)
            except (TypeError, ValueError) as e:
                logger.warning("KV STORE SAVE: leaving %r out of the snapshot: %r", k, e)
                continue
            encodable[k] = v
        return dump_json(encodable)

    async def _save_locked(self) -> bool:
        if self._path is None:
            self._dirty = False
            return True
        text = self._snapshot_text()
        try:
            await asyncio.to_thread(self._write_snapshot, self._path, text)
        except OSError as e:
            logger.warning("KV STORE SAVE: failed to write %s: %r", self._path, e)
            return False
        self._dirty = False
        return True

    @staticmethod
    def _write_snapshot(path: Path, text: str) -> None:
        with GLOBAL_PATH_LOCKS.lock_for(path):
            atomic_write_text(path, text)

    def _ensure_open(self) -> None:
        if not self._opened:
            raise RuntimeError("key-value store is not open; call open() at startup")

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------
    async def get(self, key: str) -> Any | None:
        self._ensure_open()
        return copy.deepcopy(self._data.get(key))

    async def get_many(self, keys: Sequence[str]) -> list[Any | None]:
        self._ensure_open()
        return [copy.deepcopy(self._data.get(k)) for k in keys]

    async def scan_prefix(self, prefix: str) -> list[tuple[str, Any]]:
        self._ensure_open()
        return [(k, copy.deepcopy(v)) for k, v in self._data.items() if k.startswith(prefix)]

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------
    async def set(self, key: str, value: Any) -> None:
        await self.set_many([(key, value)])

    async def set_many(self, pairs: Iterable[tuple[str, Any]]) -> None:
        self._ensure_open()
        staged = [(str(k), copy.deepcopy(v)) for k, v in pairs]
        async with self._lock:
            for k, v in staged:
                self._data[k] = v
            self._dirty = True
            await self._save_locked()

    async def delete(self, key: str) -> None:
        await self.delete_many([key])

    async def delete_many(self, keys: Iterable[str]) -> None:
        self._ensure_open()
        doomed = list(keys)
        async with self._lock:
            for k in doomed:
                self._data.pop(k, None)
            self._dirty = True
            await self._save_locked()

    async def update(self, key: str, fn: Callable[[Any], Any], *, default: Any = None) -> Any:
        self._ensure_open()
        async with self._lock:
            current = self._data.get(key)
            if current is None:
                current = copy.deepcopy(default)
            else:
                current = copy.deepcopy(current)
            new_value = fn(current)
            self._data[key] = copy.deepcopy(new_value)
            self._dirty = True
            await self._save_locked()
            return new_value
