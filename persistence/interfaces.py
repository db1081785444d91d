from __future__ import annotations

from typing import Any, Callable, Iterable, Protocol, Sequence


class KeyValueStore(Protocol):
    """
    Minimal DB-friendly interface: string keys mapped to JSON-like values.

    Key names are owned by callers; prefix scans stand in for secondary indexes.
    """

    async def get(self, key: str) -> Any | None:
        """Return the value for key, or None when absent."""
        ...

    async def set(self, key: str, value: Any) -> None:
        ...

    async def delete(self, key: str) -> None:
        """Remove key; absent keys are a no-op."""
        ...

    async def get_many(self, keys: Sequence[str]) -> list[Any | None]:
        ...

    async def set_many(self, pairs: Iterable[tuple[str, Any]]) -> None:
        ...

    async def delete_many(self, keys: Iterable[str]) -> None:
        ...

    async def scan_prefix(self, prefix: str) -> list[tuple[str, Any]]:
        ...

    async def update(self, key: str, fn: Callable[[Any], Any], *, default: Any = None) -> Any:
        """Atomically replace the value for key with fn(current) and return it."""
        ...
