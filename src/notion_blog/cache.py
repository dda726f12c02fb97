"""Read-before-compute cache for aggregated Notion data.

Entries are keyed by logical path (``page/{id}``,
``page/{id}/comments/{c1}/.../{cn}``, ``user/{id}``) and live until a
mutation revalidates them; there is no TTL. Cache failures never fail a
request: they are logged and the value is computed directly.
"""

import asyncio
import json
import logging
from pathlib import Path
from typing import Any, Awaitable, Callable, Iterable, Optional, Protocol, TypeVar

from .ids import to_compact

logger = logging.getLogger(__name__)

T = TypeVar("T")

DEFAULT_CACHE_DIR = ".cache/notion-blog"


# =============================================================================
# Logical Paths
# =============================================================================

def page_path(page_id: str) -> str:
    return f"page/{to_compact(page_id)}"


def comment_path(page_id: str, comment_ids: Iterable[str]) -> str:
    """Path of the comment addressed by ``[page_id, *comment_ids]``."""
    chain = "/".join(to_compact(c) for c in comment_ids)
    return f"{page_path(page_id)}/comments/{chain}"


def user_path(user_id: str) -> str:
    return f"user/{to_compact(user_id)}"


# =============================================================================
# Stores
# =============================================================================

class CacheStore(Protocol):
    """Storage behind the cache. Implementations may raise on I/O failure."""

    async def get(self, path: str) -> Optional[Any]: ...

    async def set(self, path: str, value: Any, tag: Optional[str] = None) -> None: ...

    async def delete(self, path: str) -> bool: ...


class MemoryCache:
    """In-process store. Values are JSON round-tripped like on disk."""

    def __init__(self):
        self._entries: dict[str, str] = {}

    async def get(self, path: str) -> Optional[Any]:
        raw = self._entries.get(path)
        return json.loads(raw)["value"] if raw is not None else None

    async def set(self, path: str, value: Any, tag: Optional[str] = None) -> None:
        self._entries[path] = json.dumps({"tag": tag, "value": value})

    async def delete(self, path: str) -> bool:
        return self._entries.pop(path, None) is not None

    def __contains__(self, path: str) -> bool:
        return path in self._entries

    def __len__(self) -> int:
        return len(self._entries)


class DiskCache:
    """One JSON file per logical path inside ``folder``.

    Local to one instance; several instances sharing nothing will serve
    stale entries until each one is revalidated.
    """

    def __init__(self, folder: str | Path = DEFAULT_CACHE_DIR):
        self.folder = Path(folder).expanduser()

    def file_for(self, path: str) -> Path:
        return self.folder / path.replace("/", "_")

    def _read(self, path: str) -> Optional[Any]:
        file = self.file_for(path)
        if not file.exists():
            return None
        return json.loads(file.read_text(encoding="utf-8"))["value"]

    def _write(self, path: str, value: Any, tag: Optional[str]) -> None:
        self.folder.mkdir(parents=True, exist_ok=True)
        file = self.file_for(path)
        tmp = file.with_suffix(".tmp")
        tmp.write_text(json.dumps({"tag": tag, "value": value}), encoding="utf-8")
        tmp.replace(file)

    def _delete(self, path: str) -> bool:
        file = self.file_for(path)
        if not file.exists():
            return False
        file.unlink()
        return True

    async def get(self, path: str) -> Optional[Any]:
        return await asyncio.to_thread(self._read, path)

    async def set(self, path: str, value: Any, tag: Optional[str] = None) -> None:
        await asyncio.to_thread(self._write, path, value, tag)

    async def delete(self, path: str) -> bool:
        return await asyncio.to_thread(self._delete, path)


# =============================================================================
# Cached Calls
# =============================================================================

def get_cached(
    compute: Callable[[], Awaitable[T]],
    path: str,
    store: CacheStore,
    tag: Optional[str] = None,
    cacheable: Optional[Callable[[T], bool]] = None,
) -> Callable[..., Awaitable[T]]:
    """Wrap ``compute`` in a cache lookup keyed by ``path``.

    Args:
        compute: Zero-argument coroutine function producing the value.
        path: Logical cache path.
        store: Cache store.
        tag: Label stored with the entry (e.g. "page", "comment").
        cacheable: Predicate on a computed value; when it returns False the
            value is returned but not stored, so the next lookup recomputes.

    Returns:
        Coroutine function; pass ``skip_cache=True`` to force a recompute.
    """

    async def get_with_cache(skip_cache: bool = False) -> T:
        if not skip_cache:
            try:
                cached = await store.get(path)
            except Exception as e:
                logger.error(f"Cache read failed for {path}: {type(e).__name__}: {e}")
                cached = None
            if cached is not None:
                logger.debug(f"Read from {path} cache")
                return cached
            logger.debug(f"No cache for {path} yet")

        data = await compute()

        if data is not None and cacheable is not None and not cacheable(data):
            logger.debug(f"Not caching incomplete value for {path}")
        elif data is not None:
            try:
                await store.set(path, data, tag)
                logger.debug(f"Wrote to {path} cache")
            except Exception as e:
                logger.error(f"Cache write failed for {path}: {type(e).__name__}: {e}")

        return data

    return get_with_cache


async def revalidate(store: CacheStore, path: str) -> bool:
    """Drop the entry at ``path`` so the next lookup recomputes it.

    Returns:
        True if an entry was removed.
    """
    try:
        removed = await store.delete(path)
    except Exception as e:
        logger.error(f"Cache revalidate failed for {path}: {type(e).__name__}: {e}")
        return False
    if removed:
        logger.info(f"Revalidated {path}")
    else:
        logger.debug(f"Nothing to revalidate at {path}")
    return removed
