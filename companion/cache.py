"""Per-owner cache facade over pluggable backends."""

from __future__ import annotations

import threading
from contextlib import ExitStack, contextmanager
from datetime import datetime
from typing import Any, Iterator, Optional

try:
    import redis  # type: ignore
except ImportError:  # pragma: no cover - optional dependency
    redis = None

from companion.app_types import CacheEntry, ResourceKind
from companion.cache_store import CacheBackend, FileCacheBackend, InMemoryCacheBackend, RedisCacheBackend
from companion.config import Settings, settings as default_settings
from utils.logging_utils import get_tagged_logger, mask_url

logger = get_tagged_logger(__name__, tag="companion/cache")


class CacheStore:
    """
    The single point of truth for what each owner sees right now.

    One entry per (owner, kind); a write replaces the previous entry and never
    moves ``fetched_at`` backwards. Locks are per key, so a slow write for one
    owner/kind does not hold up reads for another.

    Each owner also has a generation that ``clear`` bumps. Writers that pass the
    generation they started under are dropped once it has moved on, so a fetch
    still running when its owner is deleted cannot bring the entry back.
    """

    def __init__(self, backend: CacheBackend) -> None:
        self.backend = backend
        self._locks: dict[tuple[str, ResourceKind], threading.Lock] = {}
        self._generations: dict[str, int] = {}
        self._locks_guard = threading.Lock()

    @contextmanager
    def _key_lock(self, owner: str, kind: ResourceKind) -> Iterator[int]:
        with self._locks_guard:
            lock = self._locks.setdefault((owner, kind), threading.Lock())
        with lock:
            # read after acquiring: clear() bumps it while holding the owner's locks
            yield self._generations.get(owner, 0)

    def generation(self, owner: str) -> int:
        """Current clear-generation for ``owner``; capture it before fetching."""
        with self._locks_guard:
            return self._generations.get(owner, 0)

    def read(self, owner: str, kind: ResourceKind) -> Optional[CacheEntry]:
        """Return the current entry for (owner, kind), if any. No side effects."""
        return self.backend.get(owner, kind)

    def write(
        self,
        owner: str,
        kind: ResourceKind,
        payload: Any,
        now: datetime,
        context: Optional[dict] = None,
        generation: Optional[int] = None,
    ) -> Optional[CacheEntry]:
        """
        Upsert the entry for (owner, kind) and return what was stored.

        Returns None without storing when ``generation`` is given and the owner
        has been cleared since.
        """
        with self._key_lock(owner, kind) as current:
            if generation is not None and generation != current:
                logger.info(
                    "Dropping cache write for cleared owner",
                    extra={"owner": owner, "kind": kind.key, "generation": generation, "current": current},
                )
                return None
            fetched_at = now
            existing = self.backend.get(owner, kind)
            if existing is not None and now < existing.fetched_at:
                logger.warning(
                    "Cache write older than stored entry; keeping newer timestamp",
                    extra={
                        "owner": owner,
                        "kind": kind.key,
                        "write_at": now.isoformat(),
                        "stored_at": existing.fetched_at.isoformat(),
                    },
                )
                fetched_at = existing.fetched_at
            entry = CacheEntry(owner=owner, kind=kind, payload=payload, fetched_at=fetched_at, context=context)
            self.backend.put(entry)
        logger.debug("Cache write", extra={"owner": owner, "kind": kind.key})
        return entry

    def clear(self, owner: str) -> None:
        """Remove every entry for ``owner`` and invalidate writes started before now."""
        with self._locks_guard:
            self._generations[owner] = self._generations.get(owner, 0) + 1
            owner_locks = [lock for key, lock in self._locks.items() if key[0] == owner]
        # writers hold at most one key lock, so taking all of them cannot deadlock
        with ExitStack() as stack:
            for lock in owner_locks:
                stack.enter_context(lock)
            self.backend.delete_owner(owner)
        logger.info("Cleared cache", extra={"owner": owner})


def build_cache_store(cfg: Settings | None = None) -> CacheStore:
    """Initialize the cache store with the backend named in configuration."""
    cfg = cfg or default_settings
    backend_name = cfg.cache_backend
    logger.debug(f"Initializing cache backend '{backend_name}', redis package present: {'yes' if redis else 'no'}")

    if backend_name == "redis":
        if cfg.cache_redis_url and redis:
            try:
                client = redis.Redis.from_url(cfg.cache_redis_url)
                client.ping()
                logger.info("Using RedisCacheBackend", extra={"redis_url": mask_url(cfg.cache_redis_url)})
                return CacheStore(RedisCacheBackend(client))
            except Exception as exc:  # pragma: no cover
                logger.warning("Falling back to FileCacheBackend (Redis unavailable)", extra={"error": str(exc)})
        else:
            logger.warning("Redis cache requested without URL or redis package; using FileCacheBackend")
        return CacheStore(FileCacheBackend(cfg.users_dir))

    if backend_name == "memory":
        return CacheStore(InMemoryCacheBackend())

    if backend_name == "file":
        return CacheStore(FileCacheBackend(cfg.users_dir))

    raise ValueError(f"Unknown cache backend '{backend_name}'")
