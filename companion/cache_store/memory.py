"""In-memory cache backend, intended for development and tests."""

import threading
from typing import Optional

from companion.app_types import CacheEntry, ResourceKind
from companion.cache_store.base import CacheBackend
from utils.logging_utils import get_tagged_logger

logger = get_tagged_logger(__name__, tag="cache_store/in_memory_cache_backend")


class InMemoryCacheBackend(CacheBackend):
    """Thread-safe dict of immutable entries keyed by owner, then kind."""

    def __init__(self) -> None:
        logger.debug("Initializing InMemoryCacheBackend")
        self._entries: dict[str, dict[ResourceKind, CacheEntry]] = {}
        self._lock = threading.Lock()

    def get(self, owner: str, kind: ResourceKind) -> Optional[CacheEntry]:
        with self._lock:
            return self._entries.get(owner, {}).get(kind)

    def put(self, entry: CacheEntry) -> None:
        with self._lock:
            self._entries.setdefault(entry.owner, {})[entry.kind] = entry

    def delete_owner(self, owner: str) -> None:
        with self._lock:
            self._entries.pop(owner, None)

    def owners(self) -> list[str]:
        """Owners that currently hold at least one entry."""
        with self._lock:
            return [owner for owner, entries in self._entries.items() if entries]
