"""Shared protocol for cache storage backends."""

from typing import Optional, Protocol

from companion.app_types import CacheEntry, ResourceKind


class CacheBackend(Protocol):
    """Protocol for per-owner cache storage backends."""

    def get(self, owner: str, kind: ResourceKind) -> Optional[CacheEntry]:
        """Return the stored entry, or None if missing or unreadable."""

    def put(self, entry: CacheEntry) -> None:
        """Store ``entry`` under (entry.owner, entry.kind), replacing any previous one."""

    def delete_owner(self, owner: str) -> None:
        """Drop every entry for ``owner`` without raising if there are none."""
