"""Redis-backed cache backend."""

import json
import re
from typing import Optional

from companion.app_types import CacheEntry, ResourceKind
from companion.cache_store.base import CacheBackend
from utils.logging_utils import get_tagged_logger

logger = get_tagged_logger(__name__, tag="cache_store/redis_cache_backend")

_GLOB_SPECIAL = re.compile(r"([\\*?\[\]])")


def escape_glob(value: str) -> str:
    """Escape Redis MATCH metacharacters so ``value`` only matches itself."""
    return _GLOB_SPECIAL.sub(r"\\\1", value)


class RedisCacheBackend(CacheBackend):
    """Stores entries as JSON strings under ``<prefix><owner>:<kind>``; no TTL, stale entries stay."""

    def __init__(self, client, prefix: str = "cache:") -> None:
        logger.debug("Initializing RedisCacheBackend")
        self.client = client
        self.prefix = prefix

    def _owner_prefix(self, owner: str) -> str:
        return f"{self.prefix}{owner}:"

    def _key(self, owner: str, kind: ResourceKind) -> str:
        return f"{self._owner_prefix(owner)}{kind.key}"

    def get(self, owner: str, kind: ResourceKind) -> Optional[CacheEntry]:
        try:
            raw = self.client.get(self._key(owner, kind))
        except Exception as exc:  # pragma: no cover
            logger.error("Failed to read cache entry from Redis: %s", exc)
            return None
        if not raw:
            return None
        try:
            if isinstance(raw, bytes):
                raw = raw.decode("utf-8")
            return CacheEntry.from_dict(json.loads(raw))
        except (ValueError, KeyError, TypeError) as exc:
            logger.warning("Ignoring unreadable cache entry in Redis", extra={"error": str(exc)})
            return None

    def put(self, entry: CacheEntry) -> None:
        payload = json.dumps(entry.to_dict(), ensure_ascii=False).encode("utf-8")
        try:
            self.client.set(self._key(entry.owner, entry.kind), payload)
        except Exception as exc:
            logger.error("Failed to write cache entry to Redis: %s", exc)
            raise

    def delete_owner(self, owner: str) -> None:
        owner_prefix = self._owner_prefix(owner)
        pattern = f"{escape_glob(owner_prefix)}*"
        try:
            for key in self.client.scan_iter(match=pattern):
                name = key.decode("utf-8") if isinstance(key, bytes) else key
                # owner names cannot contain ':', so the prefix is unambiguous
                if name.startswith(owner_prefix):
                    self.client.delete(key)
        except Exception as exc:  # pragma: no cover
            logger.error("Failed to clear cache entries from Redis: %s", exc)
