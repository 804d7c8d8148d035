"""File-backed cache: one JSON document per owner and resource kind."""

import json
import shutil
from pathlib import Path
from typing import Optional
from urllib.parse import quote

from companion.app_types import CacheEntry, ResourceKind
from companion.cache_store.base import CacheBackend
from companion.repositories import write_json_atomic
from utils.logging_utils import get_tagged_logger

logger = get_tagged_logger(__name__, tag="cache_store/file_cache_backend")


class FileCacheBackend(CacheBackend):
    """Stores entries as ``<users_dir>/<owner>/cache/<kind>.json``."""

    def __init__(self, users_dir: Path | str) -> None:
        logger.debug("Initializing FileCacheBackend", extra={"users_dir": str(users_dir)})
        self.users_dir = Path(users_dir)

    def _owner_dir(self, owner: str) -> Path:
        return self.users_dir / owner / "cache"

    def _path(self, owner: str, kind: ResourceKind) -> Path:
        return self._owner_dir(owner) / f"{quote(kind.key, safe='')}.json"

    def get(self, owner: str, kind: ResourceKind) -> Optional[CacheEntry]:
        path = self._path(owner, kind)
        try:
            raw = path.read_text(encoding="utf-8")
        except FileNotFoundError:
            return None
        except OSError as exc:
            logger.error("Failed to read cache file: %s", exc, extra={"path": str(path)})
            return None
        try:
            entry = CacheEntry.from_dict(json.loads(raw))
        except (ValueError, KeyError, TypeError) as exc:
            logger.warning("Ignoring unreadable cache file", extra={"path": str(path), "error": str(exc)})
            return None
        if entry.owner != owner or entry.kind != kind:
            logger.warning("Cache file key mismatch; ignoring", extra={"path": str(path)})
            return None
        return entry

    def put(self, entry: CacheEntry) -> None:
        write_json_atomic(self._path(entry.owner, entry.kind), entry.to_dict())

    def delete_owner(self, owner: str) -> None:
        shutil.rmtree(self._owner_dir(owner), ignore_errors=True)
