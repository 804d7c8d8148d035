"""Cache-first data access with offline fallback and collapsed concurrent refreshes."""

from __future__ import annotations

import threading
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Any, Callable, Optional

from companion.app_types import CacheEntry, DataResult, ResourceKind
from companion.cache import CacheStore
from companion.errors import Unavailable
from companion.freshness import is_fresh
from utils.logging_utils import get_tagged_logger

logger = get_tagged_logger(__name__, tag="companion/orchestrator")

FetchFn = Callable[[], Any]


@dataclass
class _InFlight:
    """A fetch in progress that later callers for the same key wait on."""
    done: threading.Event = field(default_factory=threading.Event)
    result: Optional[DataResult] = None
    error: Optional[BaseException] = None


class DataOrchestrator:
    """
    Answers "current data for owner U, kind K".

    Fresh cache hits return without touching ``fetch_fn``. Otherwise one fetch
    per (owner, kind, request context) runs at a time; concurrent callers for it get
    the leader's outcome. A failed fetch falls back to the stored entry,
    however old, marked ``stale``; with nothing stored it raises Unavailable.
    """

    def __init__(self, cache: CacheStore) -> None:
        self.cache = cache
        self._inflight: dict[tuple, _InFlight] = {}
        self._inflight_lock = threading.Lock()

    @staticmethod
    def _matches(entry: Optional[CacheEntry], context: Optional[dict]) -> bool:
        """An entry fetched for different parameters (city, units) is never fresh."""
        if entry is None or context is None:
            return entry is not None
        return (entry.context or {}) == context

    @staticmethod
    def _context_key(context: Optional[dict]) -> Optional[tuple]:
        if context is None:
            return None
        return tuple(sorted((k, repr(v)) for k, v in context.items()))

    def get(
        self,
        owner: str,
        kind: ResourceKind,
        fetch_fn: FetchFn,
        max_age: timedelta,
        now: datetime,
        *,
        force_refresh: bool = False,
        context: Optional[dict] = None,
    ) -> DataResult:
        """Return cached or freshly fetched data for (owner, kind)."""
        generation = self.cache.generation(owner)
        entry = self.cache.read(owner, kind)
        if not force_refresh and self._matches(entry, context) and is_fresh(entry, max_age, now):
            logger.debug("Cache hit", extra={"owner": owner, "kind": kind.key})
            return DataResult(payload=entry.payload, fetched_at=entry.fetched_at, stale=False, from_cache=True)

        # requests for another city/units, or for a re-created owner, never share a fetch
        key = (owner, kind, generation, self._context_key(context))
        with self._inflight_lock:
            flight = self._inflight.get(key)
            leader = flight is None
            if leader:
                flight = _InFlight()
                self._inflight[key] = flight

        if not leader:
            logger.debug("Joining in-flight fetch", extra={"owner": owner, "kind": kind.key})
            flight.done.wait()
            if flight.error is not None:
                raise flight.error
            return flight.result

        try:
            flight.result = self._fetch_and_store(owner, kind, fetch_fn, now, context, generation)
            return flight.result
        except BaseException as exc:
            flight.error = exc
            raise
        finally:
            with self._inflight_lock:
                self._inflight.pop(key, None)
            flight.done.set()

    def _fetch_and_store(
        self,
        owner: str,
        kind: ResourceKind,
        fetch_fn: FetchFn,
        now: datetime,
        context: Optional[dict],
        generation: int,
    ) -> DataResult:
        try:
            payload = fetch_fn()
        except Exception as exc:
            fallback = self.cache.read(owner, kind)
            if fallback is None:
                logger.warning(
                    "Fetch failed with nothing cached",
                    extra={"owner": owner, "kind": kind.key, "error": str(exc)},
                )
                raise Unavailable(owner, kind, exc) from exc
            logger.warning(
                "Fetch failed; serving stale cache",
                extra={"owner": owner, "kind": kind.key, "error": str(exc)},
            )
            return DataResult(payload=fallback.payload, fetched_at=fallback.fetched_at, stale=True, from_cache=True)

        try:
            stored = self.cache.write(owner, kind, payload, now, context=context, generation=generation)
        except Exception as exc:
            logger.error(
                "Failed to persist fetched payload; returning it uncached",
                extra={"owner": owner, "kind": kind.key, "error": str(exc)},
            )
            return DataResult(payload=payload, fetched_at=now)
        if stored is None:
            # owner was cleared while the fetch ran
            return DataResult(payload=payload, fetched_at=now)
        logger.info("Fetched and cached", extra={"owner": owner, "kind": kind.key})
        return DataResult(payload=payload, fetched_at=stored.fetched_at)
