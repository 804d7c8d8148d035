"""Freshness rules for cached payloads."""

from __future__ import annotations

from datetime import datetime, timedelta
from typing import Optional

from companion.app_types import CacheEntry, DataResult, ResourceKind, UserSettings
from companion.config import Settings


def _elapsed(entry: CacheEntry, now: datetime) -> timedelta:
    """Absolute time between the fetch and ``now``; clock rollback counts the same as age."""
    return abs(now - entry.fetched_at)


def is_fresh(entry: Optional[CacheEntry], max_age: timedelta, now: datetime) -> bool:
    """Return True if ``entry`` exists and is no older than ``max_age`` at ``now``."""
    if entry is None:
        return False
    return _elapsed(entry, now) <= max_age


def age_minutes(entry: CacheEntry | DataResult, now: datetime) -> int:
    """Whole minutes since the entry was fetched, for status lines."""
    return max(0, int((now - entry.fetched_at).total_seconds() // 60))


def max_age_for(kind: ResourceKind, user_settings: UserSettings | None, app_settings: Settings) -> timedelta:
    """Pick the max age for a resource kind, honoring the user's override."""
    if user_settings is not None and user_settings.max_cache_age_override is not None:
        return timedelta(seconds=user_settings.max_cache_age_override)
    if kind.name == "news":
        return timedelta(seconds=app_settings.news_max_age_seconds)
    return timedelta(seconds=app_settings.weather_max_age_seconds)
