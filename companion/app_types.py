"""Shared dataclasses and lightweight types used across modules."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, Field, field_validator

GUEST_USERNAME = "guest"
DEFAULT_NEWS_TOPIC = "Top Stories"


@dataclass(frozen=True)
class UserIdentity:
    """A registered account (or the guest sentinel) and its PIN digest."""
    username: str
    pin_hash: str = field(default="", repr=False)

    @property
    def is_guest(self) -> bool:
        return self.username == GUEST_USERNAME and not self.pin_hash


GUEST = UserIdentity(username=GUEST_USERNAME)


@dataclass(frozen=True)
class ResourceKind:
    """Cache partition: weather, or news for one topic."""
    name: str
    topic: Optional[str] = None

    @classmethod
    def weather(cls) -> "ResourceKind":
        return cls("weather")

    @classmethod
    def news(cls, topic: str | None) -> "ResourceKind":
        # topics compare case/whitespace-insensitively, blank means top stories
        normalized = " ".join((topic or "").split()).lower() or DEFAULT_NEWS_TOPIC.lower()
        return cls("news", normalized)

    @classmethod
    def from_key(cls, key: str) -> "ResourceKind":
        name, _, topic = key.partition(":")
        if name == "news":
            return cls.news(topic)
        if name == "weather":
            return cls.weather()
        raise ValueError(f"Unknown resource kind '{key}'")

    @property
    def key(self) -> str:
        """Stable string form used in file names and backend keys."""
        return f"{self.name}:{self.topic}" if self.topic else self.name

    def __str__(self) -> str:
        return self.key


@dataclass(frozen=True)
class CacheEntry:
    """Last successfully fetched payload for one (owner, kind) key."""
    owner: str
    kind: ResourceKind
    payload: Any
    fetched_at: datetime  # timezone-aware, UTC
    context: Optional[dict] = None

    def to_dict(self) -> dict:
        return {
            "owner": self.owner,
            "kind": self.kind.key,
            "payload": self.payload,
            "fetched_at": self.fetched_at.isoformat(),
            "context": self.context,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "CacheEntry":
        fetched_at = datetime.fromisoformat(data["fetched_at"])
        if fetched_at.tzinfo is None:
            fetched_at = fetched_at.replace(tzinfo=timezone.utc)
        return cls(
            owner=data["owner"],
            kind=ResourceKind.from_key(data["kind"]),
            payload=data.get("payload"),
            fetched_at=fetched_at,
            context=data.get("context"),
        )


@dataclass(frozen=True)
class DataResult:
    """What the orchestrator hands back: a payload plus where it came from."""
    payload: Any
    fetched_at: datetime
    stale: bool = False
    from_cache: bool = False


class Units(str, Enum):
    """Unit system requested from the weather provider."""
    metric = "metric"
    imperial = "imperial"

    @property
    def temperature_unit(self) -> str:
        return "celsius" if self is Units.metric else "fahrenheit"

    @property
    def symbol(self) -> str:
        return "°C" if self is Units.metric else "°F"


class UserSettings(BaseModel):
    """Per-owner preferences; swapped wholesale when the active user changes."""
    city: str = "Bucharest"
    units: Units = Units.metric
    news_topic: str = DEFAULT_NEWS_TOPIC
    max_cache_age_override: Optional[int] = Field(default=None, ge=0)

    @field_validator("city", "news_topic", mode="after")
    @classmethod
    def strip_text(cls, v: str) -> str:
        return v.strip()
