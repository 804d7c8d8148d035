"""Glue between the active session, its settings, the collaborators and the cache."""
from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Callable, List, Optional

from companion.app_types import DataResult, ResourceKind, UserIdentity, UserSettings
from companion.cache import CacheStore, build_cache_store
from companion.config import Settings, settings as default_settings
from companion.credentials import CredentialStore
from companion.data_sources import CompanionDataSource, build_data_source
from companion.freshness import age_minutes, max_age_for
from companion.orchestrator import DataOrchestrator
from companion.session_manager import SessionManager
from companion.settings_store import SettingsStore
from utils.logging_utils import get_tagged_logger

logger = get_tagged_logger(__name__, tag="companion/companion_service")

Clock = Callable[[], datetime]


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class DataView:
    """A payload plus the status line the UI shows next to it."""
    owner: str
    kind: ResourceKind
    result: DataResult
    status: str


def status_line(result: DataResult, now: datetime) -> str:
    """'Updated', 'Cached • updated Nm ago' or 'Offline • Cached • updated Nm ago'."""
    minutes = age_minutes(result, now)
    if result.stale:
        return f"Offline • Cached • updated {minutes}m ago"
    if result.from_cache:
        return f"Cached • updated {minutes}m ago"
    return "Updated"


class CompanionService:
    """Account actions and cached weather/news for one running process."""

    def __init__(
        self,
        *,
        credentials: CredentialStore,
        sessions: SessionManager,
        cache: CacheStore,
        settings_store: SettingsStore,
        data_source: CompanionDataSource,
        app_settings: Settings | None = None,
        clock: Clock = utc_now,
    ) -> None:
        self.credentials = credentials
        self.sessions = sessions
        self.cache = cache
        self.settings_store = settings_store
        self.data_source = data_source
        self.app_settings = app_settings or default_settings
        self.orchestrator = DataOrchestrator(cache)
        self.clock = clock

    # -- accounts -----------------------------------------------------------

    def register(self, username: str, pin: str) -> UserIdentity:
        """Create an account and make it active."""
        identity = self.credentials.register(username, pin)
        self.sessions.login_as(identity)
        return identity

    def login(self, username: str, pin: str) -> UserIdentity:
        identity = self.credentials.authenticate(username, pin)
        self.sessions.login_as(identity)
        return identity

    def switch(self, username: str, pin: str) -> UserIdentity:
        identity = self.credentials.authenticate(username, pin)
        self.sessions.switch_to(identity)
        return identity

    def logout(self) -> None:
        self.sessions.logout()

    def delete_user(self, username: str) -> bool:
        """Delete an account (cache/settings cascade); returns True if it was active."""
        self.credentials.delete(username)
        return self.sessions.logout_if(username)

    def list_users(self) -> List[str]:
        return self.credentials.list_users()

    def update_settings(self, user_settings: UserSettings) -> UserSettings:
        return self.sessions.update_settings(user_settings)

    # -- data ---------------------------------------------------------------

    def get_weather(self, *, force_refresh: bool = False) -> DataView:
        """Hourly weather for the active user's city and units."""
        identity, user_settings = self.sessions.snapshot()
        owner = identity.username
        kind = ResourceKind.weather()
        city = user_settings.city
        units = user_settings.units

        def fetch() -> dict:
            location = self.data_source.geocode(city)
            payload = self.data_source.fetch_weather(location.latitude, location.longitude, units)
            return {**payload, "city": location.label}

        return self._get(
            owner,
            kind,
            fetch,
            user_settings,
            force_refresh=force_refresh,
            context={"city": city.lower(), "units": units.value},
        )

    def get_news(self, *, force_refresh: bool = False, topic: Optional[str] = None) -> DataView:
        """Articles for ``topic`` (default: the active user's topic)."""
        identity, user_settings = self.sessions.snapshot()
        owner = identity.username
        topic = topic if topic is not None else user_settings.news_topic
        kind = ResourceKind.news(topic)

        return self._get(
            owner,
            kind,
            lambda: self.data_source.fetch_news(topic),
            user_settings,
            force_refresh=force_refresh,
        )

    def _get(
        self,
        owner: str,
        kind: ResourceKind,
        fetch: Callable[[], dict],
        user_settings: UserSettings,
        *,
        force_refresh: bool,
        context: Optional[dict] = None,
    ) -> DataView:
        now = self.clock()
        result = self.orchestrator.get(
            owner,
            kind,
            fetch,
            max_age_for(kind, user_settings, self.app_settings),
            now,
            force_refresh=force_refresh,
            context=context,
        )
        return DataView(owner=owner, kind=kind, result=result, status=status_line(result, now))


def build_service(cfg: Settings | None = None, *, data_source: CompanionDataSource | None = None) -> CompanionService:
    """Wire stores, session and collaborators from configuration."""
    cfg = cfg or default_settings
    cache = build_cache_store(cfg)
    settings_store = SettingsStore.from_settings(cfg)
    credentials = CredentialStore.from_settings(cfg, on_delete=(cache.clear, settings_store.delete))
    for diagnostic in credentials.diagnostics:
        logger.warning("Credential store diagnostic", extra={"error": str(diagnostic)})
    return CompanionService(
        credentials=credentials,
        sessions=SessionManager(settings_store),
        cache=cache,
        settings_store=settings_store,
        data_source=data_source or build_data_source(cfg),
        app_settings=cfg,
    )
