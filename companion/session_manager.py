"""Tracks which identity is active in this process and its settings."""

from __future__ import annotations

import threading
from typing import NamedTuple, Optional

from companion.app_types import GUEST, UserIdentity, UserSettings
from companion.settings_store import SettingsStore
from utils.logging_utils import get_tagged_logger

logger = get_tagged_logger(__name__, tag="session_manager")


class _ActiveSession(NamedTuple):
    identity: UserIdentity
    settings: UserSettings


class SessionManager:
    """
    One active identity per instance, starting as guest.

    The identity and its settings live in a single immutable snapshot that is
    replaced under a lock, so concurrent readers always see a complete pair and
    never an empty session. Nothing here is persisted across restarts.
    """

    def __init__(self, settings_store: SettingsStore) -> None:
        self._settings_store = settings_store
        self._lock = threading.Lock()
        self._active = _ActiveSession(GUEST, settings_store.load(GUEST.username))

    def current(self) -> UserIdentity:
        return self._active.identity

    def snapshot(self) -> tuple[UserIdentity, UserSettings]:
        """Identity and settings captured together, for request-scoped work."""
        active = self._active
        return active.identity, active.settings

    @property
    def settings(self) -> UserSettings:
        return self._active.settings

    @property
    def is_guest(self) -> bool:
        return self._active.identity.is_guest

    def _swap(self, identity: UserIdentity) -> None:
        # load outside the lock; the swap itself is a single assignment
        user_settings = self._settings_store.load(identity.username)
        with self._lock:
            previous = self._active.identity
            self._active = _ActiveSession(identity, user_settings)
        logger.info("Active user changed", extra={"from_user": previous.username, "to_user": identity.username})

    def login_as(self, identity: UserIdentity) -> None:
        """Make ``identity`` active and load its settings; cache is read lazily."""
        self._swap(identity)

    def switch_to(self, identity: UserIdentity) -> None:
        """Atomically replace the active identity (no intermediate guest state)."""
        self._swap(identity)

    def logout(self) -> None:
        self._swap(GUEST)

    def logout_if(self, username: str) -> bool:
        """Fall back to guest if ``username`` is the active user (e.g. after deletion)."""
        if self._active.identity.username != username:
            return False
        self.logout()
        return True

    def update_settings(self, user_settings: UserSettings, owner: Optional[str] = None) -> UserSettings:
        """Persist settings for the active user and make them current."""
        with self._lock:
            identity = self._active.identity
            if owner is not None and owner != identity.username:
                # active user changed since the caller captured it; persist only
                self._settings_store.save(owner, user_settings)
                return user_settings
            self._settings_store.save(identity.username, user_settings)
            self._active = _ActiveSession(identity, user_settings)
        return user_settings
