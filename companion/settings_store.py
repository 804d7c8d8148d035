"""Per-owner settings persisted as ``<users_dir>/<owner>/settings.json``."""

from __future__ import annotations

import shutil
import threading
from pathlib import Path
from typing import Callable, Optional

from pydantic import ValidationError

from companion.app_types import UserSettings
from companion.config import Settings, settings as default_settings
from companion.errors import StoreCorrupt
from companion.repositories import InMemoryRepository, JsonFileRepository, JsonRepository
from utils.logging_utils import get_tagged_logger

logger = get_tagged_logger(__name__, tag="companion/settings_store")

RepositoryFactory = Callable[[str], JsonRepository]


class SettingsStore:
    """Loads, saves and deletes owner settings; unreadable data falls back to defaults."""

    def __init__(self, repository_for: RepositoryFactory, users_dir: Optional[Path] = None) -> None:
        self._repository_for = repository_for
        self._users_dir = users_dir
        self._lock = threading.Lock()

    @classmethod
    def from_settings(cls, cfg: Settings | None = None) -> "SettingsStore":
        cfg = cfg or default_settings
        users_dir = cfg.users_dir
        return cls(lambda owner: JsonFileRepository(users_dir / owner / "settings.json"), users_dir=users_dir)

    @classmethod
    def in_memory(cls) -> "SettingsStore":
        repos: dict[str, InMemoryRepository] = {}
        return cls(lambda owner: repos.setdefault(owner, InMemoryRepository()))

    def load(self, owner: str) -> UserSettings:
        """Return the owner's settings, or defaults when missing or unreadable."""
        try:
            document = self._repository_for(owner).load()
        except StoreCorrupt as exc:
            logger.warning("Settings unreadable; using defaults", extra={"owner": owner, "error": str(exc)})
            return UserSettings()
        if document is None:
            return UserSettings()
        try:
            return UserSettings.model_validate(document)
        except ValidationError as exc:
            logger.warning("Settings invalid; using defaults", extra={"owner": owner, "error": str(exc)})
            return UserSettings()

    def save(self, owner: str, user_settings: UserSettings) -> None:
        with self._lock:
            self._repository_for(owner).save(user_settings.model_dump(mode="json"))
        logger.debug("Saved settings", extra={"owner": owner})

    def delete(self, owner: str) -> None:
        """Remove the owner's settings and, for file storage, the whole owner tree."""
        with self._lock:
            self._repository_for(owner).delete()
            if self._users_dir is not None:
                shutil.rmtree(self._users_dir / owner, ignore_errors=True)
        logger.info("Deleted settings", extra={"owner": owner})
