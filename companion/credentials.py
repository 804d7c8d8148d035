"""Local username/PIN credential store."""

from __future__ import annotations

import threading
from datetime import datetime, timezone
from typing import Callable, Iterable, List, Optional

from companion.app_types import GUEST_USERNAME, UserIdentity
from companion.config import Settings, settings as default_settings
from companion.errors import (
    DuplicateUser,
    InvalidCredentials,
    InvalidInput,
    StoreCorrupt,
    UnknownUser,
)
from companion.hashing import hash_pin, verify_pin
from companion.repositories import JsonFileRepository, JsonRepository
from utils.logging_utils import get_tagged_logger

logger = get_tagged_logger(__name__, tag="companion/credentials")

DeleteHook = Callable[[str], None]

_FORBIDDEN_USERNAME_CHARS = ("/", "\\", ":", "\x00")


def validate_username(username: str) -> str:
    """Return the username unchanged or raise InvalidInput."""
    if not isinstance(username, str) or not username:
        raise InvalidInput("Username must not be empty")
    if username != username.strip():
        raise InvalidInput("Username must not start or end with whitespace")
    if username in (".", "..") or any(ch in username for ch in _FORBIDDEN_USERNAME_CHARS):
        raise InvalidInput(f"Username contains forbidden characters: {username!r}")
    if username == GUEST_USERNAME:
        raise InvalidInput(f"'{GUEST_USERNAME}' is reserved")
    return username


def validate_pin(pin: str, *, min_length: int = 4, max_length: int = 8) -> str:
    """Return the PIN unchanged or raise InvalidInput."""
    if not isinstance(pin, str) or not pin.isascii() or not pin.isdigit():
        raise InvalidInput("PIN must contain digits only")
    if not (min_length <= len(pin) <= max_length):
        raise InvalidInput(f"PIN must be {min_length}-{max_length} digits long")
    return pin


class CredentialStore:
    """
    Username -> PIN digest records backed by a JSON repository.

    The record set is loaded once; every mutation is built on a copy, saved,
    and only then swapped in, so readers see either the old or the new set.
    A corrupt backing document is replaced by an empty set and reported on
    ``diagnostics`` rather than raised.
    """

    def __init__(
        self,
        repository: JsonRepository,
        *,
        pin_min_length: int = 4,
        pin_max_length: int = 8,
        on_delete: Iterable[DeleteHook] = (),
    ) -> None:
        self._repo = repository
        self._pin_min = pin_min_length
        self._pin_max = pin_max_length
        self._on_delete: List[DeleteHook] = list(on_delete)
        self._lock = threading.RLock()
        self.diagnostics: List[StoreCorrupt] = []
        self._records: dict[str, dict] = self._load()

    @classmethod
    def from_settings(cls, cfg: Settings | None = None, **kwargs) -> "CredentialStore":
        cfg = cfg or default_settings
        return cls(
            JsonFileRepository(cfg.credentials_path),
            pin_min_length=cfg.pin_min_length,
            pin_max_length=cfg.pin_max_length,
            **kwargs,
        )

    def add_delete_hook(self, hook: DeleteHook) -> None:
        """Register a cleanup callback run after a user record is removed."""
        self._on_delete.append(hook)

    def _load(self) -> dict[str, dict]:
        try:
            document = self._repo.load()
        except StoreCorrupt as exc:
            return self._corrupt(exc)
        if document is None:
            return {}
        users = document.get("users") if isinstance(document, dict) else None
        if not isinstance(users, list):
            return self._corrupt(StoreCorrupt(getattr(self._repo, "path", "<memory>"), "missing 'users' list"))

        records: dict[str, dict] = {}
        for raw in users:
            if not isinstance(raw, dict):
                logger.warning("Skipping malformed credential record", extra={"record_type": type(raw).__name__})
                continue
            username = raw.get("username")
            pin_hash = raw.get("pin_hash")
            if not isinstance(username, str) or not username or not isinstance(pin_hash, str) or not pin_hash:
                logger.warning("Skipping credential record without username/pin_hash")
                continue
            # unknown fields ride along so newer writers don't lose data
            records[username] = dict(raw)
        logger.debug("Loaded credential records", extra={"count": len(records)})
        return records

    def _corrupt(self, exc: StoreCorrupt) -> dict[str, dict]:
        logger.warning("Credential store unreadable; starting empty", extra={"error": str(exc)})
        self.diagnostics.append(exc)
        return {}

    def _save(self, records: dict[str, dict]) -> None:
        self._repo.save({"users": list(records.values())})

    @staticmethod
    def _identity(record: dict) -> UserIdentity:
        return UserIdentity(username=record["username"], pin_hash=record["pin_hash"])

    def register(self, username: str, pin: str) -> UserIdentity:
        """Create a user; raises InvalidInput or DuplicateUser."""
        validate_username(username)
        validate_pin(pin, min_length=self._pin_min, max_length=self._pin_max)
        with self._lock:
            if username in self._records:
                raise DuplicateUser(username)
            record = {
                "username": username,
                "pin_hash": hash_pin(pin),
                "created_at": datetime.now(timezone.utc).isoformat(),
            }
            updated = {**self._records, username: record}
            self._save(updated)
            self._records = updated
        logger.info("Registered user", extra={"username": username})
        return self._identity(record)

    def authenticate(self, username: str, pin: str) -> UserIdentity:
        """Return the identity for a matching PIN; raises UnknownUser or InvalidCredentials."""
        record = self._records.get(username)
        if record is None:
            raise UnknownUser(username)
        if not isinstance(pin, str) or not verify_pin(pin, record["pin_hash"]):
            logger.info("Rejected PIN", extra={"username": username})
            raise InvalidCredentials(username)
        return self._identity(record)

    def change_pin(self, username: str, old_pin: str, new_pin: str) -> UserIdentity:
        """Replace the stored digest after verifying the current PIN."""
        validate_pin(new_pin, min_length=self._pin_min, max_length=self._pin_max)
        with self._lock:
            self.authenticate(username, old_pin)
            record = {**self._records[username], "pin_hash": hash_pin(new_pin)}
            updated = {**self._records, username: record}
            self._save(updated)
            self._records = updated
        logger.info("Changed PIN", extra={"username": username})
        return self._identity(record)

    def delete(self, username: str) -> None:
        """Remove a user and run the registered cleanup hooks for that owner."""
        with self._lock:
            if username not in self._records:
                raise UnknownUser(username)
            updated = {k: v for k, v in self._records.items() if k != username}
            self._save(updated)
            self._records = updated
        logger.info("Deleted user", extra={"username": username})

        for hook in self._on_delete:
            try:
                hook(username)
            except Exception as exc:
                logger.error(
                    "Cleanup hook failed after user deletion",
                    extra={"username": username, "hook": getattr(hook, "__qualname__", repr(hook)), "error": str(exc)},
                )

    def get(self, username: str) -> Optional[UserIdentity]:
        record = self._records.get(username)
        return self._identity(record) if record else None

    def list_users(self) -> List[str]:
        return sorted(self._records)

    def has_any_user(self) -> bool:
        return bool(self._records)
