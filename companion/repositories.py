"""Small load/save repositories behind the credential and settings stores."""

from __future__ import annotations

import copy
import json
import os
import tempfile
import threading
from pathlib import Path
from typing import Any, Optional, Protocol

from companion.errors import StoreCorrupt
from utils.logging_utils import get_tagged_logger

logger = get_tagged_logger(__name__, tag="companion/repositories")


class JsonRepository(Protocol):
    """Persist one JSON-serializable document."""

    def load(self) -> Optional[Any]:
        """Return the stored document, None if nothing was saved yet.

        Raises StoreCorrupt when something is stored but cannot be parsed.
        """

    def save(self, document: Any) -> None:
        """Replace the stored document atomically."""

    def delete(self) -> None:
        """Remove the stored document without raising if it is absent."""


class InMemoryRepository(JsonRepository):
    """Keeps a deep copy of the document; for tests and guest-only runs."""

    def __init__(self, document: Any = None) -> None:
        self._document = copy.deepcopy(document)
        self._lock = threading.Lock()

    def load(self) -> Optional[Any]:
        with self._lock:
            return copy.deepcopy(self._document)

    def save(self, document: Any) -> None:
        with self._lock:
            self._document = copy.deepcopy(document)

    def delete(self) -> None:
        with self._lock:
            self._document = None


class JsonFileRepository(JsonRepository):
    """JSON file written via temp file + ``os.replace`` so readers never see half a file."""

    def __init__(self, path: Path | str) -> None:
        self.path = Path(path)

    def load(self) -> Optional[Any]:
        try:
            raw = self.path.read_text(encoding="utf-8")
        except FileNotFoundError:
            return None
        except OSError as exc:
            raise StoreCorrupt(self.path, str(exc)) from exc
        try:
            return json.loads(raw)
        except ValueError as exc:
            raise StoreCorrupt(self.path, str(exc)) from exc

    def save(self, document: Any) -> None:
        write_json_atomic(self.path, document)

    def delete(self) -> None:
        try:
            self.path.unlink()
        except FileNotFoundError:
            pass


def write_json_atomic(path: Path, document: Any) -> None:
    """Serialize ``document`` next to ``path`` then swap it into place."""
    path.parent.mkdir(parents=True, exist_ok=True)
    fd, tmp_name = tempfile.mkstemp(prefix=f".{path.name}.", suffix=".tmp", dir=path.parent)
    try:
        with os.fdopen(fd, "w", encoding="utf-8") as fh:
            json.dump(document, fh, indent=2, ensure_ascii=False)
        os.replace(tmp_name, path)
    except Exception:
        logger.error("Failed to write %s", path)
        try:
            os.unlink(tmp_name)
        except FileNotFoundError:
            pass
        raise
