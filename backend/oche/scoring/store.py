from __future__ import annotations

import json
import logging
from pathlib import Path
from threading import RLock
from typing import Any, Protocol

logger = logging.getLogger(__name__)

MATCH_KEY = "match"
ACHIEVEMENTS_KEY = "achievements"


class PersistencePort(Protocol):
    """
    Key-value persistence for the match host.

    Values are JSON-compatible. Implementations may raise on failure; the
    host treats every failure as non-fatal.
    """

    def load(self, key: str) -> Any | None: ...

    def save(self, key: str, value: Any) -> None: ...

    def clear(self, key: str) -> None: ...


class InMemoryStore:
    """
    Minimal in-memory store. Values are round-tripped through JSON so callers
    never share mutable state with the store.
    """

    def __init__(self) -> None:
        self._lock = RLock()
        self._data: dict[str, str] = {}

    def load(self, key: str) -> Any | None:
        with self._lock:
            raw = self._data.get(key)
        return json.loads(raw) if raw is not None else None

    def save(self, key: str, value: Any) -> None:
        raw = json.dumps(value)
        with self._lock:
            self._data[key] = raw

    def clear(self, key: str) -> None:
        with self._lock:
            self._data.pop(key, None)


class JsonFileStore:
    """
    One JSON file per key under a directory.
    """

    def __init__(self, directory: Path | str) -> None:
        self._dir = Path(directory)
        self._lock = RLock()

    def _path(self, key: str) -> Path:
        if not key or not key.replace("_", "").replace("-", "").isalnum():
            raise ValueError(f"invalid storage key {key!r}")
        return self._dir / f"{key}.json"

    def load(self, key: str) -> Any | None:
        path = self._path(key)
        with self._lock:
            if not path.exists():
                return None
            return json.loads(path.read_text(encoding="utf-8"))

    def save(self, key: str, value: Any) -> None:
        path = self._path(key)
        raw = json.dumps(value, indent=2)
        with self._lock:
            self._dir.mkdir(parents=True, exist_ok=True)
            tmp = path.with_suffix(".json.tmp")
            tmp.write_text(raw, encoding="utf-8")
            tmp.replace(path)
        logger.debug("saved %s to %s", key, path)

    def clear(self, key: str) -> None:
        path = self._path(key)
        with self._lock:
            path.unlink(missing_ok=True)
