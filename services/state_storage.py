"""Key-value storage for the persisted application state.

Each key maps to one JSON document. ``JsonFileStorage`` keeps documents as
``<directory>/<key>.json`` and writes atomically; ``InMemoryStorage`` is used
by tests and throwaway sessions.
"""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Protocol

from exceptions import PersistenceReadError, PersistenceWriteError
from models import ApplicationState
from utils import atomic_write_text, backup_corrupt_file

logger = logging.getLogger(__name__)


class StateStorage(Protocol):
    """Minimal key-value facility used by the project store."""

    def get(self, key: str) -> str | None: ...

    def set(self, key: str, value: str) -> None: ...

    def delete(self, key: str) -> None: ...

    def quarantine(self, key: str) -> None: ...


class JsonFileStorage:
    """Store each key as a JSON file inside ``directory``."""

    def __init__(self, directory: str | Path) -> None:
        self.directory = Path(directory)

    def path_for(self, key: str) -> Path:
        return self.directory / f"{key}.json"

    def get(self, key: str) -> str | None:
        path = self.path_for(key)
        if not path.exists():
            return None
        try:
            return path.read_text(encoding="utf-8")
        except (OSError, UnicodeDecodeError) as e:
            raise PersistenceReadError(f"读取存储失败: {path}", details=str(e)) from e

    def set(self, key: str, value: str) -> None:
        path = self.path_for(key)
        try:
            atomic_write_text(path, value)
        except OSError as e:
            raise PersistenceWriteError(f"写入存储失败: {path}", details=str(e)) from e
        logger.debug("State written: %s (%s chars)", path, len(value))

    def delete(self, key: str) -> None:
        path = self.path_for(key)
        try:
            path.unlink(missing_ok=True)
        except OSError as e:
            logger.error("Failed to delete %s: %s", path, e)

    def quarantine(self, key: str) -> None:
        """Keep a copy of an unreadable document before it gets overwritten."""
        backup_corrupt_file(self.path_for(key))


class InMemoryStorage:
    """Dictionary-backed storage."""

    def __init__(self, initial: dict[str, str] | None = None) -> None:
        self.data: dict[str, str] = dict(initial or {})
        self.write_count = 0

    def get(self, key: str) -> str | None:
        return self.data.get(key)

    def set(self, key: str, value: str) -> None:
        self.data[key] = value
        self.write_count += 1

    def delete(self, key: str) -> None:
        self.data.pop(key, None)

    def quarantine(self, key: str) -> None:
        if key in self.data:
            self.data[f"{key}.corrupt"] = self.data[key]


def encode_state(state: ApplicationState) -> str:
    """Serialize the whole application state to one JSON document."""
    return json.dumps(state.to_dict(), ensure_ascii=False)


def decode_state(raw: str) -> ApplicationState:
    """Parse a stored document.

    Raises:
        PersistenceReadError: the document is not valid JSON or not a valid state
    """
    try:
        data = json.loads(raw)
    except json.JSONDecodeError as e:
        raise PersistenceReadError("存储的状态不是有效的JSON", details=str(e)) from e

    try:
        return ApplicationState.from_dict(data)
    except (TypeError, KeyError, ValueError, AttributeError, OverflowError) as e:
        raise PersistenceReadError("存储的状态结构无效", details=str(e)) from e
