"""Key/value storage backends for the snapshot store.

A backend stores strings under keys and notifies every *other* subscriber
when a key changes, passing only the key. Subscribers re-read on notice.
"""

from __future__ import annotations

import os
from collections.abc import Callable
from pathlib import Path
from typing import Protocol

from banque.core.exceptions import StorageError
from banque.core.logging import get_logger

log = get_logger(__name__)

KeyListener = Callable[[str], None]


class StorageBackend(Protocol):
    """Minimal key/value interface used by SnapshotStore."""

    def get_item(self, key: str) -> str | None: ...

    def set_item(self, key: str, value: str, origin: object | None = None) -> None: ...

    def remove_item(self, key: str, origin: object | None = None) -> None: ...

    def subscribe(self, listener: KeyListener, owner: object | None = None) -> Callable[[], None]: ...


class _Subscribers:
    """Listener registry notifying everyone but the writing owner."""

    def __init__(self) -> None:
        self._listeners: list[tuple[object | None, KeyListener]] = []

    def add(self, listener: KeyListener, owner: object | None) -> Callable[[], None]:
        entry = (owner, listener)
        self._listeners.append(entry)

        def unsubscribe() -> None:
            if entry in self._listeners:
                self._listeners.remove(entry)

        return unsubscribe

    def notify(self, key: str, origin: object | None) -> None:
        for owner, listener in list(self._listeners):
            if origin is not None and owner is origin:
                continue
            listener(key)


class InMemoryBackend:
    """Process-local backend; share one instance between stores to sync them."""

    def __init__(self) -> None:
        self._data: dict[str, str] = {}
        self._subscribers = _Subscribers()

    def get_item(self, key: str) -> str | None:
        return self._data.get(key)

    def set_item(self, key: str, value: str, origin: object | None = None) -> None:
        self._data[key] = value
        self._subscribers.notify(key, origin)

    def remove_item(self, key: str, origin: object | None = None) -> None:
        if self._data.pop(key, None) is not None:
            self._subscribers.notify(key, origin)

    def subscribe(self, listener: KeyListener, owner: object | None = None) -> Callable[[], None]:
        return self._subscribers.add(listener, owner)

    def raw(self, key: str) -> str | None:
        """Stored string, for inspection."""
        return self._data.get(key)


class JsonFileBackend:
    """One JSON file per key in a directory.

    Writes go to a temporary file first and are then renamed over the target.
    Backends opened on the same directory share their subscribers, so stores
    in one process observe each other's writes.
    """

    _registries: dict[Path, _Subscribers] = {}

    def __init__(self, directory: str | Path) -> None:
        self.directory = Path(directory)
        self._registry_key = self.directory.resolve()
        self._subscribers = self._registries.setdefault(self._registry_key, _Subscribers())

    def _path(self, key: str) -> Path:
        return self.directory / f"{key}.json"

    def get_item(self, key: str) -> str | None:
        path = self._path(key)
        if not path.exists():
            return None
        try:
            return path.read_text(encoding="utf-8")
        except OSError as e:
            raise StorageError(key, str(e)) from e

    def set_item(self, key: str, value: str, origin: object | None = None) -> None:
        path = self._path(key)
        tmp = path.with_suffix(".json.tmp")
        try:
            self.directory.mkdir(parents=True, exist_ok=True)
            tmp.write_text(value, encoding="utf-8")
            os.replace(tmp, path)
        except OSError as e:
            log.error("storage_write_failed", key=key, path=str(path), error=str(e))
            raise StorageError(key, str(e)) from e
        self._subscribers.notify(key, origin)

    def remove_item(self, key: str, origin: object | None = None) -> None:
        path = self._path(key)
        try:
            path.unlink(missing_ok=True)
        except OSError as e:
            raise StorageError(key, str(e)) from e
        self._subscribers.notify(key, origin)

    def subscribe(self, listener: KeyListener, owner: object | None = None) -> Callable[[], None]:
        return self._subscribers.add(listener, owner)
