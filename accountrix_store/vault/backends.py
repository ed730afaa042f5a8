"""
Store Backends — Secure key-value storage and the plain file directory.

Two independent places hold every blob:
- a **secure backend** (OS keyring, or memory for ephemeral stores),
  string-valued and atomic per key;
- a **file backend**: one ``<key>.json`` text file per record in the data
  directory, which is also the authoritative key listing.

Blocking calls run in a worker thread so the event loop is never stalled.
"""
import os
import asyncio
import logging
import shutil
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Optional

import keyring
import orjson
from keyring.errors import PasswordDeleteError

logger = logging.getLogger("accountrix.store")

FILE_SUFFIX = ".json"


class SecureBackend(ABC):
    """String-valued secure key-value storage."""

    @abstractmethod
    async def get_item(self, key: str) -> Optional[str]:
        """Return the stored string, or None when the key is absent."""

    @abstractmethod
    async def set_item(self, key: str, value: str) -> None:
        ...

    @abstractmethod
    async def remove_item(self, key: str) -> None:
        """Remove a key. Removing an absent key is not an error."""

    @abstractmethod
    async def clear(self) -> None:
        ...


class MemoryBackend(SecureBackend):
    """Process-local secure backend. Contents do not survive a restart."""

    def __init__(self) -> None:
        self._items: dict[str, str] = {}

    async def get_item(self, key: str) -> Optional[str]:
        return self._items.get(key)

    async def set_item(self, key: str, value: str) -> None:
        self._items[key] = value

    async def remove_item(self, key: str) -> None:
        self._items.pop(key, None)

    async def clear(self) -> None:
        self._items.clear()


class KeyringBackend(SecureBackend):
    """Secure backend on top of the OS keyring.

    Keyrings cannot enumerate entries, so the names written through this
    backend are tracked in an index entry to support ``clear()``.
    """

    INDEX_KEY = "__index__"

    def __init__(self, service: str) -> None:
        self._service = service

    def _get(self, key: str) -> Optional[str]:
        return keyring.get_password(self._service, key)

    def _delete(self, key: str) -> None:
        try:
            keyring.delete_password(self._service, key)
        except PasswordDeleteError:
            pass  # already absent

    def _read_index(self) -> set[str]:
        raw = self._get(self.INDEX_KEY)
        if not raw:
            return set()
        try:
            return set(orjson.loads(raw))
        except (orjson.JSONDecodeError, TypeError):
            logger.warning("Keyring index for %s is unreadable, resetting", self._service)
            return set()

    def _write_index(self, names: set[str]) -> None:
        keyring.set_password(
            self._service, self.INDEX_KEY, orjson.dumps(sorted(names)).decode("utf-8"),
        )

    def _set(self, key: str, value: str) -> None:
        keyring.set_password(self._service, key, value)
        names = self._read_index()
        if key not in names:
            names.add(key)
            self._write_index(names)

    def _remove(self, key: str) -> None:
        self._delete(key)
        names = self._read_index()
        if key in names:
            names.discard(key)
            self._write_index(names)

    def _clear(self) -> None:
        for name in self._read_index():
            self._delete(name)
        self._delete(self.INDEX_KEY)

    async def get_item(self, key: str) -> Optional[str]:
        return await asyncio.to_thread(self._get, key)

    async def set_item(self, key: str, value: str) -> None:
        await asyncio.to_thread(self._set, key, value)

    async def remove_item(self, key: str) -> None:
        await asyncio.to_thread(self._remove, key)

    async def clear(self) -> None:
        await asyncio.to_thread(self._clear)


class FileBackend:
    """One text file per key inside a single directory."""

    def __init__(self, directory: Path) -> None:
        self._dir = Path(directory)

    @property
    def directory(self) -> Path:
        return self._dir

    def path_for(self, key: str) -> Path:
        return self._dir / f"{key}{FILE_SUFFIX}"

    # ------------------------------------------------------------------
    # Blocking helpers
    # ------------------------------------------------------------------

    def _ensure(self) -> None:
        self._dir.mkdir(parents=True, exist_ok=True)

    def _read(self, key: str) -> Optional[str]:
        path = self.path_for(key)
        if not path.is_file():
            return None
        return path.read_text(encoding="utf-8")

    def _write(self, key: str, value: str) -> None:
        path = self.path_for(key)
        tmp = path.with_name(path.name + ".tmp")
        try:
            with open(tmp, "w", encoding="utf-8") as f:
                f.write(value)
                f.flush()
                os.fsync(f.fileno())
            # readers see either the old file or the new one
            os.replace(tmp, path)
        finally:
            if tmp.exists():
                tmp.unlink()

    def _delete(self, key: str) -> None:
        self.path_for(key).unlink(missing_ok=True)

    def _list(self) -> list[str]:
        return sorted(
            p.name[: -len(FILE_SUFFIX)]
            for p in self._dir.iterdir()
            if p.is_file() and p.name.endswith(FILE_SUFFIX)
        )

    def _size(self) -> int:
        return sum(p.stat().st_size for p in self._dir.rglob("*") if p.is_file())

    def _reset(self) -> None:
        if self._dir.exists():
            shutil.rmtree(self._dir)
        self._dir.mkdir(parents=True, exist_ok=True)

    # ------------------------------------------------------------------
    # Async API
    # ------------------------------------------------------------------

    async def ensure_directory(self) -> None:
        await asyncio.to_thread(self._ensure)

    async def read(self, key: str) -> Optional[str]:
        return await asyncio.to_thread(self._read, key)

    async def write(self, key: str, value: str) -> None:
        await asyncio.to_thread(self._write, key, value)

    async def delete(self, key: str) -> None:
        await asyncio.to_thread(self._delete, key)

    async def list_keys(self) -> list[str]:
        return await asyncio.to_thread(self._list)

    async def size(self) -> int:
        return await asyncio.to_thread(self._size)

    async def reset(self) -> None:
        await asyncio.to_thread(self._reset)
