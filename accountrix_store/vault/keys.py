"""
Key Manager — Per-installation key, created once and cached.

The key lives in the secure backend under a reserved name. It is never
rotated: every blob already on disk is tagged with it, so replacing it
would make the stored data unverifiable.

Security Note:
    Never log key material. Only log the key name.
"""
import asyncio
import logging
from typing import Optional

from ..exceptions import StoreInitializationError
from .backends import SecureBackend
from .config import DEFAULT_KEY_NAME
from .crypto import generate_key, key_from_text, key_to_text

logger = logging.getLogger("accountrix.store")


class KeyManager:
    """Loads or creates the store key on first use."""

    def __init__(self, backend: SecureBackend, key_name: str = DEFAULT_KEY_NAME):
        self._backend = backend
        self._key_name = key_name
        self._key: Optional[bytes] = None
        self._lock = asyncio.Lock()

    @property
    def key_name(self) -> str:
        return self._key_name

    @property
    def loaded(self) -> bool:
        return self._key is not None

    async def get_or_create_key(self) -> bytes:
        """Return the installation key, creating and persisting it if needed.

        Raises:
            StoreInitializationError: If the secure backend is unavailable or
                holds an unusable key.
        """
        if self._key is not None:
            return self._key
        async with self._lock:
            if self._key is not None:
                return self._key
            try:
                stored = await self._backend.get_item(self._key_name)
            except Exception as err:
                raise StoreInitializationError(
                    f"Secure backend unavailable: {err}"
                ) from err

            if stored:
                try:
                    key = key_from_text(stored)
                except ValueError as err:
                    raise StoreInitializationError(
                        f"Stored key {self._key_name!r} is not usable"
                    ) from err
                logger.debug("Loaded encryption key %s", self._key_name)
            else:
                key = generate_key()
                try:
                    await self._backend.set_item(self._key_name, key_to_text(key))
                except Exception as err:
                    raise StoreInitializationError(
                        f"Could not persist encryption key: {err}"
                    ) from err
                logger.info("Generated new encryption key %s", self._key_name)
            self._key = key
            return key

    async def persist(self) -> None:
        """Write the cached key back to the secure backend.

        Used after the backend was wiped so the key outlives ``clear()``.
        """
        if self._key is None:
            return
        await self._backend.set_item(self._key_name, key_to_text(self._key))
