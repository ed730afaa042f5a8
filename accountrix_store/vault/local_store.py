"""
LocalStore — Integrity-checked key-value storage on two backends.

Provides the generic storage API used by the typed accessors:
- ``set_item(key, value)`` — encode once, write to secure backend and file
- ``get_item(key)`` — secure backend first, file backend as fallback
- ``read_item(key)`` — same lookup, returning the tagged ``DecodeResult``
- ``remove_item(key)`` / ``clear()`` — delete from both backends
- ``get_all_keys()`` / ``get_storage_size()`` — from the file directory

Writes are redundant, not transactional: the file copy is a recovery
source for reads, so a write that lands on only one backend still counts.

Security Note:
    Never log values or blobs. Only log key names and operations.
"""
import asyncio
import logging
from pathlib import Path
from typing import Any, Optional

from ..exceptions import StoreInitializationError
from .backends import FileBackend, KeyringBackend, SecureBackend
from .config import DEFAULT_KEY_NAME, StoreConfig
from .crypto import DecodeResult, decode_blob, encode_blob
from .keys import KeyManager

logger = logging.getLogger("accountrix.store")

_MAX_KEY_LENGTH = 255
_FORBIDDEN_KEY_CHARS = ("/", "\\", "\x00")


class LocalStore:
    """Encrypted local store over a secure backend and a file directory.

    One instance is created at process start and handed to its consumers.
    Every public coroutine initializes the store on first use.
    """

    def __init__(
        self,
        data_dir: Path,
        secure: SecureBackend,
        key_name: str = DEFAULT_KEY_NAME,
    ):
        self._files = FileBackend(data_dir)
        self._secure = secure
        self._keys = KeyManager(secure, key_name)
        self._reserved = frozenset({key_name, KeyringBackend.INDEX_KEY})
        self._initialized = False
        self._init_lock = asyncio.Lock()

    @classmethod
    def from_config(
        cls, config: StoreConfig, secure: Optional[SecureBackend] = None,
    ) -> "LocalStore":
        """Build a store from configuration, using the OS keyring by default."""
        if secure is None:
            secure = KeyringBackend(config.keyring_service)
        return cls(config.data_dir, secure, key_name=config.key_name)

    @property
    def initialized(self) -> bool:
        return self._initialized

    # ------------------------------------------------------------------
    # Initialization
    # ------------------------------------------------------------------

    async def init(self) -> None:
        """Create the data directory and load the key. Safe to call repeatedly.

        Raises:
            StoreInitializationError: If the directory or the secure backend
                is unusable.
        """
        if self._initialized:
            return
        async with self._init_lock:
            if self._initialized:
                return
            try:
                await self._files.ensure_directory()
            except OSError as err:
                logger.error("Failed to create data directory %s: %s", self._files.directory, err)
                raise StoreInitializationError(
                    f"Data directory unavailable: {err}"
                ) from err
            await self._keys.get_or_create_key()
            self._initialized = True
            logger.info("Local store initialized at %s", self._files.directory)

    async def _key(self) -> bytes:
        await self.init()
        return await self._keys.get_or_create_key()

    def _validate_key(self, key: str) -> None:
        """Validate a record key name.

        Raises:
            ValueError: If key is empty, too long, reserved, or not a safe
                file name.
        """
        if not key:
            raise ValueError("Storage key cannot be empty")
        if len(key) > _MAX_KEY_LENGTH:
            raise ValueError(f"Storage key cannot exceed {_MAX_KEY_LENGTH} characters")
        if key.startswith(".") or any(c in key for c in _FORBIDDEN_KEY_CHARS):
            raise ValueError(f"Storage key {key!r} is not a valid file name")
        if key in self._reserved:
            raise ValueError(f"Storage key {key!r} is reserved")

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    async def set_item(self, key: str, value: Any) -> bool:
        """Encode ``value`` and write it to both backends.

        Returns:
            True if at least one backend accepted the write.
        """
        self._validate_key(key)
        enc_key = await self._key()
        try:
            blob = encode_blob(value, enc_key)
        except TypeError as err:
            logger.error("Failed to encode item %s: %s", key, err)
            return False

        written = 0
        try:
            await self._secure.set_item(key, blob)
            written += 1
        except Exception as err:
            logger.error("Secure backend write failed for %s: %s", key, err)
        try:
            await self._files.write(key, blob)
            written += 1
        except OSError as err:
            logger.error("File backend write failed for %s: %s", key, err)

        if written == 1:
            logger.warning("Item %s stored on a single backend", key)
        return written > 0

    async def _read_blob(self, key: str) -> Optional[str]:
        blob: Optional[str] = None
        try:
            blob = await self._secure.get_item(key)
        except Exception as err:
            logger.error("Secure backend read failed for %s: %s", key, err)
        if blob is None:
            try:
                blob = await self._files.read(key)
            except OSError as err:
                logger.error("File backend read failed for %s: %s", key, err)
            if blob is not None:
                logger.debug("Item %s read from file backend", key)
        return blob

    async def read_item(self, key: str) -> DecodeResult:
        """Read and verify a record, returning the tagged outcome."""
        self._validate_key(key)
        enc_key = await self._key()
        try:
            blob = await self._read_blob(key)
        except UnicodeDecodeError as err:
            logger.error("File copy of %s is not valid UTF-8: %s", key, err)
            return DecodeResult.corrupted()
        if blob is None:
            return DecodeResult.absent()
        result = decode_blob(blob, enc_key)
        if not result.readable:
            logger.error("Item %s failed integrity verification", key)
        return result

    async def get_item(self, key: str) -> Any:
        """Return the stored value, or None when absent or unreadable."""
        return (await self.read_item(key)).value

    async def remove_item(self, key: str) -> bool:
        """Delete a record from both backends. Absent keys are a success."""
        self._validate_key(key)
        await self.init()
        removed = True
        try:
            await self._secure.remove_item(key)
        except Exception as err:
            logger.error("Secure backend delete failed for %s: %s", key, err)
            removed = False
        try:
            await self._files.delete(key)
        except OSError as err:
            logger.error("File backend delete failed for %s: %s", key, err)
            removed = False
        return removed

    async def clear(self) -> bool:
        """Wipe both backends. The encryption key is kept."""
        await self.init()
        try:
            await self._secure.clear()
            await self._keys.persist()
            await self._files.reset()
        except Exception as err:
            logger.error("Failed to clear storage: %s", err)
            return False
        logger.info("Local store cleared")
        return True

    async def get_all_keys(self) -> list[str]:
        """List stored keys from the file directory."""
        await self.init()
        try:
            return await self._files.list_keys()
        except OSError as err:
            logger.error("Failed to list keys: %s", err)
            return []

    async def get_storage_size(self) -> int:
        """Return the size in bytes of the data directory."""
        await self.init()
        try:
            return await self._files.size()
        except OSError as err:
            logger.error("Failed to get storage size: %s", err)
            return 0

    def get_storage_path(self) -> Path:
        return self._files.directory
