"""Local Vault — Integrity-checked storage on a secure backend and a file directory.

Security Note (Threat Model):
    Stored payloads are tagged with an HMAC keyed by a per-installation key
    kept in the secure backend. The tag detects tampering and corruption;
    payloads themselves are only base64-obscured. Anyone able to read both
    the secure backend and the data directory can read the stored values.
"""

from .backends import FileBackend, KeyringBackend, MemoryBackend, SecureBackend
from .config import StoreConfig, default_data_dir
from .crypto import DecodeResult, DecodeStatus, decode_blob, encode_blob
from .keys import KeyManager
from .local_store import LocalStore

__all__ = [
    "LocalStore",
    "KeyManager",
    "SecureBackend",
    "KeyringBackend",
    "MemoryBackend",
    "FileBackend",
    "StoreConfig",
    "default_data_dir",
    "DecodeResult",
    "DecodeStatus",
    "encode_blob",
    "decode_blob",
]
