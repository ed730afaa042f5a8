"""
Store Crypto Core — Key generation, canonical serialization and integrity blobs.

Every stored value travels as an integrity-checked blob:
    <base64(HMAC-SHA256(key, payload))>:<base64(payload)>

where ``payload`` is the canonical (sorted-key) JSON form of the value.
The tag detects tampering and corruption; the payload is only obscured,
not encrypted.

Security Note:
    Never log key material, payloads or blobs.
"""
import enum
import base64
import binascii
import logging
import secrets
from dataclasses import dataclass
from typing import Any

import orjson
from cryptography.hazmat.primitives import hashes, hmac
from cryptography.exceptions import InvalidSignature

logger = logging.getLogger("accountrix.store")

KEY_LENGTH = 32  # HMAC-SHA256 key size
SEPARATOR = ":"

_BYTES_WRAPPER_KEY = "__store_bytes_b64__"


# ---------------------------------------------------------------------------
# Key material
# ---------------------------------------------------------------------------

def generate_key() -> bytes:
    """Generate a fresh random key for this installation."""
    return secrets.token_bytes(KEY_LENGTH)


def key_to_text(key: bytes) -> str:
    """Encode key bytes for storage in a string-valued secure backend."""
    return key.hex()


def key_from_text(text: str) -> bytes:
    """Decode a stored key.

    Raises:
        ValueError: If the stored text is not a hex-encoded key.
    """
    key = bytes.fromhex(text.strip())
    if not key:
        raise ValueError("Stored encryption key is empty")
    return key


# ---------------------------------------------------------------------------
# Value serialization
# ---------------------------------------------------------------------------

def serialize_value(value: Any) -> bytes:
    """Serialize a Python value to its canonical JSON bytes.

    Keys are sorted so that the same logical value always produces the same
    payload (and therefore the same integrity tag).
    bytes values are wrapped as {"__store_bytes_b64__": "<base64>"}.

    Raises:
        TypeError: If the value is not JSON-serializable.
    """
    if isinstance(value, bytes):
        value = {_BYTES_WRAPPER_KEY: base64.b64encode(value).decode("ascii")}
    try:
        return orjson.dumps(value, option=orjson.OPT_SORT_KEYS)
    except orjson.JSONEncodeError as err:
        raise TypeError(str(err)) from err


def deserialize_value(data: bytes) -> Any:
    """Deserialize canonical JSON bytes back to a Python value."""
    parsed = orjson.loads(data)
    if isinstance(parsed, dict) and _BYTES_WRAPPER_KEY in parsed and len(parsed) == 1:
        return base64.b64decode(parsed[_BYTES_WRAPPER_KEY])
    return parsed


# ---------------------------------------------------------------------------
# Integrity tag
# ---------------------------------------------------------------------------

def _hmac(payload: bytes, key: bytes) -> hmac.HMAC:
    h = hmac.HMAC(key, hashes.SHA256())
    h.update(payload)
    return h


def integrity_tag(payload: bytes, key: bytes) -> str:
    """Return the base64 HMAC-SHA256 tag of ``payload`` under ``key``."""
    return base64.b64encode(_hmac(payload, key).finalize()).decode("ascii")


def verify_tag(payload: bytes, tag: str, key: bytes) -> bool:
    """Check ``tag`` against ``payload`` in constant time."""
    try:
        expected = base64.b64decode(tag, validate=True)
    except (binascii.Error, ValueError):
        return False
    try:
        _hmac(payload, key).verify(expected)
    except InvalidSignature:
        return False
    return True


# ---------------------------------------------------------------------------
# Blobs
# ---------------------------------------------------------------------------

class DecodeStatus(str, enum.Enum):
    """Outcome of reading a stored record."""

    OK = "ok"
    LEGACY = "legacy"
    CORRUPTED = "corrupted"
    ABSENT = "absent"


@dataclass(frozen=True)
class DecodeResult:
    """Tagged decode outcome. ``value`` is only meaningful when ``readable``."""

    status: DecodeStatus
    value: Any = None

    @property
    def readable(self) -> bool:
        return self.status in (DecodeStatus.OK, DecodeStatus.LEGACY)

    @classmethod
    def absent(cls) -> "DecodeResult":
        return cls(DecodeStatus.ABSENT)

    @classmethod
    def corrupted(cls) -> "DecodeResult":
        return cls(DecodeStatus.CORRUPTED)


def encode_blob(value: Any, key: bytes) -> str:
    """Produce the stored blob for ``value``.

    Returns:
        ``tag + ":" + base64(payload)``.

    Raises:
        TypeError: If the value is not JSON-serializable.
    """
    payload = serialize_value(value)
    tag = integrity_tag(payload, key)
    return f"{tag}{SEPARATOR}{base64.b64encode(payload).decode('ascii')}"


def _parse_plain(blob: str) -> DecodeResult:
    try:
        return DecodeResult(DecodeStatus.LEGACY, deserialize_value(blob.encode("utf-8")))
    except (orjson.JSONDecodeError, binascii.Error, ValueError):
        return DecodeResult.corrupted()


def decode_blob(blob: str, key: bytes) -> DecodeResult:
    """Decode and verify a stored blob. Never raises.

    Blobs without a separator are plaintext JSON written before integrity
    tags existed and decode as ``LEGACY``. A tag mismatch falls back to a
    plaintext parse of the whole blob; if that fails too the record is
    ``CORRUPTED``.
    """
    if SEPARATOR not in blob:
        return _parse_plain(blob)

    tag, encoded = blob.split(SEPARATOR, 1)
    try:
        payload = base64.b64decode(encoded, validate=True)
    except (binascii.Error, ValueError):
        payload = None

    if payload is not None and verify_tag(payload, tag, key):
        try:
            return DecodeResult(DecodeStatus.OK, deserialize_value(payload))
        except (orjson.JSONDecodeError, binascii.Error, ValueError):
            logger.error("Verified payload is not valid JSON")
            return DecodeResult.corrupted()

    logger.warning("Data integrity check failed")
    result = _parse_plain(blob)
    if not result.readable:
        logger.error("Stored record is unrecoverable")
    return result
