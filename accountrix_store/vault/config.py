"""
Store Configuration — Data directory and secure backend settings.

Reads settings from environment variables:
    ACCOUNTRIX_DATA_DIR = <explicit data directory>
    ACCOUNTRIX_DOCUMENT_DIR = <documents root used to derive the data directory>
    ACCOUNTRIX_PLATFORM = android | ios | desktop
    ACCOUNTRIX_KEYRING_SERVICE = <keyring service name>

Security Note:
    Never log key material. Only log paths and setting names.
"""
import os
import re
import logging
from pathlib import Path
from typing import Optional

from pydantic import BaseModel, Field, field_validator, model_validator

logger = logging.getLogger("accountrix.store")

DEFAULT_APP_ID = "com.accountrix.app"
DEFAULT_KEY_NAME = "encryption_key"
EXPORT_VERSION = "1.0.0"

_PLATFORMS = ("android", "ios", "desktop")
_APP_ID_PATTERN = re.compile(r"^[A-Za-z0-9_.-]+$")


def default_document_dir() -> Path:
    """Return the documents root used when no data directory is configured."""
    raw = os.environ.get("ACCOUNTRIX_DOCUMENT_DIR")
    if raw:
        return Path(raw).expanduser()
    return Path.home() / ".accountrix"


def default_data_dir(
    platform: str = "desktop",
    app_id: str = DEFAULT_APP_ID,
    document_dir: Optional[Path] = None,
) -> Path:
    """Build the per-platform user data directory.

    Android keeps app data under ``Android/data/<app_id>``; every other
    platform uses ``users/data`` directly below the documents root.

    Args:
        platform: Host platform name.
        app_id: Application identifier.
        document_dir: Documents root (defaults to ``default_document_dir()``).

    Returns:
        Path of the data directory (not created).
    """
    root = document_dir if document_dir is not None else default_document_dir()
    if platform == "android":
        return root / "Android" / "data" / app_id / "users" / "data"
    return root / "users" / "data"


class StoreConfig(BaseModel):
    """Validated local store configuration."""

    data_dir: Path
    platform: str = Field(default="desktop")
    app_id: str = Field(default=DEFAULT_APP_ID)
    keyring_service: str = Field(default=DEFAULT_APP_ID)
    key_name: str = Field(default=DEFAULT_KEY_NAME, min_length=1)
    export_version: str = Field(default=EXPORT_VERSION)

    @field_validator("platform")
    @classmethod
    def validate_platform(cls, v: str) -> str:
        """Validate the platform is known."""
        v = v.lower()
        if v not in _PLATFORMS:
            raise ValueError(f"Unsupported platform: {v}")
        return v

    @field_validator("app_id")
    @classmethod
    def validate_app_id(cls, v: str) -> str:
        if not _APP_ID_PATTERN.match(v):
            raise ValueError(f"Invalid application id: {v!r}")
        return v

    @model_validator(mode="after")
    def expand_data_dir(self) -> "StoreConfig":
        """Expand ``~`` in the data directory."""
        self.data_dir = self.data_dir.expanduser()
        return self

    @classmethod
    def from_env(cls) -> "StoreConfig":
        """Create StoreConfig by loading values from environment.

        Returns:
            Populated StoreConfig instance.
        """
        platform = os.environ.get("ACCOUNTRIX_PLATFORM", "desktop").lower()
        app_id = os.environ.get("ACCOUNTRIX_APP_ID", DEFAULT_APP_ID)
        raw_dir = os.environ.get("ACCOUNTRIX_DATA_DIR")
        if raw_dir:
            data_dir = Path(raw_dir)
        else:
            data_dir = default_data_dir(platform, app_id)
        config = cls(
            data_dir=data_dir,
            platform=platform,
            app_id=app_id,
            keyring_service=os.environ.get("ACCOUNTRIX_KEYRING_SERVICE", app_id),
        )
        logger.debug("Store data directory: %s", config.data_dir)
        return config
