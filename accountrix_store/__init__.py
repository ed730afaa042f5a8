"""Accountrix Store.

Integrity-checked on-device storage for third-party session lists,
OAuth tokens, preferences and premium entitlements.
"""
from .version import __version__
from .exceptions import MalformedImportError, StoreError, StoreInitializationError
from .data import (
    PREMIUM_FEATURES,
    ExportBundle,
    PremiumStatus,
    Provider,
    Session,
    SessionRecord,
    UserPreferences,
)
from .health import HealthReport, session_health_score
from .store import UserDataStore
from .sync import RemoteSessionProvider, RevokeResult, SessionSync
from .vault import LocalStore, StoreConfig

__all__ = (
    "__version__",
    "LocalStore",
    "StoreConfig",
    "UserDataStore",
    "SessionSync",
    "RemoteSessionProvider",
    "RevokeResult",
    "Session",
    "SessionRecord",
    "UserPreferences",
    "PremiumStatus",
    "PREMIUM_FEATURES",
    "ExportBundle",
    "Provider",
    "HealthReport",
    "session_health_score",
    "StoreError",
    "StoreInitializationError",
    "MalformedImportError",
)
