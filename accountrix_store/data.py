"""Domain records persisted by the Accountrix store.

Every model serializes to the camelCase JSON layout used on-device
(``lastActive``, ``isPremium``, ...) and accepts either the camelCase
alias or the Python attribute name on input.
"""
import enum
from datetime import datetime, timezone
from typing import Any, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from .vault.config import EXPORT_VERSION


class Provider(str, enum.Enum):
    """Third-party account ecosystems whose sessions are tracked."""

    GOOGLE = "google"
    MICROSOFT = "microsoft"
    APPLE = "apple"


def provider_name(provider: Any) -> str:
    """Normalize a provider to its string name.

    Raises:
        ValueError: If the provider is unknown.
    """
    if isinstance(provider, Provider):
        return provider.value
    try:
        return Provider(str(provider).lower()).value
    except ValueError:
        raise ValueError(f"Unknown provider: {provider!r}") from None


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


Plan = Literal["free", "lite", "premium"]

PREMIUM_FEATURES: dict[str, list[str]] = {
    "free": [
        "view_google_sessions",
        "view_microsoft_sessions",
        "basic_export",
        "session_health_score",
        "basic_cleanup_tips",
    ],
    "lite": [
        "view_google_sessions",
        "view_microsoft_sessions",
        "one_click_logout",
        "multi_session_selection",
        "enhanced_export",
        "session_health_score",
        "basic_cleanup_tips",
        "auto_cleanup_inactive",
    ],
    "premium": [
        "view_google_sessions",
        "view_microsoft_sessions",
        "view_apple_sessions",
        "one_click_logout",
        "multi_session_selection",
        "mass_logout",
        "enhanced_export",
        "full_risk_reports",
        "session_health_score",
        "ai_security_suggestions",
        "auto_cleanup_inactive",
        "priority_support",
    ],
}


class StoredModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    def to_record(self) -> dict[str, Any]:
        """Return the JSON-ready on-device representation."""
        return self.model_dump(mode="json", by_alias=True)


class Session(StoredModel):
    """One signed-in session reported by a provider.

    Provider-specific extra fields are kept as-is.
    """

    model_config = ConfigDict(
        alias_generator=to_camel, populate_by_name=True, extra="allow",
    )

    id: str
    name: str
    device: str = "Unknown Device"
    platform: str = "Unknown"
    last_active: datetime
    risk_score: Optional[int] = Field(default=None, ge=0, le=100)
    icon: str = "monitor"
    can_revoke: bool = True
    type: Optional[str] = None
    location: Optional[str] = None


class SessionRecord(StoredModel):
    provider: str
    sessions: list[Session] = Field(default_factory=list)
    last_updated: datetime = Field(default_factory=utcnow)
    session_count: int = 0


class UserPreferences(StoredModel):
    theme: Literal["light", "dark", "system"] = "light"
    notifications: bool = True
    auto_cleanup: bool = False
    export_format: str = "json"
    last_cleanup: Optional[datetime] = None


class PremiumStatus(StoredModel):
    """Entitlement state written by the purchase and restore flows."""

    is_premium: bool = False
    plan: Plan = "free"
    expires_at: Optional[datetime] = None
    features: list[str] = Field(default_factory=list)
    last_updated: Optional[datetime] = None

    @classmethod
    def for_plan(cls, plan: Plan, expires_at: Optional[datetime] = None) -> "PremiumStatus":
        """Build the status granted by ``plan`` with its feature list."""
        return cls(
            is_premium=plan != "free",
            plan=plan,
            expires_at=expires_at,
            features=list(PREMIUM_FEATURES[plan]),
        )

    def has_feature(self, feature: str) -> bool:
        return feature in self.features


class ExportBundle(StoredModel):
    """Snapshot of every stored record, used for backup and restore.

    ``skipped_keys`` lists records that existed but could not be read
    during the export, so a partial export is visible to the caller.
    """

    export_date: Optional[datetime] = None
    version: str = EXPORT_VERSION
    data: dict[str, Any]
    skipped_keys: list[str] = Field(default_factory=list)

    @property
    def complete(self) -> bool:
        return not self.skipped_keys
