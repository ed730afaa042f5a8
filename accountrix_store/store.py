"""
UserDataStore — Typed accessors over the local store.

Each accessor owns one record key and a default returned when the record
is absent or unreadable, so callers never have to handle ``None``:

- ``sessions_<provider>`` — ``SessionRecord`` (default: no sessions)
- ``user_preferences`` — ``UserPreferences`` (default preferences)
- ``premium_status`` — ``PremiumStatus`` (default: free plan)
- ``auth_tokens`` / ``user_info`` — per-provider token and profile maps

``export_user_data()`` / ``import_user_data()`` snapshot and restore every
record in the store.
"""
import logging
from collections.abc import Iterable, Mapping
from typing import Any, Optional, Union

from pydantic import ValidationError

from .data import (
    ExportBundle,
    PremiumStatus,
    Provider,
    Session,
    SessionRecord,
    UserPreferences,
    provider_name,
    utcnow,
)
from .exceptions import MalformedImportError
from .vault.config import EXPORT_VERSION, StoreConfig
from .vault.backends import SecureBackend
from .vault.local_store import LocalStore

logger = logging.getLogger("accountrix.store")

PREFERENCES_KEY = "user_preferences"
PREMIUM_STATUS_KEY = "premium_status"
AUTH_TOKENS_KEY = "auth_tokens"
USER_INFO_KEY = "user_info"

SessionLike = Union[Session, Mapping[str, Any]]


def sessions_key(provider: Any) -> str:
    return f"sessions_{provider_name(provider)}"


def _load(model: type, raw: Any, key: str) -> Optional[Any]:
    """Validate a stored record, treating schema mismatches as unreadable."""
    if raw is None:
        return None
    try:
        return model.model_validate(raw)
    except ValidationError as err:
        logger.error("Stored record %s does not match %s: %s", key, model.__name__, err)
        return None


class UserDataStore:
    """Typed view of a ``LocalStore``.

    Construct one per process and pass it to the auth, premium and
    settings layers.
    """

    def __init__(self, local: LocalStore, export_version: str = EXPORT_VERSION):
        self._local = local
        self._export_version = export_version

    @classmethod
    def from_config(
        cls, config: StoreConfig, secure: Optional[SecureBackend] = None,
    ) -> "UserDataStore":
        return cls(
            LocalStore.from_config(config, secure=secure),
            export_version=config.export_version,
        )

    @property
    def local(self) -> LocalStore:
        return self._local

    async def init(self) -> None:
        await self._local.init()

    # ------------------------------------------------------------------
    # Sessions
    # ------------------------------------------------------------------

    async def save_user_sessions(
        self, provider: Union[Provider, str], sessions: Iterable[SessionLike],
    ) -> bool:
        """Replace the stored session list for ``provider``."""
        name = provider_name(provider)
        items = [
            s if isinstance(s, Session) else Session.model_validate(s)
            for s in sessions
        ]
        record = SessionRecord(
            provider=name,
            sessions=items,
            last_updated=utcnow(),
            session_count=len(items),
        )
        return await self._local.set_item(sessions_key(name), record.to_record())

    async def get_session_record(self, provider: Union[Provider, str]) -> Optional[SessionRecord]:
        key = sessions_key(provider)
        return _load(SessionRecord, await self._local.get_item(key), key)

    async def get_user_sessions(self, provider: Union[Provider, str]) -> list[Session]:
        """Return the stored sessions for ``provider``; empty when none."""
        record = await self.get_session_record(provider)
        return record.sessions if record else []

    # ------------------------------------------------------------------
    # Preferences
    # ------------------------------------------------------------------

    async def save_user_preferences(
        self, preferences: Union[UserPreferences, Mapping[str, Any]],
    ) -> bool:
        if not isinstance(preferences, UserPreferences):
            preferences = UserPreferences.model_validate(preferences)
        return await self._local.set_item(PREFERENCES_KEY, preferences.to_record())

    async def get_user_preferences(self) -> UserPreferences:
        raw = await self._local.get_item(PREFERENCES_KEY)
        return _load(UserPreferences, raw, PREFERENCES_KEY) or UserPreferences()

    async def update_user_preferences(self, **changes: Any) -> UserPreferences:
        """Merge ``changes`` into the stored preferences and save them."""
        current = await self.get_user_preferences()
        updated = UserPreferences.model_validate(
            {**current.model_dump(), **changes}
        )
        await self.save_user_preferences(updated)
        return updated

    # ------------------------------------------------------------------
    # Premium status
    # ------------------------------------------------------------------

    async def save_premium_status(
        self, status: Union[PremiumStatus, Mapping[str, Any]],
    ) -> bool:
        """Persist the entitlement state, stamping ``last_updated``."""
        if not isinstance(status, PremiumStatus):
            status = PremiumStatus.model_validate(status)
        stamped = status.model_copy(update={"last_updated": utcnow()})
        return await self._local.set_item(PREMIUM_STATUS_KEY, stamped.to_record())

    async def get_premium_status(self) -> PremiumStatus:
        raw = await self._local.get_item(PREMIUM_STATUS_KEY)
        return _load(PremiumStatus, raw, PREMIUM_STATUS_KEY) or PremiumStatus()

    # ------------------------------------------------------------------
    # Auth records
    # ------------------------------------------------------------------

    async def _get_provider_map(self, key: str) -> dict[str, Any]:
        raw = await self._local.get_item(key)
        base: dict[str, Any] = {p.value: None for p in Provider}
        if isinstance(raw, dict):
            base.update(raw)
        return base

    async def get_auth_tokens(self) -> dict[str, Optional[dict]]:
        """Return provider -> token set (None when signed out)."""
        return await self._get_provider_map(AUTH_TOKENS_KEY)

    async def get_user_info(self) -> dict[str, Optional[dict]]:
        """Return provider -> normalized profile (None when signed out)."""
        return await self._get_provider_map(USER_INFO_KEY)

    async def save_auth_tokens(
        self,
        provider: Union[Provider, str],
        tokens: Optional[Mapping[str, Any]],
        user_info: Optional[Mapping[str, Any]] = None,
    ) -> bool:
        """Store the tokens and profile for one provider, keeping the others."""
        name = provider_name(provider)
        all_tokens = await self.get_auth_tokens()
        all_info = await self.get_user_info()
        all_tokens[name] = dict(tokens) if tokens is not None else None
        all_info[name] = dict(user_info) if user_info is not None else None
        saved_tokens = await self._local.set_item(AUTH_TOKENS_KEY, all_tokens)
        saved_info = await self._local.set_item(USER_INFO_KEY, all_info)
        return saved_tokens and saved_info

    async def get_authenticated_providers(self) -> list[str]:
        tokens = await self.get_auth_tokens()
        return [name for name, value in tokens.items() if value]

    async def is_authenticated(self, provider: Union[Provider, str]) -> bool:
        tokens = await self.get_auth_tokens()
        return bool(tokens.get(provider_name(provider)))

    async def clear_provider(self, provider: Union[Provider, str]) -> bool:
        """Forget tokens, profile and sessions of a signed-out provider."""
        cleared = await self.save_auth_tokens(provider, None, None)
        emptied = await self.save_user_sessions(provider, [])
        logger.info("Cleared stored data for provider %s", provider_name(provider))
        return cleared and emptied

    # ------------------------------------------------------------------
    # Export / import
    # ------------------------------------------------------------------

    async def export_user_data(self) -> ExportBundle:
        """Snapshot every stored record.

        Records that cannot be read are left out of ``data`` and listed in
        ``skipped_keys``.
        """
        data: dict[str, Any] = {}
        skipped: list[str] = []
        for key in await self._local.get_all_keys():
            try:
                result = await self._local.read_item(key)
            except ValueError as err:
                logger.warning("Skipping key %s during export: %s", key, err)
                skipped.append(key)
                continue
            if result.readable:
                data[key] = result.value
            else:
                skipped.append(key)
        if skipped:
            logger.warning("Export skipped %d unreadable key(s): %s", len(skipped), skipped)
        return ExportBundle(
            export_date=utcnow(),
            version=self._export_version,
            data=data,
            skipped_keys=skipped,
        )

    async def import_user_data(
        self, bundle: Union[ExportBundle, Mapping[str, Any]],
    ) -> bool:
        """Write every record of an export bundle back into the store.

        Already written records are not rolled back if a later write fails.

        Returns:
            True if every record was written.

        Raises:
            MalformedImportError: If the bundle has no ``data`` mapping.
        """
        if not isinstance(bundle, ExportBundle):
            if not isinstance(bundle, Mapping) or not isinstance(bundle.get("data"), Mapping):
                raise MalformedImportError("Invalid export data: missing 'data' mapping")
            # only ``data`` matters for a restore; metadata is not validated
            try:
                bundle = ExportBundle(data=dict(bundle["data"]))
            except ValidationError as err:
                raise MalformedImportError(f"Invalid export data: {err}") from err

        ok = True
        for key, value in bundle.data.items():
            try:
                written = await self._local.set_item(key, value)
            except ValueError as err:
                logger.error("Skipping invalid key %s during import: %s", key, err)
                written = False
            ok = ok and written
        logger.info("Imported %d record(s)", len(bundle.data))
        return ok
