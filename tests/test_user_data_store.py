"""
Tests for UserDataStore typed accessors.

Tests cover:
- Session lists per provider and their defaults
- Preferences and premium status defaults and updates
- Auth token / profile bookkeeping per provider
- Export and import of the whole store
"""
from datetime import datetime, timezone

import pytest

from accountrix_store import (
    ExportBundle,
    MalformedImportError,
    PremiumStatus,
    Session,
    StoreConfig,
    UserDataStore,
    UserPreferences,
)
from accountrix_store.vault import LocalStore, MemoryBackend

TEAMS_SESSION = {
    "id": "s1",
    "name": "Teams",
    "lastActive": "2024-01-01T00:00:00Z",
    "device": "PC",
    "platform": "Desktop",
    "icon": "message-square",
    "canRevoke": True,
}


@pytest.fixture
def secure():
    return MemoryBackend()


@pytest.fixture
def local(tmp_path, secure):
    return LocalStore(tmp_path / "data", secure)


@pytest.fixture
def store(local):
    """Create a fresh UserDataStore."""
    return UserDataStore(local)


class TestSessions:
    """Tests for per-provider session lists."""

    @pytest.mark.asyncio
    async def test_fresh_store_returns_empty_list(self, store):
        """Test an unknown provider record reads as an empty list."""
        assert await store.get_user_sessions("google") == []

    @pytest.mark.asyncio
    async def test_save_and_get(self, store):
        assert await store.save_user_sessions("microsoft", [TEAMS_SESSION]) is True
        sessions = await store.get_user_sessions("microsoft")
        assert len(sessions) == 1
        assert sessions[0].id == "s1"
        assert sessions[0].can_revoke is True
        assert sessions[0].last_active == datetime(2024, 1, 1, tzinfo=timezone.utc)

    @pytest.mark.asyncio
    async def test_record_layout(self, store, local):
        """Test the stored record uses the on-device camelCase layout."""
        await store.save_user_sessions("microsoft", [TEAMS_SESSION])
        raw = await local.get_item("sessions_microsoft")
        assert raw["provider"] == "microsoft"
        assert raw["sessionCount"] == 1
        assert "lastUpdated" in raw
        assert raw["sessions"][0]["lastActive"] == "2024-01-01T00:00:00Z"
        assert raw["sessions"][0]["canRevoke"] is True

    @pytest.mark.asyncio
    async def test_extra_fields_preserved(self, store):
        """Test provider-specific fields survive a save/load cycle."""
        await store.save_user_sessions("google", [{**TEAMS_SESSION, "browser": "Chrome"}])
        session = (await store.get_user_sessions("google"))[0]
        assert session.model_extra["browser"] == "Chrome"

    @pytest.mark.asyncio
    async def test_overwrite_is_wholesale(self, store):
        await store.save_user_sessions("google", [TEAMS_SESSION, {**TEAMS_SESSION, "id": "s2"}])
        await store.save_user_sessions("google", [{**TEAMS_SESSION, "id": "s3"}])
        assert [s.id for s in await store.get_user_sessions("google")] == ["s3"]

    @pytest.mark.asyncio
    async def test_accepts_session_models(self, store):
        session = Session.model_validate(TEAMS_SESSION)
        await store.save_user_sessions("apple", [session])
        assert (await store.get_user_sessions("apple"))[0].name == "Teams"

    @pytest.mark.asyncio
    async def test_unknown_provider(self, store):
        with pytest.raises(ValueError):
            await store.get_user_sessions("yahoo")

    @pytest.mark.asyncio
    async def test_corrupted_record_reads_as_empty(self, store, secure, local):
        """Test an unreadable session record falls back to the default."""
        await store.save_user_sessions("google", [TEAMS_SESSION])
        await secure.set_item("sessions_google", "garbage")
        assert await store.get_user_sessions("google") == []

    @pytest.mark.asyncio
    async def test_schema_mismatch_reads_as_empty(self, store, local):
        await local.set_item("sessions_google", {"unexpected": True})
        assert await store.get_user_sessions("google") == []


class TestPreferences:
    """Tests for user preferences."""

    @pytest.mark.asyncio
    async def test_defaults(self, store):
        prefs = await store.get_user_preferences()
        assert prefs == UserPreferences()
        assert prefs.theme == "light"
        assert prefs.notifications is True
        assert prefs.auto_cleanup is False
        assert prefs.export_format == "json"
        assert prefs.last_cleanup is None

    @pytest.mark.asyncio
    async def test_save_and_get(self, store):
        await store.save_user_preferences({"theme": "dark", "autoCleanup": True})
        prefs = await store.get_user_preferences()
        assert prefs.theme == "dark"
        assert prefs.auto_cleanup is True

    @pytest.mark.asyncio
    async def test_update_merges(self, store):
        """Test updating one field keeps the others."""
        await store.save_user_preferences(UserPreferences(notifications=False))
        updated = await store.update_user_preferences(theme="system")
        assert updated.theme == "system"
        assert updated.notifications is False
        assert (await store.get_user_preferences()).theme == "system"


class TestPremiumStatus:
    """Tests for premium entitlement state."""

    @pytest.mark.asyncio
    async def test_default_is_free(self, store):
        status = await store.get_premium_status()
        assert status.is_premium is False
        assert status.plan == "free"
        assert status.expires_at is None
        assert status.features == []

    @pytest.mark.asyncio
    async def test_save_stamps_last_updated(self, store, local):
        expires = datetime(2030, 1, 1, tzinfo=timezone.utc)
        await store.save_premium_status(PremiumStatus.for_plan("lite", expires))
        status = await store.get_premium_status()
        assert status.is_premium is True
        assert status.plan == "lite"
        assert status.expires_at == expires
        assert status.last_updated is not None
        assert status.has_feature("one_click_logout")
        raw = await local.get_item("premium_status")
        assert raw["isPremium"] is True

    @pytest.mark.asyncio
    async def test_invalid_plan_rejected(self, store):
        with pytest.raises(ValueError):
            await store.save_premium_status({"isPremium": True, "plan": "gold"})


class TestAuthRecords:
    """Tests for per-provider tokens and profiles."""

    @pytest.mark.asyncio
    async def test_defaults(self, store):
        assert await store.get_auth_tokens() == {"google": None, "microsoft": None, "apple": None}
        assert await store.get_authenticated_providers() == []

    @pytest.mark.asyncio
    async def test_save_keeps_other_providers(self, store):
        await store.save_auth_tokens("google", {"accessToken": "g"}, {"email": "g@x.com"})
        await store.save_auth_tokens("microsoft", {"accessToken": "m"}, {"email": "m@x.com"})
        tokens = await store.get_auth_tokens()
        assert tokens["google"] == {"accessToken": "g"}
        assert tokens["microsoft"] == {"accessToken": "m"}
        assert (await store.get_user_info())["google"] == {"email": "g@x.com"}
        assert await store.get_authenticated_providers() == ["google", "microsoft"]
        assert await store.is_authenticated("google") is True
        assert await store.is_authenticated("apple") is False

    @pytest.mark.asyncio
    async def test_clear_provider(self, store):
        await store.save_auth_tokens("google", {"accessToken": "g"}, {"email": "g@x.com"})
        await store.save_user_sessions("google", [TEAMS_SESSION])
        assert await store.clear_provider("google") is True
        assert (await store.get_auth_tokens())["google"] is None
        assert (await store.get_user_info())["google"] is None
        assert await store.get_user_sessions("google") == []


class TestExportImport:
    """Tests for exporting and importing the whole store."""

    @pytest.mark.asyncio
    async def test_export_three_keys(self, store, local):
        await local.set_item("auth_tokens", {"google": {"accessToken": "g"}})
        await local.set_item("user_info", {"google": {"name": "Ada"}})
        await local.set_item("custom", [1, 2, 3])
        bundle = await store.export_user_data()
        assert bundle.data == {
            "auth_tokens": {"google": {"accessToken": "g"}},
            "user_info": {"google": {"name": "Ada"}},
            "custom": [1, 2, 3],
        }
        assert bundle.version == "1.0.0"
        assert bundle.export_date is not None
        assert bundle.complete is True

    @pytest.mark.asyncio
    async def test_import_into_cleared_store(self, store, local):
        """Test a bundle restores every key identically."""
        await local.set_item("a", {"x": 1})
        await local.set_item("b", [True, None])
        await local.set_item("c", "text")
        bundle = await store.export_user_data()
        await local.clear()
        assert await local.get_all_keys() == []
        assert await store.import_user_data(bundle) is True
        assert await local.get_all_keys() == ["a", "b", "c"]
        assert await local.get_item("a") == {"x": 1}
        assert await local.get_item("b") == [True, None]
        assert await local.get_item("c") == "text"

    @pytest.mark.asyncio
    async def test_import_serialized_bundle(self, store, local):
        """Test a bundle in its JSON form (camelCase) can be imported."""
        await local.set_item("a", {"x": 1})
        raw = (await store.export_user_data()).to_record()
        assert "exportDate" in raw
        await local.clear()
        assert await store.import_user_data(raw) is True
        assert await local.get_item("a") == {"x": 1}

    @pytest.mark.asyncio
    async def test_export_skips_corrupted_keys(self, store, local, secure):
        """Test an unreadable key is omitted and reported."""
        await local.set_item("good", 1)
        await local.set_item("bad", 2)
        await secure.set_item("bad", "garbage")
        bundle = await store.export_user_data()
        assert bundle.data == {"good": 1}
        assert bundle.skipped_keys == ["bad"]
        assert bundle.complete is False

    @pytest.mark.asyncio
    @pytest.mark.parametrize("bundle", [None, {}, {"data": None}, {"data": [1, 2]}, "data"])
    async def test_malformed_import(self, store, local, bundle):
        """Test a bundle without a data mapping writes nothing."""
        with pytest.raises(MalformedImportError):
            await store.import_user_data(bundle)
        assert await local.get_all_keys() == []

    @pytest.mark.asyncio
    async def test_import_ignores_bundle_metadata(self, store, local):
        """Test unusual exportDate/version values do not block a restore."""
        bundle = {"exportDate": "yesterday", "version": 3, "data": {"a": 1}}
        assert await store.import_user_data(bundle) is True
        assert await local.get_item("a") == 1

    @pytest.mark.asyncio
    async def test_undecodable_session_file(self, store, secure, local):
        """Test a session record file that is not valid UTF-8 reads as empty."""
        await store.save_user_sessions("google", [TEAMS_SESSION])
        await secure.remove_item("sessions_google")
        path = local.get_storage_path() / "sessions_google.json"
        path.write_bytes(b"\xff\xfe\x00garbage")
        assert await store.get_user_sessions("google") == []
        bundle = await store.export_user_data()
        assert bundle.skipped_keys == ["sessions_google"]

    @pytest.mark.asyncio
    async def test_import_reports_invalid_keys(self, store, local):
        bundle = ExportBundle(data={"ok": 1, "../bad": 2})
        assert await store.import_user_data(bundle) is False
        assert await local.get_item("ok") == 1


class TestFromConfig:

    @pytest.mark.asyncio
    async def test_from_config(self, tmp_path):
        config = StoreConfig(data_dir=tmp_path / "d", export_version="2.0.0")
        store = UserDataStore.from_config(config, secure=MemoryBackend())
        await store.init()
        assert store.local.get_storage_path() == tmp_path / "d"
        assert (await store.export_user_data()).version == "2.0.0"
