"""
Session Sync — Keeps stored session lists in step with the providers.

The remote side is an injected ``RemoteSessionProvider``; this module only
decides when to call it and persists what it returns.
"""
import asyncio
import logging
from collections.abc import Mapping
from typing import Any, Optional, Protocol, Union, runtime_checkable

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel

from .data import Provider, Session, provider_name
from .store import SessionLike, UserDataStore

logger = logging.getLogger("accountrix.store")


class RevokeResult(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    success: bool
    session_id: Optional[str] = None
    error: Optional[str] = None


@runtime_checkable
class RemoteSessionProvider(Protocol):
    """Fetches and revokes sessions at the identity providers."""

    async def get_user_sessions(self, provider: str, token: str) -> list[SessionLike]:
        ...

    async def revoke_session(
        self, provider: str, token: str, session_id: str,
    ) -> Union[RevokeResult, dict[str, Any]]:
        ...


class SessionSync:
    """Refreshes and revokes sessions using the stored access tokens."""

    def __init__(self, store: UserDataStore, remote: RemoteSessionProvider):
        self._store = store
        self._remote = remote

    async def _access_token(self, provider: str) -> Optional[str]:
        tokens = (await self._store.get_auth_tokens()).get(provider)
        if not isinstance(tokens, Mapping):
            if tokens:
                logger.warning("Stored tokens for %s are not a token set", provider)
            return None
        return tokens.get("accessToken") or tokens.get("access_token")

    async def refresh_sessions(self, provider: Union[Provider, str]) -> list[Session]:
        """Fetch the current sessions for ``provider`` and store them.

        Returns an empty list when the provider is not signed in or the
        fetch fails; the previously stored list is kept in that case.
        """
        name = provider_name(provider)
        token = await self._access_token(name)
        if not token:
            return []
        try:
            fetched = await self._remote.get_user_sessions(name, token)
            sessions = [
                s if isinstance(s, Session) else Session.model_validate(s)
                for s in fetched
            ]
        except Exception as err:
            logger.error("Failed to refresh sessions for %s: %s", name, err)
            return []
        await self._store.save_user_sessions(name, sessions)
        logger.debug("Stored %d session(s) for %s", len(sessions), name)
        return sessions

    async def refresh_all_sessions(self) -> dict[str, list[Session]]:
        """Refresh every signed-in provider concurrently."""
        providers = await self._store.get_authenticated_providers()
        results = await asyncio.gather(
            *(self.refresh_sessions(p) for p in providers)
        )
        return dict(zip(providers, results))

    async def revoke_session(
        self, provider: Union[Provider, str], session_id: str,
    ) -> RevokeResult:
        """Revoke one session remotely, then refresh the stored list."""
        name = provider_name(provider)
        token = await self._access_token(name)
        if not token:
            return RevokeResult(
                success=False,
                session_id=session_id,
                error="No authentication tokens found",
            )
        try:
            raw = await self._remote.revoke_session(name, token, session_id)
            result = raw if isinstance(raw, RevokeResult) else RevokeResult.model_validate(raw)
        except Exception as err:
            logger.error("Failed to revoke session for %s: %s", name, err)
            return RevokeResult(success=False, session_id=session_id, error=str(err))

        if result.success:
            await self.refresh_sessions(name)
        return result

    async def get_total_sessions(self) -> int:
        total = 0
        for p in Provider:
            total += len(await self._store.get_user_sessions(p))
        return total
