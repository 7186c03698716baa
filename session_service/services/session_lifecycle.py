"""
Session lifecycle orchestration.

The coordinator is the only component that decides a session is dead. Lower
layers report what they observed (absent record, rejected grant, unreachable
endpoint or store) and the coordinator turns that into one of three outcomes
for the caller: a usable access token, :class:`SessionUnauthorizedError`, or
:class:`SessionTransientError`.
"""

from __future__ import annotations

import asyncio
import logging
import weakref
from dataclasses import replace
from typing import Optional

from session_service.clients.kv_store import StoreUnavailableError
from session_service.clients.token_provider import (
    OAuthTokenProviderClient,
    ProviderNetworkError,
    ProviderRejectedError,
)
from session_service.core.logging import mask_session_id
from session_service.models.session import OAuthSession
from session_service.services.session_store import SessionStore

logger = logging.getLogger(__name__)


class SessionUnauthorizedError(Exception):
    """The session is gone for good; the user has to sign in again."""


class SessionTransientError(Exception):
    """The session could not be resolved right now; retrying later may work."""


class SessionLifecycleCoordinator:
    """Resolve access tokens for session ids, refreshing or killing as needed."""

    def __init__(
        self,
        session_store: SessionStore,
        token_provider: OAuthTokenProviderClient,
    ) -> None:
        self._store = session_store
        self._provider = token_provider
        self._refresh_locks: "weakref.WeakValueDictionary[str, asyncio.Lock]" = (
            weakref.WeakValueDictionary()
        )

    async def open_session(self, session_id: str, code: str) -> None:
        """Exchange an authorization code and persist the resulting session."""
        try:
            bundle = await self._provider.exchange_code(code)
        except ProviderRejectedError as exc:
            raise SessionUnauthorizedError("Authorization code was rejected.") from exc
        except ProviderNetworkError as exc:
            raise SessionTransientError("Token endpoint unavailable.") from exc

        try:
            await self._store.persist(session_id, bundle)
        except StoreUnavailableError as exc:
            raise SessionTransientError("Session store unavailable.") from exc

    async def close_session(self, session_id: str) -> None:
        await self._store.kill(session_id)

    async def resolve_access_token(self, session_id: str) -> str:
        """Return an access token that is valid for at least the validation buffer.

        Raises:
            SessionUnauthorizedError: no session, or the provider refused to
                renew it. The session has been removed.
            SessionTransientError: the provider or the store could not be
                reached. The session is left untouched.
        """
        session = await self._validate(session_id)
        if session is not None:
            return session.access_token

        lock = self._refresh_locks.get(session_id)
        if lock is None:
            lock = asyncio.Lock()
            self._refresh_locks[session_id] = lock

        async with lock:
            # A refresh may have completed between our read and the lock.
            session = await self._validate(session_id)
            if session is not None:
                return session.access_token
            return await self._refresh(session_id)

    async def _validate(self, session_id: str) -> Optional[OAuthSession]:
        try:
            return await self._store.validate(session_id)
        except StoreUnavailableError as exc:
            raise SessionTransientError("Session store unavailable.") from exc

    async def _refresh(self, session_id: str) -> str:
        masked = mask_session_id(session_id)
        try:
            refresh_token = await self._store.read_refresh_token(session_id)
        except StoreUnavailableError as exc:
            raise SessionTransientError("Session store unavailable.") from exc

        if not refresh_token:
            logger.info("No refresh token found for session %s", masked)
            await self._store.kill(session_id)
            raise SessionUnauthorizedError("No active session.")

        logger.info("Attempting to refresh token for session %s", masked)
        try:
            bundle = await self._provider.refresh(refresh_token)
        except ProviderRejectedError as exc:
            logger.warning(
                "Refresh rejected for session %s (%s); killing session",
                masked,
                exc.status_code,
            )
            await self._store.kill(session_id)
            raise SessionUnauthorizedError("Refresh token rejected.") from exc
        except ProviderNetworkError as exc:
            raise SessionTransientError("Token endpoint unavailable.") from exc

        if not bundle.refresh_token:
            bundle = replace(bundle, refresh_token=refresh_token)

        try:
            session = await self._store.persist(session_id, bundle)
        except StoreUnavailableError as exc:
            logger.error("Refreshed session %s could not be persisted", masked)
            raise SessionTransientError("Session store unavailable.") from exc

        logger.info("Session %s token refreshed successfully", masked)
        return session.access_token


__all__ = [
    "SessionLifecycleCoordinator",
    "SessionTransientError",
    "SessionUnauthorizedError",
]
