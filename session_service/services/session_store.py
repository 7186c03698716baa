"""
Persistence, expiry and validation of OAuth sessions.

Each session occupies two keys in the key-value store:

* ``<prefix><id>`` holds the full, encrypted session record. Its store TTL is
  the provider lifetime minus a safety margin, but validity is decided by the
  ``expires_at`` timestamp inside the record, never by the store TTL.
* ``<prefix><id>:refresh`` holds only the encrypted refresh token with a much
  longer TTL, so an expired session can still be renewed after its record is
  gone.
"""

from __future__ import annotations

import logging
import secrets
from datetime import datetime, timezone
from typing import Callable, Optional

from pydantic import ValidationError

from session_service.clients.kv_store import KeyValueStore, StoreUnavailableError
from session_service.clients.token_provider import TokenBundle
from session_service.core.config import SessionSettings
from session_service.core.logging import mask_session_id
from session_service.models.session import OAuthSession
from session_service.services.token_cipher import TokenCipherService

logger = logging.getLogger(__name__)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def new_session_id() -> str:
    """Mint an unguessable session identifier (256 bits of entropy)."""
    return secrets.token_urlsafe(32)


class SessionStore:
    """Owns the stored session format and the buffered-expiry rule."""

    def __init__(
        self,
        kv_store: KeyValueStore,
        token_cipher: TokenCipherService,
        settings: SessionSettings,
        *,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        self._kv = kv_store
        self._cipher = token_cipher
        self._settings = settings
        self._clock = clock

    def _now_ms(self) -> int:
        return int(self._clock().timestamp() * 1000)

    def _session_key(self, session_id: str) -> str:
        return f"{self._settings.key_prefix}{session_id}"

    def _refresh_key(self, session_id: str) -> str:
        return f"{self._settings.key_prefix}{session_id}:refresh"

    async def persist(self, session_id: str, bundle: TokenBundle) -> OAuthSession:
        """Write (or fully replace) the session record for ``session_id``."""
        if not bundle.refresh_token:
            raise ValueError("A refresh token is required to persist a session.")

        session = OAuthSession(
            access_token=bundle.access_token,
            refresh_token=bundle.refresh_token,
            issued_duration_seconds=bundle.issued_duration_seconds,
            expires_at_epoch_ms=self._now_ms() + bundle.issued_duration_seconds * 1000,
        )
        record = self._cipher.seal(session.model_dump_json(by_alias=True))

        store_ttl = bundle.issued_duration_seconds - self._settings.ttl_margin_seconds
        logger.info("Persisting session %s", mask_session_id(session_id))
        # Refresh key first: a failed record write must not strand a rotated token.
        await self._kv.set(
            self._refresh_key(session_id),
            self._cipher.seal(bundle.refresh_token),
            ttl_seconds=self._settings.refresh_ttl_seconds or None,
        )
        await self._kv.set(
            self._session_key(session_id),
            record,
            ttl_seconds=store_ttl if store_ttl > 0 else None,
        )
        return session

    async def validate(self, session_id: str) -> Optional[OAuthSession]:
        """Return the live session, or ``None`` when missing, corrupt or expiring.

        Corrupt records are removed entirely. Records inside the validation
        buffer lose their session key but keep the refresh key.

        Raises:
            StoreUnavailableError: the store could not be read.
        """
        raw = await self._kv.get(self._session_key(session_id))
        if raw is None:
            return None

        try:
            session = OAuthSession.model_validate_json(self._cipher.unseal(raw))
        except (ValueError, ValidationError) as exc:
            logger.error(
                "Discarding unreadable session %s: %s", mask_session_id(session_id), exc
            )
            await self.kill(session_id)
            return None

        buffer_ms = self._settings.validation_buffer_seconds * 1000
        if session.expires_at_epoch_ms <= self._now_ms() + buffer_ms:
            logger.info(
                "Session %s has expired based on internal timestamp",
                mask_session_id(session_id),
            )
            await self._discard(self._session_key(session_id), session_id)
            return None

        return session

    async def read_refresh_token(self, session_id: str) -> Optional[str]:
        """Return the stored refresh token without applying any expiry check.

        Raises:
            StoreUnavailableError: the store could not be read.
        """
        raw = await self._kv.get(self._refresh_key(session_id))
        if raw is None:
            return None
        try:
            return self._cipher.unseal(raw) or None
        except ValueError as exc:
            logger.error(
                "Discarding unreadable refresh token for %s: %s",
                mask_session_id(session_id),
                exc,
            )
            await self.kill(session_id)
            return None

    async def kill(self, session_id: str) -> None:
        """Remove every key of the session. Never raises."""
        logger.info("Killing session %s", mask_session_id(session_id))
        await self._discard(self._session_key(session_id), session_id)
        await self._discard(self._refresh_key(session_id), session_id)

    async def _discard(self, key: str, session_id: str) -> None:
        try:
            await self._kv.delete(key)
        except StoreUnavailableError as exc:
            logger.error(
                "Error deleting session %s from store: %s", mask_session_id(session_id), exc
            )


__all__ = ["SessionStore", "new_session_id"]
