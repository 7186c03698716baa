"""Key-value storage contract shared by every session backend."""

from __future__ import annotations

import time
from dataclasses import dataclass
from typing import Callable, Dict, Optional, Protocol, runtime_checkable


class StoreUnavailableError(Exception):
    """Raised when the backing store cannot be reached or rejects an operation."""


@runtime_checkable
class KeyValueStore(Protocol):
    """Minimal byte-oriented store with optional per-key expiry in seconds."""

    async def get(self, key: str) -> Optional[bytes]:
        ...

    async def set(self, key: str, value: bytes, ttl_seconds: Optional[int] = None) -> None:
        ...

    async def delete(self, key: str) -> None:
        ...


@dataclass(slots=True)
class _LocalEntry:
    value: bytes
    expires_at: Optional[float]


class LocalStore:
    """In-process store used when no external backend is configured.

    Entries live exactly as long as this instance; nothing is shared through
    module state, so two ``LocalStore`` objects never see each other's keys.
    """

    def __init__(self, clock: Callable[[], float] = time.monotonic) -> None:
        self._clock = clock
        self._entries: Dict[str, _LocalEntry] = {}

    async def get(self, key: str) -> Optional[bytes]:
        entry = self._entries.get(key)
        if entry is None:
            return None
        if entry.expires_at is not None and entry.expires_at <= self._clock():
            self._entries.pop(key, None)
            return None
        return entry.value

    async def set(self, key: str, value: bytes, ttl_seconds: Optional[int] = None) -> None:
        if ttl_seconds is not None and ttl_seconds <= 0:
            raise ValueError("ttl_seconds must be positive when provided")
        expires_at = self._clock() + ttl_seconds if ttl_seconds is not None else None
        self._entries[key] = _LocalEntry(value=bytes(value), expires_at=expires_at)

    async def delete(self, key: str) -> None:
        self._entries.pop(key, None)

    def __len__(self) -> int:
        return len(self._entries)


__all__ = ["KeyValueStore", "LocalStore", "StoreUnavailableError"]
