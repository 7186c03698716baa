"""Service layer exports."""

from .session_lifecycle import (
    SessionLifecycleCoordinator,
    SessionTransientError,
    SessionUnauthorizedError,
)
from .session_store import SessionStore, new_session_id
from .token_cipher import TokenCipherService

__all__ = [
    "SessionLifecycleCoordinator",
    "SessionStore",
    "SessionTransientError",
    "SessionUnauthorizedError",
    "TokenCipherService",
    "new_session_id",
]
