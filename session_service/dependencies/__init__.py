"""Expose dependency helpers for FastAPI routers."""

from .clients import (
    build_key_value_store,
    get_key_value_store,
    get_oauth_state_encoder,
    get_session_coordinator,
    get_session_store,
    get_token_cipher_service,
    get_token_provider,
)
from .config import get_app_settings

__all__ = [
    "build_key_value_store",
    "get_app_settings",
    "get_key_value_store",
    "get_oauth_state_encoder",
    "get_session_coordinator",
    "get_session_store",
    "get_token_cipher_service",
    "get_token_provider",
]
