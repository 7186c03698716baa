"""
Factory functions to provide shared clients and services as FastAPI dependencies.
"""

from functools import lru_cache
from urllib.parse import parse_qs, urlparse

from session_service.clients import (
    DynamoDBStore,
    KeyValueStore,
    LocalStore,
    OAuthStateEncoder,
    OAuthTokenProviderClient,
    RedisStore,
)
from session_service.core.config import MisconfiguredError, SessionSettings, get_settings
from session_service.services import (
    SessionLifecycleCoordinator,
    SessionStore,
    TokenCipherService,
)


@lru_cache()
def _settings():
    """Internal helper to cache settings for client factories."""
    return get_settings()


def build_key_value_store(settings: SessionSettings) -> KeyValueStore:
    """Pick the session backend once, from ``SESSION_STORE_URL``."""
    url = settings.store_url
    if not url:
        return LocalStore()

    parsed = urlparse(url)
    if parsed.scheme in ("redis", "rediss"):
        return RedisStore.from_url(url)
    if parsed.scheme == "dynamodb":
        table_name = parsed.netloc or parsed.path.lstrip("/")
        if not table_name:
            raise MisconfiguredError("SESSION_STORE_URL must name a DynamoDB table.")
        region = parse_qs(parsed.query).get("region", ["us-east-1"])[0]
        return DynamoDBStore.from_table_name(table_name, region_name=region)
    raise MisconfiguredError(
        f"Unsupported SESSION_STORE_URL scheme {parsed.scheme!r}; "
        "expected redis://, rediss:// or dynamodb://."
    )


@lru_cache()
def get_key_value_store() -> KeyValueStore:
    """Provide the process-wide session backend."""
    return build_key_value_store(_settings().session)


@lru_cache()
def get_oauth_state_encoder() -> OAuthStateEncoder:
    """Provide an OAuth state encoder derived from the client secret."""
    settings = _settings()
    return OAuthStateEncoder(secret_key=settings.oauth.client_secret)


@lru_cache()
def get_token_provider() -> OAuthTokenProviderClient:
    """Create a singleton OAuth token endpoint client."""
    return OAuthTokenProviderClient(_settings().oauth)


@lru_cache()
def get_token_cipher_service() -> TokenCipherService:
    """Provide symmetric encryption helper for token storage."""
    settings = _settings()
    secret = settings.security.token_encryption_secret or settings.oauth.client_secret
    return TokenCipherService(secret=secret)


@lru_cache()
def get_session_store() -> SessionStore:
    """Provide the session store bound to the configured backend."""
    return SessionStore(
        kv_store=get_key_value_store(),
        token_cipher=get_token_cipher_service(),
        settings=_settings().session,
    )


@lru_cache()
def get_session_coordinator() -> SessionLifecycleCoordinator:
    """Provide the session lifecycle coordinator."""
    return SessionLifecycleCoordinator(
        session_store=get_session_store(),
        token_provider=get_token_provider(),
    )


__all__ = [
    "build_key_value_store",
    "get_key_value_store",
    "get_oauth_state_encoder",
    "get_session_coordinator",
    "get_session_store",
    "get_token_cipher_service",
    "get_token_provider",
]
