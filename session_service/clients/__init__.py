"""Expose constructed client wrappers."""

from .dynamodb_store import DynamoDBStore
from .kv_store import KeyValueStore, LocalStore, StoreUnavailableError
from .redis_store import RedisStore
from .token_provider import (
    OAuthStateEncoder,
    OAuthStateError,
    OAuthTokenProviderClient,
    ProviderNetworkError,
    ProviderRejectedError,
    TokenBundle,
)

__all__ = [
    "DynamoDBStore",
    "KeyValueStore",
    "LocalStore",
    "OAuthStateEncoder",
    "OAuthStateError",
    "OAuthTokenProviderClient",
    "ProviderNetworkError",
    "ProviderRejectedError",
    "RedisStore",
    "StoreUnavailableError",
    "TokenBundle",
]
