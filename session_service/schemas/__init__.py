"""Public schema exports."""

from .auth import OAuthCallbackPayload

__all__ = ["OAuthCallbackPayload"]
