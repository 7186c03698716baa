"""
Domain model for the persisted OAuth session.
"""

from pydantic import BaseModel, ConfigDict, Field


class OAuthSession(BaseModel):
    """Provider tokens held server-side behind an opaque session id.

    Serialized by alias so stored records keep the provider's field names.
    """

    model_config = ConfigDict(populate_by_name=True, frozen=True)

    access_token: str = Field(..., min_length=1)
    refresh_token: str = Field(..., min_length=1)
    issued_duration_seconds: int = Field(..., alias="expires_in", gt=0)
    expires_at_epoch_ms: int = Field(..., alias="expires_at")


__all__ = ["OAuthSession"]
