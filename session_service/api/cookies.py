"""Helpers for the HTTP-only cookie that carries the session id."""

from __future__ import annotations

from fastapi import Response

from session_service.core.config import AppSettings


def set_session_cookie(response: Response, session_id: str, settings: AppSettings) -> None:
    """Attach the session id; the cookie lives as long as the refresh token is kept."""
    response.set_cookie(
        key=settings.session.cookie_name,
        value=session_id,
        max_age=settings.session.refresh_ttl_seconds or None,
        path="/",
        httponly=True,
        secure=settings.is_production,
        samesite="lax",
    )


def clear_session_cookie(response: Response, settings: AppSettings) -> None:
    response.delete_cookie(
        key=settings.session.cookie_name,
        path="/",
        httponly=True,
        secure=settings.is_production,
        samesite="lax",
    )


__all__ = ["clear_session_cookie", "set_session_cookie"]
