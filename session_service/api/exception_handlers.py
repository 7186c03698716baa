"""Global exception handlers mapping session outcomes to HTTP responses."""

import logging

from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse

from session_service.api.cookies import clear_session_cookie
from session_service.dependencies import get_app_settings
from session_service.services import SessionTransientError, SessionUnauthorizedError

logger = logging.getLogger(__name__)


async def session_unauthorized_handler(
    request: Request, exc: SessionUnauthorizedError
) -> JSONResponse:
    """Any unauthorized outcome drops the session cookie on the way out."""
    response = JSONResponse(
        status_code=status.HTTP_401_UNAUTHORIZED,
        content={"detail": str(exc) or "Authentication required."},
    )
    settings_factory = request.app.dependency_overrides.get(
        get_app_settings, get_app_settings
    )
    clear_session_cookie(response, settings_factory())
    return response


async def session_transient_handler(
    request: Request, exc: SessionTransientError
) -> JSONResponse:
    logger.warning("Transient session failure on %s: %s", request.url.path, exc)
    return JSONResponse(
        status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
        content={"detail": "Session service temporarily unavailable. Please retry."},
        headers={"Retry-After": "5"},
    )


def register_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(SessionUnauthorizedError, session_unauthorized_handler)
    app.add_exception_handler(SessionTransientError, session_transient_handler)


__all__ = ["register_exception_handlers"]
