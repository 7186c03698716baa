"""
FastAPI application entrypoint for the OAuth session service.
"""

from __future__ import annotations

from contextlib import asynccontextmanager
from typing import AsyncIterator

from fastapi import FastAPI

from session_service.api.exception_handlers import register_exception_handlers
from session_service.api.routes import router as api_router
from session_service.core.config import get_settings
from session_service.core.logging import configure_logging
from session_service.dependencies import get_key_value_store


@asynccontextmanager
async def _lifespan(app: FastAPI) -> AsyncIterator[None]:
    yield
    # Only close a backend that was actually created during this process.
    if get_key_value_store.cache_info().currsize:
        close = getattr(get_key_value_store(), "close", None)
        if close is not None:
            await close()


def create_app() -> FastAPI:
    """Factory for the FastAPI application."""
    settings = get_settings()
    configure_logging(settings.log_level)

    app = FastAPI(
        title="OAuth Session Service",
        version="0.1.0",
        description="OAuth login and server-side session lifecycle for provider tokens.",
        lifespan=_lifespan,
    )
    register_exception_handlers(app)
    app.include_router(api_router, prefix="/api")
    return app


app = create_app()

__all__ = ["app", "create_app"]
