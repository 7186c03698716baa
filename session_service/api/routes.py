"""
FastAPI routes for the OAuth login flow and session status.

These handlers are the only code that touches the session cookie; everything
behind them works with the bare session id.
"""

from __future__ import annotations

import logging
import uuid
from datetime import datetime, timedelta, timezone
from http import HTTPStatus
from typing import Annotated, Any, Dict, Optional, Tuple
from urllib.parse import urljoin, urlsplit

from fastapi import APIRouter, Depends, HTTPException, Query, Request, Response
from fastapi.responses import JSONResponse, RedirectResponse

from session_service.api.cookies import clear_session_cookie, set_session_cookie
from session_service.clients.token_provider import OAuthStateError
from session_service.dependencies import (
    get_app_settings,
    get_oauth_state_encoder,
    get_session_coordinator,
    get_token_provider,
)
from session_service.schemas import OAuthCallbackPayload
from session_service.services import SessionUnauthorizedError, new_session_id

router = APIRouter()
logger = logging.getLogger(__name__)


def _wants_html(request: Request) -> bool:
    return "text/html" in request.headers.get("accept", "").lower()


def _with_error(url: str, error: str) -> str:
    separator = "&" if "?" in url else "?"
    return f"{url}{separator}error={error}"


def _safe_redirect(target: Optional[str], frontend: Optional[str]) -> Optional[str]:
    """Return ``target`` only when it stays on the front-end origin."""
    if not target:
        return None
    parsed = urlsplit(target)
    if not parsed.scheme and not parsed.netloc:
        # Browsers treat "/\host" like "//host".
        if not target.startswith("/") or target[1:2] in ("/", "\\"):
            return None
        return urljoin(frontend, target) if frontend else target
    if not frontend:
        return None
    base = urlsplit(frontend)
    if (parsed.scheme, parsed.netloc) == (base.scheme, base.netloc):
        return target
    return None


@router.get("/health", status_code=HTTPStatus.OK)
async def healthcheck() -> dict:
    """Simple health endpoint for monitoring."""
    return {"status": "ok"}


@router.get("/auth/login", status_code=HTTPStatus.OK)
async def start_oauth_flow(
    request: Request,
    oauth_client: Annotated[Any, Depends(get_token_provider)],
    state_encoder: Annotated[Any, Depends(get_oauth_state_encoder)],
    redirect_to: str | None = Query(
        default=None,
        description="Optional URL to redirect back to on successful authentication.",
    ),
    redirect: bool = Query(
        default=False,
        description="When true, respond with a redirect to the provider consent screen.",
    ),
) -> Any:
    """
    Kick off the OAuth flow by generating a signed state token and authorization URL.
    """
    state_payload = {
        "nonce": uuid.uuid4().hex,
        "redirect_to": redirect_to,
        "issued_at": datetime.now(timezone.utc).isoformat(),
    }
    state = state_encoder.encode(state_payload)
    authorization_url = oauth_client.build_authorization_url(state=state)

    if redirect or _wants_html(request):
        return RedirectResponse(url=authorization_url, status_code=HTTPStatus.TEMPORARY_REDIRECT)

    return {"authorization_url": authorization_url, "state": state}


async def _complete_login(
    payload: OAuthCallbackPayload,
    coordinator: Any,
    state_encoder: Any,
    settings: Any,
) -> Tuple[str, Dict[str, Any]]:
    """Verify the state, exchange the code and mint a fresh session id."""
    try:
        state_data = state_encoder.decode(payload.state)
    except OAuthStateError as exc:
        raise HTTPException(status_code=HTTPStatus.BAD_REQUEST, detail=str(exc)) from exc

    issued_at_raw = state_data.get("issued_at")
    if not issued_at_raw:
        raise HTTPException(
            status_code=HTTPStatus.BAD_REQUEST,
            detail="Missing issued_at in state token.",
        )

    try:
        issued_at = datetime.fromisoformat(issued_at_raw)
    except ValueError as exc:
        raise HTTPException(
            status_code=HTTPStatus.BAD_REQUEST,
            detail="Invalid issued_at in state token.",
        ) from exc

    if issued_at.tzinfo is None:
        issued_at = issued_at.replace(tzinfo=timezone.utc)

    now = datetime.now(timezone.utc)
    if now - issued_at > timedelta(seconds=settings.oauth.state_ttl_seconds):
        raise HTTPException(
            status_code=HTTPStatus.BAD_REQUEST, detail="OAuth state token has expired."
        )

    session_id = new_session_id()
    await coordinator.open_session(session_id, payload.code)

    frontend = str(settings.frontend_base_url) if settings.frontend_base_url else None
    return session_id, {
        "status": "connected",
        "redirect_to": _safe_redirect(state_data.get("redirect_to"), frontend),
    }


@router.post("/auth/callback", status_code=HTTPStatus.OK)
async def handle_oauth_callback(
    payload: OAuthCallbackPayload,
    coordinator: Annotated[Any, Depends(get_session_coordinator)],
    state_encoder: Annotated[Any, Depends(get_oauth_state_encoder)],
    settings: Annotated[Any, Depends(get_app_settings)],
) -> JSONResponse:
    """Complete the OAuth exchange, open a session and set the session cookie."""
    session_id, result = await _complete_login(payload, coordinator, state_encoder, settings)
    response = JSONResponse(content=result)
    set_session_cookie(response, session_id, settings)
    return response


@router.get("/auth/callback", status_code=HTTPStatus.OK)
async def handle_oauth_callback_get(
    request: Request,
    coordinator: Annotated[Any, Depends(get_session_coordinator)],
    state_encoder: Annotated[Any, Depends(get_oauth_state_encoder)],
    settings: Annotated[Any, Depends(get_app_settings)],
    code: Optional[str] = Query(default=None, description="Authorization code."),
    state: Optional[str] = Query(default=None, description="OAuth state token."),
    error: Optional[str] = Query(default=None, description="Provider error, if any."),
    redirect: bool = Query(
        default=False,
        description="When true, redirect browser clients instead of returning JSON.",
    ),
) -> Response:
    browser = redirect or _wants_html(request)
    frontend = str(settings.frontend_base_url) if settings.frontend_base_url else None

    if not code or not state:
        logger.info("OAuth callback without code (provider error: %s)", error)
        if browser and frontend:
            return RedirectResponse(
                url=_with_error(frontend, "auth_failed"),
                status_code=HTTPStatus.TEMPORARY_REDIRECT,
            )
        raise HTTPException(
            status_code=HTTPStatus.BAD_REQUEST,
            detail="Missing authorization code",
        )

    payload = OAuthCallbackPayload(code=code, state=state)
    try:
        session_id, result = await _complete_login(
            payload, coordinator, state_encoder, settings
        )
    except SessionUnauthorizedError:
        if browser and frontend:
            return RedirectResponse(
                url=_with_error(frontend, "auth_failed"),
                status_code=HTTPStatus.TEMPORARY_REDIRECT,
            )
        raise

    redirect_target = result.get("redirect_to") or frontend
    if redirect_target and browser:
        response: Response = RedirectResponse(
            url=str(redirect_target), status_code=HTTPStatus.TEMPORARY_REDIRECT
        )
    else:
        response = JSONResponse(content=result)
    set_session_cookie(response, session_id, settings)
    return response


@router.get("/auth/status", status_code=HTTPStatus.OK)
async def session_status(
    request: Request,
    response: Response,
    coordinator: Annotated[Any, Depends(get_session_coordinator)],
    settings: Annotated[Any, Depends(get_app_settings)],
) -> dict:
    """Report whether the caller holds a usable session, renewing it if needed."""
    session_id = request.cookies.get(settings.session.cookie_name)
    if not session_id:
        return {"isLoggedIn": False}

    try:
        await coordinator.resolve_access_token(session_id)
    except SessionUnauthorizedError:
        clear_session_cookie(response, settings)
        return {"isLoggedIn": False}

    return {"isLoggedIn": True}


@router.post("/auth/logout", status_code=HTTPStatus.OK)
async def logout(
    request: Request,
    response: Response,
    coordinator: Annotated[Any, Depends(get_session_coordinator)],
    settings: Annotated[Any, Depends(get_app_settings)],
) -> dict:
    """Destroy the server-side session and clear the cookie regardless of outcome."""
    session_id = request.cookies.get(settings.session.cookie_name)
    if session_id:
        await coordinator.close_session(session_id)

    clear_session_cookie(response, settings)
    return {"message": "Logged out successfully"}


__all__ = ["router"]
