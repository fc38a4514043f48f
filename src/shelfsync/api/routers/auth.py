"""Spotify OAuth endpoints.

Hey future me - flow:
1. GET /login     -> redirect to Spotify, state kept in a short-lived cookie
2. GET /callback  -> state checked, code exchanged, refresh token stored, redirect "/"
3. GET /api/auth/status -> {"authenticated": bool}

Only the refresh token is persisted. It is never returned by any endpoint.
"""

import logging
import secrets
from typing import Any

from fastapi import APIRouter, Cookie, Depends, Query
from fastapi.responses import PlainTextResponse, RedirectResponse, Response

from shelfsync.api.dependencies import get_spotify_client, get_token_service
from shelfsync.application.services.token_service import TokenService
from shelfsync.domain.exceptions import AuthenticationError, RemoteServiceError
from shelfsync.infrastructure.integrations.spotify_client import SpotifyClient

logger = logging.getLogger(__name__)

router = APIRouter()
api_router = APIRouter()

STATE_COOKIE = "shelfsync_oauth_state"
STATE_COOKIE_MAX_AGE = 600


def auth_failed() -> PlainTextResponse:
    return PlainTextResponse("Authentication failed", status_code=400)


@router.get("/login")
async def login(
    spotify_client: SpotifyClient = Depends(get_spotify_client),
) -> RedirectResponse:
    """Redirect to the Spotify consent screen."""
    state = secrets.token_urlsafe(16)
    response = RedirectResponse(
        url=spotify_client.get_authorization_url(state), status_code=302
    )
    response.set_cookie(
        STATE_COOKIE,
        state,
        max_age=STATE_COOKIE_MAX_AGE,
        httponly=True,
        samesite="lax",
    )
    return response


@router.get("/callback", response_model=None)
async def callback(
    code: str | None = Query(default=None),
    state: str | None = Query(default=None),
    error: str | None = Query(default=None),
    expected_state: str | None = Cookie(default=None, alias=STATE_COOKIE),
    token_service: TokenService = Depends(get_token_service),
) -> Response:
    """Finish the OAuth flow and store the refresh token."""
    if error or not code:
        logger.warning("Spotify authorization denied or missing code: %s", error)
        return auth_failed()
    if expected_state and state != expected_state:
        logger.warning("OAuth state mismatch on callback")
        return auth_failed()

    try:
        await token_service.complete_authorization(code)
    except (AuthenticationError, RemoteServiceError) as e:
        logger.warning("Spotify code exchange failed: %s", e.message)
        return auth_failed()

    response = RedirectResponse(url="/", status_code=302)
    response.delete_cookie(STATE_COOKIE)
    return response


@api_router.get("/status")
async def auth_status(
    token_service: TokenService = Depends(get_token_service),
) -> dict[str, Any]:
    """Whether a refresh token is stored."""
    return {"authenticated": await token_service.is_authenticated()}
