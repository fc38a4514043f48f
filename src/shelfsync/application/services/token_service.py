"""Access-token provider backed by the stored refresh token.

Hey future me - the refresh token is the ONLY long-lived secret. Access tokens
live for an hour, so we keep the current one in memory and only hit the token
endpoint again shortly before it expires. Spotify sometimes rotates the refresh
token on refresh; when it does, the new one replaces the stored one.

None from get_access_token() means "user must log in again". Routers turn that
into 401 {"error": "Unauthorized"}.
"""

import asyncio
import logging
import time
from collections.abc import Callable
from typing import Any

from shelfsync.domain.exceptions import AuthenticationError, TokenRefreshException
from shelfsync.domain.ports import ICredentialStore
from shelfsync.infrastructure.integrations.spotify_client import SpotifyClient

logger = logging.getLogger(__name__)


class TokenService:
    """Hands out a valid Spotify access token, refreshing when needed."""

    def __init__(
        self,
        client: SpotifyClient,
        credentials: ICredentialStore,
        refresh_margin_seconds: float = 60.0,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._client = client
        self._credentials = credentials
        self._refresh_margin = refresh_margin_seconds
        self._clock = clock
        self._access_token: str | None = None
        self._expires_at: float = 0.0
        self._lock = asyncio.Lock()

    def _cache(self, token_data: dict[str, Any]) -> str:
        access_token = str(token_data["access_token"])
        expires_in = float(token_data.get("expires_in") or 3600)
        self._access_token = access_token
        self._expires_at = self._clock() + expires_in - self._refresh_margin
        return access_token

    def _cached_token(self) -> str | None:
        if self._access_token and self._clock() < self._expires_at:
            return self._access_token
        return None

    async def is_authenticated(self) -> bool:
        """True when a refresh token is stored (it may still be revoked remotely)."""
        return bool(await self._credentials.get_refresh_token())

    async def get_access_token(self) -> str | None:
        """Return a usable access token, or None when re-authentication is required.

        Raises:
            RemoteServiceError: Token endpoint unreachable or 5xx
        """
        cached = self._cached_token()
        if cached:
            return cached

        async with self._lock:
            # Another caller may have refreshed while we waited
            cached = self._cached_token()
            if cached:
                return cached

            refresh_token = await self._credentials.get_refresh_token()
            if not refresh_token:
                return None

            try:
                token_data = await self._client.refresh_access_token(refresh_token)
            except TokenRefreshException as e:
                logger.warning(
                    "Spotify token refresh rejected (%s): %s", e.error_code, e.message
                )
                if e.requires_reauth:
                    await self._credentials.clear()
                self.invalidate()
                return None

            rotated = token_data.get("refresh_token")
            if rotated and rotated != refresh_token:
                await self._credentials.set_refresh_token(rotated)
                logger.info("Stored rotated Spotify refresh token")

            return self._cache(token_data)

    async def complete_authorization(self, code: str) -> None:
        """Exchange an OAuth code and store the resulting refresh token.

        Raises:
            AuthenticationError: Spotify rejected the code or sent no refresh token
            ConfigurationError: Client credentials missing
            RemoteServiceError: Token endpoint unreachable
        """
        token_data = await self._client.exchange_code(code)
        refresh_token = token_data.get("refresh_token")
        if not refresh_token:
            raise AuthenticationError("Spotify did not return a refresh token")

        await self._credentials.set_refresh_token(refresh_token)
        async with self._lock:
            self._cache(token_data)
        logger.info("Spotify authorization completed")

    def invalidate(self) -> None:
        """Forget the cached access token (next call refreshes)."""
        self._access_token = None
        self._expires_at = 0.0


__all__ = ["TokenService"]
