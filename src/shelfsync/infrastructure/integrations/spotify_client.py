"""Spotify HTTP client: OAuth authorization-code flow and the library endpoints."""

import logging
import math
from typing import Any, cast
from urllib.parse import urlencode

import httpx

from shelfsync.config.settings import SpotifySettings
from shelfsync.domain.exceptions import (
    AuthenticationError,
    ConfigurationError,
    RemoteServiceError,
    TokenRefreshException,
)
from shelfsync.infrastructure.rate_limiter import RateLimiter, get_spotify_limiter

logger = logging.getLogger(__name__)


# Retry-After may also be an HTTP-date or a fraction; only seconds are honoured.
def parse_retry_after(value: str | None) -> int | None:
    if not value:
        return None
    try:
        seconds = float(value)
    except ValueError:
        return None
    if not math.isfinite(seconds) or seconds < 0:
        return None
    return math.ceil(seconds)


class SpotifyClient:
    """HTTP client for the Spotify Web API and accounts service."""

    # Hard limits of the Web API
    MAX_PAGE_SIZE = 50
    MAX_ARTIST_IDS = 50

    # The httpx client is created lazily in _get_client() so it binds to the running loop.
    def __init__(
        self, settings: SpotifySettings, rate_limiter: RateLimiter | None = None
    ) -> None:
        """
        Initialize Spotify client.

        Args:
            settings: Spotify configuration settings
            rate_limiter: Limiter shared by all API calls (process singleton by default)
        """
        self.settings = settings
        self._rate_limiter = rate_limiter or get_spotify_limiter()
        self._client: httpx.AsyncClient | None = None

    @property
    def authorize_url(self) -> str:
        return f"{self.settings.accounts_base_url}/authorize"

    @property
    def token_url(self) -> str:
        return f"{self.settings.accounts_base_url}/api/token"

    async def _get_client(self) -> httpx.AsyncClient:
        """Get or create HTTP client."""
        if self._client is None:
            self._client = httpx.AsyncClient(timeout=self.settings.timeout_seconds)
        return self._client

    # Must be called on shutdown, otherwise pooled connections leak.
    async def close(self) -> None:
        """Close HTTP client."""
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    async def _api_request(
        self,
        method: str,
        url: str,
        access_token: str,
        params: dict[str, Any] | None = None,
        max_retries: int = 3,
    ) -> httpx.Response:
        """Make a rate-limited API request with automatic retry on 429.

        Every Web API call goes through here.

        Args:
            method: HTTP method (GET, POST, etc.)
            url: Full URL to request
            access_token: OAuth access token
            params: Query parameters
            max_retries: Max retries on 429 (default 3)

        Returns:
            httpx.Response object (status not yet checked, except for exhausted 429s)

        Raises:
            RemoteServiceError: On timeout, transport failure or exhausted 429 retries
        """
        client = await self._get_client()
        headers = {"Authorization": f"Bearer {access_token}"}

        for attempt in range(max_retries + 1):
            try:
                async with self._rate_limiter:
                    response = await client.request(
                        method=method,
                        url=url,
                        params=params,
                        headers=headers,
                    )
            except httpx.TimeoutException as e:
                raise RemoteServiceError(
                    f"Spotify request timed out: {url}", url=url
                ) from e
            except httpx.TransportError as e:
                raise RemoteServiceError(
                    f"Spotify request failed: {url}: {e}", url=url
                ) from e

            if response.status_code != 429:
                self._rate_limiter.reset_backoff()
                return response

            retry_after = parse_retry_after(response.headers.get("Retry-After"))

            if attempt >= max_retries:
                error_msg = (
                    f"Spotify API rate limited (429) after {max_retries} retries. "
                    f"URL: {url}. Retry-After: {retry_after or 'not provided'} seconds."
                )
                logger.error(error_msg)
                raise RemoteServiceError(error_msg, status_code=429, url=url)

            wait_time = await self._rate_limiter.handle_rate_limit_response(retry_after)
            logger.warning(
                "Spotify 429 rate limit (attempt %d/%d): waited %.1fs, retrying %s",
                attempt + 1,
                max_retries,
                wait_time,
                url,
            )

        # Unreachable: the loop either returns or raises
        return response

    @staticmethod
    def _json(response: httpx.Response) -> dict[str, Any]:
        """Decode a JSON body; a 2xx HTML error page becomes RemoteServiceError."""
        try:
            return cast(dict[str, Any], response.json())
        except ValueError as e:
            url = str(response.request.url)
            raise RemoteServiceError(
                f"Spotify returned a non-JSON body ({response.status_code}) for {url}",
                status_code=response.status_code,
                url=url,
            ) from e

    @staticmethod
    def _check_response(response: httpx.Response) -> None:
        """Translate a non-2xx response into a domain error.

        Raises:
            AuthenticationError: 401 (expired or revoked access token)
            RemoteServiceError: any other non-2xx status
        """
        if response.is_success:
            return
        url = str(response.request.url)
        if response.status_code == 401:
            raise AuthenticationError(f"Spotify rejected the access token ({url})")
        raise RemoteServiceError(
            f"Spotify API error {response.status_code} for {url}",
            status_code=response.status_code,
            url=url,
        )

    def _require_credentials(self) -> None:
        if not self.settings.client_id or not self.settings.client_id.strip():
            raise ConfigurationError(
                "SPOTIFY_CLIENT_ID is not configured. "
                "Get credentials at https://developer.spotify.com/dashboard"
            )
        if not self.settings.client_secret or not self.settings.client_secret.strip():
            raise ConfigurationError("SPOTIFY_CLIENT_SECRET is not configured.")
        if not self.settings.redirect_uri or not self.settings.redirect_uri.strip():
            raise ConfigurationError(
                "SPOTIFY_REDIRECT_URI is not configured. "
                "Set it to the /callback URL of this server."
            )

    # =========================================================================
    # OAUTH
    # =========================================================================

    def get_authorization_url(self, state: str | None = None) -> str:
        """
        Build the Spotify authorize URL for the authorization-code flow.

        Args:
            state: Optional CSRF state echoed back on the callback

        Raises:
            ConfigurationError: If client credentials or redirect_uri are missing
        """
        self._require_credentials()
        params = {
            "response_type": "code",
            "client_id": self.settings.client_id,
            "scope": self.settings.scopes,
            "redirect_uri": self.settings.redirect_uri,
            "show_dialog": "true",
        }
        if state:
            params["state"] = state
        return f"{self.authorize_url}?{urlencode(params)}"

    async def _token_request(self, data: dict[str, str]) -> httpx.Response:
        client = await self._get_client()
        try:
            return await client.post(
                self.token_url,
                data=data,
                auth=(self.settings.client_id, self.settings.client_secret),
                headers={"Content-Type": "application/x-www-form-urlencoded"},
            )
        except httpx.HTTPError as e:
            raise RemoteServiceError(
                f"Spotify token request failed: {e}", url=self.token_url
            ) from e

    async def exchange_code(self, code: str) -> dict[str, Any]:
        """
        Exchange an authorization code for access and refresh tokens.

        The code is single-use and redirect_uri must match the authorize request exactly.

        Returns:
            Token response with access_token, refresh_token, expires_in

        Raises:
            ConfigurationError: If credentials are missing
            AuthenticationError: If Spotify rejects the code
            RemoteServiceError: On transport failure or 5xx
        """
        self._require_credentials()
        response = await self._token_request(
            {
                "grant_type": "authorization_code",
                "code": code,
                "redirect_uri": self.settings.redirect_uri,
            }
        )
        if response.status_code in (400, 401, 403):
            raise AuthenticationError(
                f"Spotify rejected the authorization code ({response.status_code})"
            )
        self._check_response(response)
        return self._json(response)

    async def refresh_access_token(self, refresh_token: str) -> dict[str, Any]:
        """
        Exchange a refresh token for a new access token.

        Returns:
            Token response with access_token, expires_in and, when Spotify rotates
            it, a new refresh_token

        Raises:
            TokenRefreshException: If the refresh token is invalid/revoked
            RemoteServiceError: For other HTTP errors
        """
        self._require_credentials()
        response = await self._token_request(
            {"grant_type": "refresh_token", "refresh_token": refresh_token}
        )

        # invalid_grant means the refresh token is dead; check before the generic mapping
        if response.status_code == 400:
            try:
                error_data = response.json()
            except ValueError:
                error_data = {}
            error_code = error_data.get("error", "")
            if error_code == "invalid_grant":
                description = error_data.get(
                    "error_description", "Refresh token is invalid or has been revoked"
                )
                raise TokenRefreshException(
                    message=f"Refresh token invalid: {description}. Please re-authenticate with Spotify.",
                    error_code=error_code,
                    http_status=400,
                )

        if response.status_code in (401, 403):
            raise TokenRefreshException(
                message="Spotify access denied. Please re-authenticate with Spotify.",
                error_code="access_denied",
                http_status=response.status_code,
            )

        self._check_response(response)
        return self._json(response)

    # =========================================================================
    # LIBRARY
    # =========================================================================

    def saved_albums_url(self, limit: int = 50, offset: int = 0) -> str:
        """URL of a saved-albums page; later pages come from the response's `next`."""
        limit = min(limit, self.MAX_PAGE_SIZE)
        query = urlencode({"limit": limit, "offset": offset})
        return f"{self.settings.api_base_url}/me/albums?{query}"

    async def get_saved_albums_page(
        self, url: str, access_token: str
    ) -> dict[str, Any]:
        """Get one page of the user's saved albums.

        Args:
            url: Page URL (from saved_albums_url() or a previous page's `next`)
            access_token: OAuth access token

        Returns:
            Raw paginated response:
            - items: [{"added_at": ..., "album": {...}}, ...]
            - next: URL of the next page or null
            - total: number of saved albums

        Raises:
            AuthenticationError: On 401
            RemoteServiceError: On any other failure

        Note:
            Requires the "user-library-read" scope.
        """
        response = await self._api_request("GET", url, access_token)
        self._check_response(response)
        return self._json(response)

    async def get_several_artists(
        self, artist_ids: list[str], access_token: str
    ) -> list[dict[str, Any]]:
        """
        Get details for up to 50 artists in a single request.

        Returns:
            List of artist objects (nulls for unknown IDs filtered out)

        Raises:
            AuthenticationError: On 401
            RemoteServiceError: On any other failure
        """
        if not artist_ids:
            return []
        if len(artist_ids) > self.MAX_ARTIST_IDS:
            artist_ids = artist_ids[: self.MAX_ARTIST_IDS]

        response = await self._api_request(
            method="GET",
            url=f"{self.settings.api_base_url}/artists",
            access_token=access_token,
            params={"ids": ",".join(artist_ids)},
        )
        self._check_response(response)
        result = self._json(response)
        return [artist for artist in result.get("artists") or [] if artist is not None]

    async def get_currently_playing(self, access_token: str) -> dict[str, Any] | None:
        """Get the currently playing item, or None when nothing is playing (204).

        Raises:
            AuthenticationError: On 401
            RemoteServiceError: On any other failure
        """
        response = await self._api_request(
            "GET",
            f"{self.settings.api_base_url}/me/player/currently-playing",
            access_token,
        )
        if response.status_code == 204:
            return None
        self._check_response(response)
        return self._json(response)

    async def __aenter__(self) -> "SpotifyClient":
        return self

    async def __aexit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        await self.close()
