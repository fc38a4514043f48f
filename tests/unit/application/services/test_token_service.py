"""Tests for TokenService refresh, caching and authorization."""

from unittest.mock import AsyncMock, MagicMock

import pytest

from shelfsync.application.services.token_service import TokenService
from shelfsync.domain.exceptions import (
    AuthenticationError,
    RemoteServiceError,
    TokenRefreshException,
)
from shelfsync.infrastructure.integrations.spotify_client import SpotifyClient


class FakeClock:
    def __init__(self) -> None:
        self.now = 1000.0

    def __call__(self) -> float:
        return self.now


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def spotify(mocker: MagicMock) -> MagicMock:
    client = mocker.Mock(spec=SpotifyClient)
    client.refresh_access_token = AsyncMock(
        return_value={"access_token": "access-1", "expires_in": 3600}
    )
    client.exchange_code = AsyncMock(
        return_value={
            "access_token": "access-0",
            "refresh_token": "refresh-0",
            "expires_in": 3600,
        }
    )
    return client


@pytest.fixture
def service(spotify: MagicMock, credential_store, clock: FakeClock) -> TokenService:
    return TokenService(spotify, credential_store, refresh_margin_seconds=60, clock=clock)


class TestGetAccessToken:
    async def test_no_refresh_token_means_logged_out(
        self, service: TokenService, spotify: MagicMock
    ) -> None:
        assert await service.get_access_token() is None
        assert await service.is_authenticated() is False
        spotify.refresh_access_token.assert_not_called()

    async def test_refreshes_and_caches(
        self, service: TokenService, spotify: MagicMock, credential_store
    ) -> None:
        credential_store.refresh_token = "refresh-0"

        first = await service.get_access_token()
        second = await service.get_access_token()

        assert first == second == "access-1"
        spotify.refresh_access_token.assert_awaited_once_with("refresh-0")

    async def test_refreshes_again_inside_expiry_margin(
        self,
        service: TokenService,
        spotify: MagicMock,
        credential_store,
        clock: FakeClock,
    ) -> None:
        credential_store.refresh_token = "refresh-0"
        await service.get_access_token()

        clock.now += 3600 - 30
        await service.get_access_token()

        assert spotify.refresh_access_token.await_count == 2

    async def test_rotated_refresh_token_is_stored(
        self, service: TokenService, spotify: MagicMock, credential_store
    ) -> None:
        credential_store.refresh_token = "refresh-0"
        spotify.refresh_access_token.return_value = {
            "access_token": "access-2",
            "refresh_token": "refresh-1",
            "expires_in": 3600,
        }

        assert await service.get_access_token() == "access-2"
        assert credential_store.refresh_token == "refresh-1"

    async def test_revoked_refresh_token_returns_none(
        self, service: TokenService, spotify: MagicMock, credential_store
    ) -> None:
        credential_store.refresh_token = "revoked"
        spotify.refresh_access_token.side_effect = TokenRefreshException(
            "Refresh token revoked", error_code="invalid_grant", http_status=400
        )

        assert await service.get_access_token() is None
        assert credential_store.refresh_token is None
        assert await service.is_authenticated() is False

    async def test_token_endpoint_outage_propagates(
        self, service: TokenService, spotify: MagicMock, credential_store
    ) -> None:
        credential_store.refresh_token = "refresh-0"
        spotify.refresh_access_token.side_effect = RemoteServiceError(
            "Spotify token endpoint error 503", status_code=503
        )

        with pytest.raises(RemoteServiceError):
            await service.get_access_token()

    async def test_invalidate_forces_refresh(
        self, service: TokenService, spotify: MagicMock, credential_store
    ) -> None:
        credential_store.refresh_token = "refresh-0"
        await service.get_access_token()

        service.invalidate()
        await service.get_access_token()

        assert spotify.refresh_access_token.await_count == 2


class TestCompleteAuthorization:
    async def test_stores_refresh_token_and_caches_access_token(
        self, service: TokenService, spotify: MagicMock, credential_store
    ) -> None:
        await service.complete_authorization("code-123")

        spotify.exchange_code.assert_awaited_once_with("code-123")
        assert credential_store.refresh_token == "refresh-0"
        assert await service.is_authenticated() is True
        assert await service.get_access_token() == "access-0"
        spotify.refresh_access_token.assert_not_called()

    async def test_missing_refresh_token_is_rejected(
        self, service: TokenService, spotify: MagicMock, credential_store
    ) -> None:
        spotify.exchange_code.return_value = {"access_token": "a", "expires_in": 3600}

        with pytest.raises(AuthenticationError):
            await service.complete_authorization("code-123")

        assert credential_store.refresh_token is None
