"""Tests for SpotifyLibrarySource against a mocked Spotify API."""

from collections.abc import Callable
from typing import Any

import pytest
from pytest_httpx import HTTPXMock

from shelfsync.application.sources.spotify_library_source import SpotifyLibrarySource
from shelfsync.config import SpotifySettings
from shelfsync.domain.exceptions import AuthenticationError, EmptyPageError
from shelfsync.infrastructure.integrations.spotify_client import SpotifyClient
from shelfsync.infrastructure.rate_limiter import RateLimiter

API = "https://api.spotify.com/v1"
FIRST_PAGE = f"{API}/me/albums?limit=50&offset=0"


@pytest.fixture
async def spotify_client(spotify_settings: SpotifySettings, fast_limiter: RateLimiter):
    client = SpotifyClient(spotify_settings, rate_limiter=fast_limiter)
    yield client
    await client.close()


@pytest.fixture
def source(spotify_client: SpotifyClient) -> SpotifyLibrarySource:
    return SpotifyLibrarySource(spotify_client, page_size=50)


class TestFetchPage:
    async def test_maps_items_and_lead_artist_genres(
        self,
        source: SpotifyLibrarySource,
        httpx_mock: HTTPXMock,
        page_factory: Callable[..., dict[str, Any]],
    ) -> None:
        next_url = f"{API}/me/albums?offset=50&limit=50"
        httpx_mock.add_response(
            url=FIRST_PAGE, json=page_factory(["A", "B"], next_url=next_url, total=120)
        )
        httpx_mock.add_response(
            url=f"{API}/artists?ids=artist-A,artist-B",
            json={
                "artists": [
                    {"id": "artist-A", "genres": ["dream pop"]},
                    {"id": "artist-B", "genres": []},
                ]
            },
        )

        page = await source.fetch_page(source.first_page_url(), "token")

        assert page.next_url == next_url
        assert page.total == 120
        first = page.albums[0]
        assert first.name == "Album A"
        assert first.artist == "Artist A"
        assert first.year == "2020"
        assert first.full_date == "2020-01-01"
        assert first.cover == "https://i.scdn.co/image/A"
        assert first.link == "https://open.spotify.com/album/A"
        assert first.uri == "spotify:album:A"
        assert first.genres == ["dream pop"]
        assert first.popularity == 42
        assert first.added_at == "2024-05-01T10:00:00Z"
        assert page.albums[1].genres == []

    async def test_genre_lookup_failure_is_not_fatal(
        self,
        source: SpotifyLibrarySource,
        httpx_mock: HTTPXMock,
        page_factory: Callable[..., dict[str, Any]],
    ) -> None:
        httpx_mock.add_response(url=FIRST_PAGE, json=page_factory(["A"]))
        httpx_mock.add_response(url=f"{API}/artists?ids=artist-A", status_code=500)

        page = await source.fetch_page(FIRST_PAGE, "token")

        assert [a.uri for a in page.albums] == ["spotify:album:A"]
        assert page.albums[0].genres == []

    async def test_non_json_genre_body_is_not_fatal(
        self,
        source: SpotifyLibrarySource,
        httpx_mock: HTTPXMock,
        page_factory: Callable[..., dict[str, Any]],
    ) -> None:
        httpx_mock.add_response(url=FIRST_PAGE, json=page_factory(["A"]))
        httpx_mock.add_response(
            url=f"{API}/artists?ids=artist-A", text="<html>oops</html>"
        )

        page = await source.fetch_page(FIRST_PAGE, "token")

        assert [a.uri for a in page.albums] == ["spotify:album:A"]
        assert page.albums[0].genres == []

    async def test_payload_without_items_raises_empty_page(
        self, source: SpotifyLibrarySource, httpx_mock: HTTPXMock
    ) -> None:
        httpx_mock.add_response(url=FIRST_PAGE, json={"next": None})

        with pytest.raises(EmptyPageError):
            await source.fetch_page(FIRST_PAGE, "token")

    async def test_unauthorized_page_raises(
        self, source: SpotifyLibrarySource, httpx_mock: HTTPXMock
    ) -> None:
        httpx_mock.add_response(url=FIRST_PAGE, status_code=401)

        with pytest.raises(AuthenticationError):
            await source.fetch_page(FIRST_PAGE, "token")


class TestFetchGenres:
    async def test_deduplicates_and_skips_blank_ids(
        self, source: SpotifyLibrarySource, httpx_mock: HTTPXMock
    ) -> None:
        httpx_mock.add_response(
            url=f"{API}/artists?ids=a1,a2",
            json={
                "artists": [
                    {"id": "a1", "genres": ["jazz"]},
                    None,
                ]
            },
        )

        genres = await source.fetch_genres(["a1", "", "a2", "a1"], "token")

        assert genres == {"a1": ["jazz"]}
        assert len(httpx_mock.get_requests()) == 1

    async def test_no_ids_makes_no_request(
        self, source: SpotifyLibrarySource, httpx_mock: HTTPXMock
    ) -> None:
        assert await source.fetch_genres(["", ""], "token") == {}
        assert httpx_mock.get_requests() == []


class TestProbe:
    async def test_probe_requests_ten_without_genres(
        self,
        source: SpotifyLibrarySource,
        httpx_mock: HTTPXMock,
        page_factory: Callable[..., dict[str, Any]],
    ) -> None:
        keys = [str(i) for i in range(10)]
        httpx_mock.add_response(
            url=f"{API}/me/albums?limit=10&offset=0", json=page_factory(keys)
        )

        probe = await source.probe("token", limit=10)

        assert [a.uri for a in probe] == [f"spotify:album:{k}" for k in keys]
        assert all(a.genres == [] for a in probe)
        assert len(httpx_mock.get_requests()) == 1

    async def test_probe_of_empty_payload_is_empty(
        self, source: SpotifyLibrarySource, httpx_mock: HTTPXMock
    ) -> None:
        httpx_mock.add_response(url=f"{API}/me/albums?limit=10&offset=0", json={})

        assert await source.probe("token") == []
