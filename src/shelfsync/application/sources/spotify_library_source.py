"""Spotify saved-albums source.

Hey future me - THIS IS THE ONLY PLACE THAT TURNS /me/albums PAYLOADS INTO
AlbumRecords. The sync service never sees raw Spotify JSON.

The source:
- Fetches one page at a time (pagination is driven by the caller)
- Resolves lead-artist genres per page, non-fatally
- Offers a cheap probe of the newest saved albums for freshness checks
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

from shelfsync.domain.entities import AlbumRecord, lead_artist_id
from shelfsync.domain.exceptions import (
    DomainException,
    EmptyPageError,
    GenreLookupError,
)

if TYPE_CHECKING:
    from shelfsync.infrastructure.integrations.spotify_client import SpotifyClient

logger = logging.getLogger(__name__)


@dataclass
class LibraryPage:
    """One page of saved albums, newest first."""

    albums: list[AlbumRecord] = field(default_factory=list)
    next_url: str | None = None
    total: int = 0


class SpotifyLibrarySource:
    """Reads the user's saved albums from Spotify.

    Usage:
        source = SpotifyLibrarySource(spotify_client, page_size=50)
        page = await source.fetch_page(source.first_page_url(), token)
        while page.next_url:
            page = await source.fetch_page(page.next_url, token)
    """

    def __init__(self, client: "SpotifyClient", page_size: int = 50) -> None:
        self._client = client
        self._page_size = page_size

    def first_page_url(self, limit: int | None = None) -> str:
        return self._client.saved_albums_url(limit=limit or self._page_size, offset=0)

    async def _fetch_items(
        self, url: str, access_token: str
    ) -> tuple[list[dict[str, Any]], dict[str, Any]]:
        payload = await self._client.get_saved_albums_page(url, access_token)
        items = payload.get("items")
        if not isinstance(items, list):
            raise EmptyPageError(url)
        return items, payload

    async def fetch_page(self, url: str, access_token: str) -> LibraryPage:
        """Fetch one saved-albums page and map it to AlbumRecords.

        Args:
            url: Page URL (first_page_url() or a previous page's next_url)
            access_token: OAuth access token

        Returns:
            LibraryPage with albums in remote order

        Raises:
            AuthenticationError: Spotify answered 401
            RemoteServiceError: Any other remote failure
            EmptyPageError: Payload had no item list
        """
        items, payload = await self._fetch_items(url, access_token)

        artist_ids = [lead_artist_id(item) for item in items]
        genres_by_artist = await self.fetch_genres(artist_ids, access_token)

        albums = [
            AlbumRecord.from_spotify(
                item, genres_by_artist.get(lead_artist_id(item), [])
            )
            for item in items
        ]
        return LibraryPage(
            albums=albums,
            next_url=payload.get("next"),
            total=int(payload.get("total") or 0),
        )

    async def fetch_genres(
        self, artist_ids: list[str], access_token: str
    ) -> dict[str, list[str]]:
        """Resolve genres for the given artists.

        Blank and duplicate IDs are dropped, lookups are batched by 50.
        A failed batch leaves its artists without genres; the sync carries on.

        Returns:
            Mapping artist_id -> genres (missing key means no genres known)
        """
        unique_ids = list(dict.fromkeys(aid for aid in artist_ids if aid))
        genres: dict[str, list[str]] = {}
        batch_size = self._client.MAX_ARTIST_IDS

        for start in range(0, len(unique_ids), batch_size):
            batch = unique_ids[start : start + batch_size]
            try:
                genres.update(await self._lookup_genre_batch(batch, access_token))
            except GenreLookupError as e:
                logger.warning(
                    "Genre lookup skipped for %d artists: %s", len(batch), e.message
                )
        return genres

    async def _lookup_genre_batch(
        self, artist_ids: list[str], access_token: str
    ) -> dict[str, list[str]]:
        try:
            artists = await self._client.get_several_artists(artist_ids, access_token)
        except DomainException as e:
            raise GenreLookupError(f"Artist lookup failed: {e.message}") from e
        return {
            artist["id"]: list(artist.get("genres") or [])
            for artist in artists
            if artist.get("id")
        }

    async def probe(self, access_token: str, limit: int = 10) -> list[AlbumRecord]:
        """Fetch the newest `limit` saved albums without genre resolution.

        An empty page yields an empty list. Remote errors propagate.
        """
        try:
            items, _ = await self._fetch_items(self.first_page_url(limit), access_token)
        except EmptyPageError:
            return []
        return [AlbumRecord.from_spotify(item) for item in items[:limit]]


__all__ = ["LibraryPage", "SpotifyLibrarySource"]
