"""Now-playing lookups and the listening history they feed.

Hey future me - history is recorded as a SIDE EFFECT of polling now-playing.
The UI polls /api/now-playing; whenever the track differs (by name + artist)
from the latest recorded one, a new entry keyed by the current millisecond
timestamp is appended. Nothing is recorded while paused or idle.
"""

import logging
import time
from collections.abc import Callable
from typing import Any

from shelfsync.application.sources.spotify_library_source import SpotifyLibrarySource
from shelfsync.domain.entities import HistoryEntry
from shelfsync.domain.exceptions import DomainException
from shelfsync.domain.ports import IHistoryStore
from shelfsync.infrastructure.integrations.spotify_client import SpotifyClient
from shelfsync.infrastructure.persistence.database import Database
from shelfsync.infrastructure.persistence.repositories import HistoryRepository

logger = logging.getLogger(__name__)

NOT_PLAYING: dict[str, Any] = {"playing": False}


def _now_ms() -> int:
    return int(time.time() * 1000)


class DatabaseHistoryStore(IHistoryStore):
    """IHistoryStore over the listening_history table."""

    def __init__(self, database: Database) -> None:
        self._database = database

    async def latest(self) -> HistoryEntry | None:
        async with self._database.session_scope() as session:
            return await HistoryRepository(session).latest()

    async def append(self, entry: HistoryEntry) -> None:
        async with self._database.session_scope() as session:
            await HistoryRepository(session).add(entry)

    async def list_page(
        self, limit: int, before: int | None = None
    ) -> list[HistoryEntry]:
        async with self._database.session_scope() as session:
            return await HistoryRepository(session).list_page(limit, before)

    async def list_all(self) -> list[HistoryEntry]:
        async with self._database.session_scope() as session:
            return await HistoryRepository(session).list_all()


class HistoryService:
    """Current track + paged listening history."""

    def __init__(
        self,
        client: SpotifyClient,
        source: SpotifyLibrarySource,
        store: IHistoryStore,
        clock_ms: Callable[[], int] = _now_ms,
    ) -> None:
        self._client = client
        self._source = source
        self._store = store
        self._clock_ms = clock_ms

    async def now_playing(self, access_token: str) -> dict[str, Any]:
        """Return {"playing": False} or {"playing": True, **track}.

        Records a history entry when the track changed since the last one.
        """
        try:
            data = await self._client.get_currently_playing(access_token)
        except DomainException as e:
            logger.debug("Currently-playing lookup failed: %s", e.message)
            return dict(NOT_PLAYING)

        item = (data or {}).get("item")
        if not item:
            return dict(NOT_PLAYING)

        entry = await self._build_entry(item, access_token)
        latest = await self._store.latest()
        if not entry.is_same_track(latest):
            await self._store.append(entry)
            logger.info("New track recorded: %s - %s", entry.name, entry.artist)

        return {"playing": True, **entry.to_dict()}

    async def _build_entry(
        self, item: dict[str, Any], access_token: str
    ) -> HistoryEntry:
        artists = item.get("artists") or []
        album = item.get("album") or {}
        images = album.get("images") or []

        # Genres are the union over ALL track artists, first-seen order
        genres_by_artist = await self._source.fetch_genres(
            [a.get("id") or "" for a in artists], access_token
        )
        genres: list[str] = []
        for artist in artists:
            for genre in genres_by_artist.get(artist.get("id") or "", []):
                if genre not in genres:
                    genres.append(genre)

        return HistoryEntry(
            name=item.get("name") or "",
            artist=", ".join(a.get("name") or "" for a in artists),
            album=album.get("name") or "",
            cover=images[0].get("url", "") if images else "",
            link=(item.get("external_urls") or {}).get("spotify", ""),
            uri=item.get("uri") or "",
            timestamp=self._clock_ms(),
            genres=genres,
        )

    async def list_history(
        self, limit: int = 6, cursor: int | None = None
    ) -> tuple[list[HistoryEntry], str | None]:
        """Page through history newest first.

        Args:
            limit: Page size
            cursor: Timestamp of the last entry of the previous page

        Returns:
            (entries, next_cursor) - next_cursor is None on the last page
        """
        entries = await self._store.list_page(limit + 1, before=cursor)
        if len(entries) <= limit:
            return entries, None
        page = entries[:limit]
        return page, str(page[-1].timestamp)

    async def list_all(self) -> list[HistoryEntry]:
        return await self._store.list_all()


__all__ = ["DatabaseHistoryStore", "HistoryService"]
