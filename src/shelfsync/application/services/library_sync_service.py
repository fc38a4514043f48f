"""Library Sync Service - keeps the stored snapshot in step with Spotify.

Hey future me - flow of ONE sync:

    IDLE -> CHECKING -> FRESH   (snapshot head matches remote head, no writes)
                     -> SYNCING (fetch, reconcile or full resync, replace) -> IDLE

- force=True skips the freshness probe, nothing else. The first page is still
  offered to the reconciler.
- Only the first page is ever reconciled. On a match we stop right there: no
  further pages, no further genre lookups.
- No match -> every page is fetched and the result replaces the snapshot.
- Any remote error aborts BEFORE the store is touched. The snapshot is either
  the old one or the complete new one, never a mix.
- One sync at a time per service. A caller arriving mid-sync joins the running
  one and gets the same SyncResult (its own force flag is ignored).
"""

import asyncio
import logging

from shelfsync.application.services.freshness_checker import FreshnessChecker
from shelfsync.application.services.library_reconciler import reconcile
from shelfsync.application.sources.spotify_library_source import SpotifyLibrarySource
from shelfsync.domain.entities import AlbumRecord, SyncResult, SyncState, SyncStatus
from shelfsync.domain.exceptions import (
    AuthenticationError,
    EmptyPageError,
    RemoteServiceError,
)
from shelfsync.domain.ports import ISnapshotStore

logger = logging.getLogger(__name__)


class LibrarySyncService:
    """Orchestrates freshness check, fetch, reconcile and persist."""

    def __init__(
        self,
        source: SpotifyLibrarySource,
        store: ISnapshotStore,
        freshness: FreshnessChecker,
        match_window: int = 10,
        max_new_items: int = 45,
    ) -> None:
        """Initialize the sync service.

        Args:
            source: Saved-albums source (paged fetch + genres)
            store: Snapshot store that is replaced on success
            freshness: Probe deciding whether a sync is needed
            match_window: Consecutive items required to accept a merge point
            max_new_items: Max new items ahead of the merge point
        """
        if match_window < 1:
            raise ValueError("match_window must be >= 1")
        self._source = source
        self._store = store
        self._freshness = freshness
        self._match_window = match_window
        self._max_new_items = max_new_items
        self._state = SyncState.IDLE
        self._inflight: asyncio.Task[SyncResult] | None = None

    @property
    def state(self) -> SyncState:
        return self._state

    @property
    def is_running(self) -> bool:
        return self._inflight is not None and not self._inflight.done()

    async def sync(self, access_token: str, force: bool = False) -> SyncResult:
        """Bring the snapshot up to date.

        Args:
            access_token: Spotify OAuth access token
            force: Skip the freshness probe

        Returns:
            SyncResult - FRESH/UPDATED on success, UNAUTHORIZED/FAILED otherwise.
            Remote errors are reported in the result, never raised.
        """
        if self._inflight is not None and not self._inflight.done():
            logger.info("Sync already in progress, joining it")
            return await asyncio.shield(self._inflight)

        task = asyncio.create_task(self._run(access_token, force))
        self._inflight = task
        # shield: a disconnected caller must not cancel a sync others may be awaiting
        return await asyncio.shield(task)

    async def _run(self, access_token: str, force: bool) -> SyncResult:
        try:
            self._state = SyncState.CHECKING
            cached = await self._store.load()

            if not force and await self._freshness.is_fresh(access_token, cached):
                self._state = SyncState.FRESH
                logger.info("Library snapshot is fresh (%d albums)", len(cached))
                return SyncResult(status=SyncStatus.FRESH, albums=cached)

            self._state = SyncState.SYNCING
            albums, incremental = await self._fetch_library(access_token, cached)
            await self._store.replace(albums)

            logger.info(
                "Library sync complete: %d albums (%s)",
                len(albums),
                "incremental" if incremental else "full",
            )
            return SyncResult(
                status=SyncStatus.UPDATED, albums=albums, incremental=incremental
            )

        except AuthenticationError as e:
            logger.warning("Library sync unauthorized: %s", e.message)
            return SyncResult(status=SyncStatus.UNAUTHORIZED, error=e.message)
        except RemoteServiceError as e:
            logger.error("Library sync failed: %s", e.message)
            return SyncResult(status=SyncStatus.FAILED, error=e.message)
        finally:
            self._state = SyncState.IDLE

    async def _fetch_library(
        self, access_token: str, cached: list[AlbumRecord]
    ) -> tuple[list[AlbumRecord], bool]:
        """Return (albums, incremental). Raises on any remote failure."""
        try:
            first = await self._source.fetch_page(
                self._source.first_page_url(), access_token
            )
        except EmptyPageError:
            logger.info("Saved-albums library is empty")
            return [], False

        result = reconcile(
            first.albums, cached, self._match_window, self._max_new_items
        )
        if result.matched:
            logger.info(
                "Incremental sync: %d new album(s) ahead of snapshot index %s",
                result.lead_count,
                result.cache_index,
            )
            return result.albums, True

        if cached:
            logger.info("%s, running full resync", result.reason)

        albums = list(first.albums)
        next_url = first.next_url
        while next_url:
            try:
                page = await self._source.fetch_page(next_url, access_token)
            except EmptyPageError:
                break
            albums.extend(page.albums)
            next_url = page.next_url
            logger.debug("Fetched %d/%d saved albums", len(albums), page.total)

        return albums, False


__all__ = ["LibrarySyncService"]
