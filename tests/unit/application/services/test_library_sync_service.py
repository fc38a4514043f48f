"""Tests for LibrarySyncService orchestration."""

import asyncio
from collections.abc import Callable

import pytest

from shelfsync.application.services.freshness_checker import FreshnessChecker
from shelfsync.application.services.library_sync_service import LibrarySyncService
from shelfsync.application.sources.spotify_library_source import LibraryPage
from shelfsync.domain.entities import AlbumRecord, SyncState, SyncStatus
from shelfsync.domain.exceptions import (
    AuthenticationError,
    EmptyPageError,
    RemoteServiceError,
)


class FakeLibrarySource:
    """Serves fixed pages at page://0, page://1, ...; can fail on one page."""

    def __init__(
        self,
        pages: list[list[AlbumRecord]],
        fail_at: int | None = None,
        error: Exception | None = None,
    ) -> None:
        self.pages = pages
        self.fail_at = fail_at
        self.error = error or RemoteServiceError("Spotify API error 500", 500)
        self.fetched: list[str] = []
        self.probes = 0

    def first_page_url(self, limit: int | None = None) -> str:
        return "page://0"

    async def fetch_page(self, url: str, access_token: str) -> LibraryPage:
        self.fetched.append(url)
        index = int(url.removeprefix("page://"))
        if index == self.fail_at:
            raise self.error
        if index >= len(self.pages):
            raise EmptyPageError(url)
        next_url = f"page://{index + 1}" if index + 1 < len(self.pages) else None
        return LibraryPage(
            albums=list(self.pages[index]),
            next_url=next_url,
            total=sum(len(p) for p in self.pages),
        )

    async def probe(self, access_token: str, limit: int = 10) -> list[AlbumRecord]:
        self.probes += 1
        if self.fail_at == 0:
            raise self.error
        return [a for page in self.pages for a in page][:limit]


def build_service(source: FakeLibrarySource, store) -> LibrarySyncService:
    return LibrarySyncService(
        source=source,  # type: ignore[arg-type]
        store=store,
        freshness=FreshnessChecker(source, probe_size=10),  # type: ignore[arg-type]
        match_window=3,
        max_new_items=45,
    )


def paginate(albums: list[AlbumRecord], size: int = 50) -> list[list[AlbumRecord]]:
    return [albums[i : i + size] for i in range(0, len(albums), size)]


@pytest.fixture
def library(album_factory: Callable[..., AlbumRecord]) -> list[AlbumRecord]:
    return [album_factory(str(i)) for i in range(60)]


class TestFirstSync:
    async def test_empty_store_runs_full_sync(self, snapshot_store, library) -> None:
        source = FakeLibrarySource(paginate(library))
        service = build_service(source, snapshot_store)

        result = await service.sync("token")

        assert result.status == SyncStatus.UPDATED
        assert result.incremental is False
        assert result.count == 60
        assert snapshot_store.albums == library
        assert source.fetched == ["page://0", "page://1"]
        assert service.state == SyncState.IDLE

    async def test_empty_remote_library_stores_empty_snapshot(
        self, snapshot_store
    ) -> None:
        service = build_service(FakeLibrarySource([]), snapshot_store)

        result = await service.sync("token")

        assert result.status == SyncStatus.UPDATED
        assert result.count == 0
        assert snapshot_store.replace_calls == 1


class TestIdempotence:
    async def test_second_sync_is_fresh_and_writes_nothing(
        self, snapshot_store, library
    ) -> None:
        source = FakeLibrarySource(paginate(library))
        service = build_service(source, snapshot_store)

        first = await service.sync("token")
        second = await service.sync("token")

        assert first.status == SyncStatus.UPDATED
        assert second.status == SyncStatus.FRESH
        assert second.albums == first.albums
        assert snapshot_store.replace_calls == 1

    async def test_fresh_result_serializes_snapshot(
        self, snapshot_store, library
    ) -> None:
        snapshot_store.albums = list(library)
        service = build_service(FakeLibrarySource(paginate(library)), snapshot_store)

        payload = (await service.sync("token")).to_dict()

        assert payload["status"] == "fresh"
        assert payload["count"] == 60
        assert payload["albums"][0]["uri"] == "spotify:album:0"


class TestIncrementalSync:
    async def test_new_saves_fetch_only_first_page(
        self, snapshot_store, library, album_factory
    ) -> None:
        snapshot_store.albums = list(library)
        remote = [album_factory("X"), album_factory("Y")] + library
        source = FakeLibrarySource(paginate(remote))
        service = build_service(source, snapshot_store)

        result = await service.sync("token")

        assert result.status == SyncStatus.UPDATED
        assert result.incremental is True
        assert source.fetched == ["page://0"]
        assert snapshot_store.albums == remote

    async def test_reorder_falls_back_to_full_resync(
        self, snapshot_store, album_factory
    ) -> None:
        snapshot_store.albums = [album_factory(k) for k in "ABCDEF"]
        reordered = [album_factory(k) for k in "BADCFE"]
        source = FakeLibrarySource(paginate(reordered, size=4))
        service = build_service(source, snapshot_store)

        result = await service.sync("token")

        assert result.incremental is False
        assert source.fetched == ["page://0", "page://1"]
        assert snapshot_store.albums == reordered

    async def test_force_skips_freshness_probe(self, snapshot_store, library) -> None:
        snapshot_store.albums = list(library)
        source = FakeLibrarySource(paginate(library))
        service = build_service(source, snapshot_store)

        result = await service.sync("token", force=True)

        assert result.status == SyncStatus.UPDATED
        assert result.incremental is True
        assert source.probes == 0
        assert snapshot_store.albums == library


class TestFailures:
    async def test_failure_mid_pagination_persists_nothing(
        self, snapshot_store, library, album_factory
    ) -> None:
        snapshot_store.albums = list(library)
        remote = [album_factory(f"n{i}") for i in range(80)]
        source = FakeLibrarySource(paginate(remote), fail_at=1)
        service = build_service(source, snapshot_store)

        result = await service.sync("token", force=True)

        assert result.status == SyncStatus.FAILED
        assert "500" in (result.error or "")
        assert snapshot_store.replace_calls == 0
        assert snapshot_store.albums == library
        assert service.state == SyncState.IDLE

    async def test_unauthorized_is_reported_not_raised(
        self, snapshot_store, library
    ) -> None:
        source = FakeLibrarySource(
            paginate(library), fail_at=0, error=AuthenticationError("expired")
        )
        service = build_service(source, snapshot_store)

        result = await service.sync("token")

        assert result.status == SyncStatus.UNAUTHORIZED
        assert result.ok is False
        assert result.to_dict() == {"status": "unauthorized", "error": "expired"}
        assert snapshot_store.replace_calls == 0

    def test_rejects_zero_match_window(self, snapshot_store) -> None:
        source = FakeLibrarySource([])
        with pytest.raises(ValueError):
            LibrarySyncService(
                source=source,  # type: ignore[arg-type]
                store=snapshot_store,
                freshness=FreshnessChecker(source),  # type: ignore[arg-type]
                match_window=0,
            )


class TestConcurrency:
    async def test_concurrent_requests_share_one_sync(
        self, snapshot_store, library
    ) -> None:
        gate = asyncio.Event()

        class BlockingSource(FakeLibrarySource):
            async def fetch_page(self, url: str, access_token: str) -> LibraryPage:
                await gate.wait()
                return await super().fetch_page(url, access_token)

        source = BlockingSource(paginate(library))
        service = build_service(source, snapshot_store)

        first = asyncio.create_task(service.sync("token"))
        for _ in range(5):
            await asyncio.sleep(0)
        assert service.state == SyncState.SYNCING
        assert service.is_running is True

        second = asyncio.create_task(service.sync("token", force=True))
        await asyncio.sleep(0)
        gate.set()
        r1, r2 = await asyncio.gather(first, second)

        assert r1 is r2
        assert source.fetched == ["page://0", "page://1"]
        assert snapshot_store.replace_calls == 1
        assert service.is_running is False
        assert service.state == SyncState.IDLE
