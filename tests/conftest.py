"""Shared fixtures: settings, database, in-memory stores and fake Spotify data."""

from collections.abc import AsyncGenerator, Callable, Iterator
from pathlib import Path
from typing import Any

import pytest
from fastapi.testclient import TestClient

from shelfsync.api.dependencies import get_token_service
from shelfsync.api.main import create_app
from shelfsync.config import (
    DatabaseSettings,
    ObservabilitySettings,
    Settings,
    SpotifySettings,
    SyncSettings,
)
from shelfsync.domain.entities import AlbumRecord, HistoryEntry
from shelfsync.domain.ports import ICredentialStore, IHistoryStore, ISnapshotStore
from shelfsync.infrastructure.persistence import Database
from shelfsync.infrastructure.rate_limiter import RateLimiter, RateLimiterConfig

API = "https://api.spotify.com/v1"


# =============================================================================
# In-memory port implementations
# =============================================================================


class InMemorySnapshotStore(ISnapshotStore):
    """Snapshot store double; counts replace() calls."""

    def __init__(self, albums: list[AlbumRecord] | None = None) -> None:
        self.albums: list[AlbumRecord] = list(albums or [])
        self.replace_calls = 0

    async def load(self, limit: int | None = None) -> list[AlbumRecord]:
        albums = list(self.albums)
        return albums[:limit] if limit is not None else albums

    async def replace(self, albums: list[AlbumRecord]) -> None:
        self.replace_calls += 1
        self.albums = list(albums)


class InMemoryCredentialStore(ICredentialStore):
    def __init__(self, refresh_token: str | None = None) -> None:
        self.refresh_token = refresh_token

    async def get_refresh_token(self) -> str | None:
        return self.refresh_token

    async def set_refresh_token(self, refresh_token: str) -> None:
        self.refresh_token = refresh_token

    async def clear(self) -> None:
        self.refresh_token = None


class InMemoryHistoryStore(IHistoryStore):
    def __init__(self) -> None:
        self.entries: list[HistoryEntry] = []

    async def latest(self) -> HistoryEntry | None:
        return max(self.entries, key=lambda e: e.timestamp) if self.entries else None

    async def append(self, entry: HistoryEntry) -> None:
        self.entries.append(entry)

    async def list_page(
        self, limit: int, before: int | None = None
    ) -> list[HistoryEntry]:
        newest_first = sorted(self.entries, key=lambda e: e.timestamp, reverse=True)
        if before is not None:
            newest_first = [e for e in newest_first if e.timestamp < before]
        return newest_first[:limit]

    async def list_all(self) -> list[HistoryEntry]:
        return sorted(self.entries, key=lambda e: e.timestamp, reverse=True)


# =============================================================================
# Data builders
# =============================================================================


def make_album(key: str, **overrides: Any) -> AlbumRecord:
    """AlbumRecord whose identity is spotify:album:<key>."""
    fields: dict[str, Any] = {
        "name": f"Album {key}",
        "artist": f"Artist {key}",
        "year": "2020",
        "full_date": "2020-01-01",
        "cover": f"https://i.scdn.co/image/{key}",
        "link": f"https://open.spotify.com/album/{key}",
        "uri": f"spotify:album:{key}",
    }
    fields.update(overrides)
    return AlbumRecord(**fields)


def spotify_item(key: str, artist_id: str | None = None) -> dict[str, Any]:
    """A /me/albums item for album <key>."""
    artist_id = artist_id if artist_id is not None else f"artist-{key}"
    return {
        "added_at": "2024-05-01T10:00:00Z",
        "album": {
            "name": f"Album {key}",
            "uri": f"spotify:album:{key}",
            "release_date": "2020-01-01",
            "popularity": 42,
            "images": [{"url": f"https://i.scdn.co/image/{key}"}],
            "external_urls": {"spotify": f"https://open.spotify.com/album/{key}"},
            "artists": [{"id": artist_id, "name": f"Artist {key}"}],
        },
    }


def albums_page(
    keys: list[str], next_url: str | None = None, total: int | None = None
) -> dict[str, Any]:
    return {
        "items": [spotify_item(k) for k in keys],
        "next": next_url,
        "total": total if total is not None else len(keys),
    }


@pytest.fixture
def album_factory() -> Callable[..., AlbumRecord]:
    return make_album


@pytest.fixture
def item_factory() -> Callable[..., dict[str, Any]]:
    return spotify_item


@pytest.fixture
def page_factory() -> Callable[..., dict[str, Any]]:
    return albums_page


# =============================================================================
# Settings / infrastructure
# =============================================================================


@pytest.fixture
def spotify_settings() -> SpotifySettings:
    return SpotifySettings(
        client_id="test-client-id",
        client_secret="test-client-secret",
        redirect_uri="http://localhost:8000/callback",
    )


@pytest.fixture
def settings(tmp_path: Path, spotify_settings: SpotifySettings) -> Settings:
    return Settings(
        log_level="DEBUG",
        data_dir=tmp_path / "data",
        spotify=spotify_settings,
        database=DatabaseSettings(
            url=f"sqlite+aiosqlite:///{tmp_path / 'data' / 'test.db'}"
        ),
        sync=SyncSettings(),
        observability=ObservabilitySettings(log_json_format=False),
    )


@pytest.fixture
def fast_limiter() -> RateLimiter:
    """Limiter that never makes a test wait."""
    return RateLimiter(
        config=RateLimiterConfig(
            max_tokens=1000, refill_rate=1000.0, initial_backoff_seconds=0.0
        ),
        name="test",
    )


@pytest.fixture
async def database(settings: Settings) -> AsyncGenerator[Database, None]:
    settings.ensure_directories()
    db = Database(settings)
    await db.create_tables()
    yield db
    await db.close()


@pytest.fixture
def snapshot_store() -> InMemorySnapshotStore:
    return InMemorySnapshotStore()


@pytest.fixture
def credential_store() -> InMemoryCredentialStore:
    return InMemoryCredentialStore()


@pytest.fixture
def history_store() -> InMemoryHistoryStore:
    return InMemoryHistoryStore()


# =============================================================================
# API
# =============================================================================


class StaticTokenService:
    """Token service double for API tests."""

    def __init__(self, access_token: str | None = "test-access-token") -> None:
        self.access_token = access_token
        self.invalidated = False
        self.codes: list[str] = []

    async def get_access_token(self) -> str | None:
        return self.access_token

    async def is_authenticated(self) -> bool:
        return self.access_token is not None

    async def complete_authorization(self, code: str) -> None:
        self.codes.append(code)

    def invalidate(self) -> None:
        self.invalidated = True


@pytest.fixture
def token_service_double() -> StaticTokenService:
    return StaticTokenService()


@pytest.fixture
def app(settings: Settings, token_service_double: StaticTokenService):
    app = create_app(settings)
    app.dependency_overrides[get_token_service] = lambda: token_service_double
    return app


@pytest.fixture
def client(app) -> Iterator[TestClient]:
    """TestClient with lifespan (real database under tmp_path, Spotify mocked per test)."""
    with TestClient(app) as test_client:
        yield test_client
