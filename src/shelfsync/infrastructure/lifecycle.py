"""Application lifecycle management for startup and shutdown tasks.

Everything the routers need is built once here and attached to app.state:

- app.state.db              Database (engine + session_scope)
- app.state.spotify_client  SpotifyClient (one shared httpx.AsyncClient)
- app.state.token_service   TokenService
- app.state.snapshot_store  DatabaseSnapshotStore
- app.state.sync_service    LibrarySyncService
- app.state.history_service HistoryService
"""

import logging
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from fastapi import FastAPI

from shelfsync.application.services.credential_store import DatabaseCredentialStore
from shelfsync.application.services.freshness_checker import FreshnessChecker
from shelfsync.application.services.history_service import (
    DatabaseHistoryStore,
    HistoryService,
)
from shelfsync.application.services.library_sync_service import LibrarySyncService
from shelfsync.application.services.snapshot_store import DatabaseSnapshotStore
from shelfsync.application.services.token_service import TokenService
from shelfsync.application.sources.spotify_library_source import SpotifyLibrarySource
from shelfsync.config import Settings, get_settings
from shelfsync.domain.exceptions import ConfigurationError
from shelfsync.infrastructure.integrations.spotify_client import SpotifyClient
from shelfsync.infrastructure.observability import configure_logging
from shelfsync.infrastructure.persistence import Database

logger = logging.getLogger(__name__)


# Runs before the engine exists so a bad path fails startup with a clear message.
# SQLite also needs to create -journal/-wal files next to the database.
def _validate_sqlite_path(settings: Settings) -> None:
    """Ensure the SQLite database directory exists and is writable."""
    db_path = settings._get_sqlite_db_path()
    if db_path is None:
        return

    try:
        if db_path.parent and str(db_path.parent) != ".":
            db_path.parent.mkdir(parents=True, exist_ok=True)
        test_file = db_path.parent / f".{db_path.stem}_write_test"
        test_file.write_bytes(b"test")
        test_file.unlink()
    except OSError as exc:
        raise ConfigurationError(
            f"Unable to write files in database directory '{db_path.parent}': {exc}. "
            "Update DATABASE_URL or adjust directory permissions."
        ) from exc


def build_services(app: FastAPI, settings: Settings, db: Database) -> None:
    """Wire the services for one application instance onto app.state."""
    spotify_client = SpotifyClient(settings.spotify)
    source = SpotifyLibrarySource(spotify_client, page_size=settings.sync.page_size)
    snapshot_store = DatabaseSnapshotStore(db, chunk_size=settings.sync.chunk_size)

    app.state.spotify_client = spotify_client
    app.state.snapshot_store = snapshot_store
    app.state.token_service = TokenService(
        spotify_client, DatabaseCredentialStore(db)
    )
    app.state.sync_service = LibrarySyncService(
        source=source,
        store=snapshot_store,
        freshness=FreshnessChecker(
            source, probe_size=settings.sync.freshness_probe_size
        ),
        match_window=settings.sync.match_window,
        max_new_items=settings.sync.max_new_items,
    )
    app.state.history_service = HistoryService(
        spotify_client, source, DatabaseHistoryStore(db)
    )


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan manager.

    Startup: logging, data directory, database, services.
    Shutdown: HTTP client and database connections are closed.
    """
    settings: Settings = getattr(app.state, "settings", None) or get_settings()

    configure_logging(
        log_level=settings.log_level,
        json_format=settings.observability.log_json_format,
    )
    logger.info("Starting application: %s", settings.app_name)

    settings.ensure_directories()
    _validate_sqlite_path(settings)

    db = Database(settings)
    app.state.db = db
    try:
        if settings.database.auto_create_tables:
            await db.create_tables()
        logger.info("Database initialized: %s", settings.database.url)

        build_services(app, settings, db)
        if not settings.spotify.is_configured:
            logger.warning(
                "Spotify client credentials are not configured; /login will fail"
            )

        yield
    finally:
        logger.info("Shutting down application")

        spotify_client = getattr(app.state, "spotify_client", None)
        if spotify_client is not None:
            await spotify_client.close()
            logger.info("Spotify HTTP client closed")

        await db.close()
        logger.info("Database connection closed")
