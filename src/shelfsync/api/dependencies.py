"""Dependency injection for API endpoints."""

from typing import cast

from fastapi import HTTPException, Request

from shelfsync.application.services.history_service import HistoryService
from shelfsync.application.services.library_sync_service import LibrarySyncService
from shelfsync.application.services.token_service import TokenService
from shelfsync.domain.ports import ISnapshotStore
from shelfsync.infrastructure.integrations.spotify_client import SpotifyClient


# Everything is built in lifespan() and lives on app.state. Missing state means
# startup did not complete - 503 instead of an AttributeError 500.
def _from_state(request: Request, name: str) -> object:
    value = getattr(request.app.state, name, None)
    if value is None:
        raise HTTPException(status_code=503, detail=f"{name} not initialized")
    return value


def get_spotify_client(request: Request) -> SpotifyClient:
    return cast(SpotifyClient, _from_state(request, "spotify_client"))


def get_token_service(request: Request) -> TokenService:
    return cast(TokenService, _from_state(request, "token_service"))


def get_snapshot_store(request: Request) -> ISnapshotStore:
    return cast(ISnapshotStore, _from_state(request, "snapshot_store"))


def get_sync_service(request: Request) -> LibrarySyncService:
    return cast(LibrarySyncService, _from_state(request, "sync_service"))


def get_history_service(request: Request) -> HistoryService:
    return cast(HistoryService, _from_state(request, "history_service"))
