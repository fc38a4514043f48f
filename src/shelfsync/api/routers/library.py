"""Library endpoints: stored snapshot and sync trigger."""

import logging
from typing import Any

from fastapi import APIRouter, Depends, Query
from fastapi.responses import JSONResponse

from shelfsync.api.dependencies import (
    get_snapshot_store,
    get_sync_service,
    get_token_service,
)
from shelfsync.application.services.library_sync_service import LibrarySyncService
from shelfsync.application.services.token_service import TokenService
from shelfsync.domain.entities import SyncStatus
from shelfsync.domain.ports import ISnapshotStore

logger = logging.getLogger(__name__)

router = APIRouter()

_FALSE_VALUES = {"0", "false", "no", "off"}


def is_forced(force: str | None) -> bool:
    """`?force`, `?force=1`, `?force=true` force; absent or false-y values don't."""
    if force is None:
        return False
    return force.strip().lower() not in _FALSE_VALUES


def unauthorized() -> JSONResponse:
    return JSONResponse(status_code=401, content={"error": "Unauthorized"})


@router.get("/albums")
async def list_albums(
    store: ISnapshotStore = Depends(get_snapshot_store),
) -> dict[str, Any]:
    """Return the stored snapshot (empty list before the first sync)."""
    albums = await store.load()
    return {"albums": [album.to_dict() for album in albums]}


@router.get("/sync", response_model=None)
async def sync_library(
    force: str | None = Query(default=None),
    token_service: TokenService = Depends(get_token_service),
    sync_service: LibrarySyncService = Depends(get_sync_service),
) -> dict[str, Any] | JSONResponse:
    """Sync the saved-albums library.

    Returns {"status": "fresh"|"updated", "count", "albums"}.
    401 without a usable token, 502 when Spotify fails mid-sync.
    """
    access_token = await token_service.get_access_token()
    if not access_token:
        return unauthorized()

    result = await sync_service.sync(access_token, force=is_forced(force))

    if result.status == SyncStatus.UNAUTHORIZED:
        # Access token was revoked early; the next request refreshes
        token_service.invalidate()
        return unauthorized()
    if result.status == SyncStatus.FAILED:
        return JSONResponse(status_code=502, content={"error": result.error})
    return result.to_dict()
