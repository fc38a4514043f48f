"""Now-playing and listening history endpoints."""

from typing import Any

from fastapi import APIRouter, Depends, Query

from shelfsync.api.dependencies import get_history_service, get_token_service
from shelfsync.application.services.history_service import HistoryService
from shelfsync.application.services.token_service import TokenService

router = APIRouter()


@router.get("/now-playing")
async def now_playing(
    token_service: TokenService = Depends(get_token_service),
    history_service: HistoryService = Depends(get_history_service),
) -> dict[str, Any]:
    """Current track; also records it in the history when it changed."""
    access_token = await token_service.get_access_token()
    if not access_token:
        return {"playing": False}
    return await history_service.now_playing(access_token)


@router.get("/history")
async def list_history(
    limit: int = Query(default=6, ge=1, le=100),
    cursor: int | None = Query(default=None),
    history_service: HistoryService = Depends(get_history_service),
) -> dict[str, Any]:
    """Newest-first page of history; pass nextCursor back as cursor."""
    entries, next_cursor = await history_service.list_history(limit, cursor)
    return {
        "history": [entry.to_dict() for entry in entries],
        "nextCursor": next_cursor,
    }


@router.get("/history/all")
async def list_all_history(
    history_service: HistoryService = Depends(get_history_service),
) -> dict[str, Any]:
    entries = await history_service.list_all()
    return {"history": [entry.to_dict() for entry in entries]}
