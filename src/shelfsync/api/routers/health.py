"""Health check endpoints for Docker probes.

- /health        liveness, no dependency checks
- /health/ready  database reachable
"""

from datetime import UTC, datetime
from typing import Any

from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError

from shelfsync import __version__

router = APIRouter()


@router.get("/")
async def index() -> dict[str, Any]:
    return {"name": "shelfsync", "version": __version__}


@router.get("/health")
async def liveness() -> dict[str, Any]:
    return {"status": "ok", "timestamp": datetime.now(UTC).isoformat()}


@router.get("/health/ready", response_model=None)
async def readiness(request: Request) -> dict[str, Any] | JSONResponse:
    """200 when the database answers, 503 otherwise."""
    db = getattr(request.app.state, "db", None)
    if db is None:
        return JSONResponse(status_code=503, content={"status": "not_ready"})
    try:
        async with db.session_scope() as session:
            await session.execute(text("SELECT 1"))
    except SQLAlchemyError:
        return JSONResponse(
            status_code=503, content={"status": "not_ready", "database": False}
        )
    return {"status": "ready", "database": True}
