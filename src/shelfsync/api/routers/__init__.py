"""API router initialization.

api_router is mounted at /api in main.py. OAuth redirects (/login, /callback)
and health checks live at the root, outside /api.
"""

from fastapi import APIRouter

from shelfsync.api.routers import auth, health, history, library

api_router = APIRouter()
api_router.include_router(library.router, tags=["Library"])
api_router.include_router(history.router, tags=["History"])
api_router.include_router(auth.api_router, prefix="/auth", tags=["Authentication"])

root_router = APIRouter()
root_router.include_router(auth.router, tags=["Authentication"])
root_router.include_router(health.router, tags=["Health"])

__all__ = ["api_router", "auth", "health", "history", "library", "root_router"]
