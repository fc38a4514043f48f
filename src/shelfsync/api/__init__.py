"""HTTP API for ShelfSync.

- routers/: endpoints (library, history, auth, health)
- dependencies.py: app.state lookups for Depends()
- exception_handlers.py: domain exception -> HTTP response
- main.py: create_app()
"""

from shelfsync.api.routers import api_router, root_router

__all__ = ["api_router", "root_router"]
