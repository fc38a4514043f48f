"""FastAPI application factory."""

from fastapi import FastAPI

from shelfsync import __version__
from shelfsync.api.exception_handlers import register_exception_handlers
from shelfsync.api.routers import api_router, root_router
from shelfsync.config import Settings
from shelfsync.infrastructure.lifecycle import lifespan
from shelfsync.infrastructure.observability import RequestLoggingMiddleware


def create_app(settings: Settings | None = None) -> FastAPI:
    """Create the FastAPI application.

    Args:
        settings: Explicit settings (tests); defaults to get_settings() at startup
    """
    app = FastAPI(
        title="ShelfSync",
        description="Personal mirror of a Spotify saved-albums library",
        version=__version__,
        lifespan=lifespan,
    )
    if settings is not None:
        app.state.settings = settings

    app.add_middleware(RequestLoggingMiddleware)
    register_exception_handlers(app)

    app.include_router(api_router, prefix="/api")
    app.include_router(root_router)
    return app


app = create_app()
