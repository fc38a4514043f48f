"""Custom exception handlers for FastAPI application.

Domain exceptions that escape a route become JSON {"error": message} with a
status code matching the failure. Nothing leaks as a bare 500 with a trace.
"""

import logging

from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse

from shelfsync.domain.exceptions import (
    AuthenticationError,
    ConfigurationError,
    DomainException,
    RemoteServiceError,
    TokenRefreshException,
)

logger = logging.getLogger(__name__)


def register_exception_handlers(app: FastAPI) -> None:
    """Register handlers mapping domain exceptions to HTTP responses.

    - AuthenticationError, TokenRefreshException -> 401
    - RemoteServiceError -> 502
    - ConfigurationError -> 503
    - any other DomainException -> 400

    Args:
        app: FastAPI application instance
    """

    @app.exception_handler(AuthenticationError)
    async def authentication_error_handler(
        request: Request, exc: AuthenticationError
    ) -> JSONResponse:
        logger.info("Unauthorized at %s: %s", request.url.path, exc.message)
        return JSONResponse(
            status_code=status.HTTP_401_UNAUTHORIZED,
            content={"error": "Unauthorized"},
        )

    @app.exception_handler(TokenRefreshException)
    async def token_refresh_error_handler(
        request: Request, exc: TokenRefreshException
    ) -> JSONResponse:
        logger.warning("Token refresh failed at %s: %s", request.url.path, exc.message)
        return JSONResponse(
            status_code=status.HTTP_401_UNAUTHORIZED,
            content={"error": "Unauthorized"},
        )

    @app.exception_handler(RemoteServiceError)
    async def remote_service_error_handler(
        request: Request, exc: RemoteServiceError
    ) -> JSONResponse:
        logger.error(
            "Spotify error at %s: %s",
            request.url.path,
            exc.message,
            extra={"status_code": exc.status_code, "remote_url": exc.url},
        )
        return JSONResponse(
            status_code=status.HTTP_502_BAD_GATEWAY,
            content={"error": exc.message},
        )

    @app.exception_handler(ConfigurationError)
    async def configuration_error_handler(
        request: Request, exc: ConfigurationError
    ) -> JSONResponse:
        logger.error("Configuration error at %s: %s", request.url.path, exc.message)
        return JSONResponse(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            content={"error": exc.message},
        )

    @app.exception_handler(DomainException)
    async def domain_exception_handler(
        request: Request, exc: DomainException
    ) -> JSONResponse:
        logger.warning("Domain error at %s: %s", request.url.path, exc.message)
        return JSONResponse(
            status_code=status.HTTP_400_BAD_REQUEST,
            content={"error": exc.message},
        )
