"""Domain exceptions."""

from typing import Any


class DomainException(Exception):
    """Base exception for all domain exceptions."""

    # message is kept as an attribute so handlers can read it without str() parsing.
    def __init__(self, message: str, *args: Any) -> None:
        super().__init__(message, *args)
        self.message = message


class ConfigurationError(DomainException):
    """Application misconfiguration.

    Raised when required configuration is missing or invalid.

    HTTP Status: 503 (Service Unavailable)

    Example:
        raise ConfigurationError("SPOTIFY_CLIENT_ID is not configured")
    """

    pass


class AuthenticationError(DomainException):
    """No usable Spotify token, or Spotify answered 401.

    HTTP Status: 401

    Example:
        raise AuthenticationError("No refresh token stored")
    """

    pass


class TokenRefreshException(DomainException):
    """Raised when the refresh grant is rejected and re-authentication is required.

    Common causes:
    - User revoked app access in Spotify settings
    - App credentials changed
    - Refresh token was rotated and the old one is no longer accepted
    """

    def __init__(
        self,
        message: str = "Token refresh failed. Please re-authenticate with Spotify.",
        error_code: str | None = None,
        http_status: int | None = None,
    ) -> None:
        super().__init__(message)
        self.error_code = error_code  # e.g., "invalid_grant"
        self.http_status = http_status  # e.g., 400, 401

    @property
    def requires_reauth(self) -> bool:
        """Check if error requires user re-authentication."""
        return self.error_code == "invalid_grant" or self.http_status in (400, 401, 403)


class RemoteServiceError(DomainException):
    """Spotify returned a non-2xx response, timed out, or the transport failed.

    HTTP Status: 502 (Bad Gateway)

    Example:
        raise RemoteServiceError("Spotify API error: 503", status_code=503, url=url)
    """

    def __init__(
        self,
        message: str,
        status_code: int | None = None,
        url: str | None = None,
    ) -> None:
        super().__init__(message)
        self.status_code = status_code
        self.url = url


class EmptyPageError(DomainException):
    """A library page payload carried no item list.

    Not a failure: callers treat it as "no items" and stop paginating.
    """

    def __init__(self, url: str) -> None:
        super().__init__(f"No items in library page {url}")
        self.url = url


class GenreLookupError(DomainException):
    """Batched artist genre lookup failed.

    Non-fatal - the library source catches it and falls back to empty genres.
    """

    pass


__all__ = [
    "AuthenticationError",
    "ConfigurationError",
    "DomainException",
    "EmptyPageError",
    "GenreLookupError",
    "RemoteServiceError",
    "TokenRefreshException",
]
