"""External service integrations."""

from shelfsync.infrastructure.integrations.spotify_client import SpotifyClient

__all__ = ["SpotifyClient"]
