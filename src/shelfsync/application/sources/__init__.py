"""Remote sources the library is mirrored from."""

from shelfsync.application.sources.spotify_library_source import (
    LibraryPage,
    SpotifyLibrarySource,
)

__all__ = ["LibraryPage", "SpotifyLibrarySource"]
