"""ShelfSync - personal mirror of a Spotify saved-album library."""

__version__ = "0.1.0"
