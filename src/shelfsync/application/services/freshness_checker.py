"""Cheap "has anything changed?" probe against the stored snapshot."""

import logging

from shelfsync.application.sources.spotify_library_source import SpotifyLibrarySource
from shelfsync.domain.entities import AlbumRecord
from shelfsync.domain.exceptions import RemoteServiceError

logger = logging.getLogger(__name__)


class FreshnessChecker:
    """Compares the newest remote saves with the head of the snapshot.

    Fresh iff the probe and snapshot are both non-empty and every probed item
    sits at the same position in the snapshot. Removals deeper in the library
    are not detected here; a forced sync picks those up.
    """

    def __init__(self, source: SpotifyLibrarySource, probe_size: int = 10) -> None:
        self._source = source
        self._probe_size = probe_size

    async def is_fresh(self, access_token: str, cached: list[AlbumRecord]) -> bool:
        """Return True when the snapshot still mirrors the top of the library.

        Raises:
            AuthenticationError: Token rejected (not reported as stale)
        """
        if not cached:
            return False

        try:
            probe = await self._source.probe(access_token, limit=self._probe_size)
        except RemoteServiceError as e:
            logger.warning(
                "Freshness probe failed, treating snapshot as stale: %s", e.message
            )
            return False

        if not probe:
            return False

        for idx, record in enumerate(probe):
            if idx >= len(cached) or cached[idx].identity_key != record.identity_key:
                return False
        return True


__all__ = ["FreshnessChecker"]
