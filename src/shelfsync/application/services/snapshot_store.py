"""Database-backed snapshot store.

Hey future me - the snapshot is chunked, not one row per album. A library of
130 albums becomes chunks "0000" (50), "0001" (50), "0002" (30). Reading all
chunks in key order gives back the remote order at the time of the last sync.

replace() is all-or-nothing: new generation + pointer flip + cleanup happen in
ONE session scope. If anything raises, the old snapshot stays untouched.
"""

import logging
from typing import Any

from shelfsync.domain.entities import AlbumRecord
from shelfsync.domain.ports import ISnapshotStore
from shelfsync.infrastructure.persistence.database import Database
from shelfsync.infrastructure.persistence.repositories import SnapshotRepository

logger = logging.getLogger(__name__)

DEFAULT_NAMESPACE = "albums"
DEFAULT_CHUNK_SIZE = 50


def chunk_key(index: int) -> str:
    """Zero-padded four-digit key, so lexical order == numeric order."""
    return str(index).zfill(4)


def chunk_records(
    albums: list[AlbumRecord], chunk_size: int = DEFAULT_CHUNK_SIZE
) -> list[tuple[str, list[dict[str, Any]]]]:
    """Split albums into (key, payload) chunks of at most chunk_size records."""
    if chunk_size < 1:
        raise ValueError("chunk_size must be >= 1")
    return [
        (
            chunk_key(index),
            [album.to_dict() for album in albums[start : start + chunk_size]],
        )
        for index, start in enumerate(range(0, len(albums), chunk_size))
    ]


class DatabaseSnapshotStore(ISnapshotStore):
    """ISnapshotStore over the snapshot_chunks/snapshot_pointers tables."""

    def __init__(
        self,
        database: Database,
        namespace: str = DEFAULT_NAMESPACE,
        chunk_size: int = DEFAULT_CHUNK_SIZE,
    ) -> None:
        self._database = database
        self._namespace = namespace
        self._chunk_size = chunk_size

    async def load(self, limit: int | None = None) -> list[AlbumRecord]:
        """Return the current snapshot, or [] when nothing was ever stored.

        With `limit`, only as many chunks as needed are read.
        """
        async with self._database.session_scope() as session:
            repo = SnapshotRepository(session)
            pointer = await repo.get_pointer(self._namespace)
            if pointer is None:
                return []
            max_chunks = None
            if limit is not None:
                max_chunks = -(-limit // self._chunk_size)
            payloads = await repo.load_chunks(
                self._namespace, pointer.generation, max_chunks=max_chunks
            )

        albums = [
            AlbumRecord.from_dict(raw) for payload in payloads for raw in payload
        ]
        return albums[:limit] if limit is not None else albums

    async def replace(self, albums: list[AlbumRecord]) -> None:
        """Atomically replace the whole snapshot with `albums`."""
        chunks = chunk_records(albums, self._chunk_size)
        async with self._database.session_scope() as session:
            repo = SnapshotRepository(session)
            generation = await repo.next_generation(self._namespace)
            await repo.add_chunks(self._namespace, generation, chunks)
            await repo.set_pointer(self._namespace, generation, len(albums))
            removed = await repo.delete_other_generations(self._namespace, generation)

        logger.info(
            "Snapshot '%s' replaced: %d records in %d chunks "
            "(generation %d, %d stale chunks removed)",
            self._namespace,
            len(albums),
            len(chunks),
            generation,
            removed,
        )

    async def chunk_keys(self) -> list[str]:
        """Keys of the current generation's chunks, in order."""
        async with self._database.session_scope() as session:
            repo = SnapshotRepository(session)
            pointer = await repo.get_pointer(self._namespace)
            if pointer is None:
                return []
            return await repo.list_chunk_keys(self._namespace, pointer.generation)


__all__ = [
    "DEFAULT_CHUNK_SIZE",
    "DEFAULT_NAMESPACE",
    "DatabaseSnapshotStore",
    "chunk_key",
    "chunk_records",
]
