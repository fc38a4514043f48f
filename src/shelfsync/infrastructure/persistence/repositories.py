"""Repository implementations over an AsyncSession.

Repositories never commit. The caller's session scope decides the transaction.
"""

from __future__ import annotations

from typing import Any

from sqlalchemy import delete, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from shelfsync.domain.entities import HistoryEntry

from .models import (
    ListeningHistoryModel,
    SnapshotChunkModel,
    SnapshotPointerModel,
    SpotifyCredentialModel,
    utc_now,
)


class SnapshotRepository:
    """Chunked, generation-versioned snapshot rows.

    Readers resolve the pointer first and read only that generation. Writers
    add a new generation, move the pointer, then drop the old generations.
    """

    def __init__(self, session: AsyncSession) -> None:
        """Initialize repository with database session."""
        self.session = session

    async def get_pointer(self, namespace: str) -> SnapshotPointerModel | None:
        stmt = select(SnapshotPointerModel).where(
            SnapshotPointerModel.namespace == namespace
        )
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none()

    async def load_chunks(
        self, namespace: str, generation: int, max_chunks: int | None = None
    ) -> list[list[dict[str, Any]]]:
        """Return chunk payloads of one generation in key order."""
        stmt = (
            select(SnapshotChunkModel.payload)
            .where(
                SnapshotChunkModel.namespace == namespace,
                SnapshotChunkModel.generation == generation,
            )
            .order_by(SnapshotChunkModel.chunk_key)
        )
        if max_chunks is not None:
            stmt = stmt.limit(max_chunks)
        result = await self.session.execute(stmt)
        return [list(payload) for payload in result.scalars().all()]

    async def list_chunk_keys(self, namespace: str, generation: int) -> list[str]:
        stmt = (
            select(SnapshotChunkModel.chunk_key)
            .where(
                SnapshotChunkModel.namespace == namespace,
                SnapshotChunkModel.generation == generation,
            )
            .order_by(SnapshotChunkModel.chunk_key)
        )
        result = await self.session.execute(stmt)
        return list(result.scalars().all())

    async def next_generation(self, namespace: str) -> int:
        stmt = select(func.max(SnapshotChunkModel.generation)).where(
            SnapshotChunkModel.namespace == namespace
        )
        highest_chunk = (await self.session.execute(stmt)).scalar_one_or_none()
        pointer = await self.get_pointer(namespace)
        highest = max(
            highest_chunk or 0, pointer.generation if pointer is not None else 0
        )
        return highest + 1

    async def add_chunks(
        self,
        namespace: str,
        generation: int,
        chunks: list[tuple[str, list[dict[str, Any]]]],
    ) -> None:
        for chunk_key, payload in chunks:
            self.session.add(
                SnapshotChunkModel(
                    namespace=namespace,
                    generation=generation,
                    chunk_key=chunk_key,
                    payload=payload,
                )
            )
        await self.session.flush()

    async def set_pointer(
        self, namespace: str, generation: int, record_count: int
    ) -> None:
        pointer = await self.get_pointer(namespace)
        if pointer is None:
            self.session.add(
                SnapshotPointerModel(
                    namespace=namespace,
                    generation=generation,
                    record_count=record_count,
                    updated_at=utc_now(),
                )
            )
        else:
            pointer.generation = generation
            pointer.record_count = record_count
            pointer.updated_at = utc_now()
        await self.session.flush()

    async def delete_other_generations(self, namespace: str, keep: int) -> int:
        stmt = delete(SnapshotChunkModel).where(
            SnapshotChunkModel.namespace == namespace,
            SnapshotChunkModel.generation != keep,
        )
        result = await self.session.execute(stmt)
        return int(result.rowcount or 0)


class CredentialRepository:
    """Repository for the stored Spotify refresh token.

    Single-user: manages exactly one row (id='default').
    """

    # Database identifier, not a password
    DEFAULT_ID = "default"  # nosec B105

    def __init__(self, session: AsyncSession) -> None:
        """Initialize repository with database session."""
        self.session = session

    async def get(self) -> SpotifyCredentialModel | None:
        stmt = select(SpotifyCredentialModel).where(
            SpotifyCredentialModel.id == self.DEFAULT_ID
        )
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none()

    # UPSERT: the OAuth callback and token rotation both land here.
    async def upsert(self, refresh_token: str) -> None:
        model = await self.get()
        if model is None:
            self.session.add(
                SpotifyCredentialModel(
                    id=self.DEFAULT_ID,
                    refresh_token=refresh_token,
                    updated_at=utc_now(),
                )
            )
        else:
            model.refresh_token = refresh_token
            model.updated_at = utc_now()
        await self.session.flush()

    async def delete(self) -> None:
        await self.session.execute(
            delete(SpotifyCredentialModel).where(
                SpotifyCredentialModel.id == self.DEFAULT_ID
            )
        )


class HistoryRepository:
    """Repository for listening history, newest first."""

    def __init__(self, session: AsyncSession) -> None:
        """Initialize repository with database session."""
        self.session = session

    @staticmethod
    def _model_to_entity(model: ListeningHistoryModel) -> HistoryEntry:
        return HistoryEntry(
            name=model.name,
            artist=model.artist,
            album=model.album,
            cover=model.cover,
            link=model.link,
            uri=model.uri,
            timestamp=model.timestamp,
            genres=list(model.genres or []),
        )

    async def latest(self) -> HistoryEntry | None:
        stmt = (
            select(ListeningHistoryModel)
            .order_by(ListeningHistoryModel.timestamp.desc())
            .limit(1)
        )
        model = (await self.session.execute(stmt)).scalar_one_or_none()
        return self._model_to_entity(model) if model is not None else None

    async def add(self, entry: HistoryEntry) -> None:
        # merge: two observations within the same millisecond collapse into one row
        await self.session.merge(
            ListeningHistoryModel(
                timestamp=entry.timestamp,
                name=entry.name,
                artist=entry.artist,
                album=entry.album,
                cover=entry.cover,
                link=entry.link,
                uri=entry.uri,
                genres=list(entry.genres),
            )
        )
        await self.session.flush()

    async def list_page(
        self, limit: int, before: int | None = None
    ) -> list[HistoryEntry]:
        stmt = select(ListeningHistoryModel).order_by(
            ListeningHistoryModel.timestamp.desc()
        )
        if before is not None:
            stmt = stmt.where(ListeningHistoryModel.timestamp < before)
        stmt = stmt.limit(limit)
        result = await self.session.execute(stmt)
        return [self._model_to_entity(m) for m in result.scalars().all()]

    async def list_all(self) -> list[HistoryEntry]:
        stmt = select(ListeningHistoryModel).order_by(
            ListeningHistoryModel.timestamp.desc()
        )
        result = await self.session.execute(stmt)
        return [self._model_to_entity(m) for m in result.scalars().all()]


__all__ = ["CredentialRepository", "HistoryRepository", "SnapshotRepository"]
