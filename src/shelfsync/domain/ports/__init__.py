"""Domain ports (interfaces) for dependency inversion."""

from abc import ABC, abstractmethod

from shelfsync.domain.entities import AlbumRecord, HistoryEntry


class ISnapshotStore(ABC):
    """Durable ordered store for the library snapshot."""

    @abstractmethod
    async def load(self, limit: int | None = None) -> list[AlbumRecord]:
        """Return the current snapshot in stored order (first `limit` records if given)."""
        pass

    @abstractmethod
    async def replace(self, albums: list[AlbumRecord]) -> None:
        """Atomically replace the whole snapshot."""
        pass


class ICredentialStore(ABC):
    """Holder of the single refresh token."""

    @abstractmethod
    async def get_refresh_token(self) -> str | None:
        pass

    @abstractmethod
    async def set_refresh_token(self, refresh_token: str) -> None:
        pass

    @abstractmethod
    async def clear(self) -> None:
        pass


class IHistoryStore(ABC):
    """Append-only listening history."""

    @abstractmethod
    async def latest(self) -> HistoryEntry | None:
        pass

    @abstractmethod
    async def append(self, entry: HistoryEntry) -> None:
        pass

    @abstractmethod
    async def list_page(
        self, limit: int, before: int | None = None
    ) -> list[HistoryEntry]:
        """Newest-first entries strictly older than `before` (all when None)."""
        pass

    @abstractmethod
    async def list_all(self) -> list[HistoryEntry]:
        pass


__all__ = ["ICredentialStore", "IHistoryStore", "ISnapshotStore"]
