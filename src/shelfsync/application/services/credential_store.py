"""Database-backed holder of the Spotify refresh token."""

from shelfsync.domain.ports import ICredentialStore
from shelfsync.infrastructure.persistence.database import Database
from shelfsync.infrastructure.persistence.repositories import CredentialRepository


class DatabaseCredentialStore(ICredentialStore):
    """ICredentialStore over the spotify_credentials table."""

    def __init__(self, database: Database) -> None:
        self._database = database

    async def get_refresh_token(self) -> str | None:
        async with self._database.session_scope() as session:
            model = await CredentialRepository(session).get()
            return model.refresh_token if model is not None else None

    async def set_refresh_token(self, refresh_token: str) -> None:
        async with self._database.session_scope() as session:
            await CredentialRepository(session).upsert(refresh_token)

    async def clear(self) -> None:
        async with self._database.session_scope() as session:
            await CredentialRepository(session).delete()


__all__ = ["DatabaseCredentialStore"]
