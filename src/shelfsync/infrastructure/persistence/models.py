"""SQLAlchemy ORM models for ShelfSync."""

from datetime import UTC, datetime
from typing import Any

import sqlalchemy as sa
from sqlalchemy import JSON, BigInteger, Index, Integer, String, Text, func
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


def utc_now() -> datetime:
    """Get current UTC time."""
    return datetime.now(UTC)


class Base(DeclarativeBase):
    """Base class for all ORM models."""

    pass


# Hey future me - the snapshot is NOT one row per album! It's stored in chunks of
# 50 records, each chunk a JSON list under a zero-padded key ("0000", "0001", ...).
# Key order == album order. Every replace writes a brand-new generation and then
# flips SnapshotPointerModel, so a reader never sees half of an old snapshot and
# half of a new one.
class SnapshotChunkModel(Base):
    """One chunk of a stored snapshot generation."""

    __tablename__ = "snapshot_chunks"

    namespace: Mapped[str] = mapped_column(String(64), primary_key=True)
    generation: Mapped[int] = mapped_column(Integer, primary_key=True)
    chunk_key: Mapped[str] = mapped_column(String(16), primary_key=True)
    payload: Mapped[list[dict[str, Any]]] = mapped_column(JSON, nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        sa.DateTime(timezone=True), nullable=False, server_default=func.now()
    )


class SnapshotPointerModel(Base):
    """Which generation of a namespace is current."""

    __tablename__ = "snapshot_pointers"

    namespace: Mapped[str] = mapped_column(String(64), primary_key=True)
    generation: Mapped[int] = mapped_column(Integer, nullable=False)
    record_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    updated_at: Mapped[datetime] = mapped_column(
        sa.DateTime(timezone=True),
        nullable=False,
        server_default=func.now(),
        onupdate=func.now(),
    )


class SpotifyCredentialModel(Base):
    """Stored Spotify refresh token.

    Single-user: exactly one row with id='default'. Never returned by the API.
    """

    __tablename__ = "spotify_credentials"

    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    # NOT encrypted; the database file must be private to the server
    refresh_token: Mapped[str] = mapped_column(Text, nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        sa.DateTime(timezone=True), nullable=False, server_default=func.now()
    )
    updated_at: Mapped[datetime] = mapped_column(
        sa.DateTime(timezone=True),
        nullable=False,
        server_default=func.now(),
        onupdate=func.now(),
    )


class ListeningHistoryModel(Base):
    """A played-track observation, keyed by millisecond timestamp."""

    __tablename__ = "listening_history"

    timestamp: Mapped[int] = mapped_column(
        BigInteger, primary_key=True, autoincrement=False
    )
    name: Mapped[str] = mapped_column(Text, nullable=False)
    artist: Mapped[str] = mapped_column(Text, nullable=False)
    album: Mapped[str] = mapped_column(Text, nullable=False, default="")
    cover: Mapped[str] = mapped_column(Text, nullable=False, default="")
    link: Mapped[str] = mapped_column(Text, nullable=False, default="")
    uri: Mapped[str] = mapped_column(String(128), nullable=False, default="")
    genres: Mapped[list[str]] = mapped_column(
        JSON, nullable=False, default=list, server_default="[]"
    )

    __table_args__ = (Index("ix_listening_history_uri", "uri"),)
