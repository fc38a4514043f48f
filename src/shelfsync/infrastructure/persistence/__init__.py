"""Persistence layer - SQLAlchemy async engine, models and repositories."""

from shelfsync.infrastructure.persistence.database import Database
from shelfsync.infrastructure.persistence.repositories import (
    CredentialRepository,
    HistoryRepository,
    SnapshotRepository,
)

__all__ = [
    "CredentialRepository",
    "Database",
    "HistoryRepository",
    "SnapshotRepository",
]
