"""Application services."""

from shelfsync.application.services.credential_store import DatabaseCredentialStore
from shelfsync.application.services.freshness_checker import FreshnessChecker
from shelfsync.application.services.history_service import (
    DatabaseHistoryStore,
    HistoryService,
)
from shelfsync.application.services.library_reconciler import (
    ReconcileResult,
    merge_with_cache,
    reconcile,
)
from shelfsync.application.services.library_sync_service import LibrarySyncService
from shelfsync.application.services.snapshot_store import DatabaseSnapshotStore
from shelfsync.application.services.token_service import TokenService

__all__ = [
    "DatabaseCredentialStore",
    "DatabaseHistoryStore",
    "DatabaseSnapshotStore",
    "FreshnessChecker",
    "HistoryService",
    "LibrarySyncService",
    "ReconcileResult",
    "TokenService",
    "merge_with_cache",
    "reconcile",
]
