"""Incremental reconciliation of a fresh first page against the stored snapshot.

Hey future me - this is what keeps a sync down to ONE page request in the common
case. Saved albums are newest-first, so a handful of new saves shows up as a
short run of unknown albums followed by the head of the old snapshot. We look
for that seam: the smallest offset i where match_window consecutive page items
line up 1:1 with a run in the snapshot. Everything before i is new, and the old
snapshot follows (minus anything that was re-saved and moved to the front).

If the user removed or reordered albums near the top, the seam won't line up and
the caller falls back to a full resync.
"""

import logging
from dataclasses import dataclass, field

from shelfsync.domain.entities import AlbumRecord

logger = logging.getLogger(__name__)

NO_PARTIAL_MATCH = "No partial cache sequence found"


@dataclass
class ReconcileResult:
    """Outcome of reconcile().

    matched=False is the "no partial match" signal, not an error. The caller
    then pages through the whole library.
    """

    matched: bool
    albums: list[AlbumRecord] = field(default_factory=list)
    lead_count: int = 0
    cache_index: int | None = None
    reason: str | None = None


def _window_matches(
    window: list[AlbumRecord], cached: list[AlbumRecord], start: int
) -> bool:
    candidate = cached[start : start + len(window)]
    if len(candidate) != len(window):
        return False
    return all(
        new.identity_key == old.identity_key for new, old in zip(window, candidate)
    )


def find_merge_point(
    items: list[AlbumRecord],
    cached: list[AlbumRecord],
    match_window: int,
    max_new_items: int,
) -> tuple[int, int] | None:
    """Find the smallest page offset whose window lines up with the snapshot.

    Returns:
        (page_offset, cache_index) or None when no window matches
    """
    if not cached or match_window < 1:
        return None

    # First occurrence only; identity keys are unique within a snapshot.
    positions: dict[str, int] = {}
    for idx, record in enumerate(cached):
        positions.setdefault(record.identity_key, idx)

    last_offset = min(len(items) - match_window, max_new_items - 1)
    for i in range(last_offset + 1):
        window = items[i : i + match_window]
        overlap_index = positions.get(window[0].identity_key)
        if overlap_index is None:
            continue
        if _window_matches(window, cached, overlap_index):
            return i, overlap_index
    return None


def merge_with_cache(
    new_lead: list[AlbumRecord], cached: list[AlbumRecord]
) -> list[AlbumRecord]:
    """Prepend new_lead to cached, dropping old copies of anything in new_lead."""
    lead_keys = {record.identity_key for record in new_lead}
    deduped_old = [record for record in cached if record.identity_key not in lead_keys]
    return list(new_lead) + deduped_old


def reconcile(
    items: list[AlbumRecord],
    cached: list[AlbumRecord],
    match_window: int = 10,
    max_new_items: int = 45,
) -> ReconcileResult:
    """Merge a freshly fetched first page into the stored snapshot.

    Args:
        items: First remote page, newest first
        cached: Stored snapshot in stored order (may be empty)
        match_window: Consecutive items that must line up to accept a merge point
        max_new_items: Upper bound on new items ahead of the merge point

    Returns:
        ReconcileResult; matched=False means a full resync is required
    """
    merge_point = find_merge_point(items, cached, match_window, max_new_items)
    if merge_point is None:
        logger.debug(
            "Reconcile: no match (page=%d, cached=%d, window=%d)",
            len(items),
            len(cached),
            match_window,
        )
        return ReconcileResult(matched=False, reason=NO_PARTIAL_MATCH)

    lead_count, cache_index = merge_point
    merged = merge_with_cache(items[:lead_count], cached)
    logger.debug(
        "Reconcile: %d new item(s), snapshot matched at index %d",
        lead_count,
        cache_index,
    )
    return ReconcileResult(
        matched=True,
        albums=merged,
        lead_count=lead_count,
        cache_index=cache_index,
    )


__all__ = [
    "NO_PARTIAL_MATCH",
    "ReconcileResult",
    "find_merge_point",
    "merge_with_cache",
    "reconcile",
]
