"""Domain entities for the library mirror."""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any


# AlbumRecord is what the browser UI renders and what the snapshot stores.
# Only uri is stable across syncs, so identity_key is the one thing reconciliation
# compares. link is a fallback for records written before uri existed.
@dataclass(frozen=True)
class AlbumRecord:
    """One album saved in the user's Spotify library."""

    name: str
    artist: str
    year: str
    full_date: str
    cover: str
    link: str
    uri: str
    genres: list[str] = field(default_factory=list)
    popularity: int = 0
    added_at: str | None = None

    @property
    def identity_key(self) -> str:
        """Stable key used for matching and deduplication."""
        return self.uri or self.link

    def to_dict(self) -> dict[str, Any]:
        """Serialize to the JSON shape served by the API and stored in chunks."""
        return {
            "name": self.name,
            "artist": self.artist,
            "year": self.year,
            "full_date": self.full_date,
            "cover": self.cover,
            "link": self.link,
            "uri": self.uri,
            "genres": list(self.genres),
            "popularity": self.popularity,
            "added_at": self.added_at,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "AlbumRecord":
        """Build a record from a stored chunk entry.

        Tolerates missing optional keys so snapshots written by older
        versions still load.
        """
        return cls(
            name=data.get("name", ""),
            artist=data.get("artist", ""),
            year=data.get("year", ""),
            full_date=data.get("full_date", ""),
            cover=data.get("cover", ""),
            link=data.get("link", ""),
            uri=data.get("uri", ""),
            genres=list(data.get("genres") or []),
            popularity=int(data.get("popularity") or 0),
            added_at=data.get("added_at"),
        )

    @classmethod
    def from_spotify(
        cls, item: dict[str, Any], genres: list[str] | None = None
    ) -> "AlbumRecord":
        """Build a record from a /me/albums item ({"added_at": ..., "album": {...}})."""
        album = item.get("album") or {}
        artists = album.get("artists") or []
        release_date = album.get("release_date") or ""
        images = album.get("images") or []
        return cls(
            name=album.get("name") or "",
            artist=", ".join(a.get("name") or "" for a in artists),
            year=release_date.split("-")[0],
            full_date=release_date,
            cover=images[0].get("url", "") if images else "",
            link=(album.get("external_urls") or {}).get("spotify", ""),
            uri=album.get("uri") or "",
            genres=list(genres or []),
            popularity=album.get("popularity") or 0,
            added_at=item.get("added_at"),
        )


def lead_artist_id(item: dict[str, Any]) -> str:
    """Return the first artist's ID of a /me/albums item, or "" when absent."""
    artists = (item.get("album") or {}).get("artists") or []
    if not artists:
        return ""
    return artists[0].get("id") or ""


@dataclass(frozen=True)
class HistoryEntry:
    """A played-track observation, keyed by millisecond timestamp."""

    name: str
    artist: str
    album: str
    cover: str
    link: str
    uri: str
    timestamp: int
    genres: list[str] = field(default_factory=list)

    def is_same_track(self, other: "HistoryEntry | None") -> bool:
        """Two observations are the same play when name and artist agree."""
        if other is None:
            return False
        return self.name == other.name and self.artist == other.artist

    def to_dict(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "artist": self.artist,
            "album": self.album,
            "cover": self.cover,
            "link": self.link,
            "uri": self.uri,
            "timestamp": self.timestamp,
            "genres": list(self.genres),
        }


class SyncState(str, Enum):
    """Lifecycle of the sync orchestrator."""

    IDLE = "idle"
    CHECKING = "checking"
    FRESH = "fresh"
    SYNCING = "syncing"


class SyncStatus(str, Enum):
    """Outcome reported to the caller of a sync."""

    FRESH = "fresh"
    UPDATED = "updated"
    UNAUTHORIZED = "unauthorized"
    FAILED = "failed"


@dataclass
class SyncResult:
    """Result of one sync request."""

    status: SyncStatus
    albums: list[AlbumRecord] = field(default_factory=list)
    error: str | None = None
    incremental: bool = False

    @property
    def count(self) -> int:
        return len(self.albums)

    @property
    def ok(self) -> bool:
        return self.status in (SyncStatus.FRESH, SyncStatus.UPDATED)

    def to_dict(self) -> dict[str, Any]:
        if not self.ok:
            return {"status": self.status.value, "error": self.error}
        return {
            "status": self.status.value,
            "count": self.count,
            "albums": [album.to_dict() for album in self.albums],
        }


__all__ = [
    "AlbumRecord",
    "HistoryEntry",
    "SyncResult",
    "SyncState",
    "SyncStatus",
    "lead_artist_id",
]
