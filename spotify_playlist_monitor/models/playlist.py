"""Playlist data models."""

from dataclasses import dataclass, field, replace
from datetime import datetime
from typing import Any, Dict, List, Optional, Tuple

from .track import Track


@dataclass(frozen=True)
class PlaylistInfo:
    """Playlist metadata captured at the start of a fetch."""

    name: str
    owner: Optional[str] = None
    total: int = 0  # Total reported by Spotify, may exceed the usable tracks
    spotify_url: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        """Serialize for JSON responses."""
        return {
            'name': self.name,
            'owner': self.owner,
            'total': self.total,
            'spotifyUrl': self.spotify_url,
        }


@dataclass
class PlaylistSnapshot:
    """Last persisted state of one monitored playlist."""

    playlist_id: str
    playlist_name: str
    owner: Optional[str] = None
    spotify_url: Optional[str] = None
    total_songs: int = 0
    tracks: List[Track] = field(default_factory=list)
    last_checked: Optional[datetime] = None
    created_at: Optional[datetime] = None

    @classmethod
    def from_fetch(
        cls,
        playlist_id: str,
        info: PlaylistInfo,
        tracks: List[Track],
        checked_at: datetime
    ) -> 'PlaylistSnapshot':
        """Build the first snapshot of a playlist from fetched data."""
        return cls(
            playlist_id=playlist_id,
            playlist_name=info.name,
            owner=info.owner,
            spotify_url=info.spotify_url,
            total_songs=info.total,
            tracks=list(tracks),
            last_checked=checked_at,
            created_at=checked_at
        )

    def replaced(
        self,
        info: PlaylistInfo,
        tracks: List[Track],
        checked_at: datetime
    ) -> 'PlaylistSnapshot':
        """Return a new snapshot holding the given listing and metadata.

        The receiver is left untouched.
        """
        return replace(
            self,
            playlist_name=info.name,
            owner=info.owner,
            spotify_url=info.spotify_url,
            total_songs=info.total,
            tracks=list(tracks),
            last_checked=checked_at
        )

    def display_order(self) -> List[Tuple[int, Track]]:
        """Pair each track with a contiguous 1-based index.

        Stored positions keep the gaps left by unavailable entries, so they
        are not suitable for numbering a listing.
        """
        return list(enumerate(self.tracks, start=1))
