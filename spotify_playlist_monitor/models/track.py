"""Track data models."""

from dataclasses import dataclass
from datetime import datetime
from typing import Any, Dict, Optional


@dataclass(frozen=True)
class Track:
    """A single playlist entry as observed at fetch time."""

    track_id: str
    name: str = ""
    artists: str = ""  # Artist names joined with ", "
    album: Optional[str] = None
    added_at: Optional[datetime] = None  # When added to the playlist on Spotify
    position: int = 0  # 1-based slot in the listing at fetch time

    def to_dict(self) -> Dict[str, Any]:
        """Serialize for JSON responses."""
        return {
            'trackId': self.track_id,
            'name': self.name,
            'artists': self.artists,
            'album': self.album,
            'addedAt': self.added_at.isoformat() if self.added_at else None,
            'position': self.position,
        }
