"""Result of a single playlist check."""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from .playlist import PlaylistInfo
from .track import Track


@dataclass
class CheckResult:
    """Outcome of one orchestrated playlist check (never persisted)."""

    playlist_id: str
    success: bool
    message: str
    new_songs: List[Track] = field(default_factory=list)
    playlist: Optional[PlaylistInfo] = None
    notification_attempted: bool = False
    email_sent: Optional[bool] = None
    is_first_check: bool = False
    error: Optional[str] = None

    @classmethod
    def failure(cls, playlist_id: str, error: Exception) -> 'CheckResult':
        """Build a failed result from an error."""
        return cls(
            playlist_id=playlist_id,
            success=False,
            message=f"Failed to check playlist {playlist_id}",
            error=str(error) or error.__class__.__name__
        )

    def to_dict(self) -> Dict[str, Any]:
        """Serialize for JSON responses."""
        return {
            'playlistId': self.playlist_id,
            'success': self.success,
            'message': self.message,
            'newSongs': [track.to_dict() for track in self.new_songs],
            'playlist': self.playlist.to_dict() if self.playlist else None,
            'notificationAttempted': self.notification_attempted,
            'emailSent': self.email_sent,
            'isFirstCheck': self.is_first_check,
            'error': self.error,
        }
