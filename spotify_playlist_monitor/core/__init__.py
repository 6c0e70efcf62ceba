"""Core functionality for Spotify Playlist Monitor."""

from .auth import TokenLease, TokenProvider
from .diff import find_new_tracks
from .fetcher import PlaylistFetcher
from .monitor import PlaylistMonitor
from .notifier import NotificationResult, Notifier, build_notifier
from .scheduler import PlaylistScheduler

__all__ = [
    "TokenLease",
    "TokenProvider",
    "find_new_tracks",
    "PlaylistFetcher",
    "PlaylistMonitor",
    "NotificationResult",
    "Notifier",
    "build_notifier",
    "PlaylistScheduler",
]
