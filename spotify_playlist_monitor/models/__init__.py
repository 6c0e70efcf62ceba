"""Data models for Spotify Playlist Monitor."""

from .playlist import PlaylistInfo, PlaylistSnapshot
from .result import CheckResult
from .track import Track

__all__ = ["CheckResult", "PlaylistInfo", "PlaylistSnapshot", "Track"]
