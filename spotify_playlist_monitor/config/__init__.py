"""Configuration module for Spotify Playlist Monitor."""

from .database import SnapshotStore
from .settings import Settings

__all__ = ["SnapshotStore", "Settings"]
