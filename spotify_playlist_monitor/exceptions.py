"""Exceptions raised by Spotify Playlist Monitor."""

from typing import Any, Optional


class MonitorError(Exception):
    """Base class for all monitor errors."""


class ConfigError(MonitorError):
    """A required setting (such as a client secret) is missing."""


class AuthError(MonitorError):
    """The token exchange with Spotify was rejected or failed."""

    def __init__(self, message: str, payload: Optional[Any] = None):
        super().__init__(message)
        self.payload = payload

    def __str__(self) -> str:
        message = super().__str__()
        if self.payload:
            return f"{message}: {self.payload}"
        return message


class FetchError(MonitorError):
    """Playlist metadata or a page of tracks could not be retrieved."""


class UnauthorizedError(FetchError):
    """The Web API rejected the bearer token (HTTP 401)."""


class DuplicateKeyError(MonitorError):
    """A snapshot for the playlist already exists."""

    def __init__(self, playlist_id: str):
        super().__init__(f"Snapshot for playlist {playlist_id} already exists")
        self.playlist_id = playlist_id


class NotifyError(MonitorError):
    """A notification could not be delivered."""


class StoreError(MonitorError):
    """The snapshot store failed to read or write."""
