import logging
from datetime import datetime, timedelta

import pytest

from spotify_playlist_monitor.config.database import SnapshotStore
from spotify_playlist_monitor.core.auth import TokenProvider
from spotify_playlist_monitor.core.fetcher import PlaylistFetcher
from spotify_playlist_monitor.core.monitor import PlaylistMonitor
from tests.support.notifiers import RecordingNotifier
from tests.support.spotify import FakeSpotify

ENV_VARS = (
    "SPOTIFY_CLIENT_ID", "SPOTIFY_CLIENT_SECRET", "MONITORED_PLAYLISTS",
    "CHECK_INTERVAL_MINUTES", "NOTIFIER_BACKEND", "EMAIL_HOST", "EMAIL_PORT",
    "EMAIL_USER", "EMAIL_PASSWORD", "EMAIL_FROM", "NOTIFICATION_EMAIL",
    "EMAIL_API_URL", "EMAIL_API_KEY", "PORT", "APP_ENV", "DATABASE_PATH", "LOG_LEVEL",
)


@pytest.fixture(autouse=True)
def _isolate_env(monkeypatch, tmp_path):
    """Keep tests away from the real config directory and environment."""
    monkeypatch.setenv("PLAYLIST_MONITOR_HOME", str(tmp_path / "home"))
    for name in ENV_VARS:
        monkeypatch.delenv(name, raising=False)
    yield


@pytest.fixture
def logger():
    return logging.getLogger("tests")


@pytest.fixture
def spotify():
    return FakeSpotify()


@pytest.fixture
def http_client(spotify):
    client = spotify.client()
    yield client
    client.close()


@pytest.fixture
def store(tmp_path):
    return SnapshotStore(tmp_path / "snapshots.db")


@pytest.fixture
def token_provider(spotify, http_client, logger):
    return TokenProvider(spotify.client_id, spotify.client_secret, http_client, logger)


@pytest.fixture
def fetcher(http_client, logger):
    return PlaylistFetcher(http_client, logger)


@pytest.fixture
def notifier():
    return RecordingNotifier()


class SteppingClock:
    """Returns a later timestamp on every call."""

    def __init__(self, start=datetime(2024, 6, 1, 12, 0, 0)):
        self.current = start

    def __call__(self):
        self.current = self.current + timedelta(minutes=5)
        return self.current


@pytest.fixture
def clock():
    return SteppingClock()


@pytest.fixture
def monitor(token_provider, fetcher, store, notifier, logger, clock):
    return PlaylistMonitor(token_provider, fetcher, store, notifier, logger, clock=clock)
