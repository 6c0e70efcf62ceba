import threading

import pytest

from spotify_playlist_monitor.core.auth import TokenProvider
from spotify_playlist_monitor.core.monitor import PlaylistMonitor
from spotify_playlist_monitor.exceptions import DuplicateKeyError, StoreError
from spotify_playlist_monitor.models.playlist import PlaylistInfo
from tests.support.notifiers import RecordingNotifier
from tests.support.spotify import make_item


def ids(tracks):
    return [t.track_id for t in tracks]


def test_first_check_stores_snapshot_without_notification(spotify, monitor, store, notifier):
    spotify.add_playlist("pl1", [make_item("a"), make_item("b")], name="Mix")

    result = monitor.check_playlist("pl1")

    assert result.success
    assert result.is_first_check
    assert result.new_songs == []
    assert result.message == "Playlist stored for first time"
    assert notifier.calls == []

    snapshot = store.find_by_playlist_id("pl1")
    assert ids(snapshot.tracks) == ["a", "b"]
    assert snapshot.playlist_name == "Mix"


def test_first_check_snapshot_equals_fetched_listing(spotify, monitor, store, fetcher):
    items = [make_item(f"t{i}") for i in range(120)]
    items[3] = make_item(None)
    spotify.add_playlist("pl1", items)

    monitor.check_playlist("pl1")
    _, fetched = fetcher.fetch_playlist("pl1", "token")

    assert store.find_by_playlist_id("pl1").tracks == fetched


def test_second_check_without_changes_only_touches_timestamp(spotify, monitor, store, notifier):
    spotify.add_playlist("pl1", [make_item("a"), make_item("b")])
    monitor.check_playlist("pl1")
    before = store.find_by_playlist_id("pl1")

    result = monitor.check_playlist("pl1")
    after = store.find_by_playlist_id("pl1")

    assert result.success
    assert not result.is_first_check
    assert result.new_songs == []
    assert result.message == "No new songs"
    assert result.email_sent is None
    assert notifier.calls == []
    assert after.tracks == before.tracks
    assert after.last_checked > before.last_checked


def test_new_track_is_reported_and_snapshot_replaced(spotify, monitor, store, notifier):
    spotify.add_playlist("pl1", [make_item("a"), make_item("b")], name="Mix")
    monitor.check_playlist("pl1")

    spotify.set_items("pl1", [make_item("a"), make_item("b"), make_item("c")])
    result = monitor.check_playlist("pl1")

    assert result.success
    assert ids(result.new_songs) == ["c"]
    assert result.message == "Found 1 new song(s)"
    assert result.notification_attempted
    assert result.email_sent is True
    assert result.playlist.name == "Mix"

    assert len(notifier.calls) == 1
    playlist_name, songs = notifier.calls[0]
    assert playlist_name == "Mix"
    assert ids(songs) == ["c"]

    assert ids(store.find_by_playlist_id("pl1").tracks) == ["a", "b", "c"]


def test_notification_failure_still_updates_snapshot(spotify, token_provider, fetcher, store, logger, clock):
    failing = RecordingNotifier(fail=True)
    monitor = PlaylistMonitor(token_provider, fetcher, store, failing, logger, clock=clock)
    spotify.add_playlist("pl1", [make_item("a")])
    monitor.check_playlist("pl1")

    spotify.set_items("pl1", [make_item("a"), make_item("b")])
    result = monitor.check_playlist("pl1")

    assert result.success
    assert result.email_sent is False
    assert ids(result.new_songs) == ["b"]
    assert ids(store.find_by_playlist_id("pl1").tracks) == ["a", "b"]

    # The same songs are not reported again
    assert monitor.check_playlist("pl1").new_songs == []


def test_raising_notifier_does_not_block_update(spotify, token_provider, fetcher, store, logger, clock):
    exploding = RecordingNotifier(raise_unexpected=True)
    monitor = PlaylistMonitor(token_provider, fetcher, store, exploding, logger, clock=clock)
    spotify.add_playlist("pl1", [make_item("a")])
    monitor.check_playlist("pl1")

    spotify.set_items("pl1", [make_item("a"), make_item("b")])
    result = monitor.check_playlist("pl1")

    assert result.success
    assert result.email_sent is False
    assert ids(store.find_by_playlist_id("pl1").tracks) == ["a", "b"]


def test_removed_tracks_are_dropped_silently(spotify, monitor, store, notifier):
    spotify.add_playlist("pl1", [make_item("a"), make_item("b"), make_item("c")])
    monitor.check_playlist("pl1")

    spotify.set_items("pl1", [make_item("a"), make_item("d")])
    result = monitor.check_playlist("pl1")

    assert ids(result.new_songs) == ["d"]
    assert ids(store.find_by_playlist_id("pl1").tracks) == ["a", "d"]


def test_metadata_updated_with_new_tracks(spotify, monitor, store):
    spotify.add_playlist("pl1", [make_item("a")], name="Old")
    monitor.check_playlist("pl1")

    spotify.playlists["pl1"]['name'] = "New"
    spotify.set_items("pl1", [make_item("a"), make_item("b")])
    monitor.check_playlist("pl1")

    snapshot = store.find_by_playlist_id("pl1")
    assert snapshot.playlist_name == "New"
    assert snapshot.total_songs == 2


def test_token_failure_is_reported(spotify, monitor, store):
    spotify.add_playlist("pl1", [make_item("a")])
    spotify.token_status = 400

    result = monitor.check_playlist("pl1")

    assert not result.success
    assert "authenticate" in result.error
    assert spotify.page_requests == []
    assert store.find_by_playlist_id("pl1") is None


def test_missing_credentials_are_reported(spotify, http_client, fetcher, store, notifier, logger):
    provider = TokenProvider(None, None, http_client, logger)
    monitor = PlaylistMonitor(provider, fetcher, store, notifier, logger)

    result = monitor.check_playlist("pl1")

    assert not result.success
    assert "credentials" in result.error
    assert spotify.requests == []


def test_partial_fetch_leaves_snapshot_untouched(spotify, monitor, store, notifier):
    spotify.add_playlist("pl1", [make_item(f"t{i}") for i in range(150)])
    monitor.check_playlist("pl1")
    before = store.find_by_playlist_id("pl1")

    spotify.set_items("pl1", [make_item(f"n{i}") for i in range(150)])
    spotify.failing_offsets.add(100)
    result = monitor.check_playlist("pl1")

    assert not result.success
    assert notifier.calls == []
    after = store.find_by_playlist_id("pl1")
    assert after.tracks == before.tracks
    assert after.last_checked == before.last_checked


def test_token_is_reused_across_checks(spotify, monitor):
    spotify.add_playlist("pl1", [make_item("a")])

    monitor.check_playlist("pl1")
    monitor.check_playlist("pl1")

    assert len(spotify.token_requests) == 1


def test_rejected_token_is_renewed(spotify, monitor, store, notifier):
    spotify.add_playlist("pl1", [make_item("a")])
    monitor.check_playlist("pl1")
    spotify.rejected_tokens.add("token-1")
    spotify.set_items("pl1", [make_item("a"), make_item("b")])

    result = monitor.check_playlist("pl1")

    assert result.success
    assert [track.track_id for track in result.new_songs] == ["b"]
    assert len(spotify.token_requests) == 2
    assert [t.track_id for t in store.find_by_playlist_id("pl1").tracks] == ["a", "b"]


def test_token_renewed_only_once_per_check(spotify, monitor, store):
    spotify.add_playlist("pl1", [make_item("a")])
    monitor.check_playlist("pl1")
    spotify.rejected_tokens.update({"token-1", "token-2"})

    result = monitor.check_playlist("pl1")

    assert not result.success
    assert "rejected" in result.error
    assert len(spotify.token_requests) == 2

    spotify.rejected_tokens.clear()
    assert monitor.check_playlist("pl1").success


def test_concurrent_first_check_falls_back_to_comparison(spotify, monitor, store, notifier):
    spotify.add_playlist("pl1", [make_item("a"), make_item("b")])
    original_create = store.create

    def racing_create(snapshot):
        # Another check wins the race with an older listing
        info = PlaylistInfo(name=snapshot.playlist_name, total=1)
        stale = snapshot.replaced(info, snapshot.tracks[:1], snapshot.last_checked)
        original_create(stale)
        raise DuplicateKeyError(snapshot.playlist_id)

    store.create = racing_create

    result = monitor.check_playlist("pl1")

    assert result.success
    assert not result.is_first_check
    assert ids(result.new_songs) == ["b"]
    assert ids(store.find_by_playlist_id("pl1").tracks) == ["a", "b"]


def test_store_failure_is_reported(spotify, monitor, store):
    spotify.add_playlist("pl1", [make_item("a")])

    def broken(playlist_id):
        raise StoreError("disk full")

    store.find_by_playlist_id = broken

    result = monitor.check_playlist("pl1")

    assert not result.success
    assert result.error == "disk full"


def test_unexpected_error_is_reported(spotify, monitor, fetcher):
    def boom(playlist_id, token):
        raise RuntimeError("unexpected")

    fetcher.fetch_playlist = boom

    result = monitor.check_playlist("pl1")

    assert not result.success
    assert result.error == "unexpected"


def test_batch_isolates_failures_and_keeps_order(spotify, monitor):
    spotify.add_playlist("ok1", [make_item("a")])
    spotify.add_playlist("ok2", [make_item("b")])

    results = monitor.check_multiple_playlists(["ok1", "missing", "ok2"])

    assert [r.playlist_id for r in results] == ["ok1", "missing", "ok2"]
    assert [r.success for r in results] == [True, False, True]
    assert results[0].is_first_check and results[2].is_first_check


def test_batch_runs_sequentially_by_default(spotify, monitor, fetcher):
    for name in ("p1", "p2", "p3"):
        spotify.add_playlist(name, [make_item(name)])

    active = []
    peak = []
    original = fetcher.fetch_playlist

    def tracking(playlist_id, token):
        active.append(playlist_id)
        peak.append(len(active))
        try:
            return original(playlist_id, token)
        finally:
            active.remove(playlist_id)

    fetcher.fetch_playlist = tracking

    monitor.check_multiple_playlists(["p1", "p2", "p3"])

    assert max(peak) == 1


def test_batch_with_worker_pool_keeps_input_order(spotify, token_provider, fetcher, store, notifier, logger):
    monitor = PlaylistMonitor(token_provider, fetcher, store, notifier, logger, max_workers=3)
    playlist_ids = [f"p{i}" for i in range(6)]
    for playlist_id in playlist_ids:
        spotify.add_playlist(playlist_id, [make_item(playlist_id)])

    lock = threading.Lock()
    seen_threads = set()
    original = fetcher.fetch_playlist

    def tracking(playlist_id, token):
        with lock:
            seen_threads.add(threading.current_thread().name)
        return original(playlist_id, token)

    fetcher.fetch_playlist = tracking

    results = monitor.check_multiple_playlists(playlist_ids)

    assert [r.playlist_id for r in results] == playlist_ids
    assert all(r.success for r in results)
    assert all(name.startswith("playlist-check") for name in seen_threads)


def test_empty_batch(monitor):
    assert monitor.check_multiple_playlists([]) == []


@pytest.mark.parametrize("stored, fresh, expected", [
    (["a", "b"], ["a", "b", "c"], ["c"]),
    (["a"], ["b", "a", "c"], ["b", "c"]),
    (["a", "b"], ["a", "b"], []),
])
def test_reported_songs_match_diff(spotify, monitor, stored, fresh, expected):
    spotify.add_playlist("pl1", [make_item(i) for i in stored])
    monitor.check_playlist("pl1")

    spotify.set_items("pl1", [make_item(i) for i in fresh])

    assert ids(monitor.check_playlist("pl1").new_songs) == expected
