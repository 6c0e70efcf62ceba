"""Playlist monitoring and change detection."""

import logging
from concurrent.futures import ThreadPoolExecutor
from datetime import datetime
from typing import Callable, List, Optional, Tuple

from ..config.database import SnapshotStore
from ..exceptions import DuplicateKeyError, MonitorError, UnauthorizedError
from ..models.playlist import PlaylistInfo, PlaylistSnapshot
from ..models.result import CheckResult
from ..models.track import Track
from .auth import TokenProvider
from .diff import find_new_tracks
from .fetcher import PlaylistFetcher
from .notifier import NotificationResult, Notifier


class PlaylistMonitor:
    """Checks Spotify playlists for newly added tracks."""

    def __init__(
        self,
        token_provider: TokenProvider,
        fetcher: PlaylistFetcher,
        store: SnapshotStore,
        notifier: Notifier,
        logger: logging.Logger,
        max_workers: int = 1,
        clock: Callable[[], datetime] = datetime.now
    ):
        """Initialize playlist monitor.

        Args:
            token_provider: Spotify token provider
            fetcher: Playlist fetcher
            store: Snapshot store
            notifier: Notifier for new tracks
            logger: Logger instance
            max_workers: Playlists checked in parallel by batch checks
            clock: Source of check timestamps
        """
        self.token_provider = token_provider
        self.fetcher = fetcher
        self.store = store
        self.notifier = notifier
        self.logger = logger
        self.max_workers = max(1, max_workers)
        self.clock = clock

    def _fetch(self, playlist_id: str) -> Tuple[PlaylistInfo, List[Track]]:
        """Fetch a playlist, renewing the token once if the API rejects it."""
        token = self.token_provider.lease().access_token
        try:
            return self.fetcher.fetch_playlist(playlist_id, token)
        except UnauthorizedError:
            self.logger.warning("Spotify rejected the access token, requesting a new one")
            self.token_provider.invalidate()

        token = self.token_provider.lease().access_token
        return self.fetcher.fetch_playlist(playlist_id, token)

    def _notify(self, playlist_name: str, new_tracks: List[Track]) -> NotificationResult:
        """Send the new-tracks notification, folding any error into the result."""
        try:
            return self.notifier.notify_new_tracks(playlist_name, new_tracks)
        except Exception as e:
            self.logger.error(f"Notifier raised while reporting '{playlist_name}': {e}")
            return NotificationResult(success=False, backend=self.notifier.backend, error=str(e))

    def _store_first_snapshot(
        self,
        playlist_id: str,
        info: PlaylistInfo,
        tracks: List[Track],
        checked_at: datetime
    ) -> Optional[CheckResult]:
        """Create the first snapshot of a playlist.

        Returns:
            The first-check result, or None if another check created the
            snapshot concurrently
        """
        try:
            self.store.create(PlaylistSnapshot.from_fetch(playlist_id, info, tracks, checked_at))
        except DuplicateKeyError:
            self.logger.warning(
                f"Playlist {playlist_id} was stored concurrently, comparing against that snapshot"
            )
            return None

        self.logger.info(
            f"Playlist '{info.name}' stored for the first time ({len(tracks)} songs)"
        )
        return CheckResult(
            playlist_id=playlist_id,
            success=True,
            message="Playlist stored for first time",
            playlist=info,
            is_first_check=True
        )

    def _compare_and_update(
        self,
        stored: PlaylistSnapshot,
        info: PlaylistInfo,
        tracks: List[Track],
        checked_at: datetime
    ) -> CheckResult:
        """Diff against the stored snapshot, notify, and persist."""
        playlist_id = stored.playlist_id
        new_tracks = find_new_tracks(stored.tracks, tracks)

        if not new_tracks:
            self.store.touch_last_checked(playlist_id, checked_at)
            self.logger.info(f"No changes in '{info.name}'")
            return CheckResult(
                playlist_id=playlist_id,
                success=True,
                message="No new songs",
                playlist=info
            )

        self.logger.info(f"Found {len(new_tracks)} new song(s) in '{info.name}'")

        # Notification outcome never blocks the snapshot update
        outcome = self._notify(info.name, new_tracks)
        if not outcome.success:
            self.logger.warning(
                f"Notification for '{info.name}' failed ({outcome.error}), updating snapshot anyway"
            )

        updated = stored.replaced(info, tracks, checked_at)
        self.store.replace_tracks_and_metadata(playlist_id, info, updated.tracks, checked_at)

        return CheckResult(
            playlist_id=playlist_id,
            success=True,
            message=f"Found {len(new_tracks)} new song(s)",
            new_songs=new_tracks,
            playlist=info,
            notification_attempted=True,
            email_sent=outcome.success
        )

    def check_playlist(self, playlist_id: str) -> CheckResult:
        """Check a playlist for new tracks.

        This is the main method that orchestrates the monitoring process:
        1. Obtain a Spotify token
        2. Fetch the complete current listing
        3. Store it on first observation, otherwise compare with the snapshot
        4. Notify about new tracks and replace the snapshot

        Args:
            playlist_id: Playlist ID to check

        Returns:
            CheckResult; failures are reported in the result, never raised
        """
        try:
            self.logger.info(f"Checking playlist {playlist_id} for changes...")

            info, tracks = self._fetch(playlist_id)
            self.logger.debug(f"Fetched {len(tracks)} tracks from Spotify")

            checked_at = self.clock()
            stored = self.store.find_by_playlist_id(playlist_id)

            if stored is None:
                result = self._store_first_snapshot(playlist_id, info, tracks, checked_at)
                if result is not None:
                    return result
                stored = self.store.find_by_playlist_id(playlist_id)
                if stored is None:
                    raise MonitorError(f"Snapshot for {playlist_id} vanished after a duplicate insert")

            return self._compare_and_update(stored, info, tracks, checked_at)

        except MonitorError as e:
            self.logger.error(f"Failed to check playlist {playlist_id}: {e}")
            return CheckResult.failure(playlist_id, e)
        except Exception as e:
            self.logger.error(f"Unexpected error checking playlist {playlist_id}: {e}", exc_info=True)
            return CheckResult.failure(playlist_id, e)

    def check_multiple_playlists(self, playlist_ids: List[str]) -> List[CheckResult]:
        """Check several playlists, one result per ID in input order.

        Playlists are checked one at a time unless ``max_workers`` > 1, in
        which case at most ``max_workers`` checks run concurrently. A failing
        playlist never aborts the others.

        Args:
            playlist_ids: Playlist IDs to check

        Returns:
            List of CheckResult objects
        """
        self.logger.info(f"Checking {len(playlist_ids)} playlist(s) for changes")

        if self.max_workers == 1 or len(playlist_ids) <= 1:
            return [self.check_playlist(playlist_id) for playlist_id in playlist_ids]

        with ThreadPoolExecutor(
            max_workers=self.max_workers, thread_name_prefix="playlist-check"
        ) as executor:
            return list(executor.map(self.check_playlist, playlist_ids))
