"""Snapshot persistence for Spotify Playlist Monitor."""

import sqlite3
from contextlib import contextmanager
from datetime import datetime
from pathlib import Path
from typing import List, Optional

from ..exceptions import DuplicateKeyError, StoreError
from ..models.playlist import PlaylistInfo, PlaylistSnapshot
from ..models.track import Track

# Extended result codes raised when the snapshot key already exists
DUPLICATE_KEY_ERRORS = ("SQLITE_CONSTRAINT_PRIMARYKEY", "SQLITE_CONSTRAINT_UNIQUE")


def _to_iso(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat() if value else None


def _from_iso(value: Optional[str]) -> Optional[datetime]:
    return datetime.fromisoformat(value) if value else None


class SnapshotStore:
    """SQLite store holding the latest snapshot of each playlist."""

    def __init__(self, db_path: Path):
        """Initialize snapshot store.

        Args:
            db_path: Path to SQLite database file
        """
        self.db_path = db_path
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        self.init_database()

    @contextmanager
    def get_connection(self):
        """Context manager for database connections.

        Yields:
            sqlite3.Connection: Database connection
        """
        try:
            conn = sqlite3.connect(self.db_path)
        except sqlite3.Error as e:
            raise StoreError(f"Cannot open database {self.db_path}: {e}") from e

        conn.row_factory = sqlite3.Row
        conn.execute("PRAGMA foreign_keys = ON")
        try:
            yield conn
            conn.commit()
        except Exception:
            conn.rollback()
            raise
        finally:
            conn.close()

    def init_database(self) -> None:
        """Initialize database schema."""
        with self.get_connection() as conn:
            cursor = conn.cursor()

            # One row per monitored playlist
            cursor.execute("""
                CREATE TABLE IF NOT EXISTS playlists (
                    playlist_id TEXT PRIMARY KEY,
                    playlist_name TEXT NOT NULL,
                    owner TEXT,
                    spotify_url TEXT,
                    total_songs INTEGER NOT NULL DEFAULT 0,
                    last_checked TIMESTAMP,
                    created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
                )
            """)

            # Full listing of the latest snapshot, replaced wholesale on update
            cursor.execute("""
                CREATE TABLE IF NOT EXISTS playlist_tracks (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    playlist_id TEXT NOT NULL,
                    track_id TEXT NOT NULL,
                    name TEXT NOT NULL,
                    artists TEXT,
                    album TEXT,
                    added_at TIMESTAMP,
                    position INTEGER NOT NULL,
                    FOREIGN KEY (playlist_id) REFERENCES playlists(playlist_id) ON DELETE CASCADE
                )
            """)

            cursor.execute(
                "CREATE INDEX IF NOT EXISTS idx_playlists_last_checked ON playlists(last_checked DESC)"
            )
            cursor.execute(
                "CREATE INDEX IF NOT EXISTS idx_playlist_tracks_playlist ON playlist_tracks(playlist_id)"
            )

    @staticmethod
    def _insert_tracks(cursor: sqlite3.Cursor, playlist_id: str, tracks: List[Track]) -> None:
        cursor.executemany("""
            INSERT INTO playlist_tracks
            (playlist_id, track_id, name, artists, album, added_at, position)
            VALUES (?, ?, ?, ?, ?, ?, ?)
        """, [
            (
                playlist_id,
                track.track_id,
                track.name,
                track.artists,
                track.album,
                _to_iso(track.added_at),
                track.position
            )
            for track in tracks
        ])

    @staticmethod
    def _load_tracks(cursor: sqlite3.Cursor, playlist_id: str) -> List[Track]:
        cursor.execute(
            "SELECT * FROM playlist_tracks WHERE playlist_id = ? ORDER BY id",
            (playlist_id,)
        )
        return [
            Track(
                track_id=row['track_id'],
                name=row['name'],
                artists=row['artists'] or "",
                album=row['album'],
                added_at=_from_iso(row['added_at']),
                position=row['position']
            )
            for row in cursor.fetchall()
        ]

    @staticmethod
    def _row_to_snapshot(row: sqlite3.Row, tracks: List[Track]) -> PlaylistSnapshot:
        return PlaylistSnapshot(
            playlist_id=row['playlist_id'],
            playlist_name=row['playlist_name'],
            owner=row['owner'],
            spotify_url=row['spotify_url'],
            total_songs=row['total_songs'],
            tracks=tracks,
            last_checked=_from_iso(row['last_checked']),
            created_at=_from_iso(row['created_at'])
        )

    def find_by_playlist_id(self, playlist_id: str) -> Optional[PlaylistSnapshot]:
        """Get the stored snapshot of a playlist.

        Args:
            playlist_id: Spotify playlist ID

        Returns:
            PlaylistSnapshot or None if the playlist was never observed

        Raises:
            StoreError: If the database cannot be read
        """
        try:
            with self.get_connection() as conn:
                cursor = conn.cursor()
                cursor.execute("SELECT * FROM playlists WHERE playlist_id = ?", (playlist_id,))
                row = cursor.fetchone()
                if row is None:
                    return None
                return self._row_to_snapshot(row, self._load_tracks(cursor, playlist_id))
        except sqlite3.Error as e:
            raise StoreError(f"Failed to read snapshot {playlist_id}: {e}") from e

    def create(self, snapshot: PlaylistSnapshot) -> None:
        """Insert the first snapshot of a playlist.

        Args:
            snapshot: Snapshot to store

        Raises:
            DuplicateKeyError: If a snapshot with the same ID already exists
            StoreError: On any other database failure
        """
        try:
            with self.get_connection() as conn:
                cursor = conn.cursor()
                cursor.execute("""
                    INSERT INTO playlists
                    (playlist_id, playlist_name, owner, spotify_url, total_songs, last_checked, created_at)
                    VALUES (?, ?, ?, ?, ?, ?, ?)
                """, (
                    snapshot.playlist_id,
                    snapshot.playlist_name,
                    snapshot.owner,
                    snapshot.spotify_url,
                    snapshot.total_songs,
                    _to_iso(snapshot.last_checked),
                    _to_iso(snapshot.created_at or datetime.now())
                ))
                self._insert_tracks(cursor, snapshot.playlist_id, snapshot.tracks)
        except sqlite3.IntegrityError as e:
            if e.sqlite_errorname in DUPLICATE_KEY_ERRORS:
                raise DuplicateKeyError(snapshot.playlist_id) from e
            raise StoreError(f"Failed to create snapshot {snapshot.playlist_id}: {e}") from e
        except sqlite3.Error as e:
            raise StoreError(f"Failed to create snapshot {snapshot.playlist_id}: {e}") from e

    def replace_tracks_and_metadata(
        self,
        playlist_id: str,
        info: PlaylistInfo,
        tracks: List[Track],
        checked_at: datetime
    ) -> None:
        """Overwrite the listing, metadata and check time in one transaction.

        Args:
            playlist_id: Spotify playlist ID
            info: Freshly fetched metadata
            tracks: Freshly fetched listing
            checked_at: Time of the check

        Raises:
            StoreError: If the playlist is unknown or the write fails
        """
        try:
            with self.get_connection() as conn:
                cursor = conn.cursor()
                cursor.execute("""
                    UPDATE playlists
                    SET playlist_name = ?, owner = ?, spotify_url = ?, total_songs = ?, last_checked = ?
                    WHERE playlist_id = ?
                """, (
                    info.name,
                    info.owner,
                    info.spotify_url,
                    info.total,
                    _to_iso(checked_at),
                    playlist_id
                ))
                if cursor.rowcount == 0:
                    raise StoreError(f"No snapshot stored for playlist {playlist_id}")

                cursor.execute("DELETE FROM playlist_tracks WHERE playlist_id = ?", (playlist_id,))
                self._insert_tracks(cursor, playlist_id, tracks)
        except sqlite3.Error as e:
            raise StoreError(f"Failed to update snapshot {playlist_id}: {e}") from e

    def touch_last_checked(self, playlist_id: str, checked_at: datetime) -> None:
        """Update only the last checked timestamp.

        Args:
            playlist_id: Spotify playlist ID
            checked_at: Time of the check

        Raises:
            StoreError: If the playlist is unknown or the write fails
        """
        try:
            with self.get_connection() as conn:
                cursor = conn.cursor()
                cursor.execute(
                    "UPDATE playlists SET last_checked = ? WHERE playlist_id = ?",
                    (_to_iso(checked_at), playlist_id)
                )
                if cursor.rowcount == 0:
                    raise StoreError(f"No snapshot stored for playlist {playlist_id}")
        except sqlite3.Error as e:
            raise StoreError(f"Failed to update snapshot {playlist_id}: {e}") from e

    # Administrative methods

    def list_snapshots(self, include_tracks: bool = False) -> List[PlaylistSnapshot]:
        """Get all stored snapshots, most recently checked first.

        Args:
            include_tracks: Also load each snapshot's track listing

        Returns:
            List of PlaylistSnapshot objects
        """
        try:
            with self.get_connection() as conn:
                cursor = conn.cursor()
                cursor.execute("SELECT * FROM playlists ORDER BY last_checked DESC")
                rows = cursor.fetchall()
                return [
                    self._row_to_snapshot(
                        row,
                        self._load_tracks(cursor, row['playlist_id']) if include_tracks else []
                    )
                    for row in rows
                ]
        except sqlite3.Error as e:
            raise StoreError(f"Failed to list snapshots: {e}") from e

    def count_tracks(self, playlist_id: str) -> int:
        """Get the number of stored tracks of a playlist."""
        try:
            with self.get_connection() as conn:
                cursor = conn.cursor()
                cursor.execute(
                    "SELECT COUNT(*) AS count FROM playlist_tracks WHERE playlist_id = ?",
                    (playlist_id,)
                )
                return cursor.fetchone()['count']
        except sqlite3.Error as e:
            raise StoreError(f"Failed to count tracks of {playlist_id}: {e}") from e

    def remove(self, playlist_id: str) -> bool:
        """Delete a snapshot and its tracks.

        Args:
            playlist_id: Spotify playlist ID

        Returns:
            True if a snapshot was deleted
        """
        try:
            with self.get_connection() as conn:
                cursor = conn.cursor()
                cursor.execute("DELETE FROM playlists WHERE playlist_id = ?", (playlist_id,))
                return cursor.rowcount > 0
        except sqlite3.Error as e:
            raise StoreError(f"Failed to remove snapshot {playlist_id}: {e}") from e
