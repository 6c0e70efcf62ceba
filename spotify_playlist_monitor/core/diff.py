"""Change detection between a stored and a freshly fetched listing."""

from typing import Iterable, List

from ..models.track import Track


def find_new_tracks(stored_tracks: Iterable[Track], fresh_tracks: Iterable[Track]) -> List[Track]:
    """Find tracks present in the fresh listing but absent from the stored one.

    Tracks are compared by ID only; reorders, renames and removals are not
    reported. The result keeps the order of ``fresh_tracks``.

    Args:
        stored_tracks: Tracks from the last snapshot
        fresh_tracks: Tracks just fetched from Spotify

    Returns:
        List of new Track objects
    """
    stored_ids = {track.track_id for track in stored_tracks}
    return [track for track in fresh_tracks if track.track_id not in stored_ids]
