"""Playlist retrieval from the Spotify Web API."""

import logging
from datetime import datetime
from typing import Any, Dict, List, Optional, Tuple

import httpx

from ..exceptions import FetchError, UnauthorizedError
from ..models.playlist import PlaylistInfo
from ..models.track import Track

SPOTIFY_API_BASE_URL = "https://api.spotify.com/v1"

# Maximum page size accepted by the playlist tracks endpoint
MAX_PAGE_SIZE = 100

PLAYLIST_FIELDS = "name,owner.display_name,tracks.total,external_urls.spotify"
TRACK_FIELDS = "items(track(id,name,artists(name),album(name)),added_at),total"


class PlaylistFetcher:
    """Fetches playlist metadata and the complete track listing."""

    def __init__(
        self,
        http_client: httpx.Client,
        logger: logging.Logger,
        api_base_url: str = SPOTIFY_API_BASE_URL,
        page_size: int = MAX_PAGE_SIZE
    ):
        """Initialize playlist fetcher.

        Args:
            http_client: HTTP client used for API requests
            logger: Logger instance
            api_base_url: Spotify Web API base URL
            page_size: Tracks requested per page (capped at 100)
        """
        self.http_client = http_client
        self.logger = logger
        self.api_base_url = api_base_url.rstrip('/')
        self.page_size = max(1, min(page_size, MAX_PAGE_SIZE))

    def _get(self, path: str, token: str, params: Dict[str, Any]) -> Dict[str, Any]:
        """Issue an authenticated GET and decode the JSON body.

        Raises:
            UnauthorizedError: If the token is rejected
            FetchError: On transport errors, other non-2xx responses or invalid JSON
        """
        url = f"{self.api_base_url}{path}"
        try:
            response = self.http_client.get(
                url,
                headers={'Authorization': f"Bearer {token}"},
                params=params
            )
        except httpx.HTTPError as e:
            raise FetchError(f"Request to {path} failed: {e}") from e

        if response.status_code == 404:
            raise FetchError("Playlist not found. Please check the playlist ID.")
        if response.status_code == 401:
            raise UnauthorizedError(f"Access token rejected by {path}")
        if not response.is_success:
            raise FetchError(
                f"Request to {path} failed with HTTP {response.status_code}: {response.text}"
            )

        try:
            data = response.json()
        except ValueError as e:
            raise FetchError(f"Invalid JSON returned by {path}") from e

        if not isinstance(data, dict):
            raise FetchError(f"Unexpected payload returned by {path}")
        return data

    def get_playlist_info(self, playlist_id: str, token: str) -> PlaylistInfo:
        """Get playlist metadata.

        Args:
            playlist_id: Spotify playlist ID
            token: Bearer token

        Returns:
            PlaylistInfo

        Raises:
            FetchError: If the metadata cannot be fetched or decoded
        """
        data = self._get(f"/playlists/{playlist_id}", token, {'fields': PLAYLIST_FIELDS})

        try:
            if not isinstance(data['name'], str):
                raise TypeError("playlist name is missing")
            owner = data.get('owner') or {}
            return PlaylistInfo(
                name=data['name'],
                owner=owner.get('display_name'),
                total=int(data['tracks']['total']),
                spotify_url=(data.get('external_urls') or {}).get('spotify')
            )
        except (KeyError, TypeError, ValueError) as e:
            raise FetchError(f"Malformed metadata for playlist {playlist_id}: {e}") from e

    def get_playlist_tracks(self, playlist_id: str, token: str) -> List[Track]:
        """Get the complete track listing, page by page.

        Entries without an underlying track (removed or unavailable media)
        are skipped and leave a gap in position numbering.

        Args:
            playlist_id: Spotify playlist ID
            token: Bearer token

        Returns:
            Ordered list of Track objects

        Raises:
            FetchError: If any page fails; no partial listing is returned
        """
        tracks = []
        offset = 0

        while True:
            page = self._get(
                f"/playlists/{playlist_id}/tracks",
                token,
                {'limit': self.page_size, 'offset': offset, 'fields': TRACK_FIELDS}
            )

            try:
                items = page['items'] or []
                total = int(page['total'])
            except (KeyError, TypeError, ValueError) as e:
                raise FetchError(
                    f"Malformed track page for playlist {playlist_id} at offset {offset}"
                ) from e

            for index, item in enumerate(items):
                track = parse_track_item(item, offset + index + 1)
                if track is not None:
                    tracks.append(track)

            self.logger.debug(
                f"Fetched page at offset {offset} of playlist {playlist_id} "
                f"({len(items)} item(s), total {total})"
            )

            offset += self.page_size
            if offset >= total:
                break

        return tracks

    def fetch_playlist(self, playlist_id: str, token: str) -> Tuple[PlaylistInfo, List[Track]]:
        """Fetch metadata and all tracks of a playlist.

        Args:
            playlist_id: Spotify playlist ID
            token: Bearer token

        Returns:
            Tuple of (PlaylistInfo, ordered tracks)

        Raises:
            FetchError: If metadata or any page request fails
        """
        info = self.get_playlist_info(playlist_id, token)
        tracks = self.get_playlist_tracks(playlist_id, token)

        self.logger.debug(
            f"Fetched {len(tracks)} of {info.total} reported track(s) from '{info.name}'"
        )
        return info, tracks


def parse_track_item(item: Optional[Dict[str, Any]], position: int) -> Optional[Track]:
    """Decode one playlist item, or None if it has no usable track."""
    if not item:
        return None

    track = item.get('track')
    if not track or not track.get('id'):
        return None

    try:
        artists = ", ".join(
            artist['name'] for artist in (track.get('artists') or []) if artist.get('name')
        )
        album = (track.get('album') or {}).get('name')
        added_at = _parse_timestamp(item.get('added_at'))
    except (AttributeError, TypeError) as e:
        raise FetchError(f"Malformed track entry at position {position}") from e

    return Track(
        track_id=track['id'],
        name=track.get('name') or "",
        artists=artists,
        album=album,
        added_at=added_at,
        position=position
    )


def _parse_timestamp(value: Optional[str]) -> Optional[datetime]:
    if not value:
        return None
    try:
        return datetime.fromisoformat(value)
    except ValueError:
        return None
