"""Spotify Playlist Monitor: detects and reports tracks added to Spotify playlists."""

__version__ = "0.1.0"
