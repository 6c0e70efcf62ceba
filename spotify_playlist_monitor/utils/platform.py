"""Platform-specific paths."""

import os
import sys
from pathlib import Path

APP_DIR_NAME = 'spotify-playlist-monitor'

# Overrides the platform default for config, database and logs
HOME_ENV_VAR = 'PLAYLIST_MONITOR_HOME'


def is_windows() -> bool:
    """Check if running on Windows."""
    return sys.platform == 'win32' or os.name == 'nt'


def _platform_base_dir() -> Path:
    if is_windows():
        return Path(os.environ.get('APPDATA', Path.home()))
    if sys.platform == 'darwin':
        return Path.home() / 'Library' / 'Application Support'
    return Path(os.environ.get('XDG_CONFIG_HOME', Path.home() / '.config'))


def get_config_dir() -> Path:
    """Get (and create) the directory holding config.yaml, the database and logs.

    ``$PLAYLIST_MONITOR_HOME`` wins when set. Otherwise:
        - Windows: %APPDATA%/spotify-playlist-monitor
        - macOS: ~/Library/Application Support/spotify-playlist-monitor
        - Linux: $XDG_CONFIG_HOME/spotify-playlist-monitor (~/.config by default)
    """
    override = os.environ.get(HOME_ENV_VAR)
    config_dir = Path(override).expanduser() if override else _platform_base_dir() / APP_DIR_NAME
    config_dir.mkdir(parents=True, exist_ok=True)
    return config_dir
