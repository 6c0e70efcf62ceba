"""Configuration management for Spotify Playlist Monitor."""

import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Mapping, Optional

import yaml
from dotenv import load_dotenv

from ..utils.platform import get_config_dir


def parse_playlist_ids(value) -> List[str]:
    """Parse a comma-separated string (or list) of playlist IDs."""
    if not value:
        return []
    if isinstance(value, str):
        value = value.split(',')
    return [str(item).strip() for item in value if str(item).strip()]


@dataclass
class SpotifyConfig:
    """Spotify Web API configuration."""

    client_id: Optional[str] = None
    client_secret: Optional[str] = None
    token_url: str = "https://accounts.spotify.com/api/token"
    api_base_url: str = "https://api.spotify.com/v1"
    request_timeout: float = 10.0
    cache_token: bool = True

    def __post_init__(self):
        """Validate configuration."""
        if self.request_timeout <= 0:
            raise ValueError("request_timeout must be > 0")


@dataclass
class DatabaseConfig:
    """Database configuration."""

    path: Optional[Path] = None

    def __post_init__(self):
        """Set default database path if not specified."""
        if self.path is None:
            self.path = get_config_dir() / 'snapshots.db'
        elif isinstance(self.path, str):
            self.path = Path(self.path).expanduser()


@dataclass
class SchedulerConfig:
    """Scheduler configuration."""

    playlist_ids: List[str] = field(default_factory=list)
    check_interval_minutes: int = 5
    use_cron_schedule: bool = False
    cron_schedule: str = "*/5 * * * *"
    max_workers: int = 1

    def __post_init__(self):
        """Validate configuration."""
        self.playlist_ids = parse_playlist_ids(self.playlist_ids)

        if self.check_interval_minutes < 1:
            raise ValueError("check_interval_minutes must be >= 1")

        if self.max_workers < 1:
            raise ValueError("max_workers must be >= 1")

    @property
    def enabled(self) -> bool:
        """Whether recurring checks should run at all."""
        return bool(self.playlist_ids)


@dataclass
class NotificationConfig:
    """Notification configuration."""

    enabled: bool = True
    backend: str = "smtp"

    # Shared e-mail settings
    from_address: Optional[str] = None
    to_address: Optional[str] = None
    from_name: str = "Spotify Notifications"

    # SMTP backend
    smtp_host: Optional[str] = None
    smtp_port: int = 587
    smtp_user: Optional[str] = None
    smtp_password: Optional[str] = None
    smtp_starttls: bool = True

    # Transactional e-mail API backend
    api_url: str = "https://api.resend.com/emails"
    api_key: Optional[str] = None

    def __post_init__(self):
        """Validate configuration."""
        valid_backends = ["smtp", "email_api", "desktop"]
        if self.backend not in valid_backends:
            raise ValueError(f"backend must be one of {valid_backends}")

    @property
    def sender(self) -> Optional[str]:
        """Address used as the From header."""
        return self.from_address or self.smtp_user


@dataclass
class ServerConfig:
    """HTTP API configuration."""

    host: str = "0.0.0.0"
    port: int = 3001
    environment: str = "production"

    def __post_init__(self):
        """Validate configuration."""
        if not (0 < self.port < 65536):
            raise ValueError("port must be between 1 and 65535")

    @property
    def expose_errors(self) -> bool:
        """Whether error details may be returned to HTTP clients."""
        return self.environment.lower() != "production"


@dataclass
class LoggingConfig:
    """Logging configuration."""

    path: Optional[Path] = None
    level: str = "INFO"
    max_size_mb: int = 10
    backup_count: int = 5

    def __post_init__(self):
        """Validate configuration and set defaults."""
        if self.path is None:
            self.path = get_config_dir() / 'service.log'
        elif isinstance(self.path, str):
            self.path = Path(self.path).expanduser()

        # Validate log level
        valid_levels = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
        if self.level.upper() not in valid_levels:
            raise ValueError(f"level must be one of {valid_levels}")


@dataclass
class Settings:
    """Main settings container."""

    spotify: SpotifyConfig = field(default_factory=SpotifyConfig)
    database: DatabaseConfig = field(default_factory=DatabaseConfig)
    scheduler: SchedulerConfig = field(default_factory=SchedulerConfig)
    notifications: NotificationConfig = field(default_factory=NotificationConfig)
    server: ServerConfig = field(default_factory=ServerConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)

    @classmethod
    def from_file(cls, config_path: Path) -> 'Settings':
        """Load settings from YAML file.

        Args:
            config_path: Path to configuration file

        Returns:
            Settings instance

        Raises:
            FileNotFoundError: If config file doesn't exist
            ValueError: If config is invalid
        """
        if not config_path.exists():
            raise FileNotFoundError(f"Configuration file not found: {config_path}")

        with open(config_path, 'r', encoding='utf-8') as f:
            data = yaml.safe_load(f) or {}

        # Create config objects with validation
        return cls(
            spotify=SpotifyConfig(**(data.get('spotify') or {})),
            database=DatabaseConfig(**(data.get('database') or {})),
            scheduler=SchedulerConfig(**(data.get('scheduler') or {})),
            notifications=NotificationConfig(**(data.get('notifications') or {})),
            server=ServerConfig(**(data.get('server') or {})),
            logging=LoggingConfig(**(data.get('logging') or {})),
        )

    @classmethod
    def from_file_or_default(cls, config_path: Optional[Path] = None) -> 'Settings':
        """Load settings from file or return defaults.

        Args:
            config_path: Path to configuration file (optional)

        Returns:
            Settings instance
        """
        if config_path is None:
            config_path = get_config_dir() / 'config.yaml'

        if config_path.exists():
            try:
                return cls.from_file(config_path)
            except Exception as e:
                logging.warning(f"Failed to load config from {config_path}: {e}")
                logging.warning("Using default configuration")
                return cls()
        else:
            logging.info(f"Config file not found at {config_path}, using defaults")
            return cls()

    @classmethod
    def load(
        cls,
        config_path: Optional[Path] = None,
        environ: Optional[Mapping[str, str]] = None
    ) -> 'Settings':
        """Load settings from file (or defaults) and apply the environment.

        A ``.env`` file in the working directory is read first when
        ``environ`` is not given.

        Args:
            config_path: Path to configuration file (optional)
            environ: Environment mapping (default: os.environ)

        Returns:
            Settings instance
        """
        if environ is None:
            load_dotenv()
            environ = os.environ

        settings = cls.from_file_or_default(config_path)
        settings.apply_env(environ)
        return settings

    def apply_env(self, environ: Mapping[str, str]) -> None:
        """Override settings with environment variables.

        Args:
            environ: Environment mapping

        Raises:
            ValueError: If a numeric variable cannot be parsed
        """
        def get(name: str) -> Optional[str]:
            value = environ.get(name)
            return value if value not in (None, "") else None

        if get('SPOTIFY_CLIENT_ID'):
            self.spotify.client_id = get('SPOTIFY_CLIENT_ID')
        if get('SPOTIFY_CLIENT_SECRET'):
            self.spotify.client_secret = get('SPOTIFY_CLIENT_SECRET')

        if get('DATABASE_PATH'):
            self.database.path = Path(get('DATABASE_PATH')).expanduser()

        if get('MONITORED_PLAYLISTS'):
            self.scheduler.playlist_ids = parse_playlist_ids(get('MONITORED_PLAYLISTS'))
        if get('CHECK_INTERVAL_MINUTES'):
            interval = int(get('CHECK_INTERVAL_MINUTES'))
            if interval < 1:
                raise ValueError("CHECK_INTERVAL_MINUTES must be >= 1")
            self.scheduler.check_interval_minutes = interval

        if get('NOTIFIER_BACKEND'):
            # Re-run validation through the dataclass
            self.notifications.backend = get('NOTIFIER_BACKEND')
            self.notifications.__post_init__()
        if get('EMAIL_HOST'):
            self.notifications.smtp_host = get('EMAIL_HOST')
        if get('EMAIL_PORT'):
            self.notifications.smtp_port = int(get('EMAIL_PORT'))
        if get('EMAIL_USER'):
            self.notifications.smtp_user = get('EMAIL_USER')
        if get('EMAIL_PASSWORD'):
            self.notifications.smtp_password = get('EMAIL_PASSWORD')
        if get('EMAIL_FROM'):
            self.notifications.from_address = get('EMAIL_FROM')
        if get('NOTIFICATION_EMAIL'):
            self.notifications.to_address = get('NOTIFICATION_EMAIL')
        if get('EMAIL_API_URL'):
            self.notifications.api_url = get('EMAIL_API_URL')
        if get('EMAIL_API_KEY'):
            self.notifications.api_key = get('EMAIL_API_KEY')

        if get('PORT'):
            self.server.port = int(get('PORT'))
            self.server.__post_init__()
        if get('APP_ENV'):
            self.server.environment = get('APP_ENV')

        if get('LOG_LEVEL'):
            self.logging.level = get('LOG_LEVEL')
            self.logging.__post_init__()

    def save(self, config_path: Optional[Path] = None) -> None:
        """Save settings to YAML file.

        Secrets are written as empty values; supply them through the
        environment instead.

        Args:
            config_path: Path to save configuration (default: config.yaml in config dir)
        """
        if config_path is None:
            config_path = get_config_dir() / 'config.yaml'

        config_path.parent.mkdir(parents=True, exist_ok=True)

        # Convert to dict for YAML serialization
        data = {
            'spotify': {
                'client_id': self.spotify.client_id,
                'client_secret': None,
                'token_url': self.spotify.token_url,
                'api_base_url': self.spotify.api_base_url,
                'request_timeout': self.spotify.request_timeout,
                'cache_token': self.spotify.cache_token
            },
            'database': {
                'path': str(self.database.path) if self.database.path else None
            },
            'scheduler': {
                'playlist_ids': list(self.scheduler.playlist_ids),
                'check_interval_minutes': self.scheduler.check_interval_minutes,
                'use_cron_schedule': self.scheduler.use_cron_schedule,
                'cron_schedule': self.scheduler.cron_schedule,
                'max_workers': self.scheduler.max_workers
            },
            'notifications': {
                'enabled': self.notifications.enabled,
                'backend': self.notifications.backend,
                'from_address': self.notifications.from_address,
                'to_address': self.notifications.to_address,
                'from_name': self.notifications.from_name,
                'smtp_host': self.notifications.smtp_host,
                'smtp_port': self.notifications.smtp_port,
                'smtp_user': self.notifications.smtp_user,
                'smtp_password': None,
                'smtp_starttls': self.notifications.smtp_starttls,
                'api_url': self.notifications.api_url,
                'api_key': None
            },
            'server': {
                'host': self.server.host,
                'port': self.server.port,
                'environment': self.server.environment
            },
            'logging': {
                'path': str(self.logging.path) if self.logging.path else None,
                'level': self.logging.level,
                'max_size_mb': self.logging.max_size_mb,
                'backup_count': self.logging.backup_count
            }
        }

        with open(config_path, 'w', encoding='utf-8') as f:
            yaml.dump(data, f, default_flow_style=False, sort_keys=False, indent=2)
