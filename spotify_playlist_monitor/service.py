"""Main background service for Spotify Playlist Monitor."""

import signal
import sys
import time
from pathlib import Path
from typing import Optional

import httpx
import uvicorn

from .api import create_app
from .config.database import SnapshotStore
from .config.settings import Settings
from .core.auth import TokenProvider
from .core.fetcher import PlaylistFetcher
from .core.monitor import PlaylistMonitor
from .core.notifier import build_notifier
from .core.scheduler import PlaylistScheduler
from .utils.logger import setup_logger
from .utils.platform import is_windows


class PlaylistMonitorService:
    """Wires the monitor components together and runs them."""

    def __init__(
        self,
        config_path: Optional[Path] = None,
        settings: Optional[Settings] = None,
        console_log: bool = True
    ):
        """Initialize the service.

        Args:
            config_path: Path to configuration file (optional)
            settings: Preloaded settings (skips file and environment loading)
            console_log: Whether to log to the console
        """
        self.running = False
        self.config_path = config_path

        self.settings = settings or Settings.load(config_path)

        self.logger = setup_logger(
            log_file=self.settings.logging.path,
            level=self.settings.logging.level,
            max_size_mb=self.settings.logging.max_size_mb,
            backup_count=self.settings.logging.backup_count,
            console=console_log
        )

        self.logger.info("Initializing Spotify Playlist Monitor service")

        spotify = self.settings.spotify
        self.http_client = httpx.Client(timeout=spotify.request_timeout)
        self.store = SnapshotStore(self.settings.database.path)

        self.token_provider = TokenProvider(
            client_id=spotify.client_id,
            client_secret=spotify.client_secret,
            http_client=self.http_client,
            logger=self.logger,
            token_url=spotify.token_url,
            cache_token=spotify.cache_token
        )
        self.fetcher = PlaylistFetcher(
            http_client=self.http_client,
            logger=self.logger,
            api_base_url=spotify.api_base_url
        )
        self.notifier = build_notifier(
            self.settings.notifications,
            self.logger,
            http_client=self.http_client
        )
        self.monitor = PlaylistMonitor(
            token_provider=self.token_provider,
            fetcher=self.fetcher,
            store=self.store,
            notifier=self.notifier,
            logger=self.logger,
            max_workers=self.settings.scheduler.max_workers
        )
        self.scheduler: Optional[PlaylistScheduler] = self.build_scheduler()

    def build_scheduler(self) -> Optional[PlaylistScheduler]:
        """Create the recurring check scheduler.

        Returns:
            PlaylistScheduler, or None when no playlists are configured
        """
        config = self.settings.scheduler
        if not config.enabled:
            self.logger.info("No monitored playlists configured, scheduled checks disabled")
            return None

        return PlaylistScheduler(
            logger=self.logger,
            monitor=self.monitor,
            playlist_ids=config.playlist_ids,
            check_interval_minutes=config.check_interval_minutes,
            use_cron=config.use_cron_schedule,
            cron_schedule=config.cron_schedule
        )

    def create_app(self):
        """Create the HTTP API bound to this service's monitor."""
        return create_app(
            self.monitor,
            self.logger,
            expose_errors=self.settings.server.expose_errors
        )

    def setup_signal_handlers(self) -> None:
        """Setup signal handlers for graceful shutdown."""

        def signal_handler(signum, frame):
            self.logger.info(f"Received signal {signum}, shutting down...")
            self.shutdown()
            sys.exit(0)

        # Windows uses SIGBREAK, Linux/macOS use SIGTERM
        signal.signal(signal.SIGINT, signal_handler)

        if is_windows():
            signal.signal(signal.SIGBREAK, signal_handler)
        else:
            signal.signal(signal.SIGTERM, signal_handler)

    def start(self, serve_http: bool = True, initial_check: bool = True) -> None:
        """Start the monitoring service.

        Args:
            serve_http: Also serve the HTTP API (blocks until the server stops)
            initial_check: Run a batch check right after startup
        """
        try:
            self.running = True

            if self.scheduler:
                self.scheduler.start()

                next_run = self.scheduler.get_next_run_time()
                if next_run:
                    self.logger.info(f"Next check scheduled for: {next_run}")

                if initial_check:
                    self.scheduler.trigger_immediate_check()

            if serve_http:
                # uvicorn installs its own signal handlers
                server = self.settings.server
                self.logger.info(f"Server is running on port {server.port}")
                uvicorn.run(self.create_app(), host=server.host, port=server.port, log_config=None)
                self.shutdown()
                return

            if not self.scheduler:
                raise RuntimeError("Nothing to run: no playlists configured and HTTP server disabled")

            self.setup_signal_handlers()
            self.logger.info("Service started successfully")
            self.logger.info("Press Ctrl+C to stop")
            self._keep_alive()

        except KeyboardInterrupt:
            self.logger.info("Keyboard interrupt received")
            self.shutdown()
        except Exception as e:
            self.logger.error(f"Service error: {e}", exc_info=True)
            self.shutdown()
            raise

    def _keep_alive(self) -> None:
        """Keep the service alive.

        Windows doesn't support signal.pause(), so we use a sleep loop.
        """
        if is_windows():
            while self.running:
                time.sleep(1)
        else:
            while self.running:
                signal.pause()

    def shutdown(self) -> None:
        """Graceful shutdown.

        Also releases the HTTP client of a service that was never started.
        """
        if self.running:
            self.logger.info("Shutting down service...")
            self.running = False

            if self.scheduler:
                self.scheduler.stop()

            self.logger.info("Service stopped")

        self.http_client.close()


def main():
    """Main entry point."""
    service = PlaylistMonitorService()
    service.start()


if __name__ == "__main__":
    main()
