"""Scheduler for recurring playlist checks."""

import logging
from typing import List, Optional

from apscheduler.schedulers.background import BackgroundScheduler
from apscheduler.triggers.cron import CronTrigger
from apscheduler.triggers.interval import IntervalTrigger

from ..models.result import CheckResult
from .monitor import PlaylistMonitor


class PlaylistScheduler:
    """Runs batch checks of the configured playlists on a fixed cadence."""

    def __init__(
        self,
        logger: logging.Logger,
        monitor: PlaylistMonitor,
        playlist_ids: List[str],
        check_interval_minutes: int = 5,
        use_cron: bool = False,
        cron_schedule: str = "*/5 * * * *"
    ):
        """Initialize scheduler.

        Args:
            logger: Logger instance
            monitor: Playlist monitor running the checks
            playlist_ids: Playlists checked on every run
            check_interval_minutes: Check interval in minutes (if not using cron)
            use_cron: Whether to use cron-style scheduling
            cron_schedule: Cron schedule string (if use_cron is True)
        """
        self.logger = logger
        self.monitor = monitor
        self.playlist_ids = list(playlist_ids)
        self.check_interval_minutes = check_interval_minutes
        self.use_cron = use_cron
        self.cron_schedule = cron_schedule

        self.scheduler = BackgroundScheduler()
        self._job_id = "playlist_check"

    def start(self) -> None:
        """Start the scheduler."""
        try:
            if self.use_cron:
                trigger = CronTrigger.from_crontab(self.cron_schedule)
                self.logger.info(f"Starting scheduler with cron schedule: {self.cron_schedule}")
            else:
                trigger = IntervalTrigger(minutes=self.check_interval_minutes)
                self.logger.info(
                    f"Starting scheduler with interval: {self.check_interval_minutes} minutes"
                )

            # A slow batch must not overlap with the next tick
            self.scheduler.add_job(
                self.run_batch,
                trigger=trigger,
                id=self._job_id,
                name="Playlist Check",
                replace_existing=True,
                max_instances=1,
                coalesce=True
            )

            self.scheduler.start()
            self.logger.info(
                f"Playlist monitoring active for: {', '.join(self.playlist_ids)}"
            )

        except Exception as e:
            self.logger.error(f"Failed to start scheduler: {e}")
            raise

    def stop(self) -> None:
        """Stop the scheduler gracefully."""
        try:
            if self.scheduler.running:
                self.logger.info("Stopping scheduler...")
                self.scheduler.shutdown(wait=True)
                self.logger.info("Scheduler stopped")
        except Exception as e:
            self.logger.error(f"Error stopping scheduler: {e}")

    def run_batch(self) -> List[CheckResult]:
        """Check every configured playlist once.

        Errors are logged, never raised, so the scheduler keeps running.
        """
        try:
            self.logger.info("Running scheduled playlist check...")
            results = self.monitor.check_multiple_playlists(self.playlist_ids)
        except Exception as e:
            self.logger.error(f"Error in scheduled check: {e}", exc_info=True)
            return []

        new_songs_count = sum(len(result.new_songs) for result in results)
        failed = [result.playlist_id for result in results if not result.success]

        if new_songs_count > 0:
            self.logger.info(f"Found {new_songs_count} new song(s) across all playlists")
        else:
            self.logger.info("No new songs found")

        if failed:
            self.logger.warning(f"{len(failed)} playlist check(s) failed: {', '.join(failed)}")

        return results

    def trigger_immediate_check(self) -> None:
        """Run a batch check now, in the scheduler's thread pool."""
        try:
            self.logger.info("Triggering immediate check")
            self.scheduler.add_job(
                self.run_batch,
                id="manual_check",
                replace_existing=True
            )
        except Exception as e:
            self.logger.error(f"Failed to trigger immediate check: {e}")

    def get_next_run_time(self) -> Optional[str]:
        """Get the next scheduled run time.

        Returns:
            Next run time as string, or None if scheduler not running
        """
        job = self.scheduler.get_job(self._job_id)
        if job and job.next_run_time:
            return str(job.next_run_time)
        return None

    def is_running(self) -> bool:
        """Check if scheduler is running."""
        return self.scheduler.running
