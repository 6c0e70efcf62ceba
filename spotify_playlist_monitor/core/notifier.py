"""Notification delivery for newly detected tracks.

One ``Notifier`` interface with interchangeable backends:

- ``smtp``: e-mail through an SMTP server (smtplib)
- ``email_api``: e-mail through a transactional e-mail HTTP API
- ``desktop``: local desktop notification (plyer)

``build_notifier`` picks the backend from configuration; callers only ever
see ``notify_new_tracks`` and ``send_test``.
"""

import html
import logging
import smtplib
import ssl
from abc import ABC, abstractmethod
from dataclasses import dataclass
from email.message import EmailMessage
from email.utils import formataddr, make_msgid
from typing import List, Optional

import httpx
from plyer import notification as plyer_notification

from ..config.settings import NotificationConfig
from ..exceptions import NotifyError
from ..models.track import Track

APP_NAME = "Spotify Playlist Monitor"


@dataclass
class NotificationMessage:
    """Rendered notification content."""

    subject: str
    text: str
    html: str


@dataclass
class NotificationResult:
    """Outcome of one delivery attempt."""

    success: bool
    backend: str
    error: Optional[str] = None
    message_id: Optional[str] = None


def build_new_tracks_message(playlist_name: str, tracks: List[Track]) -> NotificationMessage:
    """Render the notification for new tracks in a playlist.

    Args:
        playlist_name: Playlist name
        tracks: Newly detected tracks

    Returns:
        NotificationMessage
    """
    count = len(tracks)
    plural = count > 1
    song_word = "Songs" if plural else "Song"
    have_has = "songs have" if plural else "song has"

    subject = f'New {song_word} Added to "{playlist_name}"'

    song_list = "\n".join(
        f"{index}. {track.name} - {track.artists}"
        for index, track in enumerate(tracks, start=1)
    )
    text = (
        "Hello!\n\n"
        f'{count} new {have_has} been added to your playlist "{playlist_name}":\n\n'
        f"{song_list}\n\n"
        "Happy listening!\n\n"
        "---\n"
        f"This is an automated notification from your {APP_NAME}.\n"
    )

    items = "".join(
        f"<li><strong>{html.escape(track.name)}</strong><br>"
        f"<span>{html.escape(track.artists)}</span></li>"
        for track in tracks
    )
    body_html = (
        f"<h2>New {song_word} Added!</h2>"
        f"<p><strong>{count}</strong> new {have_has} been added to your playlist "
        f"<strong>&quot;{html.escape(playlist_name)}&quot;</strong>:</p>"
        f"<ul>{items}</ul>"
        "<p>Happy listening!</p>"
        f"<p><small>This is an automated notification from your {APP_NAME}.</small></p>"
    )

    return NotificationMessage(subject=subject, text=text, html=body_html)


def build_test_message() -> NotificationMessage:
    """Render the configuration test notification."""
    return NotificationMessage(
        subject=f"{APP_NAME} - Test Notification",
        text="Your notification system is working correctly!",
        html=(
            "<h2>Test Successful!</h2>"
            "<p>Your playlist monitor is configured correctly and ready to send notifications.</p>"
        )
    )


class Notifier(ABC):
    """Delivers notifications through one configured backend."""

    backend = "none"

    def __init__(self, logger: logging.Logger, enabled: bool = True):
        """Initialize notifier.

        Args:
            logger: Logger instance
            enabled: Whether notifications are enabled
        """
        self.logger = logger
        self.enabled = enabled

    @abstractmethod
    def _deliver(self, message: NotificationMessage) -> Optional[str]:
        """Deliver a rendered message.

        Returns:
            Backend message ID, if any

        Raises:
            NotifyError: If delivery fails
        """

    def send(self, message: NotificationMessage) -> NotificationResult:
        """Send a notification, never raising.

        Args:
            message: Rendered message

        Returns:
            NotificationResult
        """
        if not self.enabled:
            return NotificationResult(
                success=False, backend=self.backend, error="Notifications disabled"
            )

        try:
            message_id = self._deliver(message)
        except NotifyError as e:
            self.logger.error(f"Failed to send notification via {self.backend}: {e}")
            return NotificationResult(success=False, backend=self.backend, error=str(e))

        self.logger.info(f"Notification sent via {self.backend}: {message.subject}")
        return NotificationResult(success=True, backend=self.backend, message_id=message_id)

    def notify_new_tracks(self, playlist_name: str, tracks: List[Track]) -> NotificationResult:
        """Notify about new tracks found in a playlist.

        Args:
            playlist_name: Playlist name
            tracks: Newly detected tracks

        Returns:
            NotificationResult
        """
        return self.send(build_new_tracks_message(playlist_name, tracks))

    def send_test(self) -> NotificationResult:
        """Send a test notification to verify the configuration."""
        return self.send(build_test_message())


class SmtpNotifier(Notifier):
    """E-mail notifications through an SMTP server."""

    backend = "smtp"

    def __init__(self, config: NotificationConfig, logger: logging.Logger, timeout: float = 30.0):
        super().__init__(logger, enabled=config.enabled)
        self.config = config
        self.timeout = timeout

    def build_email(self, message: NotificationMessage) -> EmailMessage:
        """Build the MIME message for a notification."""
        sender = self.config.sender
        email = EmailMessage()
        email['Subject'] = message.subject
        email['From'] = formataddr((self.config.from_name, sender))
        email['To'] = self.config.to_address
        email['Message-ID'] = make_msgid()
        email.set_content(message.text)
        email.add_alternative(message.html, subtype='html')
        return email

    def _deliver(self, message: NotificationMessage) -> Optional[str]:
        if not self.config.smtp_host or not self.config.sender or not self.config.to_address:
            raise NotifyError("SMTP notifications are not configured")

        email = self.build_email(message)
        context = ssl.create_default_context()

        try:
            if self.config.smtp_port == 465:
                server = smtplib.SMTP_SSL(
                    self.config.smtp_host, self.config.smtp_port,
                    timeout=self.timeout, context=context
                )
            else:
                server = smtplib.SMTP(
                    self.config.smtp_host, self.config.smtp_port, timeout=self.timeout
                )

            with server:
                if self.config.smtp_port != 465 and self.config.smtp_starttls:
                    server.starttls(context=context)
                if self.config.smtp_user and self.config.smtp_password:
                    server.login(self.config.smtp_user, self.config.smtp_password)
                server.send_message(email)
        except (smtplib.SMTPException, OSError) as e:
            raise NotifyError(f"SMTP delivery failed: {e}") from e

        return email['Message-ID']


class EmailApiNotifier(Notifier):
    """E-mail notifications through a transactional e-mail HTTP API."""

    backend = "email_api"

    def __init__(
        self,
        config: NotificationConfig,
        http_client: httpx.Client,
        logger: logging.Logger
    ):
        super().__init__(logger, enabled=config.enabled)
        self.config = config
        self.http_client = http_client

    def _deliver(self, message: NotificationMessage) -> Optional[str]:
        if not self.config.api_key or not self.config.sender or not self.config.to_address:
            raise NotifyError("E-mail API notifications are not configured")

        payload = {
            'from': formataddr((self.config.from_name, self.config.sender)),
            'to': [self.config.to_address],
            'subject': message.subject,
            'text': message.text,
            'html': message.html,
        }

        try:
            response = self.http_client.post(
                self.config.api_url,
                json=payload,
                headers={'Authorization': f"Bearer {self.config.api_key}"}
            )
        except httpx.HTTPError as e:
            raise NotifyError(f"E-mail API request failed: {e}") from e

        if not response.is_success:
            raise NotifyError(
                f"E-mail API rejected the message (HTTP {response.status_code}): {response.text}"
            )

        try:
            return response.json().get('id')
        except (ValueError, AttributeError):
            return None


class DesktopNotifier(Notifier):
    """Desktop notifications through plyer."""

    backend = "desktop"

    def __init__(self, config: NotificationConfig, logger: logging.Logger, duration: int = 10):
        super().__init__(logger, enabled=config.enabled)
        self.duration = duration

    def _deliver(self, message: NotificationMessage) -> Optional[str]:
        # Desktop toasts only have room for the first lines
        summary = "\n".join(message.text.splitlines()[2:6]).strip()
        try:
            plyer_notification.notify(
                title=message.subject,
                message=summary[:256],
                app_name=APP_NAME,
                timeout=self.duration
            )
        except Exception as e:
            raise NotifyError(f"Desktop notification failed: {e}") from e
        return None


def build_notifier(
    config: NotificationConfig,
    logger: logging.Logger,
    http_client: Optional[httpx.Client] = None
) -> Notifier:
    """Create the notifier for the configured backend.

    Args:
        config: Notification configuration
        logger: Logger instance
        http_client: HTTP client (required for the ``email_api`` backend)

    Returns:
        Notifier instance
    """
    if config.backend == "smtp":
        notifier = SmtpNotifier(config, logger)
    elif config.backend == "email_api":
        notifier = EmailApiNotifier(config, http_client or httpx.Client(timeout=30.0), logger)
    elif config.backend == "desktop":
        notifier = DesktopNotifier(config, logger)
    else:
        raise ValueError(f"Unknown notification backend: {config.backend}")

    logger.debug(f"Using {notifier.backend} for notifications")
    return notifier
