import json
import logging
import smtplib

import httpx
import pytest

from spotify_playlist_monitor.config.settings import NotificationConfig
from spotify_playlist_monitor.core import notifier as notifier_module
from spotify_playlist_monitor.core.notifier import (
    DesktopNotifier,
    EmailApiNotifier,
    SmtpNotifier,
    build_new_tracks_message,
    build_notifier,
)
from spotify_playlist_monitor.models.track import Track

LOGGER = logging.getLogger("tests.notifier")

SONGS = [
    Track(track_id="a", name="Song <A>", artists="Artist 1"),
    Track(track_id="b", name="Song B", artists="Artist 2, Artist 3"),
]


class FakeSMTP:
    instances = []

    def __init__(self, host, port, timeout=None):
        self.host = host
        self.port = port
        self.started_tls = False
        self.logged_in = None
        self.sent = []
        self.fail_login = False
        FakeSMTP.instances.append(self)

    def __enter__(self):
        return self

    def __exit__(self, *args):
        return False

    def starttls(self, context=None):
        self.started_tls = True

    def login(self, user, password):
        if password == "wrong":
            raise smtplib.SMTPAuthenticationError(535, b"authentication failed")
        self.logged_in = (user, password)

    def send_message(self, message):
        self.sent.append(message)


@pytest.fixture
def fake_smtp(monkeypatch):
    FakeSMTP.instances = []
    monkeypatch.setattr(smtplib, "SMTP", FakeSMTP)
    return FakeSMTP


def smtp_config(**overrides):
    values = dict(
        backend="smtp",
        smtp_host="smtp.example.com",
        smtp_port=587,
        smtp_user="bot@example.com",
        smtp_password="secret",
        to_address="me@example.com",
    )
    values.update(overrides)
    return NotificationConfig(**values)


def test_message_lists_songs_with_plural_subject():
    message = build_new_tracks_message("Chill", SONGS)

    assert message.subject == 'New Songs Added to "Chill"'
    assert "2 new songs have been added" in message.text
    assert "1. Song <A> - Artist 1" in message.text
    assert "2. Song B - Artist 2, Artist 3" in message.text
    assert "Song &lt;A&gt;" in message.html


def test_message_singular_subject():
    message = build_new_tracks_message("Chill", SONGS[:1])

    assert message.subject == 'New Song Added to "Chill"'
    assert "1 new song has been added" in message.text


def test_smtp_delivery(fake_smtp):
    notifier = SmtpNotifier(smtp_config(), LOGGER)

    result = notifier.notify_new_tracks("Chill", SONGS)

    assert result.success
    assert result.backend == "smtp"
    server = fake_smtp.instances[0]
    assert (server.host, server.port) == ("smtp.example.com", 587)
    assert server.started_tls
    assert server.logged_in == ("bot@example.com", "secret")

    email = server.sent[0]
    assert email['To'] == "me@example.com"
    assert "bot@example.com" in email['From']
    assert email['Subject'] == 'New Songs Added to "Chill"'
    assert result.message_id == email['Message-ID']


def test_smtp_failure_returns_failed_result(fake_smtp):
    notifier = SmtpNotifier(smtp_config(smtp_password="wrong"), LOGGER)

    result = notifier.notify_new_tracks("Chill", SONGS)

    assert not result.success
    assert "SMTP delivery failed" in result.error


def test_smtp_not_configured(fake_smtp):
    notifier = SmtpNotifier(smtp_config(smtp_host=None), LOGGER)

    result = notifier.notify_new_tracks("Chill", SONGS)

    assert not result.success
    assert "not configured" in result.error
    assert fake_smtp.instances == []


def test_disabled_notifier_sends_nothing(fake_smtp):
    notifier = SmtpNotifier(smtp_config(enabled=False), LOGGER)

    result = notifier.notify_new_tracks("Chill", SONGS)

    assert not result.success
    assert result.error == "Notifications disabled"
    assert fake_smtp.instances == []


def api_config(**overrides):
    values = dict(
        backend="email_api",
        api_url="https://mail.example.com/emails",
        api_key="key-123",
        from_address="bot@example.com",
        to_address="me@example.com",
    )
    values.update(overrides)
    return NotificationConfig(**values)


def test_email_api_delivery():
    requests = []

    def handler(request):
        requests.append(request)
        return httpx.Response(200, json={'id': 'email-42'})

    client = httpx.Client(transport=httpx.MockTransport(handler))
    notifier = EmailApiNotifier(api_config(), client, LOGGER)

    result = notifier.notify_new_tracks("Chill", SONGS)

    assert result.success
    assert result.message_id == "email-42"
    request = requests[0]
    assert str(request.url) == "https://mail.example.com/emails"
    assert request.headers['Authorization'] == "Bearer key-123"
    body = json.loads(request.content)
    assert body['to'] == ["me@example.com"]
    assert body['subject'] == 'New Songs Added to "Chill"'
    assert "Song B" in body['text']


def test_email_api_rejection_returns_failed_result():
    client = httpx.Client(transport=httpx.MockTransport(
        lambda request: httpx.Response(422, json={'message': 'invalid from'})
    ))
    notifier = EmailApiNotifier(api_config(), client, LOGGER)

    result = notifier.notify_new_tracks("Chill", SONGS)

    assert not result.success
    assert "422" in result.error


def test_email_api_network_error_returns_failed_result():
    def handler(request):
        raise httpx.ConnectError("unreachable", request=request)

    notifier = EmailApiNotifier(api_config(), httpx.Client(transport=httpx.MockTransport(handler)), LOGGER)

    assert not notifier.notify_new_tracks("Chill", SONGS).success


def test_desktop_delivery(monkeypatch):
    shown = []

    class FakePlyer:
        @staticmethod
        def notify(**kwargs):
            shown.append(kwargs)

    monkeypatch.setattr(notifier_module, "plyer_notification", FakePlyer)
    notifier = DesktopNotifier(NotificationConfig(backend="desktop"), LOGGER)

    result = notifier.notify_new_tracks("Chill", SONGS)

    assert result.success
    assert shown[0]['title'] == 'New Songs Added to "Chill"'
    assert "Song B - Artist 2, Artist 3" in shown[0]['message']


def test_desktop_without_platform_support(monkeypatch):
    class NoBackend:
        @staticmethod
        def notify(**kwargs):
            raise NotImplementedError("No usable implementation found!")

    monkeypatch.setattr(notifier_module, "plyer_notification", NoBackend)
    notifier = DesktopNotifier(NotificationConfig(backend="desktop"), LOGGER)

    assert not notifier.send_test().success


@pytest.mark.parametrize("backend, expected", [
    ("smtp", SmtpNotifier),
    ("email_api", EmailApiNotifier),
    ("desktop", DesktopNotifier),
])
def test_build_notifier_selects_backend(backend, expected):
    notifier = build_notifier(NotificationConfig(backend=backend), LOGGER, http_client=httpx.Client())

    assert isinstance(notifier, expected)
    assert notifier.backend == backend


def test_send_test_uses_backend(fake_smtp):
    notifier = SmtpNotifier(smtp_config(), LOGGER)

    result = notifier.send_test()

    assert result.success
    assert "Test Notification" in fake_smtp.instances[0].sent[0]['Subject']
