"""Spotify client-credentials authentication."""

import base64
import logging
import threading
import time
from dataclasses import dataclass
from typing import Callable, Optional

import httpx

from ..exceptions import AuthError, ConfigError

SPOTIFY_TOKEN_URL = "https://accounts.spotify.com/api/token"

# Refresh a little before Spotify considers the token expired
EXPIRY_MARGIN_SECONDS = 60


@dataclass(frozen=True)
class TokenLease:
    """Bearer token together with the moment it stops being usable."""

    access_token: str
    expires_at: float  # In the provider clock's time base

    def is_expired(self, now: float) -> bool:
        return now >= self.expires_at - EXPIRY_MARGIN_SECONDS


class TokenProvider:
    """Exchanges client credentials for short-lived bearer tokens."""

    def __init__(
        self,
        client_id: Optional[str],
        client_secret: Optional[str],
        http_client: httpx.Client,
        logger: logging.Logger,
        token_url: str = SPOTIFY_TOKEN_URL,
        cache_token: bool = True,
        clock: Callable[[], float] = time.monotonic
    ):
        """Initialize token provider.

        Args:
            client_id: Spotify application client ID
            client_secret: Spotify application client secret
            http_client: HTTP client used for the exchange
            logger: Logger instance
            token_url: Token endpoint
            cache_token: Reuse a token until it expires
            clock: Monotonic time source (seconds)
        """
        self.client_id = client_id
        self.client_secret = client_secret
        self.http_client = http_client
        self.logger = logger
        self.token_url = token_url
        self.cache_token = cache_token
        self.clock = clock

        self._lease: Optional[TokenLease] = None
        self._lock = threading.Lock()

    def _authorization_header(self) -> str:
        credentials = f"{self.client_id}:{self.client_secret}".encode('utf-8')
        return "Basic " + base64.b64encode(credentials).decode('ascii')

    def _exchange(self) -> TokenLease:
        """Perform one client-credentials exchange.

        Raises:
            ConfigError: If the client ID or secret is missing
            AuthError: If Spotify rejects the request or cannot be reached
        """
        if not self.client_id or not self.client_secret:
            raise ConfigError("Spotify credentials not found")

        try:
            response = self.http_client.post(
                self.token_url,
                data={'grant_type': 'client_credentials'},
                headers={
                    'Authorization': self._authorization_header(),
                    'Content-Type': 'application/x-www-form-urlencoded'
                }
            )
        except httpx.HTTPError as e:
            self.logger.error(f"Error getting Spotify token: {e}")
            raise AuthError("Failed to authenticate with Spotify", str(e)) from e

        if not response.is_success:
            payload = _error_payload(response)
            self.logger.error(
                f"Error getting Spotify token: HTTP {response.status_code} {payload}"
            )
            raise AuthError(
                f"Failed to authenticate with Spotify (HTTP {response.status_code})",
                payload
            )

        try:
            data = response.json()
            access_token = data['access_token']
        except (ValueError, KeyError) as e:
            raise AuthError("Malformed token response from Spotify", response.text) from e

        expires_in = int(data.get('expires_in', 3600))
        self.logger.debug(f"Obtained Spotify token valid for {expires_in}s")
        return TokenLease(access_token=access_token, expires_at=self.clock() + expires_in)

    def acquire_token(self) -> str:
        """Exchange credentials for a fresh bearer token.

        Returns:
            Access token

        Raises:
            ConfigError: If the client ID or secret is missing
            AuthError: If the exchange fails
        """
        return self._exchange().access_token

    def lease(self) -> TokenLease:
        """Get a usable token lease, refreshing it only when expired.

        With caching disabled every call re-authenticates.
        """
        if not self.cache_token:
            return self._exchange()

        with self._lock:
            if self._lease is None or self._lease.is_expired(self.clock()):
                self._lease = self._exchange()
            return self._lease

    def invalidate(self) -> None:
        """Forget the cached lease."""
        with self._lock:
            self._lease = None


def _error_payload(response: httpx.Response):
    """Decode an upstream error body, falling back to raw text."""
    try:
        return response.json()
    except ValueError:
        return response.text or None
