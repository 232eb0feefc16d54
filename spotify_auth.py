"""
=========================================================
Spotify OAuth Handshake
=========================================================

Purpose:
- Generate the CSRF "state" token for each login attempt
- Build the Spotify authorization URL
- Exchange an authorization code for access/refresh tokens

Note:
- Tokens are NOT cached or stored. The exchange is one POST
  whose body is handed straight back to the caller.
=========================================================
"""

# =========================================================
# IMPORTS
# =========================================================
import logging
import secrets
import string
from dataclasses import dataclass

import requests
from requests.auth import HTTPBasicAuth
from spotipy.cache_handler import MemoryCacheHandler
from spotipy.oauth2 import SpotifyOAuth, SpotifyOauthError

logger = logging.getLogger(__name__)

# =========================================================
# CONSTANTS
# =========================================================
STATE_KEY = "spotify_auth_state"
STATE_LENGTH = 16

# Permissions requested from Spotify
SCOPE = (
    "user-read-private "
    "user-read-email "
    "user-read-recently-played "
    "user-top-read "
    "user-follow-read "
    "user-follow-modify "
    "playlist-read-private "
    "playlist-read-collaborative "
    "playlist-modify-public"
)

_STATE_ALPHABET = string.ascii_letters + string.digits


class TokenExchangeError(Exception):
    """The authorization code could not be traded for tokens."""


@dataclass(frozen=True)
class TokenPair:
    access_token: str
    refresh_token: str


def generate_state(length=STATE_LENGTH):
    """Random alphanumeric string used as the OAuth state."""
    return "".join(secrets.choice(_STATE_ALPHABET) for _ in range(length))


# =========================================================
# AUTH GATEWAY
# =========================================================
class AuthGateway:
    """
    OAuth authorization-code flow against Spotify.

    Only the client id/secret in the AppConfig are used;
    Spotipy's SPOTIPY_* environment fallbacks never apply.
    """

    def __init__(self, config, requests_session=None):
        self.config = config
        self.session = requests_session or requests.Session()

    def _oauth(self, scope=None):
        if not self.config.client_id or not self.config.client_secret:
            raise SpotifyOauthError("CLIENT_ID and CLIENT_SECRET must be set")

        return SpotifyOAuth(
            client_id=self.config.client_id,
            client_secret=self.config.client_secret,
            redirect_uri=self.config.redirect_uri,
            scope=scope,
            cache_handler=MemoryCacheHandler(),
            requests_session=self.session,
            requests_timeout=self.config.token_timeout,
            open_browser=False,
        )

    def authorize_url(self, state):
        """Spotify login page URL carrying our client id, scope and state."""
        return self._oauth(scope=SCOPE).get_authorize_url(state=state)

    def exchange_code(self, code):
        """
        Trade an authorization code for a TokenPair.

        Only HTTP 200 counts as success. Raises TokenExchangeError
        on a missing code, a network failure, any other status or
        a body without an access token. No retries.
        """
        if not code:
            raise TokenExchangeError("missing authorization code")

        try:
            response = self.session.post(
                SpotifyOAuth.OAUTH_TOKEN_URL,
                data={
                    "code": code,
                    "redirect_uri": self.config.redirect_uri,
                    "grant_type": "authorization_code",
                },
                auth=HTTPBasicAuth(self.config.client_id, self.config.client_secret),
                headers={"Accept": "application/json"},
                timeout=self.config.token_timeout,
            )
        except requests.RequestException as e:
            raise TokenExchangeError(f"token request failed: {e}") from e

        if response.status_code != 200:
            raise TokenExchangeError(
                f"Spotify rejected the code: HTTP {response.status_code} {response.text[:200]}"
            )

        try:
            token_info = response.json()
            return TokenPair(
                access_token=token_info["access_token"],
                refresh_token=token_info.get("refresh_token", ""),
            )
        except (KeyError, TypeError, ValueError) as e:
            raise TokenExchangeError(f"malformed token response: {e!r}") from e
