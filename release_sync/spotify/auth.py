"""
Spotify user authorization.

release-sync runs unattended, so it authenticates with a long-lived
refresh token rather than an interactive login on every run:

    1. Once: `release-sync login` runs the authorization-code flow in the
       browser and prints the refresh token. Store it as
       SPOTIFY_REFRESH_TOKEN in .env.
    2. Every run: refresh_access_token() exchanges the refresh token for
       a fresh access token, which is handed to SpotifyClient.

Tokens are kept in memory only (MemoryCacheHandler); no .cache file is
written next to the project.
"""

from typing import Any

import requests
from spotipy.cache_handler import MemoryCacheHandler
from spotipy.oauth2 import SpotifyOAuth, SpotifyOauthError

from release_sync.core.config import SpotifyConfig
from release_sync.core.exceptions import ConfigError, SpotifyError
from release_sync.core.logger import get_logger


logger = get_logger(__name__)

# Read follows, read the target playlist, append to it (public or private)
SCOPES = (
    "user-follow-read",
    "playlist-read-private",
    "playlist-modify-public",
    "playlist-modify-private",
)


def build_oauth(spotify_config: SpotifyConfig, open_browser: bool = True) -> SpotifyOAuth:
    """Create the spotipy OAuth manager for the configured application."""
    return SpotifyOAuth(
        client_id=spotify_config.client_id,
        client_secret=spotify_config.client_secret,
        redirect_uri=spotify_config.redirect_uri,
        scope=" ".join(SCOPES),
        cache_handler=MemoryCacheHandler(),
        open_browser=open_browser,
    )


def refresh_access_token(spotify_config: SpotifyConfig, oauth: SpotifyOAuth | None = None) -> str:
    """
    Exchange the configured refresh token for an access token.

    Args:
        spotify_config: Credentials including the refresh token.
        oauth: OAuth manager to use (tests inject a mock here).

    Returns:
        A fresh access token.

    Raises:
        ConfigError: If no refresh token is configured.
        SpotifyError: If Spotify rejects the exchange (is_auth_error=True)
                      or the token endpoint cannot be reached.
    """
    if not spotify_config.refresh_token:
        raise ConfigError(
            "SPOTIFY_REFRESH_TOKEN is not set. Run 'release-sync login' first.",
            details={"field": "spotify.refresh_token"}
        )

    if oauth is None:
        oauth = build_oauth(spotify_config, open_browser=False)

    try:
        token_info = oauth.refresh_access_token(spotify_config.refresh_token)
    except SpotifyOauthError as e:
        raise SpotifyError(
            f"Failed to refresh access token: {e}",
            details={
                "body": {"error": getattr(e, "error", None),
                         "error_description": getattr(e, "error_description", None)},
            },
            is_auth_error=True
        ) from e
    except requests.exceptions.RequestException as e:
        raise SpotifyError(
            f"Network error while refreshing access token: {e}",
            details={"original_error": str(e)}
        ) from e

    access_token = (token_info or {}).get("access_token")
    if not access_token:
        raise SpotifyError(
            "Token endpoint returned no access token",
            is_auth_error=True
        )

    logger.debug("Access token refreshed")
    return access_token


def authorize(spotify_config: SpotifyConfig, open_browser: bool = True) -> dict[str, Any]:
    """
    Run the interactive authorization-code flow.

    Opens the Spotify consent page (or prints its URL), waits for the
    redirect carrying the authorization code, and exchanges the code for
    tokens.

    Args:
        spotify_config: Application credentials and redirect URI.
        open_browser: Open the consent page automatically.

    Returns:
        Token info dictionary with 'access_token' and 'refresh_token'.

    Raises:
        SpotifyError: If the user denies access or the exchange fails.
    """
    oauth = build_oauth(spotify_config, open_browser=open_browser)

    try:
        code = oauth.get_auth_response(open_browser=open_browser)
        oauth.get_access_token(code, as_dict=False, check_cache=False)
    except SpotifyOauthError as e:
        raise SpotifyError(
            f"Authorization failed: {e}",
            is_auth_error=True
        ) from e

    token_info = oauth.cache_handler.get_cached_token()
    if not token_info or not token_info.get("refresh_token"):
        raise SpotifyError(
            "Authorization completed without a refresh token",
            is_auth_error=True
        )
    return token_info
