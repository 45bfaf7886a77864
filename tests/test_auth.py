"""Test refresh-token authentication"""

from unittest.mock import MagicMock, patch

import pytest
import requests
from spotipy.oauth2 import SpotifyOauthError

from release_sync.core.config import SpotifyConfig
from release_sync.core.exceptions import ConfigError, SpotifyError
from release_sync.spotify.auth import SCOPES, authorize, build_oauth, refresh_access_token


@pytest.fixture
def spotify_config():
    return SpotifyConfig(
        client_id="client-id",
        client_secret="client-secret",
        refresh_token="refresh-token",
        redirect_uri="http://127.0.0.1:8888/callback",
    )


class TestRefreshAccessToken:
    """Test refresh_access_token"""

    def test_returns_access_token(self, spotify_config):
        oauth = MagicMock()
        oauth.refresh_access_token.return_value = {"access_token": "fresh"}

        assert refresh_access_token(spotify_config, oauth=oauth) == "fresh"
        oauth.refresh_access_token.assert_called_once_with("refresh-token")

    def test_missing_refresh_token(self, spotify_config):
        """No refresh token is a configuration problem"""
        config = SpotifyConfig("id", "secret", None, spotify_config.redirect_uri)
        oauth = MagicMock()

        with pytest.raises(ConfigError):
            refresh_access_token(config, oauth=oauth)
        oauth.refresh_access_token.assert_not_called()

    def test_rejected_refresh_token(self, spotify_config):
        """An invalid grant is reported as an auth error"""
        oauth = MagicMock()
        oauth.refresh_access_token.side_effect = SpotifyOauthError(
            "error: invalid_grant", error="invalid_grant", error_description="Invalid refresh token"
        )

        with pytest.raises(SpotifyError) as exc_info:
            refresh_access_token(spotify_config, oauth=oauth)

        assert exc_info.value.is_auth_error is True
        assert exc_info.value.details["body"]["error"] == "invalid_grant"

    def test_network_failure(self, spotify_config):
        oauth = MagicMock()
        oauth.refresh_access_token.side_effect = requests.exceptions.Timeout("slow")

        with pytest.raises(SpotifyError) as exc_info:
            refresh_access_token(spotify_config, oauth=oauth)
        assert exc_info.value.is_auth_error is False

    def test_no_access_token_in_response(self, spotify_config):
        oauth = MagicMock()
        oauth.refresh_access_token.return_value = {}
        with pytest.raises(SpotifyError):
            refresh_access_token(spotify_config, oauth=oauth)


class TestOauth:
    """Test OAuth manager construction and the login flow"""

    def test_build_oauth_scopes(self, spotify_config):
        """The manager asks for every scope the app needs"""
        oauth = build_oauth(spotify_config, open_browser=False)
        assert set(oauth.scope.split()) == set(SCOPES)

    def test_authorize_returns_refresh_token(self, spotify_config):
        oauth = MagicMock()
        oauth.get_auth_response.return_value = "code"
        oauth.cache_handler.get_cached_token.return_value = {"access_token": "a", "refresh_token": "r"}

        with patch("release_sync.spotify.auth.build_oauth", return_value=oauth):
            token_info = authorize(spotify_config, open_browser=False)

        assert token_info["refresh_token"] == "r"
        oauth.get_access_token.assert_called_once_with("code", as_dict=False, check_cache=False)

    def test_authorize_denied(self, spotify_config):
        oauth = MagicMock()
        oauth.get_auth_response.side_effect = SpotifyOauthError("access_denied")

        with patch("release_sync.spotify.auth.build_oauth", return_value=oauth):
            with pytest.raises(SpotifyError) as exc_info:
                authorize(spotify_config, open_browser=False)
        assert exc_info.value.is_auth_error is True
