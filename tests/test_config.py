"""Test configuration loading"""

from pathlib import Path

import pytest

from release_sync.core.config import DEFAULT_PLAYLIST_NAME, DEFAULT_REDIRECT_URI, load_config, validate_playlist_id
from release_sync.core.exceptions import ConfigError


BASE_ENV = {
    "SPOTIFY_CLIENT_ID": "client-id",
    "SPOTIFY_CLIENT_SECRET": "client-secret",
    "STATE_PATH": "/tmp/release-sync-test/state.json",
}


@pytest.fixture
def config_file(tmp_path):
    """Write a config.yaml and return its path"""
    def write(content):
        path = tmp_path / "config.yaml"
        path.write_text(content, encoding="utf-8")
        return path
    return write


class TestLoadConfig:
    """Test load_config"""

    def test_defaults_from_environment_only(self, tmp_path, monkeypatch):
        """Without a config file every optional value has its default"""
        monkeypatch.chdir(tmp_path)
        config = load_config(env=BASE_ENV)

        assert config.spotify.client_id == "client-id"
        assert config.spotify.refresh_token is None
        assert config.spotify.redirect_uri == DEFAULT_REDIRECT_URI
        assert config.playlist.id is None
        assert config.playlist.name == DEFAULT_PLAYLIST_NAME
        assert config.releases.lookback_days == 30
        assert config.releases.limit_per_artist == 5
        assert config.state.path == Path("/tmp/release-sync-test/state.json")
        assert config.state.keep_progress_on_failure is False
        assert config.requests.max_retries == 8
        assert config.requests.artist_delay == 0.15
        assert config.requests.max_pages is None

    def test_environment_overrides_file(self, config_file):
        """Environment variables win over config.yaml"""
        path = config_file(
            "spotify:\n"
            "  client_id: from-file\n"
            "  client_secret: secret-from-file\n"
            "releases:\n"
            "  lookback_days: 14\n"
            "  limit_per_artist: 10\n"
        )
        env = {**BASE_ENV, "RELEASE_LOOKBACK_DAYS": "60"}

        config = load_config(path, env=env)

        assert config.spotify.client_id == "client-id"
        assert config.releases.lookback_days == 60
        assert config.releases.limit_per_artist == 10

    def test_file_only_values(self, config_file):
        """Tuning knobs are read from config.yaml"""
        path = config_file(
            "state:\n"
            "  keep_progress_on_failure: true\n"
            "requests:\n"
            "  max_retries: 3\n"
            "  artist_delay: 0\n"
            "  max_pages: 20\n"
        )

        config = load_config(path, env=BASE_ENV)

        assert config.state.keep_progress_on_failure is True
        assert config.requests.max_retries == 3
        assert config.requests.artist_delay == 0.0
        assert config.requests.max_pages == 20

    def test_blank_environment_values_are_ignored(self, tmp_path, monkeypatch):
        """Empty variables do not override defaults"""
        monkeypatch.chdir(tmp_path)
        config = load_config(env={**BASE_ENV, "TARGET_PLAYLIST_ID": "  ", "RELEASE_LIMIT_PER_ARTIST": ""})

        assert config.playlist.id is None
        assert config.releases.limit_per_artist == 5

    @pytest.mark.parametrize("missing", ["SPOTIFY_CLIENT_ID", "SPOTIFY_CLIENT_SECRET"])
    def test_missing_credentials(self, tmp_path, monkeypatch, missing):
        """Client id and secret are required"""
        monkeypatch.chdir(tmp_path)
        env = {key: value for key, value in BASE_ENV.items() if key != missing}

        with pytest.raises(ConfigError):
            load_config(env=env)

    @pytest.mark.parametrize("name,value", [
        ("RELEASE_LOOKBACK_DAYS", "thirty"),
        ("RELEASE_LOOKBACK_DAYS", "-1"),
        ("RELEASE_LIMIT_PER_ARTIST", "0"),
        ("RELEASE_LIMIT_PER_ARTIST", "51"),
    ])
    def test_invalid_numbers(self, tmp_path, monkeypatch, name, value):
        """Out-of-range or non-numeric values are rejected"""
        monkeypatch.chdir(tmp_path)
        with pytest.raises(ConfigError) as exc_info:
            load_config(env={**BASE_ENV, name: value})
        assert exc_info.value.details["field"].startswith("releases.")

    def test_explicit_missing_file(self, tmp_path):
        """An explicit config path must exist"""
        with pytest.raises(ConfigError):
            load_config(tmp_path / "nope.yaml", env=BASE_ENV)

    def test_invalid_yaml(self, config_file):
        with pytest.raises(ConfigError):
            load_config(config_file("spotify: [unclosed\n"), env=BASE_ENV)

    def test_section_must_be_mapping(self, config_file):
        with pytest.raises(ConfigError):
            load_config(config_file("requests: 5\n"), env=BASE_ENV)

    def test_keep_progress_must_be_boolean(self, config_file):
        with pytest.raises(ConfigError):
            load_config(config_file("state:\n  keep_progress_on_failure: sometimes\n"), env=BASE_ENV)

    def test_config_is_frozen(self, tmp_path, monkeypatch):
        """Configuration objects cannot be modified"""
        monkeypatch.chdir(tmp_path)
        config = load_config(env=BASE_ENV)
        with pytest.raises(AttributeError):
            config.releases.lookback_days = 1

    def test_state_path_from_azure(self, tmp_path, monkeypatch):
        """Without STATE_PATH the hosting environment decides"""
        monkeypatch.chdir(tmp_path)
        env = {"SPOTIFY_CLIENT_ID": "id", "SPOTIFY_CLIENT_SECRET": "secret",
               "WEBSITE_SITE_NAME": "app", "HOME": "/home/site"}

        assert load_config(env=env).state.path == Path("/home/site/data/state.json")


class TestValidatePlaylistId:
    """Test validate_playlist_id"""

    def test_valid_id(self):
        assert validate_playlist_id(" 37i9dQZF1DXcBWIGoYBM5M ") == "37i9dQZF1DXcBWIGoYBM5M"

    @pytest.mark.parametrize("value", [None, "", "short", "   123456789   "])
    def test_invalid_ids(self, value):
        """Missing or too-short ids fail before any request"""
        with pytest.raises(ConfigError) as exc_info:
            validate_playlist_id(value)
        assert exc_info.value.details["field"] == "playlist.id"
