"""
Configuration management for release-sync.

This module handles loading, validating, and providing access to the
application configuration. Values come from three layers, later layers
winning:

    1. config.yaml (optional, current working directory or --config)
    2. .env file (loaded into the environment with python-dotenv)
    3. Environment variables

Secrets normally live in .env or the environment, tuning knobs in
config.yaml. Every value is validated once here and exposed as a frozen
dataclass, so the rest of the code never reads os.environ directly.

Example config.yaml:
    spotify:
      client_id: "your_client_id_here"
      client_secret: "your_client_secret_here"
      redirect_uri: "http://127.0.0.1:8888/callback"

    playlist:
      id: "37i9dQZF1DXcBWIGoYBM5M"
      name: "New Releases (Auto)"

    releases:
      lookback_days: 30
      limit_per_artist: 5

    state:
      path: null                      # default: platform detection
      keep_progress_on_failure: false

    requests:
      max_retries: 8
      artist_delay: 0.15
      timeout: 10
      max_pages: null

    logging:
      directory: "./logs"

Environment Variables:
    SPOTIFY_CLIENT_ID, SPOTIFY_CLIENT_SECRET, SPOTIFY_REFRESH_TOKEN,
    SPOTIFY_REDIRECT_URI, TARGET_PLAYLIST_ID, TARGET_PLAYLIST_NAME,
    RELEASE_LOOKBACK_DAYS, RELEASE_LIMIT_PER_ARTIST, STATE_PATH, LOG_DIR
"""

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Mapping

import yaml
from dotenv import load_dotenv

from release_sync.core.exceptions import ConfigError
from release_sync.core.state import resolve_state_path


# Default configuration file name (looked up in current working directory)
CONFIG_FILENAME = "config.yaml"

DEFAULT_REDIRECT_URI = "http://127.0.0.1:8888/callback"
DEFAULT_PLAYLIST_NAME = "New Releases (Auto)"

# Playlist ids are 22 characters; anything under 10 is certainly a mistake
MIN_PLAYLIST_ID_LENGTH = 10

# Environment variable -> (section, key)
ENV_OVERRIDES: dict[str, tuple[str, str]] = {
    "SPOTIFY_CLIENT_ID": ("spotify", "client_id"),
    "SPOTIFY_CLIENT_SECRET": ("spotify", "client_secret"),
    "SPOTIFY_REFRESH_TOKEN": ("spotify", "refresh_token"),
    "SPOTIFY_REDIRECT_URI": ("spotify", "redirect_uri"),
    "TARGET_PLAYLIST_ID": ("playlist", "id"),
    "TARGET_PLAYLIST_NAME": ("playlist", "name"),
    "RELEASE_LOOKBACK_DAYS": ("releases", "lookback_days"),
    "RELEASE_LIMIT_PER_ARTIST": ("releases", "limit_per_artist"),
    "STATE_PATH": ("state", "path"),
    "LOG_DIR": ("logging", "directory"),
}


@dataclass(frozen=True)
class SpotifyConfig:
    """
    Spotify application credentials.

    Attributes:
        client_id: Client ID from the Spotify Developer Dashboard.
        client_secret: Client secret from the Spotify Developer Dashboard.
        refresh_token: Long-lived user refresh token obtained with
                       `release-sync login`. None until the user logs in.
        redirect_uri: Redirect URI registered for the application.
    """
    client_id: str
    client_secret: str
    refresh_token: str | None
    redirect_uri: str


@dataclass(frozen=True)
class PlaylistConfig:
    """
    Target playlist settings.

    Attributes:
        id: Spotify id of the playlist new tracks are appended to.
        name: Name used by `release-sync create-playlist`.
    """
    id: str | None
    name: str


@dataclass(frozen=True)
class ReleasesConfig:
    """
    Release discovery settings.

    Attributes:
        lookback_days: Fixed window used by the preview commands.
        limit_per_artist: Newest releases fetched per group (album, single).
    """
    lookback_days: int
    limit_per_artist: int


@dataclass(frozen=True)
class StateConfig:
    """
    Run state persistence settings.

    Attributes:
        path: Location of the state JSON document.
        keep_progress_on_failure: Save per-artist scan markers when a run fails.
    """
    path: Path
    keep_progress_on_failure: bool


@dataclass(frozen=True)
class RequestsConfig:
    """
    Spotify request pacing.

    Attributes:
        max_retries: Retries allowed for a single rate-limited request.
        artist_delay: Seconds to pause between artists.
        timeout: Per-request timeout in seconds.
        max_pages: Page cap for every listing, None for unbounded.
    """
    max_retries: int
    artist_delay: float
    timeout: float
    max_pages: int | None


@dataclass(frozen=True)
class LoggingConfig:
    directory: Path


@dataclass(frozen=True)
class Config:
    """
    Complete application configuration.

    Created by load_config() and treated as immutable.

    Example:
        config = load_config()
        playlist_id = validate_playlist_id(config.playlist.id)
        print(f"State file: {config.state.path}")
    """
    spotify: SpotifyConfig
    playlist: PlaylistConfig
    releases: ReleasesConfig
    state: StateConfig
    requests: RequestsConfig
    logging: LoggingConfig


def load_config(
    config_path: Path | None = None,
    env: Mapping[str, str] | None = None
) -> Config:
    """
    Load and validate configuration from config.yaml, .env and the environment.

    Args:
        config_path: Optional explicit path to a config file. It must exist.
                     If None, config.yaml in the current working directory
                     is used when present; otherwise only the environment.
        env: Environment mapping to read. If None, .env is loaded with
             python-dotenv and os.environ is used.

    Returns:
        Config: A frozen dataclass containing all configuration values.

    Raises:
        ConfigError: If an explicit config file is missing, the YAML is
                     invalid, or any value is missing or has the wrong type.

    Example:
        try:
            config = load_config()
        except ConfigError as e:
            print(f"Configuration error: {e.message}")
            sys.exit(1)
    """
    if env is None:
        load_dotenv()
        env = os.environ

    raw_config = _read_config_file(config_path)
    _apply_env_overrides(raw_config, env)

    return Config(
        spotify=_parse_spotify_config(raw_config["spotify"]),
        playlist=_parse_playlist_config(raw_config["playlist"]),
        releases=_parse_releases_config(raw_config["releases"]),
        state=_parse_state_config(raw_config["state"], env),
        requests=_parse_requests_config(raw_config["requests"]),
        logging=_parse_logging_config(raw_config["logging"]),
    )


def validate_playlist_id(playlist_id: str | None) -> str:
    """
    Check that a target playlist id is present and plausible.

    Args:
        playlist_id: The configured playlist id.

    Returns:
        The stripped playlist id.

    Raises:
        ConfigError: If the id is missing or shorter than 10 characters.
    """
    value = (playlist_id or "").strip()
    if len(value) < MIN_PLAYLIST_ID_LENGTH:
        raise ConfigError(
            f"TARGET_PLAYLIST_ID is missing or looks wrong: {playlist_id!r}",
            details={"field": "playlist.id"}
        )
    return value


def _read_config_file(config_path: Path | None) -> dict[str, dict[str, Any]]:
    """
    Read the YAML file into a dictionary with every known section present.

    Missing sections become empty dictionaries so env overrides can
    be applied uniformly.
    """
    sections = {name: {} for name in
                ("spotify", "playlist", "releases", "state", "requests", "logging")}

    if config_path is None:
        config_path = Path.cwd() / CONFIG_FILENAME
        if not config_path.exists():
            return sections
    elif not config_path.exists():
        raise ConfigError(
            f"Configuration file not found: {config_path}",
            details={"file_path": str(config_path)}
        )

    try:
        with open(config_path, "r", encoding="utf-8") as f:
            raw_config = yaml.safe_load(f)
    except OSError as e:
        raise ConfigError(
            f"Failed to read configuration file: {e}",
            details={"file_path": str(config_path), "original_error": str(e)}
        ) from e
    except yaml.YAMLError as e:
        raise ConfigError(
            f"Invalid YAML syntax in configuration file: {e}",
            details={"file_path": str(config_path), "original_error": str(e)}
        ) from e

    if raw_config is None:
        return sections

    if not isinstance(raw_config, dict):
        raise ConfigError(
            "Configuration file must contain a YAML dictionary",
            details={"file_path": str(config_path)}
        )

    for name in sections:
        section = raw_config.get(name)
        if section is None:
            continue
        if not isinstance(section, dict):
            raise ConfigError(
                f"Section '{name}' must be a dictionary",
                details={"section": name}
            )
        sections[name] = dict(section)

    return sections


def _apply_env_overrides(raw_config: dict[str, dict[str, Any]], env: Mapping[str, str]) -> None:
    """Copy non-empty environment variables over file values."""
    for env_var, (section, key) in ENV_OVERRIDES.items():
        value = env.get(env_var)
        if value is not None and value.strip():
            raw_config[section][key] = value.strip()


def _require_string(section: dict[str, Any], key: str, field: str) -> str:
    value = section.get(key)
    if not isinstance(value, str) or not value.strip():
        raise ConfigError(
            f"'{field}' must be a non-empty string",
            details={"field": field}
        )
    return value.strip()


def _optional_string(section: dict[str, Any], key: str, field: str) -> str | None:
    value = section.get(key)
    if value is None:
        return None
    if not isinstance(value, str):
        raise ConfigError(
            f"'{field}' must be a string",
            details={"field": field}
        )
    return value.strip() or None


def _parse_int(value: Any, field: str, minimum: int) -> int:
    """
    Parse an integer that may arrive as a YAML int or an env string.

    Raises:
        ConfigError: If the value is not an integer or is below minimum.
    """
    if isinstance(value, bool):
        parsed = None
    elif isinstance(value, int):
        parsed = value
    else:
        try:
            parsed = int(str(value).strip())
        except ValueError:
            parsed = None

    if parsed is None or parsed < minimum:
        raise ConfigError(
            f"'{field}' must be an integer >= {minimum}",
            details={"field": field, "value": value}
        )
    return parsed


def _parse_float(value: Any, field: str) -> float:
    if isinstance(value, bool):
        value = None
    try:
        parsed = float(value)
    except (TypeError, ValueError):
        parsed = -1.0
    if parsed < 0:
        raise ConfigError(
            f"'{field}' must be a non-negative number",
            details={"field": field, "value": value}
        )
    return parsed


def _parse_spotify_config(spotify_section: dict[str, Any]) -> SpotifyConfig:
    """
    Parse and validate the Spotify credentials.

    Raises:
        ConfigError: If client_id or client_secret is missing or empty.
    """
    return SpotifyConfig(
        client_id=_require_string(spotify_section, "client_id", "spotify.client_id"),
        client_secret=_require_string(spotify_section, "client_secret", "spotify.client_secret"),
        refresh_token=_optional_string(spotify_section, "refresh_token", "spotify.refresh_token"),
        redirect_uri=(
            _optional_string(spotify_section, "redirect_uri", "spotify.redirect_uri")
            or DEFAULT_REDIRECT_URI
        ),
    )


def _parse_playlist_config(playlist_section: dict[str, Any]) -> PlaylistConfig:
    # The id is validated by the commands that need it
    return PlaylistConfig(
        id=_optional_string(playlist_section, "id", "playlist.id"),
        name=_optional_string(playlist_section, "name", "playlist.name") or DEFAULT_PLAYLIST_NAME,
    )


def _parse_releases_config(releases_section: dict[str, Any]) -> ReleasesConfig:
    """
    Parse the release discovery section.

    Defaults: lookback_days 30, limit_per_artist 5. Spotify caps the
    per-request limit at 50.
    """
    limit = _parse_int(releases_section.get("limit_per_artist", 5), "releases.limit_per_artist", 1)
    if limit > 50:
        raise ConfigError(
            "'releases.limit_per_artist' must be at most 50",
            details={"field": "releases.limit_per_artist", "value": limit}
        )
    return ReleasesConfig(
        lookback_days=_parse_int(releases_section.get("lookback_days", 30), "releases.lookback_days", 0),
        limit_per_artist=limit,
    )


def _parse_state_config(state_section: dict[str, Any], env: Mapping[str, str]) -> StateConfig:
    """
    Parse the state section, resolving the file location.

    An explicit path (config or STATE_PATH) wins; otherwise the location
    is chosen by resolve_state_path() from the hosting environment.
    """
    raw_path = _optional_string(state_section, "path", "state.path")
    path = Path(raw_path).expanduser() if raw_path else resolve_state_path(env)

    keep_progress = state_section.get("keep_progress_on_failure", False)
    if not isinstance(keep_progress, bool):
        raise ConfigError(
            "'state.keep_progress_on_failure' must be true or false",
            details={"field": "state.keep_progress_on_failure"}
        )

    return StateConfig(path=path, keep_progress_on_failure=keep_progress)


def _parse_requests_config(requests_section: dict[str, Any]) -> RequestsConfig:
    raw_max_pages = requests_section.get("max_pages")
    max_pages = None
    if raw_max_pages is not None:
        max_pages = _parse_int(raw_max_pages, "requests.max_pages", 1)

    return RequestsConfig(
        max_retries=_parse_int(requests_section.get("max_retries", 8), "requests.max_retries", 0),
        artist_delay=_parse_float(requests_section.get("artist_delay", 0.15), "requests.artist_delay"),
        timeout=_parse_float(requests_section.get("timeout", 10), "requests.timeout"),
        max_pages=max_pages,
    )


def _parse_logging_config(logging_section: dict[str, Any]) -> LoggingConfig:
    directory = _optional_string(logging_section, "directory", "logging.directory") or "logs"
    return LoggingConfig(directory=Path(directory).expanduser().resolve())
