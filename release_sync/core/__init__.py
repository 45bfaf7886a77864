"""
Core module for release-sync.

This module provides the foundational components used throughout the application:
    - exceptions: Custom exception classes for error handling
    - config: Configuration loading and validation
    - state: Persistent run state with per-artist lookback windows
    - logger: Logging system with multiple outputs

Usage:
    from release_sync.core import (
        Config, load_config,
        RunState, StateStore,
        setup_logging, get_logger,
        ReleaseSyncError, ConfigError, SpotifyError
    )
"""

from release_sync.core.exceptions import (
    ArtistNotFoundError,
    ConfigError,
    PaginationLimitError,
    ReleaseDateError,
    ReleaseSyncError,
    SpotifyError,
    StateError,
)
from release_sync.core.logger import (
    get_logger,
    log_added_tracks,
    log_qualifying_release,
    setup_logging,
    shutdown_logging,
)
from release_sync.core.state import (
    RunMode,
    RunState,
    StateStore,
    resolve_state_path,
)
from release_sync.core.config import (
    Config,
    LoggingConfig,
    PlaylistConfig,
    ReleasesConfig,
    RequestsConfig,
    SpotifyConfig,
    StateConfig,
    load_config,
    validate_playlist_id,
)

__all__ = [
    # Config
    "Config",
    "SpotifyConfig",
    "PlaylistConfig",
    "ReleasesConfig",
    "StateConfig",
    "RequestsConfig",
    "LoggingConfig",
    "load_config",
    "validate_playlist_id",
    # State
    "RunMode",
    "RunState",
    "StateStore",
    "resolve_state_path",
    # Exceptions
    "ReleaseSyncError",
    "ConfigError",
    "StateError",
    "SpotifyError",
    "PaginationLimitError",
    "ReleaseDateError",
    "ArtistNotFoundError",
    # Logger
    "setup_logging",
    "get_logger",
    "log_qualifying_release",
    "log_added_tracks",
    "shutdown_logging",
]
