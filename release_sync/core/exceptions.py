"""
Exception classes for release-sync.

This module defines all custom exceptions used throughout the application.
Each exception carries a human-readable message plus a details dictionary
so that the CLI can print both the message and any structured context
(for Spotify failures, the error body returned by the Web API).

Exception Hierarchy:
    ReleaseSyncError (base)
        ConfigError - Missing or invalid configuration, fatal before any API call
        StateError - State file cannot be written
        SpotifyError - Spotify Web API issues (rate limits, auth, HTTP errors)
        PaginationLimitError - A listing exceeded the configured page cap
        ReleaseDateError - A release date could not be parsed
        ArtistNotFoundError - No followed artist matches a lookup
"""

import math
from typing import Any, Mapping


class ReleaseSyncError(Exception):
    """
    Base exception for all release-sync errors.

    All custom exceptions in this project inherit from this class,
    allowing callers to catch every release-sync error with a single
    except clause.

    Attributes:
        message: Human-readable error description.
        details: Dictionary with additional context (ids, HTTP status,
                 the remote error body).

    Example:
        try:
            summary = run_sync(...)
        except ReleaseSyncError as e:
            logger.error(f"Run failed: {e.message}")
            if e.details:
                logger.debug(f"Details: {e.details}")
    """

    def __init__(self, message: str, details: dict | None = None) -> None:
        """
        Initialize the base exception.

        Args:
            message: Human-readable error description shown to the user.
            details: Optional dictionary containing additional context.
                     Common keys include:
                     - 'field': Configuration key that is invalid
                     - 'artist_id' / 'album_id' / 'playlist_id'
                     - 'original_error': The wrapped exception as text
        """
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def __str__(self) -> str:
        """Return the error message for display."""
        return self.message


class ConfigError(ReleaseSyncError):
    """
    Raised when the configuration is missing a value or holds an invalid one.

    This is a CRITICAL error. It is always raised before the first remote
    call so that a misconfigured run never touches the playlist or state.

    Common causes:
        - SPOTIFY_CLIENT_ID / SPOTIFY_CLIENT_SECRET not set
        - SPOTIFY_REFRESH_TOKEN not set (run `release-sync login` first)
        - TARGET_PLAYLIST_ID missing or obviously malformed
        - Non-integer lookback or limit values

    Example:
        raise ConfigError(
            "TARGET_PLAYLIST_ID is missing or looks wrong: ''",
            details={'field': 'playlist.id'}
        )
    """
    pass


class StateError(ReleaseSyncError):
    """
    Raised when the run state document cannot be persisted.

    Reading never raises this error: an unreadable or corrupt state file
    is replaced by the default document. Writing does, because a run that
    cannot record its completion would re-add work on the next run.
    """
    pass


class SpotifyError(ReleaseSyncError):
    """
    Raised when there's an issue with the Spotify Web API.

    Common causes:
        - Invalid or expired credentials (is_auth_error)
        - Rate limiting, HTTP 429 (is_rate_limit, retried by RetryPolicy)
        - Playlist or album not found
        - Network connectivity issues
        - Response missing the fields we rely on

    Attributes:
        is_auth_error: True for 401/403 and OAuth token failures.
        is_rate_limit: True for HTTP 429.
        http_status: HTTP status code, or None for transport failures.
        headers: Response headers (used to read Retry-After).

    Example:
        raise SpotifyError(
            "Rate limited while fetching followed artists",
            details={'http_status': 429},
            is_rate_limit=True,
            http_status=429,
            headers={'Retry-After': '3'}
        )
    """

    def __init__(
        self,
        message: str,
        details: dict | None = None,
        is_auth_error: bool = False,
        is_rate_limit: bool = False,
        http_status: int | None = None,
        headers: Mapping[str, Any] | None = None
    ) -> None:
        """
        Initialize Spotify error with additional flags.

        Args:
            message: Human-readable error description.
            details: Optional dictionary with additional context. When the
                     API returned an error body it is stored under 'body'.
            is_auth_error: Set to True if this is an authentication failure.
            is_rate_limit: Set to True if this is a rate limit error.
            http_status: HTTP status code of the failed response.
            headers: Response headers of the failed response.
        """
        super().__init__(message, details)
        self.is_auth_error = is_auth_error
        self.is_rate_limit = is_rate_limit
        self.http_status = http_status
        self.headers = dict(headers or {})

    @property
    def retry_after(self) -> float | None:
        """
        Server-suggested wait in seconds, if the Retry-After header is numeric.

        Header lookup is case-insensitive. Returns None when the header is
        absent, empty, negative or not a finite number.
        """
        for key, value in self.headers.items():
            if str(key).lower() != "retry-after":
                continue
            try:
                seconds = float(str(value).strip())
            except ValueError:
                return None
            if not math.isfinite(seconds) or seconds < 0:
                return None
            return seconds
        return None


class PaginationLimitError(ReleaseSyncError):
    """
    Raised when a paginated listing still advertises a next page after
    the configured maximum number of pages.
    """
    pass


class ReleaseDateError(ReleaseSyncError, ValueError):
    """
    Raised when a release date does not match its declared precision.

    Example:
        raise ReleaseDateError(
            "Unparseable release date '2024-13' (precision 'month')",
            details={'release_date': '2024-13', 'precision': 'month'}
        )
    """
    pass


class ArtistNotFoundError(ReleaseSyncError):
    """Raised when no followed artist matches a name lookup."""
    pass
