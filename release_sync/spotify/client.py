"""
Spotify Web API client for release-sync.

A thin wrapper around spotipy.Spotify that exposes exactly the endpoints
the release scan needs and turns every failure into a SpotifyError.

Authentication:
    The client is built from an access token obtained by
    release_sync.spotify.auth.refresh_access_token(). The token is passed
    in explicitly; there is no module-level client or cached session.
    Build a new client for every run.

Rate Limits:
    spotipy normally retries 429 responses itself through a urllib3
    adapter, which hides the Retry-After header from the caller. The
    client hands spotipy a plain requests.Session instead, so a 429
    surfaces as SpotifyError(is_rate_limit=True) carrying the response
    headers, and RetryPolicy decides how long to wait.

Pagination:
    The *_page methods return a single page as (items, next_cursor).
    They plug straight into release_sync.sync.pagination.collect().

Usage:
    from release_sync.spotify.client import SpotifyClient

    client = SpotifyClient(access_token)
    items, after = client.followed_artists_page(after=None)
"""

from typing import Any, Callable

import requests
import spotipy

from release_sync.core.exceptions import SpotifyError
from release_sync.core.logger import get_logger


logger = get_logger(__name__)

# Use the market of the token owner for catalog lookups
DEFAULT_MARKET = "from_token"

# Page sizes (Spotify maximums for each endpoint)
FOLLOWED_ARTISTS_PAGE_SIZE = 50
ALBUM_TRACKS_PAGE_SIZE = 50
PLAYLIST_ITEMS_PAGE_SIZE = 100
PLAYLIST_ADD_BATCH_SIZE = 100


class SpotifyClient:
    """
    Spotify API access bound to one user access token.

    Attributes:
        market: Market passed to catalog endpoints.

    Example:
        client = SpotifyClient(token)
        me = client.current_user()
        print(me["display_name"])
    """

    def __init__(
        self,
        access_token: str,
        market: str = DEFAULT_MARKET,
        timeout: float = 10,
        spotify: spotipy.Spotify | None = None
    ) -> None:
        """
        Create a client for an access token.

        Args:
            access_token: OAuth bearer token for the user.
            market: Market for catalog lookups, "from_token" by default.
            timeout: Per-request timeout in seconds.
            spotify: Prebuilt spotipy instance (tests inject a mock here).
        """
        self.market = market
        if spotify is None:
            spotify = spotipy.Spotify(
                auth=access_token,
                requests_session=requests.Session(),
                requests_timeout=timeout,
                retries=0,
                status_retries=0,
            )
        self._spotify = spotify

    # =========================================================================
    # Error handling
    # =========================================================================

    def _call(self, action: str, func: Callable[..., Any], *args: Any,
              details: dict | None = None, **kwargs: Any) -> Any:
        """
        Invoke a spotipy method and translate its failures.

        Args:
            action: What is being done, e.g. "fetch followed artists".
                    Used in the error message.
            func: Bound spotipy method.
            details: Context ids merged into the error details.

        Raises:
            SpotifyError: For any HTTP error, transport failure or empty
                          response.
        """
        details = details or {}
        try:
            result = func(*args, **kwargs)
        except spotipy.SpotifyException as e:
            raise _translate_spotify_exception(e, action, details) from e
        except requests.exceptions.RequestException as e:
            raise SpotifyError(
                f"Network error while trying to {action}: {e}",
                details={**details, "original_error": str(e)}
            ) from e

        if result is None:
            raise SpotifyError(
                f"Empty response while trying to {action}",
                details=details
            )
        return result

    # =========================================================================
    # User
    # =========================================================================

    def current_user(self) -> dict[str, Any]:
        """Profile of the token owner (id, display_name, ...)."""
        return self._call("fetch the current user", self._spotify.current_user)

    # =========================================================================
    # Catalog
    # =========================================================================

    def followed_artists_page(
        self,
        after: str | None = None,
        limit: int = FOLLOWED_ARTISTS_PAGE_SIZE
    ) -> tuple[list[dict[str, Any]], str | None]:
        """
        One page of the artists the user follows.

        Args:
            after: Cursor (last artist id of the previous page), None for
                   the first page.
            limit: Page size, at most 50.

        Returns:
            (artist objects, next `after` cursor or None).

        Raises:
            SpotifyError: On API failure or a response without an
                          'artists.items' list.
        """
        response = self._call(
            "fetch followed artists",
            self._spotify.current_user_followed_artists,
            limit=limit,
            after=after,
            details={"after": after},
        )
        artists = _require_mapping(response, "artists", "followed artists")
        items = _require_items(artists, "followed artists")
        cursors = artists.get("cursors") or {}
        return items, cursors.get("after") or None

    def artist_releases(self, artist_id: str, group: str, limit: int) -> list[dict[str, Any]]:
        """
        Newest releases of an artist in one group.

        Args:
            artist_id: Spotify artist id.
            group: "album" or "single".
            limit: Number of releases to return, at most 50.

        Returns:
            Simplified album objects, newest first as ordered by Spotify.
        """
        response = self._call(
            f"fetch {group} releases",
            self._spotify.artist_albums,
            artist_id,
            include_groups=group,
            limit=limit,
            country=self.market,
            details={"artist_id": artist_id, "group": group},
        )
        return _require_items(response, f"{group} releases of {artist_id}")

    def album_tracks_page(
        self,
        album_id: str,
        offset: int = 0,
        limit: int = ALBUM_TRACKS_PAGE_SIZE
    ) -> tuple[list[dict[str, Any]], int | None]:
        """
        One page of an album's tracks.

        Returns:
            (simplified track objects, next offset or None).
        """
        response = self._call(
            "fetch album tracks",
            self._spotify.album_tracks,
            album_id,
            limit=limit,
            offset=offset,
            market=self.market,
            details={"album_id": album_id, "offset": offset},
        )
        items = _require_items(response, f"tracks of album {album_id}")
        return items, _next_offset(response, offset, limit)

    # =========================================================================
    # Playlists
    # =========================================================================

    def playlist_tracks_page(
        self,
        playlist_id: str,
        offset: int = 0,
        limit: int = PLAYLIST_ITEMS_PAGE_SIZE
    ) -> tuple[list[dict[str, Any]], int | None]:
        """
        One page of a playlist's items.

        Returns:
            (playlist item objects, next offset or None). Items may have
            a null 'track' (removed tracks) or a track without 'uri'.
        """
        response = self._call(
            "fetch playlist tracks",
            self._spotify.playlist_items,
            playlist_id,
            fields="items(track(uri)),next",
            limit=limit,
            offset=offset,
            market=self.market,
            additional_types=("track",),
            details={"playlist_id": playlist_id, "offset": offset},
        )
        items = _require_items(response, f"items of playlist {playlist_id}")
        return items, _next_offset(response, offset, limit)

    def add_tracks(self, playlist_id: str, uris: list[str]) -> str | None:
        """
        Append up to 100 track URIs to a playlist.

        Returns:
            The playlist snapshot id reported by Spotify.
        """
        if len(uris) > PLAYLIST_ADD_BATCH_SIZE:
            raise ValueError(f"At most {PLAYLIST_ADD_BATCH_SIZE} URIs per request, got {len(uris)}")

        response = self._call(
            "add tracks to playlist",
            self._spotify.playlist_add_items,
            playlist_id,
            uris,
            details={"playlist_id": playlist_id, "batch_size": len(uris)},
        )
        return response.get("snapshot_id")

    def create_playlist(
        self,
        user_id: str,
        name: str,
        description: str = "",
        public: bool = False
    ) -> dict[str, Any]:
        """Create a playlist owned by `user_id` and return the playlist object."""
        return self._call(
            "create playlist",
            self._spotify.user_playlist_create,
            user_id,
            name,
            public=public,
            description=description,
            details={"user_id": user_id, "name": name},
        )


def _translate_spotify_exception(
    error: spotipy.SpotifyException,
    action: str,
    details: dict
) -> SpotifyError:
    """
    Convert a spotipy exception into a SpotifyError.

    The Web API error body ({"error": {"status", "message"}}) is rebuilt
    from the fields spotipy extracted, so callers can report it as-is.
    """
    status = error.http_status
    headers = getattr(error, "headers", None) or {}
    body = {"error": {"status": status, "message": error.msg}}
    reason = getattr(error, "reason", None)
    if reason:
        body["error"]["reason"] = reason

    if status == 429:
        message = f"Rate limited while trying to {action}"
    elif status in (401, 403):
        message = f"Not authorized to {action} (HTTP {status})"
    elif status == 404:
        message = f"Not found while trying to {action}"
    else:
        message = f"Failed to {action} (HTTP {status})"

    logger.debug(f"{message}: {error.msg}")

    return SpotifyError(
        message,
        details={**details, "http_status": status, "body": body},
        is_auth_error=status in (401, 403),
        is_rate_limit=status == 429,
        http_status=status,
        headers=headers,
    )


def _require_mapping(response: Any, key: str, what: str) -> dict[str, Any]:
    value = response.get(key) if isinstance(response, dict) else None
    if not isinstance(value, dict):
        raise SpotifyError(
            f"Malformed response for {what}: missing '{key}'",
            details={"missing_key": key}
        )
    return value


def _require_items(response: Any, what: str) -> list[dict[str, Any]]:
    items = response.get("items") if isinstance(response, dict) else None
    if not isinstance(items, list):
        raise SpotifyError(
            f"Malformed response for {what}: missing 'items'",
            details={"missing_key": "items"}
        )
    return items


def _next_offset(response: dict[str, Any], offset: int, limit: int) -> int | None:
    # Spotify signals the last page with "next": null
    if response.get("next"):
        return offset + limit
    return None
