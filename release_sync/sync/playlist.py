"""
Target playlist synchronization.

Reads the playlist's current track URIs and appends the candidates it
does not contain yet, in batches of at most 100 URIs (the Web API limit
per request).

The playlist is read fresh on every run and is the only dedup
authority: a track already present is never sent again, whatever the
state file says.

Partial Failure:
    Batches are not transactional. If batch N fails, batches 1..N-1 stay
    in the playlist and the error propagates. The next run re-reads the
    playlist and only sends what is still missing.
"""

from typing import Iterable

from release_sync.core.logger import get_logger, log_added_tracks
from release_sync.spotify.client import (
    PLAYLIST_ADD_BATCH_SIZE,
    PLAYLIST_ITEMS_PAGE_SIZE,
    SpotifyClient,
)
from release_sync.sync.pagination import collect
from release_sync.sync.retry import RetryPolicy


logger = get_logger(__name__)


class PlaylistSync:
    """
    Reads and appends to one user's playlists.

    Example:
        sync = PlaylistSync(client, RetryPolicy())
        existing = sync.existing_track_uris(playlist_id)
        added = sync.add_missing(playlist_id, candidates, existing)
    """

    def __init__(
        self,
        client: SpotifyClient,
        retry_policy: RetryPolicy | None = None,
        max_pages: int | None = None
    ) -> None:
        self.client = client
        self.retry_policy = retry_policy or RetryPolicy()
        self.max_pages = max_pages

    def existing_track_uris(self, playlist_id: str) -> set[str]:
        """
        URIs of every track currently in the playlist.

        Items without a track (removed from the catalog) or without a URI
        are skipped.
        """
        def fetch_page(offset: int) -> tuple[list[dict], int | None]:
            return self.retry_policy.call(
                lambda: self.client.playlist_tracks_page(playlist_id, offset, limit=PLAYLIST_ITEMS_PAGE_SIZE),
                description=f"playlist {playlist_id}"
            )

        uris: set[str] = set()
        for item in collect(fetch_page, seed=0, max_pages=self.max_pages):
            track = (item or {}).get("track")
            if track and track.get("uri"):
                uris.add(track["uri"])

        logger.info(f"Playlist {playlist_id} holds {len(uris)} unique tracks")
        return uris

    @staticmethod
    def missing_uris(candidate_uris: Iterable[str], existing_uris: set[str]) -> list[str]:
        """Candidates not in the playlist, sorted so batches are reproducible."""
        return sorted(set(candidate_uris) - existing_uris)

    def add_missing(
        self,
        playlist_id: str,
        candidate_uris: Iterable[str],
        existing_uris: set[str] | None = None
    ) -> int:
        """
        Append the candidates that are not yet in the playlist.

        Args:
            playlist_id: Target playlist id.
            candidate_uris: Track URIs that should end up in the playlist.
            existing_uris: Current playlist URIs if already fetched; read
                           from Spotify when None.

        Returns:
            Number of URIs sent in successful batches.

        Raises:
            SpotifyError: If a batch fails. Earlier batches stay applied.
        """
        if existing_uris is None:
            existing_uris = self.existing_track_uris(playlist_id)

        to_add = self.missing_uris(candidate_uris, existing_uris)
        if not to_add:
            logger.info("Playlist is already up to date")
            return 0

        added = 0
        for start in range(0, len(to_add), PLAYLIST_ADD_BATCH_SIZE):
            batch = to_add[start:start + PLAYLIST_ADD_BATCH_SIZE]
            self.retry_policy.call(
                lambda: self.client.add_tracks(playlist_id, batch),
                description=f"add batch to {playlist_id}"
            )
            added += len(batch)
            log_added_tracks(logger, playlist_id, batch)

        return added
