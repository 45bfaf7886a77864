"""
Top-level orchestration of a release-sync run.

A run has two commit points:

    per-artist progress  - every scanned artist is marked in the in-memory
                           RunState while the scan proceeds
    run completion       - after the playlist update succeeds, last_run_at
                           and mode=incremental are set and the state is
                           saved together with the artist markers

If anything fails in between, the error propagates and run completion is
never recorded. By default the artist markers are discarded too, so the
next run rescans those artists with the same window. With
keep_progress_on_failure=True the markers are saved on failure (without
touching last_run_at or mode).

The preview helpers (releases, tracks, artist lookup) never write state
or modify a playlist.
"""

from dataclasses import asdict, dataclass
from datetime import datetime
from typing import Any

from release_sync.core.exceptions import ArtistNotFoundError, StateError
from release_sync.core.logger import get_logger
from release_sync.core.state import RunState, StateStore
from release_sync.spotify.models import Artist
from release_sync.sync.aggregator import CandidateAggregator
from release_sync.sync.playlist import PlaylistSync
from release_sync.utils.dates import cutoff_instant


logger = get_logger(__name__)

# Number of new URIs echoed in a summary
SAMPLE_SIZE = 10

# Preview limits
PREVIEW_MAX_ARTISTS = 5
PREVIEW_MAX_RELEASES = 10
PREVIEW_SAMPLE_TRACKS = 3


@dataclass(frozen=True)
class RunSummary:
    """
    Result of a run, printed as JSON by the CLI.

    Attributes:
        artists_scanned: Followed artists processed.
        qualifying_releases_found: Releases inside their artist's window.
        candidate_unique_uris: Unique track URIs from those releases.
        playlist_existing_unique_uris_before: Unique URIs in the playlist
                                              before adding.
        attempted_to_add: Candidates missing from the playlist.
        added_count: URIs sent in successful batches (0 for a dry run).
        dry_run: True when nothing was added and state was not saved.
        sample_new_uris: First few URIs that were (or would be) added.
    """
    artists_scanned: int
    qualifying_releases_found: int
    candidate_unique_uris: int
    playlist_existing_unique_uris_before: int
    attempted_to_add: int
    added_count: int
    dry_run: bool = False
    sample_new_uris: tuple[str, ...] = ()

    def to_dict(self) -> dict[str, Any]:
        data = asdict(self)
        data["sample_new_uris"] = list(self.sample_new_uris)
        return data


def run_sync(
    aggregator: CandidateAggregator,
    playlist: PlaylistSync,
    store: StateStore,
    playlist_id: str,
    per_artist_limit: int,
    dry_run: bool = False,
    keep_progress_on_failure: bool = False,
    now: datetime | None = None
) -> RunSummary:
    """
    Run the whole pipeline once.

    Args:
        aggregator: Candidate scanner bound to the user's client.
        playlist: Playlist reader/writer bound to the same client.
        store: Where the RunState lives.
        playlist_id: Validated target playlist id.
        per_artist_limit: Newest releases fetched per group and artist.
        dry_run: Compute what would be added without adding or saving.
        keep_progress_on_failure: Save artist markers if the run fails.
        now: Completion timestamp override (tests).

    Returns:
        RunSummary of the run.

    Raises:
        SpotifyError: Any API failure, after retries for rate limits.
        StateError: If the completed state cannot be saved.
    """
    state = store.load()
    logger.info(
        f"Starting {'dry run' if dry_run else 'run'} in {state.mode.value} mode "
        f"(last run: {state.last_run_at.isoformat() if state.last_run_at else 'never'})"
    )

    try:
        candidates = aggregator.build_candidates(state, per_artist_limit=per_artist_limit)
        existing = playlist.existing_track_uris(playlist_id)
        to_add = playlist.missing_uris(candidates.candidate_uris, existing)

        if dry_run:
            added = 0
        else:
            added = playlist.add_missing(playlist_id, to_add, existing)
    except Exception:
        if keep_progress_on_failure and not dry_run:
            _save_progress(store, state)
        raise

    summary = RunSummary(
        artists_scanned=candidates.artists_scanned,
        qualifying_releases_found=candidates.qualifying_release_count,
        candidate_unique_uris=len(candidates.candidate_uris),
        playlist_existing_unique_uris_before=len(existing),
        attempted_to_add=len(to_add),
        added_count=added,
        dry_run=dry_run,
        sample_new_uris=tuple(to_add[:SAMPLE_SIZE]),
    )

    if dry_run:
        logger.info(f"Dry run: {len(to_add)} tracks would be added")
        return summary

    state.complete_run(now)
    store.save(state)
    logger.info(f"Run complete: added {added} of {len(to_add)} new tracks")
    return summary


def _save_progress(store: StateStore, state: RunState) -> None:
    """Persist artist markers of a failed run; the run's own error wins."""
    try:
        store.save(state)
        logger.warning(
            f"Run failed; kept scan progress for {len(state.artists)} artists in {store.path}"
        )
    except StateError as e:
        logger.error(f"Run failed and scan progress could not be saved: {e.message}")


def preview_releases(
    aggregator: CandidateAggregator,
    lookback_days: int,
    per_artist_limit: int,
    max_artists: int = PREVIEW_MAX_ARTISTS
) -> dict[str, Any]:
    """
    Recent releases of the first few artists that have any.

    Stops once `max_artists` artists with recent releases are found.
    """
    cutoff = cutoff_instant(lookback_days, now=aggregator.now)
    artists = aggregator.followed_artists()

    results = []
    for artist in artists:
        releases = aggregator.newest_releases(artist.id, per_artist_limit)
        recent = aggregator.qualifying_releases(releases, cutoff)
        if recent:
            results.append({
                "artist": artist.name,
                "recent_releases": [release.to_preview_dict() for release in recent],
            })
        if len(results) >= max_artists:
            break

    return {
        "lookback_days": lookback_days,
        "per_artist_limit": per_artist_limit,
        "artists_scanned": len(artists),
        "artists_with_recent_releases_shown": len(results),
        "preview": results,
    }


def preview_tracks(
    aggregator: CandidateAggregator,
    lookback_days: int,
    per_artist_limit: int,
    max_releases: int = PREVIEW_MAX_RELEASES
) -> dict[str, Any]:
    """
    Tracks of the first few qualifying releases.

    Processes at most `max_releases` releases and reports, for each one,
    the number of tracks and a few sample titles.
    """
    cutoff = cutoff_instant(lookback_days, now=aggregator.now)
    artists = aggregator.followed_artists()

    unique_uris: set[str] = set()
    preview = []

    for artist in artists:
        if len(preview) >= max_releases:
            break
        releases = aggregator.newest_releases(artist.id, per_artist_limit)
        for release in aggregator.qualifying_releases(releases, cutoff):
            if len(preview) >= max_releases:
                break
            tracks = aggregator.release_tracks(release.id)
            uris = [track.uri for track in tracks if track.uri]
            unique_uris.update(uris)
            preview.append({
                "artist": artist.name,
                "release_name": release.name,
                "release_date": release.release_date,
                "album_id": release.id,
                "tracks_in_release": len(uris),
                "sample_track_names": [track.name for track in tracks[:PREVIEW_SAMPLE_TRACKS]],
            })

    return {
        "lookback_days": lookback_days,
        "per_artist_limit": per_artist_limit,
        "artists_scanned": len(artists),
        "releases_processed": len(preview),
        "unique_track_uris_found": len(unique_uris),
        "preview": preview,
    }


def match_artist(artists: list[Artist], name: str) -> Artist | None:
    """Exact case-insensitive name match first, then the first substring match."""
    needle = name.strip().lower()
    if not needle:
        return None
    for artist in artists:
        if artist.name.lower() == needle:
            return artist
    for artist in artists:
        if needle in artist.name.lower():
            return artist
    return None


def find_followed_artist(
    aggregator: CandidateAggregator,
    name: str,
    per_artist_limit: int
) -> dict[str, Any]:
    """
    Show the newest releases of a followed artist as the scan sees them.

    Raises:
        ArtistNotFoundError: If no followed artist matches `name`.
    """
    artist = match_artist(aggregator.followed_artists(), name)
    if artist is None:
        raise ArtistNotFoundError(
            f"No followed artist matched {name!r}",
            details={"name": name}
        )

    releases = aggregator.newest_releases(artist.id, per_artist_limit)
    return {
        "followed_artist": {"name": artist.name, "id": artist.id},
        "releases_seen_by_app": [
            {
                "name": release.name,
                "id": release.id,
                "release_date": release.release_date,
                "precision": release.release_date_precision,
                "album_type": release.album_type,
            }
            for release in releases
        ],
    }
