"""
Candidate track discovery.

Walks every followed artist and collects the track URIs of their recent
releases:

    followed artists (paginated)
      -> newest albums + newest singles (fetched concurrently, merged by id)
      -> keep releases inside the artist's lookback window
      -> all tracks of each qualifying release (paginated)
      -> unique track URIs

Each artist's window comes from RunState: bootstrap_days the first time
an artist is seen, incremental_days + buffer_days afterwards. Preview
commands pass no state and use one fixed window for everybody.

Every remote request goes through the RetryPolicy on its own, and the
Throttle pauses between artists.
"""

from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from datetime import datetime

from tqdm import tqdm

from release_sync.core.logger import get_logger, log_qualifying_release
from release_sync.core.state import RunState
from release_sync.spotify.client import (
    ALBUM_TRACKS_PAGE_SIZE,
    FOLLOWED_ARTISTS_PAGE_SIZE,
    SpotifyClient,
)
from release_sync.spotify.models import AlbumTrack, Artist, Release
from release_sync.sync.pagination import collect
from release_sync.sync.retry import RetryPolicy, Throttle
from release_sync.utils.dates import cutoff_instant


logger = get_logger(__name__)

# Release groups scanned for every artist, in merge order (later wins)
RELEASE_GROUPS = ("album", "single")


@dataclass
class CandidateResult:
    """
    Outcome of a candidate scan.

    Attributes:
        candidate_uris: Unique track URIs from all qualifying releases.
        qualifying_release_count: Number of releases inside their window.
        artists_scanned: Number of followed artists processed.
        releases: (artist, release) pairs that qualified, in scan order.
    """
    candidate_uris: set[str] = field(default_factory=set)
    qualifying_release_count: int = 0
    artists_scanned: int = 0
    releases: list[tuple[Artist, Release]] = field(default_factory=list)


class CandidateAggregator:
    """
    Builds the set of candidate track URIs for a run.

    Attributes:
        client: SpotifyClient bound to the user's token.
        retry_policy: Applied to every single request.
        throttle: Pause between artists.
        max_pages: Page cap for every listing, None for unbounded.
        now: Fixed reference time (tests), None for the current time.
        show_progress: Show a tqdm progress bar over artists.

    Example:
        aggregator = CandidateAggregator(client, RetryPolicy(), Throttle())
        result = aggregator.build_candidates(state, per_artist_limit=5)
        print(len(result.candidate_uris))
    """

    def __init__(
        self,
        client: SpotifyClient,
        retry_policy: RetryPolicy | None = None,
        throttle: Throttle | None = None,
        max_pages: int | None = None,
        now: datetime | None = None,
        show_progress: bool = False
    ) -> None:
        self.client = client
        self.retry_policy = retry_policy or RetryPolicy()
        self.throttle = throttle or Throttle()
        self.max_pages = max_pages
        self.now = now
        self.show_progress = show_progress

    def followed_artists(self) -> list[Artist]:
        """Every artist the user follows, in Spotify's listing order."""
        def fetch_page(after: str | None) -> tuple[list[dict], str | None]:
            return self.retry_policy.call(
                lambda: self.client.followed_artists_page(after, limit=FOLLOWED_ARTISTS_PAGE_SIZE),
                description="followed artists"
            )

        items = collect(fetch_page, seed=None, max_pages=self.max_pages)
        artists = [Artist.from_spotify_api(item) for item in items]
        logger.info(f"Found {len(artists)} followed artists")
        return artists

    def newest_releases(self, artist_id: str, limit: int) -> list[Release]:
        """
        Newest albums and singles of an artist, merged and sorted.

        Both groups are requested concurrently; each request has its own
        retry budget. A release listed in both groups appears once, taken
        from the later group. The result is sorted by release date,
        newest first.

        Args:
            artist_id: Spotify artist id.
            limit: Releases requested per group.

        Raises:
            SpotifyError: If either request fails.
            ReleaseDateError: If a release date cannot be parsed.
        """
        def fetch_group(group: str) -> list[dict]:
            return self.retry_policy.call(
                lambda: self.client.artist_releases(artist_id, group, limit),
                description=f"{group} releases of {artist_id}"
            )

        with ThreadPoolExecutor(max_workers=len(RELEASE_GROUPS)) as executor:
            futures = [executor.submit(fetch_group, group) for group in RELEASE_GROUPS]
            # Joined in submission order so the merge below is deterministic
            groups = [future.result() for future in futures]

        by_id: dict[str, Release] = {}
        for items in groups:
            for item in items:
                release = Release.from_spotify_api(item)
                by_id[release.id] = release

        return sorted(by_id.values(), key=lambda r: r.released_at, reverse=True)

    @staticmethod
    def qualifying_releases(releases: list[Release], cutoff: datetime) -> list[Release]:
        """Releases dated at or after the cutoff (the boundary is included)."""
        return [release for release in releases if release.released_at >= cutoff]

    def release_tracks(self, release_id: str) -> list[AlbumTrack]:
        """All tracks of a release, across every page."""
        def fetch_page(offset: int) -> tuple[list[dict], int | None]:
            return self.retry_policy.call(
                lambda: self.client.album_tracks_page(release_id, offset, limit=ALBUM_TRACKS_PAGE_SIZE),
                description=f"tracks of {release_id}"
            )

        items = collect(fetch_page, seed=0, max_pages=self.max_pages)
        return [AlbumTrack.from_spotify_api(item) for item in items if item]

    def release_track_uris(self, release_id: str) -> list[str]:
        """URIs of a release's tracks, skipping tracks that have none."""
        return [track.uri for track in self.release_tracks(release_id) if track.uri]

    def build_candidates(
        self,
        state: RunState | None,
        lookback_days: int | None = None,
        per_artist_limit: int = 5
    ) -> CandidateResult:
        """
        Scan every followed artist and collect candidate track URIs.

        Args:
            state: Run state providing per-artist windows. Each artist is
                   marked scanned in it after processing, even when no
                   release qualified. None for a read-only scan.
            lookback_days: Window used for every artist when state is None.
            per_artist_limit: Newest releases fetched per group.

        Returns:
            CandidateResult with the unique URIs and counters.

        Raises:
            ValueError: If neither state nor lookback_days is given.
            SpotifyError: On any non-retryable API failure, or a rate limit
                          that outlasts the retry budget.
        """
        if state is None and lookback_days is None:
            raise ValueError("lookback_days is required when no state is given")

        result = CandidateResult()
        artists = self.followed_artists()

        for artist in tqdm(artists, desc="Scanning artists", unit="artist",
                           disable=not self.show_progress):
            window = state.lookback_days(artist.id) if state is not None else lookback_days
            cutoff = cutoff_instant(window, now=self.now)

            releases = self.newest_releases(artist.id, per_artist_limit)
            recent = self.qualifying_releases(releases, cutoff)
            logger.debug(
                f"{artist.name}: {len(recent)}/{len(releases)} releases within {window} days"
            )

            for release in recent:
                result.qualifying_release_count += 1
                result.releases.append((artist, release))
                log_qualifying_release(
                    logger,
                    artist=artist.name,
                    release_name=release.name,
                    release_date=release.release_date,
                    album_type=release.album_type,
                    spotify_url=release.spotify_url,
                )
                result.candidate_uris.update(self.release_track_uris(release.id))

            if state is not None:
                state.mark_scanned(artist.id)

            result.artists_scanned += 1
            self.throttle.pause()

        logger.info(
            f"Scanned {result.artists_scanned} artists: "
            f"{result.qualifying_release_count} qualifying releases, "
            f"{len(result.candidate_uris)} unique tracks"
        )
        return result
